"""Validate annotation blocks without modifying the document."""

from __future__ import annotations

from dataclasses import dataclass, field

from annotation_engine.blocks.models import Diagnostic, DiagnosticKind, TextRange
from annotation_engine.blocks.scanner import Defect, evaluate, scan


def _diagnostic(defect: Defect, record_id: str | None = None) -> Diagnostic:
    return Diagnostic(
        kind=defect.kind,
        range=TextRange(defect.start, defect.end),
        message=defect.message,
        hint=defect.hint,
        id=record_id,
    )


def validate(text: str) -> list[Diagnostic]:
    """Report every malformed or incomplete annotation block in ``text``.

    Checks:
    - BEGIN markers without a matching END
    - Missing, duplicated or unterminated quote/comment blocks
    - Payloads that are not valid JSON objects
    - End/sub-block markers outside any block
    - Blocks whose ids collide with an earlier block

    Returns:
        Diagnostics in document order.
    """
    result = scan(text)
    diagnostics = [_diagnostic(d) for d in result.stray]
    seen: dict[str, int] = {}

    for span in result.spans:
        record, defects = evaluate(text, span)
        record_id = record.id if record else None
        diagnostics.extend(_diagnostic(d, record_id) for d in defects)
        if record is None:
            continue
        if record.id in seen:
            diagnostics.append(Diagnostic(
                kind=DiagnosticKind.DUPLICATE_ID,
                range=record.range,
                message=f"Id {record.id} is already used by the block at offset {seen[record.id]}",
                hint='Give one of the blocks a distinct "id" in its payload',
                id=record.id,
            ))
        else:
            seen[record.id] = record.range.start

    diagnostics.sort(key=lambda d: (d.range.start, d.range.end))
    return diagnostics


@dataclass
class ValidationResult:
    """Result of validating one document."""

    diagnostics: list[Diagnostic] = field(default_factory=list)
    total_blocks: int = 0

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == "error"]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == "warning"]

    @property
    def passed(self) -> bool:
        return len(self.errors) == 0

    def summary(self) -> str:
        lines = [f"Annotation Validation: {self.total_blocks} blocks checked"]
        if self.errors:
            lines.append(f"ERRORS ({len(self.errors)}):")
            for d in self.errors:
                lines.append(f"  {d}")
        if self.warnings:
            lines.append(f"WARNINGS ({len(self.warnings)}):")
            for d in self.warnings:
                lines.append(f"  {d}")
        if self.passed and not self.warnings:
            lines.append("All checks passed.")
        return "\n".join(lines)


def validate_document(text: str) -> ValidationResult:
    """Validate ``text`` and wrap the diagnostics with a block count."""
    return ValidationResult(
        diagnostics=validate(text),
        total_blocks=len(scan(text).spans),
    )
