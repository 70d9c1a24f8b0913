"""Scan document text for annotation blocks.

A single pass over the lines of the document drives a small state
machine:

    OUTSIDE  --BEGIN-->  RECORD  --QUOTE-BEGIN-->   QUOTE    --QUOTE-END-->   RECORD
                         RECORD  --COMMENT-BEGIN--> COMMENT  --COMMENT-END--> RECORD
                         RECORD  --END-->           OUTSIDE

Inside a sub-block only its own end marker, END and BEGIN are
significant; every other line is content. A BEGIN seen while a span is
still open abandons that span as missing its END marker.

Malformed spans never abort the scan: ``parse`` drops them and
``annotation_engine.validator`` reports them.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum

from annotation_engine.blocks import COMMENT_BEGIN, COMMENT_END, END, QUOTE_BEGIN, QUOTE_END, begin_line
from annotation_engine.blocks.grammar import MarkerKind, iter_lines, match_marker, normalize_block_text, strip_prefix
from annotation_engine.blocks.identity import resolve_id
from annotation_engine.blocks.models import (
    WARNING_KINDS,
    AnnotationPayload,
    AnnotationRecord,
    DiagnosticKind,
    TextRange,
)

logger = logging.getLogger(__name__)

_RECORD_MARKERS = {
    MarkerKind.END,
    MarkerKind.QUOTE_BEGIN,
    MarkerKind.QUOTE_END,
    MarkerKind.COMMENT_BEGIN,
    MarkerKind.COMMENT_END,
}


class _State(Enum):
    OUTSIDE = "outside"
    RECORD = "record"
    QUOTE = "quote"
    COMMENT = "comment"


@dataclass
class Defect:
    """A structural problem tied to a range of the document."""

    kind: DiagnosticKind
    start: int
    end: int
    message: str
    hint: str = ""

    @property
    def fatal(self) -> bool:
        return self.kind not in WARNING_KINDS


@dataclass
class Span:
    """A BEGIN-anchored region of the document and what was found inside it."""

    start: int
    payload_raw: str
    last_line_end: int
    end: int | None = None
    header: str | None = None
    quote: str | None = None
    comment: str | None = None
    defects: list[Defect] = field(default_factory=list)

    @property
    def closed(self) -> bool:
        return self.end is not None


@dataclass
class ScanResult:
    spans: list[Span] = field(default_factory=list)
    stray: list[Defect] = field(default_factory=list)


def _stray(kind: MarkerKind, start: int, end: int, where: str) -> Defect:
    return Defect(
        DiagnosticKind.STRAY_MARKER, start, end,
        f"{kind.value} marker {where}",
        "Remove the marker or restore its matching counterpart",
    )


def scan(text: str) -> ScanResult:
    """Locate every BEGIN-anchored span in ``text``."""
    result = ScanResult()
    state = _State.OUTSIDE
    current: Span | None = None
    buffer: list[str] = []

    def abandon(span: Span) -> None:
        span.defects.insert(0, Defect(
            DiagnosticKind.MISSING_END, span.start, span.last_line_end,
            "Annotation block has no END marker",
            f"Ensure a line exactly like: {END}",
        ))

    for line in iter_lines(text):
        marker = match_marker(line.text)
        kind = marker.kind if marker else None

        if kind is MarkerKind.BEGIN:
            if current is not None:
                abandon(current)
            current = Span(start=line.start, payload_raw=marker.payload, last_line_end=line.end)
            result.spans.append(current)
            state = _State.RECORD
            continue

        if current is None:
            if kind in _RECORD_MARKERS:
                result.stray.append(_stray(kind, line.start, line.end, "outside any annotation block"))
            continue

        current.last_line_end = line.end

        if state in (_State.QUOTE, _State.COMMENT):
            in_quote = state is _State.QUOTE
            closer = MarkerKind.QUOTE_END if in_quote else MarkerKind.COMMENT_END
            if kind is closer:
                joined = normalize_block_text("\n".join(buffer))
                if in_quote:
                    current.quote = joined
                else:
                    current.comment = joined
                state = _State.RECORD
            elif kind is MarkerKind.END:
                current.defects.append(Defect(
                    DiagnosticKind.UNTERMINATED_QUOTE if in_quote else DiagnosticKind.UNTERMINATED_COMMENT,
                    current.start, line.end,
                    f"{'Quote' if in_quote else 'Comment'} block is not closed before END",
                    f"Add {QUOTE_END if in_quote else COMMENT_END} before {END}",
                ))
                current.end = line.end
                current, state = None, _State.OUTSIDE
            else:
                buffer.append(strip_prefix(line.text))
            continue

        # state is RECORD
        if kind is MarkerKind.END:
            current.end = line.end
            current, state = None, _State.OUTSIDE
        elif kind in (MarkerKind.QUOTE_BEGIN, MarkerKind.COMMENT_BEGIN):
            is_quote = kind is MarkerKind.QUOTE_BEGIN
            if (current.quote if is_quote else current.comment) is not None:
                current.defects.append(Defect(
                    DiagnosticKind.DUPLICATE_QUOTE if is_quote else DiagnosticKind.DUPLICATE_COMMENT,
                    line.start, line.end,
                    f"Second {'quote' if is_quote else 'comment'} block in the same annotation",
                    "Merge the blocks into one",
                ))
            buffer = []
            state = _State.QUOTE if is_quote else _State.COMMENT
        elif kind in _RECORD_MARKERS:
            current.defects.append(_stray(kind, line.start, line.end, "without a matching opener"))
        elif kind is None and current.header is None and current.quote is None and current.comment is None:
            content = strip_prefix(line.text).strip()
            if content:
                current.header = content

    if current is not None:
        abandon(current)
    return result


def evaluate(text: str, span: Span) -> tuple[AnnotationRecord | None, list[Defect]]:
    """Turn a span into a record, or report why it cannot be one.

    An unclosed span reports only its missing END marker.
    """
    if not span.closed:
        return None, [d for d in span.defects if d.kind is DiagnosticKind.MISSING_END]

    defects = list(span.defects)
    end = span.end
    if span.quote is None and not any(d.kind is DiagnosticKind.UNTERMINATED_QUOTE for d in defects):
        defects.append(Defect(
            DiagnosticKind.MISSING_QUOTE, span.start, end,
            "Annotation block has no quote block",
            f"{QUOTE_BEGIN} … {QUOTE_END}",
        ))
    if span.comment is None and not any(d.kind is DiagnosticKind.UNTERMINATED_COMMENT for d in defects):
        defects.append(Defect(
            DiagnosticKind.MISSING_COMMENT, span.start, end,
            "Annotation block has no comment block",
            f"{COMMENT_BEGIN} … {COMMENT_END}",
        ))

    data: dict | None = {}
    if span.payload_raw:
        try:
            data = json.loads(span.payload_raw)
        except json.JSONDecodeError as e:
            defects.append(Defect(
                DiagnosticKind.INVALID_JSON, span.start, end,
                f"Invalid JSON: {e.msg} (column {e.colno})",
                f"Write the payload as one JSON object on the BEGIN line: {begin_line('{ … }')}",
            ))
            data = None
        else:
            if not isinstance(data, dict):
                defects.append(Defect(
                    DiagnosticKind.PAYLOAD_NOT_OBJECT, span.start, end,
                    f"Payload is a JSON {type(data).__name__}, not an object",
                    f"{begin_line('{ … }')}",
                ))
                data = None

    if data is None or any(d.fatal for d in defects):
        return None, defects

    payload = AnnotationPayload.from_dict(data)
    quote, comment = span.quote, span.comment
    record = AnnotationRecord(
        id=resolve_id(payload.to_dict(), quote, comment),
        header=span.header,
        quote=quote,
        comment=comment,
        payload=payload,
        range=TextRange(span.start, end),
        raw=text[span.start:end],
    )
    return record, defects


def parse(text: str) -> dict[str, AnnotationRecord]:
    """Parse every well-formed annotation block into an id → record map.

    Malformed blocks are skipped. When two blocks share an id the later
    one replaces the earlier one in the map.
    """
    records: dict[str, AnnotationRecord] = {}
    for span in scan(text).spans:
        record, defects = evaluate(text, span)
        if record is None:
            reason = next((d for d in defects if d.fatal), None)
            logger.debug(
                "Skipping annotation block at offset %d: %s",
                span.start, reason.message if reason else "malformed",
            )
            continue
        if record.id in records:
            logger.warning(
                "Annotation id %s at offset %d replaces the block at offset %d",
                record.id, record.range.start, records[record.id].range.start,
            )
        records[record.id] = record
    return records
