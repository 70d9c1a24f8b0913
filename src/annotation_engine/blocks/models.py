"""Data model for annotation records, mutation requests and diagnostics."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from annotation_engine.blocks.grammar import normalize_block_text
from annotation_engine.blocks.identity import explicit_id, resolve_id

# Viewer keys that live only in the quote/comment sub-blocks
INLINE_EXCLUDED = ("text", "comment")

# attribute name → viewer (camelCase) key
_FIELD_KEYS = {
    "id": "id",
    "type": "type",
    "color": "color",
    "sort_index": "sortIndex",
    "page_label": "pageLabel",
    "position": "position",
    "tags": "tags",
    "date_created": "dateCreated",
    "date_modified": "dateModified",
    "author_name": "authorName",
    "is_author_name_authoritative": "isAuthorNameAuthoritative",
}
_KEY_FIELDS = {v: k for k, v in _FIELD_KEYS.items()}


@dataclass(frozen=True)
class TextRange:
    """Half-open ``[start, end)`` offsets into a document string."""

    start: int
    end: int

    def slice(self, text: str) -> str:
        return text[self.start:self.end]


@dataclass
class AnnotationPayload:
    """Source fields of an annotation, as reported by the reader.

    Known fields are typed attributes; any other key is kept verbatim in
    ``extra`` so that it survives a parse → render round-trip.
    """

    id: str | None = None
    type: str | None = None
    color: str | None = None
    sort_index: str | None = None
    page_label: str | None = None
    position: dict[str, Any] | None = None
    tags: list[Any] | None = None
    date_created: str | None = None
    date_modified: str | None = None
    author_name: str | None = None
    is_author_name_authoritative: bool | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnnotationPayload:
        known: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for key, value in data.items():
            if key in INLINE_EXCLUDED:
                continue
            attr = _KEY_FIELDS.get(key)
            # Explicit nulls ride in extra so to_dict() reproduces them
            if attr and value is not None:
                known[attr] = value
            else:
                extra[key] = value
        return cls(**known, extra=extra)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for attr, key in _FIELD_KEYS.items():
            value = getattr(self, attr)
            if value is not None:
                out[key] = value
        for key, value in self.extra.items():
            if key not in INLINE_EXCLUDED:
                out[key] = value
        return out

    @property
    def explicit_id(self) -> str | None:
        return explicit_id(self.to_dict())

    def merged(self, patch: dict[str, Any]) -> AnnotationPayload:
        """Return a copy with ``patch`` applied shallowly over this payload."""
        return AnnotationPayload.from_dict({**self.to_dict(), **patch})

    def with_id(self, record_id: str) -> AnnotationPayload:
        extra = {k: v for k, v in self.extra.items() if k != "id"}
        return replace(self, id=record_id, extra=extra)


@dataclass
class AnnotationRecord:
    """One parsed annotation block.

    ``raw == document[range.start:range.end]`` at the moment of parsing.
    """

    id: str
    header: str | None
    quote: str
    comment: str
    payload: AnnotationPayload
    range: TextRange
    raw: str

    def to_viewer(self) -> dict[str, Any]:
        """Rebuild the reader's annotation dict (payload plus text/comment)."""
        data = self.payload.to_dict()
        data["id"] = self.id
        data["text"] = self.quote
        data["comment"] = self.comment
        return data


def _coerce_payload(payload: AnnotationPayload | dict[str, Any] | None) -> AnnotationPayload:
    if payload is None:
        return AnnotationPayload()
    if isinstance(payload, AnnotationPayload):
        return payload
    return AnnotationPayload.from_dict(payload)


@dataclass
class RecordInput:
    """Fields of a record to be inserted."""

    payload: AnnotationPayload = field(default_factory=AnnotationPayload)
    quote: str = ""
    comment: str = ""
    header: str | None = None

    def __post_init__(self) -> None:
        self.payload = _coerce_payload(self.payload)

    @classmethod
    def from_viewer(cls, annotation: dict[str, Any]) -> RecordInput:
        """Build an input from a reader annotation dict (``text``/``comment`` inline)."""
        return cls(
            payload=AnnotationPayload.from_dict(annotation),
            quote=annotation.get("text") or "",
            comment=annotation.get("comment") or "",
        )

    @property
    def id(self) -> str:
        return resolve_id(
            self.payload.to_dict(),
            normalize_block_text(self.quote),
            normalize_block_text(self.comment),
        )


@dataclass
class RecordPatch:
    """Changes to apply to an existing record. ``None`` keeps the current value."""

    payload: dict[str, Any] | None = None
    quote: str | None = None
    comment: str | None = None
    header: str | None = None


@dataclass(frozen=True)
class NotFound:
    """Returned by update/remove when no record has the requested id."""

    id: str
    text: str


class DiagnosticKind(str, Enum):
    MISSING_END = "missing end marker"
    INVALID_JSON = "invalid JSON"
    PAYLOAD_NOT_OBJECT = "payload is not an object"
    MISSING_QUOTE = "missing quote block"
    MISSING_COMMENT = "missing comment block"
    UNTERMINATED_QUOTE = "unterminated quote block"
    UNTERMINATED_COMMENT = "unterminated comment block"
    DUPLICATE_QUOTE = "duplicate quote block"
    DUPLICATE_COMMENT = "duplicate comment block"
    STRAY_MARKER = "stray marker"
    DUPLICATE_ID = "duplicate id"


# Kinds that do not stop a record from being parsed
WARNING_KINDS = frozenset({DiagnosticKind.STRAY_MARKER, DiagnosticKind.DUPLICATE_ID})


@dataclass(frozen=True)
class Diagnostic:
    """A structural defect found by validation."""

    kind: DiagnosticKind
    range: TextRange
    message: str
    hint: str = ""
    id: str | None = None

    @property
    def severity(self) -> str:
        return "warning" if self.kind in WARNING_KINDS else "error"

    def __str__(self) -> str:
        where = f"[{self.range.start}:{self.range.end}]"
        text = f"{self.severity.upper()} {where} {self.kind.value}: {self.message}"
        if self.hint:
            text += f" (hint: {self.hint})"
        return text
