"""annotation-engine — annotation records embedded in markdown documents.

Core operations are pure functions of the document text:

    parse(text)                      -> {id: AnnotationRecord}
    insert(text, record, strategy)   -> text
    update(text, id, patch)          -> text | NotFound
    remove(text, id)                 -> text | NotFound
    validate(text)                   -> [Diagnostic]

Reading and writing the document belongs to the caller; see
``annotation_engine.session`` for a per-document serialized wrapper.
"""

from annotation_engine.blocks.models import (
    AnnotationPayload,
    AnnotationRecord,
    Diagnostic,
    DiagnosticKind,
    NotFound,
    RecordInput,
    RecordPatch,
    TextRange,
)
from annotation_engine.blocks.scanner import parse
from annotation_engine.editor import InsertStrategy, insert, remove, update
from annotation_engine.errors import AnnotationError, RenderError
from annotation_engine.render import RenderContext, RenderMode, render_block
from annotation_engine.validator import validate

__version__ = "0.3.0"

__all__ = [
    "AnnotationError",
    "AnnotationPayload",
    "AnnotationRecord",
    "Diagnostic",
    "DiagnosticKind",
    "InsertStrategy",
    "NotFound",
    "RecordInput",
    "RecordPatch",
    "RenderContext",
    "RenderError",
    "RenderMode",
    "TextRange",
    "insert",
    "parse",
    "remove",
    "render_block",
    "update",
    "validate",
]
