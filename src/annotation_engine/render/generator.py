"""Annotation block generator.

Turns a record's fields plus a ``RenderContext`` into canonical
marker-delimited text. Template evaluation sits behind the narrow
``TemplateRenderer`` protocol; ``JinjaRenderer`` is the shipped
implementation.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import quote as url_quote, urlencode

from jinja2 import Environment, StrictUndefined, TemplateError

from annotation_engine.blocks import (
    COMMENT_BEGIN,
    COMMENT_END,
    END,
    QUOTE_BEGIN,
    QUOTE_END,
    begin_line,
)
from annotation_engine.blocks.grammar import normalize_block_text
from annotation_engine.blocks.identity import resolve_id
from annotation_engine.blocks.models import AnnotationPayload
from annotation_engine.blocks.scanner import evaluate, scan
from annotation_engine.errors import RenderError
from annotation_engine.render.templates import DEFAULT_TEMPLATE

MARKERS = {
    "end": END,
    "quote_begin": QUOTE_BEGIN,
    "quote_end": QUOTE_END,
    "comment_begin": COMMENT_BEGIN,
    "comment_end": COMMENT_END,
}

DEFAULT_LINK_SCHEME = "annot://open"


class RenderMode(str, Enum):
    APPEND = "append"
    REPLACE = "replace"


@dataclass
class RenderContext:
    """Presentation inputs that are not part of the record itself.

    ``mode`` controls the trailing line break: APPEND ends the block with
    exactly one, REPLACE with none (so in-place updates never grow blank
    lines). ``line_prefix`` is re-applied to every rendered line when the
    block sits inside an outer blockquote or indentation.
    """

    mode: RenderMode = RenderMode.APPEND
    header: str | None = None
    line_prefix: str = ""
    document: str | None = None
    front_matter: dict[str, Any] = field(default_factory=dict)
    callout: str = "quote"
    link_scheme: str = DEFAULT_LINK_SCHEME


class TemplateRenderer(Protocol):
    def render(self, context: dict[str, Any]) -> str: ...


# ── Template filters ──────────────────────────────────────────────

def blockquote(text: str, prefix: str = "> ") -> str:
    """Prefix every line with ``prefix``; empty lines become a bare ``>``."""
    lines = (text or "").rstrip().split("\n")
    return "\n".join(prefix + line if line else prefix.rstrip() for line in lines)


def nested_blockquote(text: str, first: str = "> > ", rest: str = "> ") -> str:
    """Like ``blockquote`` but with a deeper prefix on the first line."""
    lines = (text or "").rstrip().split("\n")
    out = []
    for idx, line in enumerate(lines):
        prefix = first if idx == 0 else rest
        out.append(prefix + line if line else prefix.rstrip())
    return "\n".join(out)


class JinjaRenderer:
    """Render blocks from a Jinja2 template string."""

    def __init__(self, source: str = DEFAULT_TEMPLATE):
        self.env = Environment(
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=False,
            undefined=StrictUndefined,
        )
        self.env.filters["blockquote"] = blockquote
        self.env.filters["nested_blockquote"] = nested_blockquote
        try:
            self.template = self.env.from_string(source)
        except TemplateError as e:
            raise RenderError(f"Template syntax error: {e}") from e

    @classmethod
    def from_file(cls, path: Path | str) -> JinjaRenderer:
        return cls(Path(path).read_text(encoding="utf-8"))

    def render(self, context: dict[str, Any]) -> str:
        try:
            return self.template.render(**context)
        except TemplateError as e:
            raise RenderError(f"Template evaluation failed: {e}") from e
        except (TypeError, ValueError, LookupError, AttributeError, ArithmeticError) as e:
            raise RenderError(f"Template evaluation failed: {type(e).__name__}: {e}") from e


@lru_cache(maxsize=1)
def default_renderer() -> JinjaRenderer:
    return JinjaRenderer(DEFAULT_TEMPLATE)


# ── Derived presentation values ───────────────────────────────────

def display_label(payload: AnnotationPayload) -> str:
    """Human-readable label, e.g. ``Highlight · p. 12``."""
    kind = (payload.type or "annotation").replace("-", " ").replace("_", " ").capitalize()
    if payload.page_label:
        return f"{kind} · p. {payload.page_label}"
    return kind


def navigation_link(record_id: str, payload: AnnotationPayload, context: RenderContext) -> str:
    """Encoded link that asks the reader to open the annotation."""
    params = {}
    if context.document:
        params["document"] = context.document
    params["annotation"] = record_id
    if payload.page_label:
        params["page"] = payload.page_label
    return f"{context.link_scheme}?{urlencode(params, quote_via=url_quote)}"


def block_anchor(record_id: str) -> str:
    """Sanitize an id for use as an Obsidian ``^block`` anchor."""
    return re.sub(r"[^A-Za-z0-9-]+", "-", record_id).strip("-") or "annotation"


def inline_payload_json(payload: AnnotationPayload) -> str:
    return json.dumps(payload.to_dict(), ensure_ascii=False)


def build_context(
    payload: AnnotationPayload,
    quote: str,
    comment: str,
    context: RenderContext,
) -> dict[str, Any]:
    """Assemble the template context for one record."""
    inline = payload.to_dict()
    record_id = resolve_id(inline, normalize_block_text(quote), normalize_block_text(comment))
    return {
        "begin": begin_line(inline_payload_json(payload)),
        "markers": MARKERS,
        "payload": inline,
        "annotation": {**inline, "id": record_id, "text": quote, "comment": comment},
        "id": record_id,
        "block_id": block_anchor(record_id),
        "header": context.header,
        "quote": quote,
        "comment": comment,
        "label": display_label(payload),
        "link": navigation_link(record_id, payload, context),
        "type": payload.type,
        "color": payload.color,
        "page_label": payload.page_label,
        "tags": list(payload.tags or []),
        "callout": context.callout,
        "front_matter": context.front_matter,
        "document": context.document,
    }


def _apply_prefix(block: str, prefix: str) -> str:
    return "\n".join(prefix + line if line else prefix.rstrip() for line in block.split("\n"))


def _check_block(block: str, payload: AnnotationPayload, quote: str, comment: str) -> None:
    """Re-scan a rendered block and make sure it reads back as its inputs."""
    result = scan(block)
    if len(result.spans) != 1:
        raise RenderError(f"Template must produce exactly one annotation block, got {len(result.spans)}")
    record, defects = evaluate(block, result.spans[0])
    if record is None:
        reason = next((d for d in defects if d.fatal), None)
        detail = f"{reason.kind.value}: {reason.message}" if reason else "malformed block"
        raise RenderError(f"Template produced a malformed annotation block ({detail})")
    stray = result.stray + defects
    if stray:
        raise RenderError(f"Template produced a stray marker ({stray[0].message})")

    lost = []
    if record.payload.to_dict() != json.loads(inline_payload_json(payload)):
        lost.append("payload")
    if record.quote != normalize_block_text(quote):
        lost.append("quote")
    if record.comment != normalize_block_text(comment):
        lost.append("comment")
    if lost:
        raise RenderError(f"Rendered block does not read back its {', '.join(lost)}")


def render_block(
    payload: AnnotationPayload | dict[str, Any],
    quote: str,
    comment: str,
    context: RenderContext | None = None,
    renderer: TemplateRenderer | None = None,
) -> str:
    """Render one canonical annotation block.

    Args:
        payload: Source fields; ``text``/``comment`` keys are never inlined.
        quote: Quoted text for the quote sub-block.
        comment: Comment text for the comment sub-block.
        context: Presentation inputs and output mode.
        renderer: Template strategy. Defaults to the built-in Jinja2 template.

    Returns:
        The block text, ending in one line break (APPEND) or none (REPLACE).

    Raises:
        RenderError: If the template fails or yields a malformed block.
    """
    context = context or RenderContext()
    renderer = renderer or default_renderer()
    if not isinstance(payload, AnnotationPayload):
        payload = AnnotationPayload.from_dict(payload)

    output = renderer.render(build_context(payload, quote or "", comment or "", context))
    if not isinstance(output, str):
        raise RenderError(f"Renderer returned {type(output).__name__}, expected str")

    block = output.strip()
    if context.line_prefix:
        block = _apply_prefix(block, context.line_prefix)
    _check_block(block, payload, quote or "", comment or "")

    if RenderMode(context.mode) is RenderMode.APPEND:
        return block + "\n"
    return block
