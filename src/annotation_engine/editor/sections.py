"""Insert, update and remove annotation blocks in document text.

Each operation takes the authoritative document text, re-parses it,
computes a single splice, and returns the complete new text. Nothing is
cached between calls, so ranges from an earlier parse are never reused.
"""

from __future__ import annotations

import logging
import re
from dataclasses import replace

from annotation_engine.blocks.grammar import line_prefix
from annotation_engine.blocks.models import AnnotationRecord, NotFound, RecordInput, RecordPatch
from annotation_engine.blocks.scanner import parse
from annotation_engine.editor.strategies import PLACEMENTS, InsertStrategy, read_front_matter
from annotation_engine.render.generator import (
    RenderContext,
    RenderMode,
    TemplateRenderer,
    render_block,
)

logger = logging.getLogger(__name__)

# Lines that count as blank around a removed block, by nesting
_BLANK_LINE = r"[ \t]*"
_BLANK_QUOTED_LINE = r"[>\t ]*"


def insert(
    text: str,
    record: RecordInput,
    strategy: InsertStrategy | str = InsertStrategy.DOCUMENT_END,
    context: RenderContext | None = None,
    renderer: TemplateRenderer | None = None,
) -> str:
    """Render ``record`` and place it according to ``strategy``.

    Raises:
        RenderError: Before any text is produced, if rendering fails.
        ValueError: If ``strategy`` is not a known strategy name.
    """
    strategy = InsertStrategy(strategy)
    ctx = replace(context or RenderContext(), mode=RenderMode.APPEND)
    if record.header is not None:
        ctx = replace(ctx, header=record.header)
    if not ctx.front_matter:
        ctx = replace(ctx, front_matter=read_front_matter(text))

    block = render_block(record.payload, record.quote, record.comment, ctx, renderer)
    logger.debug("Inserting annotation %s (%s)", record.id, strategy.value)
    return PLACEMENTS[strategy](text, block)


def _derived_header(
    target: AnnotationRecord,
    context: RenderContext,
    renderer: TemplateRenderer | None,
) -> str | None:
    """The header the template produces for ``target`` when none is given."""
    block = render_block(
        target.payload, target.quote, target.comment,
        replace(context, header=None, line_prefix=""), renderer,
    )
    rendered = next(iter(parse(block).values()))
    return rendered.header


def update(
    text: str,
    record_id: str,
    patch: RecordPatch,
    context: RenderContext | None = None,
    renderer: TemplateRenderer | None = None,
) -> str | NotFound:
    """Re-render the record ``record_id`` in place with ``patch`` applied.

    The replacement occupies exactly the old record's range; surrounding
    whitespace is untouched. The located id is pinned into the payload so
    that later quote/comment edits keep the record's identity.

    A header written by hand is carried forward. A header the template
    derived from the old payload (e.g. ``[!quote] Highlight · p. 12``) is
    derived again from the new one.

    Returns:
        The new document text, or ``NotFound`` carrying the unchanged text.
    """
    target = parse(text).get(record_id)
    if target is None:
        logger.debug("Update skipped: no annotation with id %s", record_id)
        return NotFound(record_id, text)

    payload = target.payload.merged(patch.payload) if patch.payload else target.payload
    if payload.explicit_id is None:
        payload = payload.with_id(record_id)
    quote = target.quote if patch.quote is None else patch.quote
    comment = target.comment if patch.comment is None else patch.comment

    ctx = replace(context or RenderContext(), mode=RenderMode.REPLACE)
    if not ctx.line_prefix:
        ctx = replace(ctx, line_prefix=line_prefix(target.raw))
    if not ctx.front_matter:
        ctx = replace(ctx, front_matter=read_front_matter(text))

    header = patch.header
    if header is None and target.header is not None:
        if target.header != _derived_header(target, ctx, renderer):
            header = target.header

    block = render_block(payload, quote, comment, replace(ctx, header=header), renderer)
    start, end = target.range.start, target.range.end
    return text[:start] + block + text[end:]


def _last_line(text: str) -> str:
    return text.rstrip("\r\n").rsplit("\n", 1)[-1]


def remove(text: str, record_id: str) -> str | NotFound:
    """Delete the record ``record_id`` and the blank lines adjacent to it.

    Only whole blank lines go; the indentation of neighbouring content is
    kept. The remaining sides are joined with one blank line. Inside a
    blockquote that blank line keeps the quote marker so the outer quote
    stays in one piece.

    Returns:
        The new document text, or ``NotFound`` carrying the unchanged text.
    """
    target = parse(text).get(record_id)
    if target is None:
        logger.debug("Remove skipped: no annotation with id %s", record_id)
        return NotFound(record_id, text)

    prefix = line_prefix(target.raw)
    blank = _BLANK_QUOTED_LINE if ">" in prefix else _BLANK_LINE

    # The range covers whole lines: text before it ends in a line break
    head = re.sub(rf"(?:^{blank}\r?\n)+\Z", "", text[:target.range.start], flags=re.MULTILINE)
    tail = re.sub(rf"\A\r?\n(?:{blank}\r?\n)*", "", text[target.range.end:])
    if re.fullmatch(blank, tail):
        tail = ""

    if not head:
        return tail
    if not tail:
        return head

    newline = "\r\n" if head.endswith("\r\n") else "\n"
    separator = ""
    if ">" in prefix and _last_line(head).lstrip().startswith(">") and tail.lstrip(" \t").startswith(">"):
        separator = prefix.rstrip()
    return head + separator + newline + tail
