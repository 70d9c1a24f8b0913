"""Insertion strategies and whitespace normalization at splice boundaries.

Every strategy leaves exactly one blank line between a new block and
the content on either side of it, whatever spacing was there before.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any

import yaml

from annotation_engine.blocks.grammar import MarkerKind, find_marker

_FRONT_MATTER_RE = re.compile(r"\A---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)", re.MULTILINE | re.DOTALL)
_TRAILING_BLANK_RE = re.compile(r"(?:\r?\n[ \t]*)+\Z")
_LEADING_BLANK_RE = re.compile(r"\A(?:[ \t]*\r?\n)+")


class InsertStrategy(str, Enum):
    DOCUMENT_END = "document-end"
    DOCUMENT_START = "document-start"
    AFTER_FRONT_MATTER = "after-front-matter"
    WITHIN_BLOCKS = "within-blocks"


def trim_trailing_blank_lines(text: str) -> str:
    """Drop blank lines (and the final line break) from the end of ``text``."""
    if not text.strip():
        return ""
    return _TRAILING_BLANK_RE.sub("", text)


def trim_leading_blank_lines(text: str) -> str:
    if not text.strip():
        return ""
    return _LEADING_BLANK_RE.sub("", text)


def front_matter_end(text: str) -> int | None:
    """Offset just past the closing ``---`` line of leading front matter."""
    m = _FRONT_MATTER_RE.match(text)
    return m.end() if m else None


def read_front_matter(text: str) -> dict[str, Any]:
    """Parse leading YAML front matter; malformed or absent front matter gives ``{}``."""
    m = _FRONT_MATTER_RE.match(text)
    if not m:
        return {}
    try:
        data = yaml.safe_load(m.group(1))
    except yaml.YAMLError:
        return {}
    return data if isinstance(data, dict) else {}


def _join(head: str, block: str, tail: str) -> str:
    """Place ``block`` between ``head`` and ``tail`` with one blank line on each side.

    ``block`` ends with exactly one line break.
    """
    head = trim_trailing_blank_lines(head)
    tail = trim_leading_blank_lines(tail)
    out = head + "\n\n" + block if head else block
    if tail:
        out += "\n" + tail
    return out


def place_at_end(text: str, block: str) -> str:
    return _join(text, block, "")


def place_at_start(text: str, block: str) -> str:
    return _join("", block, text)


def place_after_front_matter(text: str, block: str) -> str:
    end = front_matter_end(text)
    if end is None:
        return place_at_start(text, block)
    head = text[:end]
    if not head.endswith("\n"):
        head += "\n"
    tail = trim_leading_blank_lines(text[end:])
    out = head + "\n" + block
    return out + "\n" + tail if tail else out


def place_within_blocks(text: str, block: str) -> str:
    """Splice ``block`` just before the blocks-end sentinel, or append."""
    sentinel = find_marker(text, MarkerKind.BLOCKS_END)
    if sentinel is None:
        return place_at_end(text, block)
    return _join(text[:sentinel.start], block, text[sentinel.start:])


PLACEMENTS = {
    InsertStrategy.DOCUMENT_END: place_at_end,
    InsertStrategy.DOCUMENT_START: place_at_start,
    InsertStrategy.AFTER_FRONT_MATTER: place_after_front_matter,
    InsertStrategy.WITHIN_BLOCKS: place_within_blocks,
}
