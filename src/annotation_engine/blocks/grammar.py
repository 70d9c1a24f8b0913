"""Line-level grammar for annotation markers.

Lines inside a record may carry a blockquote or indentation prefix
(any run of ``>``, tabs and spaces). Markers are recognized on the
line with that prefix removed, and may end with an Obsidian block
anchor such as ``^ABCD1234``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterator

from annotation_engine.blocks import (
    BEGIN_TOKEN,
    BLOCKS_BEGIN_TOKEN,
    BLOCKS_END_TOKEN,
    COMMENT_BEGIN_TOKEN,
    COMMENT_END_TOKEN,
    END_TOKEN,
    QUOTE_BEGIN_TOKEN,
    QUOTE_END_TOKEN,
)

_PREFIX_RE = re.compile(r"^[>\t ]*")
_ANCHOR = r"(?:\s+\^[A-Za-z0-9-]+)?"

# Payload runs up to the last %% on the line
_BEGIN_RE = re.compile(
    r"^%%\s*" + re.escape(BEGIN_TOKEN)
    + r"(?:\s+(?P<payload>.*?))?\s*%%" + _ANCHOR + r"\s*$"
)


class MarkerKind(Enum):
    BEGIN = "begin"
    END = "end"
    QUOTE_BEGIN = "quote-begin"
    QUOTE_END = "quote-end"
    COMMENT_BEGIN = "comment-begin"
    COMMENT_END = "comment-end"
    BLOCKS_BEGIN = "blocks-begin"
    BLOCKS_END = "blocks-end"


def _simple(token: str) -> re.Pattern[str]:
    return re.compile(r"^%%\s*" + re.escape(token) + r"\s*%%" + _ANCHOR + r"\s*$")


_SIMPLE_MARKERS = {
    MarkerKind.END: _simple(END_TOKEN),
    MarkerKind.QUOTE_BEGIN: _simple(QUOTE_BEGIN_TOKEN),
    MarkerKind.QUOTE_END: _simple(QUOTE_END_TOKEN),
    MarkerKind.COMMENT_BEGIN: _simple(COMMENT_BEGIN_TOKEN),
    MarkerKind.COMMENT_END: _simple(COMMENT_END_TOKEN),
    MarkerKind.BLOCKS_BEGIN: _simple(BLOCKS_BEGIN_TOKEN),
    MarkerKind.BLOCKS_END: _simple(BLOCKS_END_TOKEN),
}


@dataclass(frozen=True)
class Marker:
    """A recognized marker line."""

    kind: MarkerKind
    payload: str = ""


@dataclass(frozen=True)
class Line:
    """One physical line of a document.

    ``end`` excludes the line break; ``next`` is the offset of the
    following line (or ``len(text)`` for the last line).
    """

    start: int
    end: int
    next: int
    text: str


def iter_lines(text: str) -> Iterator[Line]:
    """Yield every line of ``text`` with its offsets."""
    pos = 0
    length = len(text)
    while pos < length:
        newline = text.find("\n", pos)
        if newline == -1:
            stop = nxt = length
        else:
            stop, nxt = newline, newline + 1
            if stop > pos and text[stop - 1] == "\r":
                stop -= 1
        yield Line(start=pos, end=stop, next=nxt, text=text[pos:stop])
        pos = nxt


def line_prefix(line: str) -> str:
    """Return the blockquote/indentation prefix of a line."""
    return _PREFIX_RE.match(line).group(0)


def strip_prefix(line: str) -> str:
    """Remove the blockquote/indentation prefix of a line."""
    return line[len(line_prefix(line)):]


def match_marker(line: str) -> Marker | None:
    """Recognize a marker line, tolerating prefixes and trailing anchors."""
    body = strip_prefix(line).rstrip()
    if not body.startswith("%%"):
        return None
    m = _BEGIN_RE.match(body)
    if m:
        return Marker(MarkerKind.BEGIN, (m.group("payload") or "").strip())
    for kind, pattern in _SIMPLE_MARKERS.items():
        if pattern.match(body):
            return Marker(kind)
    return None


def find_marker(text: str, kind: MarkerKind) -> Line | None:
    """Return the first line of ``text`` holding a marker of ``kind``."""
    for line in iter_lines(text):
        marker = match_marker(line.text)
        if marker and marker.kind is kind:
            return line
    return None


def normalize_block_text(text: str) -> str:
    """Canonical form of quote/comment text as the scanner reads it back."""
    lines = text.replace("\r\n", "\n").split("\n")
    return "\n".join(strip_prefix(line) for line in lines).strip()
