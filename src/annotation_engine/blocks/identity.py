"""Deterministic ids for records that carry no explicit id.

The derived id is a 32-bit FNV-1a hash of the canonical payload JSON,
the quote, and the comment, rendered as 8 lowercase hex digits. Editing
the quote or comment changes the derived id; pin an ``id`` in the
payload to keep identity stable.
"""

from __future__ import annotations

import json
from typing import Any

FNV_OFFSET_BASIS = 0x811C9DC5
FNV_PRIME = 0x01000193
SEPARATOR = "\x1f"


def fnv1a_32(data: bytes) -> int:
    h = FNV_OFFSET_BASIS
    for byte in data:
        h ^= byte
        h = (h * FNV_PRIME) & 0xFFFFFFFF
    return h


def canonical_payload(payload: dict[str, Any]) -> str:
    """Serialize a payload so that key order and spacing never matter."""
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def derive_id(payload: dict[str, Any], quote: str, comment: str) -> str:
    """Hash ``payload ⧺ SEP ⧺ quote ⧺ SEP ⧺ comment`` into an 8-hex-digit id."""
    canonical = SEPARATOR.join([canonical_payload(payload), quote, comment])
    return f"{fnv1a_32(canonical.encode('utf-8')):08x}"


def explicit_id(payload: dict[str, Any]) -> str | None:
    """Return the trimmed ``id`` field of a payload, if non-empty."""
    value = payload.get("id")
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def resolve_id(payload: dict[str, Any], quote: str, comment: str) -> str:
    """Use the explicit id when present, otherwise derive one."""
    return explicit_id(payload) or derive_id(payload, quote, comment)
