"""Reader sync — apply annotation events from the reader to a document.

The reader reports annotations it has saved or deleted. Saved
annotations are upserted (updated in place when their id is already in
the document, appended otherwise); deleted ids are removed. Every event
goes through the document's session, so events are applied strictly in
the order they arrive.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from annotation_engine.blocks.models import NotFound, RecordInput
from annotation_engine.blocks.scanner import parse
from annotation_engine.editor.strategies import InsertStrategy
from annotation_engine.errors import AnnotationError
from annotation_engine.session import DocumentSession

logger = logging.getLogger(__name__)


def _empty_result() -> dict[str, Any]:
    return {
        "updated": [],
        "created": [],
        "removed": [],
        "missing": [],
        "errors": [],
    }


async def apply_saved(
    session: DocumentSession,
    annotations: Iterable[dict[str, Any]],
    strategy: InsertStrategy | str | None = None,
) -> dict[str, Any]:
    """Upsert reader annotations (``text``/``comment`` inline) into the document."""
    result = _empty_result()
    for annotation in annotations:
        record = RecordInput.from_viewer(annotation)
        try:
            action = await session.upsert(record, strategy)
        except AnnotationError as e:
            logger.warning("Could not save annotation %s: %s", record.id, e)
            result["errors"].append({"id": record.id, "error": str(e)})
            continue
        result[action].append(record.id)
    return result


async def apply_deleted(
    session: DocumentSession,
    ids: str | Iterable[str],
) -> dict[str, Any]:
    """Remove annotations by id; unknown ids are reported as missing."""
    if isinstance(ids, str):
        ids = [ids]
    result = _empty_result()
    for record_id in ids:
        outcome = await session.remove(record_id)
        if isinstance(outcome, NotFound):
            result["missing"].append(record_id)
        else:
            result["removed"].append(record_id)
    return result


async def handle_event(session: DocumentSession, event: dict[str, Any]) -> dict[str, Any] | None:
    """Dispatch one reader event; events that don't touch annotations return None."""
    kind = event.get("type")
    if kind == "annotationsSaved":
        return await apply_saved(session, event.get("annotations") or [])
    if kind == "annotationsDeleted":
        return await apply_deleted(session, event.get("ids") or [])
    return None


def _sort_key(record) -> tuple:
    sort_index = record.payload.sort_index
    return (sort_index is None, str(sort_index or ""), record.range.start)


def export_annotations(text: str) -> list[dict[str, Any]]:
    """Rebuild reader annotation dicts for every block in ``text``.

    Ordered by the reader's ``sortIndex`` where present, then by position
    in the document.
    """
    records = sorted(parse(text).values(), key=_sort_key)
    return [r.to_viewer() for r in records]
