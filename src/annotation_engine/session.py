"""Per-document sessions that serialize mutations.

The core operations are pure functions of the text they are given. A
``DocumentSession`` adds the storage round-trip and a FIFO lock owned by
that one document: each mutation reads the current text, applies the
edit, and writes the result before the next mutation may start. Reads
(``parse``/``validate``) do not wait on the lock.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable, Protocol, TypeVar

from annotation_engine.blocks.models import AnnotationRecord, Diagnostic, NotFound, RecordInput, RecordPatch
from annotation_engine.blocks.scanner import parse
from annotation_engine.config import EngineConfig
from annotation_engine.editor.sections import insert, remove, update
from annotation_engine.editor.strategies import InsertStrategy
from annotation_engine.render.generator import RenderContext, TemplateRenderer
from annotation_engine.validator import validate

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DocumentStore(Protocol):
    async def read(self) -> str: ...

    async def write(self, text: str) -> None: ...


def _read_file(path: Path) -> str:
    if not path.exists():
        return ""
    with open(path, encoding="utf-8", newline="") as f:
        return f.read()


def _write_file(path: Path, text: str) -> None:
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(text)


class FileDocumentStore:
    """A markdown file on disk. Line endings are preserved as-is."""

    def __init__(self, path: Path | str):
        self.path = Path(path)

    async def read(self) -> str:
        return await asyncio.to_thread(_read_file, self.path)

    async def write(self, text: str) -> None:
        await asyncio.to_thread(_write_file, self.path, text)


class MemoryDocumentStore:
    """An in-memory document, mostly for tests and previews."""

    def __init__(self, text: str = ""):
        self.text = text
        self.writes = 0

    async def read(self) -> str:
        return self.text

    async def write(self, text: str) -> None:
        self.text = text
        self.writes += 1


class DocumentSession:
    """Serialized access to one document.

    Mutations run one at a time in submission order. Once submitted, a
    mutation always runs to completion: cancelling the caller only stops
    it waiting for the result, and the lock is held until the write
    has landed.
    """

    def __init__(
        self,
        store: DocumentStore,
        config: EngineConfig | None = None,
        renderer: TemplateRenderer | None = None,
        document: str | None = None,
    ):
        self.store = store
        self.config = config or EngineConfig()
        self.renderer = renderer or self.config.renderer()
        self.document = document
        self._lock = asyncio.Lock()
        self._pending: set[asyncio.Task] = set()

    def _context(self) -> RenderContext:
        return self.config.render_context(self.document)

    async def _commit(self, old: str, new: str) -> None:
        if new != old:
            await self.store.write(new)

    async def _serialized(self, edit: Callable[[str], T]) -> T:
        """Read, apply ``edit`` and write back under the document lock.

        ``edit`` maps the current text to a result: new text, ``NotFound``,
        or ``(new_text, value)`` when the caller wants something else back.
        """

        async def run():
            async with self._lock:
                text = await self.store.read()
                result = edit(text)
                new = result[0] if isinstance(result, tuple) else result
                if isinstance(new, str):
                    await self._commit(text, new)
                return result

        task = asyncio.ensure_future(run())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return await asyncio.shield(task)

    # ── reads ─────────────────────────────────────────────────────

    async def read(self) -> str:
        return await self.store.read()

    async def parse(self) -> dict[str, AnnotationRecord]:
        return parse(await self.store.read())

    async def validate(self) -> list[Diagnostic]:
        return validate(await self.store.read())

    # ── mutations ─────────────────────────────────────────────────

    async def insert(
        self,
        record: RecordInput,
        strategy: InsertStrategy | str | None = None,
    ) -> str:
        return await self._serialized(lambda text: insert(
            text, record, strategy or self.config.insert_strategy,
            self._context(), self.renderer,
        ))

    async def update(self, record_id: str, patch: RecordPatch) -> str | NotFound:
        return await self._serialized(
            lambda text: update(text, record_id, patch, self._context(), self.renderer)
        )

    async def remove(self, record_id: str) -> str | NotFound:
        return await self._serialized(lambda text: remove(text, record_id))

    async def upsert(
        self,
        record: RecordInput,
        strategy: InsertStrategy | str | None = None,
    ) -> str:
        """Update the record with ``record.id`` if present, else insert it.

        Returns:
            "updated" or "created".
        """

        def edit(text: str) -> tuple[str, str]:
            record_id = record.id
            if record_id in parse(text):
                patch = RecordPatch(
                    payload=record.payload.to_dict(),
                    quote=record.quote,
                    comment=record.comment,
                    header=record.header,
                )
                return update(text, record_id, patch, self._context(), self.renderer), "updated"
            new = insert(
                text, record, strategy or self.config.insert_strategy,
                self._context(), self.renderer,
            )
            return new, "created"

        _, action = await self._serialized(edit)
        return action


class SessionRegistry:
    """Hands out one session per document path.

    The registry belongs to whoever opens documents (a reader view, a
    CLI run); there is no module-level instance.
    """

    def __init__(self, config: EngineConfig | None = None):
        self.config = config or EngineConfig()
        self._sessions: dict[Path, DocumentSession] = {}

    def open(self, path: Path | str) -> DocumentSession:
        key = Path(path).resolve()
        session = self._sessions.get(key)
        if session is None:
            session = DocumentSession(FileDocumentStore(key), self.config, document=key.name)
            self._sessions[key] = session
            logger.debug("Opened annotation session for %s", key)
        return session

    def close(self, path: Path | str) -> None:
        self._sessions.pop(Path(path).resolve(), None)

    def __len__(self) -> int:
        return len(self._sessions)
