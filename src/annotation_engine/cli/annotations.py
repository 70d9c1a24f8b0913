"""Annotation CLI commands."""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from annotation_engine.blocks.models import NotFound, RecordInput, RecordPatch
from annotation_engine.config import EngineConfig, load_config
from annotation_engine.session import DocumentSession, FileDocumentStore, MemoryDocumentStore


def _config(args: argparse.Namespace) -> EngineConfig:
    return load_config(getattr(args, "config", None))


def _open_session(args: argparse.Namespace) -> DocumentSession:
    """Session on the target file; dry runs edit an in-memory copy."""
    path = Path(args.file)
    config = _config(args)
    if getattr(args, "dry_run", False):
        store = MemoryDocumentStore(asyncio.run(FileDocumentStore(path).read()))
    else:
        store = FileDocumentStore(path)
    return DocumentSession(store, config, document=path.name)


def _read_json(source: str):
    if source == "-":
        return json.load(sys.stdin)
    with open(source, encoding="utf-8") as f:
        return json.load(f)


def _parse_assignment(raw: str) -> tuple[str, object]:
    key, sep, value = raw.partition("=")
    if not sep or not key:
        raise ValueError(f"Expected KEY=VALUE, got '{raw}'")
    try:
        return key, json.loads(value)
    except json.JSONDecodeError:
        return key, value


def _finish(args: argparse.Namespace, session: DocumentSession) -> None:
    if getattr(args, "dry_run", False):
        print("\n[DRY RUN] No files were modified.")
        if args.verbose:
            print(session.store.text)


def cmd_list(args: argparse.Namespace) -> int:
    from annotation_engine.blocks.scanner import parse

    text = Path(args.file).read_text(encoding="utf-8")
    records = parse(text)
    if not records:
        print("  No annotations found.")
        return 0

    print(f"  {'ID':<12} {'Type':<12} {'Page':<6} Quote")
    print(f"  {'─' * 70}")
    for record in records.values():
        quote = record.quote.replace("\n", " ")
        print(
            f"  {record.id:<12} {(record.payload.type or '-'):<12} "
            f"{(record.payload.page_label or '-'):<6} {quote[:45]}"
        )
    print(f"\n  {len(records)} annotation(s)")
    return 0


def cmd_validate(args: argparse.Namespace) -> int:
    from annotation_engine.validator import validate_document

    text = Path(args.file).read_text(encoding="utf-8")
    result = validate_document(text)
    print(result.summary())
    return 0 if result.passed else 1


def cmd_add(args: argparse.Namespace) -> int:
    annotation = _read_json(args.annotation)
    record = RecordInput.from_viewer(annotation)
    if args.header:
        record.header = args.header
    session = _open_session(args)
    asyncio.run(session.insert(record, args.strategy))
    print(f"Added annotation {record.id}")
    _finish(args, session)
    return 0


def cmd_update(args: argparse.Namespace) -> int:
    payload = dict(_parse_assignment(raw) for raw in args.set) if args.set else None
    patch = RecordPatch(
        payload=payload,
        quote=args.quote,
        comment=args.comment,
        header=args.header,
    )
    session = _open_session(args)
    result = asyncio.run(session.update(args.id, patch))
    if isinstance(result, NotFound):
        print(f"No annotation with id '{args.id}'", file=sys.stderr)
        return 1
    print(f"Updated annotation {args.id}")
    _finish(args, session)
    return 0


def cmd_remove(args: argparse.Namespace) -> int:
    session = _open_session(args)
    result = asyncio.run(session.remove(args.id))
    if isinstance(result, NotFound):
        print(f"No annotation with id '{args.id}'", file=sys.stderr)
        return 1
    print(f"Removed annotation {args.id}")
    _finish(args, session)
    return 0


def cmd_export(args: argparse.Namespace) -> int:
    from annotation_engine.sync import export_annotations

    text = Path(args.file).read_text(encoding="utf-8")
    data = export_annotations(text)
    out = json.dumps(data, indent=2, ensure_ascii=False)
    if args.output:
        Path(args.output).write_text(out + "\n", encoding="utf-8")
        print(f"Exported {len(data)} annotation(s) to {args.output}")
    else:
        print(out)
    return 0


def cmd_sync(args: argparse.Namespace) -> int:
    from annotation_engine.sync import apply_deleted, apply_saved

    session = _open_session(args)
    saved = _read_json(args.saved) if args.saved else []
    if isinstance(saved, dict):
        saved = saved.get("annotations", [])

    async def run() -> list[dict]:
        results = []
        if saved:
            results.append(await apply_saved(session, saved))
        if args.deleted:
            results.append(await apply_deleted(session, args.deleted))
        return results

    results = asyncio.run(run())
    totals = {key: [] for key in ("updated", "created", "removed", "missing", "errors")}
    for r in results:
        for key in totals:
            totals[key].extend(r[key])

    print("Annotation Sync Results")
    print("─" * 40)
    print(f"  Updated: {len(totals['updated'])}")
    print(f"  Created: {len(totals['created'])}")
    print(f"  Removed: {len(totals['removed'])}")
    print(f"  Missing: {len(totals['missing'])}")
    if totals["errors"]:
        print(f"  Errors:  {len(totals['errors'])}")
        for e in totals["errors"]:
            print(f"    - {e['id']}: {e['error']}")

    _finish(args, session)
    return 1 if totals["errors"] else 0
