"""Command-line interface for annotation blocks.

Usage:
    annot list <file>
    annot validate <file>
    annot add <file> --annotation <json|-> [--strategy S] [--header H] [--dry-run]
    annot update <file> <id> [--quote Q] [--comment C] [--header H] [--set KEY=VALUE ...] [--dry-run]
    annot remove <file> <id> [--dry-run]
    annot export <file> [--output <json>]
    annot sync <file> [--saved <json|->] [--deleted ID ...] [--dry-run]
"""

from __future__ import annotations

import argparse
import logging
import sys

import yaml

from annotation_engine.cli.annotations import (
    cmd_add,
    cmd_export,
    cmd_list,
    cmd_remove,
    cmd_sync,
    cmd_update,
    cmd_validate,
)
from annotation_engine.editor.strategies import InsertStrategy
from annotation_engine.errors import AnnotationError

_STRATEGIES = [s.value for s in InsertStrategy]


def _add_dry_run(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--dry-run", action="store_true",
        help="Report changes without writing",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="annot",
        description="Manage annotation blocks embedded in markdown documents",
    )
    parser.add_argument(
        "--config", default=None,
        help="Path to annotation-engine.yaml",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )
    sub = parser.add_subparsers(dest="command")

    ls = sub.add_parser("list", help="List annotations in a document")
    ls.add_argument("file")

    val = sub.add_parser("validate", help="Report malformed annotation blocks")
    val.add_argument("file")

    add = sub.add_parser("add", help="Insert an annotation")
    add.add_argument("file")
    add.add_argument(
        "--annotation", required=True,
        help="Reader annotation JSON file ('-' for stdin)",
    )
    add.add_argument("--strategy", choices=_STRATEGIES, default=None)
    add.add_argument("--header", default=None)
    _add_dry_run(add)

    upd = sub.add_parser("update", help="Update an annotation in place")
    upd.add_argument("file")
    upd.add_argument("id")
    upd.add_argument("--quote", default=None)
    upd.add_argument("--comment", default=None)
    upd.add_argument("--header", default=None)
    upd.add_argument(
        "--set", action="append", default=[], metavar="KEY=VALUE",
        help="Set a payload field (VALUE is parsed as JSON when possible)",
    )
    _add_dry_run(upd)

    rm = sub.add_parser("remove", help="Remove an annotation")
    rm.add_argument("file")
    rm.add_argument("id")
    _add_dry_run(rm)

    exp = sub.add_parser("export", help="Export annotations as reader JSON")
    exp.add_argument("file")
    exp.add_argument("--output", default=None)

    syn = sub.add_parser("sync", help="Apply reader saves and deletions")
    syn.add_argument("file")
    syn.add_argument("--saved", default=None, help="Saved annotations JSON ('-' for stdin)")
    syn.add_argument("--deleted", nargs="*", default=[], metavar="ID")
    _add_dry_run(syn)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    dispatch = {
        "list": cmd_list,
        "validate": cmd_validate,
        "add": cmd_add,
        "update": cmd_update,
        "remove": cmd_remove,
        "export": cmd_export,
        "sync": cmd_sync,
    }

    try:
        return dispatch[args.command](args)
    except (AnnotationError, ValueError, OSError, yaml.YAMLError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
