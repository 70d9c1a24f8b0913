"""Section editor — insert, update and remove annotation blocks."""

from annotation_engine.editor.sections import insert, remove, update
from annotation_engine.editor.strategies import InsertStrategy

__all__ = ["InsertStrategy", "insert", "remove", "update"]
