"""Shared test fixtures for annotation-engine."""

from pathlib import Path

import pytest

from annotation_engine.blocks.models import RecordInput

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture
def sample_text():
    return (FIXTURES / "sample-note.md").read_text(encoding="utf-8")


@pytest.fixture
def broken_text():
    return (FIXTURES / "broken-note.md").read_text(encoding="utf-8")


@pytest.fixture
def highlight():
    return {
        "id": "ABCD1234",
        "type": "highlight",
        "color": "#ffd400",
        "pageLabel": "12",
        "text": "The quick brown fox",
        "comment": "Nice",
    }


@pytest.fixture
def highlight_input(highlight):
    return RecordInput.from_viewer(highlight)
