"""Tests for inserting, updating and removing annotation blocks."""

import pytest

from annotation_engine.blocks import BLOCKS_BEGIN, BLOCKS_END
from annotation_engine.blocks.models import NotFound, RecordInput, RecordPatch
from annotation_engine.blocks.scanner import parse
from annotation_engine.editor import InsertStrategy, insert, remove, update
from annotation_engine.errors import RenderError
from annotation_engine.render.generator import JinjaRenderer, RenderContext, RenderMode, render_block

DOC = "# Title\n\nProse.\n"


def _squash(text):
    return " ".join(text.split())


@pytest.fixture
def block(highlight_input):
    return render_block(highlight_input.payload, highlight_input.quote, highlight_input.comment)


class TestInsert:
    def test_into_empty_document(self, highlight_input, block):
        assert insert("", highlight_input) == block

    def test_document_end(self, highlight_input, block):
        assert insert(DOC, highlight_input) == "# Title\n\nProse.\n\n" + block

    def test_document_end_collapses_trailing_blank_lines(self, highlight_input, block):
        assert insert("# Title\n\n\n\n", highlight_input) == "# Title\n\n" + block

    def test_document_start(self, highlight_input, block):
        result = insert(DOC, highlight_input, InsertStrategy.DOCUMENT_START)
        assert result == block + "\n" + DOC

    def test_after_front_matter(self, highlight_input, block):
        text = "---\ntitle: Paper\n---\n# Title\n"
        result = insert(text, highlight_input, "after-front-matter")
        assert result == "---\ntitle: Paper\n---\n\n" + block + "\n# Title\n"

    def test_after_front_matter_without_front_matter(self, highlight_input, block):
        result = insert(DOC, highlight_input, InsertStrategy.AFTER_FRONT_MATTER)
        assert result == block + "\n" + DOC

    def test_within_blocks(self, highlight_input, block):
        text = f"# Title\n\n{BLOCKS_BEGIN}\n{BLOCKS_END}\n\nAfter\n"
        result = insert(text, highlight_input, InsertStrategy.WITHIN_BLOCKS)
        assert result == f"# Title\n\n{BLOCKS_BEGIN}\n\n" + block + f"\n{BLOCKS_END}\n\nAfter\n"

    def test_within_blocks_without_sentinel_appends(self, highlight_input, block):
        result = insert(DOC, highlight_input, InsertStrategy.WITHIN_BLOCKS)
        assert result == "# Title\n\nProse.\n\n" + block

    def test_unknown_strategy(self, highlight_input):
        with pytest.raises(ValueError):
            insert(DOC, highlight_input, "sideways")

    def test_record_header(self):
        record = RecordInput(payload={"id": "H1"}, quote="q", comment="c", header="Custom")
        result = insert(DOC, record)
        assert "> Custom\n" in result
        assert parse(result)["H1"].header == "Custom"

    def test_front_matter_reaches_template(self):
        renderer = JinjaRenderer(
            "{{ begin }}\n{{ front_matter.title }}\n"
            "{{ markers.quote_begin }}\n{{ quote }}\n{{ markers.quote_end }}\n"
            "{{ markers.comment_begin }}\n{{ comment }}\n{{ markers.comment_end }}\n"
            "{{ markers.end }}"
        )
        text = "---\ntitle: Paper\n---\n"
        result = insert(text, RecordInput(payload={"id": "F1"}, quote="q"), renderer=renderer)
        assert parse(result)["F1"].header == "Paper"

    def test_render_failure_raises(self, highlight_input):
        with pytest.raises(RenderError):
            insert(DOC, highlight_input, renderer=JinjaRenderer("{{ begin }}"))

    def test_existing_records_survive(self, sample_text, highlight_input):
        result = insert(sample_text, highlight_input)
        assert set(parse(result)) == set(parse(sample_text)) | {"ABCD1234"}


class TestUpdate:
    def test_neighbour_untouched(self, sample_text):
        before = parse(sample_text)
        second_id = next(k for k in before if k != "HL000001")
        result = update(sample_text, "HL000001", RecordPatch(comment="Revised."))
        after = parse(result)
        assert after["HL000001"].comment == "Revised."
        assert after[second_id].quote == before[second_id].quote
        assert after[second_id].comment == before[second_id].comment

    def test_surrounding_text_untouched(self, sample_text):
        target = parse(sample_text)["HL000001"]
        result = update(sample_text, "HL000001", RecordPatch(quote="New quote"))
        assert result.startswith(sample_text[:target.range.start])
        assert result.endswith(sample_text[target.range.end:])

    def test_keeps_unpatched_fields(self, sample_text):
        result = update(sample_text, "HL000001", RecordPatch(payload={"color": "#ff6666"}))
        record = parse(result)["HL000001"]
        assert record.payload.color == "#ff6666"
        assert record.payload.extra["customField"] == {"x": 1}
        assert record.payload.tags == ["method"]
        assert record.quote == "The Transformer follows this overall architecture\nusing stacked self-attention."
        assert record.header == "[!quote] Highlight · p. 3"

    def test_header_patch(self, sample_text):
        result = update(sample_text, "HL000001", RecordPatch(header="Rewritten"))
        assert parse(result)["HL000001"].header == "Rewritten"

    def test_idempotent(self, sample_text):
        once = update(sample_text, "HL000001", RecordPatch())
        twice = update(once, "HL000001", RecordPatch())
        assert once == twice

    def test_derived_id_is_pinned(self, sample_text):
        derived = next(k for k in parse(sample_text) if k != "HL000001")
        result = update(sample_text, derived, RecordPatch(comment="Different comment"))
        record = parse(result)[derived]
        assert record.comment == "Different comment"
        assert record.payload.id == derived

    def test_derived_header_follows_payload(self):
        record = RecordInput(payload={"id": "X1", "type": "highlight", "pageLabel": "12"}, quote="q")
        text = insert("", record)
        assert parse(text)["X1"].header == "[!quote] Highlight · p. 12"
        result = update(text, "X1", RecordPatch(payload={"type": "underline", "pageLabel": "40"}))
        assert parse(result)["X1"].header == "[!quote] Underline · p. 40"
        assert "Highlight" not in result

    def test_written_header_survives_payload_change(self):
        record = RecordInput(payload={"id": "X1", "type": "highlight", "pageLabel": "12"}, quote="q", header="My heading")
        text = insert("", record)
        result = update(text, "X1", RecordPatch(payload={"pageLabel": "40"}))
        assert parse(result)["X1"].header == "My heading"

    def test_not_found(self, sample_text):
        result = update(sample_text, "NOPE", RecordPatch(comment="x"))
        assert isinstance(result, NotFound)
        assert result.id == "NOPE"
        assert result.text == sample_text

    def test_no_trailing_blank_line_growth(self, highlight_input):
        text = insert(DOC, highlight_input)
        result = update(text, "ABCD1234", RecordPatch(comment="Changed"))
        assert result.endswith("%% ANNOT-END %%\n")

    def test_nested_block_keeps_prefix(self, highlight_input):
        block = render_block(
            highlight_input.payload, "q", "c",
            RenderContext(line_prefix="> ", mode=RenderMode.REPLACE),
        )
        text = "Intro\n\n> [!note] Outer\n" + block + "\n\nAfter\n"
        result = update(text, "ABCD1234", RecordPatch(comment="changed"))
        record = parse(result)["ABCD1234"]
        assert record.comment == "changed"
        assert all(line.startswith(">") for line in record.raw.split("\n"))
        assert result.startswith("Intro\n\n> [!note] Outer\n> %% ANNOT-BEGIN")
        assert result.endswith("\n\nAfter\n")


class TestRemove:
    def test_remove_first(self, sample_text):
        target = parse(sample_text)["HL000001"]
        result = remove(sample_text, "HL000001")
        expected = (
            sample_text[:target.range.start].rstrip()
            + "\n\n"
            + sample_text[target.range.end:].lstrip()
        )
        assert result == expected
        assert "HL000001" not in parse(result)
        assert len(parse(result)) == 1

    def test_remove_only_block(self, block):
        assert remove(block, "ABCD1234") == ""

    def test_remove_at_end(self, block):
        assert remove("Prose\n\n" + block, "ABCD1234") == "Prose\n"

    def test_not_found(self, sample_text):
        result = remove(sample_text, "NOPE")
        assert isinstance(result, NotFound)
        assert result.text == sample_text

    def test_keeps_indentation_of_neighbours(self, block):
        text = "- item\n\n    code before\n\n" + block + "\n    indented code\n"
        assert remove(text, "ABCD1234") == "- item\n\n    code before\n\n    indented code\n"

    def test_only_blank_lines_are_removed(self, block):
        text = "Text\n\n\n   \n" + block + "\n\n\t\nMore\n"
        assert remove(text, "ABCD1234") == "Text\n\nMore\n"

    def test_adjacent_paragraphs_stay_apart(self, block):
        text = "para one\n" + block + "para two\n"
        assert remove(text, "ABCD1234") == "para one\n\npara two\n"

    def test_nested_in_blockquote_keeps_outer_quote(self, highlight_input):
        block = render_block(
            highlight_input.payload, "q", "c",
            RenderContext(line_prefix="> ", mode=RenderMode.REPLACE),
        )
        text = "> [!note] Outer\n> para\n>\n" + block + "\n>\n> more\n\nAfter\n"
        assert remove(text, "ABCD1234") == "> [!note] Outer\n> para\n>\n> more\n\nAfter\n"

    def test_nested_at_end_of_blockquote(self, highlight_input):
        block = render_block(
            highlight_input.payload, "q", "c",
            RenderContext(line_prefix="> ", mode=RenderMode.REPLACE),
        )
        text = "> [!note] Outer\n" + block + "\n\nAfter\n"
        assert remove(text, "ABCD1234") == "> [!note] Outer\n\nAfter\n"


class TestInsertRemoveInverse:
    @pytest.mark.parametrize("strategy", [InsertStrategy.DOCUMENT_END, InsertStrategy.DOCUMENT_START])
    def test_exact_inverse(self, highlight_input, strategy):
        assert remove(insert(DOC, highlight_input, strategy), "ABCD1234") == DOC

    @pytest.mark.parametrize("strategy", list(InsertStrategy))
    def test_inverse_up_to_whitespace(self, highlight_input, strategy):
        text = f"---\ntitle: Paper\n---\n# Title\n\n{BLOCKS_BEGIN}\n{BLOCKS_END}\n\nProse.\n"
        result = remove(insert(text, highlight_input, strategy), "ABCD1234")
        assert _squash(result) == _squash(text)
