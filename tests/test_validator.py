"""Tests for annotation block validation."""

from annotation_engine.blocks.models import DiagnosticKind
from annotation_engine.blocks.scanner import parse
from annotation_engine.render.generator import render_block
from annotation_engine.validator import ValidationResult, validate, validate_document


class TestValidate:
    def test_clean_document(self, sample_text):
        assert validate(sample_text) == []

    def test_empty_document(self):
        assert validate("") == []

    def test_broken_fixture(self, broken_text):
        kinds = [d.kind for d in validate(broken_text)]
        assert kinds == [
            DiagnosticKind.INVALID_JSON,
            DiagnosticKind.MISSING_COMMENT,
            DiagnosticKind.STRAY_MARKER,
            DiagnosticKind.MISSING_END,
        ]
        assert list(parse(broken_text)) == ["OK000001"]

    def test_missing_end(self):
        text = 'Intro\n\n%% ANNOT-BEGIN {"id": "X"} %%\n> %% ANNOT-QUOTE-BEGIN %%\n> > q\n'
        diagnostics = validate(text)
        assert len(diagnostics) == 1
        assert diagnostics[0].kind is DiagnosticKind.MISSING_END
        assert diagnostics[0].range.start == text.index("%% ANNOT-BEGIN")
        assert parse(text) == {}

    def test_invalid_json_has_hint(self, broken_text):
        diagnostic = next(d for d in validate(broken_text) if d.kind is DiagnosticKind.INVALID_JSON)
        assert "ANNOT-BEGIN" in diagnostic.hint
        assert diagnostic.range.start == broken_text.index('%% ANNOT-BEGIN {"id": "BADJSON1"')
        assert diagnostic.severity == "error"

    def test_payload_not_object(self):
        block = render_block({"id": "A"}, "q", "c")
        text = block.replace('{"id": "A"}', "[1, 2]")
        kinds = [d.kind for d in validate(text)]
        assert kinds == [DiagnosticKind.PAYLOAD_NOT_OBJECT]

    def test_unterminated_quote(self):
        text = (
            '%% ANNOT-BEGIN {"id": "U"} %%\n'
            "%% ANNOT-QUOTE-BEGIN %%\n"
            "never closed\n"
            "%% ANNOT-END %%\n"
        )
        kinds = [d.kind for d in validate(text)]
        assert DiagnosticKind.UNTERMINATED_QUOTE in kinds
        assert DiagnosticKind.MISSING_QUOTE not in kinds

    def test_duplicate_quote_block(self):
        text = render_block({"id": "D"}, "q", "c").replace(
            "> %% ANNOT-COMMENT-BEGIN %%",
            "> %% ANNOT-QUOTE-BEGIN %%\n> again\n> %% ANNOT-QUOTE-END %%\n> %% ANNOT-COMMENT-BEGIN %%",
        )
        kinds = [d.kind for d in validate(text)]
        assert kinds == [DiagnosticKind.DUPLICATE_QUOTE]

    def test_duplicate_id_is_a_warning(self):
        text = render_block({"id": "SAME"}, "first", "c") + "\n" + render_block({"id": "SAME"}, "second", "c")
        diagnostics = validate(text)
        assert [d.kind for d in diagnostics] == [DiagnosticKind.DUPLICATE_ID]
        assert diagnostics[0].severity == "warning"
        assert diagnostics[0].id == "SAME"
        assert diagnostics[0].range.start > 0

    def test_diagnostics_in_document_order(self, broken_text):
        starts = [d.range.start for d in validate(broken_text)]
        assert starts == sorted(starts)


class TestValidationResult:
    def test_passed_with_warnings(self):
        text = render_block({"id": "SAME"}, "a", "c") + "\n" + render_block({"id": "SAME"}, "b", "c")
        result = validate_document(text)
        assert result.total_blocks == 2
        assert result.passed
        assert len(result.warnings) == 1
        assert "WARNINGS (1):" in result.summary()
        assert "All checks passed." not in result.summary()

    def test_failed(self, broken_text):
        result = validate_document(broken_text)
        assert not result.passed
        assert result.total_blocks == 4
        assert len(result.errors) == 3
        summary = result.summary()
        assert summary.startswith("Annotation Validation: 4 blocks checked")
        assert "ERRORS (3):" in summary
        assert "invalid JSON" in summary

    def test_clean_summary(self, sample_text):
        result = validate_document(sample_text)
        assert result.passed
        assert result.summary().endswith("All checks passed.")

    def test_empty_result(self):
        assert ValidationResult().passed
