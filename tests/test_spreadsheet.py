"""Tests for spreadsheet export."""

import io
import json

import pytest
from openpyxl import load_workbook

from app.extractor.exceptions import SerializationFailure
from app.extractor.models import GroupField, NumberField, TextField
from app.extractor.services import spreadsheet
from app.extractor.services.spreadsheet import SHEET_NAME, build_workbook


def _read(content: bytes) -> list[tuple]:
    workbook = load_workbook(io.BytesIO(content))
    assert workbook.sheetnames == [SHEET_NAME]
    return list(workbook[SHEET_NAME].iter_rows(values_only=True))


class TestBuildWorkbook:
    """Tests for build_workbook."""

    def test_header_and_rows(self, invoice_fields):
        """Test that N projected rows give N data rows under K headers."""
        items = [{"description": "Widget", "amount": 10.0}]
        rows = [
            {"source_file": "a.pdf", "invoice_number": "INV-001", "total_amount": 10.0, "items": items},
            {"source_file": "b.pdf", "invoice_number": "INV-002", "total_amount": None, "items": []},
        ]

        sheet = _read(build_workbook(rows, invoice_fields))

        assert sheet[0] == ("invoice_number", "total_amount", "items")
        assert len(sheet) == 3
        assert sheet[1][0] == "INV-001"
        assert sheet[1][1] == 10
        assert json.loads(sheet[1][2]) == items
        assert sheet[2][1] is None

    def test_header_is_bold(self, invoice_fields):
        """Test that the header row is emphasised."""
        content = build_workbook([{"invoice_number": "x"}], invoice_fields)
        sheet = load_workbook(io.BytesIO(content))[SHEET_NAME]
        assert sheet["A1"].font.bold

    def test_raw_results_are_flattened(self, invoice_fields):
        """Test that per-document results are projected before export."""
        raw = [{
            "source_file": "a.pdf",
            "invoice_number": ["INV-001", "INV-002"],
            "total_amount": [15.5],
            "items": [{"description": "Widget", "amount": 10.0}],
        }]

        sheet = _read(build_workbook(raw, invoice_fields))

        assert [r[0] for r in sheet[1:]] == ["INV-001", "INV-002"]
        assert [r[1] for r in sheet[1:]] == [15.5, 15.5]

    def test_raw_group_only_result_flattened(self):
        """Test that a raw result holding only a group gives one row per item."""
        fields = [GroupField(name="items", sub_fields=[TextField(name="a")])]
        items = [{"a": "x"}, {"a": "y"}, {"a": "z"}]

        sheet = _read(build_workbook([{"items": items}], fields))

        assert len(sheet) - 1 == 3
        assert all(json.loads(r[0]) == items for r in sheet[1:])

    def test_projected_group_row_kept(self):
        """Test that an already projected row is written once."""
        fields = [GroupField(name="items", sub_fields=[TextField(name="a")])]
        row = {"source_file": "a.pdf", "items": [{"a": "x"}, {"a": "y"}]}

        sheet = _read(build_workbook([row], fields))

        assert len(sheet) == 2

    def test_numeric_strings_become_numbers(self):
        """Test that number cells are written as numbers when parseable."""
        fields = [NumberField(name="amount")]
        sheet = _read(build_workbook([{"amount": "1.349,36"}, {"amount": "n/a"}], fields))
        assert sheet[1][0] == pytest.approx(1349.36)
        assert sheet[2][0] == "n/a"

    def test_illegal_characters_stripped(self):
        """Test that control characters do not break the workbook."""
        fields = [TextField(name="note")]
        sheet = _read(build_workbook([{"note": "line\x00one\x0b"}], fields))
        assert sheet[1][0] == "lineone"

    def test_empty_records_give_header_only(self, invoice_fields):
        """Test that no records still produce a header row."""
        sheet = _read(build_workbook([], invoice_fields))
        assert sheet == [("invoice_number", "total_amount", "items")]

    def test_serialization_error_wrapped(self, invoice_fields, monkeypatch: pytest.MonkeyPatch):
        """Test that writer failures raise SerializationFailure."""

        class BrokenWriter:
            def __init__(self, *args, **kwargs):
                raise OSError("disk full")

        monkeypatch.setattr(spreadsheet.pd, "ExcelWriter", BrokenWriter)

        with pytest.raises(SerializationFailure) as exc_info:
            build_workbook([{"invoice_number": "x"}], invoice_fields)
        assert exc_info.value.detail == "disk full"
