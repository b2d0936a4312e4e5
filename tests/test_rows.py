"""Tests for row projection and number normalization."""

import logging

import pytest

from app.extractor.models import GroupField, NumberField, TextField
from app.extractor.services.normalize import parse_number
from app.extractor.services.rows import project_results, project_rows, row_count


class TestProjectRows:
    """Tests for projecting one structured result."""

    def test_parallel_arrays(self):
        """Test that equal-length arrays give one row per index."""
        fields = [TextField(name="date"), NumberField(name="amount")]
        result = {"date": ["2024-01-01", "2024-01-02"], "amount": [10.0, -5.5]}

        rows = project_rows(result, "statement.pdf", fields)

        assert rows == [
            {"source_file": "statement.pdf", "date": "2024-01-01", "amount": 10.0},
            {"source_file": "statement.pdf", "date": "2024-01-02", "amount": -5.5},
        ]

    def test_group_kept_whole_in_every_row(self, invoice_fields):
        """Test that a group cell holds the full item list in each row."""
        items = [{"description": "Widget", "amount": 10.0}, {"description": "Gadget", "amount": 5.5}]
        result = {"invoice_number": ["INV-001"], "total_amount": [15.5], "items": items}

        rows = project_rows(result, "invoice.pdf", invoice_fields)

        assert rows == [
            {"source_file": "invoice.pdf", "invoice_number": "INV-001", "total_amount": 15.5, "items": items},
            {"source_file": "invoice.pdf", "invoice_number": "INV-001", "total_amount": 15.5, "items": items},
        ]

    def test_group_sets_row_count(self):
        """Test that a group array drives the rows and single values repeat."""
        fields = [GroupField(name="items", sub_fields=[TextField(name="sku")]), NumberField(name="total")]
        items = [{"sku": s} for s in "ABCD"]

        rows = project_rows({"items": items, "total": [99.0]}, "doc.pdf", fields)

        assert len(rows) == 4
        assert [r["total"] for r in rows] == [99.0] * 4
        assert all(r["items"] == items for r in rows)

    def test_group_and_scalar_same_length(self):
        """Test that a group and a scalar array of equal length give one row per index."""
        fields = [GroupField(name="items", sub_fields=[TextField(name="sku")]), NumberField(name="total")]
        items = [{"sku": "A"}, {"sku": "B"}, {"sku": "C"}]

        rows = project_rows({"items": items, "total": [1.0, 2.0, 3.0]}, "doc.pdf", fields)

        assert len(rows) == 3
        assert {r["source_file"] for r in rows} == {"doc.pdf"}
        assert [r["total"] for r in rows] == [1.0, 2.0, 3.0]

    def test_single_value_repeated(self):
        """Test that one-element arrays are repeated across rows."""
        fields = [TextField(name="company"), NumberField(name="amount")]
        result = {"company": ["Acme"], "amount": [1.0, 2.0, 3.0]}

        rows = project_rows(result, "a.pdf", fields)

        assert [r["company"] for r in rows] == ["Acme", "Acme", "Acme"]
        assert [r["amount"] for r in rows] == [1.0, 2.0, 3.0]

    def test_mismatched_lengths_padded(self, caplog: pytest.LogCaptureFixture):
        """Test that shorter arrays are padded with None and logged."""
        fields = [TextField(name="date"), NumberField(name="amount")]
        result = {"date": ["d1", "d2"], "amount": [1.0, 2.0, 3.0]}

        with caplog.at_level(logging.WARNING):
            rows = project_rows(result, "a.pdf", fields)

        assert len(rows) == 3
        assert [r["date"] for r in rows] == ["d1", "d2", None]
        assert "date" in caplog.text

    def test_all_empty_arrays_give_no_rows(self, invoice_fields):
        """Test that a document with no matches yields no rows."""
        result = {"invoice_number": [], "total_amount": [], "items": []}
        assert project_rows(result, "empty.pdf", invoice_fields) == []

    def test_missing_keys_become_none(self, invoice_fields):
        """Test that absent fields project to None and empty groups."""
        rows = project_rows({}, "x.pdf", invoice_fields)
        assert rows == [{"source_file": "x.pdf", "invoice_number": None, "total_amount": None, "items": []}]

    def test_columns_follow_schema_order(self):
        """Test that row keys follow the schema, source filename first."""
        fields = [NumberField(name="b"), TextField(name="a")]
        rows = project_rows({"a": ["x"], "b": [1.0]}, "f.pdf", fields)
        assert list(rows[0]) == ["source_file", "b", "a"]

    def test_without_schema(self):
        """Test that lists of objects are treated as groups when no schema is given."""
        result = {"company": ["Acme"], "lines": [{"sku": "A"}, {"sku": "B"}]}

        rows = project_rows(result, "f.pdf")

        assert rows == [
            {"source_file": "f.pdf", "company": "Acme", "lines": [{"sku": "A"}, {"sku": "B"}]},
            {"source_file": "f.pdf", "company": "Acme", "lines": [{"sku": "A"}, {"sku": "B"}]},
        ]

    def test_row_count(self, invoice_fields):
        """Test that the longest array, groups included, sets the row count."""
        assert row_count({"invoice_number": ["a", "b"], "items": [{}, {}, {}]}, invoice_fields) == 3
        assert row_count({"invoice_number": ["a"], "total_amount": [1.0, 2.0, 3.0]}, invoice_fields) == 3
        assert row_count({"items": [{}, {}]}, invoice_fields) == 2
        assert row_count({"invoice_number": [], "items": []}, invoice_fields) == 0
        assert row_count({}, invoice_fields) == 1

    def test_project_results_keeps_document_order(self):
        """Test that several documents are concatenated in order."""
        fields = [TextField(name="v")]
        rows = project_results([("b.pdf", {"v": ["2"]}), ("a.pdf", {"v": ["1", "3"]})], fields)
        assert [(r["source_file"], r["v"]) for r in rows] == [("b.pdf", "2"), ("a.pdf", "1"), ("a.pdf", "3")]

    def test_nested_groups_untouched(self):
        """Test that nested group items are passed through as-is."""
        fields = [GroupField(name="orders", sub_fields=[GroupField(name="lines")])]
        orders = [{"lines": [{"sku": "A"}]}]
        assert project_rows({"orders": orders}, "f.pdf", fields)[0]["orders"] == orders


class TestParseNumber:
    """Tests for number normalization of display strings."""

    def test_plain_numbers(self):
        """Test parsing plain numbers."""
        assert parse_number("1234.56") == 1234.56
        assert parse_number("1234") == 1234.0
        assert parse_number(100) == 100.0
        assert parse_number(99.99) == 99.99

    def test_usd_format(self):
        """Test parsing US dollar format."""
        assert parse_number("$1,234.56") == 1234.56
        assert parse_number("$1,000,000.00") == 1000000.00

    def test_european_formats(self):
        """Test comma-decimal formats."""
        assert parse_number("1.349,36") == 1349.36
        assert parse_number("€1.234,56") == 1234.56

    def test_negative_values(self):
        """Test that signs are kept."""
        assert parse_number("-55,26") == -55.26
        assert parse_number("(100.00)") == -100.0

    def test_invalid_returns_none(self):
        """Test that unreadable values return None."""
        assert parse_number(None) is None
        assert parse_number("") is None
        assert parse_number("not a number") is None
        assert parse_number(True) is None
