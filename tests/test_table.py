"""Tests for the tabular view."""

import pytest

from app.extractor.models import (
    FilterConfig,
    GroupField,
    NumberField,
    PaginationConfig,
    SortConfig,
    TextField,
)
from app.extractor.services.table import expand_group, format_value, query_rows


@pytest.fixture
def rows() -> list[dict]:
    """Projected rows of three documents."""
    return [
        {"source_file": "a.pdf", "company": "beta", "total": 30.0, "items": [{"sku": "X"}]},
        {"source_file": "b.pdf", "company": "Alpha", "total": None, "items": []},
        {"source_file": "c.pdf", "company": "gamma", "total": 5.0, "items": [{"sku": "Y"}, {"sku": "Z"}]},
        {"source_file": "d.pdf", "company": None, "total": 1234.5, "items": []},
    ]


@pytest.fixture
def fields() -> list:
    return [
        TextField(name="company"),
        NumberField(name="total"),
        GroupField(name="items", sub_fields=[TextField(name="sku"), NumberField(name="qty")]),
    ]


class TestQueryRows:
    """Tests for filter, sort and pagination."""

    def test_no_config_keeps_order(self, rows, fields):
        """Test that rows keep their order without sort or filter."""
        page = query_rows(rows, fields)
        assert [r["source_file"] for r in page.rows] == ["a.pdf", "b.pdf", "c.pdf", "d.pdf"]
        assert page.total_items == 4
        assert page.total_pages == 1

    def test_sort_strings_case_insensitive(self, rows, fields):
        """Test ascending text sort ignores case and puts missing values last."""
        page = query_rows(rows, fields, sort=SortConfig(field="company", direction="asc"))
        assert [r["company"] for r in page.rows] == ["Alpha", "beta", "gamma", None]

    def test_sort_numbers_descending(self, rows, fields):
        """Test descending numeric sort keeps missing values last."""
        page = query_rows(rows, fields, sort=SortConfig(field="total", direction="desc"))
        assert [r["total"] for r in page.rows] == [1234.5, 30.0, 5.0, None]

    def test_sort_is_stable(self, fields):
        """Test that equal keys keep their input order."""
        data = [
            {"source_file": "1.pdf", "company": "same"},
            {"source_file": "2.pdf", "company": "same"},
        ]
        page = query_rows(data, fields, sort=SortConfig(field="company", direction="desc"))
        assert [r["source_file"] for r in page.rows] == ["1.pdf", "2.pdf"]

    def test_filter_substring_case_insensitive(self, rows, fields):
        """Test that filtering matches substrings regardless of case."""
        page = query_rows(rows, fields, filter_config=FilterConfig(field="company", value="AL"))
        assert [r["source_file"] for r in page.rows] == ["b.pdf"]
        assert page.total_items == 1

    def test_filter_searches_group_items(self, rows, fields):
        """Test that filtering a group column looks inside its items."""
        page = query_rows(rows, fields, filter_config=FilterConfig(field="items", value="z"))
        assert [r["source_file"] for r in page.rows] == ["c.pdf"]

    def test_empty_filter_value_matches_all(self, rows, fields):
        """Test that a blank filter does not remove rows."""
        page = query_rows(rows, fields, filter_config=FilterConfig(field="company", value=""))
        assert page.total_items == 4

    def test_pagination(self, rows, fields):
        """Test page slicing and totals."""
        page = query_rows(rows, fields, pagination=PaginationConfig(current_page=1, page_size=3))
        assert [r["source_file"] for r in page.rows] == ["d.pdf"]
        assert page.total_items == 4
        assert page.total_pages == 2
        assert page.current_page == 1

    def test_page_past_end_is_empty(self, rows, fields):
        """Test that a page beyond the data is empty, totals unchanged."""
        page = query_rows(rows, fields, pagination=PaginationConfig(current_page=5, page_size=2))
        assert page.rows == []
        assert page.total_pages == 2

    def test_filter_then_sort_then_paginate(self, rows, fields):
        """Test that totals are computed after filtering."""
        page = query_rows(
            rows,
            fields,
            sort=SortConfig(field="total", direction="asc"),
            filter_config=FilterConfig(field="company", value="a"),
            pagination=PaginationConfig(current_page=0, page_size=2),
        )
        assert [r["company"] for r in page.rows] == ["gamma", "beta"]
        assert page.total_items == 3
        assert page.total_pages == 2

    def test_display_strings(self, rows, fields):
        """Test the display values of the returned page."""
        page = query_rows(rows, fields)
        assert page.display[0] == {
            "source_file": "a.pdf",
            "company": "beta",
            "total": "30",
            "items": "[1 items]",
        }
        assert page.display[1]["total"] == "-"
        assert page.display[3]["total"] == "1,234.5"


class TestFormatValue:
    """Tests for cell display formatting."""

    def test_none(self):
        assert format_value(None, TextField(name="a")) == "-"

    def test_group(self):
        group = GroupField(name="items")
        assert format_value([{}, {}], group) == "[2 items]"
        assert format_value([], group) == "[0 items]"

    def test_numbers(self):
        number = NumberField(name="n")
        assert format_value(1234567.0, number) == "1,234,567"
        assert format_value(-55.26, number) == "-55.26"
        assert format_value("1.349,36", number) == "1,349.36"

    def test_text(self):
        assert format_value("INV-001", TextField(name="a")) == "INV-001"


class TestExpandGroup:
    """Tests for in-place expansion of group cells."""

    def test_expand(self, rows, fields):
        """Test that items become nested rows with sub-field columns."""
        table = expand_group(rows[2], "items", fields)
        assert table.columns == ["sku", "qty"]
        assert table.rows == [{"sku": "Y", "qty": None}, {"sku": "Z", "qty": None}]

    def test_expand_empty_group(self, rows, fields):
        """Test that an empty group expands to an empty table."""
        assert expand_group(rows[1], "items", fields).rows == []

    def test_expand_non_group_rejected(self, rows, fields):
        """Test that only group columns can be expanded."""
        with pytest.raises(KeyError):
            expand_group(rows[0], "company", fields)
