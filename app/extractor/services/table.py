"""
Tabular view over projected rows: filtering, sorting, pagination,
display formatting and in-place expansion of group cells.
"""

import math
from collections.abc import Mapping
from functools import cmp_to_key
from typing import Any

from ..models import (
    SOURCE_FILE_KEY,
    FieldDefinition,
    FilterConfig,
    GroupField,
    NestedTable,
    NumberField,
    PaginationConfig,
    SortConfig,
    TablePage,
)
from .normalize import parse_number


def _matches(value: Any, needle: str) -> bool:
    if value is None:
        return False
    if isinstance(value, list):
        return any(_matches(item, needle) for item in value)
    if isinstance(value, Mapping):
        return any(_matches(item, needle) for item in value.values())
    return needle in str(value).lower()


def filter_rows(rows: list[dict[str, Any]], config: FilterConfig | None) -> list[dict[str, Any]]:
    """Keep rows whose column contains the filter value, case-insensitively."""
    if config is None or not config.value:
        return list(rows)
    needle = config.value.lower()
    return [row for row in rows if _matches(row.get(config.field), needle)]


def _compare(a: Any, b: Any) -> int:
    if isinstance(a, bool) and isinstance(b, bool):
        return (b - a) if a != b else 0  # True first
    if isinstance(a, (int, float)) and isinstance(b, (int, float)) \
            and not isinstance(a, bool) and not isinstance(b, bool):
        return (a > b) - (a < b)
    sa, sb = str(a).lower(), str(b).lower()
    return (sa > sb) - (sa < sb)


def sort_rows(rows: list[dict[str, Any]], config: SortConfig | None) -> list[dict[str, Any]]:
    """
    Sort rows by one column.

    Missing values always sort last, in both directions.
    """
    if config is None:
        return list(rows)
    sign = 1 if config.direction == "asc" else -1

    def compare(row_a: dict[str, Any], row_b: dict[str, Any]) -> int:
        a = row_a.get(config.field)
        b = row_b.get(config.field)
        if a is None and b is None:
            return 0
        if a is None:
            return 1
        if b is None:
            return -1
        return sign * _compare(a, b)

    return sorted(rows, key=cmp_to_key(compare))


def format_value(value: Any, field: FieldDefinition | None) -> str:
    """Display string for one cell."""
    if value is None:
        return "-"
    if isinstance(field, GroupField):
        return f"[{len(value)} items]" if isinstance(value, list) else "[]"
    if isinstance(field, NumberField):
        number = parse_number(value)
        if number is None:
            return "-"
        if number.is_integer():
            return f"{int(number):,}"
        return f"{number:,.2f}".rstrip("0").rstrip(".") if abs(number) >= 0.01 else f"{number:g}"
    return str(value)


def display_row(row: Mapping[str, Any], fields: list[FieldDefinition]) -> dict[str, str]:
    """Format every column of a row, source filename first."""
    display = {SOURCE_FILE_KEY: str(row.get(SOURCE_FILE_KEY, ""))}
    for field in fields:
        display[field.name] = format_value(row.get(field.name), field)
    return display


def query_rows(
    rows: list[dict[str, Any]],
    fields: list[FieldDefinition],
    sort: SortConfig | None = None,
    filter_config: FilterConfig | None = None,
    pagination: PaginationConfig | None = None,
) -> TablePage:
    """
    Apply filter, then sort, then pagination.

    Args:
        rows: Projected rows.
        fields: Top-level schema, used for display formatting.
        sort: Column and direction, or None to keep input order.
        filter_config: Column and substring, or None.
        pagination: Page index and size.

    Returns:
        The requested page plus totals computed after filtering.
    """
    pagination = pagination or PaginationConfig()
    processed = sort_rows(filter_rows(rows, filter_config), sort)

    start = pagination.current_page * pagination.page_size
    page = processed[start:start + pagination.page_size]

    return TablePage(
        rows=page,
        display=[display_row(row, fields) for row in page],
        total_items=len(processed),
        total_pages=math.ceil(len(processed) / pagination.page_size),
        current_page=pagination.current_page,
        page_size=pagination.page_size,
    )


def expand_group(
    row: Mapping[str, Any],
    field_name: str,
    fields: list[FieldDefinition],
) -> NestedTable:
    """
    Materialise the items of a group cell as a nested table.

    Raises:
        KeyError: If ``field_name`` is not a group field of the schema.
    """
    field = next((f for f in fields if f.name == field_name), None)
    if not isinstance(field, GroupField):
        raise KeyError(field_name)

    items = row.get(field_name) or []
    columns = [sub.name for sub in field.sub_fields]
    return NestedTable(
        columns=columns,
        rows=[
            {name: item.get(name) for name in columns}
            for item in items
            if isinstance(item, Mapping)
        ],
    )
