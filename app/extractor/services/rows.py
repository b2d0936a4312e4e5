"""
Row projection of structured results.

A structured result holds parallel arrays for scalar fields and arrays of
item objects for group fields. Projection turns one result into flat row
records, one per index of the repeated dimension:

- the longest top-level array, group arrays included, sets the number of
  rows; a result whose arrays are all empty projects to no rows;
- a group field keeps its whole array in every row;
- an array as long as the row count contributes one element per row;
- a single-element array is a document-level value, repeated in every row;
- other arrays are padded with None past their end;
- non-array values are repeated verbatim, and a result without any array
  projects to exactly one row.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from ..models import SOURCE_FILE_KEY, FieldDefinition, GroupField

logger = logging.getLogger(__name__)


def _looks_like_group(value: Any) -> bool:
    return isinstance(value, list) and any(isinstance(item, Mapping) for item in value)


def _columns(
    result: Mapping[str, Any],
    fields: list[FieldDefinition] | None,
) -> list[tuple[str, bool]]:
    """(name, is_group) per column, in schema order when a schema is given."""
    if fields is not None:
        return [(f.name, isinstance(f, GroupField)) for f in fields]
    return [
        (key, _looks_like_group(value))
        for key, value in result.items()
        if key != SOURCE_FILE_KEY
    ]


def row_count(result: Mapping[str, Any], fields: list[FieldDefinition] | None = None) -> int:
    """Number of rows a result projects to."""
    lengths = [
        len(result[name])
        for name, _ in _columns(result, fields)
        if isinstance(result.get(name), list)
    ]
    if not lengths:
        return 1
    return max(lengths)


def project_rows(
    result: Mapping[str, Any],
    source_file: str,
    fields: list[FieldDefinition] | None = None,
) -> list[dict[str, Any]]:
    """
    Project one structured result into row records.

    Args:
        result: Structured result of one document.
        source_file: Filename stored in every row.
        fields: Top-level schema fields. When omitted, columns follow the
            result's keys and lists of objects are treated as groups.

    Returns:
        Row records ``{"source_file": ..., <field>: value}``.
    """
    columns = _columns(result, fields)
    total = row_count(result, fields)

    mismatched = sorted(
        name
        for name, is_group in columns
        if not is_group
        and isinstance(result.get(name), list)
        and len(result[name]) not in (1, total)
    )
    if mismatched:
        logger.warning(
            "Fields %s of %s are shorter than %d rows; missing values padded with None",
            mismatched,
            source_file,
            total,
        )

    rows: list[dict[str, Any]] = []
    for i in range(total):
        row: dict[str, Any] = {SOURCE_FILE_KEY: source_file}
        for name, is_group in columns:
            value = result.get(name)
            if is_group:
                row[name] = value if value is not None else []
            elif isinstance(value, list):
                if len(value) == 1:
                    row[name] = value[0]
                else:
                    row[name] = value[i] if i < len(value) else None
            else:
                row[name] = value
        rows.append(row)
    return rows


def project_results(
    documents: Iterable[tuple[str, Mapping[str, Any]]],
    fields: list[FieldDefinition] | None = None,
) -> list[dict[str, Any]]:
    """Project several (source_file, result) pairs, keeping document order."""
    rows: list[dict[str, Any]] = []
    for source_file, result in documents:
        rows.extend(project_rows(result, source_file, fields))
    return rows
