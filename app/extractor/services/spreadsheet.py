"""
Spreadsheet export of extraction results.

Builds a single-sheet XLSX workbook in memory with pandas and openpyxl.
"""

import io
import json
import logging
from collections.abc import Mapping
from typing import Any

import pandas as pd
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE

from ..exceptions import SerializationFailure
from ..models import SOURCE_FILE_KEY, FieldDefinition, GroupField, NumberField
from .normalize import parse_number
from .rows import project_rows

logger = logging.getLogger(__name__)

SHEET_NAME = "Extracted Data"
EXPORT_FILENAME = "extracted_data.xlsx"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _is_unprojected(record: Mapping[str, Any], fields: list[FieldDefinition]) -> bool:
    """
    True for a raw structured result.

    Projected rows always carry the source filename and never hold arrays
    in text or number columns.
    """
    if SOURCE_FILE_KEY not in record:
        return True
    return any(
        isinstance(record.get(f.name), list)
        for f in fields
        if not isinstance(f, GroupField)
    )


def flatten_records(
    records: list[Mapping[str, Any]],
    fields: list[FieldDefinition],
) -> list[Mapping[str, Any]]:
    """Expand raw results into rows; projected rows pass through unchanged."""
    flat: list[Mapping[str, Any]] = []
    for record in records:
        if _is_unprojected(record, fields):
            flat.extend(project_rows(record, str(record.get(SOURCE_FILE_KEY, "")), fields))
        else:
            flat.append(record)
    return flat


def _text(value: str) -> str:
    return ILLEGAL_CHARACTERS_RE.sub("", value)


def _cell(value: Any, field: FieldDefinition) -> Any:
    if value is None:
        return None
    if isinstance(field, GroupField):
        return _text(json.dumps(value, ensure_ascii=False, default=str))
    if isinstance(field, NumberField):
        number = parse_number(value)
        if number is not None:
            return number
    if isinstance(value, (dict, list)):
        return _text(json.dumps(value, ensure_ascii=False, default=str))
    return _text(str(value))


def build_workbook(
    records: list[Mapping[str, Any]],
    fields: list[FieldDefinition],
) -> bytes:
    """
    Serialize records into an XLSX workbook.

    The header row holds the top-level field names in schema order; each
    flattened record becomes one data row.

    Args:
        records: Projected rows or raw per-document results.
        fields: Top-level schema fields.

    Returns:
        The workbook file content.

    Raises:
        SerializationFailure: If the workbook cannot be built.
    """
    headers = [field.name for field in fields]

    try:
        rows = [
            [_cell(record.get(field.name), field) for field in fields]
            for record in flatten_records(records, fields)
        ]
        df = pd.DataFrame(rows, columns=headers, dtype=object)

        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name=SHEET_NAME, index=False)
    except Exception as e:
        logger.exception("Failed to build spreadsheet")
        raise SerializationFailure("Failed to generate Excel file", detail=str(e)) from e

    logger.info("Built spreadsheet with %d row(s) and %d column(s)", len(rows), len(headers))
    return buffer.getvalue()
