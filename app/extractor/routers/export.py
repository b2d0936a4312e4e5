"""
Router for spreadsheet export.
"""

import logging

from fastapi import APIRouter
from fastapi.responses import Response

from ..exceptions import InputError
from ..models import GenerateExcelRequest
from ..services.spreadsheet import EXPORT_FILENAME, XLSX_MEDIA_TYPE, build_workbook

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["export"])


def xlsx_response(content: bytes, filename: str = EXPORT_FILENAME) -> Response:
    """Workbook bytes as a file attachment."""
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/generate-excel")
async def generate_excel(request: GenerateExcelRequest) -> Response:
    """
    Build an XLSX workbook from rows or raw per-document results.

    The header row follows the schema's top-level field order.
    """
    if not request.data:
        raise InputError("No data provided")
    if not request.fields:
        raise InputError("No schema provided")

    logger.info("Generating spreadsheet for %d record(s)", len(request.data))
    return xlsx_response(build_workbook(request.data, request.fields))
