"""
Router for the tabular view of extracted rows.
"""

from fastapi import APIRouter

from ..exceptions import InputError
from ..models import ExpandGroupRequest, NestedTable, TablePage, TableQueryRequest
from ..services.table import expand_group, query_rows

router = APIRouter(prefix="/table", tags=["table"])


@router.post("/query", response_model=TablePage)
async def query_table(request: TableQueryRequest) -> TablePage:
    """Filter, sort and paginate rows; returns one page with display strings."""
    return query_rows(
        request.rows,
        request.fields,
        sort=request.sort,
        filter_config=request.filter,
        pagination=request.pagination,
    )


@router.post("/expand", response_model=NestedTable)
async def expand_table_group(request: ExpandGroupRequest) -> NestedTable:
    """Expand the items of a group cell into a nested table."""
    try:
        return expand_group(request.row, request.field, request.fields)
    except KeyError:
        raise InputError(
            "Invalid group field",
            detail=f"'{request.field}' is not a group field of the schema",
        )
