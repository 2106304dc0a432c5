"""Distinct-value and distinct-row endpoints backing the filter dropdowns."""

from typing import Any, Callable

from fastapi import APIRouter
from pydantic import BaseModel

from drugforge.core.bootstrap import DrugforgeServices
from drugforge.query.distinct import DEFAULT_LIMIT
from drugforge.query.filters import parse_filter_map


class DistinctValuesRequest(BaseModel):
    tableName: str
    columnName: str
    filters: Any = None


class DistinctRowsRequest(BaseModel):
    tableName: str
    columnList: Any
    filters: Any = None
    offset: Any = 0
    limit: Any = DEFAULT_LIMIT
    orderBy: str | None = None


def create_distinct_router(
    get_services: Callable[[], DrugforgeServices],
) -> APIRouter:
    router = APIRouter(prefix="/api", tags=["distinct"])

    @router.post("/distinct-values")
    async def distinct_values(request: DistinctValuesRequest) -> dict[str, Any]:
        """Values a column can take under every other active filter."""
        services = get_services()
        values = services.distinct.get_distinct_values(
            request.tableName,
            request.columnName,
            parse_filter_map(request.filters),
        )
        return {"values": values, "columnName": request.columnName}

    @router.post("/distinct-rows")
    async def distinct_rows(request: DistinctRowsRequest) -> dict[str, Any]:
        services = get_services()
        page = services.distinct.get_distinct_rows(
            request.tableName,
            request.columnList,
            parse_filter_map(request.filters),
            offset=request.offset,
            limit=request.limit,
            order_by=request.orderBy,
        )
        return page.to_dict()

    return router
