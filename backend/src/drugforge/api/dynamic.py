"""Generic select/create/update/delete endpoints over registered tables.

Create and update also accept an aggregate form, ``{aggregateType, ...}``,
which is routed through the aggregate repository instead of naming a
table directly.
"""

from typing import Any, Callable

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict

from drugforge.core.bootstrap import DrugforgeServices
from drugforge.errors import NotFoundError, SchemaValidationError


class SelectRequest(BaseModel):
    table: str
    properties: list[str] | None = None
    where: dict[str, Any] | None = None
    orderBy: dict[str, str] | None = None
    limit: Any = None
    offset: Any = None


class UpdateRequest(BaseModel):
    """``{table, uid, properties}`` or ``{aggregateType, uid, ...data}``."""

    model_config = ConfigDict(extra="allow")

    uid: Any
    table: str | None = None
    properties: dict[str, Any] | None = None
    aggregateType: str | None = None


class CreateRequest(BaseModel):
    """``{table, properties}`` or ``{entityUid, aggregateType, ...data}``."""

    model_config = ConfigDict(extra="allow")

    table: str | None = None
    properties: dict[str, Any] | None = None
    aggregateType: str | None = None
    entityUid: str | None = None


class DeleteRequest(BaseModel):
    table: str
    uid: Any


def _extra(request: BaseModel) -> dict[str, Any]:
    return dict(request.model_extra or {})


def create_dynamic_router(
    get_services: Callable[[], DrugforgeServices],
) -> APIRouter:
    router = APIRouter(prefix="/api", tags=["dynamic"])

    @router.post("/select")
    async def select(request: SelectRequest) -> dict[str, Any]:
        """Filtered, ordered, paged rows plus the unpaged match count."""
        services = get_services()
        result = services.builder.select(
            request.table,
            columns=request.properties,
            where=request.where,
            order_by=request.orderBy,
            limit=request.limit,
            offset=request.offset,
            with_count=True,
        )
        return {"data": result.rows, "count": result.total}

    @router.post("/update")
    async def update(request: UpdateRequest) -> dict[str, Any]:
        services = get_services()
        if request.aggregateType:
            row = services.aggregates.update_aggregate_record(
                request.aggregateType, request.uid, _extra(request)
            )
        elif request.table:
            row = services.builder.update(
                request.table, request.uid, request.properties or {}
            )
        else:
            raise SchemaValidationError("Either 'table' or 'aggregateType' is required")
        if row is None:
            raise NotFoundError(f"Record '{request.uid}' not found")
        return row

    @router.post("/create")
    async def create(request: CreateRequest):
        services = get_services()
        if request.aggregateType:
            if not request.entityUid:
                raise SchemaValidationError(
                    "'entityUid' is required with 'aggregateType'", identifier="entityUid"
                )
            row = services.aggregates.create_aggregate_record_by_entity_uid(
                request.aggregateType, request.entityUid, _extra(request)
            )
            table = services.model.aggregates.require(request.aggregateType).table_name
            pk = services.model.schema.require_table(table).primary_key
            return JSONResponse(status_code=201, content={"success": True, "id": row[pk]})

        if not request.table:
            raise SchemaValidationError("Either 'table' or 'aggregateType' is required")
        row = services.builder.insert(request.table, request.properties or {})
        return JSONResponse(status_code=201, content=row)

    @router.delete("/delete")
    async def delete(request: DeleteRequest) -> dict[str, Any]:
        """Delete one row; entity and child tables cascade."""
        services = get_services()
        if services.model.get_entity(request.table) is not None:
            result = services.entities.delete_entity_by_uid(request.uid, request.table)
            rows_affected = result.rows_affected
        else:
            rows_affected = services.builder.delete(request.table, request.uid)
        return {"success": rows_affected > 0, "rowsAffected": rows_affected}

    return router
