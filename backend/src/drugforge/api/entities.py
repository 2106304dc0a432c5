"""Entity tree, entity CRUD, child entity, and aggregate endpoints."""

from typing import Any, Callable

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from drugforge.core.bootstrap import DrugforgeServices
from drugforge.errors import NotFoundError, SchemaValidationError


class DataRequest(BaseModel):
    """Request body for entity and aggregate writes."""
    data: dict[str, Any]


def create_entities_router(
    get_services: Callable[[], DrugforgeServices],
) -> APIRouter:
    router = APIRouter(prefix="/api", tags=["entities"])

    # --- Entities ---

    # Registered before /entities/{table} so "tree" is not read as a table name
    @router.get("/entities/tree")
    async def entity_tree() -> dict[str, Any]:
        """All top-level entities and a map of ancestor uid -> children."""
        return get_services().entities.get_entity_tree_data().to_dict()

    @router.get("/entities/{table}")
    async def search_entities(table: str, search: str | None = None) -> dict[str, Any]:
        entities = get_services().entities.search_entities(search, table)
        return {"data": [e.to_dict() for e in entities]}

    @router.post("/entities/{table}")
    async def create_entity(table: str, request: DataRequest):
        entity = get_services().entities.create_entity(request.data, table)
        return JSONResponse(status_code=201, content=entity.to_dict())

    @router.get("/entities/{table}/{key}")
    async def get_entity(table: str, key: str) -> dict[str, Any]:
        entity = get_services().entities.get_entity_by_key(key, table)
        if entity is None:
            raise NotFoundError(f"{table} '{key}' not found")
        return entity.to_dict()

    @router.put("/entities/{table}/{key}")
    async def update_entity(table: str, key: str, request: DataRequest) -> dict[str, Any]:
        entity = get_services().entities.update_entity(key, request.data, table)
        if entity is None:
            raise NotFoundError(f"{table} '{key}' not found")
        return entity.to_dict()

    @router.delete("/entities/{table}/{key}")
    async def delete_entity(table: str, key: str) -> dict[str, Any]:
        """Delete an entity and its aggregates and relationships."""
        result = get_services().entities.delete_entity(key, table)
        if result is None:
            raise NotFoundError(f"{table} '{key}' not found")
        return {"success": True, "steps": dict(result.steps)}

    # --- Children ---

    @router.get("/entities/{table}/{key}/children")
    async def get_children(table: str, key: str) -> dict[str, Any]:
        children = get_services().entities.get_children(key, table)
        if children is None:
            raise NotFoundError(f"{table} '{key}' not found")
        return {"data": [c.to_dict() for c in children]}

    @router.post("/entities/{table}/{key}/children/{child_table}")
    async def create_child(table: str, key: str, child_table: str, request: DataRequest):
        services = get_services()
        mapping = services.model.require_entity(child_table)
        if mapping.parent_entity != table:
            raise SchemaValidationError(
                f"'{child_table}' is not a child of '{table}'", identifier=child_table
            )
        child = services.entities.create_child_entity(key, request.data, child_table)
        return JSONResponse(status_code=201, content=child.to_dict())

    @router.get("/entities/{table}/{key}/aggregates")
    async def get_entity_aggregates(table: str, key: str) -> dict[str, Any]:
        services = get_services()
        entity = services.entities.get_entity_by_key(key, table)
        if entity is None:
            raise NotFoundError(f"{table} '{key}' not found")
        aggregates = services.aggregates.get_entity_aggregates(entity.uid, table)
        return {"data": [a.to_dict() for a in aggregates]}

    # --- Aggregates ---

    @router.get("/aggregates/{aggregate_type}")
    async def list_aggregates(aggregate_type: str, entityUid: str) -> dict[str, Any]:
        rows = get_services().aggregates.list_aggregate_records(aggregate_type, entityUid)
        return {"data": rows}

    @router.put("/aggregates/{aggregate_type}/{uid}")
    async def update_aggregate(
        aggregate_type: str, uid: str, request: DataRequest
    ) -> dict[str, Any]:
        row = get_services().aggregates.update_aggregate_record(
            aggregate_type, uid, request.data
        )
        if row is None:
            raise NotFoundError(f"{aggregate_type} '{uid}' not found")
        return row

    @router.delete("/aggregates/{aggregate_type}/{uid}")
    async def delete_aggregate(aggregate_type: str, uid: str) -> dict[str, Any]:
        deleted = get_services().aggregates.delete_aggregate_record(aggregate_type, uid)
        if not deleted:
            raise NotFoundError(f"{aggregate_type} '{uid}' not found")
        return {"success": True}

    return router
