"""FastAPI application."""

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from drugforge.api.distinct import create_distinct_router
from drugforge.api.dynamic import create_dynamic_router
from drugforge.api.entities import create_entities_router
from drugforge.core.bootstrap import DrugforgeServices, initialize_services
from drugforge.core.types import get_field_type
from drugforge.errors import (
    DrugforgeError,
    NotFoundError,
    PartialCascadeFailure,
    QueryExecutionError,
    SchemaValidationError,
    UnknownAggregateType,
)
from drugforge.metadata.schema import TableDescriptor

logger = logging.getLogger(__name__)

# Global services (initialized on startup)
services: DrugforgeServices | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize on startup, cleanup on shutdown."""
    global services

    # Metadata path, database and cascade mode all come from the environment
    services = initialize_services()

    yield

    # Cleanup
    if services:
        services.close()
        services = None


def _get_services() -> DrugforgeServices:
    if services is None:
        raise HTTPException(500, "Not initialized")
    return services


app = FastAPI(title="drugforge API", lifespan=lifespan)

# CORS for frontend dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Error mapping ---


def _status_for(exc: DrugforgeError) -> int:
    if isinstance(exc, (SchemaValidationError, UnknownAggregateType)):
        return 400
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, QueryExecutionError) and exc.unique_violation:
        return 409
    return 500


@app.exception_handler(DrugforgeError)
async def drugforge_error_handler(request: Request, exc: DrugforgeError) -> JSONResponse:
    status = _status_for(exc)
    if isinstance(exc, QueryExecutionError):
        # Driver detail stays in the log
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    elif isinstance(exc, PartialCascadeFailure):
        logger.error("%s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status, content=exc.to_dict())


app.include_router(create_dynamic_router(_get_services))
app.include_router(create_distinct_router(_get_services))
app.include_router(create_entities_router(_get_services))


# --- Metadata Endpoints ---


def _table_summary(services: DrugforgeServices, table: TableDescriptor) -> dict[str, Any]:
    entity = services.model.get_entity(table.name)
    return {
        "name": table.name,
        "displayName": table.display_name or table.name,
        "abbreviation": table.abbreviation,
        "isView": table.is_view,
        "exportable": table.exportable,
        "entityKind": entity.kind if entity else None,
    }


@app.get("/api/metadata")
async def list_tables() -> dict[str, Any]:
    """List all registered tables and aggregate types."""
    services = _get_services()
    schema = services.model.schema
    return {
        "tables": [
            _table_summary(services, schema.get_table(name))
            for name in schema.list_tables()
        ],
        "aggregateTypes": services.model.aggregates.list_types(),
    }


@app.get("/api/metadata/{table}")
async def get_table_metadata(table: str) -> dict[str, Any]:
    """Get full metadata for a table."""
    services = _get_services()
    descriptor = services.model.schema.get_table(table)
    if descriptor is None:
        raise NotFoundError(f"Table '{table}' not found")

    fields = []
    for field in descriptor.fields:
        field_type = get_field_type(field.type)
        fields.append({
            "name": field.name,
            "displayName": field.label,
            "type": field.type,
            "primaryKey": field.is_primary_key,
            "foreignKey": field.is_foreign_key,
            "exportable": field.is_exportable,
            "filterable": field.is_filterable,
            "required": field.required,
            "maxLength": field.max_length,
            "visible": field.visible,
            "editable": field.editable,
            "options": list(field.options) or None,
            "ui": {
                "display": {
                    "component": field_type.ui.display_component,
                    "format": field_type.ui.format,
                },
                "edit": {
                    "component": field_type.ui.edit_component,
                },
                "filter": {
                    "component": field_type.ui.filter_component,
                },
                "grid": {
                    "alignment": field_type.ui.alignment,
                },
            },
        })

    result = _table_summary(services, descriptor)
    result["primaryKey"] = descriptor.primary_key
    result["description"] = descriptor.description
    result["fields"] = fields
    result["aggregateTypes"] = [
        m.aggregate_type for m in services.model.aggregates.for_table(table)
    ]
    return result


# --- Maintenance Endpoints ---


@app.get("/api/maintenance/orphans")
async def list_orphaned_relationships() -> dict[str, Any]:
    """Relationship rows whose ancestor or child no longer exists."""
    orphans = _get_services().entities.find_orphaned_relationships()
    return {"orphans": orphans, "count": len(orphans)}
