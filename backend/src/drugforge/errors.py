"""Typed errors raised by the registries, query builder, and repositories.

API handlers in ``drugforge.api.app`` map these to HTTP responses:

- SchemaValidationError, UnknownAggregateType -> 400
- NotFoundError -> 404
- QueryExecutionError -> 500 (409 for uniqueness violations)
- PartialCascadeFailure -> 500 with code PARTIAL_CASCADE
"""

from __future__ import annotations

from typing import Any


class DrugforgeError(Exception):
    """Base class for all drugforge errors."""

    code = "ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "code": self.code}


class SchemaError(DrugforgeError):
    """Registry misconfiguration: conflicting or malformed table/aggregate definitions."""

    code = "SCHEMA_ERROR"


class SchemaValidationError(DrugforgeError):
    """A caller-supplied identifier or value failed validation.

    ``identifier`` names the offending table, column, or option so the
    caller can fix the request.
    """

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, identifier: str | None = None):
        super().__init__(message)
        self.identifier = identifier

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.identifier is not None:
            data["identifier"] = self.identifier
        return data


class UnknownAggregateType(DrugforgeError):
    """Aggregate type name is not registered."""

    code = "UNKNOWN_AGGREGATE_TYPE"

    def __init__(self, aggregate_type: str):
        super().__init__(f"Unknown aggregate type '{aggregate_type}'")
        self.aggregate_type = aggregate_type


class NotFoundError(DrugforgeError):
    """A required row (for example the parent of a new child entity) does not exist."""

    code = "NOT_FOUND"


class QueryExecutionError(DrugforgeError):
    """The database rejected or failed a validated statement.

    ``detail`` carries the driver message for logs; it is never sent to
    API callers.
    """

    code = "QUERY_FAILED"

    def __init__(
        self,
        message: str = "Query execution failed",
        detail: str = "",
        unique_violation: bool = False,
    ):
        super().__init__(message)
        self.detail = detail
        self.unique_violation = unique_violation
        if unique_violation:
            self.code = "UNIQUE_VIOLATION"


class OrphanedRelationshipError(DrugforgeError):
    """Relationship rows point at entities that no longer exist."""

    code = "ORPHANED_RELATIONSHIPS"

    def __init__(self, orphans: list[dict[str, Any]]):
        super().__init__(f"Found {len(orphans)} orphaned relationship(s)")
        self.orphans = orphans


class PartialCascadeFailure(DrugforgeError):
    """A cascading delete failed after some steps had already been applied."""

    code = "PARTIAL_CASCADE"

    def __init__(
        self,
        table: str,
        uid: str,
        completed_steps: list[str],
        failed_step: str,
        cause: Exception | None = None,
    ):
        super().__init__(
            f"Cascade delete of {table} '{uid}' failed at step '{failed_step}' "
            f"after {len(completed_steps)} completed step(s)"
        )
        self.table = table
        self.uid = uid
        self.completed_steps = completed_steps
        self.failed_step = failed_step
        self.cause = cause

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["completedSteps"] = list(self.completed_steps)
        data["failedStep"] = self.failed_step
        return data
