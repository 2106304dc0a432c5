"""Dynamic query builder.

Turns validated identifiers plus a small declarative where/order/paging
description into parametrized SQL. Only identifiers that passed
``is_valid_identifier`` and an existence check against the schema
registry are interpolated into SQL text; every value is a bound
parameter. All validation happens before the database is touched.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from drugforge.core.types import coerce_value, get_field_type
from drugforge.errors import SchemaValidationError
from drugforge.metadata.schema import FieldDescriptor, SchemaRegistry, TableDescriptor
from drugforge.persistence.adapter import PersistenceAdapter
from drugforge.query.filters import filter_value_text

DIRECTIONS = ("asc", "desc")
CREATED_AT = "created_at"
UPDATED_AT = "updated_at"


@dataclass
class CompiledQuery:
    sql: str
    params: list[Any] = field(default_factory=list)


@dataclass
class SelectResult:
    rows: list[dict[str, Any]]
    total: int | None = None


def _check_non_negative(name: str, value: Any) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise SchemaValidationError(
            f"'{name}' must be a non-negative integer, got {value!r}", identifier=name
        )


def like_pattern(term: str) -> str:
    """Lower-cased substring pattern with LIKE wildcards escaped."""
    escaped = term.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class QueryBuilder:
    """Builds and runs select/insert/update/delete against registered tables."""

    def __init__(self, schema: SchemaRegistry, db: PersistenceAdapter):
        self.schema = schema
        self.db = db

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    def _writable_table(self, name: Any) -> TableDescriptor:
        table = self.schema.require_table(name)
        if table.is_view:
            raise SchemaValidationError(f"Table '{name}' is a read-only view", identifier=name)
        return table

    def _coerce(self, f: FieldDescriptor, value: Any) -> Any:
        try:
            coerced = coerce_value(f.type, value)
        except (TypeError, ValueError) as exc:
            raise SchemaValidationError(
                f"Invalid value for column '{f.name}': {exc}", identifier=f.name
            ) from None
        if f.max_length and isinstance(coerced, str) and len(coerced) > f.max_length:
            raise SchemaValidationError(
                f"Value for column '{f.name}' exceeds {f.max_length} characters",
                identifier=f.name,
            )
        return coerced

    def _select_fields(self, table: TableDescriptor, columns: Any) -> list[FieldDescriptor]:
        if not columns:
            return list(table.fields)
        if not isinstance(columns, (list, tuple)):
            raise SchemaValidationError("'properties' must be a list of column names")
        return [self.schema.require_column(table, c) for c in columns]

    def _properties(
        self, table: TableDescriptor, properties: Any, *, creating: bool
    ) -> dict[str, Any]:
        if properties is None:
            properties = {}
        if not isinstance(properties, dict):
            raise SchemaValidationError("'properties' must be an object of column -> value")

        values: dict[str, Any] = {}
        for column, value in properties.items():
            values[column] = self._coerce(self.schema.require_column(table, column), value)

        for f in table.fields:
            if f.is_primary_key:
                if not creating and f.name in values:
                    raise SchemaValidationError(
                        f"Primary key column '{f.name}' cannot be updated", identifier=f.name
                    )
                continue
            if not f.required:
                continue
            missing = values.get(f.name) in (None, "")
            if (creating and missing) or (not creating and f.name in values and missing):
                raise SchemaValidationError(f"Column '{f.name}' is required", identifier=f.name)
        return values

    def _predicate(self, f: FieldDescriptor, value: Any) -> tuple[str, list[Any]]:
        col = self.db.quote(f.name)
        if value is None:
            return f"{col} IS NULL", []
        if isinstance(value, dict):
            raise SchemaValidationError(
                f"Invalid filter value for column '{f.name}': objects are not allowed",
                identifier=f.name,
            )
        if not isinstance(value, (list, tuple)):
            return f"{col} = {self.db.placeholder}", [self._coerce(f, value)]

        if not value:
            # An explicit empty set matches nothing
            return "1 = 0", []
        if any(v is None for v in value):
            raise SchemaValidationError(
                f"Array values for column '{f.name}' must not contain null", identifier=f.name
            )
        coerced = [self._coerce(f, v) for v in value]
        field_type = get_field_type(f.type)
        if field_type.is_text or field_type.is_numeric:
            return self.db.membership(col), [self.db.membership_param(coerced)]
        # Dates and booleans compare on their text rendering
        texts = [filter_value_text(v) for v in coerced]
        column_sql = self.db.text_cast(col, f.type)
        return self.db.membership(column_sql), [self.db.membership_param(texts)]

    def _where(
        self, table: TableDescriptor, where: Any, match: str = "all"
    ) -> tuple[str, list[Any]]:
        if not where:
            return "", []
        if not isinstance(where, dict):
            raise SchemaValidationError("'where' must be an object of column -> value")
        if match not in ("all", "any"):
            raise ValueError(f"match must be 'all' or 'any', got {match!r}")

        clauses: list[str] = []
        params: list[Any] = []
        for column, value in where.items():
            clause, clause_params = self._predicate(
                self.schema.require_column(table, column), value
            )
            clauses.append(clause)
            params.extend(clause_params)

        joiner = " AND " if match == "all" else " OR "
        return f" WHERE {joiner.join(clauses)}", params

    def _order(self, table: TableDescriptor, order_by: Any) -> str:
        if not order_by:
            return ""
        if not isinstance(order_by, dict):
            raise SchemaValidationError("'orderBy' must be an object of column -> asc|desc")
        parts = []
        for column, direction in order_by.items():
            self.schema.require_column(table, column)
            if direction not in DIRECTIONS:
                raise SchemaValidationError(
                    f"Invalid order direction {direction!r} for column '{column}'; "
                    "expected 'asc' or 'desc'",
                    identifier=column,
                )
            parts.append(f"{self.db.quote(column)} {direction.upper()}")
        return " ORDER BY " + ", ".join(parts)

    def _paging(self, limit: Any, offset: Any) -> tuple[str, list[Any]]:
        _check_non_negative("limit", limit)
        _check_non_negative("offset", offset)
        ph = self.db.placeholder
        if limit is not None:
            sql = f" LIMIT {ph}"
            params = [limit]
        elif offset:
            # SQLite requires a LIMIT before OFFSET; -1 means unbounded
            sql = " LIMIT -1" if self.db.dialect == "sqlite" else ""
            params = []
        else:
            return "", []
        if offset:
            sql += f" OFFSET {ph}"
            params.append(offset)
        return sql, params

    # ------------------------------------------------------------------
    # Compilation
    # ------------------------------------------------------------------

    def compile_select(
        self,
        table: str,
        columns: list[str] | None = None,
        where: dict[str, Any] | None = None,
        order_by: dict[str, str] | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> CompiledQuery:
        descriptor = self.schema.require_table(table)
        fields = self._select_fields(descriptor, columns)
        where_sql, params = self._where(descriptor, where)
        order_sql = self._order(descriptor, order_by)
        paging_sql, paging_params = self._paging(limit, offset)
        cols = ", ".join(self.db.quote(f.name) for f in fields)
        sql = f"SELECT {cols} FROM {self.db.quote(table)}{where_sql}{order_sql}{paging_sql}"
        return CompiledQuery(sql, params + paging_params)

    def compile_count(self, table: str, where: dict[str, Any] | None = None) -> CompiledQuery:
        descriptor = self.schema.require_table(table)
        where_sql, params = self._where(descriptor, where)
        return CompiledQuery(
            f"SELECT COUNT(*) AS total FROM {self.db.quote(table)}{where_sql}", params
        )

    def compile_insert(self, table: str, properties: dict[str, Any]) -> tuple[CompiledQuery, Any]:
        """Compile an INSERT; returns the statement and the row's primary key value."""
        descriptor = self._writable_table(table)
        values = self._properties(descriptor, properties, creating=True)

        pk = self.schema.require_column(descriptor, descriptor.primary_key)
        if values.get(pk.name) in (None, ""):
            if pk.type != "uuid":
                raise SchemaValidationError(
                    f"Primary key column '{pk.name}' is required", identifier=pk.name
                )
            values[pk.name] = str(uuid.uuid4())

        now = _now()
        for audit in (CREATED_AT, UPDATED_AT):
            if descriptor.get_field(audit) is not None:
                values.setdefault(audit, now)

        ph = self.db.placeholder
        cols = ", ".join(self.db.quote(c) for c in values)
        marks = ", ".join(ph for _ in values)
        sql = f"INSERT INTO {self.db.quote(table)} ({cols}) VALUES ({marks})"
        return CompiledQuery(sql, list(values.values())), values[pk.name]

    def compile_update(
        self, table: str, uid: Any, properties: dict[str, Any]
    ) -> CompiledQuery | None:
        """Compile an UPDATE by primary key; None when there is nothing to set."""
        descriptor = self._writable_table(table)
        values = self._properties(descriptor, properties, creating=False)
        if not values:
            return None
        if descriptor.get_field(UPDATED_AT) is not None:
            values.setdefault(UPDATED_AT, _now())

        ph = self.db.placeholder
        assignments = ", ".join(f"{self.db.quote(c)} = {ph}" for c in values)
        pk = self.schema.require_column(descriptor, descriptor.primary_key)
        sql = (
            f"UPDATE {self.db.quote(table)} SET {assignments} "
            f"WHERE {self.db.quote(pk.name)} = {ph}"
        )
        return CompiledQuery(sql, [*values.values(), self._coerce(pk, uid)])

    def compile_delete(self, table: str, uid: Any) -> CompiledQuery:
        descriptor = self._writable_table(table)
        pk = self.schema.require_column(descriptor, descriptor.primary_key)
        sql = (
            f"DELETE FROM {self.db.quote(table)} "
            f"WHERE {self.db.quote(pk.name)} = {self.db.placeholder}"
        )
        return CompiledQuery(sql, [self._coerce(pk, uid)])

    def compile_delete_where(
        self, table: str, where: dict[str, Any], match: str = "all"
    ) -> CompiledQuery:
        descriptor = self._writable_table(table)
        if not where:
            raise SchemaValidationError(
                f"Refusing to delete from '{table}' without a where clause", identifier=table
            )
        where_sql, params = self._where(descriptor, where, match=match)
        return CompiledQuery(f"DELETE FROM {self.db.quote(table)}{where_sql}", params)

    def compile_search(
        self,
        table: str,
        columns: list[str],
        term: str,
        order_by: dict[str, str] | None = None,
        limit: int | None = None,
    ) -> CompiledQuery:
        """Case-insensitive substring match of ``term`` against any of ``columns``."""
        descriptor = self.schema.require_table(table)
        fields = [self.schema.require_column(descriptor, c) for c in columns]
        if not fields:
            raise SchemaValidationError("At least one search column is required")
        pattern = like_pattern(term)
        clauses = [
            f"LOWER({self.db.text_cast(self.db.quote(f.name), f.type)}) "
            f"LIKE {self.db.placeholder} ESCAPE '\\'"
            for f in fields
        ]
        order_sql = self._order(descriptor, order_by)
        paging_sql, paging_params = self._paging(limit, None)
        cols = ", ".join(self.db.quote(f.name) for f in descriptor.fields)
        sql = (
            f"SELECT {cols} FROM {self.db.quote(table)} "
            f"WHERE {' OR '.join(clauses)}{order_sql}{paging_sql}"
        )
        return CompiledQuery(sql, [pattern] * len(fields) + paging_params)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def select(
        self,
        table: str,
        columns: list[str] | None = None,
        where: dict[str, Any] | None = None,
        order_by: dict[str, str] | None = None,
        limit: int | None = None,
        offset: int | None = None,
        with_count: bool = False,
    ) -> SelectResult:
        """Run a SELECT. With ``with_count``, also report the unpaged match count."""
        query = self.compile_select(table, columns, where, order_by, limit, offset)
        count_query = self.compile_count(table, where) if with_count else None
        rows = self.db.fetch_all(query.sql, query.params)
        total = None
        if count_query is not None:
            row = self.db.fetch_one(count_query.sql, count_query.params)
            total = int(row["total"]) if row else 0
        return SelectResult(rows=rows, total=total)

    def count(self, table: str, where: dict[str, Any] | None = None) -> int:
        query = self.compile_count(table, where)
        row = self.db.fetch_one(query.sql, query.params)
        return int(row["total"]) if row else 0

    def get(self, table: str, uid: Any) -> dict[str, Any] | None:
        """Fetch one row by primary key."""
        descriptor = self.schema.require_table(table)
        if descriptor.primary_key is None:
            raise SchemaValidationError(f"Table '{table}' has no primary key", identifier=table)
        return self.get_by(table, descriptor.primary_key, uid)

    def get_by(self, table: str, column: str, value: Any) -> dict[str, Any] | None:
        query = self.compile_select(table, where={column: value}, limit=1)
        return self.db.fetch_one(query.sql, query.params)

    def insert(self, table: str, properties: dict[str, Any]) -> dict[str, Any]:
        query, pk_value = self.compile_insert(table, properties)
        self.db.execute(query.sql, query.params)
        return self.get(table, pk_value)

    def update(self, table: str, uid: Any, properties: dict[str, Any]) -> dict[str, Any] | None:
        """Update one row by primary key; None when no such row exists."""
        query = self.compile_update(table, uid, properties)
        if query is None:
            return self.get(table, uid)
        if self.db.execute(query.sql, query.params) == 0:
            return None
        return self.get(table, uid)

    def delete(self, table: str, uid: Any) -> int:
        query = self.compile_delete(table, uid)
        return self.db.execute(query.sql, query.params)

    def delete_where(self, table: str, where: dict[str, Any], match: str = "all") -> int:
        """Delete rows matching all (or any) of the ``where`` predicates."""
        query = self.compile_delete_where(table, where, match)
        return self.db.execute(query.sql, query.params)

    def search(
        self,
        table: str,
        columns: list[str],
        term: str,
        order_by: dict[str, str] | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        query = self.compile_search(table, columns, term, order_by, limit)
        return self.db.fetch_all(query.sql, query.params)
