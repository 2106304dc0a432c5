"""Distinct-value and distinct-row queries for filter dropdowns and report grids.

Both queries constrain a table with a FilterMap. Each non-empty entry
becomes one set-membership predicate. Numeric columns compare against the
filter strings converted to numbers; every other column is rendered as text
so filter strings compare the same way on every dialect.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from drugforge.core.types import coerce_value, get_field_type
from drugforge.errors import SchemaValidationError
from drugforge.metadata.schema import FieldDescriptor, SchemaRegistry, TableDescriptor
from drugforge.persistence.adapter import PersistenceAdapter
from drugforge.query.filters import FilterMap, active_filters

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 1000
MAX_LIMIT = 10000

_TOTAL = "__total_count"


@dataclass
class DistinctRow:
    values: dict[str, Any]
    total_count: int


@dataclass
class DistinctRowPage:
    rows: list[DistinctRow]
    total_count: int
    offset: int
    limit: int
    columns: list[dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "data": [row.values for row in self.rows],
            "columns": self.columns,
            "totalRows": self.total_count,
            "offset": self.offset,
            "limit": self.limit,
        }


def clamp_offset(offset: Any) -> int:
    return max(0, _as_int("offset", offset, 0))


def clamp_limit(limit: Any) -> int:
    return min(max(1, _as_int("limit", limit, DEFAULT_LIMIT)), MAX_LIMIT)


def _as_int(name: str, value: Any, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        raise SchemaValidationError(f"'{name}' must be an integer, got {value!r}", identifier=name)
    return value


def _numbers(f: FieldDescriptor, values: tuple[str, ...]) -> list[int | float]:
    try:
        return [coerce_value(f.type, v) for v in values]
    except (TypeError, ValueError):
        raise SchemaValidationError(
            f"Invalid filter value for numeric column '{f.name}': {list(values)!r}",
            identifier=f.name,
        ) from None


class DistinctValueEngine:
    """Runs distinct-value and distinct-row queries against registered tables."""

    def __init__(self, schema: SchemaRegistry, db: PersistenceAdapter):
        self.schema = schema
        self.db = db

    def _conditions(
        self,
        table: TableDescriptor,
        filters: FilterMap,
        exclude: str | None = None,
    ) -> tuple[list[str], list[Any]]:
        # Validate every filter column, including an excluded one
        for column in filters:
            self.schema.require_column(table, column)

        clauses: list[str] = []
        params: list[Any] = []
        for column, values in active_filters(filters, exclude=exclude):
            f = table.get_field(column)
            if get_field_type(f.type).is_numeric:
                clauses.append(self.db.membership(self.db.quote(column)))
                params.append(self.db.membership_param(_numbers(f, values)))
            else:
                column_sql = self.db.text_cast(self.db.quote(column), f.type)
                clauses.append(self.db.membership(column_sql))
                params.append(self.db.membership_param(values))
        return clauses, params

    def get_distinct_values(
        self,
        table: str,
        target_column: str,
        filters: FilterMap | None = None,
    ) -> list[str]:
        """All values ``target_column`` can take under every *other* active filter.

        The target column's own filter is ignored so a dropdown keeps
        offering values the user has not selected yet.
        """
        descriptor = self.schema.require_table(table)
        target = self.schema.require_column(descriptor, target_column)
        clauses, params = self._conditions(descriptor, filters or {}, exclude=target_column)

        target_sql = self.db.quote(target_column)
        clauses.append(f"{target_sql} IS NOT NULL")
        value_sql = self.db.text_cast(target_sql, target.type)
        sql = (
            f"SELECT DISTINCT {value_sql} AS value FROM {self.db.quote(table)} "
            f"WHERE {' AND '.join(clauses)} ORDER BY value"
        )
        rows = self.db.fetch_all(sql, params)

        values: dict[str, None] = {}
        for row in rows:
            value = row["value"]
            if value is None:
                continue
            text = str(value)
            if text == "":
                continue
            values.setdefault(text, None)
        logger.debug(
            "distinct values %s.%s: %d value(s) under %d filter(s)",
            table, target_column, len(values), len(params),
        )
        return list(values)

    def get_distinct_rows(
        self,
        table: str,
        columns: list[str],
        filters: FilterMap | None = None,
        offset: Any = 0,
        limit: Any = DEFAULT_LIMIT,
        order_by: str | None = None,
    ) -> DistinctRowPage:
        """One page of distinct ``columns`` tuples under all active filters.

        Every row carries the size of the whole distinct set, computed once
        with a window count over the deduplicated rows.
        """
        descriptor = self.schema.require_table(table)
        if not columns or not isinstance(columns, list):
            raise SchemaValidationError("'columnList' must be a non-empty list of columns")
        requested = [self.schema.require_column(descriptor, c) for c in columns]
        fields = list({f.name: f for f in requested}.values())
        names = [f.name for f in fields]

        order_column = order_by or names[0]
        if order_column not in names:
            raise SchemaValidationError(
                f"orderBy column '{order_column}' must be one of the requested columns",
                identifier=str(order_column),
            )
        offset = clamp_offset(offset)
        limit = clamp_limit(limit)

        clauses, params = self._conditions(descriptor, filters or {})
        where_sql = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        cols = ", ".join(self.db.quote(n) for n in names)
        inner = f"SELECT DISTINCT {cols} FROM {self.db.quote(table)}{where_sql}"

        # Remaining columns break ties so pages are stable
        order_cols = [order_column] + [n for n in names if n != order_column]
        order_sql = ", ".join(self.db.quote(n) for n in order_cols)
        ph = self.db.placeholder
        sql = (
            f"SELECT {cols}, COUNT(*) OVER () AS {self.db.quote(_TOTAL)} "
            f"FROM ({inner}) AS d ORDER BY {order_sql} LIMIT {ph} OFFSET {ph}"
        )
        rows = self.db.fetch_all(sql, [*params, limit, offset])

        if rows:
            total = int(rows[0][_TOTAL])
        elif offset > 0:
            # Page past the end: the window count has no row to ride on
            count_row = self.db.fetch_one(
                f"SELECT COUNT(*) AS total FROM ({inner}) AS d", params
            )
            total = int(count_row["total"]) if count_row else 0
        else:
            total = 0

        page = [
            DistinctRow(values={n: row[n] for n in names}, total_count=total)
            for row in rows
        ]
        return DistinctRowPage(
            rows=page,
            total_count=total,
            offset=offset,
            limit=limit,
            columns=[
                {"key": f.name, "displayName": f.label, "fieldName": f.name}
                for f in fields
            ],
        )
