"""PostgreSQL persistence adapter.

Uses psycopg v3 (psycopg[binary]>=3.1.0) for database access.
Mirrors SQLiteAdapter method-for-method with PostgreSQL-specific SQL:
  - %s placeholders instead of ?
  - ``col = ANY(%s)`` with a list parameter for set membership
  - CAST(... AS TEXT) when comparing non-text columns to filter strings
  - dict_row cursor factory for dict-based row access

Identifier quoting strategy
----------------------------
PostgreSQL folds unquoted identifiers to lowercase and reserves words
such as ``row`` in some positions, so every table name and column name
in DML is double-quoted via ``quote()``.

Because ``%`` introduces a placeholder, SQL text passed to this adapter
must not contain literal percent signs; LIKE patterns are always bound
as parameters.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Sequence

from drugforge.errors import QueryExecutionError
from drugforge.metadata.schema import TableDescriptor
from drugforge.persistence.ddl import create_table_sql, create_view_sql

logger = logging.getLogger(__name__)


def _col(name: str) -> str:
    """Return a double-quoted PostgreSQL column identifier.

    Example: _col("generic_name") -> '"generic_name"'
    """
    return f'"{name}"'


class PostgreSQLAdapter:
    """PostgreSQL persistence adapter using psycopg v3."""

    dialect = "postgresql"
    placeholder = "%s"

    def __init__(self, url: str):
        # Accept both postgresql:// and postgresql+psycopg:// URLs.
        # psycopg.connect() wants a plain libpq DSN or postgres:// URL,
        # so strip the +psycopg driver suffix when present.
        self.url = url.replace("postgresql+psycopg://", "postgresql://")
        self.conn: Any = None
        self._tx_depth = 0

    def connect(self) -> None:
        """Establish database connection."""
        import psycopg
        from psycopg.rows import dict_row

        self.conn = psycopg.connect(self.url, row_factory=dict_row)
        self.conn.autocommit = False

    def close(self) -> None:
        """Close database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None

    def _require_conn(self) -> Any:
        if not self.conn:
            raise RuntimeError("Database not connected")
        return self.conn

    # ------------------------------------------------------------------
    # DDL
    # ------------------------------------------------------------------

    def initialize_table(self, table: TableDescriptor) -> None:
        """Create the table if it doesn't exist, or (re)create the view."""
        if table.is_view:
            self.execute(create_view_sql(table, self.dialect))
        else:
            self.execute(create_table_sql(table, self.dialect))

    # ------------------------------------------------------------------
    # Statement execution
    # ------------------------------------------------------------------

    def _run(self, sql: str, params: Sequence[Any]) -> Any:
        import psycopg

        conn = self._require_conn()
        try:
            return conn.execute(sql, list(params))
        except psycopg.Error as exc:
            # A failed statement aborts the transaction; outside an explicit
            # transaction block, reset so the next statement can run.
            if not self._tx_depth:
                conn.rollback()
            raise _translate_error(exc, sql) from exc

    def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        rows = self._run(sql, params).fetchall()
        if not self._tx_depth:
            # End the implicit read transaction so the next read sees fresh data
            self.commit()
        return list(rows)

    def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> dict[str, Any] | None:
        row = self._run(sql, params).fetchone()
        if not self._tx_depth:
            self.commit()
        return row

    def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run a write statement and return the affected row count."""
        cursor = self._run(sql, params)
        if not self._tx_depth:
            self.commit()
        return cursor.rowcount

    def execute_returning(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        rows = list(self._run(sql, params).fetchall())
        if not self._tx_depth:
            self.commit()
        return rows

    def commit(self) -> None:
        self._require_conn().commit()

    def rollback(self) -> None:
        self._require_conn().rollback()

    @property
    def in_transaction(self) -> bool:
        return self._tx_depth > 0

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Group statements into one commit; nested blocks join the outer one."""
        self._require_conn()
        self._tx_depth += 1
        try:
            yield
        except BaseException:
            self._tx_depth -= 1
            if not self._tx_depth:
                self.rollback()
            raise
        else:
            self._tx_depth -= 1
            if not self._tx_depth:
                self.commit()

    # ------------------------------------------------------------------
    # SQL fragments
    # ------------------------------------------------------------------

    def quote(self, name: str) -> str:
        return _col(name)

    def membership(self, column_sql: str) -> str:
        """Set membership against a single array parameter."""
        return f"{column_sql} = ANY(%s)"

    def membership_param(self, values: Sequence[Any]) -> list[Any]:
        return list(values)

    def text_cast(self, column_sql: str, field_type: str) -> str:
        if field_type in ("uuid", "key", "string", "text", "picklist"):
            return column_sql
        return f"CAST({column_sql} AS TEXT)"


def _translate_error(exc: Exception, sql: str) -> QueryExecutionError:
    from psycopg import errors

    detail = str(exc)
    unique = isinstance(exc, errors.UniqueViolation)
    logger.error("PostgreSQL statement failed: %s | sql=%s", detail, sql)
    return QueryExecutionError(
        "Duplicate value violates a unique constraint" if unique else "Query execution failed",
        detail=detail,
        unique_violation=unique,
    )
