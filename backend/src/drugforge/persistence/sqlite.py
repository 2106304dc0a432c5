"""SQLite persistence adapter."""

import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Sequence

from drugforge.errors import QueryExecutionError
from drugforge.metadata.schema import TableDescriptor
from drugforge.persistence.ddl import create_table_sql, create_view_sql

logger = logging.getLogger(__name__)


def _col(name: str) -> str:
    """Return a double-quoted column identifier."""
    return f'"{name}"'


class SQLiteAdapter:
    """Simple SQLite persistence adapter."""

    dialect = "sqlite"
    placeholder = "?"

    def __init__(self, db_path: Path | str = ":memory:"):
        self.db_path = str(db_path)
        self.conn: sqlite3.Connection | None = None
        self._tx_depth = 0

    def connect(self) -> None:
        """Establish database connection."""
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row

    def close(self) -> None:
        """Close database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None

    def _require_conn(self) -> sqlite3.Connection:
        if not self.conn:
            raise RuntimeError("Database not connected")
        return self.conn

    # ------------------------------------------------------------------
    # DDL
    # ------------------------------------------------------------------

    def initialize_table(self, table: TableDescriptor) -> None:
        """Create the table (or view) if it doesn't exist."""
        if table.is_view:
            self.execute(create_view_sql(table, self.dialect))
        else:
            self.execute(create_table_sql(table, self.dialect))

    # ------------------------------------------------------------------
    # Statement execution
    # ------------------------------------------------------------------

    def _run(self, sql: str, params: Sequence[Any]) -> sqlite3.Cursor:
        conn = self._require_conn()
        try:
            return conn.execute(sql, list(params))
        except sqlite3.Error as exc:
            if not self._tx_depth:
                conn.rollback()
            raise _translate_error(exc, sql) from exc

    def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        return [dict(row) for row in self._run(sql, params).fetchall()]

    def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> dict[str, Any] | None:
        row = self._run(sql, params).fetchone()
        return dict(row) if row else None

    def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run a write statement and return the affected row count."""
        cursor = self._run(sql, params)
        if not self._tx_depth:
            self.commit()
        return cursor.rowcount

    def execute_returning(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        rows = [dict(row) for row in self._run(sql, params).fetchall()]
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
        """Set membership against a single JSON-array parameter."""
        return f"{column_sql} IN (SELECT value FROM json_each(?))"

    def membership_param(self, values: Sequence[Any]) -> str:
        return json.dumps(list(values))

    def text_cast(self, column_sql: str, field_type: str) -> str:
        if field_type == "boolean":
            # Booleans are stored as 0/1; render them like PostgreSQL does
            return f"(CASE {column_sql} WHEN 1 THEN 'true' WHEN 0 THEN 'false' END)"
        if field_type == "number":
            # Whole REAL values render as "10", not "10.0", matching PostgreSQL
            return (
                f"(CASE WHEN {column_sql} = CAST({column_sql} AS INTEGER) "
                f"THEN CAST(CAST({column_sql} AS INTEGER) AS TEXT) "
                f"ELSE CAST({column_sql} AS TEXT) END)"
            )
        if field_type == "integer":
            return f"CAST({column_sql} AS TEXT)"
        return column_sql


def _translate_error(exc: sqlite3.Error, sql: str) -> QueryExecutionError:
    detail = str(exc)
    unique = isinstance(exc, sqlite3.IntegrityError) and "UNIQUE constraint failed" in detail
    logger.error("SQLite statement failed: %s | sql=%s", detail, sql)
    return QueryExecutionError(
        "Duplicate value violates a unique constraint" if unique else "Query execution failed",
        detail=detail,
        unique_violation=unique,
    )
