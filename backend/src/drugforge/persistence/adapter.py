"""PersistenceAdapter Protocol: shared interface for all database adapters."""

from contextlib import AbstractContextManager
from typing import Any, Protocol, Sequence, runtime_checkable

from drugforge.metadata.schema import TableDescriptor


@runtime_checkable
class PersistenceAdapter(Protocol):
    """Interface all persistence adapters must implement.

    Statements run outside ``transaction()`` commit on their own. Inside a
    ``transaction()`` block nothing commits until the block exits cleanly;
    an exception rolls the whole block back.

    Driver exceptions surface as ``QueryExecutionError``.
    """

    # Raw connection handle (sqlite3.Connection or psycopg.Connection).
    conn: Any
    # "sqlite" or "postgresql"
    dialect: str
    # Positional parameter marker: "?" or "%s"
    placeholder: str

    def connect(self) -> None: ...

    def close(self) -> None: ...

    def initialize_table(self, table: TableDescriptor) -> None: ...

    def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]: ...

    def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> dict[str, Any] | None: ...

    def execute(self, sql: str, params: Sequence[Any] = ()) -> int: ...

    def execute_returning(
        self, sql: str, params: Sequence[Any] = ()
    ) -> list[dict[str, Any]]: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...

    def transaction(self) -> AbstractContextManager[None]: ...

    @property
    def in_transaction(self) -> bool: ...

    def quote(self, name: str) -> str: ...

    def membership(self, column_sql: str) -> str: ...

    def membership_param(self, values: Sequence[Any]) -> Any: ...

    def text_cast(self, column_sql: str, field_type: str) -> str: ...
