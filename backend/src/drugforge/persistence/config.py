"""Database URL resolution and adapter factory."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from drugforge.persistence.adapter import PersistenceAdapter

_SQLITE_PREFIX = "sqlite:///"
_PASSWORD_RE = re.compile(r"(://[^:/@]+:)[^@]*@")


@dataclass
class DatabaseConfig:
    """Where the catalog lives: a ``sqlite:///`` or ``postgresql://`` URL.

    ``postgresql+psycopg://`` URLs are accepted too; the adapter drops the
    driver suffix before connecting.
    """

    url: str

    @classmethod
    def from_env(cls, base_path: Path | None = None) -> DatabaseConfig:
        """Resolve the URL from the environment.

        ``DATABASE_URL`` wins. Otherwise ``DRUGFORGE_DB_PATH`` names a SQLite
        file. Failing both, the file is ``<base_path>/data/drugforge.db``, or
        ``drugforge.db`` in the working directory when no base path is given.
        """
        url = os.environ.get("DATABASE_URL")
        if url:
            return cls(url=url)
        db_path = os.environ.get("DRUGFORGE_DB_PATH")
        if db_path:
            return cls(url=f"{_SQLITE_PREFIX}{db_path}")
        if base_path:
            return cls(url=f"{_SQLITE_PREFIX}{base_path / 'data' / 'drugforge.db'}")
        return cls(url=f"{_SQLITE_PREFIX}drugforge.db")

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def is_postgresql(self) -> bool:
        return self.url.startswith("postgresql")

    @property
    def dialect(self) -> str:
        return "postgresql" if self.is_postgresql else "sqlite"

    @property
    def sqlite_path(self) -> str | None:
        """SQLite database file, or None for in-memory and non-SQLite URLs."""
        if not self.is_sqlite:
            return None
        path = self.url[len(_SQLITE_PREFIX):]
        return None if path in ("", ":memory:") else path

    @property
    def redacted_url(self) -> str:
        """The URL with any password masked, for log lines."""
        return _PASSWORD_RE.sub(r"\1***@", self.url)


def create_adapter(config: DatabaseConfig) -> PersistenceAdapter:
    """Build an unconnected adapter for *config*.

    Raises ValueError when the URL scheme is neither SQLite nor PostgreSQL.
    """
    if config.is_sqlite:
        from drugforge.persistence.sqlite import SQLiteAdapter

        return SQLiteAdapter(config.sqlite_path or ":memory:")

    if config.is_postgresql:
        from drugforge.persistence.postgresql import PostgreSQLAdapter

        return PostgreSQLAdapter(config.url)

    raise ValueError(f"Unsupported database URL scheme: {config.url}")
