"""CREATE TABLE / CREATE VIEW statements generated from TableDescriptors.

Uses SQLAlchemy Core only as a DDL compiler; statements are executed
through the persistence adapter.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Column, Float, Integer, MetaData, String, Table, Text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine.interfaces import Dialect
from sqlalchemy.schema import CreateTable
from sqlalchemy.types import TypeEngine

from drugforge.core.types import get_storage_type
from drugforge.metadata.schema import FieldDescriptor, SchemaRegistry, TableDescriptor

_DIALECTS: dict[str, type[Dialect]] = {
    "sqlite": sqlite.dialect,
    "postgresql": postgresql.dialect,
}

# Dates are stored as ISO strings
_STORAGE_TYPES: dict[str, type[TypeEngine]] = {
    "TEXT": Text,
    "INTEGER": Integer,
    "REAL": Float,
}


def _column_type(field: FieldDescriptor) -> TypeEngine:
    if field.type == "boolean":
        return Boolean()
    if field.type == "uuid":
        return String(36)
    storage = get_storage_type(field.type)
    if storage == "TEXT" and field.max_length:
        return String(field.max_length)
    return _STORAGE_TYPES.get(storage, Text)()


def get_dialect(name: str) -> Dialect:
    try:
        return _DIALECTS[name]()
    except KeyError:
        raise ValueError(f"Unsupported SQL dialect: {name}") from None


def build_table(descriptor: TableDescriptor, metadata: MetaData | None = None) -> Table:
    """Build a SQLAlchemy Table mirroring ``descriptor``."""
    columns = [
        Column(
            f.name,
            _column_type(f),
            primary_key=f.is_primary_key,
            nullable=not (f.required or f.is_primary_key),
        )
        for f in descriptor.fields
    ]
    return Table(descriptor.name, metadata or MetaData(), *columns)


def create_table_sql(descriptor: TableDescriptor, dialect: str) -> str:
    if descriptor.is_view:
        raise ValueError(f"'{descriptor.name}' is a view; use create_view_sql")
    statement = CreateTable(build_table(descriptor), if_not_exists=True)
    return str(statement.compile(dialect=get_dialect(dialect))).strip()


def create_view_sql(descriptor: TableDescriptor, dialect: str) -> str:
    if not descriptor.is_view:
        raise ValueError(f"'{descriptor.name}' is not a view")
    name = get_dialect(dialect).identifier_preparer.quote(descriptor.name)
    body = descriptor.view_sql.strip().rstrip(";")
    if dialect == "postgresql":
        return f"CREATE OR REPLACE VIEW {name} AS {body}"
    return f"CREATE VIEW IF NOT EXISTS {name} AS {body}"


def create_schema_sql(schema: SchemaRegistry, dialect: str) -> list[str]:
    """All DDL for the registry: tables first, then views that select from them."""
    tables = [schema.get_table(name) for name in schema.list_tables()]
    statements = [create_table_sql(t, dialect) for t in tables if not t.is_view]
    statements.extend(create_view_sql(t, dialect) for t in tables if t.is_view)
    return statements
