"""Schema registry: table and field descriptors loaded once at startup.

Every caller-supplied table or column name goes through
``is_valid_identifier`` and an existence check here before it is
interpolated into SQL text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from drugforge.core.types import is_known_type
from drugforge.errors import SchemaError, SchemaValidationError

_IDENTIFIER_RE = re.compile(r"[A-Za-z0-9_]+")


def is_valid_identifier(name: Any) -> bool:
    """True iff ``name`` is a non-empty string of letters, digits, and underscores."""
    return isinstance(name, str) and _IDENTIFIER_RE.fullmatch(name) is not None


@dataclass(frozen=True)
class FieldDescriptor:
    name: str
    type: str = "string"
    display_name: str = ""
    is_primary_key: bool = False
    is_exportable: bool = True
    is_filterable: bool = True
    is_foreign_key: bool = False
    required: bool = False
    max_length: int | None = None
    visible: bool = True
    editable: bool = True
    options: tuple[str, ...] = ()

    @property
    def label(self) -> str:
        return self.display_name or self.name.replace("_", " ").title()


@dataclass(frozen=True)
class TableDescriptor:
    name: str
    fields: tuple[FieldDescriptor, ...]
    display_name: str = ""
    abbreviation: str = ""
    description: str = ""
    view_sql: str | None = None
    exportable: bool = True

    @property
    def is_view(self) -> bool:
        return self.view_sql is not None

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    @property
    def primary_key_fields(self) -> tuple[FieldDescriptor, ...]:
        return tuple(f for f in self.fields if f.is_primary_key)

    @property
    def exportable_fields(self) -> tuple[FieldDescriptor, ...]:
        return tuple(f for f in self.fields if f.is_exportable)

    @property
    def primary_key(self) -> str | None:
        """Name of the single primary key column, or None for keyless views."""
        pks = self.primary_key_fields
        return pks[0].name if pks else None

    def get_field(self, name: str) -> FieldDescriptor | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None


class SchemaRegistry:
    """Holds every TableDescriptor known to the process.

    Populated by the metadata loader, then frozen. Reads need no locking
    because nothing mutates the registry after ``freeze()``.
    """

    def __init__(self) -> None:
        self._tables: dict[str, TableDescriptor] = {}
        self._frozen = False

    is_valid_identifier = staticmethod(is_valid_identifier)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def register_table(self, descriptor: TableDescriptor) -> None:
        """Add a table. Re-registering an identical descriptor is a no-op.

        Raises:
            SchemaError: registry is frozen, the descriptor is malformed, or a
                table of the same name exists with a different shape.
        """
        existing = self._tables.get(descriptor.name)
        if existing is not None:
            if existing == descriptor:
                return
            raise SchemaError(
                f"Table '{descriptor.name}' is already registered with a different shape"
            )
        if self._frozen:
            raise SchemaError(
                f"Cannot register table '{descriptor.name}': schema registry is frozen"
            )
        self._check_descriptor(descriptor)
        self._tables[descriptor.name] = descriptor

    def _check_descriptor(self, descriptor: TableDescriptor) -> None:
        if not is_valid_identifier(descriptor.name):
            raise SchemaError(f"Invalid table name: {descriptor.name!r}")
        if not descriptor.fields:
            raise SchemaError(f"Table '{descriptor.name}' has no fields")

        seen: set[str] = set()
        for f in descriptor.fields:
            if not is_valid_identifier(f.name):
                raise SchemaError(f"Invalid field name in '{descriptor.name}': {f.name!r}")
            if f.name in seen:
                raise SchemaError(f"Duplicate field '{f.name}' in table '{descriptor.name}'")
            if not is_known_type(f.type):
                raise SchemaError(
                    f"Unknown field type '{f.type}' for {descriptor.name}.{f.name}"
                )
            seen.add(f.name)

        pk_count = len(descriptor.primary_key_fields)
        if not descriptor.is_view and pk_count != 1:
            raise SchemaError(
                f"Table '{descriptor.name}' must declare exactly one primary key "
                f"(found {pk_count})"
            )

    def get_table(self, name: str) -> TableDescriptor | None:
        return self._tables.get(name)

    def list_tables(self) -> list[str]:
        return list(self._tables)

    def get_exportable_tables(self) -> list[TableDescriptor]:
        return [t for t in self._tables.values() if t.exportable]

    def require_table(self, name: Any) -> TableDescriptor:
        """Return the descriptor for ``name`` or raise SchemaValidationError."""
        if not is_valid_identifier(name):
            raise SchemaValidationError(f"Invalid table name: {name!r}", identifier=str(name))
        table = self._tables.get(name)
        if table is None:
            raise SchemaValidationError(f"Unknown table '{name}'", identifier=name)
        return table

    def require_column(self, table: str | TableDescriptor, column: Any) -> FieldDescriptor:
        """Return the field for ``table.column`` or raise SchemaValidationError."""
        descriptor = table if isinstance(table, TableDescriptor) else self.require_table(table)
        if not is_valid_identifier(column):
            raise SchemaValidationError(
                f"Invalid column name: {column!r}", identifier=str(column)
            )
        field_desc = descriptor.get_field(column)
        if field_desc is None:
            raise SchemaValidationError(
                f"Unknown column '{column}' on table '{descriptor.name}'", identifier=column
            )
        return field_desc

    def get_field(self, table: str, column: str) -> FieldDescriptor | None:
        descriptor = self._tables.get(table)
        return descriptor.get_field(column) if descriptor else None

    def get_exportable_fields(self, table: str) -> tuple[FieldDescriptor, ...]:
        return self.require_table(table).exportable_fields

    def get_primary_key_fields(self, table: str) -> tuple[FieldDescriptor, ...]:
        return self.require_table(table).primary_key_fields


def table_from_dict(data: dict[str, Any]) -> TableDescriptor:
    """Build a TableDescriptor from a parsed ``tables/*.yaml`` document."""
    fields = tuple(field_from_dict(f) for f in data.get("fields", []))
    return TableDescriptor(
        name=data["table"],
        fields=fields,
        display_name=data.get("displayName", ""),
        abbreviation=str(data.get("abbreviation", "")).upper(),
        description=data.get("description", ""),
        view_sql=data.get("viewSql"),
        exportable=data.get("exportable", True),
    )


def field_from_dict(data: dict[str, Any]) -> FieldDescriptor:
    primary_key = data.get("primaryKey", False)
    return FieldDescriptor(
        name=data["name"],
        type=data.get("type", "string"),
        display_name=data.get("displayName", ""),
        is_primary_key=primary_key,
        is_exportable=data.get("exportable", not primary_key),
        is_filterable=data.get("filterable", True),
        is_foreign_key=data.get("foreignKey", False),
        required=data.get("required", False),
        max_length=data.get("maxLength"),
        visible=data.get("visible", not primary_key),
        editable=data.get("editable", not primary_key),
        options=tuple(str(o) for o in data.get("options", [])),
    )
