"""UI-shaped views of rows: ordered property lists with display metadata."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from drugforge.core.types import get_field_type
from drugforge.metadata.mapping import AggregateMapping, EntityMapping
from drugforge.metadata.schema import TableDescriptor


@dataclass
class UIProperty:
    property_name: str
    property_value: Any
    display_name: str
    ordinal: int
    is_editable: bool
    is_visible: bool
    is_key: bool
    control_type: str
    options: list[str] | None = None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "propertyName": self.property_name,
            "propertyValue": self.property_value,
            "displayName": self.display_name,
            "ordinal": self.ordinal,
            "isEditable": self.is_editable,
            "isVisible": self.is_visible,
            "isKey": self.is_key,
            "controlType": self.control_type,
        }
        if self.options is not None:
            data["options"] = self.options
        return data


@dataclass
class Entity:
    uid: str
    key: str | None
    table_name: str
    display_name: str
    properties: list[UIProperty] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "uid": self.uid,
            "key": self.key,
            "tableName": self.table_name,
            "displayName": self.display_name,
            "properties": [p.to_dict() for p in self.properties],
        }


@dataclass
class ChildEntity(Entity):
    ancestor_uid: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["ancestorUid"] = self.ancestor_uid
        return data


@dataclass
class Aggregate:
    aggregate_type: str
    uid: str
    display_name: str
    ordinal: int
    properties: list[UIProperty] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "aggregateType": self.aggregate_type,
            "uid": self.uid,
            "displayName": self.display_name,
            "ordinal": self.ordinal,
            "properties": [p.to_dict() for p in self.properties],
        }


@dataclass
class EntityTree:
    ancestors: list[Entity]
    children_map: dict[str, list[ChildEntity]]

    def to_dict(self) -> dict[str, Any]:
        return {
            "ancestors": [a.to_dict() for a in self.ancestors],
            "childrenMap": {
                uid: [c.to_dict() for c in children]
                for uid, children in self.children_map.items()
            },
        }


def build_properties(
    table: TableDescriptor,
    row: dict[str, Any],
    key_field: str | None = None,
) -> list[UIProperty]:
    """One UIProperty per table field, in declaration order."""
    properties = []
    for ordinal, f in enumerate(table.fields):
        control = "Select" if f.options else get_field_type(f.type).ui.edit_component
        properties.append(
            UIProperty(
                property_name=f.name,
                property_value=row.get(f.name),
                display_name=f.label,
                ordinal=ordinal,
                is_editable=f.editable and not f.is_primary_key and not f.is_foreign_key,
                is_visible=f.visible,
                is_key=f.is_primary_key or f.name == key_field,
                control_type=control,
                options=list(f.options) if f.options else None,
            )
        )
    return properties


def build_entity(
    mapping: EntityMapping,
    table: TableDescriptor,
    row: dict[str, Any],
    ancestor_uid: str | None = None,
) -> Entity:
    uid = row[table.primary_key]
    display = row.get(mapping.display_field)
    kwargs = dict(
        uid=uid,
        key=row.get(mapping.key_field),
        table_name=mapping.table_name,
        display_name=str(display) if display is not None else str(uid),
        properties=build_properties(table, row, mapping.key_field),
    )
    if mapping.is_child:
        return ChildEntity(ancestor_uid=ancestor_uid, **kwargs)
    return Entity(**kwargs)


def build_aggregate(
    mapping: AggregateMapping,
    table: TableDescriptor,
    row: dict[str, Any],
    ordinal: int,
) -> Aggregate:
    uid = row[table.primary_key]
    display = row.get(mapping.display_field) if mapping.display_field else None
    return Aggregate(
        aggregate_type=mapping.aggregate_type,
        uid=uid,
        display_name=str(display) if display is not None else mapping.display_name,
        ordinal=ordinal,
        properties=build_properties(table, row),
    )
