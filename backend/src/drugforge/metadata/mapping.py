"""Aggregate, entity, and relationship mappings layered on the schema registry."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from drugforge.errors import SchemaError, SchemaValidationError, UnknownAggregateType
from drugforge.metadata.schema import SchemaRegistry, is_valid_identifier


@dataclass(frozen=True)
class AggregateMapping:
    """Maps an aggregate type name to the table holding its rows.

    ``parent_key_field`` holds the owning entity's uid. When
    ``owner_key_field`` is set, the owner's human-readable key is copied
    into that column on create.
    """

    aggregate_type: str
    table_name: str
    parent_key_field: str
    default_order: str | None = None
    display_name: str = ""
    display_field: str | None = None
    owner_entity: str | None = None
    owner_key_field: str | None = None


class AggregateRegistry:
    """Closed map of aggregate type name -> AggregateMapping."""

    def __init__(self, schema: SchemaRegistry):
        self.schema = schema
        self._mappings: dict[str, AggregateMapping] = {}
        self._frozen = False

    def freeze(self) -> None:
        self._frozen = True

    def register_aggregate(self, type_name: str, mapping: AggregateMapping) -> None:
        """Register ``mapping`` under ``type_name``.

        Raises:
            SchemaError: the table or one of its columns is not registered, the
                name differs from ``mapping.aggregate_type``, or the type is
                already registered with a different mapping.
        """
        existing = self._mappings.get(type_name)
        if existing is not None:
            if existing == mapping:
                return
            raise SchemaError(
                f"Aggregate type '{type_name}' is already registered with a different mapping"
            )
        if self._frozen:
            raise SchemaError(
                f"Cannot register aggregate '{type_name}': aggregate registry is frozen"
            )
        if not is_valid_identifier(type_name):
            raise SchemaError(f"Invalid aggregate type name: {type_name!r}")
        if mapping.aggregate_type != type_name:
            raise SchemaError(
                f"Aggregate mapping name '{mapping.aggregate_type}' does not match '{type_name}'"
            )

        table = self.schema.get_table(mapping.table_name)
        if table is None:
            raise SchemaError(
                f"Aggregate '{type_name}' references unknown table '{mapping.table_name}'"
            )
        for column in (
            mapping.parent_key_field,
            mapping.default_order,
            mapping.display_field,
            mapping.owner_key_field,
        ):
            if column is not None and table.get_field(column) is None:
                raise SchemaError(
                    f"Aggregate '{type_name}' references unknown column "
                    f"'{mapping.table_name}.{column}'"
                )
        self._mappings[type_name] = mapping

    def resolve(self, type_name: str) -> AggregateMapping | None:
        return self._mappings.get(type_name)

    def require(self, type_name: str) -> AggregateMapping:
        """Resolve ``type_name`` or raise UnknownAggregateType. Never falls back to a default."""
        mapping = self._mappings.get(type_name)
        if mapping is None:
            raise UnknownAggregateType(type_name)
        return mapping

    def list_types(self) -> list[str]:
        return list(self._mappings)

    def for_table(self, table_name: str) -> list[AggregateMapping]:
        return [m for m in self._mappings.values() if m.table_name == table_name]


@dataclass(frozen=True)
class EntityMapping:
    """How one table is presented as an Entity (top-level) or ChildEntity.

    ``aggregates`` lists owned aggregate types in cascade-delete order.
    For child tables, ``parent_entity`` names the ancestor table;
    ``parent_fk_field`` receives the ancestor uid and ``parent_key_field``
    the ancestor key when the child row carries them.
    """

    table_name: str
    kind: str = "entity"
    key_field: str = "uid"
    display_field: str = "uid"
    display_name: str = ""
    search_fields: tuple[str, ...] = ()
    aggregates: tuple[str, ...] = ()
    parent_entity: str | None = None
    parent_fk_field: str | None = None
    parent_key_field: str | None = None

    @property
    def is_child(self) -> bool:
        return self.kind == "child"


@dataclass(frozen=True)
class RelationshipMapping:
    """The entity relationship table linking ancestors to children."""

    table_name: str = "entity_relationships"
    ancestor_field: str = "ancestor_uid"
    child_field: str = "child_uid"
    type_field: str | None = "relationship_type"
    default_type: str = "parent_child"


@dataclass
class ModelMap:
    """Everything the repositories need to know about the data model."""

    schema: SchemaRegistry
    aggregates: AggregateRegistry
    entities: dict[str, EntityMapping] = field(default_factory=dict)
    relationship: RelationshipMapping | None = None

    @classmethod
    def empty(cls) -> ModelMap:
        schema = SchemaRegistry()
        return cls(schema=schema, aggregates=AggregateRegistry(schema))

    def register_entity(self, mapping: EntityMapping) -> None:
        if self.schema.frozen:
            raise SchemaError(
                f"Cannot register entity '{mapping.table_name}': model is frozen"
            )
        table = self.schema.get_table(mapping.table_name)
        if table is None:
            raise SchemaError(f"Entity references unknown table '{mapping.table_name}'")
        if mapping.kind not in ("entity", "child"):
            raise SchemaError(
                f"Entity '{mapping.table_name}' has invalid kind '{mapping.kind}'"
            )
        for column in (
            mapping.key_field,
            mapping.display_field,
            mapping.parent_fk_field,
            mapping.parent_key_field,
            *mapping.search_fields,
        ):
            if column is not None and table.get_field(column) is None:
                raise SchemaError(
                    f"Entity '{mapping.table_name}' references unknown column '{column}'"
                )
        for aggregate_type in mapping.aggregates:
            if self.aggregates.resolve(aggregate_type) is None:
                raise SchemaError(
                    f"Entity '{mapping.table_name}' references unknown aggregate "
                    f"type '{aggregate_type}'"
                )
        if mapping.is_child and not mapping.parent_entity:
            raise SchemaError(f"Child entity '{mapping.table_name}' has no parentEntity")
        self.entities[mapping.table_name] = mapping

    def register_relationship(self, mapping: RelationshipMapping) -> None:
        table = self.schema.get_table(mapping.table_name)
        if table is None:
            raise SchemaError(
                f"Relationship mapping references unknown table '{mapping.table_name}'"
            )
        for column in (mapping.ancestor_field, mapping.child_field, mapping.type_field):
            if column is not None and table.get_field(column) is None:
                raise SchemaError(
                    f"Relationship mapping references unknown column "
                    f"'{mapping.table_name}.{column}'"
                )
        self.relationship = mapping

    def check_references(self) -> None:
        """Cross-checks that need every entity registered first."""
        for mapping in self.entities.values():
            if mapping.is_child:
                parent = self.entities.get(mapping.parent_entity or "")
                if parent is None or parent.is_child:
                    raise SchemaError(
                        f"Child entity '{mapping.table_name}' has unknown parent "
                        f"entity '{mapping.parent_entity}'"
                    )
        for type_name in self.aggregates.list_types():
            owner = self.aggregates.require(type_name).owner_entity
            if owner is not None and owner not in self.entities:
                raise SchemaError(
                    f"Aggregate '{type_name}' has unknown owner entity '{owner}'"
                )

    def freeze(self) -> None:
        self.schema.freeze()
        self.aggregates.freeze()

    def get_entity(self, table_name: str) -> EntityMapping | None:
        return self.entities.get(table_name)

    def require_entity(self, table_name: Any) -> EntityMapping:
        self.schema.require_table(table_name)
        mapping = self.entities.get(table_name)
        if mapping is None:
            raise SchemaValidationError(
                f"Table '{table_name}' is not an entity table", identifier=table_name
            )
        return mapping

    def require_relationship(self) -> RelationshipMapping:
        if self.relationship is None:
            raise SchemaError("No relationship table is configured")
        return self.relationship

    def entity_tables(self) -> list[EntityMapping]:
        return [m for m in self.entities.values() if not m.is_child]

    def child_tables(self, parent_entity: str | None = None) -> list[EntityMapping]:
        return [
            m for m in self.entities.values()
            if m.is_child and (parent_entity is None or m.parent_entity == parent_entity)
        ]
