"""Load table, aggregate, and entity metadata from YAML files."""

import logging
from pathlib import Path
from typing import Any

import yaml

from drugforge.errors import SchemaError
from drugforge.metadata.mapping import (
    AggregateMapping,
    EntityMapping,
    ModelMap,
    RelationshipMapping,
)
from drugforge.metadata.schema import TableDescriptor, table_from_dict

logger = logging.getLogger(__name__)


class MetadataLoader:
    """Loads the data model from a metadata directory.

    Layout::

        metadata/
          tables/*.yaml        one table or view per file
          aggregates/*.yaml    aggregate type -> table mappings
          entities/*.yaml      entity and child-entity mappings
          relationships.yaml   the entity relationship table
    """

    def __init__(self, metadata_path: Path):
        self.metadata_path = metadata_path
        self.model = ModelMap.empty()

    def load_all(self) -> ModelMap:
        """Load everything, cross-check it, and freeze the registries."""
        self._load_tables()
        self._validate_abbreviations()
        self._load_aggregates()
        self._load_entities()
        self._load_relationships()
        self.model.check_references()
        self.model.freeze()
        logger.info(
            "Loaded metadata: %d table(s), %d aggregate type(s), %d entity mapping(s)",
            len(self.model.schema.list_tables()),
            len(self.model.aggregates.list_types()),
            len(self.model.entities),
        )
        return self.model

    def list_tables(self) -> list[str]:
        return self.model.schema.list_tables()

    def get_table(self, name: str) -> TableDescriptor | None:
        return self.model.schema.get_table(name)

    def _iter_documents(self, subdir: str, key: str):
        path = self.metadata_path / subdir
        if not path.exists():
            return
        for yaml_file in sorted(path.glob("*.yaml")):
            with open(yaml_file) as f:
                data = yaml.safe_load(f)
            if data and key in data:
                yield data
            else:
                logger.warning("Skipping %s: no top-level '%s' key", yaml_file, key)

    def _load_tables(self) -> None:
        for data in self._iter_documents("tables", "table"):
            self.model.schema.register_table(table_from_dict(data))

    def _validate_abbreviations(self) -> None:
        """Abbreviations prefix generated keys, so they must be unique."""
        seen: dict[str, str] = {}
        for name in self.model.schema.list_tables():
            abbrev = self.model.schema.get_table(name).abbreviation
            if not abbrev:
                continue
            if len(abbrev) < 2 or len(abbrev) > 5 or not abbrev.isalnum():
                raise SchemaError(
                    f"Table '{name}' abbreviation '{abbrev}' must be 2-5 alphanumeric characters"
                )
            if abbrev in seen:
                raise SchemaError(
                    f"Duplicate abbreviation '{abbrev}' used by both "
                    f"'{seen[abbrev]}' and '{name}'"
                )
            seen[abbrev] = name

    def _load_aggregates(self) -> None:
        for data in self._iter_documents("aggregates", "aggregate"):
            mapping = self._resolve_aggregate(data)
            self.model.aggregates.register_aggregate(mapping.aggregate_type, mapping)

    def _resolve_aggregate(self, data: dict[str, Any]) -> AggregateMapping:
        return AggregateMapping(
            aggregate_type=data["aggregate"],
            table_name=data["table"],
            parent_key_field=data["parentKeyField"],
            default_order=data.get("defaultOrder"),
            display_name=data.get("displayName", data["aggregate"]),
            display_field=data.get("displayField"),
            owner_entity=data.get("ownerEntity"),
            owner_key_field=data.get("ownerKeyField"),
        )

    def _load_entities(self) -> None:
        for data in self._iter_documents("entities", "entity"):
            self.model.register_entity(self._resolve_entity(data))

    def _resolve_entity(self, data: dict[str, Any]) -> EntityMapping:
        table_name = data["entity"]
        display_field = data.get("displayField", "uid")
        table = self.model.schema.get_table(table_name)
        return EntityMapping(
            table_name=table_name,
            kind=data.get("kind", "entity"),
            key_field=data.get("keyField", "uid"),
            display_field=display_field,
            display_name=data.get("displayName") or (table.display_name if table else ""),
            search_fields=tuple(data.get("searchFields", [display_field])),
            aggregates=tuple(data.get("aggregates", [])),
            parent_entity=data.get("parentEntity"),
            parent_fk_field=data.get("parentFkField"),
            parent_key_field=data.get("parentKeyField"),
        )

    def _load_relationships(self) -> None:
        path = self.metadata_path / "relationships.yaml"
        if not path.exists():
            return
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        rel = data.get("relationships")
        if not rel:
            return
        defaults = RelationshipMapping()
        self.model.register_relationship(
            RelationshipMapping(
                table_name=rel.get("table", defaults.table_name),
                ancestor_field=rel.get("ancestorField", defaults.ancestor_field),
                child_field=rel.get("childField", defaults.child_field),
                type_field=rel.get("typeField", defaults.type_field),
                default_type=rel.get("defaultType", defaults.default_type),
            )
        )
