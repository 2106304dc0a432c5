"""Aggregate (collection record) repository.

Every operation resolves the aggregate type through the AggregateRegistry
first; an unknown type fails the whole request with UnknownAggregateType.
"""

import logging
from typing import Any

from drugforge.errors import NotFoundError
from drugforge.metadata.mapping import AggregateMapping, ModelMap
from drugforge.query.builder import QueryBuilder
from drugforge.repository.shapes import Aggregate, build_aggregate

logger = logging.getLogger(__name__)


class AggregateRepository:
    def __init__(self, model: ModelMap, builder: QueryBuilder):
        self.model = model
        self.builder = builder

    def _owner_key(self, mapping: AggregateMapping, entity_uid: str) -> Any:
        """Look up the owning entity; its key when the mapping copies one."""
        if mapping.owner_entity is None:
            return None
        owner = self.model.require_entity(mapping.owner_entity)
        row = self.builder.get(owner.table_name, entity_uid)
        if row is None:
            raise NotFoundError(f"{owner.table_name} '{entity_uid}' not found")
        return row.get(owner.key_field)

    def create_aggregate_record_by_entity_uid(
        self, aggregate_type: str, entity_uid: str, data: dict[str, Any]
    ) -> dict[str, Any]:
        """Insert an aggregate row owned by ``entity_uid``."""
        mapping = self.model.aggregates.require(aggregate_type)
        owner_key = self._owner_key(mapping, entity_uid)

        props = dict(data)
        props[mapping.parent_key_field] = entity_uid
        if mapping.owner_key_field and owner_key is not None:
            props.setdefault(mapping.owner_key_field, owner_key)

        row = self.builder.insert(mapping.table_name, props)
        logger.info("Created %s record for %s", aggregate_type, entity_uid)
        return row

    def update_aggregate_record(
        self, aggregate_type: str, uid: str, data: dict[str, Any]
    ) -> dict[str, Any] | None:
        mapping = self.model.aggregates.require(aggregate_type)
        return self.builder.update(mapping.table_name, uid, data)

    def delete_aggregate_record(self, aggregate_type: str, uid: str) -> int:
        mapping = self.model.aggregates.require(aggregate_type)
        return self.builder.delete(mapping.table_name, uid)

    def list_aggregate_records(
        self, aggregate_type: str, entity_uid: str
    ) -> list[dict[str, Any]]:
        mapping = self.model.aggregates.require(aggregate_type)
        order_by = {mapping.default_order: "asc"} if mapping.default_order else None
        return self.builder.select(
            mapping.table_name,
            where={mapping.parent_key_field: entity_uid},
            order_by=order_by,
        ).rows

    def get_entity_aggregates(self, entity_uid: str, table: str) -> list[Aggregate]:
        """All aggregate rows owned by one entity, grouped in declared type order."""
        entity = self.model.require_entity(table)
        aggregates: list[Aggregate] = []
        for aggregate_type in entity.aggregates:
            mapping = self.model.aggregates.require(aggregate_type)
            descriptor = self.model.schema.require_table(mapping.table_name)
            for row in self.list_aggregate_records(aggregate_type, entity_uid):
                aggregates.append(
                    build_aggregate(mapping, descriptor, row, ordinal=len(aggregates))
                )
        return aggregates
