"""Entity and child-entity repository.

Presents entity tables as UI-shaped Entities and delegates all SQL to
the QueryBuilder. Owns the two multi-step writes: child creation (child
row plus relationship row, always in one transaction) and the cascading
delete (aggregates, then relationships, then the row itself).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from drugforge.errors import (
    NotFoundError,
    OrphanedRelationshipError,
    PartialCascadeFailure,
    QueryExecutionError,
    SchemaValidationError,
)
from drugforge.metadata.mapping import EntityMapping, ModelMap
from drugforge.persistence.sequences import SequenceService
from drugforge.query.builder import QueryBuilder
from drugforge.repository.shapes import ChildEntity, Entity, EntityTree, build_entity

logger = logging.getLogger(__name__)

RELATIONSHIPS_STEP = "relationships"
ROW_STEP = "row"


@dataclass
class CascadeResult:
    """Rows removed by each step of a cascading delete, in execution order."""

    table: str
    uid: str
    steps: list[tuple[str, int]] = field(default_factory=list)

    @property
    def rows_affected(self) -> int:
        """Rows removed from the entity table itself (0 or 1)."""
        for step, count in self.steps:
            if step == ROW_STEP:
                return count
        return 0


class EntityRepository:
    """Entity CRUD, tree assembly, child creation, and relationship maintenance."""

    def __init__(
        self,
        model: ModelMap,
        builder: QueryBuilder,
        keys: SequenceService | None = None,
        atomic_cascade: bool = False,
    ):
        self.model = model
        self.builder = builder
        self.db = builder.db
        self.keys = keys
        self.atomic_cascade = atomic_cascade

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _pk(self, table: str) -> str:
        return self.model.schema.require_table(table).primary_key

    def _to_entity(
        self, mapping: EntityMapping, row: dict[str, Any], ancestor_uid: str | None = None
    ) -> Entity:
        table = self.model.schema.require_table(mapping.table_name)
        return build_entity(mapping, table, row, ancestor_uid=ancestor_uid)

    def _assign_key(self, mapping: EntityMapping, props: dict[str, Any]) -> None:
        """Fill in the key field from the table's sequence when it is absent."""
        if props.get(mapping.key_field) not in (None, ""):
            return
        table = self.model.schema.require_table(mapping.table_name)
        if self.keys is None or not table.abbreviation:
            return
        props[mapping.key_field] = self.keys.next_key(mapping.table_name, table.abbreviation)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_entity_by_key(self, key: str, table: str) -> Entity | None:
        mapping = self.model.require_entity(table)
        row = self.builder.get_by(table, mapping.key_field, key)
        return self._to_entity(mapping, row) if row else None

    def get_entity_by_uid(self, uid: str, table: str) -> Entity | None:
        mapping = self.model.require_entity(table)
        row = self.builder.get(table, uid)
        return self._to_entity(mapping, row) if row else None

    def list_entities(self, table: str) -> list[Entity]:
        mapping = self.model.require_entity(table)
        result = self.builder.select(table, order_by={mapping.display_field: "asc"})
        return [self._to_entity(mapping, row) for row in result.rows]

    def search_entities(self, term: str | None, table: str) -> list[Entity]:
        """Case-insensitive substring match over the mapping's search fields.

        A blank term lists every entity.
        """
        mapping = self.model.require_entity(table)
        if term is None or not term.strip():
            return self.list_entities(table)
        rows = self.builder.search(
            table,
            list(mapping.search_fields or (mapping.display_field,)),
            term.strip(),
            order_by={mapping.display_field: "asc"},
        )
        return [self._to_entity(mapping, row) for row in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_entity(self, props: dict[str, Any], table: str) -> Entity:
        mapping = self.model.require_entity(table)
        props = dict(props)
        self._assign_key(mapping, props)
        row = self.builder.insert(table, props)
        logger.info("Created %s %s", table, row[self._pk(table)])
        return self._to_entity(mapping, row)

    def update_entity(self, key: str, props: dict[str, Any], table: str) -> Entity | None:
        mapping = self.model.require_entity(table)
        existing = self.builder.get_by(table, mapping.key_field, key)
        if existing is None:
            return None
        row = self.builder.update(table, existing[self._pk(table)], props)
        return self._to_entity(mapping, row) if row else None

    def delete_entity(self, key: str, table: str) -> CascadeResult | None:
        """Delete by key with the full cascade; None when the key is unknown."""
        mapping = self.model.require_entity(table)
        existing = self.builder.get_by(table, mapping.key_field, key)
        if existing is None:
            return None
        return self.delete_entity_by_uid(existing[self._pk(table)], table)

    def delete_entity_by_uid(self, uid: str, table: str) -> CascadeResult:
        """Delete an entity or child entity and everything that hangs off it.

        Steps run strictly in order: each owned aggregate table (in the
        mapping's declared order), relationship rows naming the uid on
        either side, then the row itself.

        Without ``atomic_cascade`` each step commits on its own; a failure
        after at least one step raises PartialCascadeFailure listing what
        was already removed. With ``atomic_cascade`` the steps share one
        transaction and a failure rolls everything back.
        """
        mapping = self.model.require_entity(table)
        steps = self._cascade_steps(mapping, uid)
        result = CascadeResult(table=table, uid=uid)

        if self.atomic_cascade:
            with self.db.transaction():
                for name, run in steps:
                    result.steps.append((name, run()))
        else:
            for name, run in steps:
                try:
                    result.steps.append((name, run()))
                except QueryExecutionError as exc:
                    if not result.steps:
                        raise
                    completed = [step for step, _ in result.steps]
                    logger.error(
                        "Cascade delete of %s %s failed at %s after %s",
                        table, uid, name, completed,
                    )
                    raise PartialCascadeFailure(table, uid, completed, name, exc) from exc

        logger.info("Deleted %s %s: %s", table, uid, result.steps)
        return result

    def _cascade_steps(self, mapping: EntityMapping, uid: str) -> list[tuple[str, Any]]:
        steps: list[tuple[str, Any]] = []
        for aggregate_type in mapping.aggregates:
            agg = self.model.aggregates.require(aggregate_type)
            steps.append((
                agg.table_name,
                lambda agg=agg: self.builder.delete_where(
                    agg.table_name, {agg.parent_key_field: uid}
                ),
            ))
        rel = self.model.relationship
        if rel is not None:
            steps.append((
                RELATIONSHIPS_STEP,
                lambda: self.builder.delete_where(
                    rel.table_name,
                    {rel.ancestor_field: uid, rel.child_field: uid},
                    match="any",
                ),
            ))
        steps.append((ROW_STEP, lambda: self.builder.delete(mapping.table_name, uid)))
        return steps

    # ------------------------------------------------------------------
    # Tree and children
    # ------------------------------------------------------------------

    def _relationship_rows(self, where: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        rel = self.model.require_relationship()
        return self.builder.select(rel.table_name, where=where).rows

    def get_entity_tree_data(self) -> EntityTree:
        """Ancestors plus a map of ancestor uid -> children.

        Joined in memory: the relationship table is an independent index,
        so rows whose ancestor or child no longer exists are skipped and
        logged instead of failing the tree.
        """
        rel = self.model.require_relationship()

        ancestors: list[Entity] = []
        ancestors_by_uid: dict[str, Entity] = {}
        for mapping in self.model.entity_tables():
            for entity in self.list_entities(mapping.table_name):
                ancestors.append(entity)
                ancestors_by_uid[entity.uid] = entity

        child_rows: dict[str, tuple[EntityMapping, dict[str, Any]]] = {}
        for mapping in self.model.child_tables():
            pk = self._pk(mapping.table_name)
            for row in self.builder.select(mapping.table_name).rows:
                child_rows[row[pk]] = (mapping, row)

        children_map: dict[str, list[ChildEntity]] = {}
        seen: set[tuple[str, str]] = set()
        orphaned = 0
        for row in self._relationship_rows():
            ancestor_uid = row[rel.ancestor_field]
            child_uid = row[rel.child_field]
            if ancestor_uid not in ancestors_by_uid or child_uid not in child_rows:
                orphaned += 1
                logger.debug(
                    "Dropping orphaned relationship %s (%s -> %s)",
                    row.get("uid"), ancestor_uid, child_uid,
                )
                continue
            if (ancestor_uid, child_uid) in seen:
                continue
            seen.add((ancestor_uid, child_uid))
            mapping, child_row = child_rows[child_uid]
            children_map.setdefault(ancestor_uid, []).append(
                self._to_entity(mapping, child_row, ancestor_uid=ancestor_uid)
            )

        for children in children_map.values():
            children.sort(key=lambda c: c.display_name)
        if orphaned:
            logger.warning(
                "Entity tree skipped %d orphaned relationship row(s); "
                "run 'drugforge maintenance orphans' to inspect them",
                orphaned,
            )
        return EntityTree(ancestors=ancestors, children_map=children_map)

    def get_children(self, entity_key: str, table: str) -> list[ChildEntity] | None:
        """Children linked to one entity; None when the entity does not exist."""
        parent = self.get_entity_by_key(entity_key, table)
        if parent is None:
            return None
        rel = self.model.require_relationship()
        child_uids = [
            row[rel.child_field]
            for row in self._relationship_rows({rel.ancestor_field: parent.uid})
        ]
        if not child_uids:
            return []

        children: list[ChildEntity] = []
        for mapping in self.model.child_tables(parent_entity=table):
            pk = self._pk(mapping.table_name)
            rows = self.builder.select(
                mapping.table_name,
                where={pk: child_uids},
                order_by={mapping.display_field: "asc"},
            ).rows
            children.extend(
                self._to_entity(mapping, row, ancestor_uid=parent.uid) for row in rows
            )
        return children

    def create_child_entity(
        self, parent_key: str, props: dict[str, Any], child_table: str
    ) -> ChildEntity:
        """Insert a child row and its relationship row in one transaction.

        Raises:
            NotFoundError: no parent entity has ``parent_key``.
        """
        mapping = self.model.require_entity(child_table)
        if not mapping.is_child:
            raise SchemaValidationError(
                f"Table '{child_table}' is not a child entity table", identifier=child_table
            )
        parent = self.get_entity_by_key(parent_key, mapping.parent_entity)
        if parent is None:
            raise NotFoundError(
                f"Parent {mapping.parent_entity} '{parent_key}' not found"
            )

        props = dict(props)
        if mapping.parent_fk_field:
            props[mapping.parent_fk_field] = parent.uid
        if mapping.parent_key_field:
            props[mapping.parent_key_field] = parent.key
        # Keys commit on their own, so draw one before the transaction opens
        self._assign_key(mapping, props)

        rel = self.model.require_relationship()
        with self.db.transaction():
            row = self.builder.insert(child_table, props)
            link = {rel.ancestor_field: parent.uid, rel.child_field: row[self._pk(child_table)]}
            if rel.type_field:
                link[rel.type_field] = rel.default_type
            self.builder.insert(rel.table_name, link)

        logger.info("Created %s %s under %s", child_table, link[rel.child_field], parent.uid)
        return self._to_entity(mapping, row, ancestor_uid=parent.uid)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def _uids(self, mappings: list[EntityMapping]) -> set[str]:
        uids: set[str] = set()
        for mapping in mappings:
            pk = self._pk(mapping.table_name)
            rows = self.builder.select(mapping.table_name, columns=[pk]).rows
            uids.update(row[pk] for row in rows)
        return uids

    def find_orphaned_relationships(self) -> list[dict[str, Any]]:
        """Relationship rows whose ancestor or child no longer exists."""
        rel = self.model.require_relationship()
        ancestor_uids = self._uids(self.model.entity_tables())
        child_uids = self._uids(self.model.child_tables())
        orphans = []
        for row in self._relationship_rows():
            missing = []
            if row[rel.ancestor_field] not in ancestor_uids:
                missing.append("ancestor")
            if row[rel.child_field] not in child_uids:
                missing.append("child")
            if missing:
                orphans.append({**row, "missing": missing})
        return orphans

    def check_relationships(self) -> None:
        """Raise OrphanedRelationshipError if any relationship row dangles."""
        orphans = self.find_orphaned_relationships()
        if orphans:
            raise OrphanedRelationshipError(orphans)

    def delete_orphaned_relationships(self) -> int:
        rel = self.model.require_relationship()
        pk = self._pk(rel.table_name)
        orphan_uids = [row[pk] for row in self.find_orphaned_relationships()]
        if not orphan_uids:
            return 0
        deleted = self.builder.delete_where(rel.table_name, {pk: orphan_uids})
        logger.info("Deleted %d orphaned relationship row(s)", deleted)
        return deleted
