"""Repository layer - UI-shaped entities, children, and aggregates."""

from drugforge.repository.aggregates import AggregateRepository
from drugforge.repository.entities import CascadeResult, EntityRepository
from drugforge.repository.shapes import (
    Aggregate,
    ChildEntity,
    Entity,
    EntityTree,
    UIProperty,
)

__all__ = [
    "Aggregate",
    "AggregateRepository",
    "CascadeResult",
    "ChildEntity",
    "Entity",
    "EntityRepository",
    "EntityTree",
    "UIProperty",
]
