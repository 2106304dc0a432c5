"""Persistence layer - database adapters and operations."""

from drugforge.persistence.adapter import PersistenceAdapter
from drugforge.persistence.config import DatabaseConfig, create_adapter
from drugforge.persistence.sequences import SequenceService

__all__ = ["PersistenceAdapter", "DatabaseConfig", "SequenceService", "create_adapter"]
