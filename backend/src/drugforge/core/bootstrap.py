"""Initialize drugforge services for the API process and the CLI.

Loads metadata, connects the database, creates tables and views, and
wires the query and repository layers together. Returns a services
container; api/app.py copies it into module globals.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from drugforge.metadata.loader import MetadataLoader
from drugforge.metadata.mapping import ModelMap
from drugforge.metadata.validator import validate_metadata_dir
from drugforge.persistence import (
    DatabaseConfig,
    PersistenceAdapter,
    SequenceService,
    create_adapter,
)
from drugforge.query import DistinctValueEngine, QueryBuilder
from drugforge.repository import AggregateRepository, EntityRepository

logger = logging.getLogger(__name__)

_TRUTHY = ("1", "true", "yes")


@dataclass
class DrugforgeServices:
    """Container for all initialized drugforge services."""

    model: ModelMap
    db: PersistenceAdapter
    builder: QueryBuilder
    distinct: DistinctValueEngine
    entities: EntityRepository
    aggregates: AggregateRepository
    keys: SequenceService

    def close(self) -> None:
        self.db.close()


def resolve_base_path() -> Path:
    """Repository root: the cwd, or its parent when running from backend/."""
    cwd = Path.cwd()
    return cwd.parent if cwd.name == "backend" else cwd


def resolve_metadata_path(base_path: Path | None = None) -> Path:
    """DRUGFORGE_METADATA_PATH, else ``<base>/metadata``."""
    env_path = os.environ.get("DRUGFORGE_METADATA_PATH")
    if env_path:
        return Path(env_path)
    return (base_path or resolve_base_path()) / "metadata"


def atomic_cascade_enabled() -> bool:
    return os.environ.get("DRUGFORGE_ATOMIC_CASCADE", "").lower() in _TRUTHY


def load_model(metadata_path: Path) -> ModelMap:
    """Validate metadata YAML (logging problems) and load the frozen model."""
    schema_issues = validate_metadata_dir(metadata_path)
    if schema_issues:
        error_count = sum(1 for i in schema_issues if i.severity == "error")
        warn_count = sum(1 for i in schema_issues if i.severity == "warning")
        for issue in schema_issues:
            if issue.severity == "error":
                logger.error("Metadata schema error: %s", issue)
            else:
                logger.warning("Metadata schema warning: %s", issue)
        logger.warning(
            "Metadata validation: %d error(s), %d warning(s). "
            "Run 'drugforge metadata validate' for details.",
            error_count,
            warn_count,
        )
    return MetadataLoader(metadata_path).load_all()


def initialize_schema(model: ModelMap, db: PersistenceAdapter) -> None:
    """Create every registered table, then every view."""
    tables = [model.schema.get_table(name) for name in model.schema.list_tables()]
    for table in sorted(tables, key=lambda t: t.is_view):
        db.initialize_table(table)


def initialize_services(
    base_path: Path | None = None,
    metadata_path: Path | None = None,
    db_config: DatabaseConfig | None = None,
) -> DrugforgeServices:
    """Initialize all drugforge services.

    Environment:
        DATABASE_URL / DRUGFORGE_DB_PATH   database (see DatabaseConfig)
        DRUGFORGE_METADATA_PATH            metadata directory
        DRUGFORGE_ATOMIC_CASCADE           run cascading deletes in one transaction
    """
    if base_path is None:
        base_path = resolve_base_path()
    if metadata_path is None:
        metadata_path = resolve_metadata_path(base_path)

    model = load_model(metadata_path)

    if db_config is None:
        db_config = DatabaseConfig.from_env(base_path)
    if db_config.sqlite_path:
        # Ensure parent directory exists for SQLite databases
        Path(db_config.sqlite_path).parent.mkdir(parents=True, exist_ok=True)

    db = create_adapter(db_config)
    db.connect()
    initialize_schema(model, db)

    keys = SequenceService(db)
    builder = QueryBuilder(model.schema, db)
    atomic = atomic_cascade_enabled()
    logger.info(
        "drugforge ready: %s (%s), atomic cascade %s",
        db_config.redacted_url,
        db_config.dialect,
        "on" if atomic else "off",
    )
    return DrugforgeServices(
        model=model,
        db=db,
        builder=builder,
        distinct=DistinctValueEngine(model.schema, db),
        entities=EntityRepository(model, builder, keys=keys, atomic_cascade=atomic),
        aggregates=AggregateRepository(model, builder),
        keys=keys,
    )
