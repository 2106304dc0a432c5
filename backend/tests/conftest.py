"""Shared fixtures: the real metadata model on a fresh in-memory SQLite database."""

from pathlib import Path

import pytest

from drugforge.core.bootstrap import DrugforgeServices, initialize_schema
from drugforge.metadata.loader import MetadataLoader
from drugforge.persistence.sequences import SequenceService
from drugforge.persistence.sqlite import SQLiteAdapter
from drugforge.query import DistinctValueEngine, QueryBuilder
from drugforge.repository import AggregateRepository, EntityRepository

REPO_ROOT = Path(__file__).resolve().parents[2]
METADATA_DIR = REPO_ROOT / "metadata"


@pytest.fixture
def model():
    return MetadataLoader(METADATA_DIR).load_all()


@pytest.fixture
def db(model):
    adapter = SQLiteAdapter(":memory:")
    adapter.connect()
    initialize_schema(model, adapter)
    yield adapter
    adapter.close()


def build_services(model, db, atomic_cascade=False) -> DrugforgeServices:
    keys = SequenceService(db)
    builder = QueryBuilder(model.schema, db)
    return DrugforgeServices(
        model=model,
        db=db,
        builder=builder,
        distinct=DistinctValueEngine(model.schema, db),
        entities=EntityRepository(model, builder, keys=keys, atomic_cascade=atomic_cascade),
        aggregates=AggregateRepository(model, builder),
        keys=keys,
    )


@pytest.fixture
def services(model, db):
    return build_services(model, db)


@pytest.fixture
def atomic_services(model, db):
    return build_services(model, db, atomic_cascade=True)
