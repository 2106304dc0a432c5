"""Tests for service initialization and environment resolution."""

import logging
from pathlib import Path

import pytest
import yaml

from drugforge.core.bootstrap import (
    atomic_cascade_enabled,
    initialize_services,
    load_model,
    resolve_base_path,
    resolve_metadata_path,
)
from drugforge.persistence.config import DatabaseConfig

from conftest import METADATA_DIR, REPO_ROOT


def test_base_path_from_backend_dir(monkeypatch):
    monkeypatch.chdir(REPO_ROOT / "backend")
    assert resolve_base_path() == REPO_ROOT


def test_base_path_from_repo_root(monkeypatch):
    monkeypatch.chdir(REPO_ROOT)
    assert resolve_base_path() == REPO_ROOT


def test_metadata_path_env_override(monkeypatch, tmp_path):
    monkeypatch.setenv("DRUGFORGE_METADATA_PATH", str(tmp_path))
    assert resolve_metadata_path() == tmp_path


def test_metadata_path_default(monkeypatch, tmp_path):
    monkeypatch.delenv("DRUGFORGE_METADATA_PATH", raising=False)
    assert resolve_metadata_path(tmp_path) == tmp_path / "metadata"


@pytest.mark.parametrize("value, expected", [("1", True), ("TRUE", True), ("no", False), ("", False)])
def test_atomic_cascade_flag(monkeypatch, value, expected):
    monkeypatch.setenv("DRUGFORGE_ATOMIC_CASCADE", value)
    assert atomic_cascade_enabled() is expected


def test_load_model_logs_schema_issues(tmp_path, caplog):
    (tmp_path / "tables").mkdir()
    (tmp_path / "tables" / "drugs.yaml").write_text(
        yaml.dump(
            {
                "table": "drugs",
                "fields": [{"name": "uid", "type": "uuid", "primaryKey": True}],
                "unexpected": True,
            }
        )
    )
    with caplog.at_level(logging.WARNING, logger="drugforge.core.bootstrap"):
        model = load_model(tmp_path)
    assert model.schema.list_tables() == ["drugs"]
    assert "Metadata validation: 1 error(s)" in caplog.text


def test_initialize_services(tmp_path, monkeypatch):
    monkeypatch.setenv("DRUGFORGE_ATOMIC_CASCADE", "1")
    db_path = tmp_path / "nested" / "drugforge.db"
    services = initialize_services(
        metadata_path=METADATA_DIR,
        db_config=DatabaseConfig(url=f"sqlite:///{db_path}"),
    )
    try:
        assert db_path.exists()
        assert services.entities.atomic_cascade
        assert services.builder.count("generic_drugs") == 0
        # Views are created after the tables they select from
        assert services.builder.select("generic_drugs_wide_view").rows == []
    finally:
        services.close()
    assert services.db.conn is None
