"""
JSON Schema validation for drugforge YAML metadata files.

Each file under ``tables/``, ``aggregates/`` and ``entities/`` (plus the
root ``relationships.yaml``) is checked against its schema before the loader
turns it into registry entries. The directory walk also flags names that are
declared by more than one file, since the registries key on those names.

Usage:
    from drugforge.metadata.validator import validate_metadata_dir

    for issue in validate_metadata_dir(Path("metadata")):
        print(issue)
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError
from referencing import Registry, Resource
from referencing.jsonschema import DRAFT202012

logger = logging.getLogger(__name__)

_SCHEMAS_DIR = Path(__file__).parent / "schemas"

_SUBDIR_SCHEMA: dict[str, str] = {
    "tables": "table.schema.json",
    "aggregates": "aggregate.schema.json",
    "entities": "entity.schema.json",
}

_FILE_SCHEMA: dict[str, str] = {
    "relationships.yaml": "relationships.schema.json",
}

# Document key that names the registry entry declared by each subdirectory
_NAME_KEYS: dict[str, str] = {
    "tables": "table",
    "aggregates": "aggregate",
    "entities": "entity",
}


@dataclass
class ValidationIssue:
    """A single validation finding for a metadata YAML file."""

    file: Path
    message: str
    path: str = ""          # location inside the document, e.g. "fields[0]/type"
    severity: str = "error" # "error" | "warning"

    def __str__(self) -> str:
        loc = f" at {self.path}" if self.path else ""
        return f"[{self.severity.upper()}] {self.file}{loc}: {self.message}"


@lru_cache(maxsize=None)
def _load_schema(name: str) -> dict[str, Any]:
    with (_SCHEMAS_DIR / name).open() as fh:
        return json.load(fh)


def _load_registry() -> Registry:
    names = ["_defs.schema.json", *_SUBDIR_SCHEMA.values(), *_FILE_SCHEMA.values()]
    schemas = [_load_schema(name) for name in names]
    return Registry().with_resources(
        (schema["$id"], Resource(contents=schema, specification=DRAFT202012))
        for schema in schemas
    )


def _json_path(error: ValidationError) -> str:
    path = ""
    for part in error.absolute_path:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f"/{part}" if path else str(part)
    return path


def schema_for_file(yaml_path: Path) -> str | None:
    """Pick the schema for a metadata file from its directory or file name."""
    if yaml_path.name in _FILE_SCHEMA:
        return _FILE_SCHEMA[yaml_path.name]
    return _SUBDIR_SCHEMA.get(yaml_path.parent.name)


def _read_document(yaml_path: Path) -> tuple[Any, ValidationIssue | None]:
    try:
        with yaml_path.open() as fh:
            doc = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        return None, ValidationIssue(file=yaml_path, message=f"YAML parse error: {exc}")
    if doc is None:
        return None, ValidationIssue(
            file=yaml_path, message="File is empty or contains only whitespace"
        )
    return doc, None


def _check_document(
    doc: Any, yaml_path: Path, schema_name: str, registry: Registry
) -> list[ValidationIssue]:
    validator = Draft202012Validator(_load_schema(schema_name), registry=registry)
    errors = sorted(validator.iter_errors(doc), key=lambda e: list(e.path))
    return [
        ValidationIssue(file=yaml_path, message=error.message, path=_json_path(error))
        for error in errors
    ]


def validate_yaml_file(
    yaml_path: Path,
    schema_name: str,
    *,
    registry: Registry | None = None,
) -> list[ValidationIssue]:
    """
    Validate one YAML file against the named schema.

    ``schema_name`` is a file in the bundled schema directory, e.g.
    ``"table.schema.json"``. Pass ``registry`` to reuse a registry across
    many files. An empty list means the file is valid.
    """
    doc, issue = _read_document(yaml_path)
    if issue is not None:
        return [issue]
    return _check_document(doc, yaml_path, schema_name, registry or _load_registry())


def validate_metadata_dir(
    metadata_dir: Path,
    *,
    strict: bool = False,
) -> list[ValidationIssue]:
    """
    Validate every metadata file under *metadata_dir*.

    A missing ``tables/`` directory is only a warning, because an empty model
    loads fine. With ``strict=True`` warnings are reported as errors.
    """
    if not metadata_dir.is_dir():
        return [
            ValidationIssue(
                file=metadata_dir,
                message=f"Metadata directory does not exist: {metadata_dir}",
            )
        ]

    try:
        registry = _load_registry()
    except (FileNotFoundError, json.JSONDecodeError) as exc:
        return [
            ValidationIssue(file=_SCHEMAS_DIR, message=f"Failed to load JSON Schema files: {exc}")
        ]

    issues: list[ValidationIssue] = []
    if not (metadata_dir / "tables").is_dir():
        issues.append(
            ValidationIssue(
                file=metadata_dir,
                message="No tables/ directory found; the model will be empty",
                severity="warning",
            )
        )

    for subdir, schema_name in _SUBDIR_SCHEMA.items():
        declared: dict[str, Path] = {}
        for yaml_file in sorted((metadata_dir / subdir).glob("*.yaml")):
            doc, issue = _read_document(yaml_file)
            if issue is not None:
                issues.append(issue)
                continue
            issues.extend(_check_document(doc, yaml_file, schema_name, registry))

            name = doc.get(_NAME_KEYS[subdir]) if isinstance(doc, dict) else None
            if not isinstance(name, str):
                continue
            if name in declared:
                issues.append(
                    ValidationIssue(
                        file=yaml_file,
                        message=f"'{name}' is already declared in {declared[name].name}",
                        path=_NAME_KEYS[subdir],
                    )
                )
            else:
                declared[name] = yaml_file

    for filename, schema_name in _FILE_SCHEMA.items():
        target = metadata_dir / filename
        if target.is_file():
            issues.extend(validate_yaml_file(target, schema_name, registry=registry))

    if strict:
        for issue in issues:
            if issue.severity == "warning":
                issue.severity = "error"

    logger.debug("Validated metadata in %s: %d issue(s)", metadata_dir, len(issues))
    return issues
