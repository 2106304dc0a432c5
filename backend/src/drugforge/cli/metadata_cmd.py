"""Metadata CLI commands: validate and ddl."""

from pathlib import Path

import click

from drugforge.core.bootstrap import resolve_metadata_path
from drugforge.errors import DrugforgeError
from drugforge.metadata.loader import MetadataLoader
from drugforge.metadata.mapping import ModelMap
from drugforge.metadata.validator import (
    ValidationIssue,
    schema_for_file,
    validate_metadata_dir,
    validate_yaml_file,
)
from drugforge.persistence.ddl import create_schema_sql, create_table_sql, create_view_sql


@click.group()
def metadata():
    """Metadata commands."""
    pass


def _metadata_dir_or_exit() -> Path:
    metadata_path = resolve_metadata_path()
    if not metadata_path.exists():
        click.echo(f"Error: Metadata directory not found at {metadata_path}", err=True)
        raise SystemExit(1)
    return metadata_path


def _load_or_exit(metadata_path: Path) -> ModelMap:
    try:
        return MetadataLoader(metadata_path).load_all()
    except DrugforgeError as e:
        click.echo(click.style(f"\nSemantic validation failed: {e}", fg="red"), err=True)
        raise SystemExit(1)


def _report(issues: list[ValidationIssue]) -> None:
    """Print schema issues; exit non-zero when any of them is an error."""
    errors = sum(1 for i in issues if i.severity == "error")
    warnings = len(issues) - errors

    for issue in issues:
        click.echo(click.style(str(issue), fg="red" if issue.severity == "error" else "yellow"))

    if errors:
        summary = f"\n{errors} schema error(s) found"
        if warnings:
            summary += f", {warnings} warning(s)"
        click.echo(click.style(summary, fg="red", bold=True))
        raise SystemExit(1)
    if warnings:
        click.echo(click.style(f"{warnings} warning(s) found.", fg="yellow"))


@metadata.command()
@click.option("--strict", is_flag=True, default=False, help="Treat warnings as errors.")
@click.option(
    "--path",
    "target_path",
    default=None,
    type=click.Path(exists=True, path_type=Path),
    help="Validate a single YAML file instead of the whole metadata directory.",
)
def validate(strict: bool, target_path: Path | None):
    """Validate metadata YAML files, then load them into the registries."""
    if target_path is not None:
        schema_name = schema_for_file(target_path)
        if schema_name is None:
            click.echo(
                f"Warning: cannot determine schema for '{target_path}'. "
                "Expected a file under tables/, aggregates/ or entities/, "
                "or relationships.yaml.",
                err=True,
            )
        else:
            _report(validate_yaml_file(target_path, schema_name))
        click.echo(click.style("\nAll metadata is valid.", fg="green", bold=True))
        return

    metadata_path = _metadata_dir_or_exit()
    _report(validate_metadata_dir(metadata_path, strict=strict))

    # Registration catches what JSON Schema cannot: unknown tables, bad key fields
    model = _load_or_exit(metadata_path)
    tables = sorted(model.schema.list_tables())
    click.echo(f"\nLoaded {len(tables)} tables:")
    for name in tables:
        table = model.schema.get_table(name)
        kind = "view" if table.is_view else "table"
        click.echo(f"  ✓ {name} ({len(table.fields)} fields, {kind})")
    click.echo(
        f"Loaded {len(model.aggregates.list_types())} aggregate types, "
        f"{len(model.entities)} entity mappings."
    )
    click.echo(click.style("\nAll metadata is valid.", fg="green", bold=True))


@metadata.command("ddl")
@click.option(
    "--dialect",
    type=click.Choice(["sqlite", "postgresql"]),
    default="sqlite",
    show_default=True,
    help="SQL dialect to generate.",
)
@click.option("--table", "table_name", default=None, help="Only print DDL for this table.")
def ddl_cmd(dialect: str, table_name: str | None):
    """Print CREATE TABLE / CREATE VIEW statements for the metadata."""
    model = _load_or_exit(_metadata_dir_or_exit())

    if table_name is None:
        statements = create_schema_sql(model.schema, dialect)
    else:
        table = model.schema.get_table(table_name)
        if table is None:
            click.echo(f"Error: Unknown table '{table_name}'", err=True)
            raise SystemExit(1)
        build = create_view_sql if table.is_view else create_table_sql
        statements = [build(table, dialect)]

    for statement in statements:
        click.echo(f"{statement};\n")
