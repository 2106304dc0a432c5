"""Database maintenance commands: orphaned relationships and schema setup."""

import click

from drugforge.core.bootstrap import initialize_services


@click.group()
def maintenance():
    """Database maintenance commands."""
    pass


@maintenance.command("init-db")
def init_db():
    """Create all tables and views for the current metadata."""
    services = initialize_services()
    try:
        tables = services.model.schema.list_tables()
        click.echo(
            click.style(
                f"Initialized {len(tables)} table(s) and view(s) on {services.db.dialect}.",
                fg="green",
            )
        )
    finally:
        services.close()


@maintenance.command("orphans")
@click.option(
    "--delete",
    "delete_rows",
    is_flag=True,
    default=False,
    help="Delete orphaned relationship rows instead of only reporting them.",
)
def orphans(delete_rows: bool):
    """Report relationship rows whose ancestor or child no longer exists."""
    services = initialize_services()
    try:
        found = services.entities.find_orphaned_relationships()
        if not found:
            click.echo(click.style("No orphaned relationships found.", fg="green"))
            return

        rel = services.model.require_relationship()
        click.echo(f"Found {len(found)} orphaned relationship(s):")
        for row in found:
            click.echo(
                f"  ! {row[rel.ancestor_field]} -> {row[rel.child_field]} "
                f"(missing {', '.join(row['missing'])})"
            )

        if delete_rows:
            deleted = services.entities.delete_orphaned_relationships()
            click.echo(click.style(f"Deleted {deleted} orphaned relationship(s).", fg="green"))
        else:
            click.echo("\nRun 'drugforge maintenance orphans --delete' to remove them.")
            raise SystemExit(1)
    finally:
        services.close()
