"""drugforge CLI entry point."""

import logging

import click


@click.group()
@click.option("-v", "--verbose", is_flag=True, default=False, help="Enable debug logging.")
def cli(verbose: bool):
    """Metadata-driven drug catalog CLI."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


# Register subcommand groups
from drugforge.cli.metadata_cmd import metadata  # noqa: E402
from drugforge.cli.maintenance_cmd import maintenance  # noqa: E402

cli.add_command(metadata)
cli.add_command(maintenance)
