"""CLI interface for the genome repository.

Modular CLI structure with one module per command group.
"""

import logging

import click
from dotenv import load_dotenv

from genome_repository import __version__

# Load environment variables from .env file
load_dotenv(override=True)

logger = logging.getLogger(__name__)


@click.group(invoke_without_command=True)
@click.option(
    "--version",
    is_flag=True,
    help="Show the genome-repository version and exit.",
)
@click.pass_context
def main(ctx: click.Context, version: bool) -> None:
    """Genome Repository - reconcile and publish genomic file metadata.

    \b
      genome-repository run                 Import, merge and index every source
      genome-repository run --step index    Republish the last merged snapshot
      genome-repository index list          List index generations
      genome-repository index prune         Delete stale generations
      genome-repository archives            Show the archive catalog
    """
    if version:
        click.echo(__version__)
        ctx.exit()

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


def register_commands() -> None:
    """Register all command groups with the main CLI."""
    from genome_repository.cli.archives import archives
    from genome_repository.cli.index import index
    from genome_repository.cli.run import run

    main.add_command(run)
    main.add_command(index)
    main.add_command(archives)


# Register commands at import time
register_commands()

__all__ = ["main"]
