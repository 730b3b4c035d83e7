"""Index commands - inspect and prune index generations."""

from __future__ import annotations

import click
from rich.table import Table

from genome_repository.cli.output import emit, plain_option
from genome_repository.errors import PublishError


def _open_sink(es_url: str | None):
    from genome_repository.index import ElasticsearchSink

    return ElasticsearchSink(es_url)


@click.group()
def index() -> None:
    """Manage index generations.

    \b
      genome-repository index list      List generations, newest first
      genome-repository index prune     Delete generations beyond the retention
    """


@index.command("list")
@click.option("--alias", default=None, help="Public index alias (default from settings).")
@click.option("--es-url", default=None, help="Search cluster URL (default from settings).")
@plain_option
def index_list(alias: str | None, es_url: str | None, plain: bool) -> None:
    """List generations of the alias, marking the serving one."""
    from genome_repository import settings
    from genome_repository.index import parse_generation_timestamp, sorted_generations

    alias = alias or settings.get_index_alias()
    sink = _open_sink(es_url)
    try:
        generations = sorted_generations(alias, sink.list_names())
        holders = set(sink.alias_holders(alias))
    except PublishError as e:
        raise click.ClickException(str(e)) from e
    finally:
        sink.close()

    if not generations:
        click.echo(f"No generations for alias '{alias}'.")
        return

    def as_table() -> Table:
        table = Table(title=f"Generations of '{alias}'")
        table.add_column("Name", style="cyan")
        table.add_column("Created (UTC)", style="green")
        table.add_column("Alias", style="yellow")
        for name in generations:
            created = parse_generation_timestamp(alias, name)
            table.add_row(
                name,
                created.strftime("%Y-%m-%d %H:%M:%S") if created else "",
                "serving" if name in holders else "",
            )
        return table

    # Serving generation marked with a trailing " *"
    emit(
        as_table,
        lambda: [f"{name} *" if name in holders else name for name in generations],
        plain=plain,
    )


@index.command("prune")
@click.option("--alias", default=None, help="Public index alias (default from settings).")
@click.option("--retain", type=int, default=None, help="Generations to keep (default 3).")
@click.option("--es-url", default=None, help="Search cluster URL (default from settings).")
@click.option("--dry-run", is_flag=True, help="Show what would be deleted.")
def index_prune(
    alias: str | None, retain: int | None, es_url: str | None, dry_run: bool
) -> None:
    """Delete stale generations, never the one holding the alias."""
    from genome_repository import settings
    from genome_repository.index import select_stale

    alias = alias or settings.get_index_alias()
    retain = retain if retain is not None else settings.get_index_retain()
    sink = _open_sink(es_url)
    try:
        holders = sink.alias_holders(alias)
        stale = select_stale(alias, sink.list_names(), retain, protected=holders)
        if not stale:
            click.echo("Nothing to prune.")
            return
        for name in stale:
            if dry_run:
                click.echo(f"Would delete {name}")
            else:
                sink.delete(name)
                click.echo(f"Deleted {name}")
    except (PublishError, ValueError) as e:
        raise click.ClickException(str(e)) from e
    finally:
        sink.close()
