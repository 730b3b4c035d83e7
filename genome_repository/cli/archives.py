"""Archives command - show the archive catalog."""

from __future__ import annotations

import json

import click
from rich.table import Table

from genome_repository.cli.output import emit, plain_option


@click.command("archives")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@plain_option
def archives(as_json: bool, plain: bool) -> None:
    """List known archives with their provenance class."""
    from genome_repository.archives import load_registry

    registry = load_registry()

    if as_json:
        output = [
            {**archive.to_document(), "provenance": registry.provenance_of(archive.code).value}
            for archive in registry
        ]
        click.echo(json.dumps(output, indent=2))
        return

    def as_table() -> Table:
        table = Table(title="Archives")
        table.add_column("Code", style="cyan")
        table.add_column("Name")
        table.add_column("Source", style="green")
        table.add_column("Type")
        table.add_column("Country")
        table.add_column("Provenance", style="yellow")
        for archive in registry:
            table.add_row(
                archive.code,
                archive.name,
                archive.source,
                archive.type,
                archive.country or "",
                registry.provenance_of(archive.code).value,
            )
        return table

    def as_lines() -> list[str]:
        return [
            "\t".join(
                (archive.code, archive.source, archive.type,
                 registry.provenance_of(archive.code).value)
            )
            for archive in registry
        ]

    emit(as_table, as_lines, plain=plain)
