"""Run command - import, merge and publish."""

from __future__ import annotations

import click

from genome_repository.cli.logging import configure_cli_logging
from genome_repository.cli.output import plain_option, print_report
from genome_repository.errors import PipelineError


@click.command("run")
@click.option(
    "--step",
    "steps",
    multiple=True,
    type=click.Choice(["import", "merge", "index"]),
    help="Step to run (repeatable). Default: all steps.",
)
@click.option(
    "--source",
    "sources",
    multiple=True,
    help="Only import this source (repeatable); others reuse their snapshots.",
)
@click.option("--read-only", is_flag=True, help="Look up ids but never mint new ones.")
@click.option("--alias", default=None, help="Public index alias (default from settings).")
@click.option("--es-url", default=None, help="Search cluster URL (default from settings).")
@click.option("--verbose", "-v", is_flag=True, help="Show INFO logs on the console.")
@plain_option
@click.pass_context
def run(
    ctx: click.Context,
    steps: tuple[str, ...],
    sources: tuple[str, ...],
    read_only: bool,
    alias: str | None,
    es_url: str | None,
    verbose: bool,
    plain: bool,
) -> None:
    """Run the repository pipeline.

    \b
    Examples:
      genome-repository run
      genome-repository run --step import --source ega
      genome-repository run --step merge --step index --alias repository-test
    """
    from genome_repository.index import ElasticsearchSink
    from genome_repository.pipeline import ALL_STEPS, RepositoryPipeline, Step

    configure_cli_logging(
        "run", source=sources[0] if len(sources) == 1 else None, verbose=verbose
    )

    try:
        pipeline = RepositoryPipeline(
            steps=[Step(s) for s in steps] if steps else ALL_STEPS,
            only_sources=sources or None,
            alias=alias,
            read_only=read_only,
            sink_factory=(lambda: ElasticsearchSink(es_url)) if es_url else None,
        )
    except ValueError as e:
        raise click.UsageError(str(e)) from e

    try:
        report = pipeline.execute()
    except PipelineError:
        print_report(pipeline.report, plain=plain)
        ctx.exit(1)
    print_report(report, plain=plain)
