"""Table or plain-line output for repository commands.

Every listing command renders either a rich table for people at a
terminal, or one tab- or space-separated line per row for scripts
(cron runs, ``| grep``, report mails).  The choice, first match wins:

1. ``--plain`` on the command line
2. ``GENOME_REPOSITORY_RICH`` (``0``/``false``/``no`` or ``1``/``true``/``yes``)
3. ``NO_COLOR`` set: plain
4. otherwise rich only when stdout is a terminal
"""

from __future__ import annotations

import os
from collections.abc import Callable, Iterable

import click
from rich.console import Console, RenderableType

from genome_repository.report import RunReport

console = Console()

_OFF = ("0", "false", "no")
_ON = ("1", "true", "yes")

plain_option = click.option(
    "--plain",
    is_flag=True,
    help="Plain text output, one line per row (default when not on a terminal).",
)


def use_rich(plain: bool = False) -> bool:
    """Whether the current command should render rich tables."""
    if plain:
        return False
    override = os.environ.get("GENOME_REPOSITORY_RICH", "").strip().lower()
    if override in _OFF:
        return False
    if override in _ON:
        return True
    if os.environ.get("NO_COLOR") is not None:
        return False
    return console.is_terminal


def emit(
    table: Callable[[], RenderableType],
    lines: Callable[[], Iterable[str]],
    *,
    plain: bool = False,
) -> None:
    """Print ``table()`` with rich, or each of ``lines()`` with click."""
    if use_rich(plain):
        console.print(table())
        return
    for line in lines():
        click.echo(line)


def print_report(report: RunReport, *, plain: bool = False) -> None:
    emit(report.to_renderable, lambda: [report.to_text()], plain=plain)
