"""End-of-run report and notification.

The report accumulates per-source counts, warnings and errors over a run.
It is rendered with rich for terminals and as plain text for logs and
notifications, then handed to a :class:`Notifier`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

from rich.console import Group
from rich.table import Table

logger = logging.getLogger(__name__)


@dataclass
class SourceSummary:
    source: str
    records: int = 0
    reused_snapshot: bool = False
    errors: int = 0


@dataclass
class RunReport:
    started: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished: datetime | None = None
    steps: list[str] = field(default_factory=list)
    sources: dict[str, SourceSummary] = field(default_factory=dict)
    merged: int = 0
    published: int = 0
    generation: str | None = None
    indexed: dict[str, int] = field(default_factory=dict)
    pruned: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[BaseException] = field(default_factory=list)
    identity_errors: list[BaseException] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True when no extraction or publish error occurred."""
        return not self.errors

    @property
    def duration(self) -> float:
        end = self.finished or datetime.now(timezone.utc)
        return (end - self.started).total_seconds()

    def add_error(self, error: BaseException) -> None:
        self.errors.append(error)

    def add_warning(self, warning: object) -> None:
        self.warnings.append(str(warning))

    def finish(self) -> None:
        self.finished = datetime.now(timezone.utc)

    @property
    def status(self) -> str:
        return "SUCCESS" if self.ok else "FAILURE"

    # ── Rendering ───────────────────────────────────────────────────────────

    def to_text(self) -> str:
        lines = [
            f"Repository run {self.status} in {self.duration:.1f}s "
            f"(steps: {', '.join(self.steps) or '-'})",
        ]
        for summary in self.sources.values():
            suffix = " (previous snapshot)" if summary.reused_snapshot else ""
            lines.append(f"  {summary.source}: {summary.records} records{suffix}")
        lines.append(f"  merged: {self.merged}, published: {self.published}")
        if self.generation:
            lines.append(f"  generation: {self.generation}")
        for doc_type, count in sorted(self.indexed.items()):
            lines.append(f"  indexed {doc_type}: {count}")
        if self.pruned:
            lines.append(f"  pruned: {', '.join(self.pruned)}")
        if self.identity_errors:
            lines.append(f"Identity errors ({len(self.identity_errors)}):")
            lines.extend(f"  - {e}" for e in self.identity_errors)
        if self.warnings:
            lines.append(f"Warnings ({len(self.warnings)}):")
            lines.extend(f"  - {w}" for w in self.warnings)
        if self.errors:
            lines.append(f"Errors ({len(self.errors)}):")
            lines.extend(f"  - {type(e).__name__}: {e}" for e in self.errors)
        return "\n".join(lines)

    def to_renderable(self) -> Group:
        summary = Table(title=f"Repository Run: {self.status}", show_header=False, box=None)
        summary.add_column("Field", style="cyan")
        summary.add_column("Value")
        summary.add_row("Duration", f"{self.duration:.1f}s")
        summary.add_row("Steps", ", ".join(self.steps) or "-")
        summary.add_row("Merged", str(self.merged))
        summary.add_row("Published", str(self.published))
        summary.add_row("Generation", self.generation or "-")
        if self.pruned:
            summary.add_row("Pruned", ", ".join(self.pruned))

        sources = Table(title="Sources")
        sources.add_column("Source", style="cyan")
        sources.add_column("Records", justify="right")
        sources.add_column("Snapshot", style="yellow")
        sources.add_column("Errors", justify="right", style="red")
        for s in self.sources.values():
            sources.add_row(
                s.source,
                str(s.records),
                "reused" if s.reused_snapshot else "",
                str(s.errors) if s.errors else "",
            )

        parts: list = [summary, sources]
        if self.indexed:
            indexed = Table(title="Indexed Documents")
            indexed.add_column("Type", style="cyan")
            indexed.add_column("Count", justify="right")
            for doc_type, count in sorted(self.indexed.items()):
                indexed.add_row(doc_type, str(count))
            parts.append(indexed)
        if self.warnings or self.identity_errors or self.errors:
            problems = Table(title="Problems")
            problems.add_column("Level")
            problems.add_column("Message", overflow="fold")
            for e in self.errors:
                problems.add_row("[red]error[/red]", f"{type(e).__name__}: {e}")
            for e in self.identity_errors:
                problems.add_row("[yellow]identity[/yellow]", str(e))
            for w in self.warnings:
                problems.add_row("[yellow]warning[/yellow]", w)
            parts.append(problems)
        return Group(*parts)


# ─── Notification ───────────────────────────────────────────────────────────


@runtime_checkable
class Notifier(Protocol):
    def notify(self, report: RunReport) -> None: ...


class LogNotifier:
    """Emits the plain-text report through logging."""

    def __init__(self, log: logging.Logger | None = None):
        self.log = log or logger

    def notify(self, report: RunReport) -> None:
        level = logging.INFO if report.ok else logging.ERROR
        self.log.log(level, "%s", report.to_text())


class NullNotifier:
    def notify(self, report: RunReport) -> None:
        pass
