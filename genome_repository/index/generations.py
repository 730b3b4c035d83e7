"""Index generation naming and retention.

A generation is one immutable build of the search index, named
``<alias>-<yymmdd_HHMMSS>`` from the UTC time the build started::

    repository-261018_140502

Generations sort by the embedded timestamp; anything not matching the
convention for the alias is ignored by listing and pruning.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import datetime, timezone

TIMESTAMP_FORMAT = "%y%m%d_%H%M%S"
_TIMESTAMP_PATTERN = r"\d{6}_\d{6}"


def generation_name(alias: str, now: datetime | None = None) -> str:
    """Name of the generation started at ``now`` (default: current UTC time)."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return f"{alias}-{now.strftime(TIMESTAMP_FORMAT)}"


def parse_generation_timestamp(alias: str, name: str) -> datetime | None:
    """Timestamp embedded in a generation name, or None if not a generation."""
    match = re.fullmatch(rf"{re.escape(alias)}-({_TIMESTAMP_PATTERN})", name)
    if match is None:
        return None
    try:
        return datetime.strptime(match.group(1), TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return None


def is_generation(alias: str, name: str) -> bool:
    return parse_generation_timestamp(alias, name) is not None


def sorted_generations(alias: str, names: Iterable[str]) -> list[str]:
    """Generation names for ``alias``, newest first."""
    stamped = [
        (ts, name)
        for name in names
        if (ts := parse_generation_timestamp(alias, name)) is not None
    ]
    stamped.sort(reverse=True)
    return [name for _, name in stamped]


def select_stale(
    alias: str,
    names: Iterable[str],
    retain: int,
    protected: Iterable[str] = (),
) -> list[str]:
    """Generations to delete: all but the newest ``retain``, never a protected one."""
    if retain < 1:
        raise ValueError(f"retain must be at least 1, got {retain}")
    keep = set(protected)
    return [name for name in sorted_generations(alias, names)[retain:] if name not in keep]
