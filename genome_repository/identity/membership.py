"""Run-scoped donor membership sets.

Two sets of ``(project_code, submitted_donor_id)`` pairs are consulted
during a run:

- donors already known to the harmonization study
- donors already known to the core clinical registry

Each is loaded lazily, exactly once per run, on first access, and then
reused.  The sets live on a ``RunContext`` instance rather than in module
state so a new run always starts from fresh data.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Generic, TypeVar

import httpx

from genome_repository.errors import ExtractionError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DonorKey = tuple[str, str]
MembershipLoader = Callable[[], frozenset[DonorKey]]


class InitOnce(Generic[T]):
    """Lazily computed value; the factory runs at most once across threads.

    A factory failure is remembered and re-raised on every later access.
    """

    def __init__(self, factory: Callable[[], T]):
        self._factory = factory
        self._lock = threading.Lock()
        self._done = False
        self._value: T | None = None
        self._error: Exception | None = None

    @property
    def initialized(self) -> bool:
        return self._done

    def get(self) -> T:
        if not self._done:
            with self._lock:
                if not self._done:
                    try:
                        self._value = self._factory()
                    except Exception as e:
                        self._error = e
                    self._done = True
        if self._error is not None:
            raise self._error
        return self._value  # type: ignore[return-value]


@dataclass
class RunContext:
    """Per-run shared state for identity and study classification.

    A loader of ``None`` means the corresponding list is not configured and
    membership checks against it are skipped.
    """

    harmonized_loader: MembershipLoader | None = None
    registry_loader: MembershipLoader | None = None
    _harmonized: InitOnce[frozenset[DonorKey]] | None = field(init=False, default=None)
    _registry: InitOnce[frozenset[DonorKey]] | None = field(init=False, default=None)

    def __post_init__(self) -> None:
        if self.harmonized_loader is not None:
            self._harmonized = InitOnce(self.harmonized_loader)
        if self.registry_loader is not None:
            self._registry = InitOnce(self.registry_loader)

    @property
    def has_harmonized(self) -> bool:
        return self._harmonized is not None

    @property
    def has_registry(self) -> bool:
        return self._registry is not None

    def harmonized_donors(self) -> frozenset[DonorKey]:
        return self._harmonized.get() if self._harmonized else frozenset()

    def registry_donors(self) -> frozenset[DonorKey]:
        return self._registry.get() if self._registry else frozenset()

    def is_harmonized_donor(self, project_code: str | None, submitted_donor_id: str | None) -> bool:
        if not project_code or not submitted_donor_id:
            return False
        return (project_code, submitted_donor_id) in self.harmonized_donors()

    def is_registered_donor(self, project_code: str | None, submitted_donor_id: str | None) -> bool:
        """True when registered, or when no registry list is configured."""
        if self._registry is None:
            return True
        if not project_code or not submitted_donor_id:
            return False
        return (project_code, submitted_donor_id) in self.registry_donors()


# ─── Loaders ────────────────────────────────────────────────────────────────


def parse_donor_list(text: str) -> frozenset[DonorKey]:
    """Parse a donor list.

    Accepts either a JSON array of ``{"project_code", "submitted_donor_id"}``
    objects or plain text with one ``<project_code><TAB><submitted_donor_id>``
    per line (``#`` comments allowed).
    """
    stripped = text.lstrip()
    if stripped.startswith("["):
        entries = json.loads(stripped)
        return frozenset(
            (entry["project_code"], entry["submitted_donor_id"]) for entry in entries
        )
    pairs = set()
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        parts = line.split("\t") if "\t" in line else line.split(None, 1)
        if len(parts) != 2:
            raise ValueError(f"Malformed donor list line: {line!r}")
        pairs.add((parts[0].strip(), parts[1].strip()))
    return frozenset(pairs)


def read_location(location: str, *, timeout: float = 30.0) -> str:
    """Read text from a local path or an http(s) URL."""
    if location.startswith(("http://", "https://")):
        response = httpx.get(location, timeout=timeout, follow_redirects=True)
        response.raise_for_status()
        return response.text
    return Path(location).expanduser().read_text(encoding="utf-8")


def location_loader(name: str, location: str) -> MembershipLoader:
    """Build a loader reading a donor list from ``location``."""

    def load() -> frozenset[DonorKey]:
        logger.info("Loading %s donor list from %s...", name, location)
        try:
            donors = parse_donor_list(read_location(location))
        except (OSError, httpx.HTTPError, ValueError, KeyError) as e:
            raise ExtractionError(name, f"could not load donor list: {e}") from e
        logger.info("Loaded %d %s donors", len(donors), name)
        return donors

    return load


def static_loader(donors: Iterable[DonorKey]) -> MembershipLoader:
    """Loader over an in-memory collection."""
    frozen = frozenset(donors)
    return lambda: frozen
