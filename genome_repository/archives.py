"""
Archive registry.

Loads the static catalog of known archives from ``config/archives.yaml``
and classifies each archive into a provenance class used by the
publication policy and by the combine priority.

Key functions:
- load_registry() -> ArchiveRegistry: packaged catalog + settings overrides
- ArchiveRegistry.get(code) -> Archive | None
- ArchiveRegistry.source_of(code) -> str: provenance source of a repo code
- ArchiveRegistry.provenance_of(code) -> ProvenanceClass
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from functools import cache
from pathlib import Path
from typing import Any

import yaml

from genome_repository import settings

logger = logging.getLogger(__name__)


class ProvenanceClass(str, Enum):
    """Archive classification used only for publication eligibility."""

    RELEASED = "released"
    PRE_RELEASE = "pre-release"
    UNCLASSIFIED = "unclassified"


@dataclass(frozen=True)
class Archive:
    """One external system of record for file metadata."""

    code: str
    name: str
    source: str
    type: str
    country: str | None = None
    timezone: str | None = None
    base_url: str | None = None
    data_path: str | None = None
    metadata_path: str | None = None
    provenance: ProvenanceClass = ProvenanceClass.UNCLASSIFIED

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.code,
            "code": self.code,
            "type": self.type,
            "name": self.name,
            "source": self.source,
            "country": self.country,
            "timezone": self.timezone,
            "base_url": self.base_url,
            "data_path": self.data_path,
            "metadata_path": self.metadata_path,
        }


@dataclass
class ArchiveRegistry:
    """Indexed archive catalog with provenance overrides applied."""

    archives: tuple[Archive, ...]
    released: frozenset[str] = field(default_factory=frozenset)
    pre_release: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        self._by_code = {archive.code: archive for archive in self.archives}

    def __iter__(self) -> Iterator[Archive]:
        return iter(self.archives)

    def __len__(self) -> int:
        return len(self.archives)

    def get(self, code: str | None) -> Archive | None:
        if code is None:
            return None
        return self._by_code.get(code)

    def source_of(self, code: str | None) -> str:
        """Provenance source for a repo code; unknown codes are their own source."""
        archive = self.get(code)
        if archive is not None:
            return archive.source
        return code or ""

    def provenance_of(self, code: str | None) -> ProvenanceClass:
        """Provenance class of a repo code.

        Explicit overrides (by repo code or by source name) win over the
        catalog's classification.  Unknown codes are unclassified.
        """
        if code is None:
            return ProvenanceClass.UNCLASSIFIED
        source = self.source_of(code)
        if code in self.released or source in self.released:
            return ProvenanceClass.RELEASED
        if code in self.pre_release or source in self.pre_release:
            return ProvenanceClass.PRE_RELEASE
        archive = self.get(code)
        return archive.provenance if archive else ProvenanceClass.UNCLASSIFIED

    def with_overrides(
        self, released: Iterable[str] = (), pre_release: Iterable[str] = ()
    ) -> ArchiveRegistry:
        return ArchiveRegistry(
            archives=self.archives,
            released=self.released | frozenset(released),
            pre_release=self.pre_release | frozenset(pre_release),
        )


def get_catalog_path() -> Path:
    """Path of the packaged archive catalog."""
    return Path(__file__).parent / "config" / "archives.yaml"


def parse_catalog(data: Mapping[str, Any]) -> tuple[Archive, ...]:
    """Build archives from a parsed catalog mapping.

    Raises:
        ValueError: If an archive references an unknown type or provenance.
    """
    types = data.get("types", {}) or {}
    archives = []
    for entry in data.get("archives", []) or []:
        type_key = entry["type"]
        if type_key not in types:
            raise ValueError(f"Archive '{entry.get('code')}' has unknown type '{type_key}'")
        archive_type = types[type_key]
        provenance = entry.get("provenance")
        archives.append(
            Archive(
                code=entry["code"],
                name=entry["name"],
                source=entry["source"],
                type=archive_type.get("id", type_key),
                country=entry.get("country"),
                timezone=entry.get("timezone"),
                base_url=entry.get("base-url"),
                data_path=archive_type.get("data-path"),
                metadata_path=archive_type.get("metadata-path"),
                provenance=(
                    ProvenanceClass(provenance)
                    if provenance
                    else ProvenanceClass.UNCLASSIFIED
                ),
            )
        )
    return tuple(archives)


@cache
def _load_catalog(path: Path) -> tuple[Archive, ...]:
    with path.open() as f:
        data = yaml.safe_load(f) or {}
    archives = parse_catalog(data)
    logger.debug("Loaded %d archives from %s", len(archives), path)
    return archives


def load_registry(path: Path | None = None) -> ArchiveRegistry:
    """Load the archive catalog and apply ``[publication]`` overrides."""
    archives = _load_catalog(path or get_catalog_path())
    return ArchiveRegistry(
        archives=archives,
        released=settings.get_released_overrides(),
        pre_release=settings.get_pre_release_overrides(),
    )
