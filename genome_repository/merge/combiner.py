"""Reconcile the per-source views of one logical file.

Members of a group are ordered by the completeness priority of the source
that holds their first file copy.  Scalar fields take the first non-blank
value in that order; file copies and donors are concatenated, with donors
deduplicated by resolved (or, failing that, submitted) donor id.

Example::

    combiner = RecordCombiner(load_registry())
    merged = combiner.combine([gdc_record, pcawg_record])
    # pcawg ranks first, so its scalars win and its copies come first
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping, Sequence
from typing import Any

from genome_repository import settings
from genome_repository.archives import ArchiveRegistry
from genome_repository.errors import ReconciliationWarning
from genome_repository.models import Donor, RepositoryFile, donor_key, is_blank

logger = logging.getLogger(__name__)

SCALAR_FIELDS = (
    "id",
    "object_id",
    "study",
    "access",
    "data_bundle",
    "analysis_method",
    "data_categorization",
    "reference_genome",
)


def dedupe_donors(donors: Iterable[Donor]) -> tuple[Donor, ...]:
    """Keep the first donor per ``donor_id or submitted_donor_id``.

    Donors carrying neither id cannot be matched and are all kept.
    """
    seen: set[str] = set()
    kept = []
    for donor in donors:
        key = donor_key(donor)
        if key is None:
            kept.append(donor)
            continue
        if key in seen:
            continue
        seen.add(key)
        kept.append(donor)
    return tuple(kept)


class RecordCombiner:
    """Combines groups of raw records into reconciled records.

    Conflicting scalar values are collected in :attr:`warnings`.
    """

    def __init__(self, registry: ArchiveRegistry, priority: Sequence[str] | None = None):
        self.registry = registry
        self.priority = tuple(priority) if priority is not None else settings.get_merge_priority()
        self._ranks = {source: rank for rank, source in enumerate(self.priority)}
        self.warnings: list[ReconciliationWarning] = []

    def source_of(self, record: RepositoryFile) -> str:
        code = record.file_copies[0].repo_code if record.file_copies else None
        return self.registry.source_of(code)

    def rank(self, record: RepositoryFile) -> tuple[int, str]:
        """Sort key: listed sources by position, then unlisted ones by name."""
        source = self.source_of(record)
        if source in self._ranks:
            return self._ranks[source], ""
        return len(self._ranks), source

    def order(self, group: Sequence[RepositoryFile]) -> list[RepositoryFile]:
        # sorted() is stable: equal ranks keep their input order
        return sorted(group, key=self.rank)

    def combine(self, group: Sequence[RepositoryFile]) -> RepositoryFile:
        """Combine one non-empty group of records sharing an id."""
        if not group:
            raise ValueError("Cannot combine an empty group")
        if len(group) == 1:
            return group[0]

        ordered = self.order(group)
        sources = tuple(
            member.file_copies[0].repo_code if member.file_copies else None for member in ordered
        )
        values: dict[str, Any] = {}
        for field in SCALAR_FIELDS:
            values[field] = self._pick_scalar(field, ordered, sources)

        values["file_copies"] = tuple(
            copy for member in ordered for copy in member.file_copies
        )
        values["donors"] = dedupe_donors(
            donor for member in ordered for donor in member.donors
        )
        return RepositoryFile(**values)

    def combine_all(
        self,
        groups: Mapping[str, Sequence[RepositoryFile]] | Iterable[Sequence[RepositoryFile]],
    ) -> Iterator[RepositoryFile]:
        """Lazily combine every group."""
        if isinstance(groups, Mapping):
            groups = groups.values()
        for group in groups:
            yield self.combine(group)

    def _pick_scalar(
        self, field: str, ordered: Sequence[RepositoryFile], sources: tuple[str | None, ...]
    ) -> Any:
        distinct: list[Any] = []
        for member in ordered:
            value = getattr(member, field)
            if not is_blank(value) and value not in distinct:
                distinct.append(value)

        if len(distinct) > 1:
            warning = ReconciliationWarning(
                field=field, values=tuple(distinct), id=ordered[0].id, sources=sources
            )
            logger.warning("%s", warning)
            self.warnings.append(warning)

        if distinct:
            return distinct[0]
        return () if field == "study" else None


def combine(
    group: Sequence[RepositoryFile],
    registry: ArchiveRegistry,
    priority: Sequence[str] | None = None,
) -> RepositoryFile:
    """Combine one group with a throwaway combiner."""
    return RecordCombiner(registry, priority).combine(group)
