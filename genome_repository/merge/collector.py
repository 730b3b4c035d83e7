"""Group raw records from every source by canonical id."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from genome_repository.models import RepositoryFile

logger = logging.getLogger(__name__)


def group_records(records: Iterable[RepositoryFile]) -> dict[str, list[RepositoryFile]]:
    """Group records by ``id``, preserving first-seen order of ids and members.

    Records without an ``id`` cannot be reconciled and are skipped.
    """
    groups: dict[str, list[RepositoryFile]] = {}
    skipped = 0
    for record in records:
        if not record.id:
            skipped += 1
            continue
        groups.setdefault(record.id, []).append(record)
    if skipped:
        logger.warning("Skipped %d record(s) without an id", skipped)
    return groups
