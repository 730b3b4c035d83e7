"""Publication eligibility policy.

A record is publishable when any of its copies lives in a formally
released archive.  Otherwise a copy in a pre-release mirror withholds it.
Records held only by unclassified archives are publishable.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from genome_repository.archives import ArchiveRegistry, ProvenanceClass
from genome_repository.errors import PublicationPolicyError
from genome_repository.models import RepositoryFile

logger = logging.getLogger(__name__)


class PublicationFilter:
    def __init__(self, registry: ArchiveRegistry):
        self.registry = registry

    def is_eligible(self, record: RepositoryFile) -> bool:
        classes = {
            self.registry.provenance_of(copy.repo_code) for copy in record.file_copies
        }
        if ProvenanceClass.RELEASED in classes:
            return True
        if ProvenanceClass.PRE_RELEASE in classes:
            return False
        return True

    def filter_records(self, records: Iterable[RepositoryFile]) -> list[RepositoryFile]:
        """Return eligible records, preserving order.

        Raises:
            PublicationPolicyError: If the policy itself fails on a record.
        """
        eligible = []
        total = 0
        for record in records:
            total += 1
            try:
                keep = self.is_eligible(record)
            except Exception as e:
                raise PublicationPolicyError(
                    f"Publication policy failed for record {record.id}: {e}"
                ) from e
            if keep:
                eligible.append(record)
        logger.info(
            "Publication filter kept %d of %d records (%d withheld)",
            len(eligible),
            total,
            total - len(eligible),
        )
        return eligible
