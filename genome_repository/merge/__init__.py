"""Record reconciliation and publication filtering."""

from genome_repository.merge.collector import group_records
from genome_repository.merge.combiner import RecordCombiner, combine, dedupe_donors
from genome_repository.merge.filter import PublicationFilter

__all__ = [
    "PublicationFilter",
    "RecordCombiner",
    "combine",
    "dedupe_donors",
    "group_records",
]
