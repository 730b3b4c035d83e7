"""Document views derived from reconciled records.

Four views are published into every generation:

- ``file``: the full record, one document per record
- ``file_text``: flattened identifier fields for keyword/prefix search
- ``donor_text``: one document per distinct donor id, aggregating every
  identifier variant observed for that donor across all records
- ``repository``: one document per known archive
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Iterator
from typing import Any

from genome_repository.archives import ArchiveRegistry
from genome_repository.index.schema import DocumentType
from genome_repository.models import RepositoryFile

Document = tuple[DocumentType, str, dict[str, Any]]

# Identifier-variant fields aggregated per donor id
DONOR_TEXT_FIELDS = (
    "specimen_id",
    "sample_id",
    "submitted_specimen_id",
    "submitted_sample_id",
)
DONOR_BARCODE_FIELDS = (
    "tcga_participant_barcode",
    "tcga_sample_barcode",
    "tcga_aliquot_barcode",
)


def _unique(values: Iterable[str | None]) -> list[str]:
    """Non-empty values in first-seen order, without duplicates."""
    return list(dict.fromkeys(v for v in values if v))


def file_document(record: RepositoryFile) -> dict[str, Any]:
    return record.to_document()


def file_text_document(record: RepositoryFile) -> dict[str, Any]:
    categorization = record.data_categorization
    bundle = record.data_bundle
    return {
        "type": "file",
        "id": record.id,
        "object_id": record.object_id,
        "file_name": _unique(c.file_name for c in record.file_copies),
        "data_type": categorization.data_type if categorization else None,
        "donor_id": _unique(d.donor_id for d in record.donors),
        "project_code": _unique(d.project_code for d in record.donors),
        "data_bundle_id": bundle.data_bundle_id if bundle else None,
    }


class DonorTextAccumulator:
    """Two-pass builder of donor-aggregate documents.

    Pass one (:meth:`add`) scans every record and accumulates observed
    identifier variants per donor id; pass two (:meth:`documents`) emits
    exactly one document per donor id.
    """

    def __init__(self) -> None:
        self._values: dict[str, dict[str, set[str]]] = defaultdict(lambda: defaultdict(set))
        self._submitted: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._values)

    def add(self, record: RepositoryFile) -> None:
        for donor in record.donors:
            if not donor.donor_id:
                continue
            values = self._values[donor.donor_id]
            for name in DONOR_TEXT_FIELDS:
                if value := getattr(donor, name):
                    values[name].add(value)
            for name in DONOR_BARCODE_FIELDS:
                if value := getattr(donor.other_identifiers, name):
                    values[name].add(value)
            if donor.submitted_donor_id:
                self._submitted.setdefault(donor.donor_id, donor.submitted_donor_id)

    def documents(self) -> Iterator[tuple[str, dict[str, Any]]]:
        for donor_id in sorted(self._values):
            values = self._values[donor_id]
            document: dict[str, Any] = {"type": "donor", "id": donor_id}
            for name in (*DONOR_TEXT_FIELDS, *DONOR_BARCODE_FIELDS):
                document[name] = sorted(values.get(name, ()))
            document["submitted_donor_id"] = self._submitted.get(donor_id)
            yield donor_id, document


def repository_documents(registry: ArchiveRegistry) -> Iterator[tuple[str, dict[str, Any]]]:
    for archive in registry:
        yield archive.code, archive.to_document()


def iter_documents(
    records: Iterable[RepositoryFile],
    registry: ArchiveRegistry | None = None,
) -> Iterator[Document]:
    """Every document of a generation, view by view.

    ``records`` is traversed once; the donor view is emitted after the
    file views, once every record has been scanned.
    """
    donors = DonorTextAccumulator()
    for record in records:
        yield DocumentType.FILE, record.id, file_document(record)
        yield DocumentType.FILE_TEXT, record.id, file_text_document(record)
        donors.add(record)
    for donor_id, document in donors.documents():
        yield DocumentType.DONOR_TEXT, donor_id, document
    if registry is not None:
        for code, document in repository_documents(registry):
            yield DocumentType.REPOSITORY, code, document
