"""Canonical file-metadata models.

A ``RepositoryFile`` is both the raw per-source record emitted by a
``SourceFileProcessor`` and the reconciled record produced by combining
every raw record that shares an ``id``.  All models are frozen: derived
records are built with ``model_copy(update=...)``, never mutated in place.

Field names follow the canonical naming contract shared by every stage and
by the published documents::

    id, object_id, study[], access,
    data_bundle.data_bundle_id,
    analysis_method.{analysis_type, software},
    data_categorization.{data_type, experimental_strategy},
    reference_genome.{genome_build, reference_name, download_url},
    file_copies[].{file_name, ..., repo_code, ...},
    donors[].{project_code, ..., other_identifiers.*}
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

__all__ = [
    "AnalysisMethod",
    "DataBundle",
    "DataCategorization",
    "Donor",
    "FileCopy",
    "IndexFile",
    "OtherIdentifiers",
    "ReferenceGenome",
    "RepositoryFile",
    "donor_key",
    "is_blank",
    "read_records",
    "write_records",
]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class DataBundle(_Frozen):
    data_bundle_id: str | None = None


class AnalysisMethod(_Frozen):
    analysis_type: str | None = None
    software: str | None = None


class DataCategorization(_Frozen):
    data_type: str | None = None
    experimental_strategy: str | None = None


class ReferenceGenome(_Frozen):
    genome_build: str | None = None
    reference_name: str | None = None
    download_url: str | None = None


class IndexFile(_Frozen):
    """Companion index of a file copy (e.g. a BAM index)."""

    file_id: str | None = None
    file_name: str | None = None
    file_format: str | None = None
    file_size: int | None = None
    file_md5sum: str | None = None


class FileCopy(_Frozen):
    """One physical location of a logical file at exactly one archive."""

    file_name: str | None = None
    file_format: str | None = None
    file_size: int | None = None
    file_md5sum: str | None = None
    last_modified: int | None = None
    index_file: IndexFile | None = None
    repo_type: str | None = None
    repo_org: str | None = None
    repo_name: str | None = None
    repo_code: str | None = None
    repo_country: str | None = None
    repo_base_url: str | None = None
    repo_data_path: str | None = None
    repo_metadata_path: str | None = None


class OtherIdentifiers(_Frozen):
    """Cross-system identifier variants (legacy barcodes).

    Unknown keys are carried through untouched.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    tcga_participant_barcode: str | None = None
    tcga_sample_barcode: str | None = None
    tcga_aliquot_barcode: str | None = None


class Donor(_Frozen):
    project_code: str | None = None
    program: str | None = None
    study: str | None = None
    primary_site: str | None = None
    donor_id: str | None = None
    specimen_id: str | None = None
    specimen_type: str | None = None
    sample_id: str | None = None
    submitted_donor_id: str | None = None
    submitted_specimen_id: str | None = None
    submitted_sample_id: str | None = None
    other_identifiers: OtherIdentifiers = OtherIdentifiers()

    def has_donor_id(self) -> bool:
        return self.donor_id is not None


class RepositoryFile(_Frozen):
    """Canonical file-metadata record (raw or reconciled)."""

    id: str | None = None
    object_id: str | None = None
    study: tuple[str, ...] = ()
    access: Literal["open", "controlled"] | None = None
    data_bundle: DataBundle | None = None
    analysis_method: AnalysisMethod | None = None
    data_categorization: DataCategorization | None = None
    reference_genome: ReferenceGenome | None = None
    file_copies: tuple[FileCopy, ...] = ()
    donors: tuple[Donor, ...] = ()

    @property
    def repo_codes(self) -> frozenset[str]:
        return frozenset(c.repo_code for c in self.file_copies if c.repo_code)

    def to_document(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict (tuples become lists)."""
        return self.model_dump(mode="json")


def donor_key(donor: Donor) -> str | None:
    """Dedup key for a donor: resolved id when present, else submitted id."""
    return donor.donor_id or donor.submitted_donor_id


def is_blank(value: Any) -> bool:
    """True for None, empty strings/tuples and nested models with only blank fields."""
    if value is None:
        return True
    if isinstance(value, (str, tuple, list)):
        return len(value) == 0
    if isinstance(value, BaseModel):
        return all(is_blank(getattr(value, name)) for name in type(value).model_fields)
    return False


# ─── JSON Lines snapshots ───────────────────────────────────────────────────


def write_records(path: Path, records: Iterable[RepositoryFile]) -> int:
    """Write records as JSON Lines, replacing the file atomically.

    Returns:
        Number of records written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    count = 0
    with tmp.open("w", encoding="utf-8") as f:
        for record in records:
            f.write(record.model_dump_json())
            f.write("\n")
            count += 1
    tmp.replace(path)
    return count


def read_records(path: Path) -> Iterator[RepositoryFile]:
    """Stream records from a JSON Lines snapshot."""
    with path.open(encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line:
                yield RepositoryFile.model_validate(json.loads(line))
