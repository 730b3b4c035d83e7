"""Identifier assignment and study classification for raw records."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from genome_repository.errors import IdentityAssignmentError
from genome_repository.identity.membership import RunContext
from genome_repository.identity.resolver import AssignmentMode, IdentityResolver
from genome_repository.identity.services import IdKind
from genome_repository.models import Donor, RepositoryFile

logger = logging.getLogger(__name__)


def _submitted_ids(donor: Donor, use_barcodes: bool) -> tuple[str | None, str | None, str | None]:
    """Submitted donor/specimen/sample ids to resolve for one donor.

    Barcode projects are registered under their legacy barcodes, so those
    win over the archive's own submitted ids when present.
    """
    donor_sid = donor.submitted_donor_id
    specimen_sid = donor.submitted_specimen_id
    sample_sid = donor.submitted_sample_id
    if use_barcodes:
        barcodes = donor.other_identifiers
        donor_sid = barcodes.tcga_participant_barcode or donor_sid
        specimen_sid = barcodes.tcga_sample_barcode or specimen_sid
        sample_sid = barcodes.tcga_aliquot_barcode or sample_sid
    return donor_sid, specimen_sid, sample_sid


def assign_donor_ids(
    donor: Donor,
    resolver: IdentityResolver,
    mode: AssignmentMode | None = None,
) -> Donor:
    """Return a copy of ``donor`` with donor/specimen/sample ids resolved.

    Raises:
        IdentityAssignmentError: If any of the three ids cannot be resolved.
    """
    project = donor.project_code
    donor_sid, specimen_sid, sample_sid = _submitted_ids(
        donor, project in resolver.barcode_projects
    )
    update: dict[str, str | None] = {}
    if donor_sid:
        update["donor_id"] = resolver.ensure(IdKind.DONOR, donor_sid, project, mode)
    if specimen_sid:
        update["specimen_id"] = resolver.ensure(IdKind.SPECIMEN, specimen_sid, project, mode)
    if sample_sid:
        update["sample_id"] = resolver.ensure(IdKind.SAMPLE, sample_sid, project, mode)
    return donor.model_copy(update=update)


def assign_ids(
    records: Iterable[RepositoryFile],
    resolver: IdentityResolver,
    *,
    mode: AssignmentMode | None = None,
    errors: list[BaseException] | None = None,
) -> list[RepositoryFile]:
    """Resolve stable ids for every donor of every record.

    A failure for one donor leaves that donor's ids unset; the error is
    appended to ``errors`` (when given) and the remaining donors continue.
    """
    assigned = []
    for record in records:
        donors = []
        for donor in record.donors:
            try:
                donors.append(assign_donor_ids(donor, resolver, mode))
            except IdentityAssignmentError as e:
                logger.warning("Record %s: %s", record.id, e)
                if errors is not None:
                    errors.append(e)
                donors.append(donor)
        assigned.append(record.model_copy(update={"donors": tuple(donors)}))
    return assigned


class StudyClassifier:
    """Tags donors known to the harmonization study.

    Donors found in the harmonized set get ``study=<tag>`` and the tag is
    added to the record's ``study`` list.  When a registry list is
    configured, donors missing from it are reported as warnings.
    """

    def __init__(self, context: RunContext, study: str):
        self.context = context
        self.study = study
        self.warnings: list[str] = []

    def classify(self, record: RepositoryFile) -> RepositoryFile:
        donors = []
        harmonized = False
        for donor in record.donors:
            project, submitted = donor.project_code, donor.submitted_donor_id
            if self.context.has_harmonized and self.context.is_harmonized_donor(
                project, submitted
            ):
                donor = donor.model_copy(update={"study": self.study})
                harmonized = True
            if not self.context.is_registered_donor(project, submitted):
                message = (
                    f"Donor '{submitted}' of project '{project}' in file {record.id} "
                    "is not in the clinical registry"
                )
                logger.warning(message)
                self.warnings.append(message)
            donors.append(donor)

        study = record.study
        if harmonized and self.study not in study:
            study = (*study, self.study)
        return record.model_copy(update={"donors": tuple(donors), "study": study})

    def classify_all(self, records: Iterable[RepositoryFile]) -> list[RepositoryFile]:
        return [self.classify(record) for record in records]
