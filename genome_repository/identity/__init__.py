"""Stable identifier assignment and donor membership."""

from genome_repository.identity.assign import StudyClassifier, assign_donor_ids, assign_ids
from genome_repository.identity.membership import (
    InitOnce,
    RunContext,
    location_loader,
    static_loader,
)
from genome_repository.identity.resolver import AssignmentMode, IdentityResolver
from genome_repository.identity.services import (
    BarcodeTranslator,
    HashIdentityService,
    HttpBarcodeTranslator,
    HttpIdentityService,
    IdentityService,
    IdKind,
    NullBarcodeTranslator,
)

__all__ = [
    "AssignmentMode",
    "BarcodeTranslator",
    "HashIdentityService",
    "HttpBarcodeTranslator",
    "HttpIdentityService",
    "IdKind",
    "IdentityResolver",
    "IdentityService",
    "InitOnce",
    "NullBarcodeTranslator",
    "RunContext",
    "StudyClassifier",
    "assign_donor_ids",
    "assign_ids",
    "location_loader",
    "static_loader",
]
