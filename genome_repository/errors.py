"""Error taxonomy for a repository run.

Stage-local errors (extraction, identity) are accumulated and surfaced in the
run report; publish-phase errors abort the remaining publish steps.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any


class RepositoryError(Exception):
    """Base class for all errors raised by this package."""


class ExtractionError(RepositoryError):
    """An external archive was unreachable or returned malformed data."""

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"Extraction failed for source '{source}': {message}")


class IdentityServiceError(RepositoryError):
    """The identity or barcode service returned an unusable response."""


class IdentityAssignmentError(RepositoryError):
    """Resolving or minting a stable id failed for one submitted id."""

    def __init__(
        self,
        kind: str,
        submitted_id: str,
        project_code: str | None,
        cause: BaseException | None = None,
    ):
        self.kind = kind
        self.submitted_id = submitted_id
        self.project_code = project_code
        detail = f": {cause}" if cause else ""
        super().__init__(
            f"Could not assign {kind} id for '{submitted_id}' "
            f"(project {project_code or '-'}){detail}"
        )


class PublicationPolicyError(RepositoryError):
    """The publication policy raised; this signals a defect and is fatal."""


class PublishError(RepositoryError):
    """Creating, populating or aliasing an index generation failed."""


class AliasReassignmentError(PublishError):
    """The public alias is not held by exactly the new generation."""

    def __init__(self, alias: str, expected: str, holders: Sequence[str], message: str):
        self.alias = alias
        self.expected = expected
        self.holders = tuple(holders)
        super().__init__(
            f"{message} (alias '{alias}', expected '{expected}', "
            f"held by {list(self.holders) or 'nothing'})"
        )


class PipelineError(RepositoryError):
    """A run finished with one or more accumulated errors."""

    def __init__(self, exceptions: Sequence[BaseException]):
        self.exceptions = list(exceptions)
        super().__init__(f"{len(self.exceptions)} error(s) during run: {self.exceptions}")


@dataclass(frozen=True)
class ReconciliationWarning:
    """Conflicting non-blank values for one scalar field within a combine group."""

    field: str
    values: tuple[Any, ...]
    id: str | None
    #: First repo code of each group member, in merge order
    sources: tuple[str | None, ...]

    def __str__(self) -> str:
        return (
            f"File '{self.id}': field '{self.field}' has {len(self.values)} distinct "
            f"values across {list(self.sources)}"
        )
