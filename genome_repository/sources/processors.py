"""Per-source record processors.

A processor turns one raw input (the text of a manifest, an API page, a
metadata dump) into raw ``RepositoryFile`` records.  Processors are chosen
per source by name through :data:`PROCESSORS`::

    [tool.genome-repository.sources.ega]
    location = "/data/ega/files.jsonl"
    processor = "json"
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from pydantic import ValidationError

from genome_repository.archives import ArchiveRegistry
from genome_repository.errors import IdentityAssignmentError
from genome_repository.identity.resolver import IdentityResolver
from genome_repository.identity.services import IdKind
from genome_repository.models import FileCopy, RepositoryFile

logger = logging.getLogger(__name__)


@runtime_checkable
class SourceFileProcessor(Protocol):
    def map_to_records(self, raw_input: str) -> list[RepositoryFile]: ...


def parse_json_documents(raw_input: str) -> list[dict[str, Any]]:
    """Parse a JSON array, a single JSON object, or JSON Lines."""
    text = raw_input.strip()
    if not text:
        return []
    if text.startswith("["):
        documents = json.loads(text)
    elif "\n" not in text:
        documents = [json.loads(text)]
    else:
        documents = [json.loads(line) for line in text.splitlines() if line.strip()]
    if not all(isinstance(doc, dict) for doc in documents):
        raise ValueError("Expected JSON objects")
    return documents


class JsonRecordProcessor:
    """Reads records already expressed in the canonical field set.

    Missing archive fields of a file copy are filled from the registry
    entry of its ``repo_code``.  A record without an ``id`` gets a stable
    file id minted from its ``object_id`` when a resolver is available; when
    that fails the id stays unset and the error is kept in
    :attr:`identity_errors`.
    """

    def __init__(
        self,
        *,
        resolver: IdentityResolver | None = None,
        registry: ArchiveRegistry | None = None,
    ):
        self.resolver = resolver
        self.registry = registry
        self.identity_errors: list[IdentityAssignmentError] = []

    def map_to_records(self, raw_input: str) -> list[RepositoryFile]:
        records = []
        for document in parse_json_documents(raw_input):
            try:
                record = RepositoryFile.model_validate(document)
            except ValidationError as e:
                raise ValueError(f"Invalid record {document.get('id')!r}: {e}") from e
            records.append(self._complete(record))
        return records

    def _complete(self, record: RepositoryFile) -> RepositoryFile:
        update: dict[str, Any] = {}
        if self.registry is not None and record.file_copies:
            update["file_copies"] = tuple(self._fill_copy(c) for c in record.file_copies)
        if not record.id and record.object_id and self.resolver is not None:
            try:
                update["id"] = self.resolver.ensure(IdKind.FILE, record.object_id)
            except IdentityAssignmentError as e:
                logger.warning("Object %s: %s", record.object_id, e)
                self.identity_errors.append(e)
        return record.model_copy(update=update) if update else record

    def _fill_copy(self, copy: FileCopy) -> FileCopy:
        archive = self.registry.get(copy.repo_code) if self.registry else None
        if archive is None:
            return copy
        defaults = {
            "repo_type": archive.type,
            "repo_org": archive.source,
            "repo_name": archive.name,
            "repo_country": archive.country,
            "repo_base_url": archive.base_url,
            "repo_data_path": archive.data_path,
            "repo_metadata_path": archive.metadata_path,
        }
        update = {k: v for k, v in defaults.items() if getattr(copy, k) is None and v is not None}
        return copy.model_copy(update=update) if update else copy


ProcessorFactory = Callable[..., SourceFileProcessor]

PROCESSORS: dict[str, ProcessorFactory] = {
    "json": JsonRecordProcessor,
}


def get_processor(
    name: str,
    *,
    resolver: IdentityResolver | None = None,
    registry: ArchiveRegistry | None = None,
) -> SourceFileProcessor:
    """Instantiate a registered processor by name.

    Raises:
        KeyError: If no processor is registered under ``name``.
    """
    try:
        factory = PROCESSORS[name]
    except KeyError:
        raise KeyError(
            f"Unknown processor '{name}'. Available: {', '.join(sorted(PROCESSORS))}"
        ) from None
    return factory(resolver=resolver, registry=registry)
