"""Index generation lifecycle: create → populate → alias → prune.

The public alias only ever moves to a fully populated generation.  Any
failure before the alias step leaves the serving generation untouched and
abandons the new one (it is neither aliased nor deleted; the next run's
prune step collects it).  Alias failures are verified against the
observed alias holders and always reported as
:class:`~genome_repository.errors.AliasReassignmentError`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from genome_repository import settings
from genome_repository.archives import ArchiveRegistry
from genome_repository.errors import AliasReassignmentError, PublishError
from genome_repository.index.archive import GenerationArchive, archive_path
from genome_repository.index.documents import iter_documents
from genome_repository.index.generations import generation_name, select_stale
from genome_repository.index.schema import IndexSchema, load_schema
from genome_repository.index.sink import SearchSink
from genome_repository.models import RepositoryFile

logger = logging.getLogger(__name__)


class PublishState(str, Enum):
    ABSENT = "absent"
    CREATED = "created"
    POPULATED = "populated"
    ALIASED = "aliased"
    PRUNED = "pruned"


@dataclass
class PublishResult:
    generation: str
    state: PublishState = PublishState.ABSENT
    counts: dict[str, int] = field(default_factory=dict)
    previous_holders: list[str] = field(default_factory=list)
    pruned: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    archive: Path | None = None


class IndexPublisher:
    """Publishes reconciled records as a new generation behind ``alias``."""

    def __init__(
        self,
        sink: SearchSink,
        *,
        alias: str | None = None,
        retain: int | None = None,
        schema: IndexSchema | None = None,
        registry: ArchiveRegistry | None = None,
        archive_dir: Path | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.sink = sink
        self.alias = alias or settings.get_index_alias()
        self.retain = retain if retain is not None else settings.get_index_retain()
        if self.retain < 1:
            raise PublishError(
                f"Index retention must keep at least 1 generation, got {self.retain}"
            )
        self.schema = schema or load_schema()
        self.registry = registry
        self.archive_dir = archive_dir if archive_dir is not None else settings.get_archive_dir()
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.result: PublishResult | None = None

    @property
    def state(self) -> PublishState:
        return self.result.state if self.result else PublishState.ABSENT

    def publish(self, records: Iterable[RepositoryFile]) -> PublishResult:
        """Run every publish step; the result is also kept on :attr:`result`.

        Raises:
            PublishError: If creating or populating the generation fails.
            AliasReassignmentError: If the alias does not end up held by
                exactly the new generation.
        """
        name = generation_name(self.alias, self.clock())
        self.result = result = PublishResult(generation=name)

        self.create(name)
        result.state = PublishState.CREATED

        self.populate(name, records)
        result.state = PublishState.POPULATED

        self.assign_alias(name)
        result.state = PublishState.ALIASED

        self.prune(name)
        result.state = PublishState.PRUNED
        return result

    # ── Steps ───────────────────────────────────────────────────────────────

    def create(self, name: str) -> None:
        if self.sink.exists(name):
            logger.warning("Generation '%s' already exists; recreating it", name)
            self.sink.delete(name)
        self.sink.create(name, self.schema.settings)
        for doc_type, mapping in self.schema.mappings.items():
            self.sink.put_schema(name, doc_type.value, mapping)
        logger.info("Created generation '%s' (schema v%d)", name, self.schema.version)

    def populate(self, name: str, records: Iterable[RepositoryFile]) -> dict[str, int]:
        archive = self._open_archive(name)
        try:
            with self.sink.bulk(name) as session:
                for doc_type, doc_id, document in iter_documents(records, self.registry):
                    session.add(doc_type.value, doc_id, document)
                    if archive is not None:
                        archive.add_document(doc_type.value, doc_id, document)
            counts = dict(session.counts)
        except OSError as e:
            raise PublishError(f"Archiving generation '{name}' failed: {e}") from e
        finally:
            if archive is not None:
                archive.close()

        if self.result is not None:
            self.result.counts = counts
        for doc_type, count in sorted(counts.items()):
            logger.info("Indexed %d '%s' documents", count, doc_type)
        return counts

    def assign_alias(self, name: str) -> None:
        previous = self.sink.alias_holders(self.alias)
        if self.result is not None:
            self.result.previous_holders = list(previous)
        old = [holder for holder in previous if holder != name]

        request_error: PublishError | None = None
        try:
            self.sink.reassign_alias(self.alias, old, name)
        except PublishError as e:
            request_error = e
            logger.error("Alias request for '%s' failed: %s", self.alias, e)

        observed = self._observe_holders()
        if request_error is None and observed == [name]:
            logger.info("Alias '%s' now points at '%s'", self.alias, name)
            return

        message = (
            f"Alias request failed: {request_error}"
            if request_error is not None
            else "Alias is not held by exactly the new generation"
        )
        if observed == [] and old:
            observed = self._restore(old)
            message += "; restore of previous holders attempted"
        raise AliasReassignmentError(self.alias, name, observed or [], message)

    def prune(self, name: str) -> list[str]:
        """Delete generations beyond the newest ``retain``; never fatal."""
        try:
            names = self.sink.list_names()
            holders = self.sink.alias_holders(self.alias)
        except PublishError as e:
            self._prune_warning(f"Could not list generations for pruning: {e}")
            return []

        stale = select_stale(self.alias, names, self.retain, protected=[name, *holders])
        pruned = []
        for generation in stale:
            try:
                self.sink.delete(generation)
                pruned.append(generation)
            except PublishError as e:
                self._prune_warning(f"Could not prune generation '{generation}': {e}")
        if pruned:
            logger.info("Pruned %d stale generation(s): %s", len(pruned), pruned)
        if self.result is not None:
            self.result.pruned = pruned
        return pruned

    # ── Internals ───────────────────────────────────────────────────────────

    def _open_archive(self, name: str) -> GenerationArchive | None:
        if self.archive_dir is None:
            return None
        path = archive_path(self.archive_dir, name)
        try:
            archive = GenerationArchive(path, name)
            archive.add_settings(self.schema.settings)
            for doc_type, mapping in self.schema.mappings.items():
                archive.add_mapping(doc_type.value, mapping)
        except OSError as e:
            raise PublishError(f"Could not open archive {path}: {e}") from e
        if self.result is not None:
            self.result.archive = path
        return archive

    def _observe_holders(self) -> list[str] | None:
        try:
            return self.sink.alias_holders(self.alias)
        except PublishError as e:
            logger.error("Could not read alias '%s' holders: %s", self.alias, e)
            return None

    def _restore(self, previous: list[str]) -> list[str] | None:
        logger.warning("No generation holds '%s'; restoring %s", self.alias, previous)
        for holder in previous:
            try:
                self.sink.reassign_alias(self.alias, [], holder)
            except PublishError as e:
                logger.error("Restoring alias '%s' to '%s' failed: %s", self.alias, holder, e)
        return self._observe_holders()

    def _prune_warning(self, message: str) -> None:
        logger.warning(message)
        if self.result is not None:
            self.result.warnings.append(message)
