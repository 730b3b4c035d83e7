"""Run orchestration: IMPORT → MERGE → INDEX.

Each step can be skipped; a skipped step's output is read back from the
snapshots the last run left in the work directory::

    work/<source>.jsonl   identity-resolved raw records per source
    work/files.jsonl      reconciled (unfiltered) records

Extraction and identity problems are accumulated and the run continues.
Publication failures stop the remaining publish steps.  The report is
always finalized and sent; :meth:`RepositoryPipeline.execute` then raises
:class:`~genome_repository.errors.PipelineError` if any error was recorded.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from enum import Enum
from itertools import chain
from pathlib import Path

from genome_repository import settings
from genome_repository.archives import ArchiveRegistry, load_registry
from genome_repository.errors import (
    ExtractionError,
    PipelineError,
    PublicationPolicyError,
    PublishError,
)
from genome_repository.identity import (
    AssignmentMode,
    HashIdentityService,
    HttpBarcodeTranslator,
    HttpIdentityService,
    IdentityResolver,
    NullBarcodeTranslator,
    RunContext,
    StudyClassifier,
    location_loader,
)
from genome_repository.index import ElasticsearchSink, IndexPublisher, SearchSink
from genome_repository.merge import PublicationFilter, RecordCombiner, group_records
from genome_repository.models import RepositoryFile, read_records, write_records
from genome_repository.report import (
    LogNotifier,
    Notifier,
    NullNotifier,
    RunReport,
    SourceSummary,
)
from genome_repository.sources import (
    ImportResult,
    SourceImporter,
    get_processor,
    load_snapshot,
)

logger = logging.getLogger(__name__)

MERGED_SNAPSHOT = "files.jsonl"


class Step(str, Enum):
    IMPORT = "import"
    MERGE = "merge"
    INDEX = "index"


ALL_STEPS = (Step.IMPORT, Step.MERGE, Step.INDEX)


def _banner(title: str) -> None:
    logger.info("{:-^80}".format(f" {title} "))


# ─── Collaborator factories ─────────────────────────────────────────────────


def build_resolver(read_only: bool | None = None) -> IdentityResolver:
    """Identity resolver from settings (HTTP services or local hash ids)."""
    timeout = settings.get_id_timeout()
    if settings.get_real_ids():
        service = HttpIdentityService(
            settings.get_id_service_url(),
            auth_token=settings.get_id_auth_token(),
            timeout=timeout,
        )
    else:
        service = HashIdentityService()
    barcode_url = settings.get_barcode_service_url()
    translator = (
        HttpBarcodeTranslator(barcode_url, timeout=timeout)
        if barcode_url
        else NullBarcodeTranslator()
    )
    return IdentityResolver(
        service,
        translator=translator,
        barcode_projects=settings.get_barcode_projects(),
        read_only=settings.get_read_only() if read_only is None else read_only,
    )


def build_context() -> RunContext:
    harmonized = settings.get_harmonized_donors_location()
    registry = settings.get_registry_donors_location()
    return RunContext(
        harmonized_loader=location_loader("harmonized", harmonized) if harmonized else None,
        registry_loader=location_loader("registry", registry) if registry else None,
    )


# ─── Pipeline ───────────────────────────────────────────────────────────────


class RepositoryPipeline:
    """One strictly ordered repository run."""

    def __init__(
        self,
        *,
        steps: Sequence[Step] = ALL_STEPS,
        sources: dict[str, dict] | None = None,
        only_sources: Iterable[str] | None = None,
        registry: ArchiveRegistry | None = None,
        resolver: IdentityResolver | None = None,
        context: RunContext | None = None,
        sink_factory: Callable[[], SearchSink] | None = None,
        work_dir: Path | None = None,
        alias: str | None = None,
        read_only: bool = False,
        notifier: Notifier | None = None,
    ):
        self.steps = [step for step in ALL_STEPS if step in set(steps)]
        self.sources = sources if sources is not None else settings.get_source_configs()
        self.only_sources = set(only_sources) if only_sources else None
        self.registry = registry or load_registry()
        self.resolver = resolver or build_resolver(read_only or None)
        self.context = context or build_context()
        self.sink_factory = sink_factory or ElasticsearchSink
        self.work_dir = work_dir or settings.get_work_dir()
        self.alias = alias
        self.mode = AssignmentMode.READ_ONLY if read_only else None
        if notifier is None:
            notifier = LogNotifier() if settings.get_notify_enabled() else NullNotifier()
        self.notifier = notifier
        self.report = RunReport(steps=[step.value for step in self.steps])

        unknown = (self.only_sources or set()) - set(self.sources)
        if unknown:
            raise ValueError(f"Unknown source(s): {', '.join(sorted(unknown))}")

    def execute(self) -> RunReport:
        """Run the selected steps, notify, and raise if anything failed.

        Raises:
            PipelineError: If any extraction, policy or publish error occurred.
        """
        try:
            raw: list[ImportResult] | None = None
            merged: list[RepositoryFile] | None = None
            if Step.IMPORT in self.steps:
                raw = self.run_import()
            if Step.MERGE in self.steps:
                merged = self.run_merge(raw)
            if Step.INDEX in self.steps:
                self.run_index(merged)
        except (PublicationPolicyError, PublishError) as e:
            logger.error("Run aborted: %s", e)
            self.report.add_error(e)
        finally:
            self.report.finish()
            self.notifier.notify(self.report)

        if self.report.errors:
            raise PipelineError(self.report.errors)
        return self.report

    # ── IMPORT ──────────────────────────────────────────────────────────────

    def run_import(self) -> list[ImportResult]:
        _banner("Import")
        classifier = StudyClassifier(self.context, settings.get_harmonization_study())
        results = []
        for source, config in self.sources.items():
            if self.only_sources is not None and source not in self.only_sources:
                continue
            try:
                processor = get_processor(
                    config.get("processor", "json"),
                    resolver=self.resolver,
                    registry=self.registry,
                )
            except KeyError as e:
                error = ExtractionError(source, e.args[0])
                result = ImportResult(source=source, errors=[error])
            else:
                importer = SourceImporter(
                    source,
                    str(config["location"]),
                    processor,
                    self.resolver,
                    work_dir=self.work_dir,
                    classifier=classifier,
                    mode=self.mode,
                )
                result = importer.run()
            self._record_import(result)
            results.append(result)
        return results

    def _record_import(self, result: ImportResult) -> None:
        summary = SourceSummary(
            source=result.source,
            records=result.count,
            reused_snapshot=result.reused_snapshot,
        )
        for error in result.errors:
            if isinstance(error, ExtractionError):
                self.report.add_error(error)
                summary.errors += 1
            else:
                self.report.identity_errors.append(error)
        for warning in result.warnings:
            self.report.add_warning(warning)
        self.report.sources[result.source] = summary

    # ── MERGE ───────────────────────────────────────────────────────────────

    def run_merge(self, imported: list[ImportResult] | None = None) -> list[RepositoryFile]:
        _banner("Merge")
        results = {result.source: result for result in imported or []}
        for source in self._snapshot_sources():
            if source in results:
                continue
            result = load_snapshot(self.work_dir, source)
            if result.errors:
                self.report.add_warning(f"Source '{source}' has no snapshot; skipped")
                continue
            self.report.sources.setdefault(
                source, SourceSummary(source, records=result.count, reused_snapshot=True)
            )
            results[source] = result

        groups = group_records(chain.from_iterable(r.records for r in results.values()))
        combiner = RecordCombiner(self.registry)
        merged = list(combiner.combine_all(groups))
        for warning in combiner.warnings:
            self.report.add_warning(warning)

        count = write_records(self.work_dir / MERGED_SNAPSHOT, merged)
        self.report.merged = count
        logger.info("Merged %d records from %d source(s)", count, len(results))
        return merged

    def _snapshot_sources(self) -> list[str]:
        if self.sources:
            return list(self.sources)
        if not self.work_dir.exists():
            return []
        return sorted(
            path.stem for path in self.work_dir.glob("*.jsonl") if path.name != MERGED_SNAPSHOT
        )

    # ── INDEX ───────────────────────────────────────────────────────────────

    def run_index(self, merged: list[RepositoryFile] | None = None) -> None:
        _banner("Index")
        if merged is None:
            merged = self._read_merged()
            self.report.merged = len(merged)

        eligible = PublicationFilter(self.registry).filter_records(merged)
        self.report.published = len(eligible)

        sink = self.sink_factory()
        publisher = None
        try:
            publisher = IndexPublisher(sink, alias=self.alias, registry=self.registry)
            result = publisher.publish(eligible)
        finally:
            sink.close()
            if publisher is not None and publisher.result is not None:
                self.report.generation = publisher.result.generation
                self.report.indexed = dict(publisher.result.counts)
                self.report.pruned = list(publisher.result.pruned)
                for warning in publisher.result.warnings:
                    self.report.add_warning(warning)
        logger.info("Published generation '%s' (%s)", result.generation, result.state.value)

    def _read_merged(self) -> list[RepositoryFile]:
        path = self.work_dir / MERGED_SNAPSHOT
        if not path.exists():
            raise PublishError(f"No merged snapshot at {path}; run the merge step first")
        return list(read_records(path))
