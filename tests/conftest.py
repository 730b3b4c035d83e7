"""Shared fixtures: isolated settings, in-memory collaborators and record factories."""

from __future__ import annotations

import os
import threading
import time
from datetime import datetime, timezone

import pytest

from genome_repository import settings
from genome_repository.archives import Archive, ArchiveRegistry, ProvenanceClass
from genome_repository.errors import PublishError
from genome_repository.index.sink import BulkSession
from genome_repository.models import Donor, FileCopy, RepositoryFile

FIXED_NOW = datetime(2026, 10, 18, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _isolated_settings(tmp_path, monkeypatch):
    """Drop GENOME_REPOSITORY_* env vars and point the work dir at tmp_path."""
    for name in list(os.environ):
        if name.startswith("GENOME_REPOSITORY_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("GENOME_REPOSITORY_WORK_DIR", str(tmp_path / "work"))
    settings._load_pyproject_settings.cache_clear()


# ─── Fakes ──────────────────────────────────────────────────────────────────


class FakeSink:
    """In-memory ``SearchSink`` with failure injection.

    ``fail`` holds operation names that raise ``PublishError``;
    ``bulk_failures`` are reported by every bulk batch;
    ``ignore_alias_add`` holds names the alias silently refuses to move to.
    """

    def __init__(self, max_actions: int = 2):
        self.indices: dict[str, dict] = {}
        self.aliases: dict[str, set[str]] = {}
        self.calls: list[str] = []
        self.fail: set[str] = set()
        self.bulk_failures: list[str] = []
        self.ignore_alias_add: set[str] = set()
        self.max_actions = max_actions
        self.closed = False

    def _op(self, op: str) -> None:
        self.calls.append(op)
        if op in self.fail:
            raise PublishError(f"injected {op} failure")

    def add_generation(self, name: str, alias: str | None = None) -> None:
        self.indices[name] = {"settings": {}, "mappings": {}, "docs": {}}
        if alias:
            self.aliases.setdefault(alias, set()).add(name)

    def docs(self, name: str, doc_type: str) -> dict[str, dict]:
        return {
            doc_id: doc
            for (t, doc_id), doc in self.indices[name]["docs"].items()
            if t == doc_type
        }

    def exists(self, name):
        self._op("exists")
        return name in self.indices

    def delete(self, name):
        self._op("delete")
        self.indices.pop(name, None)
        for holders in self.aliases.values():
            holders.discard(name)

    def create(self, name, settings):
        self._op("create")
        self.indices[name] = {"settings": settings, "mappings": {}, "docs": {}}

    def put_schema(self, name, doc_type, schema):
        self._op("put_schema")
        self.indices[name]["mappings"][doc_type] = schema

    def bulk(self, name):
        self._op("bulk")
        return BulkSession(
            lambda batch: self._send(name, batch),
            name=name,
            max_actions=self.max_actions,
            max_bytes=10**6,
            concurrency=1,
        )

    def _send(self, name, batch):
        if self.bulk_failures:
            return list(self.bulk_failures)
        for doc_type, doc_id, document in batch:
            self.indices[name]["docs"][(doc_type, doc_id)] = document
        return []

    def reassign_alias(self, alias, old_names, new_name):
        self._op("reassign_alias")
        holders = self.aliases.setdefault(alias, set())
        for old in old_names:
            holders.discard(old)
        if new_name not in self.ignore_alias_add:
            holders.add(new_name)

    def alias_holders(self, alias):
        self._op("alias_holders")
        return sorted(self.aliases.get(alias, ()))

    def list_names(self):
        self._op("list_names")
        return sorted(self.indices)

    def close(self):
        self.closed = True


class FakeIdentityService:
    """Counting identity service with sequential ids."""

    def __init__(self, known: dict | None = None, create_delay: float = 0.0):
        self.store: dict[tuple, str] = dict(known or {})
        self.lookups: list[tuple] = []
        self.creates: list[tuple] = []
        self.error: Exception | None = None
        self.create_delay = create_delay
        self._lock = threading.Lock()

    def lookup(self, kind, submitted_id, project_code):
        self.lookups.append((kind, submitted_id, project_code))
        if self.error is not None:
            raise self.error
        return self.store.get((kind, submitted_id, project_code))

    def create(self, kind, submitted_id, project_code):
        self.creates.append((kind, submitted_id, project_code))
        if self.error is not None:
            raise self.error
        if self.create_delay:
            time.sleep(self.create_delay)
        with self._lock:
            stable_id = f"{kind.prefix}{len(self.store) + 1}"
            self.store[(kind, submitted_id, project_code)] = stable_id
        return stable_id


class FakeTranslator:
    def __init__(self, barcodes: dict[str, str] | None = None):
        self.barcodes = dict(barcodes or {})
        self.uuids = {v: k for k, v in self.barcodes.items()}
        self.calls: list[str] = []

    def translate_barcode(self, barcode):
        self.calls.append(barcode)
        return self.barcodes.get(barcode)

    def translate_uuid(self, uuid):
        self.calls.append(uuid)
        return self.uuids.get(uuid)


@pytest.fixture
def sink():
    return FakeSink()


@pytest.fixture
def id_service():
    return FakeIdentityService()


@pytest.fixture
def make_id_service():
    return FakeIdentityService


@pytest.fixture
def make_translator():
    return FakeTranslator


@pytest.fixture
def make_sink():
    return FakeSink


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


# ─── Registry and record factories ──────────────────────────────────────────


@pytest.fixture
def registry():
    """Small catalog: one harmonized released archive, mirrors and plain archives."""
    return ArchiveRegistry(
        archives=(
            Archive("harmonized-archive", "Harmonized", "pcawg", "GNOS",
                    provenance=ProvenanceClass.RELEASED),
            Archive("ega", "EGA - Hinxton", "ega", "EGA", country="UK",
                    provenance=ProvenanceClass.RELEASED),
            Archive("gdc", "GDC - Chicago", "gdc", "GDC", country="US"),
            Archive("cghub", "CGHub - Santa Cruz", "cghub", "GNOS", country="US"),
            Archive("aws-virginia", "AWS - Virginia", "aws", "S3",
                    provenance=ProvenanceClass.PRE_RELEASE),
            Archive("collaboratory", "Collaboratory - Toronto", "collab", "S3",
                    provenance=ProvenanceClass.PRE_RELEASE),
        )
    )


def _make_copy(repo_code: str | None, **fields) -> FileCopy:
    fields.setdefault("file_name", f"{repo_code}.bam")
    return FileCopy(repo_code=repo_code, **fields)


def _make_donor(submitted_donor_id: str | None = None, **fields) -> Donor:
    fields.setdefault("project_code", "BRCA-UK")
    return Donor(submitted_donor_id=submitted_donor_id, **fields)


def _make_record(
    id: str | None = "F1",
    repos: tuple[str | None, ...] = ("gdc",),
    donors: tuple[Donor, ...] = (),
    **fields,
) -> RepositoryFile:
    return RepositoryFile(
        id=id,
        file_copies=tuple(_make_copy(code) for code in repos),
        donors=tuple(donors),
        **fields,
    )


@pytest.fixture
def make_copy():
    return _make_copy


@pytest.fixture
def make_donor():
    return _make_donor


@pytest.fixture
def make_record():
    return _make_record
