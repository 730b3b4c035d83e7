"""Tests for IdentityResolver caching, modes and barcode translation."""

import threading

import httpx
import pytest

from genome_repository.errors import IdentityAssignmentError, IdentityServiceError
from genome_repository.identity import AssignmentMode, IdentityResolver, IdKind

UUID = "4c4cbc10-57a1-4a4d-8a5b-2b3c1f0a9e11"
BARCODE = "TCGA-A1-A0SB"


class TestResolve:
    def test_lookup_only(self, id_service):
        resolver = IdentityResolver(id_service)
        assert resolver.resolve(IdKind.DONOR, "S1", "BRCA-UK") is None
        assert id_service.creates == []

    def test_read_only_resolve_cached_including_misses(self, id_service):
        resolver = IdentityResolver(id_service)
        first = resolver.resolve(IdKind.DONOR, "S1", "BRCA-UK", AssignmentMode.READ_ONLY)
        second = resolver.resolve(IdKind.DONOR, "S1", "BRCA-UK", AssignmentMode.READ_ONLY)
        assert first is None and second is None
        assert len(id_service.lookups) == 1

    def test_read_only_resolver_caches_misses(self, id_service):
        resolver = IdentityResolver(id_service, read_only=True)
        assert resolver.resolve(IdKind.DONOR, "S1", "BRCA-UK") is None
        assert resolver.resolve(IdKind.DONOR, "S1", "BRCA-UK") is None
        assert len(id_service.lookups) == 1

    def test_read_only_resolve_hit_cached(self, make_id_service):
        service = make_id_service({(IdKind.DONOR, "S1", "BRCA-UK"): "DO7"})
        resolver = IdentityResolver(service)
        for _ in range(3):
            assert resolver.resolve(IdKind.DONOR, "S1", "BRCA-UK", AssignmentMode.READ_ONLY) == "DO7"
        assert len(service.lookups) == 1

    def test_authoritative_miss_not_cached(self, id_service):
        resolver = IdentityResolver(id_service)
        resolver.resolve(IdKind.DONOR, "S1", "BRCA-UK")
        resolver.resolve(IdKind.DONOR, "S1", "BRCA-UK")
        assert len(id_service.lookups) == 2

    def test_cache_keyed_by_project(self, make_id_service):
        service = make_id_service({(IdKind.DONOR, "S1", "BRCA-UK"): "DO7"})
        resolver = IdentityResolver(service)
        assert resolver.resolve(IdKind.DONOR, "S1", "BRCA-UK") == "DO7"
        assert resolver.resolve(IdKind.DONOR, "S1", "OV-AU") is None


class TestEnsure:
    def test_creates_when_missing(self, id_service):
        resolver = IdentityResolver(id_service)
        stable_id = resolver.ensure(IdKind.SAMPLE, "SA-1", "BRCA-UK")
        assert stable_id == "SA1"
        assert len(id_service.creates) == 1

    def test_cached_after_create(self, id_service):
        resolver = IdentityResolver(id_service)
        first = resolver.ensure(IdKind.SAMPLE, "SA-1", "BRCA-UK")
        second = resolver.ensure(IdKind.SAMPLE, "SA-1", "BRCA-UK")
        assert first == second
        assert len(id_service.lookups) == 1
        assert len(id_service.creates) == 1

    def test_read_only_mode_never_creates(self, id_service):
        resolver = IdentityResolver(id_service)
        result = resolver.ensure(IdKind.DONOR, "S1", "BRCA-UK", mode=AssignmentMode.READ_ONLY)
        assert result is None
        assert id_service.creates == []

    def test_read_only_resolver_never_creates(self, id_service):
        resolver = IdentityResolver(id_service, read_only=True)
        assert resolver.ensure(IdKind.DONOR, "S1", "BRCA-UK") is None
        assert id_service.creates == []

    def test_authoritative_after_read_only_miss_creates(self, id_service):
        resolver = IdentityResolver(id_service)
        resolver.ensure(IdKind.DONOR, "S1", "BRCA-UK", mode=AssignmentMode.READ_ONLY)
        assert resolver.ensure(IdKind.DONOR, "S1", "BRCA-UK") == "DO1"

    def test_single_flight_creation(self, make_id_service):
        service = make_id_service(create_delay=0.05)
        resolver = IdentityResolver(service)
        results = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            results.append(resolver.ensure(IdKind.DONOR, "S1", "BRCA-UK"))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(service.creates) == 1
        assert set(results) == {"DO1"}


class TestBarcodeTranslation:
    def test_barcode_translated_on_miss(self, make_id_service, make_translator):
        service = make_id_service({(IdKind.DONOR, UUID, "BRCA-US"): "DO9"})
        translator = make_translator({BARCODE: UUID})
        resolver = IdentityResolver(
            service, translator=translator, barcode_projects=frozenset({"BRCA-US"})
        )
        assert resolver.resolve(IdKind.DONOR, BARCODE, "BRCA-US") == "DO9"
        assert translator.calls == [BARCODE]
        assert len(service.lookups) == 2

    def test_uuid_translated_to_barcode(self, make_id_service, make_translator):
        service = make_id_service({(IdKind.DONOR, BARCODE, "BRCA-US"): "DO9"})
        resolver = IdentityResolver(
            service,
            translator=make_translator({BARCODE: UUID}),
            barcode_projects=frozenset({"BRCA-US"}),
        )
        assert resolver.resolve(IdKind.DONOR, UUID, "BRCA-US") == "DO9"

    def test_no_translation_outside_barcode_projects(self, id_service, make_translator):
        translator = make_translator({BARCODE: UUID})
        resolver = IdentityResolver(
            id_service, translator=translator, barcode_projects=frozenset({"BRCA-US"})
        )
        resolver.resolve(IdKind.DONOR, BARCODE, "BRCA-UK")
        assert translator.calls == []

    def test_untranslatable_is_miss(self, id_service, make_translator):
        resolver = IdentityResolver(
            id_service,
            translator=make_translator(),
            barcode_projects=frozenset({"BRCA-US"}),
        )
        assert resolver.resolve(IdKind.DONOR, BARCODE, "BRCA-US") is None
        assert len(id_service.lookups) == 1

    def test_literal_hit_skips_translation(self, make_id_service, make_translator):
        service = make_id_service({(IdKind.DONOR, BARCODE, "BRCA-US"): "DO3"})
        translator = make_translator({BARCODE: UUID})
        resolver = IdentityResolver(
            service, translator=translator, barcode_projects=frozenset({"BRCA-US"})
        )
        assert resolver.resolve(IdKind.DONOR, BARCODE, "BRCA-US") == "DO3"
        assert translator.calls == []


class TestFailures:
    @pytest.mark.parametrize(
        "error",
        [httpx.ConnectError("refused"), IdentityServiceError("empty body")],
    )
    def test_service_errors_wrapped(self, id_service, error):
        id_service.error = error
        resolver = IdentityResolver(id_service)
        with pytest.raises(IdentityAssignmentError) as exc_info:
            resolver.ensure(IdKind.SPECIMEN, "SP-1", "BRCA-UK")
        assert exc_info.value.kind == "specimen"
        assert exc_info.value.submitted_id == "SP-1"
        assert exc_info.value.project_code == "BRCA-UK"
        assert exc_info.value.__cause__ is error

    def test_failure_not_cached(self, id_service):
        resolver = IdentityResolver(id_service)
        id_service.error = IdentityServiceError("down")
        with pytest.raises(IdentityAssignmentError):
            resolver.ensure(IdKind.DONOR, "S1", "BRCA-UK")
        id_service.error = None
        assert resolver.ensure(IdKind.DONOR, "S1", "BRCA-UK") == "DO1"
