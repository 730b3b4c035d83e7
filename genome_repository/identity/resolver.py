"""Stable identifier resolution with run-scoped caching.

``IdentityResolver.resolve`` performs a lookup only; ``ensure`` performs
lookup-or-create.  Whether ``ensure`` may mint ids is decided by an explicit
``AssignmentMode`` threaded through each call, combined with the
resolver-wide ``read_only`` flag (dry runs / previews)::

    resolver = IdentityResolver(HashIdentityService())
    resolver.ensure(IdKind.DONOR, "PD4103", "BRCA-UK")        # mints if missing
    resolver.ensure(IdKind.DONOR, "PD4103", "BRCA-UK",
                    mode=AssignmentMode.READ_ONLY)             # lookup only

Creation calls are single-flight per ``(kind, submitted_id, project_code)``
key: concurrent callers for the same key observe at most one create call.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum

import httpx

from genome_repository.errors import IdentityAssignmentError, IdentityServiceError
from genome_repository.identity.services import (
    BarcodeTranslator,
    IdentityService,
    IdKind,
    NullBarcodeTranslator,
    is_uuid,
)

logger = logging.getLogger(__name__)

CacheKey = tuple[IdKind, str, str | None]

# Errors from external collaborators that are wrapped per submitted id
_SERVICE_ERRORS = (httpx.HTTPError, IdentityServiceError)


class AssignmentMode(str, Enum):
    READ_ONLY = "read-only"
    AUTHORITATIVE = "authoritative"


@dataclass
class ResolverStats:
    lookups: int = 0
    creations: int = 0
    translations: int = 0
    cache_hits: int = 0


class IdentityResolver:
    """Looks up and mints stable ids, caching results for the run."""

    def __init__(
        self,
        service: IdentityService,
        *,
        translator: BarcodeTranslator | None = None,
        barcode_projects: frozenset[str] = frozenset(),
        read_only: bool = False,
    ):
        self.service = service
        self.translator = translator or NullBarcodeTranslator()
        self.barcode_projects = barcode_projects
        self.read_only = read_only
        self.stats = ResolverStats()
        self._cache: dict[CacheKey, str] = {}
        self._misses: set[CacheKey] = set()
        self._lock = threading.Lock()
        self._key_locks: dict[CacheKey, threading.Lock] = {}

    # ── Public API ──────────────────────────────────────────────────────────

    def resolve(
        self,
        kind: IdKind,
        submitted_id: str,
        project_code: str | None = None,
        mode: AssignmentMode = AssignmentMode.AUTHORITATIVE,
    ) -> str | None:
        """Look up the stable id for a submitted id without creating one.

        On a read-only resolver or in ``READ_ONLY`` mode misses are cached
        too, since nothing can be minted for the key during this run.

        Raises:
            IdentityAssignmentError: If the backing service fails.
        """
        key = (kind, submitted_id, project_code)
        read_only = self.read_only or mode is AssignmentMode.READ_ONLY
        hit, value = self._cached(key, include_misses=read_only)
        if hit:
            return value

        with self._key_lock(key):
            hit, value = self._cached(key, include_misses=read_only)
            if hit:
                return value
            value = self._call(key, self._lookup)
            with self._lock:
                if value is not None:
                    self._cache[key] = value
                elif read_only:
                    self._misses.add(key)
        return value

    def ensure(
        self,
        kind: IdKind,
        submitted_id: str,
        project_code: str | None = None,
        mode: AssignmentMode | None = None,
    ) -> str | None:
        """Look up the stable id, creating it when missing.

        Degrades to :meth:`resolve` (no minting) when the resolver is
        read-only or ``mode`` is ``READ_ONLY``; only then can it return None.

        Raises:
            IdentityAssignmentError: If the backing service fails.
        """
        if self.read_only or mode is AssignmentMode.READ_ONLY:
            return self.resolve(kind, submitted_id, project_code, AssignmentMode.READ_ONLY)

        key = (kind, submitted_id, project_code)
        hit, value = self._cached(key, include_misses=False)
        if hit:
            return value

        with self._key_lock(key):
            hit, value = self._cached(key, include_misses=False)
            if hit:
                return value
            value = self._call(key, self._lookup)
            if value is None:
                value = self._call(key, self._create)
            with self._lock:
                self._cache[key] = value
                self._misses.discard(key)
        return value

    def cache_size(self) -> int:
        with self._lock:
            return len(self._cache)

    # ── Internals ───────────────────────────────────────────────────────────

    def _cached(self, key: CacheKey, *, include_misses: bool) -> tuple[bool, str | None]:
        with self._lock:
            if key in self._cache:
                self.stats.cache_hits += 1
                return True, self._cache[key]
            if include_misses and key in self._misses:
                self.stats.cache_hits += 1
                return True, None
        return False, None

    def _key_lock(self, key: CacheKey) -> threading.Lock:
        with self._lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = threading.Lock()
            return lock

    def _call(self, key: CacheKey, func):
        kind, submitted_id, project_code = key
        try:
            return func(kind, submitted_id, project_code)
        except _SERVICE_ERRORS as e:
            raise IdentityAssignmentError(kind.value, submitted_id, project_code, e) from e

    def _lookup(self, kind: IdKind, submitted_id: str, project_code: str | None) -> str | None:
        self.stats.lookups += 1
        value = self.service.lookup(kind, submitted_id, project_code)
        if value is not None or project_code not in self.barcode_projects:
            return value

        # Archive submitted the other identifier space; translate and retry once
        if is_uuid(submitted_id):
            translated = self.translator.translate_uuid(submitted_id)
        else:
            translated = self.translator.translate_barcode(submitted_id)
        self.stats.translations += 1
        if not translated or translated == submitted_id:
            return None
        logger.debug("Retrying %s lookup %s -> %s", kind.value, submitted_id, translated)
        self.stats.lookups += 1
        return self.service.lookup(kind, translated, project_code)

    def _create(self, kind: IdKind, submitted_id: str, project_code: str | None) -> str:
        self.stats.creations += 1
        stable_id = self.service.create(kind, submitted_id, project_code)
        logger.debug("Created %s id %s for %s", kind.value, stable_id, submitted_id)
        return stable_id
