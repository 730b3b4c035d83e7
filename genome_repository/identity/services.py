"""Identity backing services.

Two families of external collaborators are consumed by the resolver:

- ``IdentityService``: lookup / create of stable donor, specimen, sample
  and file ids keyed by ``(kind, submitted_id, project_code)``.
- ``BarcodeTranslator``: translation between legacy barcodes and UUIDs.

HTTP implementations use ``httpx``.  ``HashIdentityService`` derives
deterministic ids locally and is the default for development and dry runs.
"""

from __future__ import annotations

import hashlib
import logging
import re
import threading
from enum import Enum
from typing import Protocol, runtime_checkable

import httpx

from genome_repository.errors import IdentityServiceError

logger = logging.getLogger(__name__)

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)


class IdKind(str, Enum):
    DONOR = "donor"
    SPECIMEN = "specimen"
    SAMPLE = "sample"
    FILE = "file"

    @property
    def prefix(self) -> str:
        return _PREFIXES[self]


_PREFIXES = {
    IdKind.DONOR: "DO",
    IdKind.SPECIMEN: "SP",
    IdKind.SAMPLE: "SA",
    IdKind.FILE: "FI",
}


def is_uuid(value: str | None) -> bool:
    return bool(value) and UUID_PATTERN.match(value) is not None  # type: ignore[arg-type]


@runtime_checkable
class IdentityService(Protocol):
    def lookup(self, kind: IdKind, submitted_id: str, project_code: str | None) -> str | None: ...

    def create(self, kind: IdKind, submitted_id: str, project_code: str | None) -> str: ...


@runtime_checkable
class BarcodeTranslator(Protocol):
    def translate_barcode(self, barcode: str) -> str | None: ...

    def translate_uuid(self, uuid: str) -> str | None: ...


# ─── Hash-derived ids ───────────────────────────────────────────────────────


class HashIdentityService:
    """Deterministic local ids: ``<prefix><decimal digest>``.

    ``create`` always returns the same id for the same key; ``lookup`` only
    knows ids this instance has created, which mirrors an empty id store.
    """

    def __init__(self) -> None:
        self._created: dict[tuple[IdKind, str, str | None], str] = {}
        self._lock = threading.Lock()

    @staticmethod
    def derive(kind: IdKind, submitted_id: str, project_code: str | None) -> str:
        key = f"{kind.value}:{project_code or ''}:{submitted_id}"
        digest = hashlib.sha256(key.encode()).hexdigest()
        return f"{kind.prefix}{int(digest[:12], 16) % 10**9}"

    def lookup(self, kind: IdKind, submitted_id: str, project_code: str | None) -> str | None:
        with self._lock:
            return self._created.get((kind, submitted_id, project_code))

    def create(self, kind: IdKind, submitted_id: str, project_code: str | None) -> str:
        stable_id = self.derive(kind, submitted_id, project_code)
        with self._lock:
            self._created[(kind, submitted_id, project_code)] = stable_id
        return stable_id


# ─── HTTP id service ────────────────────────────────────────────────────────


class HttpIdentityService:
    """Client for the identity service REST API.

    Endpoint layout::

        GET {base}/donor/id?submittedDonorId=..&submittedProjectId=..&create=false
        GET {base}/file/id?submittedFileId=..&create=true

    The response body is the plain-text id; 404 means "no such id".
    """

    def __init__(
        self,
        base_url: str,
        *,
        auth_token: str | None = None,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        headers = {"Accept": "text/plain"}
        if auth_token:
            headers["Authorization"] = f"Bearer {auth_token}"
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> HttpIdentityService:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def _request(
        self, kind: IdKind, submitted_id: str, project_code: str | None, create: bool
    ) -> str | None:
        params = {
            f"submitted{kind.value.capitalize()}Id": submitted_id,
            "create": "true" if create else "false",
        }
        if kind is not IdKind.FILE:
            params["submittedProjectId"] = project_code or ""
        response = self._client.get(f"/{kind.value}/id", params=params)
        if response.status_code == 404:
            return None
        response.raise_for_status()
        stable_id = response.text.strip()
        if not stable_id:
            raise IdentityServiceError(
                f"Empty {kind.value} id returned for '{submitted_id}'"
            )
        return stable_id

    def lookup(self, kind: IdKind, submitted_id: str, project_code: str | None) -> str | None:
        return self._request(kind, submitted_id, project_code, create=False)

    def create(self, kind: IdKind, submitted_id: str, project_code: str | None) -> str:
        stable_id = self._request(kind, submitted_id, project_code, create=True)
        if stable_id is None:
            raise IdentityServiceError(
                f"Identity service refused to create {kind.value} id for '{submitted_id}'"
            )
        return stable_id


# ─── Barcode translation ────────────────────────────────────────────────────


class NullBarcodeTranslator:
    """Translator used when no barcode service is configured."""

    def translate_barcode(self, barcode: str) -> str | None:
        return None

    def translate_uuid(self, uuid: str) -> str | None:
        return None


class HttpBarcodeTranslator:
    """Barcode <-> UUID mapping service client.

    ``GET {base}/barcode/{barcode}`` → ``{"uuid": "..."}``
    ``GET {base}/uuid/{uuid}``       → ``{"barcode": "..."}``
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers={"Accept": "application/json"},
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def _get(self, path: str, key: str) -> str | None:
        response = self._client.get(path)
        if response.status_code == 404:
            return None
        response.raise_for_status()
        try:
            value = response.json().get(key)
        except ValueError as e:
            raise IdentityServiceError(f"Malformed translation response for {path}") from e
        return value or None

    def translate_barcode(self, barcode: str) -> str | None:
        uuid = self._get(f"/barcode/{barcode}", "uuid")
        return uuid.lower() if uuid else None

    def translate_uuid(self, uuid: str) -> str | None:
        return self._get(f"/uuid/{uuid.lower()}", "barcode")
