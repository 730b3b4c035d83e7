"""Tar export of a generation's documents.

Layout of ``<archive_dir>/<generation>.tar.gz``::

    <generation>/_settings
    <generation>/<type>/_mapping
    <generation>/<type>/<id>
"""

from __future__ import annotations

import io
import json
import logging
import tarfile
import time
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

SETTINGS_ENTRY = "_settings"
MAPPING_ENTRY = "_mapping"


def archive_path(archive_dir: Path, generation: str) -> Path:
    return archive_dir / f"{generation}.tar.gz"


class GenerationArchive:
    """Write-only gzip tarball of one generation."""

    def __init__(self, path: Path, generation: str):
        self.path = path
        self.generation = generation
        self.entries = 0
        path.parent.mkdir(parents=True, exist_ok=True)
        self._tar = tarfile.open(path, "w:gz")
        self._mtime = time.time()

    def add_settings(self, settings: dict[str, Any]) -> None:
        self._add(SETTINGS_ENTRY, settings)

    def add_mapping(self, doc_type: str, mapping: dict[str, Any]) -> None:
        self._add(f"{doc_type}/{MAPPING_ENTRY}", mapping)

    def add_document(self, doc_type: str, doc_id: str, document: dict[str, Any]) -> None:
        self._add(f"{doc_type}/{doc_id}", document)

    def close(self) -> None:
        self._tar.close()
        logger.info("Archived %d entries to %s", self.entries, self.path)

    def __enter__(self) -> GenerationArchive:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def _add(self, entry: str, payload: dict[str, Any]) -> None:
        data = json.dumps(payload, default=str).encode("utf-8")
        info = tarfile.TarInfo(name=f"{self.generation}/{entry}")
        info.size = len(data)
        info.mtime = int(self._mtime)
        self._tar.addfile(info, io.BytesIO(data))
        self.entries += 1


def read_archive(path: Path) -> dict[str, dict[str, Any]]:
    """All entries of an archive keyed by member name."""
    entries = {}
    with tarfile.open(path, "r:gz") as tar:
        for member in tar.getmembers():
            f = tar.extractfile(member)
            if f is not None:
                entries[member.name] = json.loads(f.read())
    return entries
