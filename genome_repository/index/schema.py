"""Versioned static index schema (settings + per-type mappings)."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from functools import cache
from pathlib import Path
from typing import Any

import yaml

SCHEMA_PATH = Path(__file__).parent / "schema.yaml"


class DocumentType(str, Enum):
    FILE = "file"
    FILE_TEXT = "file_text"
    DONOR_TEXT = "donor_text"
    REPOSITORY = "repository"


@dataclass(frozen=True)
class IndexSchema:
    version: int
    settings: dict[str, Any]
    mappings: dict[DocumentType, dict[str, Any]]

    def mapping(self, doc_type: DocumentType) -> dict[str, Any]:
        return self.mappings[doc_type]


@cache
def load_schema(path: Path = SCHEMA_PATH) -> IndexSchema:
    """Load the packaged schema.

    Raises:
        ValueError: If a document type has no mapping.
    """
    with path.open() as f:
        data = yaml.safe_load(f)
    raw_mappings = data.get("mappings", {})
    missing = [t.value for t in DocumentType if t.value not in raw_mappings]
    if missing:
        raise ValueError(f"Schema {path} has no mapping for: {', '.join(missing)}")
    return IndexSchema(
        version=int(data["version"]),
        settings=data.get("settings", {}),
        mappings={t: raw_mappings[t.value] for t in DocumentType},
    )
