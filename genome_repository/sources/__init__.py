"""Source processors and per-source import."""

from genome_repository.sources.importer import (
    ImportResult,
    SourceImporter,
    load_snapshot,
    read_inputs,
    snapshot_path,
)
from genome_repository.sources.processors import (
    PROCESSORS,
    JsonRecordProcessor,
    SourceFileProcessor,
    get_processor,
    parse_json_documents,
)

__all__ = [
    "PROCESSORS",
    "ImportResult",
    "JsonRecordProcessor",
    "SourceFileProcessor",
    "SourceImporter",
    "get_processor",
    "load_snapshot",
    "parse_json_documents",
    "read_inputs",
    "snapshot_path",
]
