"""Index generation publishing."""

from genome_repository.index.documents import (
    DonorTextAccumulator,
    file_text_document,
    iter_documents,
)
from genome_repository.index.generations import (
    generation_name,
    parse_generation_timestamp,
    select_stale,
    sorted_generations,
)
from genome_repository.index.publisher import IndexPublisher, PublishResult, PublishState
from genome_repository.index.schema import DocumentType, IndexSchema, load_schema
from genome_repository.index.sink import BulkSession, ElasticsearchSink, SearchSink

__all__ = [
    "BulkSession",
    "DocumentType",
    "DonorTextAccumulator",
    "ElasticsearchSink",
    "IndexPublisher",
    "IndexSchema",
    "PublishResult",
    "PublishState",
    "SearchSink",
    "file_text_document",
    "generation_name",
    "iter_documents",
    "load_schema",
    "parse_generation_timestamp",
    "select_stale",
    "sorted_generations",
]
