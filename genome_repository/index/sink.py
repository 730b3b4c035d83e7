"""Search sink: the document store a generation is published into.

``SearchSink`` is the narrow contract the publisher depends on.
``ElasticsearchSink`` implements it on a single Elasticsearch index per
generation; document types share that index, carry a ``doc_type`` keyword
and use ``<type>:<id>`` document ids.

Writes go through a :class:`BulkSession`, which batches documents by
count and serialized size and flushes batches on a worker pool::

    with sink.bulk("repository-261018_140502") as session:
        for doc_type, doc_id, document in documents:
            session.add(doc_type, doc_id, document)
    # leaving the block waits for every flush and raises PublishError on failure
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from contextlib import contextmanager
from typing import Any, Protocol, runtime_checkable

from elasticsearch import ApiError, Elasticsearch, NotFoundError, TransportError
from elasticsearch.helpers import bulk as es_bulk

from genome_repository import settings
from genome_repository.errors import PublishError

logger = logging.getLogger(__name__)

BulkItem = tuple[str, str, dict[str, Any]]
BatchSender = Callable[[list[BulkItem]], list[str]]


@runtime_checkable
class SearchSink(Protocol):
    def exists(self, name: str) -> bool: ...

    def delete(self, name: str) -> None: ...

    def create(self, name: str, settings: dict[str, Any]) -> None: ...

    def put_schema(self, name: str, doc_type: str, schema: dict[str, Any]) -> None: ...

    def bulk(self, name: str) -> BulkSession: ...

    def reassign_alias(self, alias: str, old_names: Sequence[str], new_name: str) -> None: ...

    def alias_holders(self, alias: str) -> list[str]: ...

    def list_names(self) -> list[str]: ...

    def close(self) -> None: ...

# ─── Bulk session ───────────────────────────────────────────────────────────


class BulkSession:
    """Batches documents and flushes them asynchronously.

    At most ``concurrency`` batches are in flight; ``add`` blocks while the
    pool is saturated.  ``send`` returns a list of per-item failure messages
    (empty on success) or raises.
    """

    def __init__(
        self,
        send: BatchSender,
        *,
        name: str = "",
        max_actions: int | None = None,
        max_bytes: int | None = None,
        concurrency: int | None = None,
    ):
        self.name = name
        self.max_actions = max_actions or settings.get_bulk_actions()
        self.max_bytes = max_bytes or settings.get_bulk_bytes()
        self.concurrency = max(1, concurrency or settings.get_bulk_concurrency())
        self._send = send
        self._executor = ThreadPoolExecutor(
            max_workers=self.concurrency, thread_name_prefix="bulk"
        )
        self._pending: set[Future] = set()
        self._batch: list[BulkItem] = []
        self._batch_bytes = 0
        self._batches = 0
        self._failures: list[str] = []
        self._lock = threading.Lock()
        self._closed = False
        self.counts: dict[str, int] = {}

    @property
    def failures(self) -> list[str]:
        with self._lock:
            return list(self._failures)

    def add(self, doc_type: str, doc_id: str, document: dict[str, Any]) -> None:
        if self._closed:
            raise PublishError(f"Bulk session for '{self.name}' is closed")
        self._batch.append((doc_type, doc_id, document))
        self._batch_bytes += len(json.dumps(document, default=str))
        self.counts[doc_type] = self.counts.get(doc_type, 0) + 1
        if len(self._batch) >= self.max_actions or self._batch_bytes >= self.max_bytes:
            self.flush()

    def flush(self) -> None:
        if not self._batch:
            return
        batch, self._batch, self._batch_bytes = self._batch, [], 0
        self._batches += 1
        batch_no = self._batches

        while len(self._pending) >= self.concurrency:
            done, self._pending = wait(self._pending, return_when=FIRST_COMPLETED)
            self._collect(done)

        logger.debug("Flushing batch %d (%d docs) to '%s'", batch_no, len(batch), self.name)
        self._pending.add(self._executor.submit(self._run_batch, batch_no, batch))

    def close(self) -> None:
        """Flush, wait for every batch and raise if any batch failed.

        Raises:
            PublishError: If any document or batch failed.
        """
        if self._closed:
            return
        try:
            self.flush()
            self._drain()
        finally:
            self._closed = True
            self._executor.shutdown(wait=True)

        failures = self.failures
        if failures:
            sample = "; ".join(failures[:5])
            raise PublishError(
                f"{len(failures)} bulk failure(s) indexing '{self.name}': {sample}"
            )
        logger.info(
            "Indexed %d documents into '%s' in %d batch(es)",
            sum(self.counts.values()),
            self.name,
            self._batches,
        )

    def abort(self) -> None:
        """Stop accepting documents and wait for in-flight batches, raising nothing."""
        self._closed = True
        self._batch = []
        self._drain()
        self._executor.shutdown(wait=True)

    def __enter__(self) -> BulkSession:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.close()
        else:
            self.abort()

    def _drain(self) -> None:
        if self._pending:
            done, _ = wait(self._pending)
            self._pending = set()
            self._collect(done)

    def _collect(self, done: set[Future]) -> None:
        for future in done:
            error = future.exception()
            if error is not None:
                with self._lock:
                    self._failures.append(f"batch error: {error}")

    def _run_batch(self, batch_no: int, batch: list[BulkItem]) -> None:
        failures = self._send(batch)
        if failures:
            logger.error(
                "Batch %d to '%s': %d of %d failed", batch_no, self.name, len(failures), len(batch)
            )
            with self._lock:
                self._failures.extend(failures)
        else:
            logger.debug("Batch %d to '%s' succeeded", batch_no, self.name)


# ─── Elasticsearch ──────────────────────────────────────────────────────────


@contextmanager
def _publish_errors(action: str):
    try:
        yield
    except (ApiError, TransportError) as e:
        raise PublishError(f"{action} failed: {e}") from e


class ElasticsearchSink:
    """``SearchSink`` over one Elasticsearch index per generation."""

    def __init__(
        self,
        url: str | None = None,
        *,
        client: Elasticsearch | None = None,
        timeout: float | None = None,
    ):
        self.url = url or settings.get_index_url()
        self.client = client or Elasticsearch(
            self.url, request_timeout=timeout or settings.get_index_timeout()
        )

    def close(self) -> None:
        self.client.close()

    @staticmethod
    def document_id(doc_type: str, doc_id: str) -> str:
        return f"{doc_type}:{doc_id}"

    def exists(self, name: str) -> bool:
        with _publish_errors(f"Checking index '{name}'"):
            return bool(self.client.indices.exists(index=name))

    def delete(self, name: str) -> None:
        logger.info("Deleting index '%s'...", name)
        with _publish_errors(f"Deleting index '{name}'"):
            self.client.indices.delete(index=name)

    def create(self, name: str, settings: dict[str, Any]) -> None:
        logger.info("Creating index '%s'...", name)
        with _publish_errors(f"Creating index '{name}'"):
            self.client.indices.create(
                index=name,
                settings=settings,
                mappings={"properties": {"doc_type": {"type": "keyword"}}},
            )

    def put_schema(self, name: str, doc_type: str, schema: dict[str, Any]) -> None:
        logger.debug("Putting '%s' mapping on '%s'", doc_type, name)
        with _publish_errors(f"Putting '{doc_type}' mapping on '{name}'"):
            self.client.indices.put_mapping(
                index=name,
                properties=schema.get("properties", {}),
                dynamic=schema.get("dynamic"),
            )

    def bulk(self, name: str) -> BulkSession:
        return BulkSession(lambda batch: self._send_batch(name, batch), name=name)

    def _send_batch(self, name: str, batch: list[BulkItem]) -> list[str]:
        actions = [
            {
                "_index": name,
                "_id": self.document_id(doc_type, doc_id),
                "_source": {**document, "doc_type": doc_type},
            }
            for doc_type, doc_id, document in batch
        ]
        _, errors = es_bulk(
            self.client,
            actions,
            chunk_size=len(actions),
            max_chunk_bytes=2**31 - 1,
            raise_on_error=False,
            raise_on_exception=True,
        )
        return [json.dumps(error, default=str) for error in errors]

    def reassign_alias(self, alias: str, old_names: Sequence[str], new_name: str) -> None:
        actions: list[dict[str, Any]] = [
            {"remove": {"index": old, "alias": alias}} for old in old_names
        ]
        actions.append({"add": {"index": new_name, "alias": alias}})
        logger.info("Assigning alias '%s' to '%s' (from %s)", alias, new_name, list(old_names))
        with _publish_errors(f"Assigning alias '{alias}' to '{new_name}'"):
            response = self.client.indices.update_aliases(actions=actions)
        if not response["acknowledged"]:
            raise PublishError(f"Assigning alias '{alias}' to '{new_name}' was not acknowledged")

    def alias_holders(self, alias: str) -> list[str]:
        try:
            response = self.client.indices.get_alias(name=alias)
        except NotFoundError:
            return []
        except (ApiError, TransportError) as e:
            raise PublishError(f"Reading alias '{alias}' failed: {e}") from e
        return sorted(response.keys())

    def list_names(self) -> list[str]:
        with _publish_errors("Listing indices"):
            response = self.client.indices.get_alias(index="*")
        return sorted(response.keys())
