"""URL indexer that keeps the derived index in line with stored requests."""

import logging
import threading
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

from arc_data.indexer.database import IndexDatabase
from arc_data.indexer.models import IndexableRequest, IndexEntry, QueryResult
from arc_data.indexer.urls import build_entries, decompose, normalize_type

if TYPE_CHECKING:
    from arc_data.events import EventBus
    from arc_data.store import DocumentStore

logger = logging.getLogger(__name__)

# Request stores that can be re-indexed, keyed by index type
REINDEX_STORES = {
    "saved": "saved-requests",
    "history": "history-requests",
}


def to_indexable(record: IndexableRequest | Mapping[str, Any]) -> IndexableRequest:
    """Coerce a `{id, url, type}` mapping into an IndexableRequest."""
    if isinstance(record, IndexableRequest):
        return IndexableRequest(
            id=record.id, url=record.url or "", type=normalize_type(record.type)
        )
    return IndexableRequest(
        id=str(record.get("id") or record.get("_id") or record.get("requestId") or ""),
        url=record.get("url") or "",
        type=normalize_type(record.get("type")),
    )


class UrlIndexer:
    """
    Indexer that stores the URL fragments of saved and history requests.

    The document store is the source of truth. The index is derived data that
    can be rebuilt at any time with `reindex`.

    Thread Safety:
        Write operations are serialized by a lock. Queries can run from any
        thread as the database uses thread-local connections.
    """

    def __init__(
        self,
        db_path: Path,
        store: "DocumentStore | None" = None,
        events: "EventBus | None" = None,
        page_size: int = 800,
    ):
        """
        Initialize the indexer.

        Args:
            db_path: Path to the SQLite index file
            store: Document store read by `reindex`
            events: Event bus receiving `index.finished`
            page_size: Number of documents read per page during `reindex`
        """
        self.db = IndexDatabase(db_path)
        self.store = store
        self.events = events
        self.page_size = page_size
        self._initialized = False
        self._write_lock = threading.Lock()

    def initialize(self) -> None:
        """Initialize the database schema."""
        self.db.initialize()
        self._initialized = True

    def close(self) -> None:
        """Close database connections."""
        self.db.close()
        self._initialized = False

    def _ensure_initialized(self) -> None:
        """Ensure the database is initialized."""
        if not self._initialized:
            self.initialize()

    def index(self, records: Iterable[IndexableRequest | Mapping[str, Any]]) -> int:
        """
        Index requests, replacing entries left over from previous URLs.

        When the same id appears more than once the last record wins. New
        entries are written before stale entries are removed.

        Args:
            records: Requests as IndexableRequest or `{id, url, type}` mappings

        Returns:
            Number of entries inserted.
        """
        requests: dict[str, IndexableRequest] = {}
        for record in records:
            request = to_indexable(record)
            if not request.id:
                logger.warning("Skipping index record without id: %r", record)
                continue
            requests.pop(request.id, None)
            requests[request.id] = request
        if not requests:
            return 0

        self._ensure_initialized()
        with self._write_lock:
            existing = self.db.get_entries(requests.keys())

            to_insert: list[IndexEntry] = []
            stale: list[str] = []
            for request_id, request in requests.items():
                stored = existing.get(request_id, [])
                target_ids = {entry.id for entry in build_entries(request)}
                to_insert.extend(decompose(request, stored))
                stored_ids = {entry.id for entry in stored}
                stale.extend(stored_ids - target_ids)

            inserted = self.db.insert_entries(to_insert)
            removed = self.db.delete_entries(stale)

        logger.debug(
            "Indexed %d requests: %d entries added, %d removed",
            len(requests),
            inserted,
            removed,
        )
        if self.events is not None:
            self.events.emit("index.finished", {"ids": list(requests)})
        return inserted

    def delete_indexed_data(self, ids: Iterable[str]) -> None:
        """Remove the entries of the given requests, of any type."""
        ids = [request_id for request_id in ids if request_id]
        if not ids:
            return
        self._ensure_initialized()
        with self._write_lock:
            removed = self.db.delete_for_requests(ids)
        logger.debug("Removed %d index entries of %d requests", removed, len(ids))

    def delete_indexed_type(self, type_: str) -> None:
        """Remove every entry of a (possibly aliased) type."""
        self._ensure_initialized()
        normalized = normalize_type(type_)
        with self._write_lock:
            removed = self.db.delete_type(normalized)
        logger.info("Removed %d index entries of type %s", removed, normalized)

    def clear_indexed_data(self) -> None:
        """Remove every entry."""
        self._ensure_initialized()
        with self._write_lock:
            self.db.clear()
        logger.info("URL index cleared")

    def query(
        self,
        term: str,
        type: str | None = None,
        detailed: bool = False,
    ) -> list[QueryResult]:
        """
        Find requests by a URL fragment.

        Args:
            term: Search term, matched case-insensitively
            type: Optional type filter ("saved" or "history")
            detailed: Match anywhere in a fragment instead of at its start

        Returns:
            One result per request, in match order.
        """
        if not term:
            return []
        self._ensure_initialized()
        lowered = term.lower()
        type_ = normalize_type(type) if type else None
        if detailed:
            hits = self.db.query_contains(lowered, type_)
        else:
            hits = self.db.query_prefix(lowered, type_)

        seen: set[str] = set()
        results: list[QueryResult] = []
        for hit in hits:
            if hit.id in seen:
                continue
            seen.add(hit.id)
            results.append(hit)
        return results

    def reindex(self, type: str) -> int:
        """
        Rebuild the index of all requests of one store.

        Args:
            type: "saved" or "history" (store names are accepted too)

        Returns:
            Number of requests indexed.

        Raises:
            ValueError: If the type is unknown or no document store is attached.
        """
        normalized = normalize_type(type)
        store_name = REINDEX_STORES.get(normalized)
        if store_name is None:
            raise ValueError(f"Unknown request type: {type}")
        if self.store is None:
            raise ValueError("Re-indexing requires a document store")

        logger.info("Starting reindex of %s", store_name)
        count = 0
        for page in self.store.iter_pages(store_name, self.page_size):
            self.index(
                IndexableRequest(id=doc["_id"], url=doc.get("url") or "", type=normalized)
                for doc in page
            )
            count += len(page)
        logger.info("Reindex of %s complete: %d requests indexed", store_name, count)
        return count

    def count(self, type: str | None = None) -> int:
        """Number of stored entries."""
        self._ensure_initialized()
        return self.db.count(normalize_type(type) if type else None)
