"""Keeps the URL index in sync with request change notifications.

Change notifications are coalesced: ids arriving within the debounce window
are handed to the indexer in a single call. Full re-indexing runs on a
background worker thread and reports completion through the returned future
and an `index.reindexed` event.
"""

import logging
import threading
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

from arc_data.events import EventBus
from arc_data.indexer import IndexableRequest, TextIndexer, UrlIndexer, normalize_type
from arc_data.indexer.indexer import REINDEX_STORES, to_indexable

logger = logging.getLogger(__name__)

# Datastore names that map to an index type on destroy notifications
DESTROY_ALIASES = {
    "saved-requests": "saved",
    "saved": "saved",
    "history-requests": "history",
    "history": "history",
}


class IndexSync:
    """Routes data change events to the URL indexer."""

    def __init__(
        self,
        indexer: UrlIndexer,
        events: EventBus,
        debounce: float = 0.025,
        text_indexer: TextIndexer | None = None,
    ):
        """Initialize the sync.

        Args:
            indexer: The URL indexer to update.
            events: Event bus to subscribe to and to report completion on.
            debounce: Coalescing window in seconds. Must be >= 0.
            text_indexer: Optional term index rebuilt by background re-index.
        """
        if debounce < 0:
            raise ValueError(f"Debounce must not be negative, got {debounce}")

        self._indexer = indexer
        self._events = events
        self._debounce = debounce
        self._text_indexer = text_indexer

        self._lock = threading.Lock()
        self._pending_index: dict[str, IndexableRequest] = {}
        self._pending_delete: list[str] = []
        self._index_timer: threading.Timer | None = None
        self._delete_timer: threading.Timer | None = None

        self._executor: ThreadPoolExecutor | None = None
        self._subscriptions = [
            ("request.changed", self._on_request_changed),
            ("request.deleted", self._on_request_deleted),
            ("datastore.destroyed", self._on_datastore_destroyed),
        ]
        self._started = False

    def start(self) -> None:
        """Subscribe to change events."""
        if self._started:
            logger.warning("Index sync already started")
            return
        for event_type, listener in self._subscriptions:
            self._events.subscribe(event_type, listener)
        self._started = True
        logger.info("Index sync started (debounce: %.0fms)", self._debounce * 1000)

    def stop(self) -> None:
        """Flush pending work, unsubscribe and wait for background jobs."""
        if self._started:
            for event_type, listener in self._subscriptions:
                self._events.unsubscribe(event_type, listener)
            self._started = False
        self.flush()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        logger.info("Index sync stopped")

    # Event handlers

    def _on_request_changed(self, event: dict[str, Any]) -> None:
        data = event.get("data")
        items = data if isinstance(data, list) else [data]
        self.queue_index(item for item in items if isinstance(item, dict))

    def _on_request_deleted(self, event: dict[str, Any]) -> None:
        data = event.get("data")
        items = data if isinstance(data, list) else [data]
        ids = []
        for item in items:
            if isinstance(item, dict):
                request_id = item.get("requestId") or item.get("id")
            else:
                request_id = item
            if request_id:
                ids.append(str(request_id))
        self.queue_delete(ids)

    def _on_datastore_destroyed(self, event: dict[str, Any]) -> None:
        data = event.get("data") or {}
        names = data.get("datastore") if isinstance(data, dict) else data
        if isinstance(names, str):
            names = [names]
        for name in names or []:
            if name == "all":
                self._indexer.clear_indexed_data()
                return
            type_ = DESTROY_ALIASES.get(name)
            if type_ is None:
                logger.debug("Ignoring destroyed datastore %s", name)
                continue
            self._indexer.delete_indexed_type(type_)

    # Debounced queues

    def queue_index(self, records: Iterable[IndexableRequest | dict[str, Any]]) -> None:
        """Queue requests for indexing; an already queued id is updated in place.

        A pending delete of the same id is dropped, the latest event wins.
        """
        with self._lock:
            added = False
            for record in records:
                request = to_indexable(record)
                if not request.id:
                    continue
                if request.id in self._pending_delete:
                    self._pending_delete.remove(request.id)
                if request.id in self._pending_index:
                    queued = self._pending_index[request.id]
                    queued.url = request.url
                    queued.type = request.type
                else:
                    self._pending_index[request.id] = request
                    added = True
            if added:
                self._index_timer = self._restart_timer(self._index_timer, self._flush_index)

    def queue_delete(self, ids: Iterable[str]) -> None:
        """Queue request ids whose index entries should be removed.

        Pending indexing of the same ids is dropped.
        """
        with self._lock:
            added = False
            for request_id in ids:
                self._pending_index.pop(request_id, None)
                if request_id not in self._pending_delete:
                    self._pending_delete.append(request_id)
                    added = True
            if added:
                self._delete_timer = self._restart_timer(
                    self._delete_timer, self._flush_delete
                )

    def _restart_timer(self, timer: threading.Timer | None, target) -> threading.Timer:
        if timer is not None:
            timer.cancel()
        timer = threading.Timer(self._debounce, target)
        timer.daemon = True
        timer.start()
        return timer

    def flush(self) -> None:
        """Run pending index and delete work now."""
        self._flush_index()
        self._flush_delete()

    def _flush_index(self) -> None:
        with self._lock:
            if self._index_timer is not None:
                self._index_timer.cancel()
                self._index_timer = None
            records = list(self._pending_index.values())
            self._pending_index.clear()
        if not records:
            return
        try:
            self._indexer.index(records)
        except Exception:
            logger.exception("Error indexing %d requests", len(records))

    def _flush_delete(self) -> None:
        with self._lock:
            if self._delete_timer is not None:
                self._delete_timer.cancel()
                self._delete_timer = None
            ids = list(self._pending_delete)
            self._pending_delete.clear()
        if not ids:
            return
        try:
            self._indexer.delete_indexed_data(ids)
        except Exception:
            logger.exception("Error removing index entries of %d requests", len(ids))

    # Background re-index

    def reindex_in_background(self, type_: str) -> Future:
        """Start a full re-index of one request store on the worker thread.

        Returns:
            Future resolving to the number of requests indexed.
        """
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="arc-reindex")
        return self._executor.submit(self._reindex, type_)

    def _reindex(self, type_: str) -> int:
        try:
            count = self._indexer.reindex(type_)
            if self._text_indexer is not None:
                store_name = REINDEX_STORES[normalize_type(type_)]
                self._text_indexer.index_store(store_name, "name")
        except Exception as e:
            logger.exception("Background reindex of %s failed", type_)
            self._events.emit("index.reindexed", {"type": type_, "error": str(e)})
            raise
        self._events.emit("index.reindexed", {"type": type_, "count": count})
        return count
