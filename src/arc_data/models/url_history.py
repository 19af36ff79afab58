"""History of URLs typed into the URL editors, used for suggestions."""

from __future__ import annotations

from typing import Any

from arc_data.errors import DocumentNotFoundError, ValidationError
from arc_data.models.base import BaseModel
from arc_data.transformers.base import day_start, now_millis


class UrlHistoryModel(BaseModel):
    """Counts how often each URL was used. Documents are keyed by the lower-cased URL."""

    store_name = "url-history"

    def store_url(self, url: str) -> str:
        """
        Record a use of a URL.

        Returns:
            The new revision of the history entry.
        """
        if not url:
            raise ValidationError('The "value" property is not defined.')
        key = url.lower()
        try:
            doc = self.store.get(self.store_name, key)
        except DocumentNotFoundError:
            doc = {"_id": key, "cnt": 0, "url": url}
        doc["cnt"] = int(doc.get("cnt") or 0) + 1
        doc["time"] = now_millis()
        return self.put_latest(self.store_name, doc)

    def query(self, q: str) -> list[dict[str, Any]]:
        """
        Entries whose URL contains `q`, without regard to case.

        Sorted by the day of last use, then by the use count.
        """
        if not q:
            raise ValidationError('The "q" property is not defined.')
        return self._entries(q.lower())

    def _entries(self, query: str | None = None) -> list[dict[str, Any]]:
        result = []
        for page in self.store.iter_pages(self.store_name, 1000):
            for doc in page:
                if query and query not in doc["_id"]:
                    continue
                item = dict(doc)
                item["url"] = item.get("url") or item["_id"]
                item["_time"] = day_start(item.get("time") or now_millis())
                result.append(item)
        result.sort(key=lambda item: (item["_time"], item.get("cnt") or 0))
        return result


class WebsocketUrlHistoryModel(UrlHistoryModel):
    """URL history of the web socket client."""

    store_name = "websocket-url-history"

    def update(self, item: dict[str, Any]) -> dict[str, Any]:
        """
        Store an entry as given.

        Raises:
            ValidationError: If the item or its `_id` is missing.
        """
        if not item:
            raise ValidationError('Missing "item" property.')
        if not item.get("_id"):
            raise ValidationError('Missing "_id" property.')
        doc = dict(item)
        old_rev = doc.get("_rev")
        doc["_rev"] = self.put_latest(self.store_name, doc)
        self.emit("websocketurl.changed", {"item": doc, "oldRev": old_rev})
        return doc

    def read_url(self, url: str) -> dict[str, Any] | None:
        """Entry of a URL, None when the URL was never used."""
        try:
            return self.read(url.lower() if url else url)
        except DocumentNotFoundError:
            return None

    def list(self, q: str | None = None) -> list[dict[str, Any]]:
        """All entries, or those whose URL contains `q`, in suggestion order."""
        return self._entries(q.lower() if q else None)
