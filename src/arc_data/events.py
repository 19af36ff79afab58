"""In-process change notifications between data layer components.

Models and the importer publish what they changed; the index sync and any
other collaborator subscribe. Delivery is synchronous, in subscription order.

Payload format passed to listeners:
{
    "event_id": "550e8400-e29b-41d4-a716-446655440000",
    "event_type": "request.changed",
    "timestamp": "2024-02-10T12:34:56.789000+00:00",
    "data": {"id": "...", "url": "...", "type": "saved"}
}
"""

import logging
import threading
import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger(__name__)

# Supported event types
EVENT_TYPES = {
    "request.changed",
    "request.deleted",
    "project.changed",
    "project.deleted",
    "datastore.destroyed",
    "data.imported",
    "index.finished",
    "index.reindexed",
    "variable.changed",
    "variable.deleted",
    "environment.changed",
    "environment.deleted",
    "certificate.changed",
    "certificate.deleted",
    "authdata.changed",
    "hostrule.changed",
    "hostrule.deleted",
    "websocketurl.changed",
    "*",  # Wildcard
}

Listener = Callable[[dict[str, Any]], None]


class EventBus:
    """Publish/subscribe hub for data change notifications."""

    def __init__(self):
        self._listeners: list[tuple[str, Listener]] = []
        self._lock = threading.Lock()

    def subscribe(self, event_type: str, listener: Listener) -> None:
        """Register a listener for an event type.

        Args:
            event_type: One of EVENT_TYPES ("*" receives every event)
            listener: Callable receiving the event payload

        Raises:
            ValueError: If the event type is unknown
        """
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Invalid event type: {event_type}")
        with self._lock:
            self._listeners.append((event_type, listener))

    def unsubscribe(self, event_type: str, listener: Listener) -> bool:
        """Remove a listener. Returns False if it was not registered."""
        with self._lock:
            try:
                self._listeners.remove((event_type, listener))
            except ValueError:
                return False
        return True

    def emit(self, event_type: str, data: Any = None) -> dict[str, Any]:
        """Deliver an event to all matching listeners.

        A failing listener is logged and does not stop delivery to the rest.

        Returns:
            The delivered payload.
        """
        if event_type not in EVENT_TYPES or event_type == "*":
            raise ValueError(f"Invalid event type: {event_type}")

        payload = {
            "event_id": str(uuid.uuid4()),
            "event_type": event_type,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "data": data,
        }

        with self._lock:
            listeners = [
                listener
                for subscribed, listener in self._listeners
                if subscribed in (event_type, "*")
            ]

        if not listeners:
            logger.debug("No listeners for event %s", event_type)

        for listener in listeners:
            try:
                listener(payload)
            except Exception:
                logger.exception(
                    "Listener %r failed handling event %s", listener, event_type
                )
        return payload
