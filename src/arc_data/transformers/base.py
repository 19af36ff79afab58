"""Helpers shared by the import transformers.

Timestamps are epoch milliseconds, as stored in exported files.
"""

import time
import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

IMPORT_KIND = "ARC#Import"

DEFAULT_CHUNK_SIZE = 200

YieldHook = Callable[[], None]


def default_yield() -> None:
    """Let other threads run between chunks of work."""
    time.sleep(0)


def now_millis() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


def new_key() -> str:
    """Random key for entities that have no natural id."""
    return str(uuid.uuid4())


def encode_component(value: str) -> str:
    """Percent-encode a string for use in a key, leaving unreserved marks as is."""
    return quote(value, safe="-_.!~*'()")


def to_millis(value: Any) -> int | None:
    """Read a numeric timestamp. Returns None when `value` is not a number."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value.strip()))
        except ValueError:
            return None
    return None


def parse_date_millis(value: Any) -> int | None:
    """Read a timestamp given as epoch milliseconds or an ISO 8601 string."""
    millis = to_millis(value)
    if millis is not None:
        return millis
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return int(parsed.timestamp() * 1000)
    return None


def day_start(timestamp: Any) -> int:
    """
    Timestamp of the local midnight of the day `timestamp` falls on.

    Raises:
        ValueError: If `timestamp` is not a valid point in time.
    """
    millis = parse_date_millis(timestamp)
    if millis is None:
        raise ValueError(f"Invalid timestamp: {timestamp}")
    try:
        moment = datetime.fromtimestamp(millis / 1000)
    except (OverflowError, OSError) as e:
        raise ValueError(f"Invalid timestamp: {timestamp}") from e
    midnight = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    return int(midnight.timestamp() * 1000)


def generate_request_id(item: dict[str, Any], project_id: str | None = None) -> str:
    """
    Deterministic key of a saved request.

    The same name, URL, method and project always give the same key, so a
    repeated import updates documents instead of duplicating them.
    """
    name = (item.get("name") or "unknown name").lower()
    url = (item.get("url") or "https://").lower()
    method = (item.get("method") or "GET").lower()
    key = f"{encode_component(name)}/{encode_component(url)}/{method}"
    if project_id:
        key += f"/{project_id}"
    return key


def generate_history_id(timestamp: Any, item: dict[str, Any]) -> str:
    """Key of a history entry: the day, the URL and the method."""
    url = (item.get("url") or "").lower()
    method = (item.get("method") or "GET").lower()
    try:
        day = day_start(timestamp)
    except ValueError:
        day = day_start(now_millis())
    return f"{day}/{encode_component(url)}/{method}"


def generate_variable_key(environment: str, name: str) -> str:
    """Key of a variable imported from Postman."""
    return f"postman-var-{encode_component(environment)}-{encode_component(name)}"


def add_project_reference(request: dict[str, Any], project_id: str | None) -> None:
    """Add a project to a request's `projects` list if missing."""
    if not project_id:
        return
    projects = request.setdefault("projects", [])
    if project_id not in projects:
        projects.append(project_id)


def add_request_reference(project: dict[str, Any], request_id: str | None) -> None:
    """Add a request to a project's `requests` list if missing."""
    if not request_id:
        return
    requests = project.setdefault("requests", [])
    if request_id not in requests:
        requests.append(request_id)


def update_item_timings(item: dict[str, Any]) -> dict[str, Any]:
    """Shallow copy of `item` with `updated` and `created` filled in."""
    data = dict(item)
    if to_millis(data.get("updated")) is None or not data.get("updated"):
        data["updated"] = now_millis()
    if not data.get("created"):
        data["created"] = data["updated"]
    return data


def export_envelope(version: str, **sections: Any) -> dict[str, Any]:
    """Canonical import object with the given sections."""
    result: dict[str, Any] = {
        "createdAt": datetime.now(timezone.utc).isoformat(),
        "version": version,
        "kind": IMPORT_KIND,
    }
    result.update(sections)
    return result
