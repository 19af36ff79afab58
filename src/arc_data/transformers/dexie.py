"""Transformer for exports of the IndexedDB (Dexie) based data store.

In this format projects list the ids of their requests and request payloads
are kept as HAR logs. Records are processed in chunks so that a large history
does not hold the interpreter for the whole transform.
"""

import copy
import logging
from typing import Any

from arc_data.transformers.base import (
    DEFAULT_CHUNK_SIZE,
    YieldHook,
    add_project_reference,
    add_request_reference,
    default_yield,
    export_envelope,
    generate_history_id,
    generate_request_id,
    new_key,
    now_millis,
    parse_date_millis,
)

logger = logging.getLogger(__name__)


def parse_har_headers(headers: Any) -> str:
    """Header block ("name: value" lines) from a HAR header list."""
    if not isinstance(headers, list) or not headers:
        return ""
    return "\n".join(f"{item.get('name')}: {item.get('value')}" for item in headers)


def _har_entries(item: dict[str, Any]) -> list[dict[str, Any]]:
    har = item.get("_har") or item.get("har") or {}
    entries = har.get("entries") if isinstance(har, dict) else None
    return entries if isinstance(entries, list) else []


def _apply_har_entry(target: dict[str, Any], entry: dict[str, Any]) -> None:
    request = entry.get("request") or {}
    target["headers"] = parse_har_headers(request.get("headers"))
    post_data = request.get("postData") or {}
    target["payload"] = post_data.get("text") or ""
    started = parse_date_millis(entry.get("startedDateTime"))
    target["created"] = started if started is not None else now_millis()


class DexieTransformer:
    """Converts a Dexie export into the canonical import object."""

    def __init__(
        self,
        data: dict[str, Any],
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        yield_hook: YieldHook = default_yield,
    ):
        self.data = copy.deepcopy(data)
        self.chunk_size = chunk_size
        self.yield_hook = yield_hook

    def transform(self) -> dict[str, Any]:
        raw = copy.deepcopy(self.data)
        saved, history = self.parse_requests(raw.get("requests") or [])
        projects = self.process_projects(raw.get("projects") or [])
        self.associate_projects(saved, projects)
        return export_envelope(
            "unknown",
            requests=[item["request"] for item in saved],
            projects=[item["project"] for item in projects],
            history=[item["request"] for item in history],
        )

    def parse_requests(
        self, records: list[dict[str, Any]]
    ) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
        """
        Split records into saved and history items.

        Returns:
            Tuple of (saved, history) lists of `{origin, request}` items.
            History is de-duplicated by key.
        """
        saved: list[dict[str, Any]] = []
        history: list[dict[str, Any]] = []
        for start in range(0, len(records), self.chunk_size):
            if start:
                self.yield_hook()
            for record in records[start : start + self.chunk_size]:
                record_type = record.get("type")
                if record_type == "history":
                    history.append(self.parse_history_item(record))
                elif record_type == "saved":
                    saved.append(self.parse_saved_item(record))
                elif record_type == "drive":
                    saved.append(self.parse_drive_item(record))
                else:
                    logger.debug("Skipping record of unknown type %r", record_type)

        seen: set[str] = set()
        unique_history = []
        for item in history:
            key = item["request"]["key"]
            if key in seen:
                continue
            seen.add(key)
            unique_history.append(item)
        return saved, unique_history

    def parse_history_item(self, item: dict[str, Any]) -> dict[str, Any]:
        """History request from the last HAR entry of a record."""
        updated = parse_date_millis(item.get("updateTime")) or now_millis()
        request: dict[str, Any] = {
            "method": item.get("method") or "GET",
            "url": item.get("url") or "",
            "type": "history",
            "headers": "",
            "payload": "",
        }
        entries = _har_entries(item)
        if entries:
            _apply_har_entry(request, entries[-1])
        else:
            request["created"] = updated
        request["updated"] = now_millis()
        request["key"] = generate_history_id(request["created"], request)
        return {"origin": item.get("id"), "request": request}

    def parse_saved_item(self, item: dict[str, Any]) -> dict[str, Any]:
        """Saved request from the referenced HAR entry of a record."""
        name = item.get("name") or item.get("_name")
        request: dict[str, Any] = {
            "name": name,
            "method": item.get("method") or "GET",
            "url": item.get("url") or "",
            "type": "saved",
            "kind": "ARC#HttpRequest",
            "headers": "",
            "payload": "",
        }
        entries = _har_entries(item)
        index = item.get("referenceEntry") or 0
        if isinstance(index, int) and 0 <= index < len(entries):
            _apply_har_entry(request, entries[index])
        request["updated"] = now_millis()
        request.setdefault("created", request["updated"])
        request["key"] = generate_request_id(request)
        return {"origin": item.get("id"), "request": request}

    def parse_drive_item(self, item: dict[str, Any]) -> dict[str, Any]:
        result = self.parse_saved_item(item)
        result["request"]["driveId"] = item.get("driveId")
        return result

    def process_projects(self, projects: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Projects with their request ids. Projects without requests are dropped."""
        result = []
        for item in projects:
            request_ids = item.get("requestIds")
            if not request_ids:
                continue
            result.append(
                {
                    "request_ids": list(request_ids),
                    "project": {
                        "kind": "ARC#Project",
                        "key": new_key(),
                        "name": item.get("name"),
                        "order": item.get("order") or 0,
                        "updated": item.get("updateTime"),
                        "created": item.get("created"),
                    },
                }
            )
        return result

    def associate_projects(
        self, saved: list[dict[str, Any]], projects: list[dict[str, Any]]
    ) -> None:
        """Link requests to the projects that listed them."""
        by_origin: dict[Any, dict[str, Any]] = {}
        for item in saved:
            by_origin.setdefault(item["origin"], item["request"])
        for item in projects:
            project = item["project"]
            for request_id in item["request_ids"]:
                request = by_origin.get(request_id)
                if request is None:
                    continue
                request["key"] += f"/{project['key']}"
                add_project_reference(request, project["key"])
                add_request_reference(project, request["key"])
