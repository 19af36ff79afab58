"""Transformer for the first generation export files.

These files hold integer ids and either a `{requests, projects}` object or a
single bare request.
"""

import copy
from typing import Any

from arc_data.transformers.base import (
    add_request_reference,
    export_envelope,
    new_key,
    now_millis,
    to_millis,
)


def is_single_request(data: dict[str, Any]) -> bool:
    """True when the file is one request without a wrapping object."""
    return "requests" not in data and "projects" not in data


class LegacyTransformer:
    """Converts a legacy export into the canonical import object."""

    def __init__(self, data: dict[str, Any]):
        self.data = copy.deepcopy(data)

    def transform(self) -> dict[str, Any]:
        raw = copy.deepcopy(self.data)
        if is_single_request(raw):
            projects: list[dict[str, Any]] = []
            requests = [self.transform_request(raw, projects)]
        else:
            projects = self.transform_projects(raw.get("projects"))
            requests = self.transform_requests(raw.get("requests"), projects)
            for project in projects:
                project.pop("originId", None)
        return export_envelope("unknown", requests=requests, projects=projects)

    def transform_projects(self, projects: Any) -> list[dict[str, Any]]:
        """Projects with new keys. The legacy id is kept under `originId`."""
        if not isinstance(projects, list) or not projects:
            return []
        result = []
        for item in projects:
            created = to_millis(item.get("created"))
            result.append(
                {
                    "kind": "ARC#ProjectData",
                    "key": new_key(),
                    "created": created if created is not None else now_millis(),
                    "name": item.get("name") or "unnamed",
                    "order": 0,
                    "updated": now_millis(),
                    "originId": item.get("id"),
                }
            )
        return result

    def transform_requests(
        self, requests: Any, projects: list[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        if not isinstance(requests, list) or not requests:
            return []
        return [self.transform_request(item, projects) for item in requests]

    def transform_request(
        self, item: dict[str, Any], projects: list[dict[str, Any]]
    ) -> dict[str, Any]:
        """Current model of a legacy request, linked to its project."""
        project = self.find_project(item.get("project"), projects)
        key = new_key()
        created = to_millis(item.get("time"))
        result: dict[str, Any] = {
            "kind": "ARC#RequestData",
            "key": key,
            "created": created if created is not None else now_millis(),
            "updated": now_millis(),
            "headers": item.get("headers") or "",
            "method": item.get("method") or "GET",
            "name": item.get("name") or "unnamed",
            "payload": item.get("payload") or "",
            "type": "saved",
            "url": item.get("url") or "http://",
        }
        if project is not None:
            result["projects"] = [project["key"]]
            add_request_reference(project, key)
        if item.get("driveId"):
            result["driveId"] = item["driveId"]
        return result

    @staticmethod
    def find_project(
        project_id: Any, projects: list[dict[str, Any]]
    ) -> dict[str, Any] | None:
        if not project_id:
            return None
        for project in projects:
            if project.get("originId") == project_id:
                return project
        return None
