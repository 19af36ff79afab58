"""Transformer for exports of the current data store."""

import copy
from typing import Any

from arc_data.transformers.base import (
    IMPORT_KIND,
    add_project_reference,
    add_request_reference,
    generate_history_id,
    generate_request_id,
    new_key,
    update_item_timings,
)

# Export file section -> canonical section
SECTION_ALIASES = {
    "websocket-url-history": "websocketurlhistory",
    "url-history": "urlhistory",
    "auth-data": "authdata",
    "host-rules": "hostrules",
    "client-certificates": "clientcertificates",
}


class PouchTransformer:
    """Normalizes an export of the current schema."""

    def __init__(self, data: dict[str, Any]):
        self.data = copy.deepcopy(data)

    def transform(self) -> dict[str, Any]:
        data = copy.deepcopy(self.data)
        projects = data.get("projects") or []
        if projects:
            projects = self.transform_projects(projects)
            data["projects"] = projects
        if data.get("requests"):
            data["requests"] = self.transform_requests(data["requests"], projects)
        for project in projects:
            project.pop("_referenceId", None)
        if data.get("history"):
            data["history"] = self.transform_history(data["history"])

        for alias, section in SECTION_ALIASES.items():
            items = data.pop(alias, None) or data.get(section)
            if items:
                data[section] = items
        if data.get("clientcertificates"):
            data["clientcertificates"] = self.transform_client_certificates(
                data["clientcertificates"]
            )
        if not data.get("loadToWorkspace"):
            data["kind"] = IMPORT_KIND
        return data

    def transform_projects(self, projects: list[dict[str, Any]]) -> list[dict[str, Any]]:
        result = []
        for project in projects:
            project = update_item_timings(project)
            if not project.get("key"):
                project["key"] = new_key()
            result.append(project)
        return result

    def transform_requests(
        self, requests: list[dict[str, Any]], projects: list[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        """Requests with defaults applied and legacy project links resolved."""
        result = []
        for request in requests:
            request = dict(request)
            ref_id = request.pop("_referenceLegacyProject", None) or request.pop(
                "legacyProject", None
            )
            request.pop("legacyProject", None)
            if not request.get("key"):
                request["key"] = generate_request_id(request, ref_id)
            if ref_id:
                project = next(
                    (
                        p
                        for p in projects
                        if p.get("key") == ref_id or p.get("_referenceId") == ref_id
                    ),
                    None,
                )
                if project is not None:
                    add_project_reference(request, project["key"])
                    add_request_reference(project, request["key"])
            request["name"] = request.get("name") or "unnamed"
            request["url"] = request.get("url") or "http://"
            request["method"] = request.get("method") or "GET"
            request["headers"] = request.get("headers") or ""
            request["payload"] = request.get("payload") or ""
            result.append(update_item_timings(request))
        return result

    def transform_history(self, history: list[dict[str, Any]]) -> list[dict[str, Any]]:
        result = []
        for item in history:
            entry = update_item_timings(item)
            entry["url"] = item.get("url") or "http://"
            entry["method"] = item.get("method") or "GET"
            entry["headers"] = item.get("headers") or ""
            entry["payload"] = item.get("payload") or ""
            if not entry.get("key"):
                entry["key"] = generate_history_id(item.get("created"), entry)
            result.append(entry)
        return result

    def transform_client_certificates(
        self, items: list[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        """Keeps only client certificate items."""
        return [
            update_item_timings(item)
            for item in items
            if item.get("kind") == "ARC#ClientCertificate"
        ]
