"""Transformer for Postman backup (data dump) files.

A backup holds several v1 collections plus globals and environments, which
become variables. Globals are placed in the "default" environment.
"""

import copy
from typing import Any

from arc_data.transformers.base import export_envelope, generate_variable_key
from arc_data.transformers.postman import (
    ensure_variables_syntax,
    requests_in_order,
    v1_request_to_arc,
)


class PostmanBackupTransformer:
    """Converts a Postman backup into projects, requests and variables."""

    def __init__(self, data: dict[str, Any]):
        self.data = copy.deepcopy(data)

    def transform(self) -> dict[str, Any]:
        raw = copy.deepcopy(self.data)
        projects: list[dict[str, Any]] = []
        requests: list[dict[str, Any]] = []
        for index, collection in enumerate(raw.get("collections") or []):
            project, collection_requests = self.read_collection(collection, index)
            projects.append(project)
            requests.extend(collection_requests)

        result = export_envelope("postman-backup", requests=requests, projects=projects)
        variables = self.compute_variables(raw)
        if variables:
            result["variables"] = variables
        return result

    @staticmethod
    def read_collection(
        collection: dict[str, Any], index: int
    ) -> tuple[dict[str, Any], list[dict[str, Any]]]:
        project = {
            "kind": "ARC#ProjectData",
            "key": collection.get("id"),
            "name": collection.get("name"),
            "description": collection.get("description"),
            "order": index,
            "created": collection.get("createdAt"),
            "updated": collection.get("updatedAt"),
        }
        requests = [v1_request_to_arc(item, project) for item in requests_in_order(collection)]
        return project, requests

    def compute_variables(self, raw: dict[str, Any]) -> list[dict[str, Any]]:
        result = [
            self.variable(item, "default") for item in raw.get("globals") or []
        ]
        for env in raw.get("environments") or []:
            name = env.get("name") or "Unnamed"
            result.extend(self.variable(item, name) for item in env.get("values") or [])
        return result

    @staticmethod
    def variable(item: dict[str, Any], environment: str) -> dict[str, Any]:
        name = item.get("key") or ""
        return {
            "kind": "ARC#VariableData",
            "key": generate_variable_key(environment, name),
            "enabled": bool(item.get("enabled", True)),
            "environment": environment,
            "value": ensure_variables_syntax(item.get("value")),
            "name": name,
        }
