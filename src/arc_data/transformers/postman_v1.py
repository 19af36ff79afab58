"""Transformer for Postman collection v1 files."""

import copy
from typing import Any

from arc_data.transformers.base import export_envelope, now_millis, to_millis
from arc_data.transformers.postman import requests_in_order, v1_request_to_arc


class PostmanV1Transformer:
    """Converts a v1 collection into one project with its requests."""

    def __init__(self, data: dict[str, Any]):
        self.data = copy.deepcopy(data)

    def transform(self) -> dict[str, Any]:
        raw = copy.deepcopy(self.data)
        project = self.read_project_info(raw)
        requests = [v1_request_to_arc(item, project) for item in requests_in_order(raw)]
        return export_envelope(
            "postman-collection-v1", requests=requests, projects=[project]
        )

    @staticmethod
    def read_project_info(raw: dict[str, Any]) -> dict[str, Any]:
        timestamp = to_millis(raw.get("timestamp"))
        if timestamp is None:
            timestamp = now_millis()
        return {
            "kind": "ARC#ProjectData",
            "key": raw.get("id"),
            "name": raw.get("name"),
            "description": raw.get("description"),
            "created": timestamp,
            "updated": timestamp,
            "order": 0,
        }
