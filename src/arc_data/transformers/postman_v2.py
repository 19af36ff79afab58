"""Transformer for Postman collection v2.0 and v2.1 files."""

import copy
from typing import Any

from arc_data.transformers.base import (
    DEFAULT_CHUNK_SIZE,
    YieldHook,
    add_project_reference,
    default_yield,
    export_envelope,
    generate_request_id,
    now_millis,
)
from arc_data.transformers.postman import (
    ensure_variables_syntax,
    ensure_vars_recursively,
    multipart_part,
    param_value,
)


def compute_headers(headers: Any) -> str:
    """Header block from a v2 header list. Disabled headers are left out."""
    if isinstance(headers, str):
        return headers
    if not isinstance(headers, list):
        return ""
    return "\n".join(
        f"{item.get('key')}: {item.get('value')}"
        for item in headers
        if not item.get("disabled")
    )


def request_url(request: dict[str, Any]) -> str:
    url = request.get("url")
    if isinstance(url, str):
        return url
    if isinstance(url, dict) and url.get("raw"):
        return url["raw"]
    return "http://"


# Marks the end of a folder iterator, items themselves may be null
_EXHAUSTED = object()


class PostmanV2Transformer:
    """Converts a v2 collection into one project with its requests.

    Folders are flattened depth-first in document order. After every
    `chunk_size` requests the yield hook is called.
    """

    def __init__(
        self,
        data: dict[str, Any],
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        yield_hook: YieldHook = default_yield,
    ):
        self.data = copy.deepcopy(data)
        self.chunk_size = chunk_size
        self.yield_hook = yield_hook

    @property
    def project_id(self) -> str | None:
        return (self.data.get("info") or {}).get("_postman_id")

    def transform(self) -> dict[str, Any]:
        requests = self.extract_requests_v2(copy.deepcopy(self.data.get("item") or []))
        return export_envelope(
            "postman-collection-v2",
            requests=requests,
            projects=[self.read_project_info(requests)],
        )

    def read_project_info(self, requests: list[dict[str, Any]]) -> dict[str, Any]:
        info = self.data.get("info") or {}
        timestamp = now_millis()
        project: dict[str, Any] = {
            "kind": "ARC#ProjectData",
            "key": info.get("_postman_id"),
            "name": info.get("name"),
            "description": info.get("description"),
            "created": timestamp,
            "updated": timestamp,
            "order": 0,
        }
        if requests:
            project["requests"] = [request["key"] for request in requests]
        return project

    def extract_requests_v2(self, items: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """
        Convert all requests of an item tree.

        Args:
            items: Collection `item` list (requests and folders)

        Returns:
            Requests in depth-first document order.
        """
        result: list[dict[str, Any]] = []
        stack = [iter(items)]
        processed = 0
        while stack:
            item = next(stack[-1], _EXHAUSTED)
            if item is _EXHAUSTED:
                stack.pop()
                continue
            if not isinstance(item, dict):
                continue
            if "item" in item:
                stack.append(iter(item.get("item") or []))
                continue
            result.append(self.compute_arc_request(item))
            processed += 1
            if processed == self.chunk_size:
                processed = 0
                self.yield_hook()
        return result

    def compute_arc_request(self, item: dict[str, Any]) -> dict[str, Any]:
        request = item.get("request") or {}
        if isinstance(request, str):
            request = {"url": request}
        timestamp = now_millis()
        result: dict[str, Any] = {
            "kind": "ARC#RequestData",
            "name": item.get("name") or "unnamed",
            "url": ensure_variables_syntax(request_url(request)),
            "method": ensure_variables_syntax(request.get("method") or "GET"),
            "created": timestamp,
            "updated": timestamp,
            "type": "saved",
            "headers": compute_headers(ensure_vars_recursively(request.get("header"))),
        }
        project_id = self.project_id
        result["key"] = generate_request_id(result, project_id)
        result["payload"] = self.compute_payload(request.get("body"), result)
        add_project_reference(result, project_id)
        if item.get("description"):
            result["description"] = item["description"]
        return result

    def compute_payload(self, body: Any, request: dict[str, Any]) -> str:
        """Payload for the body mode. Form data is set as `multipart` on the request."""
        if not isinstance(body, dict):
            return ""
        mode = body.get("mode")
        definition = body.get(mode) if mode else None
        if not definition:
            return ""
        if mode == "raw":
            return ensure_variables_syntax(body.get("raw"))
        if mode == "formdata" and isinstance(definition, list):
            parts = ensure_vars_recursively(definition)
            request["multipart"] = [
                multipart_part(part, not part.get("disabled")) for part in parts
            ]
            return ""
        if mode == "urlencoded" and isinstance(definition, list):
            parts = ensure_vars_recursively(definition)
            return "&".join(
                f"{param_value(part.get('key'))}={param_value(part.get('value'))}"
                for part in parts
                if not part.get("disabled")
            )
        return ""
