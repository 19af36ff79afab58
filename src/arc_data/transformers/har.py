"""Builds HAR 1.2 logs from requests with their responses."""

import logging
from datetime import datetime, timezone
from typing import Any
from urllib.parse import parse_qsl, urlsplit

from arc_data.transformers.base import now_millis, to_millis

logger = logging.getLogger(__name__)

HAR_VERSION = "1.2"


def byte_size(value: str | bytes | None) -> int:
    """Size of a value in UTF-8 bytes."""
    if not value:
        return 0
    if isinstance(value, bytes):
        return len(value)
    return len(str(value).encode("utf-8"))


def parse_headers(headers: str | None) -> list[dict[str, str]]:
    """Header list from a "name: value" block. Lines without a name are skipped."""
    if not headers or not isinstance(headers, str):
        return []
    result = []
    for line in headers.splitlines():
        name, sep, value = line.partition(":")
        name = name.strip()
        if not sep or not name:
            continue
        result.append({"name": name, "value": value.strip()})
    return result


def content_type(headers: str | None) -> str | None:
    """Value of the content-type header, without parameters."""
    for header in parse_headers(headers):
        if header["name"].lower() == "content-type":
            return header["value"].split(";", 1)[0].strip() or None
    return None


def read_query_string(url: str | None) -> list[dict[str, str]]:
    if not url:
        return []
    try:
        query = urlsplit(url).query
    except ValueError:
        return []
    return [{"name": name, "value": value} for name, value in parse_qsl(query, keep_blank_values=True)]


def _payload_text(payload: Any) -> str:
    if isinstance(payload, bytes):
        return payload.decode("utf-8", errors="replace")
    return "" if payload is None else str(payload)


class HarTransformer:
    """Converts requests into a HAR log."""

    def __init__(self, name: str | None = None, version: str | None = None):
        self.name = name or "Advanced REST Client"
        self.version = version or "Unknown"

    def transform(self, requests: list[dict[str, Any]]) -> dict[str, Any]:
        """HAR document with one entry per request that has a response."""
        entries = []
        for request in requests:
            entry = self.create_entry(request)
            if entry is not None:
                entries.append(entry)
        return {
            "log": {
                "creator": {"name": self.name, "version": self.version},
                "version": HAR_VERSION,
                "entries": entries,
            }
        }

    def create_entry(self, request: dict[str, Any]) -> dict[str, Any] | None:
        """HAR entry, or None when the request has no HTTP response."""
        response = request.get("response")
        transport = request.get("transportRequest")
        if not response or not transport:
            return None
        if response.get("error"):
            logger.debug("Skipping request %s with an error response", request.get("url"))
            return None
        start = to_millis(transport.get("startTime"))
        if start is None:
            start = now_millis()
        return {
            "startedDateTime": datetime.fromtimestamp(start / 1000, timezone.utc).isoformat(),
            "time": response.get("loadingTime"),
            "cache": {
                "afterRequest": None,
                "beforeRequest": None,
                "comment": "This application does not support caching.",
            },
            "timings": response.get("timings") or {},
            "request": self.create_request(request),
            "response": self.create_response(response),
        }

    def create_request(self, request: dict[str, Any]) -> dict[str, Any]:
        url = request.get("url") or ""
        headers = request.get("headers") or ""
        payload = request.get("payload")
        result: dict[str, Any] = {
            "method": request.get("method") or "GET",
            "url": url,
            "httpVersion": "HTTP/1.1",
            "headers": parse_headers(headers),
            "bodySize": 0,
            "headersSize": 0,
            "cookies": [],
            "queryString": read_query_string(url),
        }
        if payload:
            result["bodySize"] = byte_size(payload)
            result["postData"] = {
                "mimeType": content_type(headers),
                "text": _payload_text(payload),
            }
        if headers:
            # Header bytes plus the closing double CRLF
            result["headersSize"] = byte_size(headers) + 4
        return result

    def create_response(self, response: dict[str, Any]) -> dict[str, Any]:
        headers = response.get("headers") or ""
        payload = response.get("payload")
        result: dict[str, Any] = {
            "status": response.get("status"),
            "statusText": response.get("statusText") or "",
            "httpVersion": "HTTP/1.1",
            "cookies": [],
            "headers": parse_headers(headers),
            "content": {"mimeType": content_type(headers), "size": 0},
            "redirectURL": "",
            "headersSize": 0,
            "bodySize": 0,
        }
        if payload:
            size = byte_size(payload)
            result["bodySize"] = size
            result["content"]["size"] = size
            result["content"]["text"] = _payload_text(payload)
        if headers:
            result["headersSize"] = byte_size(headers) + 4
        return result
