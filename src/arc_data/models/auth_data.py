"""Credentials entered in authorization dialogs, remembered per URL and method."""

from typing import Any
from urllib.parse import urlsplit, urlunsplit

from arc_data.errors import DocumentNotFoundError, ValidationError
from arc_data.models.base import BaseModel
from arc_data.transformers.base import encode_component


def normalize_url(url: str | None) -> str:
    """URL without its query string and fragment. Relative values are kept as is."""
    if not url:
        return ""
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        return url
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), parts.path or "/", "", ""))


def compute_key(method: str, url: str | None) -> str:
    """Document key: `<auth method>/<encoded url>`."""
    key = f"{method}/"
    if url:
        key += encode_component(url)
    return key


class AuthDataModel(BaseModel):
    store_name = "auth-data"

    def query(self, url: str, method: str) -> dict[str, Any] | None:
        """Stored data for the URL and authorization method, None when missing."""
        key = compute_key(method, normalize_url(url))
        try:
            return self.store.get(self.store_name, key)
        except DocumentNotFoundError:
            return None

    def update(self, url: str, method: str, data: dict[str, Any]) -> dict[str, Any]:
        """
        Merge `data` into the entry of the URL and authorization method.

        Returns:
            The stored document with its new revision.
        """
        if not method:
            raise ValidationError('The "authMethod" property is required.')
        key = compute_key(method, normalize_url(url))
        try:
            stored = self.store.get(self.store_name, key)
        except DocumentNotFoundError:
            stored = {"_id": key}
        doc = {**stored, **(data or {}), "_id": key}
        doc["_rev"] = self.put_latest(self.store_name, doc)
        self.emit("authdata.changed", doc)
        return doc
