"""Base class of the data models.

A model owns one or more document stores and publishes what it changed on the
event bus. Listing uses opaque page tokens: base64 encoded JSON holding the
`start_key` and `skip` of the next page.
"""

import base64
import binascii
import json
import logging
from dataclasses import dataclass, field
from typing import Any

from arc_data.errors import ConflictError, ValidationError
from arc_data.events import EventBus
from arc_data.store import DocumentStore

logger = logging.getLogger(__name__)

DEFAULT_PAGE_LIMIT = 25


@dataclass
class Page:
    """One page of a listing."""

    items: list[dict[str, Any]] = field(default_factory=list)
    next_page_token: str | None = None


@dataclass
class ChangeRecord:
    """Result of writing an entity."""

    id: str
    rev: str
    item: dict[str, Any]
    old_rev: str | None = None


def encode_page_token(params: dict[str, Any]) -> str:
    return base64.b64encode(json.dumps(params).encode("utf-8")).decode("ascii")


def decode_page_token(token: str | None) -> dict[str, Any] | None:
    """Query parameters stored in a page token. Invalid tokens give None."""
    if not token:
        return None
    try:
        params = json.loads(base64.b64decode(token.encode("ascii"), validate=True))
    except (binascii.Error, UnicodeError, ValueError):
        return None
    return params if isinstance(params, dict) else None


class BaseModel:
    """Shared store access for the models."""

    store_name = ""

    def __init__(self, store: DocumentStore, events: EventBus | None = None):
        self.store = store
        self.events = events

    def read(self, doc_id: str, rev: str | None = None) -> dict[str, Any]:
        """
        Read a document of the model's store.

        Raises:
            ValidationError: If `doc_id` is empty.
            DocumentNotFoundError: If the document does not exist.
        """
        if not doc_id:
            raise ValidationError("Missing identifier argument.")
        return self.store.get(self.store_name, doc_id, rev)

    def delete_model(self) -> None:
        """Remove the model's store and notify collaborators."""
        self.destroy_store(self.store_name)

    def destroy_store(self, store_name: str) -> None:
        self.store.destroy(store_name)
        self.emit("datastore.destroyed", {"datastore": [store_name]})

    def list_entities(
        self,
        store_name: str | None = None,
        limit: int | None = None,
        next_page_token: str | None = None,
    ) -> Page:
        """
        List documents newest id first.

        Args:
            store_name: Store to list, the model's store by default
            limit: Page size, 25 by default
            next_page_token: Token returned with the previous page

        Returns:
            The page with the token of the following page (None when empty).
        """
        params: dict[str, Any] = {}
        page_params = decode_page_token(next_page_token)
        if page_params:
            params.update(page_params)
        items = self.store.all_docs(
            store_name or self.store_name,
            limit=limit or DEFAULT_PAGE_LIMIT,
            start_key=params.get("start_key"),
            skip=int(params.get("skip") or 0),
            descending=True,
        )
        token = None
        if items:
            token = encode_page_token({"start_key": items[-1]["_id"], "skip": 1})
        return Page(items=items, next_page_token=token)

    def put_latest(self, store_name: str, doc: dict[str, Any]) -> str:
        """
        Write a document, retrying once against the current revision.

        Returns:
            The new revision.
        """
        try:
            return self.store.put(store_name, doc)
        except ConflictError as e:
            logger.debug("Conflict writing %s/%s, retrying", store_name, e.doc_id)
            return self.store.put(store_name, {**doc, "_rev": e.current_rev})

    def emit(self, event_type: str, data: Any) -> None:
        if self.events is not None:
            self.events.emit(event_type, data)
