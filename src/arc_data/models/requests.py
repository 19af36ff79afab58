"""Saved and history requests."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from arc_data.errors import DocumentNotFoundError, ValidationError
from arc_data.indexer import TextIndexer, UrlIndexer
from arc_data.models.base import BaseModel, ChangeRecord, Page
from arc_data.transformers.base import day_start, generate_history_id, now_millis

logger = logging.getLogger(__name__)

# Request type (or store name) -> document store
REQUEST_STORES = {
    "saved": "saved-requests",
    "saved-requests": "saved-requests",
    "history": "history-requests",
    "history-requests": "history-requests",
    "projects": "legacy-projects",
    "legacy-projects": "legacy-projects",
}

PROJECTS_STORE = "legacy-projects"


def normalize_request(request: dict[str, Any]) -> dict[str, Any]:
    """Request with the fields every stored request has."""
    result = dict(request)
    result["name"] = result.get("name") or ""
    result["url"] = result.get("url") or ""
    result["method"] = result.get("method") or "GET"
    result["headers"] = result.get("headers") or ""
    if result.get("payload") is None:
        result["payload"] = ""
    if not result.get("type"):
        result["type"] = "saved"
    return result


class RequestModel(BaseModel):
    """
    Stores saved and history requests.

    Saved requests keep their projects' `requests` lists in line with their
    own `projects` list. Every write and delete is published as
    `request.changed` / `request.deleted`, which the index sync turns into
    URL index updates.
    """

    store_name = "saved-requests"

    def __init__(
        self,
        store,
        events=None,
        indexer: UrlIndexer | None = None,
        text_indexer: TextIndexer | None = None,
    ):
        super().__init__(store, events)
        self.indexer = indexer
        self.text_indexer = text_indexer

    @staticmethod
    def get_database(type_: str) -> str:
        """
        Store name of a request type.

        Raises:
            ValidationError: If the type is unknown.
        """
        store_name = REQUEST_STORES.get(type_)
        if store_name is None:
            raise ValidationError(f"Unknown database type: {type_}")
        return store_name

    def get(self, type_: str, doc_id: str, rev: str | None = None) -> dict[str, Any]:
        if not doc_id:
            raise ValidationError("Missing request id.")
        return normalize_request(self.store.get(self.get_database(type_), doc_id, rev))

    def get_bulk(self, type_: str, keys: list[str]) -> list[dict[str, Any]]:
        """Requests with the given ids. Missing ids are skipped."""
        docs = self.store.all_docs(self.get_database(type_), keys=list(keys))
        return [normalize_request(doc) for doc in docs]

    def post(self, type_: str, request: dict[str, Any]) -> ChangeRecord:
        """
        Create or update a request.

        A request without `_id` gets one: the day/url/method key for history,
        a random id otherwise. A request without `_rev` is merged into the
        stored document.
        """
        store_name = self.get_database(type_)
        data = dict(request)
        if data.get("_id") and not data.get("_rev"):
            try:
                data = {**self.store.get(store_name, data["_id"]), **data}
            except DocumentNotFoundError:
                pass
        copy = self._prepare(type_, data)
        old_rev = copy.get("_rev")
        copy["_rev"] = self.put_latest(store_name, copy)
        record = ChangeRecord(id=copy["_id"], rev=copy["_rev"], item=copy, old_rev=old_rev)
        self._notify_changed([record])
        if copy.get("type") == "saved":
            self.sync_projects(copy["_id"], copy.get("projects"), is_new=old_rev is None)
        return record

    def post_bulk(self, type_: str, requests: list[dict[str, Any]]) -> list[ChangeRecord]:
        """Write many requests. Items that fail to write are logged and left out."""
        store_name = self.get_database(type_)
        docs = [self._prepare(type_, request) for request in requests]
        records = []
        for doc, result in zip(docs, self.store.bulk_docs(store_name, docs)):
            if not result.ok:
                logger.warning("Unable to store request %s: %s", result.id, result.error)
                continue
            old_rev = doc.get("_rev")
            doc["_rev"] = result.rev
            records.append(ChangeRecord(id=result.id, rev=result.rev, item=doc, old_rev=old_rev))
        self._notify_changed(records)
        for record in records:
            if record.item.get("type") == "saved":
                self.sync_projects(
                    record.id, record.item.get("projects"), is_new=record.old_rev is None
                )
        return records

    def _prepare(self, type_: str, request: dict[str, Any]) -> dict[str, Any]:
        updated = now_millis()
        copy = {"type": "history" if "history" in type_ else "saved", **request}
        copy = normalize_request({**copy, "updated": updated, "midnight": day_start(updated)})
        if not copy.get("created"):
            copy["created"] = updated
        if not copy.get("_id"):
            if copy["type"] == "history":
                copy["_id"] = generate_history_id(copy["created"], copy)
            else:
                copy["_id"] = str(uuid.uuid4())
        return copy

    def delete(self, type_: str, doc_id: str, rev: str | None = None) -> dict[str, str]:
        """
        Delete a request and remove it from its projects.

        Returns:
            `{"id", "rev"}` of the deleted document.
        """
        store_name = self.get_database(type_)
        doc = self.get(type_, doc_id)
        new_rev = self.store.remove(store_name, doc_id, rev or doc["_rev"])
        self.emit("request.deleted", {"id": doc_id, "type": doc.get("type"), "rev": new_rev})
        if doc.get("projects"):
            self.remove_requests_from_projects(doc["projects"], [doc_id])
        return {"id": doc_id, "rev": new_rev}

    def delete_bulk(self, type_: str, ids: list[str]) -> list[dict[str, str]]:
        """Delete many requests. Unknown ids are skipped."""
        store_name = self.get_database(type_)
        removed: list[dict[str, str]] = []
        project_ids: list[str] = []
        for doc in self.store.all_docs(store_name, keys=list(ids)):
            new_rev = self.store.remove(store_name, doc["_id"], doc["_rev"])
            removed.append({"id": doc["_id"], "rev": new_rev})
            project_ids.extend(doc.get("projects") or [])
        if removed:
            self.emit(
                "request.deleted",
                [{"id": item["id"], "type": type_, "rev": item["rev"]} for item in removed],
            )
            self.remove_requests_from_projects(project_ids, [item["id"] for item in removed])
        return removed

    def delete_model(self, type_: str = "saved") -> None:
        """Remove a whole request store."""
        self.destroy_store(self.get_database(type_))

    def list(
        self,
        type_: str,
        limit: int | None = None,
        next_page_token: str | None = None,
    ) -> Page:
        if not type_:
            raise ValidationError('The "type" parameter is required.')
        page = self.list_entities(self.get_database(type_), limit, next_page_token)
        page.items = [normalize_request(item) for item in page.items]
        return page

    # Projects

    def save_request_project(
        self, request: dict[str, Any], project_names: list[str] | None = None
    ) -> ChangeRecord:
        """Save a request, creating a project for each of the given names."""
        copy = dict(request)
        if not copy.get("_id"):
            copy["_id"] = str(uuid.uuid4())
        projects = list(copy.get("projects") or [])
        legacy = copy.pop("legacyProject", None)
        if legacy and legacy not in projects:
            projects.append(legacy)
        if project_names:
            projects.extend(self.create_request_projects(project_names, copy["_id"]))
        copy["projects"] = projects
        copy["type"] = "saved"
        return self.post("saved", copy)

    def create_request_projects(self, names: list[str], request_id: str | None = None) -> list[str]:
        """Create projects holding `request_id`. Returns the new project ids."""
        timestamp = now_millis()
        docs = [
            {
                "_id": str(uuid.uuid4()),
                "name": name,
                "order": 0,
                "requests": [request_id] if request_id else [],
                "created": timestamp,
                "updated": timestamp,
            }
            for name in names
        ]
        ids = []
        for doc, result in zip(docs, self.store.bulk_docs(PROJECTS_STORE, docs)):
            if not result.ok:
                logger.warning("Unable to create project %s: %s", doc["name"], result.error)
                continue
            ids.append(result.id)
            self.emit("project.changed", {"id": result.id, "rev": result.rev, "item": doc})
        return ids

    def sync_projects(
        self, request_id: str, projects: list[str] | None, is_new: bool = False
    ) -> None:
        """Make the project documents list exactly the request's projects.

        New requests without projects are skipped.
        """
        projects = projects or []
        if is_new and not projects:
            return
        update = []
        for page in self.store.iter_pages(PROJECTS_STORE, 1000):
            for project in page:
                requests = list(project.get("requests") or [])
                if project["_id"] in projects:
                    if request_id in requests:
                        continue
                    requests.append(request_id)
                elif request_id in requests:
                    requests.remove(request_id)
                else:
                    continue
                update.append({**project, "requests": requests})
        self._update_projects(update)

    def remove_requests_from_projects(self, project_ids: list[str], request_ids: list[str]) -> None:
        if not project_ids or not request_ids:
            return
        update = []
        for project in self.store.all_docs(PROJECTS_STORE, keys=list(dict.fromkeys(project_ids))):
            requests = project.get("requests") or []
            remaining = [item for item in requests if item not in request_ids]
            if len(remaining) != len(requests):
                update.append({**project, "requests": remaining, "updated": now_millis()})
        self._update_projects(update)

    def _update_projects(self, projects: list[dict[str, Any]]) -> None:
        if not projects:
            return
        for doc, result in zip(projects, self.store.bulk_docs(PROJECTS_STORE, projects)):
            if not result.ok:
                logger.warning("Unable to update project %s: %s", result.id, result.error)
                continue
            self.emit(
                "project.changed",
                {"id": result.id, "rev": result.rev, "item": {**doc, "_rev": result.rev}},
            )

    def read_project_requests(self, project_id: str) -> list[dict[str, Any]]:
        """Saved requests of a project, in the project's order."""
        project = self.store.get(PROJECTS_STORE, project_id)
        return self.get_bulk("saved", project.get("requests") or [])

    # Search

    def query(
        self, q: str, type_: str | None = None, detailed: bool = False
    ) -> list[dict[str, Any]]:
        """
        Search requests by URL fragments, then by name terms.

        Args:
            q: Search term
            type_: "saved" or "history" to search one store only
            detailed: Match URL fragments anywhere instead of at their start

        Raises:
            ValidationError: If `q` is empty.
        """
        if not q:
            raise ValidationError('The "q" property is missing.')
        result = self.query_url_data(q, type_, detailed)
        if self.text_indexer is not None:
            found = {item["_id"] for item in result}
            for type_name in ("history", "saved"):
                if type_ and type_ != type_name:
                    continue
                store_name = REQUEST_STORES[type_name]
                ids = [
                    hit.doc_id
                    for hit in self.text_indexer.search(q, store_name)
                    if hit.doc_id not in found
                ]
                result.extend(self.get_bulk(type_name, ids))
        return result

    def query_url_data(
        self, q: str, type_: str | None = None, detailed: bool = False
    ) -> list[dict[str, Any]]:
        """Requests found by the URL index."""
        if self.indexer is None:
            return []
        hits = self.indexer.query(q, type=type_, detailed=detailed)
        saved = [hit.id for hit in hits if hit.type == "saved"]
        history = [hit.id for hit in hits if hit.type == "history"]
        result = []
        if saved:
            result.extend(self.get_bulk("saved", saved))
        if history:
            result.extend(self.get_bulk("history", history))
        return result

    def _notify_changed(self, records: list[ChangeRecord]) -> None:
        if not records:
            return
        self.emit(
            "request.changed",
            [
                {"id": record.id, "url": record.item.get("url"), "type": record.item.get("type")}
                for record in records
            ],
        )
