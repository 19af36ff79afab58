"""Projects grouping saved requests."""

from __future__ import annotations

import logging
from typing import Any

from arc_data.errors import DocumentNotFoundError, ValidationError
from arc_data.models.base import BaseModel, ChangeRecord, Page
from arc_data.transformers.base import add_project_reference, add_request_reference, now_millis

logger = logging.getLogger(__name__)

SAVED_STORE = "saved-requests"


def normalize_project(project: dict[str, Any]) -> dict[str, Any]:
    item = {"order": 0, "requests": [], **project}
    item["updated"] = now_millis()
    if not item.get("created"):
        item["created"] = item["updated"]
    return item


class ProjectModel(BaseModel):
    """
    Stores projects.

    A project's `requests` list and its requests' `projects` lists are kept
    in line by `add_request`, `remove_request` and `delete`.
    """

    store_name = "legacy-projects"

    def get(self, project_id: str, rev: str | None = None) -> dict[str, Any]:
        if not project_id:
            raise ValidationError('Project "id" property must be set.')
        return self.store.get(self.store_name, project_id, rev)

    def post(self, project: dict[str, Any]) -> ChangeRecord:
        """
        Create or update a project. Without `_rev` the stored document is
        updated with the given fields.

        Raises:
            ValidationError: If the project or its `_id` is missing.
        """
        if not project:
            raise ValidationError("The argument is missing")
        if not project.get("_id"):
            raise ValidationError('The "id" property of the project is missing')
        item = dict(project)
        if not item.get("_rev"):
            try:
                item = {**self.store.get(self.store_name, item["_id"]), **item}
            except DocumentNotFoundError:
                pass
        return self.update_project(item)

    def update_project(self, project: dict[str, Any]) -> ChangeRecord:
        item = {**project, "updated": now_millis()}
        old_rev = item.get("_rev")
        item["_rev"] = self.put_latest(self.store_name, item)
        record = ChangeRecord(id=item["_id"], rev=item["_rev"], item=item, old_rev=old_rev)
        self.emit("project.changed", {"id": record.id, "rev": record.rev, "item": item})
        return record

    def post_bulk(self, projects: list[dict[str, Any]]) -> list[ChangeRecord]:
        """Write many projects. Entries that are not mappings are dropped."""
        if not projects:
            raise ValidationError('The "projects" property is required')
        items = [normalize_project(item) for item in projects if isinstance(item, dict)]
        records = []
        for item, result in zip(items, self.store.bulk_docs(self.store_name, items)):
            if not result.ok:
                logger.warning("Unable to store project %s: %s", result.id, result.error)
                continue
            old_rev = item.get("_rev")
            item = {**item, "_id": result.id, "_rev": result.rev}
            records.append(ChangeRecord(id=result.id, rev=result.rev, item=item, old_rev=old_rev))
            self.emit("project.changed", {"id": result.id, "rev": result.rev, "item": item})
        return records

    def delete(self, project_id: str, rev: str | None = None) -> str:
        """
        Delete a project and remove it from its requests.

        Returns:
            The tombstone revision.
        """
        project = self.get(project_id)
        new_rev = self.store.remove(self.store_name, project_id, rev or project["_rev"])
        self.emit("project.deleted", {"id": project_id, "rev": new_rev, "oldRev": project["_rev"]})
        self._unlink_requests(project_id, project.get("requests") or [])
        return new_rev

    def _unlink_requests(self, project_id: str, request_ids: list[str]) -> None:
        update = []
        for request in self.store.all_docs(SAVED_STORE, keys=list(request_ids)):
            projects = request.get("projects") or []
            if project_id in projects:
                update.append({**request, "projects": [p for p in projects if p != project_id]})
        if not update:
            return
        results = self.store.bulk_docs(SAVED_STORE, update)
        changed = [
            {"id": doc["_id"], "url": doc.get("url"), "type": doc.get("type") or "saved"}
            for doc, result in zip(update, results)
            if result.ok
        ]
        if changed:
            self.emit("request.changed", changed)

    def list(self, limit: int | None = None, next_page_token: str | None = None) -> Page:
        return self.list_entities(self.store_name, limit, next_page_token)

    def list_all(self, keys: list[str] | None = None) -> list[dict[str, Any]]:
        """All projects, or the projects with the given ids."""
        if keys:
            return self.store.all_docs(self.store_name, keys=list(keys))
        return self.store.all_docs(self.store_name)

    def add_request(self, project_id: str, request_id: str) -> None:
        """Link a saved request and a project on both sides."""
        project = self.get(project_id)
        request = self.store.get(SAVED_STORE, request_id)
        add_request_reference(project, request_id)
        add_project_reference(request, project_id)
        self.update_project(project)
        self.put_latest(SAVED_STORE, request)
        self.emit(
            "request.changed",
            {"id": request_id, "url": request.get("url"), "type": request.get("type") or "saved"},
        )

    def remove_request(self, project_id: str, request_id: str) -> None:
        """Unlink a saved request and a project on both sides."""
        project = self.get(project_id)
        project["requests"] = [
            item for item in project.get("requests") or [] if item != request_id
        ]
        self.update_project(project)
        try:
            request = self.store.get(SAVED_STORE, request_id)
        except DocumentNotFoundError:
            return
        request["projects"] = [item for item in request.get("projects") or [] if item != project_id]
        self.put_latest(SAVED_STORE, request)
