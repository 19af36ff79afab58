"""Host rules: request URL rewrites applied before a request is sent."""

from __future__ import annotations

import logging
from typing import Any

from arc_data.errors import ValidationError
from arc_data.models.base import BaseModel
from arc_data.store import WriteResult
from arc_data.transformers.base import now_millis

logger = logging.getLogger(__name__)


class HostRulesModel(BaseModel):
    store_name = "host-rules"

    def update(self, rule: dict[str, Any]) -> dict[str, Any]:
        """
        Create or update a rule. A rule without `_rev` replaces the stored one.

        Raises:
            ValidationError: If the rule has no `_id`.
        """
        if not rule or not rule.get("_id"):
            raise ValidationError('The "rule" property is missing')
        doc = {**rule, "updated": now_millis()}
        if not doc.get("_rev"):
            revision = self.store.get_revision(self.store_name, doc["_id"])
            if revision and not revision[1]:
                doc["_rev"] = revision[0]
        old_rev = doc.get("_rev")
        doc["_rev"] = self.store.put(self.store_name, doc)
        self.emit("hostrule.changed", {"rule": doc, "oldRev": old_rev})
        return doc

    def update_bulk(self, rules: list[dict[str, Any]]) -> list[WriteResult]:
        """Write many rules. Failed writes are logged and reported in the results."""
        if not rules:
            raise ValidationError('The "rules" property is missing')
        docs = [{**rule, "updated": now_millis()} for rule in rules]
        results = self.store.bulk_docs(self.store_name, docs)
        for doc, result in zip(docs, results):
            if not result.ok:
                logger.warning("Unable to store host rule %s: %s", result.id, result.error)
                continue
            old_rev = doc.get("_rev")
            doc["_id"] = result.id
            doc["_rev"] = result.rev
            self.emit("hostrule.changed", {"rule": doc, "oldRev": old_rev})
        return results

    def delete(self, rule_id: str, rev: str | None = None) -> str:
        """
        Delete a rule.

        Returns:
            The revision of the deleted document.

        Raises:
            ValidationError: If `rule_id` is empty.
            DocumentNotFoundError: If the rule does not exist.
            ConflictError: If `rev` is not the current revision.
        """
        if not rule_id:
            raise ValidationError('Missing "id" property.')
        if not rev:
            rev = self.read(rule_id)["_rev"]
        new_rev = self.store.remove(self.store_name, rule_id, rev)
        self.emit("hostrule.deleted", {"id": rule_id, "rev": new_rev, "oldRev": rev})
        return new_rev

    def list(self) -> list[dict[str, Any]]:
        """All rules ordered by id."""
        rules: list[dict[str, Any]] = []
        for page in self.store.iter_pages(self.store_name, 1000):
            rules.extend(page)
        return rules
