"""Variables and the environments grouping them.

Variables refer to their environment by name, compared without regard to
case. The "default" environment always exists and is not stored.
"""

import logging
import uuid
from typing import Any

from arc_data.errors import DocumentNotFoundError, ValidationError
from arc_data.models.base import BaseModel
from arc_data.transformers.base import now_millis

logger = logging.getLogger(__name__)

DEFAULT_ENVIRONMENT = "default"


class VariablesModel(BaseModel):
    """Stores environments and their variables."""

    store_name = "variables"
    environments_store = "variables-environments"

    # Environments

    def list_environments(self) -> list[dict[str, Any]]:
        return self.store.all_docs(self.environments_store)

    def read_environment(self, name: str) -> dict[str, Any] | None:
        """Environment with the given name, or None."""
        for environment in self.list_environments():
            if environment.get("name") == name:
                return environment
        return None

    def update_environment(self, data: dict[str, Any]) -> dict[str, Any]:
        """
        Create or update an environment.

        Renaming an environment moves its variables to the new name.

        Raises:
            ValidationError: If the environment has no name.
        """
        if not data or not data.get("name"):
            raise ValidationError("Can't create an environment without the name.")
        doc = dict(data)
        if not doc.get("created"):
            doc["created"] = now_millis()

        old_name = None
        if doc.get("_id"):
            try:
                stored = self.store.get(self.environments_store, doc["_id"])
            except DocumentNotFoundError:
                doc.pop("_rev", None)
            else:
                if stored.get("name") != doc["name"]:
                    old_name = stored.get("name")
                doc["_rev"] = stored["_rev"]
        else:
            doc["_id"] = str(uuid.uuid4())
            doc.pop("_rev", None)

        doc["_rev"] = self.put_latest(self.environments_store, doc)
        if old_name:
            self._rename_environment(old_name, doc["name"])
        self.emit("environment.changed", {"value": dict(doc)})
        return doc

    def _rename_environment(self, old_name: str, new_name: str) -> None:
        variables = self.list_variables(old_name)
        if not variables:
            return
        docs = [{**item, "environment": new_name} for item in variables]
        self.store.bulk_docs(self.store_name, docs)
        logger.debug("Moved %d variables from %s to %s", len(docs), old_name, new_name)

    def delete_environment(self, env_id: str) -> dict[str, str] | None:
        """
        Delete an environment with its variables.

        Returns:
            `{"id", "rev"}` of the deleted environment, None when it does not exist.
        """
        if not env_id:
            raise ValidationError("Can't delete an environment without its id")
        try:
            doc = self.store.get(self.environments_store, env_id)
        except DocumentNotFoundError:
            return None
        rev = self.store.remove(self.environments_store, env_id, doc["_rev"])
        self._delete_environment_variables(doc.get("name"))
        detail = {"id": env_id, "rev": rev}
        self.emit("environment.deleted", detail)
        return detail

    def _delete_environment_variables(self, environment: str | None) -> None:
        if not environment or environment.lower() == DEFAULT_ENVIRONMENT:
            return
        variables = self.list_variables(environment)
        if not variables:
            return
        docs = [{**item, "_deleted": True} for item in variables]
        for result in self.store.bulk_docs(self.store_name, docs):
            if not result.ok:
                logger.warning("Unable to delete variable %s: %s", result.id, result.error)

    # Variables

    def list_variables(self, environment: str) -> list[dict[str, Any]]:
        """Variables of an environment."""
        query = (environment or DEFAULT_ENVIRONMENT).lower()
        result = []
        for page in self.store.iter_pages(self.store_name, 1000):
            for doc in page:
                env = doc.get("environment")
                if env and env.lower() == query:
                    result.append(doc)
        return result

    def update_variable(self, data: dict[str, Any]) -> dict[str, Any]:
        """
        Create or update a variable.

        Raises:
            ValidationError: If the `variable` (name) property is missing.
        """
        if not data or not (data.get("variable") or data.get("name")):
            raise ValidationError("Can't create a variable without the variable property")
        doc = dict(data)
        if "variable" not in doc:
            doc["variable"] = doc.pop("name")
        if doc.get("_id"):
            revision = self.store.get_revision(self.store_name, doc["_id"])
            if revision is not None:
                doc["_rev"] = revision[0]
        else:
            doc["_id"] = str(uuid.uuid4())
        doc["_rev"] = self.put_latest(self.store_name, doc)
        self.emit("variable.changed", {"value": dict(doc)})
        return doc

    def delete_variable(self, var_id: str) -> dict[str, str] | None:
        if not var_id:
            raise ValidationError("Can't delete a variable without its id")
        try:
            rev = self.store.remove(self.store_name, var_id)
        except DocumentNotFoundError:
            return None
        detail = {"id": var_id, "rev": rev}
        self.emit("variable.deleted", detail)
        return detail

    def delete_model(self) -> None:
        """Remove variables and environments."""
        self.destroy_store(self.store_name)
        self.destroy_store(self.environments_store)
