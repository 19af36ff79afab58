"""Import of export files into the document store.

Raw file content is parsed (JSON, or YAML as a fallback), normalized to the
canonical import object by the matching transformer, then written to the
stores. Normalization happens before any write, so a file that cannot be
read leaves the stores untouched. Individual write failures are collected
and returned as messages.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any

import yaml

from arc_data.errors import ImportParseError, ValidationError
from arc_data.events import EventBus
from arc_data.indexer import IndexableRequest
from arc_data.store import DocumentStore, WriteResult
from arc_data.transformers.base import (
    DEFAULT_CHUNK_SIZE,
    IMPORT_KIND,
    YieldHook,
    default_yield,
    new_key,
    now_millis,
)
from arc_data.transformers.detect import (
    create_transformer,
    is_arc_file,
    is_old_import,
    is_postman,
    is_single_request,
)

logger = logging.getLogger(__name__)

__all__ = [
    "DataImporter",
    "ImportDataStore",
    "ImportNormalizer",
    "ImportResult",
    "is_arc_file",
    "is_old_import",
    "is_postman",
    "is_single_request",
    "prepare_import_object",
    "transform_keys",
]

# Canonical section -> document store
SECTION_STORES = {
    "projects": "legacy-projects",
    "websocketurlhistory": "websocket-url-history",
    "urlhistory": "url-history",
    "cookies": "cookies",
    "authdata": "auth-data",
    "variables": "variables",
    "hostrules": "host-rules",
}


def prepare_import_object(raw: Any) -> dict[str, Any]:
    """
    Parse file content into a mapping.

    Strings and bytes are read as JSON first and as YAML when that fails.
    A mapping is returned as is.

    Raises:
        ImportParseError: If the content cannot be parsed or is not a mapping.
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise ImportParseError(f"Unable to read the file. Not UTF-8 text: {e}") from e
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as json_error:
            try:
                raw = yaml.safe_load(raw)
            except yaml.YAMLError as e:
                raise ImportParseError(
                    f"Unable to read the file. Not a JSON: {json_error}"
                ) from e
    if not isinstance(raw, dict):
        raise ImportParseError("Unable to read the file. Expected an object.")
    return raw


def transform_keys(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Store documents from export items: `key` becomes `_id`, `kind` is dropped."""
    result = []
    for item in items:
        data = dict(item)
        data.pop("kind", None)
        key = data.pop("key", None) or new_key()
        data["_id"] = key
        result.append(data)
    return result


class ImportNormalizer:
    """Detects the format of import data and converts it to the import object."""

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE, yield_hook: YieldHook = default_yield):
        self.chunk_size = chunk_size
        self.yield_hook = yield_hook

    def normalize(self, raw: Any) -> dict[str, Any]:
        """
        Raises:
            ImportParseError: If the data is not readable or not recognized.
        """
        data = prepare_import_object(raw)
        transformer = create_transformer(
            data, chunk_size=self.chunk_size, yield_hook=self.yield_hook
        )
        return transformer.transform()


class ImportDataStore:
    """Writes a normalized import object to the document store."""

    def __init__(self, store: DocumentStore):
        self.store = store
        self.saved_indexes: list[IndexableRequest] = []
        self.history_indexes: list[IndexableRequest] = []

    def import_data(self, export_object: dict[str, Any]) -> list[str] | None:
        """
        Store every section of the import object.

        Returns:
            Error messages of failed writes, or None when all writes succeeded.
        """
        errors: list[str] = []
        self.saved_indexes = []
        self.history_indexes = []

        if export_object.get("requests"):
            errors += self.import_requests(export_object["requests"], "saved")
        for section, store_name in SECTION_STORES.items():
            items = export_object.get(section)
            if items:
                errors += self.insert_generic(store_name, items)
        if export_object.get("history"):
            errors += self.import_requests(export_object["history"], "history")
        if export_object.get("variables"):
            self.import_environments(export_object["variables"])
        if export_object.get("clientcertificates"):
            errors += self.import_client_certificates(export_object["clientcertificates"])

        if errors:
            logger.warning("Import finished with %d errors", len(errors))
        return errors or None

    def insert_generic(self, store_name: str, items: list[dict[str, Any]]) -> list[str]:
        docs = transform_keys(items)
        results = self.store.bulk_docs(store_name, docs)
        _, errors = self.handle_insert_response(store_name, results, docs)
        return errors

    def import_requests(self, items: list[dict[str, Any]], type_: str) -> list[str]:
        """Store saved or history requests and record them for indexing."""
        store_name = "saved-requests" if type_ == "saved" else "history-requests"
        docs = transform_keys(items)
        results = self.store.bulk_docs(store_name, docs)
        stored, errors = self.handle_insert_response(store_name, results, docs)
        indexes = [
            IndexableRequest(id=doc["_id"], url=doc.get("url") or "", type=type_)
            for doc in stored
        ]
        if type_ == "saved":
            self.saved_indexes = indexes
        else:
            self.history_indexes = indexes
        return errors

    def handle_insert_response(
        self,
        store_name: str,
        results: list[WriteResult],
        docs: list[dict[str, Any]],
    ) -> tuple[list[dict[str, Any]], list[str]]:
        """
        Retry conflicted writes against the latest revision.

        Returns:
            Tuple of (stored documents, error messages).
        """
        stored: list[dict[str, Any]] = []
        conflicted: list[dict[str, Any]] = []
        errors: list[str] = []
        for result, doc in zip(results, docs):
            if result.ok:
                stored.append(doc)
            elif result.status == 409:
                conflicted.append(doc)
            else:
                errors.append(result.error or f"Unable to store {result.id}")

        if conflicted:
            retry = []
            for doc in conflicted:
                revision = self.store.get_revision(store_name, doc["_id"])
                retry.append({**doc, "_rev": revision[0]} if revision else doc)
            for result, doc in zip(self.store.bulk_docs(store_name, retry), retry):
                if result.ok:
                    stored.append(doc)
                else:
                    errors.append(result.error or f"Unable to store {result.id}")
            logger.debug("Retried %d conflicted documents in %s", len(conflicted), store_name)
        return stored, errors

    def import_environments(self, variables: list[dict[str, Any]]) -> None:
        """Create environments named by variables that do not exist yet."""
        names: list[str] = []
        for item in variables:
            environment = item.get("environment")
            if not environment or environment == "default":
                continue
            name = environment.lower()
            if name not in names:
                names.append(name)
        if not names:
            return
        existing = {
            (doc.get("name") or "").lower()
            for page in self.store.iter_pages("variables-environments", 1000)
            for doc in page
        }
        docs = [
            {"_id": new_key(), "name": name, "created": now_millis()}
            for name in names
            if name not in existing
        ]
        if docs:
            self.store.bulk_docs("variables-environments", docs)

    def import_client_certificates(self, items: list[dict[str, Any]]) -> list[str]:
        """Store certificate index documents and their data documents."""
        indexes = []
        certs = []
        for item in items:
            key = item.get("key") or new_key()
            indexes.append(
                {
                    "_id": key,
                    "created": item.get("created"),
                    "dataKey": key,
                    "name": item.get("name"),
                    "type": item.get("type"),
                }
            )
            cert: dict[str, Any] = {"_id": key, "cert": item.get("cert")}
            if item.get("pKey"):
                cert["key"] = item["pKey"]
            certs.append(cert)

        results = self.store.bulk_docs("client-certificates", indexes)
        _, errors = self.handle_insert_response("client-certificates", results, indexes)
        results = self.store.bulk_docs("client-certificates-data", certs)
        _, data_errors = self.handle_insert_response("client-certificates-data", results, certs)
        return errors + data_errors


@dataclass
class ImportResult:
    """Outcome of an import."""

    data: dict[str, Any]
    errors: list[str] = field(default_factory=list)
    indexed: list[IndexableRequest] = field(default_factory=list)


class DataImporter:
    """Normalizes import files, stores them and notifies the indexer."""

    def __init__(
        self,
        store: DocumentStore,
        events: EventBus | None = None,
        normalizer: ImportNormalizer | None = None,
    ):
        self.store = store
        self.events = events
        self.normalizer = normalizer or ImportNormalizer()

    def normalize_import_data(self, raw: Any) -> dict[str, Any]:
        """Canonical import object for file content or a parsed mapping."""
        return self.normalizer.normalize(raw)

    def process_data(self, raw: Any) -> ImportResult:
        """Normalize and store import data.

        Raises:
            ImportParseError: If the data is not readable or not recognized.
        """
        data = self.normalize_import_data(raw)
        if data.get("kind") != IMPORT_KIND:
            # Exports meant to be opened in the workspace are stored as well
            data = {**data, "kind": IMPORT_KIND}
        errors, indexed = self._store(data)
        return ImportResult(data=data, errors=errors or [], indexed=indexed)

    def store_data(self, import_object: dict[str, Any]) -> list[str] | None:
        """
        Store a normalized import object.

        Raises:
            ValidationError: If the object was not normalized for import.
        """
        errors, _ = self._store(import_object)
        return errors

    def _store(
        self, import_object: dict[str, Any] | None
    ) -> tuple[list[str] | None, list[IndexableRequest]]:
        if not import_object:
            raise ValidationError("Missing required argument.")
        if import_object.get("kind") != IMPORT_KIND:
            raise ValidationError("Data not normalized for import.")

        data_store = ImportDataStore(self.store)
        errors = data_store.import_data(import_object)
        indexes = data_store.saved_indexes + data_store.history_indexes
        logger.info(
            "Imported %d saved and %d history requests",
            len(data_store.saved_indexes),
            len(data_store.history_indexes),
        )
        if self.events is not None:
            if indexes:
                self.events.emit(
                    "request.changed",
                    [{"id": item.id, "url": item.url, "type": item.type} for item in indexes],
                )
            self.events.emit("data.imported", {"errors": errors or []})
        return errors, indexes
