"""Export of stored data to the export object and its providers.

The export data map names the sections to export. A section value of True
reads the whole store; a non-empty list exports exactly those items.

Example:
    exporter = DataExporter(store)
    exporter.export(
        {"requests": True, "variables": True},
        ExportOptions(file="backup.arc"),
    )
"""

import copy
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from arc_data import __version__
from arc_data.errors import DocumentNotFoundError, ValidationError
from arc_data.store import DocumentStore
from arc_data.transformers.base import now_millis

logger = logging.getLogger(__name__)

DEFAULT_EXPORT_KIND = "ARC#AllDataExport"

# Export section -> document store
EXPORT_STORES = {
    "history": "history-requests",
    "requests": "saved-requests",
    "websocketurlhistory": "websocket-url-history",
    "urlhistory": "url-history",
    "authdata": "auth-data",
    "projects": "legacy-projects",
    "hostrules": "host-rules",
    "cookies": "cookies",
    "variables": "variables",
}

# Export section -> `kind` of its items
EXPORT_KINDS = {
    "requests": "ARC#RequestData",
    "projects": "ARC#ProjectData",
    "history": "ARC#HistoryData",
    "websocketurlhistory": "ARC#WebsocketHistoryData",
    "urlhistory": "ARC#UrlHistoryData",
    "variables": "ARC#Variable",
    "authdata": "ARC#AuthData",
    "cookies": "ARC#Cookie",
    "hostrules": "ARC#HostRule",
    "clientcertificates": "ARC#ClientCertificate",
}


def get_database_name(key: str) -> str:
    """Document store holding an export section."""
    return EXPORT_STORES.get(key, key)


def normalize_request(request: dict[str, Any]) -> dict[str, Any]:
    """Fold `legacyProject` into `projects`, drop private fields, fill timestamps."""
    legacy = request.pop("legacyProject", None)
    if legacy:
        request["projects"] = [*(request.get("projects") or []), legacy]
    for key in [k for k in request if k.startswith("_")]:
        if key not in ("_id", "_rev", "_deleted"):
            del request[key]
    timestamp = now_millis()
    if not request.get("updated"):
        request["updated"] = timestamp
    if not request.get("created"):
        request["created"] = timestamp
    return request


@dataclass
class ExportSection:
    """Data read for one export section."""

    key: str
    data: list[Any]


@dataclass
class ExportOptions:
    """Export configuration.

    Attributes:
        file: Target file name, required by the file provider
        kind: `kind` of the export object
        skip_import: Mark the export to be opened instead of imported
        provider: Export provider name, only "file" is available
    """

    file: str | None = None
    kind: str = DEFAULT_EXPORT_KIND
    skip_import: bool = False
    provider: str = "file"


@dataclass
class ExportResult:
    """Outcome of writing an export."""

    file: str
    size: int
    parent_id: str | None = None


class ExportProvider(Protocol):
    def write(self, payload: str, options: ExportOptions) -> ExportResult:
        ...


class ExportFactory:
    """Reads the data of the requested export sections from the store."""

    def __init__(self, store: DocumentStore, page_size: int = 1000):
        self.store = store
        self.page_size = page_size

    def read_store(self, name: str) -> list[dict[str, Any]]:
        """All live documents of a store, read page by page."""
        docs: list[dict[str, Any]] = []
        for page in self.store.iter_pages(name, self.page_size):
            docs.extend(page)
        return docs

    def get_export_data(self, data: dict[str, Any]) -> list[ExportSection]:
        """
        Read every section named in the export data map.

        Projects are added when requests are exported. Certificates used by
        exported requests are added as well and their reference is removed
        from the request's auth configuration.
        """
        sections = [self.prepare_export_data(key, value) for key, value in data.items()]
        by_key = {section.key: section for section in sections}
        certificates = by_key.get("clientcertificates")

        if "requests" in data and "projects" not in data:
            sections.append(ExportSection("projects", self.read_store("legacy-projects")))

        added: list[dict[str, Any]] = []
        for key in ("requests", "history"):
            if key in by_key:
                added += self.process_requests(by_key[key].data, certificates)
        if added:
            if certificates is not None:
                certificates.data.extend(added)
            else:
                sections.append(ExportSection("clientcertificates", added))
        return sections

    def prepare_export_data(self, key: str, value: Any) -> ExportSection:
        if value is True:
            if key == "clientcertificates":
                return ExportSection(key, self.get_client_certificates_entries())
            docs = self.read_store(get_database_name(key))
            if key in ("requests", "history"):
                docs = [normalize_request(doc) for doc in docs]
            return ExportSection(key, docs)
        if isinstance(value, list) and value:
            return ExportSection(key, [dict(item) for item in value])
        return ExportSection(key, [])

    def get_client_certificates_entries(self) -> list[dict[str, Any]]:
        """Certificate index entries joined with their data documents."""
        index_data = self.read_store("client-certificates")
        if not index_data:
            return []
        data = {doc["_id"]: doc for doc in self.read_store("client-certificates-data")}
        result = []
        for item in index_data:
            data_key = item.pop("dataKey", None)
            cert = data.pop(data_key or item["_id"], None)
            if cert is not None:
                result.append({"item": item, "data": cert})
        return result

    def process_requests(
        self,
        requests: list[dict[str, Any]],
        certificates: ExportSection | None,
    ) -> list[dict[str, Any]]:
        """Certificates referenced by requests that are not in `certificates` yet."""
        known = {entry["item"].get("_id") for entry in certificates.data} if certificates else set()
        result = []
        for request in requests:
            auth = request.get("auth")
            if not isinstance(auth, dict) or request.get("authType") != "client certificate":
                continue
            cert_id = auth.pop("id", None)
            if not cert_id or cert_id in known:
                continue
            entry = self.read_client_certificate(cert_id)
            if entry is not None:
                known.add(cert_id)
                result.append(entry)
        return result

    def read_client_certificate(self, cert_id: str) -> dict[str, Any] | None:
        try:
            index = self.store.get("client-certificates", cert_id)
            data = self.store.get("client-certificates-data", index.get("dataKey") or cert_id)
        except DocumentNotFoundError:
            logger.warning("Certificate %s referenced by a request does not exist", cert_id)
            return None
        index.pop("dataKey", None)
        return {"item": index, "data": data}


class ExportProcessor:
    """Maps store documents to export object items."""

    def create_export_object(
        self,
        sections: list[ExportSection],
        kind: str = DEFAULT_EXPORT_KIND,
        app_version: str | None = None,
        skip_import: bool = False,
    ) -> dict[str, Any]:
        result: dict[str, Any] = {
            "createdAt": datetime.now(timezone.utc).isoformat(),
            "version": app_version or "Unknown version",
            "kind": kind or DEFAULT_EXPORT_KIND,
            "electronCookies": False,
        }
        if skip_import:
            result["loadToWorkspace"] = True
        for section in sections:
            items = self.prepare_item(section.key, copy.deepcopy(section.data))
            if items is not None:
                result[section.key] = items
        return result

    def prepare_item(self, key: str, values: list[dict[str, Any]]) -> list[dict[str, Any]] | None:
        if key not in EXPORT_KINDS:
            logger.debug("Skipping unknown export section %s", key)
            return None
        if key == "clientcertificates":
            return [self.prepare_client_certificate(entry) for entry in values]
        result = []
        for item in values:
            if key == "variables":
                if not item.get("environment"):
                    continue
                if "variable" in item:
                    item["name"] = item.pop("variable")
            if key == "requests":
                legacy = item.pop("legacyProject", None)
                if legacy:
                    item["projects"] = [*(item.get("projects") or []), legacy]
            result.append(self.to_export_item(item, EXPORT_KINDS[key]))
        return result

    @staticmethod
    def to_export_item(item: dict[str, Any], kind: str) -> dict[str, Any]:
        item.pop("_rev", None)
        if "_id" in item:
            item["key"] = item.pop("_id")
        item["kind"] = kind
        return item

    def prepare_client_certificate(self, entry: dict[str, Any]) -> dict[str, Any]:
        value = self.to_export_item(entry["item"], EXPORT_KINDS["clientcertificates"])
        data = entry.get("data") or {}
        value["cert"] = data.get("cert")
        if data.get("key"):
            value["pKey"] = data["key"]
        return value


class FileExportProvider:
    """Writes exports to files in a directory."""

    def __init__(self, directory: Path | None = None):
        self.directory = directory or Path.cwd()

    def write(self, payload: str, options: ExportOptions) -> ExportResult:
        if not options.file:
            raise ValidationError('The "file" option is not set.')
        path = self.directory / options.file
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(payload, encoding="utf-8")
        logger.info("Export written to %s", path)
        return ExportResult(file=str(path), size=len(payload.encode("utf-8")))


class DataExporter:
    """Creates export objects from the store and hands them to a provider."""

    def __init__(
        self,
        store: DocumentStore,
        page_size: int = 1000,
        app_version: str | None = None,
    ):
        self.store = store
        self.page_size = page_size
        self.app_version = app_version or __version__

    def create_export(self, data: dict[str, Any], options: ExportOptions) -> dict[str, Any]:
        """Export object for the export data map."""
        sections = ExportFactory(self.store, self.page_size).get_export_data(data)
        return ExportProcessor().create_export_object(
            sections,
            kind=options.kind,
            app_version=self.app_version,
            skip_import=options.skip_import,
        )

    def export(
        self,
        data: dict[str, Any],
        options: ExportOptions,
        provider: ExportProvider | None = None,
    ) -> ExportResult:
        """
        Export stored data.

        Args:
            data: Export data map (section name -> True or list of items)
            options: Export options
            provider: Destination, a FileExportProvider by default

        Raises:
            ValidationError: If the options are incomplete or the provider is unknown
        """
        if not data:
            raise ValidationError("Nothing to export.")
        provider = provider or self._provider(options)
        export_object = self.create_export(data, options)
        return provider.write(json.dumps(export_object, indent=2), options)

    def data_export(
        self,
        payload: Any,
        options: ExportOptions,
        provider: ExportProvider | None = None,
    ) -> ExportResult:
        """Export any payload, for example a HAR log. Strings are written as is."""
        provider = provider or self._provider(options)
        if not isinstance(payload, str):
            payload = json.dumps(payload, indent=2)
        return provider.write(payload, options)

    @staticmethod
    def _provider(options: ExportOptions) -> ExportProvider:
        if options.provider != "file":
            raise ValidationError(f"Unknown export provider {options.provider}.")
        if not options.file:
            raise ValidationError('The "file" option is not set.')
        return FileExportProvider()
