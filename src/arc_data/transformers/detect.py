"""Import format detection and the transformer registry."""

import logging
from enum import Enum
from typing import Any

from arc_data.errors import ImportParseError
from arc_data.transformers.base import DEFAULT_CHUNK_SIZE, YieldHook, default_yield
from arc_data.transformers.dexie import DexieTransformer
from arc_data.transformers.legacy import LegacyTransformer
from arc_data.transformers.postman_backup import PostmanBackupTransformer
from arc_data.transformers.postman_env import PostmanEnvTransformer
from arc_data.transformers.postman_v1 import PostmanV1Transformer
from arc_data.transformers.postman_v2 import PostmanV2Transformer
from arc_data.transformers.pouch import PouchTransformer

logger = logging.getLogger(__name__)


class ImportFormat(str, Enum):
    """Import file formats with a transformer."""

    LEGACY = "legacy"
    DEXIE = "dexie"
    POUCH = "pouch"
    POSTMAN_V1 = "postman-collection-v1"
    POSTMAN_V2 = "postman-collection-v2"
    POSTMAN_BACKUP = "postman-backup"
    POSTMAN_ENVIRONMENT = "postman-environment"


TRANSFORMERS: dict[ImportFormat, type] = {
    ImportFormat.LEGACY: LegacyTransformer,
    ImportFormat.DEXIE: DexieTransformer,
    ImportFormat.POUCH: PouchTransformer,
    ImportFormat.POSTMAN_V1: PostmanV1Transformer,
    ImportFormat.POSTMAN_V2: PostmanV2Transformer,
    ImportFormat.POSTMAN_BACKUP: PostmanBackupTransformer,
    ImportFormat.POSTMAN_ENVIRONMENT: PostmanEnvTransformer,
}

# Transformers that process data in chunks
CHUNKED_FORMATS = {ImportFormat.DEXIE, ImportFormat.POSTMAN_V2}

# `kind` values written by exports of the current data store
POUCH_KINDS = {
    "ARC#SavedHistoryDataExport",
    "ARC#AllDataExport",
    "ARC#SavedDataExport",
    "ARC#SavedExport",
    "ARC#HistoryDataExport",
    "ARC#HistoryExport",
    "ARC#Project",
    "ARC#SessionCookies",
    "ARC#HostRules",
    "ARC#ProjectExport",
}

DEXIE_KIND = "ARC#requestsDataExport"

# Top level keys that identify an export without a `kind`
ARC_ENTRIES = (
    "projects",
    "requests",
    "history",
    "url-history",
    "websocket-url-history",
    "variables",
    "headers-sets",
    "auth-data",
    "cookies",
)


def is_old_import(data: dict[str, Any]) -> bool:
    """True for the single request files of the first export system."""
    if data.get("projects") or data.get("requests") or data.get("history"):
        return False
    return "headers" in data and "url" in data and "method" in data


def is_postman(data: dict[str, Any]) -> bool:
    """True for any Postman export."""
    if data.get("version") and data.get("collections"):
        return True
    info = data.get("info")
    if isinstance(info, dict) and info.get("schema"):
        return True
    if data.get("folders") and data.get("requests"):
        return True
    return bool(data.get("_postman_variable_scope"))


def is_arc_file(data: Any) -> bool:
    """True for an export of this application, in any of its generations."""
    if not isinstance(data, dict):
        return False
    kind = data.get("kind")
    if isinstance(kind, str) and kind.startswith("ARC#"):
        return True
    if any(entry in data for entry in ARC_ENTRIES):
        return True
    return is_old_import(data)


def is_single_request(data: dict[str, Any]) -> bool:
    """
    True when a normalized object holds exactly one request and nothing else.

    Such exports are meant to be opened rather than stored.
    """
    requests = data.get("requests")
    if not isinstance(requests, list) or len(requests) != 1:
        return False
    if data.get("projects") or data.get("history"):
        return False
    sections = {key for key, value in data.items() if key not in ("projects", "history")}
    return sections <= {"createdAt", "version", "kind", "requests"}


def detect_postman_format(data: dict[str, Any]) -> ImportFormat:
    if data.get("_postman_variable_scope"):
        return ImportFormat.POSTMAN_ENVIRONMENT
    if data.get("version") and data.get("collections"):
        return ImportFormat.POSTMAN_BACKUP
    info = data.get("info")
    if isinstance(info, dict) and info.get("schema"):
        schema = str(info["schema"])
        if "v2.0" in schema or "v2.1" in schema:
            return ImportFormat.POSTMAN_V2
        raise ImportParseError(f"Unsupported Postman collection schema: {schema}")
    return ImportFormat.POSTMAN_V1


def detect_arc_format(data: dict[str, Any]) -> ImportFormat:
    kind = data.get("kind")
    if kind == DEXIE_KIND:
        return ImportFormat.DEXIE
    if kind in POUCH_KINDS:
        return ImportFormat.POUCH
    return ImportFormat.LEGACY


def detect_format(data: Any) -> ImportFormat:
    """
    Sniff the format of a parsed import file.

    Raises:
        ImportParseError: If the structure is not recognized.
    """
    if not isinstance(data, dict):
        raise ImportParseError("File not recognized")
    if is_postman(data):
        return detect_postman_format(data)
    if is_arc_file(data):
        return detect_arc_format(data)
    raise ImportParseError("File not recognized")


def create_transformer(
    data: dict[str, Any],
    fmt: ImportFormat | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    yield_hook: YieldHook = default_yield,
):
    """Transformer instance for the data, detecting the format when not given."""
    fmt = fmt or detect_format(data)
    logger.debug("Import format: %s", fmt.value)
    cls = TRANSFORMERS[fmt]
    if fmt in CHUNKED_FORMATS:
        return cls(data, chunk_size=chunk_size, yield_hook=yield_hook)
    return cls(data)
