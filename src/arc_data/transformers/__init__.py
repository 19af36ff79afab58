"""
Transformers from import file formats to the canonical import object.

Each transformer takes the parsed file, works on a private copy and returns
`{createdAt, version, kind: "ARC#Import", requests, projects, ...}`.
"""

from arc_data.transformers.base import (
    add_project_reference,
    add_request_reference,
    day_start,
    generate_history_id,
    generate_request_id,
)
from arc_data.transformers.detect import (
    TRANSFORMERS,
    ImportFormat,
    create_transformer,
    detect_format,
)
from arc_data.transformers.dexie import DexieTransformer
from arc_data.transformers.har import HarTransformer
from arc_data.transformers.legacy import LegacyTransformer
from arc_data.transformers.postman import ensure_variables_syntax
from arc_data.transformers.postman_backup import PostmanBackupTransformer
from arc_data.transformers.postman_env import PostmanEnvTransformer
from arc_data.transformers.postman_v1 import PostmanV1Transformer
from arc_data.transformers.postman_v2 import PostmanV2Transformer
from arc_data.transformers.pouch import PouchTransformer

__all__ = [
    "TRANSFORMERS",
    "DexieTransformer",
    "HarTransformer",
    "ImportFormat",
    "LegacyTransformer",
    "PostmanBackupTransformer",
    "PostmanEnvTransformer",
    "PostmanV1Transformer",
    "PostmanV2Transformer",
    "PouchTransformer",
    "add_project_reference",
    "add_request_reference",
    "create_transformer",
    "day_start",
    "detect_format",
    "ensure_variables_syntax",
    "generate_history_id",
    "generate_request_id",
]
