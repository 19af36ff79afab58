"""Primary document store for requests, projects, variables and the rest."""

from arc_data.store.database import STORE_NAMES, DocumentStore, WriteResult

__all__ = [
    "STORE_NAMES",
    "DocumentStore",
    "WriteResult",
]
