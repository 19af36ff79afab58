"""
Indexer module for arc-data.

Keeps a derived SQLite index of request URL fragments (and document terms)
in line with the document store, and answers prefix and substring queries.
"""

from arc_data.indexer.database import IndexDatabase
from arc_data.indexer.indexer import UrlIndexer
from arc_data.indexer.models import IndexableRequest, IndexEntry, QueryResult, TermHit
from arc_data.indexer.text import TextIndexer, normalize_text, tokenize
from arc_data.indexer.urls import (
    decompose,
    generate_entry_id,
    normalize_type,
    url_fragments,
)

__all__ = [
    "IndexDatabase",
    "IndexEntry",
    "IndexableRequest",
    "QueryResult",
    "TermHit",
    "TextIndexer",
    "UrlIndexer",
    "decompose",
    "generate_entry_id",
    "normalize_text",
    "normalize_type",
    "tokenize",
    "url_fragments",
]
