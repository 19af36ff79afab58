"""Text normalization and the deferred term index."""

import logging
import re
import unicodedata
from typing import TYPE_CHECKING

from arc_data.indexer.database import IndexDatabase
from arc_data.indexer.models import TermHit

if TYPE_CHECKING:
    from arc_data.store import DocumentStore

logger = logging.getLogger(__name__)

_DIACRITICS_RE = re.compile(r"[\u0300-\u036f]")
_PUNCTUATION_RE = re.compile(r"""[!?'.,;:"\-_+=()*^|\\%${}<>]""")
_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)

MIN_TERM_LENGTH = 3


def normalize_text(text: str) -> str:
    """Strip diacritics and punctuation and lower-case the text."""
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", text)
    stripped = _DIACRITICS_RE.sub("", decomposed)
    return _PUNCTUATION_RE.sub("", stripped.lower())


def tokenize(text: str) -> list[str]:
    """
    Split text into searchable terms.

    Terms shorter than three characters are dropped. A leading http(s)
    scheme is removed so URLs do not produce a term for it.
    """
    if not text:
        return []
    text = _SCHEME_RE.sub("", text.strip())
    return [term for term in normalize_text(text).split() if len(term) >= MIN_TERM_LENGTH]


class TextIndexer:
    """Term index over one string property of documents in the document store."""

    def __init__(self, db: IndexDatabase, store: "DocumentStore", page_size: int = 800):
        self.db = db
        self.store = store
        self.page_size = page_size

    def index_document(self, store_name: str, doc_id: str, text: str) -> int:
        """Replace the terms of one document. Returns the number of terms stored."""
        terms = sorted(set(tokenize(text)))
        self.db.delete_terms(store_name, [doc_id])
        if terms:
            self.db.insert_terms(store_name, doc_id, terms)
        return len(terms)

    def index_store(self, store_name: str, prop: str) -> int:
        """
        Index `prop` of every document in a store.

        Args:
            store_name: Document store name (e.g. "saved-requests")
            prop: Name of the string property to index

        Returns:
            Number of documents processed.
        """
        count = 0
        for page in self.store.iter_pages(store_name, self.page_size):
            for doc in page:
                value = doc.get(prop)
                self.index_document(store_name, doc["_id"], value if isinstance(value, str) else "")
                count += 1
        logger.info("Term index of %s.%s: %d documents", store_name, prop, count)
        return count

    def remove(self, store_name: str, doc_ids: list[str]) -> None:
        """Drop the terms of the given documents."""
        self.db.delete_terms(store_name, doc_ids)

    def search(self, term: str, store: str | None = None) -> list[TermHit]:
        """Documents having a term that starts with the normalized `term`."""
        normalized = normalize_text(term).strip()
        if not normalized:
            return []
        return self.db.query_terms(normalized, store)
