"""Data models for the URL index."""

from dataclasses import dataclass


@dataclass
class IndexableRequest:
    """A request as seen by the indexer."""

    id: str
    url: str = ""
    type: str = "saved"  # saved | history


@dataclass
class IndexEntry:
    """One searchable fragment of a request URL."""

    id: str  # "<lower fragment>::<type>::<request id>"
    request_id: str
    url: str  # The indexed fragment as it appears in the URL
    type: str
    full_url: bool = False

    @property
    def key(self) -> str:
        """Lower-cased fragment used for prefix and substring matching."""
        return self.url.lower()


@dataclass
class QueryResult:
    """A request matched by an index query."""

    id: str
    type: str


@dataclass
class TermHit:
    """A document matched by a term query."""

    doc_id: str
    store: str
    term: str
