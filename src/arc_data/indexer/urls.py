"""URL decomposition into searchable index fragments.

A request URL is stored under several keys so that a search for a host name,
a path, the query string or a single query parameter finds the request with
a plain prefix lookup:

    https://domain.com/api?a=b&c=d
    https://domain.com
    domain.com/api?a=b&c=d
    /api?a=b&c=d
    a=b&c=d
    a=b
    c=d
    b
    d
"""

import logging
from collections.abc import Iterable
from urllib.parse import urlsplit

from arc_data.indexer.models import IndexableRequest, IndexEntry

logger = logging.getLogger(__name__)

TYPE_ALIASES = {
    "saved-requests": "saved",
    "history-requests": "history",
    "legacy-projects": "projects",
}


def normalize_type(type_: str | None) -> str:
    """Map store names to index types (`saved-requests` -> `saved`)."""
    if not type_:
        return "saved"
    return TYPE_ALIASES.get(type_, type_)


def generate_entry_id(fragment: str, type_: str, request_id: str) -> str:
    """Stable id of an index entry, sortable by the fragment."""
    return f"{fragment.lower()}::{type_}::{request_id}"


def url_fragments(url: str) -> list[tuple[str, bool]]:
    """
    Split a URL into its searchable fragments.

    Fragments are returned in a fixed order and de-duplicated without regard
    to case. A value that cannot be parsed as an absolute URL is indexed as an
    opaque path.

    Args:
        url: The request URL

    Returns:
        List of (fragment, is_full_url) tuples.
    """
    if not url:
        return []

    candidates: list[tuple[str, bool]] = [(url, True)]
    try:
        parts = urlsplit(url)
    except ValueError as e:
        logger.debug("Indexing unparsable URL %r as a path: %s", url, e)
        parts = None

    if parts is not None:
        query = parts.query
        suffix = f"?{query}" if query else ""
        if parts.scheme and parts.netloc:
            candidates.append((f"{parts.scheme}://{parts.netloc}", False))
            candidates.append((f"{parts.netloc}{parts.path}{suffix}", False))
            candidates.append((f"{parts.path}{suffix}", False))
        if query:
            candidates.append((query, False))
            for pair in query.split("&"):
                if not pair:
                    continue
                candidates.append((pair, False))
                _, sep, value = pair.partition("=")
                if sep and value:
                    candidates.append((value, False))

    seen: set[str] = set()
    fragments: list[tuple[str, bool]] = []
    for fragment, is_full in candidates:
        lowered = fragment.lower()
        if not fragment or lowered in seen:
            continue
        seen.add(lowered)
        fragments.append((fragment, is_full))
    return fragments


def build_entries(request: IndexableRequest) -> list[IndexEntry]:
    """All index entries for a request's current URL."""
    type_ = normalize_type(request.type)
    return [
        IndexEntry(
            id=generate_entry_id(fragment, type_, request.id),
            request_id=request.id,
            url=fragment,
            type=type_,
            full_url=is_full,
        )
        for fragment, is_full in url_fragments(request.url)
    ]


def decompose(
    request: IndexableRequest,
    indexed: Iterable[IndexEntry] = (),
) -> list[IndexEntry]:
    """
    Compute the entries of a request that are not indexed yet.

    Args:
        request: The request to index
        indexed: Entries already stored for the request

    Returns:
        Entries missing from `indexed`. Passing the result back as `indexed`
        yields an empty list.
    """
    existing = {entry.id for entry in indexed}
    return [entry for entry in build_entries(request) if entry.id not in existing]
