"""Tests for URL decomposition."""

from arc_data.indexer.models import IndexableRequest
from arc_data.indexer.urls import (
    build_entries,
    decompose,
    generate_entry_id,
    normalize_type,
    url_fragments,
)


class TestNormalizeType:
    def test_store_aliases(self):
        assert normalize_type("saved-requests") == "saved"
        assert normalize_type("history-requests") == "history"
        assert normalize_type("legacy-projects") == "projects"

    def test_plain_types_unchanged(self):
        assert normalize_type("saved") == "saved"
        assert normalize_type("history") == "history"
        assert normalize_type("other") == "other"

    def test_missing_type_is_saved(self):
        assert normalize_type(None) == "saved"
        assert normalize_type("") == "saved"


class TestUrlFragments:
    def test_full_decomposition(self):
        fragments = url_fragments("https://domain.com/api?a=b&c=d")
        assert fragments == [
            ("https://domain.com/api?a=b&c=d", True),
            ("https://domain.com", False),
            ("domain.com/api?a=b&c=d", False),
            ("/api?a=b&c=d", False),
            ("a=b&c=d", False),
            ("a=b", False),
            ("b", False),
            ("c=d", False),
            ("d", False),
        ]

    def test_only_full_url_is_flagged(self):
        flags = [is_full for _, is_full in url_fragments("https://a.com/p?x=1")]
        assert flags.count(True) == 1
        assert flags[0] is True

    def test_duplicates_removed_case_insensitively(self):
        fragments = [value for value, _ in url_fragments("https://A.com")]
        # The authority equals the full URL
        assert fragments == ["https://A.com", "A.com"]

    def test_url_without_query(self):
        fragments = [value for value, _ in url_fragments("http://api.com/path")]
        assert fragments == ["http://api.com/path", "http://api.com", "api.com/path", "/path"]

    def test_relative_value_is_opaque_path(self):
        assert url_fragments("not a url") == [("not a url", True)]

    def test_path_with_query_keeps_query_fragments(self):
        fragments = [value for value, _ in url_fragments("/path?x=1")]
        assert fragments == ["/path?x=1", "x=1", "1"]

    def test_unparsable_url_does_not_raise(self):
        assert url_fragments("http://[::1/path") == [("http://[::1/path", True)]

    def test_empty_url(self):
        assert url_fragments("") == []

    def test_empty_query_pairs_skipped(self):
        fragments = [value for value, _ in url_fragments("https://a.com/?x=1&&flag")]
        assert "" not in fragments
        assert "flag" in fragments
        assert "x=1" in fragments


class TestGenerateEntryId:
    def test_lower_cases_fragment(self):
        assert generate_entry_id("Domain.COM", "saved", "r1") == "domain.com::saved::r1"

    def test_stable(self):
        assert generate_entry_id("a=b", "history", "x") == generate_entry_id("a=b", "history", "x")


class TestDecompose:
    def test_entries_point_to_request(self):
        request = IndexableRequest(id="r1", url="https://a.com/p?x=1", type="saved-requests")
        entries = decompose(request)
        assert entries
        assert all(entry.request_id == "r1" for entry in entries)
        assert all(entry.type == "saved" for entry in entries)

    def test_idempotent_against_own_output(self):
        request = IndexableRequest(id="r1", url="https://domain.com/api?a=b&c=d")
        first = decompose(request)
        assert decompose(request, first) == []

    def test_only_missing_entries_returned(self):
        request = IndexableRequest(id="r1", url="https://a.com/p?x=1")
        entries = build_entries(request)
        missing = decompose(request, entries[:2])
        assert [entry.id for entry in missing] == [entry.id for entry in entries[2:]]

    def test_entry_key_is_lower_case(self):
        request = IndexableRequest(id="r1", url="https://A.com/Path")
        assert all(entry.key == entry.url.lower() for entry in decompose(request))
