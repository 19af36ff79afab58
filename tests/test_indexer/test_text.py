"""Tests for text normalization and the term index."""

import tempfile
from pathlib import Path

import pytest

from arc_data.indexer.database import IndexDatabase
from arc_data.indexer.text import TextIndexer, normalize_text, tokenize
from arc_data.store import DocumentStore


class TestNormalizeText:
    def test_strips_diacritics(self):
        assert normalize_text("Café Żółć") == "cafe zołc"

    def test_lower_cases(self):
        assert normalize_text("GET Users") == "get users"

    def test_removes_punctuation(self):
        assert normalize_text("a.b,c;d:e!f?g") == "abcdefg"
        assert normalize_text("{x}<y>(z)") == "xyz"
        assert normalize_text("$100 + 50% = *^|\\") == "100  50  "

    def test_empty(self):
        assert normalize_text("") == ""


class TestTokenize:
    def test_drops_short_terms(self):
        assert tokenize("a to the users") == ["the", "users"]

    def test_removes_scheme(self):
        assert tokenize("https://api.example.com") == ["apiexamplecom"]

    def test_splits_on_whitespace(self):
        assert tokenize("List all\tprojects\nnow") == ["list", "all", "projects", "now"]

    def test_no_stemming(self):
        assert tokenize("running runs") == ["running", "runs"]

    def test_empty(self):
        assert tokenize("") == []
        assert tokenize("  ") == []


@pytest.fixture
def text_indexer():
    with tempfile.TemporaryDirectory() as tmpdir:
        db = IndexDatabase(Path(tmpdir) / "index.db")
        db.initialize()
        store = DocumentStore(Path(tmpdir) / "store.db")
        store.initialize()
        yield TextIndexer(db, store, page_size=2)
        db.close()
        store.close()


class TestTextIndexer:
    def test_index_document_and_search(self, text_indexer: TextIndexer):
        text_indexer.index_document("saved-requests", "r1", "Create user account")
        hits = text_indexer.search("acc")
        assert [(hit.doc_id, hit.store) for hit in hits] == [("r1", "saved-requests")]
        assert hits[0].term == "account"

    def test_reindexing_replaces_terms(self, text_indexer: TextIndexer):
        text_indexer.index_document("saved-requests", "r1", "Create user")
        text_indexer.index_document("saved-requests", "r1", "Delete project")
        assert text_indexer.search("create") == []
        assert len(text_indexer.search("delete")) == 1

    def test_search_is_normalized(self, text_indexer: TextIndexer):
        text_indexer.index_document("saved-requests", "r1", "Résumé upload")
        assert len(text_indexer.search("RÉSU")) == 1

    def test_search_filters_store(self, text_indexer: TextIndexer):
        text_indexer.index_document("saved-requests", "r1", "login flow")
        text_indexer.index_document("history-requests", "h1", "login")
        assert len(text_indexer.search("login")) == 2
        assert [hit.doc_id for hit in text_indexer.search("login", "history-requests")] == ["h1"]

    def test_one_hit_per_document(self, text_indexer: TextIndexer):
        text_indexer.index_document("saved-requests", "r1", "user users usergroup")
        assert len(text_indexer.search("user")) == 1

    def test_empty_search(self, text_indexer: TextIndexer):
        assert text_indexer.search("") == []
        assert text_indexer.search("...") == []

    def test_index_store_reads_all_pages(self, text_indexer: TextIndexer):
        text_indexer.store.bulk_docs(
            "saved-requests",
            [
                {"_id": "r1", "name": "First request"},
                {"_id": "r2", "name": "Second request"},
                {"_id": "r3", "name": "Third request"},
                {"_id": "r4", "name": None},
            ],
        )
        assert text_indexer.index_store("saved-requests", "name") == 4
        ids = {hit.doc_id for hit in text_indexer.search("request")}
        assert ids == {"r1", "r2", "r3"}

    def test_remove(self, text_indexer: TextIndexer):
        text_indexer.index_document("saved-requests", "r1", "payments")
        text_indexer.remove("saved-requests", ["r1"])
        assert text_indexer.search("pay") == []
