"""Tests for the index database module."""

import tempfile
import threading
from pathlib import Path

import pytest

from arc_data.errors import StoreUnavailableError
from arc_data.indexer.database import IndexDatabase
from arc_data.indexer.models import IndexEntry


def make_entry(url: str, request_id: str = "r1", type_: str = "saved", full_url: bool = False):
    return IndexEntry(
        id=f"{url.lower()}::{type_}::{request_id}",
        request_id=request_id,
        url=url,
        type=type_,
        full_url=full_url,
    )


@pytest.fixture
def db():
    """Create a temporary database."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        database = IndexDatabase(db_path)
        database.initialize()
        yield database
        database.close()


class TestDatabaseInit:
    def test_initialize_creates_tables(self, db: IndexDatabase):
        conn = db._get_connection()
        cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        tables = {row[0] for row in cursor.fetchall()}

        assert "urls" in tables
        assert "terms" in tables
        assert "meta" in tables

    def test_initialize_is_repeatable(self, db: IndexDatabase):
        db.insert_entries([make_entry("a.com")])
        db.initialize()
        assert db.count() == 1

    def test_creates_parent_directory(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            database = IndexDatabase(Path(tmpdir) / "nested" / "dir" / "index.db")
            database.initialize()
            assert database.db_path.exists()
            database.close()

    def test_close_all_thread_connections(self, db: IndexDatabase):
        worker = threading.Thread(target=lambda: db.insert_entries([make_entry("a.com")]))
        worker.start()
        worker.join()
        assert db.open_connections == 2

        db.close()

        assert db.open_connections == 0
        assert db.count() == 1

    def test_unavailable_store(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            blocker = Path(tmpdir) / "file"
            blocker.write_text("not a directory")
            database = IndexDatabase(blocker / "index.db")
            with pytest.raises(StoreUnavailableError):
                database.initialize()


class TestEntryOperations:
    def test_insert_and_get(self, db: IndexDatabase):
        db.insert_entries([make_entry("https://A.com", full_url=True), make_entry("A.com")])
        entries = db.get_entries(["r1", "r2"])

        assert set(entries) == {"r1", "r2"}
        assert entries["r2"] == []
        urls = sorted(entry.url for entry in entries["r1"])
        assert urls == ["A.com", "https://A.com"]
        full = [entry for entry in entries["r1"] if entry.full_url]
        assert [entry.url for entry in full] == ["https://A.com"]

    def test_duplicate_entry_is_skipped(self, db: IndexDatabase):
        entry = make_entry("a.com")
        assert db.insert_entries([entry, entry, make_entry("b.com")]) == 2
        assert db.count() == 2

    def test_delete_entries(self, db: IndexDatabase):
        first, second = make_entry("a.com"), make_entry("b.com")
        db.insert_entries([first, second])
        assert db.delete_entries([first.id]) == 1
        assert [e.url for e in db.get_entries(["r1"])["r1"]] == ["b.com"]

    def test_delete_nothing(self, db: IndexDatabase):
        assert db.delete_entries([]) == 0

    def test_delete_for_requests_ignores_type(self, db: IndexDatabase):
        db.insert_entries(
            [
                make_entry("a.com", "r1", "saved"),
                make_entry("a.com", "r1", "history"),
                make_entry("a.com", "r2", "saved"),
            ]
        )
        assert db.delete_for_requests(["r1"]) == 2
        assert db.count() == 1

    def test_delete_type(self, db: IndexDatabase):
        db.insert_entries([make_entry("a.com", "r1", "saved"), make_entry("a.com", "r2", "history")])
        assert db.delete_type("history") == 1
        assert db.count("history") == 0
        assert db.count("saved") == 1

    def test_many_ids_are_batched(self, db: IndexDatabase):
        entries = [make_entry("a.com", f"r{i}") for i in range(IndexDatabase.MAX_PARAMS + 20)]
        db.insert_entries(entries)
        ids = [entry.request_id for entry in entries]
        assert len(db.get_entries(ids)) == len(ids)
        assert db.delete_for_requests(ids) == len(ids)

    def test_clear(self, db: IndexDatabase):
        db.insert_entries([make_entry("a.com"), make_entry("b.com", "r2", "history")])
        db.clear()
        assert db.count() == 0


class TestQueries:
    def test_prefix(self, db: IndexDatabase):
        db.insert_entries([make_entry("Domain.com/x", "r1"), make_entry("api.domain.com", "r2")])
        assert [r.id for r in db.query_prefix("domain")] == ["r1"]

    def test_prefix_type_filter(self, db: IndexDatabase):
        db.insert_entries([make_entry("a.com", "r1", "saved"), make_entry("a.com", "r2", "history")])
        assert [(r.id, r.type) for r in db.query_prefix("a.", "history")] == [("r2", "history")]

    def test_contains(self, db: IndexDatabase):
        db.insert_entries([make_entry("Domain.com/x", "r1"), make_entry("api.domain.com", "r2")])
        assert sorted(r.id for r in db.query_contains("domain")) == ["r1", "r2"]

    def test_contains_orders_by_position(self, db: IndexDatabase):
        db.insert_entries([make_entry("xxdomain", "late"), make_entry("domain", "early")])
        assert [r.id for r in db.query_contains("domain")] == ["early", "late"]

    def test_like_wildcards_are_literal(self, db: IndexDatabase):
        db.insert_entries([make_entry("a_b", "r1"), make_entry("axb", "r2")])
        assert [r.id for r in db.query_contains("_")] == ["r1"]
        assert [r.id for r in db.query_prefix("a_")] == ["r1"]


class TestTerms:
    def test_insert_and_query(self, db: IndexDatabase):
        db.insert_terms("saved-requests", "r1", ["login", "flow"])
        hits = db.query_terms("log")
        assert [(h.doc_id, h.store, h.term) for h in hits] == [("r1", "saved-requests", "login")]

    def test_store_filter(self, db: IndexDatabase):
        db.insert_terms("saved-requests", "r1", ["login"])
        db.insert_terms("history-requests", "h1", ["login"])
        assert [h.doc_id for h in db.query_terms("login", "saved-requests")] == ["r1"]

    def test_delete_terms(self, db: IndexDatabase):
        db.insert_terms("saved-requests", "r1", ["login"])
        db.insert_terms("saved-requests", "r2", ["login"])
        db.delete_terms("saved-requests", ["r1"])
        assert [h.doc_id for h in db.query_terms("login")] == ["r2"]

    def test_clear_terms(self, db: IndexDatabase):
        db.insert_terms("saved-requests", "r1", ["login"])
        db.insert_terms("history-requests", "h1", ["login"])
        db.clear_terms("history-requests")
        assert [h.store for h in db.query_terms("login")] == ["saved-requests"]
        db.clear_terms()
        assert db.query_terms("login") == []
