"""SQLite database management for the URL and term index."""

import logging
import sqlite3
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path

from arc_data.errors import StoreUnavailableError
from arc_data.indexer.models import IndexEntry, QueryResult, TermHit

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1.0"

# Upper bound of a prefix range query
KEY_RANGE_END = chr(0xFFFF)

SCHEMA_SQL = """
-- arc-data index schema v1.0
-- This index is disposable: it regenerates from the document store

PRAGMA journal_mode = WAL;

-- One row per searchable URL fragment of a request
CREATE TABLE IF NOT EXISTS urls (
    id          TEXT PRIMARY KEY,
    key         TEXT NOT NULL,
    request_id  TEXT NOT NULL,
    url         TEXT NOT NULL,
    type        TEXT NOT NULL,
    full_url    INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_urls_key ON urls(key);
CREATE INDEX IF NOT EXISTS idx_urls_request ON urls(request_id);
CREATE INDEX IF NOT EXISTS idx_urls_type ON urls(type);
CREATE INDEX IF NOT EXISTS idx_urls_full ON urls(full_url) WHERE full_url = 1;

-- Normalized terms of document properties
CREATE TABLE IF NOT EXISTS terms (
    term    TEXT NOT NULL,
    doc_id  TEXT NOT NULL,
    store   TEXT NOT NULL,
    PRIMARY KEY (store, doc_id, term)
);

CREATE INDEX IF NOT EXISTS idx_terms_term ON terms(term);

CREATE TABLE IF NOT EXISTS meta (
    key   TEXT PRIMARY KEY,
    value TEXT
);

INSERT OR REPLACE INTO meta (key, value) VALUES ('schema_version', '1.0');
INSERT OR REPLACE INTO meta (key, value) VALUES ('created_at', datetime('now'));
"""


def _placeholders(count: int) -> str:
    return ",".join("?" for _ in range(count))


class IndexDatabase:
    """SQLite database for the URL index."""

    # Keeps IN (...) lists below SQLite's host parameter limit
    MAX_PARAMS = 500

    def __init__(self, db_path: Path):
        """Initialize database connection."""
        self.db_path = db_path
        self._local = threading.local()
        self._write_lock = threading.Lock()
        # Connections opened by every thread, closed together by close()
        self._connections: list[sqlite3.Connection] = []
        self._connections_lock = threading.Lock()

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        conn = getattr(self._local, "conn", None)
        with self._connections_lock:
            if conn is not None and any(c is conn for c in self._connections):
                return conn
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            except (OSError, sqlite3.Error) as e:
                raise StoreUnavailableError(str(self.db_path), e) from e
            conn.row_factory = sqlite3.Row
            self._connections.append(conn)
        self._local.conn = conn
        return conn

    @property
    def open_connections(self) -> int:
        """Number of connections opened and not yet closed."""
        with self._connections_lock:
            return len(self._connections)

    @contextmanager
    def _read_cursor(self) -> Iterator[sqlite3.Cursor]:
        """Get a cursor for read operations."""
        conn = self._get_connection()
        cursor = conn.cursor()
        try:
            yield cursor
        finally:
            cursor.close()

    @contextmanager
    def _write_cursor(self) -> Iterator[sqlite3.Cursor]:
        """Get a cursor for write operations with locking."""
        with self._write_lock:
            conn = self._get_connection()
            cursor = conn.cursor()
            try:
                yield cursor
                conn.commit()
            except Exception:
                conn.rollback()
                raise
            finally:
                cursor.close()

    def initialize(self) -> None:
        """Initialize the database schema.

        Raises:
            StoreUnavailableError: If the database cannot be opened or created.
        """
        try:
            with self._write_cursor() as cursor:
                cursor.executescript(SCHEMA_SQL)
        except sqlite3.Error as e:
            raise StoreUnavailableError(str(self.db_path), e) from e

    def close(self) -> None:
        """Close the connections of all threads.

        A thread that uses the database afterwards opens a new connection.
        """
        with self._connections_lock:
            connections, self._connections = self._connections, []
        for conn in connections:
            conn.close()
        self._local.conn = None

    def clear(self) -> None:
        """Remove every URL entry."""
        with self._write_cursor() as cursor:
            cursor.execute("DELETE FROM urls")

    # URL entry operations

    def get_entries(self, request_ids: Iterable[str]) -> dict[str, list[IndexEntry]]:
        """Stored entries grouped by request id."""
        ids = list(dict.fromkeys(request_ids))
        result: dict[str, list[IndexEntry]] = {rid: [] for rid in ids}
        with self._read_cursor() as cursor:
            for start in range(0, len(ids), self.MAX_PARAMS):
                batch = ids[start : start + self.MAX_PARAMS]
                cursor.execute(
                    f"""SELECT id, request_id, url, type, full_url FROM urls
                    WHERE request_id IN ({_placeholders(len(batch))})""",
                    batch,
                )
                for row in cursor.fetchall():
                    result[row["request_id"]].append(self._row_to_entry(row))
        return result

    def insert_entries(self, entries: Iterable[IndexEntry]) -> int:
        """
        Insert index entries.

        An entry that fails to insert is logged and skipped.

        Returns:
            Number of entries inserted.
        """
        inserted = 0
        with self._write_cursor() as cursor:
            for entry in entries:
                try:
                    cursor.execute(
                        """INSERT INTO urls (id, key, request_id, url, type, full_url)
                        VALUES (?, ?, ?, ?, ?, ?)""",
                        (
                            entry.id,
                            entry.key,
                            entry.request_id,
                            entry.url,
                            entry.type,
                            1 if entry.full_url else 0,
                        ),
                    )
                    inserted += 1
                except sqlite3.Error as e:
                    logger.warning("Unable to insert index entry %s: %s", entry.id, e)
        return inserted

    def delete_entries(self, entry_ids: Iterable[str]) -> int:
        """Delete entries by their id."""
        return self._delete_in("id", list(entry_ids))

    def delete_for_requests(self, request_ids: Iterable[str]) -> int:
        """Delete every entry of the given requests, regardless of type."""
        return self._delete_in("request_id", list(request_ids))

    def delete_type(self, type_: str) -> int:
        """Delete every entry of a type."""
        with self._write_cursor() as cursor:
            cursor.execute("DELETE FROM urls WHERE type = ?", (type_,))
            return cursor.rowcount

    def _delete_in(self, column: str, values: list[str]) -> int:
        deleted = 0
        if not values:
            return deleted
        with self._write_cursor() as cursor:
            for start in range(0, len(values), self.MAX_PARAMS):
                batch = values[start : start + self.MAX_PARAMS]
                cursor.execute(
                    f"DELETE FROM urls WHERE {column} IN ({_placeholders(len(batch))})",
                    batch,
                )
                deleted += cursor.rowcount
        return deleted

    def query_prefix(self, term: str, type_: str | None = None) -> list[QueryResult]:
        """Entries whose key starts with `term` (already lower-cased)."""
        sql = "SELECT request_id, type FROM urls WHERE key >= ? AND key < ?"
        params: list = [term, term + KEY_RANGE_END]
        if type_:
            sql += " AND type = ?"
            params.append(type_)
        sql += " ORDER BY key, id"
        return self._query(sql, params)

    def query_contains(self, term: str, type_: str | None = None) -> list[QueryResult]:
        """Entries whose key contains `term` (already lower-cased)."""
        sql = "SELECT request_id, type FROM urls WHERE instr(key, ?) > 0"
        params: list = [term]
        if type_:
            sql += " AND type = ?"
            params.append(type_)
        sql += " ORDER BY instr(key, ?), key, id"
        params.append(term)
        return self._query(sql, params)

    def _query(self, sql: str, params: list) -> list[QueryResult]:
        with self._read_cursor() as cursor:
            cursor.execute(sql, params)
            return [
                QueryResult(id=row["request_id"], type=row["type"])
                for row in cursor.fetchall()
            ]

    def count(self, type_: str | None = None) -> int:
        """Number of stored entries, optionally of one type."""
        with self._read_cursor() as cursor:
            if type_:
                cursor.execute("SELECT COUNT(*) AS cnt FROM urls WHERE type = ?", (type_,))
            else:
                cursor.execute("SELECT COUNT(*) AS cnt FROM urls")
            return cursor.fetchone()["cnt"]

    # Term operations

    def insert_terms(self, store: str, doc_id: str, terms: Iterable[str]) -> None:
        """Store terms of a document."""
        with self._write_cursor() as cursor:
            cursor.executemany(
                "INSERT OR IGNORE INTO terms (term, doc_id, store) VALUES (?, ?, ?)",
                [(term, doc_id, store) for term in terms],
            )

    def delete_terms(self, store: str, doc_ids: Iterable[str]) -> None:
        """Remove all terms of the given documents."""
        ids = list(doc_ids)
        with self._write_cursor() as cursor:
            for start in range(0, len(ids), self.MAX_PARAMS):
                batch = ids[start : start + self.MAX_PARAMS]
                cursor.execute(
                    f"""DELETE FROM terms
                    WHERE store = ? AND doc_id IN ({_placeholders(len(batch))})""",
                    [store, *batch],
                )

    def clear_terms(self, store: str | None = None) -> None:
        """Remove terms of one store, or all terms."""
        with self._write_cursor() as cursor:
            if store:
                cursor.execute("DELETE FROM terms WHERE store = ?", (store,))
            else:
                cursor.execute("DELETE FROM terms")

    def query_terms(self, term: str, store: str | None = None) -> list[TermHit]:
        """Documents with a term starting with `term`, one hit per document."""
        sql = "SELECT doc_id, store, MIN(term) AS term FROM terms WHERE term >= ? AND term < ?"
        params: list = [term, term + KEY_RANGE_END]
        if store:
            sql += " AND store = ?"
            params.append(store)
        sql += " GROUP BY store, doc_id ORDER BY store, doc_id"
        with self._read_cursor() as cursor:
            cursor.execute(sql, params)
            return [
                TermHit(doc_id=row["doc_id"], store=row["store"], term=row["term"])
                for row in cursor.fetchall()
            ]

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> IndexEntry:
        return IndexEntry(
            id=row["id"],
            request_id=row["request_id"],
            url=row["url"],
            type=row["type"],
            full_url=bool(row["full_url"]),
        )
