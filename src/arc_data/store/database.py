"""SQLite-backed document store with revision based optimistic concurrency."""

import json
import logging
import sqlite3
import threading
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from arc_data.errors import ConflictError, DocumentNotFoundError, StoreUnavailableError

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
-- arc-data document store v1.0

PRAGMA journal_mode = WAL;

CREATE TABLE IF NOT EXISTS documents (
    store       TEXT NOT NULL,
    id          TEXT NOT NULL,
    rev         TEXT NOT NULL,
    deleted     INTEGER NOT NULL DEFAULT 0,
    data        TEXT NOT NULL,
    updated_at  TEXT NOT NULL DEFAULT (datetime('now')),
    PRIMARY KEY (store, id)
);

CREATE INDEX IF NOT EXISTS idx_documents_store_deleted ON documents(store, deleted);

CREATE TABLE IF NOT EXISTS meta (
    key   TEXT PRIMARY KEY,
    value TEXT
);

INSERT OR REPLACE INTO meta (key, value) VALUES ('schema_version', '1.0');
"""

# Stores known to the application. Any other name is accepted too.
STORE_NAMES = (
    "saved-requests",
    "history-requests",
    "legacy-projects",
    "variables",
    "variables-environments",
    "url-history",
    "websocket-url-history",
    "auth-data",
    "host-rules",
    "cookies",
    "client-certificates",
    "client-certificates-data",
)


@dataclass
class WriteResult:
    """Outcome of writing a single document in a bulk operation."""

    id: str
    ok: bool = True
    rev: str | None = None
    status: int = 201
    error: str | None = None


def next_revision(rev: str | None) -> str:
    """Compute the revision following `rev` ("<generation>-<hex>")."""
    generation = 0
    if rev:
        try:
            generation = int(rev.split("-", 1)[0])
        except ValueError:
            generation = 0
    return f"{generation + 1}-{uuid.uuid4().hex}"


class DocumentStore:
    """Named collections of JSON documents keyed by `_id`.

    Each document carries a `_rev` token. Writing a document that already
    exists requires the current revision, otherwise ConflictError is raised.
    Deleted documents are kept as tombstones and can be overwritten freely.
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._local = threading.local()
        self._write_lock = threading.Lock()
        self._initialized = False
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
        self._ensure_initialized()
        conn = self._get_connection()
        cursor = conn.cursor()
        try:
            yield cursor
        finally:
            cursor.close()

    @contextmanager
    def _write_cursor(self) -> Iterator[sqlite3.Cursor]:
        self._ensure_initialized()
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
        """Create the schema."""
        with self._write_lock:
            conn = self._get_connection()
            try:
                conn.executescript(SCHEMA_SQL)
                conn.commit()
            except sqlite3.Error as e:
                raise StoreUnavailableError(str(self.db_path), e) from e
        self._initialized = True

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            self.initialize()

    def close(self) -> None:
        """Close the connections opened by all threads."""
        with self._connections_lock:
            connections, self._connections = self._connections, []
        for conn in connections:
            conn.close()
        self._local.conn = None

    # Single document operations

    def get(self, store: str, doc_id: str, rev: str | None = None) -> dict[str, Any]:
        """Read a live document.

        Raises:
            DocumentNotFoundError: If the document does not exist, is deleted,
                or `rev` is given and is not the current revision.
        """
        with self._read_cursor() as cursor:
            cursor.execute(
                "SELECT rev, deleted, data FROM documents WHERE store = ? AND id = ?",
                (store, doc_id),
            )
            row = cursor.fetchone()
        if not row or row["deleted"] or (rev and row["rev"] != rev):
            raise DocumentNotFoundError(store, doc_id)
        return self._row_to_doc(doc_id, row)

    def get_revision(self, store: str, doc_id: str) -> tuple[str, bool] | None:
        """Return (revision, deleted) of a stored document, or None."""
        with self._read_cursor() as cursor:
            cursor.execute(
                "SELECT rev, deleted FROM documents WHERE store = ? AND id = ?",
                (store, doc_id),
            )
            row = cursor.fetchone()
        if not row:
            return None
        return row["rev"], bool(row["deleted"])

    def put(self, store: str, doc: dict[str, Any]) -> str:
        """Create or update a document.

        Returns:
            The new revision.

        Raises:
            ValueError: If the document has no `_id`.
            ConflictError: If the document exists and `_rev` is not current.
        """
        if not doc.get("_id"):
            raise ValueError("Document must have an _id")
        with self._write_cursor() as cursor:
            return self._put(cursor, store, doc)

    def remove(self, store: str, doc_id: str, rev: str | None = None) -> str:
        """Delete a document, leaving a tombstone.

        When `rev` is omitted the current revision is deleted.

        Returns:
            The tombstone revision.
        """
        with self._write_cursor() as cursor:
            cursor.execute(
                "SELECT rev, deleted FROM documents WHERE store = ? AND id = ?",
                (store, doc_id),
            )
            row = cursor.fetchone()
            if not row or row["deleted"]:
                raise DocumentNotFoundError(store, doc_id)
            if rev and rev != row["rev"]:
                raise ConflictError(store, doc_id, row["rev"])
            new_rev = next_revision(row["rev"])
            cursor.execute(
                """UPDATE documents
                SET rev = ?, deleted = 1, data = ?, updated_at = datetime('now')
                WHERE store = ? AND id = ?""",
                (new_rev, "{}", store, doc_id),
            )
            return new_rev

    def _put(self, cursor: sqlite3.Cursor, store: str, doc: dict[str, Any]) -> str:
        doc_id = doc["_id"]
        cursor.execute(
            "SELECT rev, deleted FROM documents WHERE store = ? AND id = ?",
            (store, doc_id),
        )
        row = cursor.fetchone()
        if row and not row["deleted"] and doc.get("_rev") != row["rev"]:
            raise ConflictError(store, doc_id, row["rev"])

        new_rev = next_revision(row["rev"] if row else None)
        body = {k: v for k, v in doc.items() if k not in ("_id", "_rev", "_deleted")}
        deleted = 1 if doc.get("_deleted") else 0
        cursor.execute(
            """INSERT INTO documents (store, id, rev, deleted, data)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(store, id) DO UPDATE SET
                rev = excluded.rev,
                deleted = excluded.deleted,
                data = excluded.data,
                updated_at = datetime('now')
            """,
            (store, doc_id, new_rev, deleted, json.dumps(body)),
        )
        return new_rev

    # Bulk operations

    def bulk_docs(self, store: str, docs: list[dict[str, Any]]) -> list[WriteResult]:
        """Write many documents; failures are reported per item.

        Documents without `_id` get a generated one.
        """
        results: list[WriteResult] = []
        with self._write_cursor() as cursor:
            for doc in docs:
                if not doc.get("_id"):
                    doc = {**doc, "_id": str(uuid.uuid4())}
                doc_id = doc["_id"]
                cursor.execute("SAVEPOINT bulk_item")
                try:
                    rev = self._put(cursor, store, doc)
                except ConflictError:
                    cursor.execute("ROLLBACK TO bulk_item")
                    results.append(
                        WriteResult(
                            id=doc_id,
                            ok=False,
                            status=409,
                            error="Document update conflict",
                        )
                    )
                except (sqlite3.Error, TypeError, ValueError) as e:
                    cursor.execute("ROLLBACK TO bulk_item")
                    logger.warning("Unable to write %s/%s: %s", store, doc_id, e)
                    results.append(
                        WriteResult(id=doc_id, ok=False, status=500, error=str(e))
                    )
                else:
                    results.append(WriteResult(id=doc_id, rev=rev))
                finally:
                    cursor.execute("RELEASE bulk_item")
        return results

    def all_docs(
        self,
        store: str,
        limit: int | None = None,
        start_key: str | None = None,
        skip: int = 0,
        keys: list[str] | None = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        """List live documents ordered by id.

        Args:
            store: Store name
            limit: Maximum number of documents
            start_key: First id to include (last id when descending)
            skip: Number of documents to skip after `start_key`
            keys: Fetch exactly these ids, in this order (missing ids skipped)
            descending: Reverse id order
        """
        if keys is not None:
            docs = []
            for key in keys:
                try:
                    docs.append(self.get(store, key))
                except DocumentNotFoundError:
                    continue
            return docs

        query = "SELECT id, rev, deleted, data FROM documents WHERE store = ? AND deleted = 0"
        params: list = [store]
        if start_key is not None:
            query += " AND id <= ?" if descending else " AND id >= ?"
            params.append(start_key)
        query += " ORDER BY id DESC" if descending else " ORDER BY id"
        query += " LIMIT ? OFFSET ?"
        params.append(limit if limit else -1)
        params.append(skip)

        with self._read_cursor() as cursor:
            cursor.execute(query, params)
            return [self._row_to_doc(row["id"], row) for row in cursor.fetchall()]

    def iter_pages(self, store: str, page_size: int) -> Iterator[list[dict[str, Any]]]:
        """Yield all live documents of a store in pages of `page_size`."""
        start_key: str | None = None
        skip = 0
        while True:
            page = self.all_docs(store, limit=page_size, start_key=start_key, skip=skip)
            if not page:
                return
            yield page
            if len(page) < page_size:
                return
            start_key = page[-1]["_id"]
            skip = 1

    def count(self, store: str) -> int:
        """Number of live documents in a store."""
        with self._read_cursor() as cursor:
            cursor.execute(
                "SELECT COUNT(*) AS cnt FROM documents WHERE store = ? AND deleted = 0",
                (store,),
            )
            return cursor.fetchone()["cnt"]

    def destroy(self, store: str) -> None:
        """Remove a store with all its documents and tombstones."""
        with self._write_cursor() as cursor:
            cursor.execute("DELETE FROM documents WHERE store = ?", (store,))
        logger.info("Destroyed store %s", store)

    @staticmethod
    def _row_to_doc(doc_id: str, row: sqlite3.Row) -> dict[str, Any]:
        doc = json.loads(row["data"])
        doc["_id"] = doc_id
        doc["_rev"] = row["rev"]
        return doc
