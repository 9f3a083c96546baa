"""
SQLite Document Store.

Stores each document as a JSON blob keyed by its full path, so nested
collections map onto a single table. Designed for a single-host
deployment; transactions use BEGIN IMMEDIATE so concurrent writers
(threads or processes) serialise on the database write lock.

Key behaviors:
- Datetimes round-trip through JSON as {"$ts": "<iso8601>"}
- set_merge is a read-merge-write inside one IMMEDIATE transaction
- sqlite3 errors surface as StoreError subclasses
- Listeners only observe writes made through this store instance
"""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any, TypeVar

from recap.adapters._documents import SubscriptionHub, deep_merge, new_document_id
from recap.core.paths import is_document_path, join, parent_collection, split_path
from recap.core.ports.store import (
    Document,
    Query,
    SnapshotCallback,
    StoreError,
    StorePermissionError,
    StoreUnavailableError,
    Subscription,
)

T = TypeVar("T")

SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    path TEXT PRIMARY KEY,
    collection TEXT NOT NULL,
    doc_id TEXT NOT NULL,
    data TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_documents_collection ON documents (collection, doc_id);
"""


# -----------------------------------------------------------------------------
# JSON encoding
# -----------------------------------------------------------------------------


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return {"$ts": value.isoformat()}
    if isinstance(value, dict):
        return {k: _encode(v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [_encode(v) for v in value]
    return value


def _decode_hook(obj: dict[str, Any]) -> Any:
    if len(obj) == 1 and "$ts" in obj:
        return datetime.fromisoformat(obj["$ts"])
    return obj


def dumps(data: dict[str, Any]) -> str:
    return json.dumps(_encode(data), sort_keys=True)


def loads(raw: str) -> dict[str, Any]:
    result: dict[str, Any] = json.loads(raw, object_hook=_decode_hook)
    return result


def _translate(exc: sqlite3.Error) -> StoreError:
    if isinstance(exc, sqlite3.OperationalError):
        message = str(exc).lower()
        if "readonly" in message or "read-only" in message or "authori" in message:
            return StorePermissionError(str(exc))
        return StoreUnavailableError(str(exc))
    return StoreError(str(exc))


# -----------------------------------------------------------------------------
# Transaction handle
# -----------------------------------------------------------------------------


class _SQLiteTransaction:
    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self.touched: set[str] = set()

    def get(self, path: str) -> Document | None:
        return _read(self._conn, path)

    def set_merge(self, path: str, fields: dict[str, Any]) -> None:
        _merge(self._conn, path, fields)
        self.touched.add(parent_collection(path)[0])


def _read(conn: sqlite3.Connection, path: str) -> Document | None:
    key = join(*split_path(path))
    _, doc_id = parent_collection(key)
    row = conn.execute("SELECT data FROM documents WHERE path = ?", (key,)).fetchone()
    if row is None:
        return None
    return Document(id=doc_id, path=key, data=loads(row[0]))


def _write(conn: sqlite3.Connection, path: str, data: dict[str, Any]) -> None:
    collection, doc_id = parent_collection(path)
    conn.execute(
        """
        INSERT INTO documents (path, collection, doc_id, data, updated_at)
        VALUES (?, ?, ?, ?, ?)
        ON CONFLICT(path) DO UPDATE SET
            data = excluded.data,
            updated_at = excluded.updated_at
        """,
        (
            join(*split_path(path)),
            collection,
            doc_id,
            dumps(data),
            datetime.now(UTC).isoformat(),
        ),
    )


def _merge(conn: sqlite3.Connection, path: str, fields: dict[str, Any]) -> None:
    existing = _read(conn, path)
    base = existing.data if existing is not None else {}
    _write(conn, path, deep_merge(base, fields))


# -----------------------------------------------------------------------------
# Store
# -----------------------------------------------------------------------------


class SQLiteDocumentStore:
    """SQLite implementation of DocumentStorePort."""

    def __init__(
        self,
        db_path: str,
        connection: sqlite3.Connection | None = None,
        busy_timeout_seconds: float = 30.0,
    ) -> None:
        self.db_path = db_path
        self._external_conn = connection
        if connection is not None:
            connection.isolation_level = None
        self._busy_timeout = busy_timeout_seconds
        self._hub = SubscriptionHub(self.list_collection)
        self.init_schema()

    def _get_conn(self) -> sqlite3.Connection:
        """Get database connection (uses external if provided)."""
        if self._external_conn is not None:
            return self._external_conn
        # Autocommit mode; transactions are opened explicitly.
        return sqlite3.connect(self.db_path, timeout=self._busy_timeout, isolation_level=None)

    def _should_close(self) -> bool:
        return self._external_conn is None

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._get_conn()
        except sqlite3.Error as e:
            raise _translate(e) from e
        try:
            yield conn
        except sqlite3.Error as e:
            raise _translate(e) from e
        finally:
            if self._should_close():
                conn.close()

    @contextmanager
    def _immediate(self) -> Iterator[sqlite3.Connection]:
        with self._connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                # SQLite may already have rolled back (disk full, I/O error)
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    def init_schema(self) -> None:
        with self._connection() as conn:
            conn.executescript(SCHEMA)

    # --- DocumentStorePort ---

    def get(self, path: str) -> Document | None:
        with self._connection() as conn:
            return _read(conn, path)

    def set_merge(self, path: str, fields: dict[str, Any]) -> None:
        with self._immediate() as conn:
            _merge(conn, path, fields)
        self._hub.notify(parent_collection(path)[0])

    def add_to_collection(self, collection_path: str, fields: dict[str, Any]) -> str:
        if is_document_path(collection_path):
            msg = f"Not a collection path: {collection_path!r}"
            raise ValueError(msg)
        doc_id = new_document_id()
        collection = join(*split_path(collection_path))
        with self._immediate() as conn:
            _write(conn, f"{collection}/{doc_id}", fields)
        self._hub.notify(collection)
        return doc_id

    def list_collection(self, collection_path: str) -> list[Document]:
        collection = join(*split_path(collection_path))
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT path, doc_id, data FROM documents WHERE collection = ? ORDER BY doc_id",
                (collection,),
            ).fetchall()
        return [Document(id=doc_id, path=path, data=loads(data)) for path, doc_id, data in rows]

    def delete(self, path: str) -> None:
        collection, _ = parent_collection(path)
        with self._immediate() as conn:
            conn.execute("DELETE FROM documents WHERE path = ?", (join(*split_path(path)),))
        self._hub.notify(collection)

    def transaction(self, fn: Callable[[Any], T]) -> T:
        with self._immediate() as conn:
            tx = _SQLiteTransaction(conn)
            result = fn(tx)
        for collection in tx.touched:
            self._hub.notify(collection)
        return result

    def subscribe(self, query: Query, callback: SnapshotCallback) -> Subscription:
        return self._hub.add(query, callback)
