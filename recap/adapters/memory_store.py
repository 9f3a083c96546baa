"""
In-memory Document Store for tests and local dev.

Thread-safe: a single re-entrant lock serialises writes and is held for
the whole body of a transaction, which makes read-modify-write atomic.
"""

from __future__ import annotations

import copy
import threading
from collections.abc import Callable
from typing import Any, TypeVar

from recap.adapters._documents import (
    SubscriptionHub,
    deep_merge,
    new_document_id,
)
from recap.core.paths import is_document_path, join, parent_collection, split_path
from recap.core.ports.store import Document, Query, SnapshotCallback, Subscription

T = TypeVar("T")


class _MemoryTransaction:
    """Buffers writes; they are applied only if the transaction body returns."""

    def __init__(self, store: InMemoryDocumentStore) -> None:
        self._store = store
        self.pending: dict[str, dict[str, Any]] = {}

    def get(self, path: str) -> Document | None:
        key = join(*split_path(path))
        if key in self.pending:
            _, doc_id = parent_collection(key)
            return Document(id=doc_id, path=key, data=copy.deepcopy(self.pending[key]))
        return self._store._get_unlocked(path)

    def set_merge(self, path: str, fields: dict[str, Any]) -> None:
        current = self.get(path)
        base = current.data if current is not None else {}
        self.pending[join(*split_path(path))] = deep_merge(base, fields)


class InMemoryDocumentStore:
    """Dict-backed implementation of DocumentStorePort."""

    def __init__(self) -> None:
        self._docs: dict[str, dict[str, Any]] = {}
        self._lock = threading.RLock()
        self._hub = SubscriptionHub(self.list_collection)

    # --- internal (lock held by caller) ---

    def _get_unlocked(self, path: str) -> Document | None:
        _, doc_id = parent_collection(path)
        data = self._docs.get(join(*split_path(path)))
        if data is None:
            return None
        return Document(id=doc_id, path=join(*split_path(path)), data=copy.deepcopy(data))

    def _merge_unlocked(self, path: str, fields: dict[str, Any]) -> None:
        parent_collection(path)
        key = join(*split_path(path))
        self._docs[key] = deep_merge(self._docs.get(key, {}), fields)

    # --- DocumentStorePort ---

    def get(self, path: str) -> Document | None:
        with self._lock:
            return self._get_unlocked(path)

    def set_merge(self, path: str, fields: dict[str, Any]) -> None:
        with self._lock:
            self._merge_unlocked(path, fields)
        self._hub.notify(parent_collection(path)[0])

    def add_to_collection(self, collection_path: str, fields: dict[str, Any]) -> str:
        if is_document_path(collection_path):
            msg = f"Not a collection path: {collection_path!r}"
            raise ValueError(msg)
        doc_id = new_document_id()
        collection = join(*split_path(collection_path))
        with self._lock:
            self._docs[f"{collection}/{doc_id}"] = copy.deepcopy(fields)
        self._hub.notify(collection)
        return doc_id

    def list_collection(self, collection_path: str) -> list[Document]:
        collection = join(*split_path(collection_path))
        depth = len(split_path(collection)) + 1
        with self._lock:
            items = [
                Document(id=split_path(path)[-1], path=path, data=copy.deepcopy(data))
                for path, data in self._docs.items()
                if path.startswith(collection + "/") and len(split_path(path)) == depth
            ]
        return sorted(items, key=lambda d: d.id)

    def delete(self, path: str) -> None:
        collection, _ = parent_collection(path)
        with self._lock:
            self._docs.pop(join(*split_path(path)), None)
        self._hub.notify(collection)

    def transaction(self, fn: Callable[[Any], T]) -> T:
        tx = _MemoryTransaction(self)
        with self._lock:
            result = fn(tx)
            self._docs.update(tx.pending)
        for collection in {parent_collection(p)[0] for p in tx.pending}:
            self._hub.notify(collection)
        return result

    def subscribe(self, query: Query, callback: SnapshotCallback) -> Subscription:
        return self._hub.add(query, callback)
