"""
Firestore Document Store.

Wraps a google-cloud-firestore client obtained through firebase-admin.
Paths are passed straight through, so the persisted layout is the one
the web client already reads and writes.

Key behaviors:
- transaction() uses @firestore.transactional (automatic retry on contention)
- subscribe() maps to Query.on_snapshot
- google.api_core errors surface as StoreError subclasses
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, TypeVar

from firebase_admin import firestore
from google.api_core import exceptions as google_exceptions
from google.cloud.firestore_v1 import FieldFilter

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

logger = logging.getLogger(__name__)

_UNAVAILABLE = (
    google_exceptions.ServiceUnavailable,
    google_exceptions.DeadlineExceeded,
    google_exceptions.TooManyRequests,
    google_exceptions.RetryError,
)
_DENIED = (
    google_exceptions.PermissionDenied,
    google_exceptions.Unauthenticated,
)


@contextmanager
def _translated() -> Iterator[None]:
    try:
        yield
    except _UNAVAILABLE as e:
        raise StoreUnavailableError(str(e)) from e
    except _DENIED as e:
        raise StorePermissionError(str(e)) from e
    except google_exceptions.GoogleAPIError as e:
        raise StoreError(str(e)) from e


def _to_document(snapshot: Any) -> Document:
    return Document(id=snapshot.id, path=snapshot.reference.path, data=snapshot.to_dict() or {})


class _FirestoreTransaction:
    def __init__(self, client: Any, transaction: Any) -> None:
        self._client = client
        self._transaction = transaction

    def get(self, path: str) -> Document | None:
        snapshot = self._client.document(path).get(transaction=self._transaction)
        return _to_document(snapshot) if snapshot.exists else None

    def set_merge(self, path: str, fields: dict[str, Any]) -> None:
        self._transaction.set(self._client.document(path), fields, merge=True)


class _FirestoreSubscription:
    def __init__(self, watch: Any) -> None:
        self._watch = watch
        self._active = True

    def unsubscribe(self) -> None:
        if self._active:
            self._active = False
            self._watch.unsubscribe()


class FirestoreDocumentStore:
    """Firestore implementation of DocumentStorePort."""

    def __init__(self, client: Any | None = None) -> None:
        self._client = client if client is not None else firestore.client()

    def get(self, path: str) -> Document | None:
        with _translated():
            snapshot = self._client.document(path).get()
        return _to_document(snapshot) if snapshot.exists else None

    def set_merge(self, path: str, fields: dict[str, Any]) -> None:
        with _translated():
            self._client.document(path).set(fields, merge=True)

    def add_to_collection(self, collection_path: str, fields: dict[str, Any]) -> str:
        with _translated():
            _, ref = self._client.collection(collection_path).add(fields)
        doc_id: str = ref.id
        return doc_id

    def list_collection(self, collection_path: str) -> list[Document]:
        with _translated():
            return [_to_document(s) for s in self._client.collection(collection_path).stream()]

    def delete(self, path: str) -> None:
        with _translated():
            self._client.document(path).delete()

    def transaction(self, fn: Callable[[Any], T]) -> T:
        client = self._client

        @firestore.transactional
        def _run(transaction: Any) -> T:
            return fn(_FirestoreTransaction(client, transaction))

        with _translated():
            return _run(client.transaction())

    def _build_query(self, query: Query) -> Any:
        ref = self._client.collection(query.collection)
        if query.where_field is not None:
            ref = ref.where(filter=FieldFilter(query.where_field, "==", query.where_value))
        if query.order_by is not None:
            direction = firestore.Query.DESCENDING if query.descending else firestore.Query.ASCENDING
            ref = ref.order_by(query.order_by, direction=direction)
        if query.limit is not None:
            ref = ref.limit(query.limit)
        return ref

    def subscribe(self, query: Query, callback: SnapshotCallback) -> Subscription:
        def _on_snapshot(snapshots: list[Any], changes: Any, read_time: Any) -> None:
            try:
                callback([_to_document(s) for s in snapshots])
            except Exception:
                logger.exception("Snapshot listener failed for %s", query.collection)

        with _translated():
            watch = self._build_query(query).on_snapshot(_on_snapshot)
        return _FirestoreSubscription(watch)
