"""
Shared helpers for document store adapters.

Merge semantics, query evaluation and in-process snapshot listeners are
identical for the in-memory and SQLite stores, so they live here.
"""

from __future__ import annotations

import copy
import logging
import threading
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any
from uuid import uuid4

from recap.core.ports.store import Document, Query, SnapshotCallback

logger = logging.getLogger(__name__)


def new_document_id() -> str:
    """Generate a 20-char auto id."""
    return uuid4().hex[:20]


def deep_merge(existing: dict[str, Any], fields: dict[str, Any]) -> dict[str, Any]:
    """
    Merge fields into existing (nested maps merge, everything else replaces).

    Returns a new dict; inputs are not modified.
    """
    merged = copy.deepcopy(existing)
    for key, value in fields.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _sort_key(value: Any) -> tuple[int, Any]:
    # Missing values sort first, like absent fields in an ordered index.
    if value is None:
        return (0, 0)
    if isinstance(value, datetime):
        return (1, value.timestamp())
    return (1, value)


def evaluate_query(documents: Iterable[Document], query: Query) -> list[Document]:
    """Apply filter, ordering and limit to documents of one collection."""
    result = list(documents)

    if query.where_field is not None:
        result = [d for d in result if d.data.get(query.where_field) == query.where_value]

    if query.order_by is not None:
        field_name = query.order_by
        result.sort(key=lambda d: _sort_key(d.data.get(field_name)), reverse=query.descending)

    if query.limit is not None:
        result = result[: query.limit]

    return result


class _Listener:
    def __init__(self, hub: SubscriptionHub, query: Query, callback: SnapshotCallback) -> None:
        self._hub = hub
        self.query = query
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._hub.remove(self)


class SubscriptionHub:
    """
    In-process listener registry.

    After each committed write the store calls notify(collection_path);
    every listener on that collection receives a fresh snapshot. Only
    writes made through the same store instance are observed.
    """

    def __init__(self, fetch: Callable[[str], list[Document]]) -> None:
        self._fetch = fetch
        self._listeners: list[_Listener] = []
        self._lock = threading.Lock()

    def add(self, query: Query, callback: SnapshotCallback) -> _Listener:
        listener = _Listener(self, query, callback)
        with self._lock:
            self._listeners.append(listener)
        self._deliver(listener)
        return listener

    def remove(self, listener: _Listener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def notify(self, collection_path: str) -> None:
        with self._lock:
            targets = [ls for ls in self._listeners if ls.query.collection == collection_path]
        for listener in targets:
            self._deliver(listener)

    def _deliver(self, listener: _Listener) -> None:
        if not listener.active:
            return
        try:
            snapshot = evaluate_query(self._fetch(listener.query.collection), listener.query)
            listener.callback(snapshot)
        except Exception:
            logger.exception("Snapshot listener failed for %s", listener.query.collection)
