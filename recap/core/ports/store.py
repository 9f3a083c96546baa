"""
Document Store port.

Protocol-based interface over a hierarchical document database
(collections of documents, documents holding sub-collections).

Key requirements:
- Reads return plain dicts; validation happens at the caller's read boundary
- set_merge preserves fields not named in the write
- transaction() runs a read-modify-write atomically (no lost updates)
- subscribe() pushes a full query snapshot on every change
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol, TypeVar

T = TypeVar("T")


# --- Errors ---


class StoreError(Exception):
    """Base error for document store failures."""


class StoreUnavailableError(StoreError):
    """Store could not be reached or timed out (transient)."""


class StorePermissionError(StoreError):
    """Store rejected the operation."""


# --- Values ---


@dataclass(frozen=True)
class Document:
    """A document snapshot."""

    id: str
    path: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Query:
    """
    Query over a single collection.

    Supports the two shapes the application needs:
    - ordered by a (timestamp) field
    - filtered by equality on a field (typically a boolean flag)
    """

    collection: str
    order_by: str | None = None
    descending: bool = False
    where_field: str | None = None
    where_value: Any = None
    limit: int | None = None


# --- Ports ---


class Transaction(Protocol):
    """Handle passed to a transaction function."""

    def get(self, path: str) -> Document | None:
        """Read a document inside the transaction."""
        ...

    def set_merge(self, path: str, fields: dict[str, Any]) -> None:
        """Merge fields into a document inside the transaction."""
        ...


class Subscription(Protocol):
    """Handle for an active query listener."""

    def unsubscribe(self) -> None:
        """Stop delivering snapshots. Idempotent."""
        ...


SnapshotCallback = Callable[[list[Document]], None]


class DocumentStorePort(Protocol):
    """
    Document store interface.

    All methods raise StoreError subclasses on failure.
    """

    def get(self, path: str) -> Document | None:
        """Get a document, or None if absent."""
        ...

    def set_merge(self, path: str, fields: dict[str, Any]) -> None:
        """Create or update a document, preserving unspecified fields."""
        ...

    def add_to_collection(self, collection_path: str, fields: dict[str, Any]) -> str:
        """Create a document with a generated id. Returns the id."""
        ...

    def list_collection(self, collection_path: str) -> list[Document]:
        """List every document in a collection, ordered by document id."""
        ...

    def delete(self, path: str) -> None:
        """Delete a document (sub-collections are left untouched)."""
        ...

    def transaction(self, fn: Callable[[Transaction], T]) -> T:
        """
        Run fn atomically.

        Reads made through the Transaction happen-before its writes and
        no concurrent writer can interleave between them.
        """
        ...

    def subscribe(self, query: Query, callback: SnapshotCallback) -> Subscription:
        """Deliver the query result now and after every change."""
        ...
