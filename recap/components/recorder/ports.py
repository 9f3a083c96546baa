"""
Recorder component port definitions.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any, Protocol, TypeVar

from recap.core.ports.auth import AuthPort, Identity
from recap.core.ports.store import Document, Transaction

T = TypeVar("T")


class WatchStorePort(Protocol):
    """The slice of the document store the recorder writes through."""

    def get(self, path: str) -> Document | None:
        """Get a document, or None if absent."""
        ...

    def set_merge(self, path: str, fields: dict[str, Any]) -> None:
        """Create or update a document, preserving unspecified fields."""
        ...

    def add_to_collection(self, collection_path: str, fields: dict[str, Any]) -> str:
        """Append a document with a generated id."""
        ...

    def list_collection(self, collection_path: str) -> list[Document]:
        """List the documents directly under a collection."""
        ...

    def transaction(self, fn: Callable[[Transaction], T]) -> T:
        """Run fn as an atomic read-modify-write."""
        ...


class TimePort(Protocol):
    """Time provider interface."""

    def now_utc(self) -> datetime:
        """Get current UTC time."""
        ...


__all__ = ["AuthPort", "Identity", "TimePort", "WatchStorePort"]
