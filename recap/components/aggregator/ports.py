"""
Aggregator component port definitions.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from recap.core.ports.store import Document


class EngagementReaderPort(Protocol):
    """The read-only slice of the document store the aggregator scans."""

    def get(self, path: str) -> Document | None:
        """Get a document, or None if absent."""
        ...

    def list_collection(self, collection_path: str) -> list[Document]:
        """List the documents of a collection, ordered by document id."""
        ...


class TimePort(Protocol):
    """Time provider interface."""

    def now_utc(self) -> datetime:
        """Get current UTC time."""
        ...
