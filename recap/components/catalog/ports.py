"""
Catalog component port definitions.
"""

from __future__ import annotations

from typing import Protocol

from recap.core.ports.store import Document


class TutorialReaderPort(Protocol):
    """The slice of the document store the catalog reads."""

    def get(self, path: str) -> Document | None:
        """Get a document, or None if absent."""
        ...
