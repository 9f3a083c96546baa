"""
Auth provider port.

Sign-in, sign-up and sign-out belong to the external provider; the
application only ever asks "who is signed in right now".
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class Identity:
    """Authenticated identity as exposed by the provider."""

    id: str
    email: str | None = None
    display_name: str | None = None


class AuthPort(Protocol):
    """Current-identity interface."""

    def current_identity(self) -> Identity | None:
        """Return the signed-in identity, or None when signed out."""
        ...
