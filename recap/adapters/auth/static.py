"""In-process auth provider adapter.

Holds the current identity in memory. Used by the CLI, by request-scoped
API handlers (one instance per verified token) and by tests that need to
simulate sign-out mid-session.
"""

import threading

from recap.core.ports.auth import Identity


class StaticAuthProvider:
    """AuthPort whose identity is set explicitly."""

    def __init__(self, identity: Identity | None = None) -> None:
        self._identity = identity
        self._lock = threading.Lock()

    def current_identity(self) -> Identity | None:
        with self._lock:
            return self._identity

    def sign_in(self, identity: Identity) -> None:
        with self._lock:
            self._identity = identity

    def sign_out(self) -> None:
        with self._lock:
            self._identity = None
