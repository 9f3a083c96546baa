"""
Ports - Protocol interfaces for the external collaborators.

- DocumentStorePort (nested collections, transactions, listeners)
- AuthPort (current identity)
- TimePort (UTC clock)
"""

from recap.core.ports.auth import AuthPort, Identity
from recap.core.ports.store import (
    Document,
    DocumentStorePort,
    Query,
    SnapshotCallback,
    StoreError,
    StorePermissionError,
    StoreUnavailableError,
    Subscription,
    Transaction,
)
from recap.core.ports.time import TimePort

__all__ = [
    "AuthPort",
    "Document",
    "DocumentStorePort",
    "Identity",
    "Query",
    "SnapshotCallback",
    "StoreError",
    "StorePermissionError",
    "StoreUnavailableError",
    "Subscription",
    "TimePort",
    "Transaction",
]
