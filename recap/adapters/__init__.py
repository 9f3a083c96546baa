"""
Adapters - concrete implementations of the core ports.

- memory_store / sqlite_store / firestore_store: DocumentStorePort
- auth.static / auth.firebase: AuthPort and ID-token verification
- clock: TimePort
"""
