from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from recap.adapters.clock import SystemClock
from recap.adapters.memory_store import InMemoryDocumentStore
from recap.adapters.sqlite_store import SQLiteDocumentStore
from recap.components.aggregator import Aggregator, AggregatorConfig, create_aggregator
from recap.components.recorder import RecorderConfig
from recap.core.ports.store import DocumentStorePort
from recap.rules.models import Rules, StoreRules


def create_store(store_rules: StoreRules, data_dir: Path) -> DocumentStorePort:
    """Build the document store selected by store.backend."""
    if store_rules.backend == "memory":
        return InMemoryDocumentStore()
    if store_rules.backend == "sqlite":
        return SQLiteDocumentStore(str(data_dir / store_rules.sqlite_path))

    # Firestore pulls in firebase-admin; only import it when selected
    from recap.adapters.auth.firebase import init_firebase
    from recap.adapters.firestore_store import FirestoreDocumentStore

    init_firebase(project_id=store_rules.firestore_project)
    return FirestoreDocumentStore()


@dataclass
class ServiceContext:
    rules: Rules
    store: DocumentStorePort
    recorder_config: RecorderConfig
    aggregator_config: AggregatorConfig
    aggregator: Aggregator
    clock: Any = None

    @classmethod
    def create(
        cls,
        rules: Rules,
        data_dir: Path,
        store: DocumentStorePort | None = None,
        clock: Any = None,
    ) -> ServiceContext:
        store = store if store is not None else create_store(rules.store, data_dir)
        clock = clock or SystemClock()
        aggregator_config = AggregatorConfig.from_rules(rules.aggregation)

        return cls(
            rules=rules,
            store=store,
            recorder_config=RecorderConfig.from_rules(rules.tracking),
            aggregator_config=aggregator_config,
            aggregator=create_aggregator(store, aggregator_config, clock),
            clock=clock,
        )
