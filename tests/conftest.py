from datetime import UTC, datetime
from pathlib import Path

import pytest

from recap.adapters.memory_store import InMemoryDocumentStore
from recap.adapters.sqlite_store import SQLiteDocumentStore
from recap.app_shell.context import ServiceContext
from recap.rules.loader import load_rules

PROJECT_ROOT = Path(__file__).resolve().parent.parent
FIXED_NOW = datetime(2026, 3, 2, 9, 30, 0, tzinfo=UTC)


class FixedClock:
    """TimePort that always returns the same instant."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def now_utc(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def memory_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def sqlite_path(tmp_path) -> str:
    return str(tmp_path / "recap.db")


@pytest.fixture
def sqlite_store(sqlite_path) -> SQLiteDocumentStore:
    return SQLiteDocumentStore(sqlite_path)


@pytest.fixture
def rules():
    """The project's real rules.yaml."""
    rules_path = PROJECT_ROOT / "rules.yaml"
    if not rules_path.exists():
        raise FileNotFoundError(f"Rules not found at {rules_path}")
    return load_rules(rules_path)


@pytest.fixture
def test_ctx(rules, memory_store, clock, tmp_path) -> ServiceContext:
    """ServiceContext on an in-memory store with a fixed clock."""
    return ServiceContext.create(rules, tmp_path, store=memory_store, clock=clock)
