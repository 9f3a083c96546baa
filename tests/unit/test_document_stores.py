"""
Contract tests for the in-process document stores.

Every test runs against both the in-memory and the SQLite adapter.
"""

from datetime import UTC, datetime

import pytest

from recap.adapters.memory_store import InMemoryDocumentStore
from recap.adapters.sqlite_store import SQLiteDocumentStore, dumps, loads
from recap.core.ports.store import Query

NOW = datetime(2026, 3, 2, 9, 30, tzinfo=UTC)


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryDocumentStore()
    return SQLiteDocumentStore(str(tmp_path / "docs.db"))


class TestCrud:
    def test_get_missing(self, store):
        assert store.get("users/u1") is None

    def test_set_merge_creates_and_preserves(self, store):
        store.set_merge("users/u1", {"email": "a@b.fr", "prefs": {"lang": "fr"}})
        store.set_merge("users/u1", {"displayName": "Awa", "prefs": {"theme": "dark"}})

        doc = store.get("users/u1")
        assert doc.id == "u1"
        assert doc.path == "users/u1"
        assert doc.data == {
            "email": "a@b.fr",
            "displayName": "Awa",
            "prefs": {"lang": "fr", "theme": "dark"},
        }

    def test_datetimes_round_trip(self, store):
        store.set_merge("users/u1", {"lastUpdated": NOW})

        assert store.get("users/u1").data["lastUpdated"] == NOW

    def test_add_to_collection(self, store):
        doc_id = store.add_to_collection("tutorials/t1/viewLogs", {"minuteMarker": 1})

        assert len(doc_id) == 20
        assert store.get(f"tutorials/t1/viewLogs/{doc_id}").data == {"minuteMarker": 1}

    def test_add_to_document_path_rejected(self, store):
        with pytest.raises(ValueError):
            store.add_to_collection("tutorials/t1", {"x": 1})

    def test_list_collection_is_shallow_and_ordered(self, store):
        store.set_merge("users/b", {"n": 2})
        store.set_merge("users/a", {"n": 1})
        store.set_merge("users/a/watchSessions/t1", {"totalMinutesWatched": 3})

        docs = store.list_collection("users")

        assert [d.id for d in docs] == ["a", "b"]
        assert [d.id for d in store.list_collection("users/a/watchSessions")] == ["t1"]

    def test_delete(self, store):
        store.set_merge("tutorials/t1", {"title": "x"})
        store.delete("tutorials/t1")

        assert store.get("tutorials/t1") is None

    def test_delete_keeps_subcollections(self, store):
        store.set_merge("tutorials/t1", {"title": "x"})
        store.add_to_collection("tutorials/t1/viewLogs", {"minuteMarker": 1})
        store.delete("tutorials/t1")

        assert len(store.list_collection("tutorials/t1/viewLogs")) == 1


class TestTransaction:
    def test_read_modify_write(self, store):
        store.set_merge("counters/c", {"n": 1})

        def bump(tx):
            doc = tx.get("counters/c")
            tx.set_merge("counters/c", {"n": doc.data["n"] + 1})
            return doc.data["n"] + 1

        assert store.transaction(bump) == 2
        assert store.get("counters/c").data["n"] == 2

    def test_reads_see_own_writes(self, store):
        def body(tx):
            tx.set_merge("counters/c", {"n": 5})
            return tx.get("counters/c").data["n"]

        assert store.transaction(body) == 5

    def test_rolls_back_on_error(self, store):
        store.set_merge("counters/c", {"n": 1})

        def body(tx):
            tx.set_merge("counters/c", {"n": 99})
            raise RuntimeError("abort")

        with pytest.raises(RuntimeError):
            store.transaction(body)

        assert store.get("counters/c").data["n"] == 1


class TestSubscribe:
    def test_initial_snapshot_and_updates(self, store):
        store.add_to_collection("users/u1/notifications", {"isRead": False, "createdAt": NOW})
        snapshots = []

        sub = store.subscribe(
            Query(collection="users/u1/notifications", where_field="isRead", where_value=False),
            snapshots.append,
        )
        store.add_to_collection("users/u1/notifications", {"isRead": True, "createdAt": NOW})
        store.add_to_collection("users/u1/notifications", {"isRead": False, "createdAt": NOW})

        assert [len(s) for s in snapshots] == [1, 1, 2]

        sub.unsubscribe()
        store.add_to_collection("users/u1/notifications", {"isRead": False})
        assert len(snapshots) == 3

    def test_ordered_query(self, store):
        store.set_merge("users/u1/notifications/a", {"createdAt": datetime(2026, 1, 1, tzinfo=UTC)})
        store.set_merge("users/u1/notifications/b", {"createdAt": datetime(2026, 2, 1, tzinfo=UTC)})
        snapshots = []

        store.subscribe(
            Query(collection="users/u1/notifications", order_by="createdAt", descending=True, limit=1),
            snapshots.append,
        )

        assert [d.id for d in snapshots[0]] == ["b"]

    def test_failing_listener_does_not_break_writes(self, store):
        def boom(_):
            raise RuntimeError("listener bug")

        store.subscribe(Query(collection="users"), boom)
        store.set_merge("users/u1", {"x": 1})

        assert store.get("users/u1").data == {"x": 1}


class TestSQLiteEncoding:
    def test_dumps_loads(self):
        raw = dumps({"when": NOW, "nested": {"at": NOW}, "n": 3})

        assert '"$ts"' in raw
        assert loads(raw) == {"when": NOW, "nested": {"at": NOW}, "n": 3}

    def test_shared_file_between_instances(self, tmp_path):
        path = str(tmp_path / "shared.db")
        SQLiteDocumentStore(path).set_merge("users/u1", {"x": 1})

        assert SQLiteDocumentStore(path).get("users/u1").data == {"x": 1}


class TestSQLiteRollback:
    def test_error_after_engine_rollback_is_preserved(self, tmp_path):
        store = SQLiteDocumentStore(str(tmp_path / "docs.db"))
        store.set_merge("counters/c", {"n": 1})

        def body(tx):
            tx.set_merge("counters/c", {"n": 2})
            # What SQLite does on its own after SQLITE_FULL or an I/O error
            tx._conn.execute("ROLLBACK")
            raise RuntimeError("database or disk is full")

        with pytest.raises(RuntimeError, match="disk is full"):
            store.transaction(body)

        assert store.get("counters/c").data == {"n": 1}
        store.set_merge("counters/c", {"n": 3})
        assert store.get("counters/c").data == {"n": 3}
