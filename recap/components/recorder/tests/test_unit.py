"""
Unit tests for Recorder component.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import pytest

from recap.adapters.auth.static import StaticAuthProvider
from recap.adapters.memory_store import InMemoryDocumentStore
from recap.components.recorder import (
    AtomicIncrement,
    GetSessionInput,
    NaiveIncrement,
    RebuildSummariesInput,
    RecorderConfig,
    TickInput,
    WatchView,
    WatchViewError,
    run,
    run_get_session,
    run_rebuild_summaries,
    run_tick,
    strategy_for,
)
from recap.core.ports.auth import Identity
from recap.core.ports.store import Document, StoreUnavailableError

# --- Test Fixtures ---


class FakeTimePort:
    """Fake time port for testing."""

    def __init__(self, fixed_time: datetime | None = None):
        self._now = fixed_time or datetime(2026, 3, 2, 9, 30, 0, tzinfo=UTC)

    def now_utc(self) -> datetime:
        return self._now


class FlakyStore(InMemoryDocumentStore):
    """In-memory store whose writes can be switched off per operation."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_transactions = False
        self.fail_appends = False
        self.fail_reads = False

    def get(self, path: str) -> Document | None:
        if self.fail_reads:
            raise StoreUnavailableError("offline")
        return super().get(path)

    def transaction(self, fn: Callable[[Any], Any]) -> Any:
        if self.fail_transactions:
            raise StoreUnavailableError("deadline exceeded")
        return super().transaction(fn)

    def add_to_collection(self, collection_path: str, fields: dict[str, Any]) -> str:
        if self.fail_appends:
            raise StoreUnavailableError("offline")
        return super().add_to_collection(collection_path, fields)


@pytest.fixture
def store() -> FlakyStore:
    return FlakyStore()


@pytest.fixture
def clock() -> FakeTimePort:
    return FakeTimePort()


def tick(store, clock, user_id="stu-1", tutorial_id="tut-1", **kwargs):
    return run_tick(
        TickInput(user_id=user_id, tutorial_id=tutorial_id, user_email=f"{user_id}@school.fr"),
        store=store,
        time_port=clock,
        **kwargs,
    )


def add_tutorial(store, tutorial_id="tut-1"):
    store.set_merge(
        f"tutorials/{tutorial_id}",
        {"title": "Variables", "videoUrl": "https://youtu.be/dQw4w9WgXcQ"},
    )


# --- Tick ---


class TestTick:
    def test_first_tick_creates_session(self, store, clock):
        result = tick(store, clock)

        assert result.success is True
        assert result.total_minutes_watched == 1
        assert result.previous_minutes == 0

        doc = store.get("users/stu-1/watchSessions/tut-1")
        assert doc.data == {
            "userId": "stu-1",
            "tutorialId": "tut-1",
            "totalMinutesWatched": 1,
            "lastUpdated": clock.now_utc(),
        }

    def test_n_ticks_add_n(self, store, clock):
        for _ in range(5):
            result = tick(store, clock)

        assert result.total_minutes_watched == 5
        assert store.get("users/stu-1/watchSessions/tut-1").data["totalMinutesWatched"] == 5

    def test_existing_counter_is_incremented(self, store, clock):
        store.set_merge("users/stu-1/watchSessions/tut-1", {"totalMinutesWatched": 41})

        result = tick(store, clock)

        assert result.previous_minutes == 41
        assert result.total_minutes_watched == 42

    def test_merge_preserves_other_fields(self, store, clock):
        store.set_merge(
            "users/stu-1/watchSessions/tut-1",
            {"totalMinutesWatched": 3, "tutorialTitle": "Variables"},
        )

        tick(store, clock)

        data = store.get("users/stu-1/watchSessions/tut-1").data
        assert data["tutorialTitle"] == "Variables"
        assert data["totalMinutesWatched"] == 4

    def test_view_log_appended_with_minute_marker(self, store, clock):
        tick(store, clock)
        result = tick(store, clock)

        logs = store.list_collection("tutorials/tut-1/viewLogs")
        assert len(logs) == 2
        assert sorted(d.data["minuteMarker"] for d in logs) == [1, 2]
        assert result.view_log_id in {d.id for d in logs}
        entry = next(d for d in logs if d.id == result.view_log_id)
        assert entry.data == {
            "userId": "stu-1",
            "userEmail": "stu-1@school.fr",
            "timestamp": clock.now_utc(),
            "minuteMarker": 2,
        }

    def test_user_profile_written(self, store, clock):
        run_tick(
            TickInput(user_id="stu-1", tutorial_id="tut-1", user_email="a@b.fr", display_name="Awa"),
            store=store,
            time_port=clock,
        )

        profile = store.get("users/stu-1").data
        assert profile == {
            "uid": "stu-1",
            "email": "a@b.fr",
            "displayName": "Awa",
            "lastUpdated": clock.now_utc(),
        }

    def test_user_profile_can_be_disabled(self, store, clock):
        tick(store, clock, config=RecorderConfig(write_user_profile=False))

        assert store.get("users/stu-1") is None

    def test_missing_user_is_unauthenticated(self, store, clock):
        result = tick(store, clock, user_id="")

        assert result.success is False
        assert result.errors[0].code == "unauthenticated"
        assert store.list_collection("tutorials/tut-1/viewLogs") == []

    def test_missing_tutorial_id(self, store, clock):
        result = tick(store, clock, tutorial_id="")

        assert result.errors[0].code == "invalid_input"

    def test_store_failure_reported_not_raised(self, store, clock):
        tick(store, clock)
        store.fail_transactions = True

        result = tick(store, clock)

        assert result.success is False
        assert result.total_minutes_watched is None
        assert result.errors[0].code == "save_failed"
        assert len(store.list_collection("tutorials/tut-1/viewLogs")) == 1

    def test_failed_tick_leaves_counter_untouched(self, store, clock):
        tick(store, clock)
        store.fail_transactions = True
        tick(store, clock)
        store.fail_transactions = False

        result = tick(store, clock)

        assert result.total_minutes_watched == 2

    def test_view_log_failure_keeps_count(self, store, clock):
        store.fail_appends = True

        result = tick(store, clock)

        assert result.success is True
        assert result.total_minutes_watched == 1
        assert result.view_log_id is None
        assert result.errors[0].code == "view_log_failed"

    @pytest.mark.parametrize("value", [-4, "41", True, 2.5])
    def test_corrupt_counter(self, store, clock, value):
        store.set_merge("users/stu-1/watchSessions/tut-1", {"totalMinutesWatched": value})

        result = tick(store, clock)

        assert result.success is False
        assert result.errors[0].code == "corrupt_session"
        assert store.get("users/stu-1/watchSessions/tut-1").data["totalMinutesWatched"] == value

    def test_materialized_summary(self, store, clock):
        config = RecorderConfig(materialize_summary=True)
        tick(store, clock, config=config)
        tick(store, clock, config=config)
        tick(store, clock, user_id="stu-2", config=config)

        summary = store.get("tutorials/tut-1/stats/engagement").data
        assert summary["totalViewMinutes"] == 3
        assert summary["totalViewers"] == 2

    def test_summary_picks_up_existing_session(self, store, clock):
        for _ in range(10):
            tick(store, clock)

        tick(store, clock, config=RecorderConfig(materialize_summary=True))
        tick(store, clock, config=RecorderConfig(materialize_summary=True))

        summary = store.get("tutorials/tut-1/stats/engagement").data
        assert summary["totalViewMinutes"] == 12
        assert summary["totalViewers"] == 1
        session = store.get("users/stu-1/watchSessions/tut-1").data
        assert session["summarizedMinutes"] == 12

    def test_session_unmarked_without_summary(self, store, clock):
        tick(store, clock)

        assert "summarizedMinutes" not in store.get("users/stu-1/watchSessions/tut-1").data
        assert store.get("tutorials/tut-1/stats/engagement") is None


class TestIncrementStrategies:
    def test_strategy_for(self):
        assert isinstance(strategy_for(True), AtomicIncrement)
        assert isinstance(strategy_for(False), NaiveIncrement)

    def test_naive_is_correct_without_contention(self, store, clock):
        for _ in range(3):
            result = tick(store, clock, strategy=NaiveIncrement())

        assert result.total_minutes_watched == 3

    def test_atomic_under_threads(self, store, clock):
        threads = [
            threading.Thread(target=lambda: [tick(store, clock) for _ in range(25)])
            for _ in range(4)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert store.get("users/stu-1/watchSessions/tut-1").data["totalMinutesWatched"] == 100


# --- Session read ---


class TestGetSession:
    def test_absent_session(self, store, clock):
        result = run_get_session(GetSessionInput(user_id="stu-1", tutorial_id="tut-1"), store=store)

        assert result.success is True
        assert result.session is None

    def test_session_defaults(self, store, clock):
        store.set_merge("users/stu-1/watchSessions/tut-1", {"totalMinutesWatched": 7})

        result = run_get_session(
            GetSessionInput(user_id="stu-1", tutorial_id="tut-1"), store=store, time_port=clock
        )

        assert result.session.total_minutes_watched == 7
        assert result.session.last_updated == clock.now_utc()
        assert result.session.user_id == "stu-1"
        assert result.session.tutorial_id == "tut-1"

    def test_load_failed(self, store):
        store.fail_reads = True

        result = run_get_session(GetSessionInput(user_id="stu-1", tutorial_id="tut-1"), store=store)

        assert result.errors[0].code == "load_failed"

    def test_run_dispatch(self, store, clock):
        assert run(TickInput(user_id="stu-1", tutorial_id="tut-1"), store=store).success
        out = run(GetSessionInput(user_id="stu-1", tutorial_id="tut-1"), store=store)
        assert out.session.total_minutes_watched == 1

        with pytest.raises(ValueError):
            run(object(), store=store)  # type: ignore[arg-type]


# --- Watch view ---


class TestWatchView:
    def make_view(self, store, auth, **kwargs):
        return WatchView(store, auth, "tut-1", config=RecorderConfig(interval_seconds=3600), **kwargs)

    def test_refuses_without_identity(self, store):
        add_tutorial(store)
        view = self.make_view(store, StaticAuthProvider())

        with pytest.raises(WatchViewError) as exc:
            view.start()

        assert exc.value.code == "unauthenticated"
        assert view.is_running is False

    def test_refuses_missing_tutorial(self, store):
        view = self.make_view(store, StaticAuthProvider(Identity(id="stu-1")))

        with pytest.raises(WatchViewError) as exc:
            view.start()

        assert exc.value.code == "not_found"
        assert store.get("users/stu-1/watchSessions/tut-1") is None

    def test_refuses_invalid_video(self, store):
        store.set_merge("tutorials/tut-1", {"videoUrl": "not a link"})
        view = self.make_view(store, StaticAuthProvider(Identity(id="stu-1")))

        with pytest.raises(WatchViewError) as exc:
            view.start()

        assert exc.value.code == "invalid_video"

    def test_tick_before_start_is_noop(self, store):
        add_tutorial(store)
        view = self.make_view(store, StaticAuthProvider(Identity(id="stu-1")))

        assert view.tick_now() is None
        assert store.get("users/stu-1/watchSessions/tut-1") is None

    def test_ticks_and_counts(self, store, clock):
        add_tutorial(store)
        store.set_merge("users/stu-1/watchSessions/tut-1", {"totalMinutesWatched": 10})
        auth = StaticAuthProvider(Identity(id="stu-1", email="stu-1@school.fr"))

        with self.make_view(store, auth, time_port=clock) as view:
            assert view.minutes_watched == 10
            view.tick_now()
            view.tick_now()
            assert view.minutes_watched == 12

        assert view.is_running is False

    def test_failed_tick_does_not_advance_display(self, store):
        add_tutorial(store)
        auth = StaticAuthProvider(Identity(id="stu-1"))

        with self.make_view(store, auth) as view:
            view.tick_now()
            store.fail_transactions = True
            result = view.tick_now()

            assert result.success is False
            assert view.minutes_watched == 1

    def test_stops_on_sign_out(self, store):
        add_tutorial(store)
        auth = StaticAuthProvider(Identity(id="stu-1"))

        with self.make_view(store, auth) as view:
            view.tick_now()
            auth.sign_out()

            assert view.tick_now() is None
            assert view.is_running is False

        assert store.get("users/stu-1/watchSessions/tut-1").data["totalMinutesWatched"] == 1

    def test_stops_on_identity_change(self, store):
        add_tutorial(store)
        auth = StaticAuthProvider(Identity(id="stu-1"))

        with self.make_view(store, auth) as view:
            auth.sign_in(Identity(id="stu-2"))
            assert view.tick_now() is None

        assert store.get("users/stu-2/watchSessions/tut-1") is None

    def test_exit_on_exception_stops_timer(self, store):
        add_tutorial(store)
        auth = StaticAuthProvider(Identity(id="stu-1"))
        view = self.make_view(store, auth)

        with pytest.raises(RuntimeError):
            with view:
                raise RuntimeError("navigated away")

        assert view.is_running is False
        assert view.tick_now() is None

    def test_timer_fires(self, store):
        add_tutorial(store)
        auth = StaticAuthProvider(Identity(id="stu-1"))
        fired = threading.Event()
        results = []

        def on_tick(result):
            results.append(result)
            if len(results) >= 2:
                fired.set()

        view = WatchView(
            store, auth, "tut-1", config=RecorderConfig(interval_seconds=0.01), on_tick=on_tick
        )
        with view:
            assert fired.wait(timeout=5.0)

        total = store.get("users/stu-1/watchSessions/tut-1").data["totalMinutesWatched"]
        assert total == len(results)
        assert total >= 2


# --- Summary rebuild ---


class TestRebuildSummaries:
    def test_recounts_from_sessions(self, store, clock):
        add_tutorial(store, "tut-1")
        add_tutorial(store, "tut-2")
        for _ in range(3):
            tick(store, clock)
        tick(store, clock, user_id="stu-2")
        tick(store, clock, user_id="stu-2", tutorial_id="tut-2")

        output = run_rebuild_summaries(RebuildSummariesInput(), store=store, time_port=clock)

        assert output.success is True
        counts = {s.tutorial_id: (s.total_viewers, s.total_view_minutes) for s in output.summaries}
        assert counts == {"tut-1": (2, 4), "tut-2": (1, 1)}
        assert store.get("tutorials/tut-1/stats/engagement").data["totalViewMinutes"] == 4
        assert store.get("users/stu-1/watchSessions/tut-1").data["summarizedMinutes"] == 3

    def test_ticks_after_rebuild_are_not_double_counted(self, store, clock):
        add_tutorial(store)
        tick(store, clock)
        tick(store, clock)
        run_rebuild_summaries(RebuildSummariesInput(tutorial_id="tut-1"), store=store, time_port=clock)

        tick(store, clock, config=RecorderConfig(materialize_summary=True))

        summary = store.get("tutorials/tut-1/stats/engagement").data
        assert summary["totalViewMinutes"] == 3
        assert summary["totalViewers"] == 1

    def test_invalid_counter_is_skipped(self, store, clock):
        add_tutorial(store)
        tick(store, clock)
        store.set_merge("users/stu-2", {"email": "stu-2@school.fr"})
        store.set_merge("users/stu-2/watchSessions/tut-1", {"totalMinutesWatched": "9"})

        output = run_rebuild_summaries(RebuildSummariesInput(), store=store, time_port=clock)

        assert output.skipped_users == ["stu-2"]
        assert output.summaries[0].total_viewers == 1

    def test_invalid_tutorial_id(self, store):
        output = run_rebuild_summaries(RebuildSummariesInput(tutorial_id="a/b"), store=store)

        assert output.errors[0].code == "invalid_input"

    def test_store_failure(self, store, clock):
        add_tutorial(store)
        tick(store, clock)
        store.fail_transactions = True

        output = run_rebuild_summaries(RebuildSummariesInput(), store=store, time_port=clock)

        assert output.success is False
        assert output.errors[0].code == "save_failed"

    def test_run_dispatch(self, store):
        assert run(RebuildSummariesInput(), store=store).summaries == []
