"""
End-to-end watch-time flow on the SQLite store.

Several store instances share one database file, as separate processes
or browser tabs would share the backend.
"""

import threading

import pytest

from recap.adapters.auth.static import StaticAuthProvider
from recap.adapters.sqlite_store import SQLiteDocumentStore
from recap.components.aggregator import (
    AllTutorialsInput,
    StudentActivityInput,
    TutorialStatsInput,
    run_all_tutorials,
    run_student_activity,
    run_tutorial_stats,
)
from recap.components.recorder import (
    RecorderConfig,
    TickInput,
    WatchView,
    run_tick,
)
from recap.core.ports.auth import Identity

CONFIG = RecorderConfig(interval_seconds=3600)


@pytest.fixture
def seeded_path(sqlite_path):
    store = SQLiteDocumentStore(sqlite_path)
    store.set_merge(
        "tutorials/t1", {"title": "Les listes", "videoUrl": "https://youtu.be/dQw4w9WgXcQ"}
    )
    store.set_merge(
        "tutorials/t2", {"title": "Les boucles", "videoUrl": "https://youtu.be/aaaaaaaaaaa"}
    )
    return sqlite_path


def tick(store, user_id: str, tutorial_id: str = "t1", clock=None):
    return run_tick(
        TickInput(user_id=user_id, tutorial_id=tutorial_id, user_email=f"{user_id}@ecole.fr"),
        store=store,
        time_port=clock,
        config=CONFIG,
    )


def run_concurrently(workers: list) -> None:
    barrier = threading.Barrier(len(workers))

    def _start(fn):
        barrier.wait()
        fn()

    threads = [threading.Thread(target=_start, args=(fn,)) for fn in workers]
    for t in threads:
        t.start()
    for t in threads:
        t.join()


class TestConcurrentTicks:
    def test_two_tabs_after_five_minutes(self, seeded_path, clock):
        store = SQLiteDocumentStore(seeded_path)
        for _ in range(5):
            assert tick(store, "u1", clock=clock).success

        tabs = [SQLiteDocumentStore(seeded_path), SQLiteDocumentStore(seeded_path)]
        run_concurrently([lambda s=s: tick(s, "u1", clock=clock) for s in tabs])

        session = store.get("users/u1/watchSessions/t1").data
        assert session["totalMinutesWatched"] == 7

        markers = sorted(d.data["minuteMarker"] for d in store.list_collection("tutorials/t1/viewLogs"))
        assert markers == [1, 2, 3, 4, 5, 6, 7]

    def test_many_writers_are_exact(self, seeded_path, clock):
        def writer():
            store = SQLiteDocumentStore(seeded_path)
            for _ in range(10):
                assert tick(store, "u1", clock=clock).success

        run_concurrently([writer for _ in range(4)])

        store = SQLiteDocumentStore(seeded_path)
        assert store.get("users/u1/watchSessions/t1").data["totalMinutesWatched"] == 40
        assert len(store.list_collection("tutorials/t1/viewLogs")) == 40

    def test_separate_pairs_do_not_interfere(self, seeded_path, clock):
        store = SQLiteDocumentStore(seeded_path)
        run_concurrently(
            [
                lambda: tick(SQLiteDocumentStore(seeded_path), "u1", "t1", clock),
                lambda: tick(SQLiteDocumentStore(seeded_path), "u1", "t2", clock),
                lambda: tick(SQLiteDocumentStore(seeded_path), "u2", "t1", clock),
            ]
        )

        assert store.get("users/u1/watchSessions/t1").data["totalMinutesWatched"] == 1
        assert store.get("users/u1/watchSessions/t2").data["totalMinutesWatched"] == 1
        assert store.get("users/u2/watchSessions/t1").data["totalMinutesWatched"] == 1


class TestWatchToReport:
    def test_watch_views_feed_the_ranking(self, seeded_path, clock):
        minutes = {"alice": 30, "bob": 10, "chloe": 50}

        for user_id, count in minutes.items():
            auth = StaticAuthProvider(Identity(id=user_id, email=f"{user_id}@ecole.fr"))
            view = WatchView(
                SQLiteDocumentStore(seeded_path), auth, "t1", config=CONFIG, time_port=clock
            )
            with view:
                for _ in range(count):
                    view.tick_now()
            assert view.minutes_watched == count

        reader = SQLiteDocumentStore(seeded_path)
        output = run_tutorial_stats(TutorialStatsInput(tutorial_id="t1"), store=reader)

        assert output.success
        stats = output.stats
        assert stats.total_viewers == 3
        assert stats.total_minutes == 90
        assert stats.average_minutes == 30
        assert [(r.student.user_id, r.percentage_of_average) for r in stats.students] == [
            ("chloe", 167),
            ("alice", 100),
            ("bob", 33),
        ]

    def test_reopened_view_resumes_count(self, seeded_path, clock):
        auth = StaticAuthProvider(Identity(id="u1"))

        with WatchView(SQLiteDocumentStore(seeded_path), auth, "t1", config=CONFIG, time_port=clock) as view:
            view.tick_now()
            view.tick_now()

        with WatchView(SQLiteDocumentStore(seeded_path), auth, "t1", config=CONFIG, time_port=clock) as view:
            assert view.minutes_watched == 2
            view.tick_now()
            assert view.minutes_watched == 3

    def test_overview_and_student_activity(self, seeded_path, clock):
        store = SQLiteDocumentStore(seeded_path)
        for _ in range(3):
            tick(store, "u1", "t1", clock)
        tick(store, "u1", "t2", clock)
        tick(store, "u2", "t2", clock)

        overview = run_all_tutorials(AllTutorialsInput(), store=store)
        assert [(t.tutorial_id, t.total_viewers, t.total_view_minutes) for t in overview.tutorials] == [
            ("t1", 1, 3),
            ("t2", 2, 2),
        ]

        activity = run_student_activity(StudentActivityInput(user_id="u1"), store=store)
        assert [(r.tutorial_title, r.total_minutes_watched) for r in activity.rows] == [
            ("Les listes", 3),
            ("Les boucles", 1),
        ]
