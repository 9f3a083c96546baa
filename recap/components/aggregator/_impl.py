"""
Engagement aggregation over per-student watch sessions.

Key behaviors:
- The population is the users collection; each user's watchSessions
  subcollection is read in parallel (bounded by max_concurrency)
- A student whose sessions cannot be read is skipped and logged
- Sorting is by minutes desc and stable: ties keep users-collection order
- Averages round half up, as Math.round does
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol, TypeVar

from pydantic import ValidationError

from recap.core.entities import EngagementSummary, UserProfile, WatchSession
from recap.core.paths import (
    TUTORIALS,
    USERS,
    engagement_summary_path,
    tutorial_path,
    watch_session_path,
    watch_sessions_collection,
)
from recap.core.ports.store import Document, StoreError

from .models import (
    DEFAULT_CONFIG,
    AggregatorConfig,
    EngagementLevel,
    RankedStudent,
    StudentTutorialRow,
    StudentWatchData,
    TutorialEngagement,
    TutorialStats,
    TutorialSummary,
)
from .ports import EngagementReaderPort, TimePort

logger = logging.getLogger(__name__)

R = TypeVar("R")


# --- Pure Functions ---


def js_round(value: float) -> int:
    """Round half up (2.5 -> 3), unlike Python's round (2.5 -> 2)."""
    return math.floor(value + 0.5)


def average_minutes(total_minutes: int, viewers: int) -> int:
    if viewers <= 0:
        return 0
    return js_round(total_minutes / viewers)


def percentage_of_average(minutes: int, average: int) -> int:
    if average <= 0:
        return 0
    return js_round(minutes / average * 100)


def classify_engagement(pct: int, config: AggregatorConfig = DEFAULT_CONFIG) -> EngagementLevel:
    if pct >= config.very_engaged_pct:
        return "très engagé"
    if pct >= config.engaged_pct:
        return "engagé"
    if pct >= config.moderate_pct:
        return "modéré"
    return "faible"


def sort_by_minutes(students: list[StudentWatchData]) -> list[StudentWatchData]:
    # sorted() is stable with reverse=True
    return sorted(students, key=lambda s: s.total_minutes_watched, reverse=True)


def build_tutorial_stats(
    engagement: TutorialEngagement,
    config: AggregatorConfig = DEFAULT_CONFIG,
) -> TutorialStats:
    """Totals, rounded average, best student and the bucketed ranking."""
    students = sort_by_minutes(engagement.students)
    total_viewers = len(students)
    total_minutes = sum(s.total_minutes_watched for s in students)
    average = average_minutes(total_minutes, total_viewers)

    ranked = []
    for rank, student in enumerate(students, start=1):
        pct = percentage_of_average(student.total_minutes_watched, average)
        ranked.append(
            RankedStudent(
                rank=rank,
                student=student,
                percentage_of_average=pct,
                engagement_level=classify_engagement(pct, config),
            )
        )

    return TutorialStats(
        tutorial_id=engagement.tutorial_id,
        tutorial_title=engagement.tutorial_title,
        total_viewers=total_viewers,
        total_minutes=total_minutes,
        average_minutes=average,
        max_minutes=students[0].total_minutes_watched if students else 0,
        students=ranked,
    )


def summarize_tutorials(
    sessions: list[tuple[WatchSession, str]],
) -> list[TutorialSummary]:
    """
    Group (session, title) pairs by tutorial.

    Returns rows sorted by total view minutes desc; ties keep the order
    in which each tutorial was first seen.
    """
    totals: dict[str, list[Any]] = {}
    for session, title in sessions:
        row = totals.setdefault(session.tutorial_id, [title, 0, 0])
        row[1] += 1
        row[2] += session.total_minutes_watched

    summaries = [
        TutorialSummary(
            tutorial_id=tutorial_id,
            tutorial_title=title,
            total_viewers=viewers,
            total_view_minutes=minutes,
            average_watch_time=average_minutes(minutes, viewers),
        )
        for tutorial_id, (title, viewers, minutes) in totals.items()
    ]
    return sorted(summaries, key=lambda s: s.total_view_minutes, reverse=True)


# --- Aggregators ---


@dataclass(frozen=True)
class EngagementScan:
    """Result of scanning one tutorial's watchers."""

    engagement: TutorialEngagement
    tutorial_found: bool
    skipped_users: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class SummaryScan:
    """Result of scanning every tutorial's watchers."""

    tutorials: list[TutorialSummary]
    skipped_users: list[str] = field(default_factory=list)


class Aggregator(Protocol):
    """Engagement read models. Implementations may raise StoreError."""

    def tutorial_engagement(self, tutorial_id: str) -> EngagementScan:
        ...

    def tutorial_summaries(self) -> SummaryScan:
        ...

    def student_activity(self, user_id: str) -> list[StudentTutorialRow]:
        ...


class FanOutAggregator:
    """
    Scans users/{id}/watchSessions for every user on each call.

    Cost is O(students x sessions) reads per call, nothing is cached.
    """

    def __init__(
        self,
        store: EngagementReaderPort,
        config: AggregatorConfig = DEFAULT_CONFIG,
        time_port: TimePort | None = None,
    ) -> None:
        self._store = store
        self._config = config
        self._time = time_port

    def _now(self) -> datetime:
        return self._time.now_utc() if self._time else datetime.now(UTC)

    # --- Reads ---

    def _users(self) -> list[UserProfile]:
        users = []
        for doc in self._store.list_collection(USERS):
            try:
                users.append(UserProfile.from_store(doc.id, doc.data))
            except ValidationError:
                logger.warning("User %s has a malformed profile", doc.id)
                users.append(UserProfile(uid=doc.id))
        return users

    def _fan_out(
        self,
        users: list[UserProfile],
        fn: Callable[[UserProfile], R],
    ) -> tuple[list[tuple[UserProfile, R]], list[str]]:
        """
        Apply fn to every user in parallel.

        Returns (user, result) pairs in users order and the ids of users
        whose read failed.
        """

        def _guarded(user: UserProfile) -> tuple[UserProfile, R | None, bool]:
            try:
                return user, fn(user), True
            except StoreError as e:
                logger.error("Skipping user %s: could not read watch sessions: %s", user.uid, e)
                return user, None, False

        if not users:
            return [], []
        workers = min(self._config.max_concurrency, len(users))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="aggregate") as pool:
            # map() yields in input order
            outcomes = list(pool.map(_guarded, users))

        results = [(user, result) for user, result, ok in outcomes if ok]
        failed = [user.uid for user, _, ok in outcomes if not ok]
        return results, failed  # type: ignore[return-value]

    def _session(self, doc: Document, user_id: str, tutorial_id: str) -> WatchSession | None:
        try:
            return WatchSession.from_store(user_id, tutorial_id, doc.data, self._now())
        except ValidationError:
            logger.warning("Skipping watch session %s: invalid counter", doc.path)
            return None

    def _titles(self) -> dict[str, str]:
        titles = {}
        for doc in self._store.list_collection(TUTORIALS):
            title = doc.data.get("title")
            if isinstance(title, str) and title:
                titles[doc.id] = title
        return titles

    def _title_for(self, titles: dict[str, str], tutorial_id: str, session_doc: Document | None) -> str:
        if tutorial_id in titles:
            return titles[tutorial_id]
        if session_doc is not None and session_doc.data.get("tutorialTitle"):
            return str(session_doc.data["tutorialTitle"])
        return self._config.default_title

    def _student(self, user: UserProfile, session: WatchSession) -> StudentWatchData:
        return StudentWatchData(
            user_id=user.uid,
            total_minutes_watched=session.total_minutes_watched,
            last_updated=session.last_updated,
            display_name=user.display_name,
            email=user.email,
        )

    # --- Read models ---

    def tutorial_engagement(self, tutorial_id: str) -> EngagementScan:
        tutorial_doc = self._store.get(tutorial_path(tutorial_id))
        users = self._users()

        def _read(user: UserProfile) -> Document | None:
            return self._store.get(watch_session_path(user.uid, tutorial_id))

        results, skipped = self._fan_out(users, _read)

        students = []
        session_doc = None
        for user, doc in results:
            if doc is None:
                continue
            session = self._session(doc, user.uid, tutorial_id)
            if session is None:
                skipped.append(user.uid)
                continue
            session_doc = session_doc or doc
            students.append(self._student(user, session))

        titles = {}
        if tutorial_doc is not None and tutorial_doc.data.get("title"):
            titles[tutorial_id] = str(tutorial_doc.data["title"])
        title = self._title_for(titles, tutorial_id, session_doc)

        return EngagementScan(
            engagement=TutorialEngagement(
                tutorial_id=tutorial_id,
                tutorial_title=title,
                students=sort_by_minutes(students),
            ),
            tutorial_found=tutorial_doc is not None,
            skipped_users=skipped,
        )

    def tutorial_summaries(self) -> SummaryScan:
        users = self._users()
        titles = self._titles()

        def _read(user: UserProfile) -> list[Document]:
            return self._store.list_collection(watch_sessions_collection(user.uid))

        results, skipped = self._fan_out(users, _read)

        sessions: list[tuple[WatchSession, str]] = []
        for user, docs in results:
            for doc in docs:
                # The session document id is the tutorial id
                session = self._session(doc, user.uid, doc.id)
                if session is not None:
                    sessions.append((session, self._title_for(titles, doc.id, doc)))

        return SummaryScan(tutorials=summarize_tutorials(sessions), skipped_users=skipped)

    def student_activity(self, user_id: str) -> list[StudentTutorialRow]:
        docs = self._store.list_collection(watch_sessions_collection(user_id))
        titles = self._titles() if docs else {}

        rows = []
        for doc in docs:
            session = self._session(doc, user_id, doc.id)
            if session is None:
                continue
            rows.append(
                StudentTutorialRow(
                    tutorial_id=doc.id,
                    tutorial_title=self._title_for(titles, doc.id, doc),
                    total_minutes_watched=session.total_minutes_watched,
                    last_updated=session.last_updated,
                )
            )
        return sorted(rows, key=lambda r: r.total_minutes_watched, reverse=True)


class SummaryAggregator:
    """
    Reads the materialized tutorials/{id}/stats/engagement documents for
    the overview instead of scanning every student.

    Only valid when ticks maintain the summaries. Tutorials deleted after
    being watched drop out of the overview. Per-student views delegate
    to the fallback aggregator.
    """

    def __init__(
        self,
        store: EngagementReaderPort,
        fallback: Aggregator,
        config: AggregatorConfig = DEFAULT_CONFIG,
    ) -> None:
        self._store = store
        self._fallback = fallback
        self._config = config

    def tutorial_engagement(self, tutorial_id: str) -> EngagementScan:
        return self._fallback.tutorial_engagement(tutorial_id)

    def student_activity(self, user_id: str) -> list[StudentTutorialRow]:
        return self._fallback.student_activity(user_id)

    def tutorial_summaries(self) -> SummaryScan:
        summaries = []
        for doc in self._store.list_collection(TUTORIALS):
            summary_doc = self._store.get(engagement_summary_path(doc.id))
            if summary_doc is None:
                continue
            try:
                summary = EngagementSummary.from_store(doc.id, summary_doc.data)
            except ValidationError:
                logger.warning("Skipping engagement summary of tutorial %s: invalid counters", doc.id)
                continue
            if summary.total_viewers == 0:
                continue
            summaries.append(
                TutorialSummary(
                    tutorial_id=doc.id,
                    tutorial_title=doc.data.get("title") or self._config.default_title,
                    total_viewers=summary.total_viewers,
                    total_view_minutes=summary.total_view_minutes,
                    average_watch_time=average_minutes(
                        summary.total_view_minutes, summary.total_viewers
                    ),
                )
            )
        return SummaryScan(
            tutorials=sorted(summaries, key=lambda s: s.total_view_minutes, reverse=True)
        )


def create_aggregator(
    store: EngagementReaderPort,
    config: AggregatorConfig = DEFAULT_CONFIG,
    time_port: TimePort | None = None,
) -> Aggregator:
    """Create the aggregator selected by config.use_summary."""
    fan_out = FanOutAggregator(store, config, time_port)
    if config.use_summary:
        return SummaryAggregator(store, fan_out, config)
    return fan_out
