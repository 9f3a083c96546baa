"""
Counter increment strategies for watch sessions.

AtomicIncrement performs the read and the write of one tick inside a
single store transaction, so concurrent ticks for the same pair (two
tabs, a remounted view) each add exactly one minute.

NaiveIncrement is the legacy two-step read-then-write. Two ticks that
read the same base value both write base + 1 and one minute is lost. It
is kept only to reproduce that hazard in regression tests.

With the materialized summary enabled, each session records in
summarizedMinutes how much of it the summary already holds. A session
that predates the summary joins it on its next tick with all its minutes;
rebuild_summary recounts a whole tutorial at once.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

from pydantic import ValidationError

from recap.core.entities import EngagementSummary, WatchSession
from recap.core.paths import engagement_summary_path, watch_session_path
from recap.core.ports.store import Document

from .models import IncrementResult
from .ports import WatchStorePort

MINUTES_PER_TICK = 1


class IncrementStrategy(Protocol):
    """Adds one tick to the watch session of a (student, tutorial) pair."""

    def increment(
        self,
        store: WatchStorePort,
        *,
        user_id: str,
        tutorial_id: str,
        now: datetime,
        update_summary: bool = False,
    ) -> IncrementResult:
        ...


def load_session(
    doc: Document | None, user_id: str, tutorial_id: str, now: datetime
) -> WatchSession | None:
    """Validated session document (None if absent)."""
    if doc is None:
        return None
    return WatchSession.from_store(user_id, tutorial_id, doc.data, now)


def current_minutes(doc: Document | None, user_id: str, tutorial_id: str, now: datetime) -> int:
    """Validated counter value of a session document (0 if absent)."""
    session = load_session(doc, user_id, tutorial_id, now)
    return session.total_minutes_watched if session is not None else 0


def session_fields(user_id: str, tutorial_id: str, total: int, now: datetime) -> dict[str, Any]:
    return WatchSession(
        user_id=user_id,
        tutorial_id=tutorial_id,
        total_minutes_watched=total,
        last_updated=now,
    ).to_store()


class AtomicIncrement:
    """Transactional read-modify-write."""

    def increment(
        self,
        store: WatchStorePort,
        *,
        user_id: str,
        tutorial_id: str,
        now: datetime,
        update_summary: bool = False,
    ) -> IncrementResult:
        session_path = watch_session_path(user_id, tutorial_id)
        summary_path = engagement_summary_path(tutorial_id)

        def _apply(tx: Any) -> IncrementResult:
            # All reads precede all writes (required by Firestore transactions).
            existing = tx.get(session_path)
            summary_doc = tx.get(summary_path) if update_summary else None

            session = load_session(existing, user_id, tutorial_id, now)
            previous = session.total_minutes_watched if session is not None else 0
            total = previous + MINUTES_PER_TICK
            fields = session_fields(user_id, tutorial_id, total, now)

            if update_summary:
                # A session first counted now brings its earlier minutes with it
                counted = session.summarized_minutes if session is not None else None
                summary = EngagementSummary.from_store(
                    tutorial_id, summary_doc.data if summary_doc else {}
                )
                tx.set_merge(
                    summary_path,
                    EngagementSummary(
                        tutorial_id=tutorial_id,
                        total_view_minutes=summary.total_view_minutes + total - (counted or 0),
                        total_viewers=summary.total_viewers + (1 if counted is None else 0),
                        last_updated=now,
                    ).to_store(),
                )
                fields["summarizedMinutes"] = total

            tx.set_merge(session_path, fields)

            return IncrementResult(previous=previous, total=total, created=existing is None)

        return store.transaction(_apply)


class NaiveIncrement:
    """Legacy read-then-write. Loses updates under concurrent ticks."""

    def increment(
        self,
        store: WatchStorePort,
        *,
        user_id: str,
        tutorial_id: str,
        now: datetime,
        update_summary: bool = False,
    ) -> IncrementResult:
        session_path = watch_session_path(user_id, tutorial_id)
        existing = store.get(session_path)
        previous = current_minutes(existing, user_id, tutorial_id, now)
        total = previous + MINUTES_PER_TICK
        store.set_merge(session_path, session_fields(user_id, tutorial_id, total, now))
        return IncrementResult(previous=previous, total=total, created=existing is None)


def strategy_for(atomic: bool) -> IncrementStrategy:
    return AtomicIncrement() if atomic else NaiveIncrement()


def rebuild_summary(
    store: WatchStorePort,
    tutorial_id: str,
    user_ids: list[str],
    now: datetime,
) -> tuple[EngagementSummary, list[str]]:
    """
    Recount tutorials/{id}/stats/engagement from the watchers' sessions.

    Runs in one transaction with the sessions it reads, so a concurrent
    tick lands either before the recount or on top of it. Returns the new
    summary and the users whose session holds an invalid counter (left
    out of the count).
    """
    summary_path = engagement_summary_path(tutorial_id)

    def _apply(tx: Any) -> tuple[EngagementSummary, list[str]]:
        docs = [(uid, tx.get(watch_session_path(uid, tutorial_id))) for uid in user_ids]

        counted: list[WatchSession] = []
        skipped: list[str] = []
        for uid, doc in docs:
            try:
                session = load_session(doc, uid, tutorial_id, now)
            except ValidationError:
                skipped.append(uid)
                continue
            if session is not None:
                counted.append(session)

        summary = EngagementSummary(
            tutorial_id=tutorial_id,
            total_view_minutes=sum(s.total_minutes_watched for s in counted),
            total_viewers=len(counted),
            last_updated=now,
        )
        for session in counted:
            tx.set_merge(
                watch_session_path(session.user_id, tutorial_id),
                {"summarizedMinutes": session.total_minutes_watched},
            )
        tx.set_merge(summary_path, summary.to_store())
        return summary, skipped

    return store.transaction(_apply)
