"""
Recorder component - Watch-time accrual.

Each tick adds exactly one minute to the (student, tutorial) watch
session and appends an immutable view-log entry carrying the new total.

Invariants:
- totalMinutesWatched never decreases
- N successful ticks add exactly N, also under concurrent writers
- Only the counter write affects the count; view-log writes are observational
- Store errors are logged and returned, never raised
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from pydantic import ValidationError

from recap.core.entities import UserProfile, ViewLogEntry, WatchSession
from recap.core.paths import (
    TUTORIALS,
    USERS,
    user_path,
    view_logs_collection,
    watch_session_path,
)
from recap.core.ports.store import StoreError

from ._increment import IncrementStrategy, rebuild_summary, strategy_for
from .models import (
    DEFAULT_CONFIG,
    GetSessionInput,
    RebuildSummariesInput,
    RebuildSummariesOutput,
    RecorderConfig,
    RecorderError,
    SessionOutput,
    TickInput,
    TickOutput,
)
from .ports import TimePort, WatchStorePort

logger = logging.getLogger(__name__)


def _now(time_port: TimePort | None) -> datetime:
    return time_port.now_utc() if time_port is not None else datetime.now(UTC)


def _valid_id(value: str | None) -> bool:
    return bool(value) and "/" not in str(value)


def validate_tick_input(inp: TickInput) -> list[RecorderError]:
    errors: list[RecorderError] = []
    if not _valid_id(inp.user_id):
        errors.append(RecorderError(code="unauthenticated", message="No signed-in user"))
    if not _valid_id(inp.tutorial_id):
        errors.append(RecorderError(code="invalid_input", message="Tutorial id is missing"))
    return errors


# --- Component Entry Points ---


def run_tick(
    inp: TickInput,
    *,
    store: WatchStorePort,
    time_port: TimePort | None = None,
    config: RecorderConfig = DEFAULT_CONFIG,
    strategy: IncrementStrategy | None = None,
) -> TickOutput:
    """
    Record one tick.

    Order of writes: user profile (merge), counter (atomic increment),
    view-log entry (append). A failure before the counter write leaves
    the counter untouched; the caller retries on its next tick.

    Args:
        inp: The pair being watched and the watcher's contact details
        store: Document store
        time_port: Optional time port
        config: Recorder configuration
        strategy: Increment strategy (defaults from config.atomic_increment)

    Returns:
        TickOutput with the new total
    """
    errors = validate_tick_input(inp)
    if errors:
        return TickOutput(total_minutes_watched=None, errors=errors, success=False)

    now = _now(time_port)
    strategy = strategy or strategy_for(config.atomic_increment)

    try:
        if config.write_user_profile:
            store.set_merge(
                user_path(inp.user_id),
                UserProfile(
                    uid=inp.user_id,
                    email=inp.user_email,
                    display_name=inp.display_name,
                    last_updated=now,
                ).to_store(),
            )

        result = strategy.increment(
            store,
            user_id=inp.user_id,
            tutorial_id=inp.tutorial_id,
            now=now,
            update_summary=config.materialize_summary,
        )
    except ValidationError:
        logger.error(
            "Watch session %s holds an invalid counter",
            watch_session_path(inp.user_id, inp.tutorial_id),
        )
        return TickOutput(
            total_minutes_watched=None,
            errors=[RecorderError(code="corrupt_session", message="Could not save watch time")],
            success=False,
        )
    except StoreError as e:
        logger.error(
            "Failed to record watch time for user %s on tutorial %s: %s",
            inp.user_id,
            inp.tutorial_id,
            e,
        )
        return TickOutput(
            total_minutes_watched=None,
            errors=[RecorderError(code="save_failed", message="Could not save watch time")],
            success=False,
        )

    logger.info(
        "Saved watch time for user %s: %d minutes (previous: %d)",
        inp.user_id,
        result.total,
        result.previous,
    )

    entry = ViewLogEntry(
        user_id=inp.user_id,
        user_email=inp.user_email,
        timestamp=now,
        minute_marker=result.total,
    )
    try:
        view_log_id = store.add_to_collection(view_logs_collection(inp.tutorial_id), entry.to_store())
    except StoreError as e:
        logger.warning("Failed to append view log for tutorial %s: %s", inp.tutorial_id, e)
        return TickOutput(
            total_minutes_watched=result.total,
            previous_minutes=result.previous,
            errors=[RecorderError(code="view_log_failed", message="View log not saved")],
            success=True,
        )

    return TickOutput(
        total_minutes_watched=result.total,
        previous_minutes=result.previous,
        view_log_id=view_log_id,
    )


def run_get_session(
    inp: GetSessionInput,
    *,
    store: WatchStorePort,
    time_port: TimePort | None = None,
) -> SessionOutput:
    """
    Read one watch session.

    Returns session=None (success) when the pair has never ticked.
    """
    if not _valid_id(inp.user_id) or not _valid_id(inp.tutorial_id):
        return SessionOutput(
            session=None,
            errors=[RecorderError(code="invalid_input", message="User and tutorial ids are required")],
            success=False,
        )

    try:
        doc = store.get(watch_session_path(inp.user_id, inp.tutorial_id))
    except StoreError:
        logger.exception("Failed to load watch session for user %s", inp.user_id)
        return SessionOutput(
            session=None,
            errors=[RecorderError(code="load_failed", message="Could not load watch time")],
            success=False,
        )

    if doc is None:
        return SessionOutput(session=None)

    try:
        session = WatchSession.from_store(inp.user_id, inp.tutorial_id, doc.data, _now(time_port))
    except ValidationError:
        logger.error("Watch session %s holds an invalid counter", doc.path)
        return SessionOutput(
            session=None,
            errors=[RecorderError(code="corrupt_session", message="Could not load watch time")],
            success=False,
        )

    return SessionOutput(session=session)


def run_rebuild_summaries(
    inp: RebuildSummariesInput,
    *,
    store: WatchStorePort,
    time_port: TimePort | None = None,
) -> RebuildSummariesOutput:
    """
    Recount tutorials/{id}/stats/engagement from the watch sessions.

    Run once when turning on the materialized summary over existing
    sessions; afterwards ticks keep the summaries current.
    """
    if inp.tutorial_id is not None and not _valid_id(inp.tutorial_id):
        return RebuildSummariesOutput(
            errors=[RecorderError(code="invalid_input", message="Tutorial id is missing")],
            success=False,
        )

    now = _now(time_port)
    summaries = []
    skipped: list[str] = []
    try:
        user_ids = [doc.id for doc in store.list_collection(USERS)]
        if inp.tutorial_id is not None:
            tutorial_ids = [inp.tutorial_id]
        else:
            tutorial_ids = [doc.id for doc in store.list_collection(TUTORIALS)]

        for tutorial_id in tutorial_ids:
            summary, bad = rebuild_summary(store, tutorial_id, user_ids, now)
            summaries.append(summary)
            skipped.extend(uid for uid in bad if uid not in skipped)
    except StoreError as e:
        logger.error("Failed to rebuild engagement summaries: %s", e)
        return RebuildSummariesOutput(
            summaries=summaries,
            skipped_users=skipped,
            errors=[RecorderError(code="save_failed", message="Could not rebuild summaries")],
            success=False,
        )

    logger.info("Rebuilt %d engagement summaries", len(summaries))
    return RebuildSummariesOutput(summaries=summaries, skipped_users=skipped)


def run(
    inp: TickInput | GetSessionInput | RebuildSummariesInput,
    *,
    store: WatchStorePort,
    time_port: TimePort | None = None,
    config: RecorderConfig = DEFAULT_CONFIG,
) -> TickOutput | SessionOutput | RebuildSummariesOutput:
    """
    Main entry point for the recorder component.

    Dispatches to appropriate handler based on input type.
    """
    if isinstance(inp, TickInput):
        return run_tick(inp, store=store, time_port=time_port, config=config)
    elif isinstance(inp, GetSessionInput):
        return run_get_session(inp, store=store, time_port=time_port)
    elif isinstance(inp, RebuildSummariesInput):
        return run_rebuild_summaries(inp, store=store, time_port=time_port)
    else:
        raise ValueError(f"Unknown input type: {type(inp)}")
