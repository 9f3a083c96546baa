"""
Recorder component input/output models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from recap.core.entities import EngagementSummary, WatchSession
from recap.rules.models import TrackingRules

RecorderErrorCode = Literal[
    "invalid_input",
    "unauthenticated",
    "not_found",
    "invalid_video",
    "load_failed",
    "save_failed",
    "corrupt_session",
    "view_log_failed",
]


# --- Configuration ---


@dataclass(frozen=True)
class RecorderConfig:
    """Recorder configuration from rules."""

    interval_seconds: float = 60.0

    # Transactional read-modify-write; False selects the legacy
    # read-then-write path, which loses updates under concurrency.
    atomic_increment: bool = True

    # Refresh users/{id} so population scans find every watcher
    write_user_profile: bool = True

    # Maintain tutorials/{id}/stats/engagement in the same transaction
    materialize_summary: bool = False

    @classmethod
    def from_rules(cls, tracking: TrackingRules) -> RecorderConfig:
        return cls(
            interval_seconds=tracking.interval_seconds,
            atomic_increment=tracking.atomic_increment,
            write_user_profile=tracking.write_user_profile,
            materialize_summary=tracking.materialize_summary,
        )


DEFAULT_CONFIG = RecorderConfig()


# --- Errors ---


@dataclass(frozen=True)
class RecorderError:
    """Recorder operation error."""

    code: RecorderErrorCode
    message: str


# --- Input Models ---


@dataclass(frozen=True)
class TickInput:
    """One genuine watch-time sample for a (student, tutorial) pair."""

    user_id: str
    tutorial_id: str
    user_email: str | None = None
    display_name: str | None = None


@dataclass(frozen=True)
class GetSessionInput:
    """Input for reading a single watch session."""

    user_id: str
    tutorial_id: str


@dataclass(frozen=True)
class RebuildSummariesInput:
    """Recount materialized summaries (one tutorial, or every tutorial if None)."""

    tutorial_id: str | None = None


# --- Output Models ---


@dataclass(frozen=True)
class IncrementResult:
    """Counter values observed by one increment."""

    previous: int
    total: int
    created: bool


@dataclass(frozen=True)
class TickOutput:
    """
    Output of a tick.

    total_minutes_watched is None when the counter write failed. A
    failed view-log append after a successful counter write is reported
    as an error but leaves success=True: the counter is authoritative.
    """

    total_minutes_watched: int | None
    previous_minutes: int | None = None
    view_log_id: str | None = None
    errors: list[RecorderError] = field(default_factory=list)
    success: bool = True


@dataclass(frozen=True)
class RebuildSummariesOutput:
    """Output of a summary recount."""

    summaries: list[EngagementSummary] = field(default_factory=list)
    skipped_users: list[str] = field(default_factory=list)
    errors: list[RecorderError] = field(default_factory=list)
    success: bool = True


@dataclass(frozen=True)
class SessionOutput:
    """Output for a watch session read."""

    session: WatchSession | None
    errors: list[RecorderError] = field(default_factory=list)
    success: bool = True
