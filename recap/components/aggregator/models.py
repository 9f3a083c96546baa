"""
Aggregator component input/output models.

All models here are derived read models: recomputed on every request,
never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

from recap.core.entities import DEFAULT_TUTORIAL_TITLE
from recap.rules.models import AggregationRules

AggregatorErrorCode = Literal["invalid_input", "not_found", "load_failed"]

EngagementLevel = Literal["très engagé", "engagé", "modéré", "faible"]


# --- Configuration ---


@dataclass(frozen=True)
class AggregatorConfig:
    """Aggregator configuration from rules."""

    # Upper bound on parallel per-student reads
    max_concurrency: int = 8

    default_title: str = DEFAULT_TUTORIAL_TITLE

    # Read tutorials/{id}/stats/engagement for the overview
    use_summary: bool = False

    # Percent-of-average lower bounds
    very_engaged_pct: int = 150
    engaged_pct: int = 100
    moderate_pct: int = 50

    @classmethod
    def from_rules(cls, aggregation: AggregationRules) -> AggregatorConfig:
        return cls(
            max_concurrency=aggregation.max_concurrency,
            default_title=aggregation.default_title,
            use_summary=aggregation.use_summary,
            very_engaged_pct=aggregation.buckets.very_engaged,
            engaged_pct=aggregation.buckets.engaged,
            moderate_pct=aggregation.buckets.moderate,
        )


DEFAULT_CONFIG = AggregatorConfig()


# --- Errors ---


@dataclass(frozen=True)
class AggregatorError:
    """Aggregation error."""

    code: AggregatorErrorCode
    message: str


# --- Read Models ---


@dataclass(frozen=True)
class StudentWatchData:
    """One student's counter for one tutorial."""

    user_id: str
    total_minutes_watched: int
    last_updated: datetime
    display_name: str | None = None
    email: str | None = None


@dataclass(frozen=True)
class TutorialEngagement:
    """Students of one tutorial, sorted by minutes desc (stable for ties)."""

    tutorial_id: str
    tutorial_title: str
    students: list[StudentWatchData] = field(default_factory=list)


@dataclass(frozen=True)
class RankedStudent:
    """A student row of the per-tutorial statistics view."""

    rank: int
    student: StudentWatchData
    percentage_of_average: int
    engagement_level: EngagementLevel


@dataclass(frozen=True)
class TutorialStats:
    """Per-tutorial statistics: totals, average, best student, ranking."""

    tutorial_id: str
    tutorial_title: str
    total_viewers: int
    total_minutes: int
    average_minutes: int
    max_minutes: int
    students: list[RankedStudent] = field(default_factory=list)


@dataclass(frozen=True)
class TutorialSummary:
    """One row of the all-tutorials overview."""

    tutorial_id: str
    tutorial_title: str
    total_viewers: int
    total_view_minutes: int
    average_watch_time: int


@dataclass(frozen=True)
class StudentTutorialRow:
    """One tutorial a student has watched."""

    tutorial_id: str
    tutorial_title: str
    total_minutes_watched: int
    last_updated: datetime


# --- Input Models ---


@dataclass(frozen=True)
class TutorialStatsInput:
    """Input for the per-tutorial statistics view."""

    tutorial_id: str


@dataclass(frozen=True)
class AllTutorialsInput:
    """Input for the all-tutorials overview."""


@dataclass(frozen=True)
class StudentActivityInput:
    """Input for the per-student read model."""

    user_id: str


# --- Output Models ---


@dataclass(frozen=True)
class TutorialStatsOutput:
    """
    Output for the per-tutorial statistics view.

    skipped_users lists students whose sessions could not be read; they
    are omitted from the totals.
    """

    stats: TutorialStats | None
    skipped_users: list[str] = field(default_factory=list)
    errors: list[AggregatorError] = field(default_factory=list)
    success: bool = True


@dataclass(frozen=True)
class AllTutorialsOutput:
    """Output for the all-tutorials overview."""

    tutorials: list[TutorialSummary] = field(default_factory=list)
    skipped_users: list[str] = field(default_factory=list)
    errors: list[AggregatorError] = field(default_factory=list)
    success: bool = True


@dataclass(frozen=True)
class StudentActivityOutput:
    """Output for the per-student read model."""

    user_id: str
    rows: list[StudentTutorialRow] = field(default_factory=list)
    errors: list[AggregatorError] = field(default_factory=list)
    success: bool = True
