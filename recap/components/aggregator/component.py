"""
Aggregator component - Instructor-facing engagement analytics.

Read-only: nothing here writes to the store. Store failures reading the
population are reported as `load_failed`; a single student's failure
only removes that student from the result.
"""

from __future__ import annotations

import logging

from recap.core.ports.store import StoreError

from ._impl import Aggregator, build_tutorial_stats, create_aggregator
from .models import (
    DEFAULT_CONFIG,
    AggregatorConfig,
    AggregatorError,
    AllTutorialsInput,
    AllTutorialsOutput,
    StudentActivityInput,
    StudentActivityOutput,
    TutorialStatsInput,
    TutorialStatsOutput,
)
from .ports import EngagementReaderPort, TimePort

logger = logging.getLogger(__name__)

_LOAD_FAILED = AggregatorError(code="load_failed", message="Could not load statistics")


def _valid_id(value: str | None) -> bool:
    return bool(value) and "/" not in str(value)


def _resolve(
    store: EngagementReaderPort | None,
    aggregator: Aggregator | None,
    config: AggregatorConfig,
    time_port: TimePort | None,
) -> Aggregator:
    if aggregator is not None:
        return aggregator
    if store is None:
        raise ValueError("Either store or aggregator is required")
    return create_aggregator(store, config, time_port)


# --- Component Entry Points ---


def run_tutorial_stats(
    inp: TutorialStatsInput,
    *,
    store: EngagementReaderPort | None = None,
    aggregator: Aggregator | None = None,
    config: AggregatorConfig = DEFAULT_CONFIG,
    time_port: TimePort | None = None,
) -> TutorialStatsOutput:
    """
    Per-tutorial statistics: viewers, total, average, best, ranking.

    A tutorial with no document and no watchers is `not_found`. A
    deleted tutorial that still has watch sessions is reported under
    the default title.
    """
    if not _valid_id(inp.tutorial_id):
        return TutorialStatsOutput(
            stats=None,
            errors=[AggregatorError(code="invalid_input", message="Tutorial id is missing")],
            success=False,
        )

    agg = _resolve(store, aggregator, config, time_port)
    try:
        scan = agg.tutorial_engagement(inp.tutorial_id)
    except StoreError:
        logger.exception("Failed to aggregate engagement for tutorial %s", inp.tutorial_id)
        return TutorialStatsOutput(stats=None, errors=[_LOAD_FAILED], success=False)

    if not scan.tutorial_found and not scan.engagement.students:
        return TutorialStatsOutput(
            stats=None,
            errors=[AggregatorError(code="not_found", message="Tutorial not found")],
            success=False,
        )

    return TutorialStatsOutput(
        stats=build_tutorial_stats(scan.engagement, config),
        skipped_users=scan.skipped_users,
    )


def run_all_tutorials(
    inp: AllTutorialsInput,
    *,
    store: EngagementReaderPort | None = None,
    aggregator: Aggregator | None = None,
    config: AggregatorConfig = DEFAULT_CONFIG,
    time_port: TimePort | None = None,
) -> AllTutorialsOutput:
    """Overview of every watched tutorial, by total view minutes desc."""
    agg = _resolve(store, aggregator, config, time_port)
    try:
        scan = agg.tutorial_summaries()
    except StoreError:
        logger.exception("Failed to aggregate engagement across tutorials")
        return AllTutorialsOutput(errors=[_LOAD_FAILED], success=False)

    return AllTutorialsOutput(tutorials=scan.tutorials, skipped_users=scan.skipped_users)


def run_student_activity(
    inp: StudentActivityInput,
    *,
    store: EngagementReaderPort | None = None,
    aggregator: Aggregator | None = None,
    config: AggregatorConfig = DEFAULT_CONFIG,
    time_port: TimePort | None = None,
) -> StudentActivityOutput:
    """Tutorials one student has watched, by minutes desc."""
    if not _valid_id(inp.user_id):
        return StudentActivityOutput(
            user_id=inp.user_id,
            errors=[AggregatorError(code="invalid_input", message="User id is missing")],
            success=False,
        )

    agg = _resolve(store, aggregator, config, time_port)
    try:
        rows = agg.student_activity(inp.user_id)
    except StoreError:
        logger.exception("Failed to load watch sessions for user %s", inp.user_id)
        return StudentActivityOutput(user_id=inp.user_id, errors=[_LOAD_FAILED], success=False)

    return StudentActivityOutput(user_id=inp.user_id, rows=rows)


def run(
    inp: TutorialStatsInput | AllTutorialsInput | StudentActivityInput,
    *,
    store: EngagementReaderPort | None = None,
    aggregator: Aggregator | None = None,
    config: AggregatorConfig = DEFAULT_CONFIG,
    time_port: TimePort | None = None,
) -> TutorialStatsOutput | AllTutorialsOutput | StudentActivityOutput:
    """
    Main entry point for the aggregator component.

    Dispatches to appropriate handler based on input type.
    """
    kwargs = {"store": store, "aggregator": aggregator, "config": config, "time_port": time_port}
    if isinstance(inp, TutorialStatsInput):
        return run_tutorial_stats(inp, **kwargs)  # type: ignore[arg-type]
    elif isinstance(inp, AllTutorialsInput):
        return run_all_tutorials(inp, **kwargs)  # type: ignore[arg-type]
    elif isinstance(inp, StudentActivityInput):
        return run_student_activity(inp, **kwargs)  # type: ignore[arg-type]
    else:
        raise ValueError(f"Unknown input type: {type(inp)}")
