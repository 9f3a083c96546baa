"""
Recorder component - Watch-time accrual per (student, tutorial).
"""

from ._increment import (
    MINUTES_PER_TICK,
    AtomicIncrement,
    IncrementStrategy,
    NaiveIncrement,
    rebuild_summary,
    strategy_for,
)
from ._watch import WatchView, WatchViewError
from .component import (
    run,
    run_get_session,
    run_rebuild_summaries,
    run_tick,
    validate_tick_input,
)
from .models import (
    DEFAULT_CONFIG,
    GetSessionInput,
    IncrementResult,
    RebuildSummariesInput,
    RebuildSummariesOutput,
    RecorderConfig,
    RecorderError,
    SessionOutput,
    TickInput,
    TickOutput,
)
from .ports import TimePort, WatchStorePort

__all__ = [
    # Entry points
    "run",
    "run_get_session",
    "run_rebuild_summaries",
    "run_tick",
    "validate_tick_input",
    # Watch view
    "WatchView",
    "WatchViewError",
    # Increment strategies
    "MINUTES_PER_TICK",
    "AtomicIncrement",
    "IncrementStrategy",
    "NaiveIncrement",
    "rebuild_summary",
    "strategy_for",
    # Models
    "DEFAULT_CONFIG",
    "GetSessionInput",
    "IncrementResult",
    "RebuildSummariesInput",
    "RebuildSummariesOutput",
    "RecorderConfig",
    "RecorderError",
    "SessionOutput",
    "TickInput",
    "TickOutput",
    # Ports
    "TimePort",
    "WatchStorePort",
]
