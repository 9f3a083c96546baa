"""
Aggregator component - Engagement totals, averages and rankings.
"""

from ._impl import (
    Aggregator,
    EngagementScan,
    FanOutAggregator,
    SummaryAggregator,
    SummaryScan,
    average_minutes,
    build_tutorial_stats,
    classify_engagement,
    create_aggregator,
    js_round,
    percentage_of_average,
    sort_by_minutes,
    summarize_tutorials,
)
from .component import run, run_all_tutorials, run_student_activity, run_tutorial_stats
from .models import (
    DEFAULT_CONFIG,
    AggregatorConfig,
    AggregatorError,
    AllTutorialsInput,
    AllTutorialsOutput,
    EngagementLevel,
    RankedStudent,
    StudentActivityInput,
    StudentActivityOutput,
    StudentTutorialRow,
    StudentWatchData,
    TutorialEngagement,
    TutorialStats,
    TutorialStatsInput,
    TutorialStatsOutput,
    TutorialSummary,
)
from .ports import EngagementReaderPort

__all__ = [
    # Entry points
    "run",
    "run_all_tutorials",
    "run_student_activity",
    "run_tutorial_stats",
    # Aggregators
    "Aggregator",
    "EngagementScan",
    "FanOutAggregator",
    "SummaryAggregator",
    "SummaryScan",
    "create_aggregator",
    # Pure functions
    "average_minutes",
    "build_tutorial_stats",
    "classify_engagement",
    "js_round",
    "percentage_of_average",
    "sort_by_minutes",
    "summarize_tutorials",
    # Models
    "DEFAULT_CONFIG",
    "AggregatorConfig",
    "AggregatorError",
    "AllTutorialsInput",
    "AllTutorialsOutput",
    "EngagementLevel",
    "RankedStudent",
    "StudentActivityInput",
    "StudentActivityOutput",
    "StudentTutorialRow",
    "StudentWatchData",
    "TutorialEngagement",
    "TutorialStats",
    "TutorialStatsInput",
    "TutorialStatsOutput",
    "TutorialSummary",
    # Ports
    "EngagementReaderPort",
]
