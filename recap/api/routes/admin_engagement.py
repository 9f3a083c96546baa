"""
Admin Engagement API.

Instructor-facing watch-time analytics. Every response is recomputed
from the watch sessions on request.
"""

from fastapi import APIRouter, Depends

from recap.api.deps import get_aggregator, get_aggregator_config, get_current_identity
from recap.api.errors import http_error
from recap.api.schemas import (
    StudentActivityResponse,
    StudentEngagementItem,
    StudentTutorialItem,
    TutorialStatsResponse,
    TutorialSummaryItem,
    TutorialSummaryResponse,
)
from recap.components.aggregator import (
    Aggregator,
    AggregatorConfig,
    AllTutorialsInput,
    StudentActivityInput,
    TutorialStatsInput,
    run_all_tutorials,
    run_student_activity,
    run_tutorial_stats,
)
from recap.core.ports.auth import Identity

router = APIRouter()


@router.get("/tutorials", response_model=TutorialSummaryResponse)
def list_tutorial_engagement(
    identity: Identity = Depends(get_current_identity),
    aggregator: Aggregator = Depends(get_aggregator),
    config: AggregatorConfig = Depends(get_aggregator_config),
) -> TutorialSummaryResponse:
    """Every watched tutorial, by total view minutes desc."""
    output = run_all_tutorials(AllTutorialsInput(), aggregator=aggregator, config=config)
    if not output.success:
        raise http_error(output.errors[0].code)

    return TutorialSummaryResponse(
        items=[
            TutorialSummaryItem(
                tutorial_id=t.tutorial_id,
                tutorial_title=t.tutorial_title,
                total_viewers=t.total_viewers,
                total_view_minutes=t.total_view_minutes,
                average_watch_time=t.average_watch_time,
            )
            for t in output.tutorials
        ],
        skipped_users=output.skipped_users,
    )


@router.get("/tutorials/{tutorial_id}", response_model=TutorialStatsResponse)
def get_tutorial_engagement(
    tutorial_id: str,
    identity: Identity = Depends(get_current_identity),
    aggregator: Aggregator = Depends(get_aggregator),
    config: AggregatorConfig = Depends(get_aggregator_config),
) -> TutorialStatsResponse:
    """Per-student ranking with percentage of average and engagement level."""
    output = run_tutorial_stats(
        TutorialStatsInput(tutorial_id=tutorial_id), aggregator=aggregator, config=config
    )
    if not output.success or output.stats is None:
        raise http_error(output.errors[0].code)

    stats = output.stats
    return TutorialStatsResponse(
        tutorial_id=stats.tutorial_id,
        tutorial_title=stats.tutorial_title,
        total_viewers=stats.total_viewers,
        total_minutes=stats.total_minutes,
        average_minutes=stats.average_minutes,
        max_minutes=stats.max_minutes,
        students=[
            StudentEngagementItem(
                rank=row.rank,
                user_id=row.student.user_id,
                display_name=row.student.display_name,
                email=row.student.email,
                total_minutes_watched=row.student.total_minutes_watched,
                last_updated=row.student.last_updated,
                percentage_of_average=row.percentage_of_average,
                engagement_level=row.engagement_level,
            )
            for row in stats.students
        ],
        skipped_users=output.skipped_users,
    )


@router.get("/students/{user_id}", response_model=StudentActivityResponse)
def get_student_activity(
    user_id: str,
    identity: Identity = Depends(get_current_identity),
    aggregator: Aggregator = Depends(get_aggregator),
    config: AggregatorConfig = Depends(get_aggregator_config),
) -> StudentActivityResponse:
    """Tutorials one student has watched, by minutes desc."""
    output = run_student_activity(
        StudentActivityInput(user_id=user_id), aggregator=aggregator, config=config
    )
    if not output.success:
        raise http_error(output.errors[0].code)

    return StudentActivityResponse(
        user_id=output.user_id,
        items=[
            StudentTutorialItem(
                tutorial_id=row.tutorial_id,
                tutorial_title=row.tutorial_title,
                total_minutes_watched=row.total_minutes_watched,
                last_updated=row.last_updated,
            )
            for row in output.rows
        ],
    )
