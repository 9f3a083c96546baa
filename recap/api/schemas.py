from datetime import datetime

from pydantic import BaseModel


# --- Watch ---
class TickResponse(BaseModel):
    tutorial_id: str
    total_minutes_watched: int
    view_log_saved: bool = True


class SessionResponse(BaseModel):
    tutorial_id: str
    user_id: str
    total_minutes_watched: int
    last_updated: datetime | None = None


# --- Engagement ---
class StudentEngagementItem(BaseModel):
    rank: int
    user_id: str
    display_name: str | None = None
    email: str | None = None
    total_minutes_watched: int
    last_updated: datetime
    percentage_of_average: int
    engagement_level: str


class TutorialStatsResponse(BaseModel):
    tutorial_id: str
    tutorial_title: str
    total_viewers: int
    total_minutes: int
    average_minutes: int
    max_minutes: int
    students: list[StudentEngagementItem]
    skipped_users: list[str] = []


class TutorialSummaryItem(BaseModel):
    tutorial_id: str
    tutorial_title: str
    total_viewers: int
    total_view_minutes: int
    average_watch_time: int


class TutorialSummaryResponse(BaseModel):
    items: list[TutorialSummaryItem]
    skipped_users: list[str] = []


class StudentTutorialItem(BaseModel):
    tutorial_id: str
    tutorial_title: str
    total_minutes_watched: int
    last_updated: datetime


class StudentActivityResponse(BaseModel):
    user_id: str
    items: list[StudentTutorialItem]
