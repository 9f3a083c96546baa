"""
Domain entities for recap.

Documents arrive from the store loosely typed. Every read goes through
`from_store`, which drops null fields (so defaults apply, as the web
client did with `??`) and validates the rest. Writes go through
`to_store`, which emits the camelCase field names of the persisted
layout.

- Tutorial: instructor-published, YouTube-linked video
- UserProfile: users/{id}, refreshed by each tick
- WatchSession: per (student, tutorial) cumulative minute counter
- ViewLogEntry: append-only per-tick audit record
- EngagementSummary: optional materialized per-tutorial counters
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_TUTORIAL_TITLE = "Tutoriel sans titre"


def _present(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


class StoreModel(BaseModel):
    """Base for models persisted with camelCase field names."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_store(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude={"id"})


# --- Tutorial ---


class Tutorial(StoreModel):
    id: str
    title: str = DEFAULT_TUTORIAL_TITLE
    description: str = ""
    technical_description: str = Field(default="", alias="technicalDescription")
    video_url: str = Field(default="", alias="videoUrl")
    owner_id: str | None = Field(default=None, alias="ownerId")
    owner_name: str | None = Field(default=None, alias="ownerName")
    created_at: datetime | None = Field(default=None, alias="createdAt")

    @classmethod
    def from_store(cls, doc_id: str, data: dict[str, Any]) -> Tutorial:
        return cls.model_validate({**_present(data), "id": doc_id})


# --- Users ---


class UserProfile(StoreModel):
    uid: str
    email: str | None = None
    display_name: str | None = Field(default=None, alias="displayName")
    last_updated: datetime | None = Field(default=None, alias="lastUpdated")

    @classmethod
    def from_store(cls, doc_id: str, data: dict[str, Any]) -> UserProfile:
        return cls.model_validate({"uid": doc_id, **_present(data)})

    def to_store(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


# --- Watch sessions ---


class WatchSession(StoreModel):
    """
    Cumulative watch counter for one (student, tutorial) pair.

    Invariant: total_minutes_watched never decreases.
    """

    user_id: str = Field(alias="userId")
    tutorial_id: str = Field(alias="tutorialId")
    total_minutes_watched: int = Field(default=0, ge=0, strict=True, alias="totalMinutesWatched")
    last_updated: datetime = Field(alias="lastUpdated")
    # Minutes already counted into the materialized summary (None: never counted)
    summarized_minutes: int | None = Field(
        default=None, ge=0, strict=True, alias="summarizedMinutes"
    )

    @classmethod
    def from_store(
        cls,
        user_id: str,
        tutorial_id: str,
        data: dict[str, Any],
        now: datetime,
    ) -> WatchSession:
        # Path ids win over stored ids; the document is keyed by the pair.
        values = {"lastUpdated": now, **_present(data)}
        values["userId"] = user_id
        values["tutorialId"] = tutorial_id
        return cls.model_validate(values)

    def to_store(self) -> dict[str, Any]:
        data = self.model_dump(by_alias=True)
        if self.summarized_minutes is None:
            del data["summarizedMinutes"]
        return data


class ViewLogEntry(StoreModel):
    """Immutable per-tick record under tutorials/{id}/viewLogs."""

    user_id: str = Field(alias="userId")
    user_email: str | None = Field(default=None, alias="userEmail")
    timestamp: datetime
    minute_marker: int = Field(ge=1, alias="minuteMarker")

    def to_store(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


# --- Materialized summary ---


class EngagementSummary(StoreModel):
    """Per-tutorial counters maintained alongside each tick."""

    tutorial_id: str = Field(alias="tutorialId")
    total_view_minutes: int = Field(default=0, ge=0, strict=True, alias="totalViewMinutes")
    total_viewers: int = Field(default=0, ge=0, strict=True, alias="totalViewers")
    last_updated: datetime | None = Field(default=None, alias="lastUpdated")

    @classmethod
    def from_store(cls, tutorial_id: str, data: dict[str, Any]) -> EngagementSummary:
        return cls.model_validate({**_present(data), "tutorialId": tutorial_id})

    def to_store(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)
