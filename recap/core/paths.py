"""
Document paths for the persisted layout.

Layout (field-compatible with the existing web client):
- tutorials/{id}
- tutorials/{id}/viewLogs/{auto-id}
- tutorials/{id}/stats/engagement
- users/{id}
- users/{id}/watchSessions/{tutorialId}
- users/{id}/notifications/{auto-id} (web client only, not touched here)
"""

from __future__ import annotations

TUTORIALS = "tutorials"
USERS = "users"
WATCH_SESSIONS = "watchSessions"
VIEW_LOGS = "viewLogs"
STATS = "stats"
ENGAGEMENT_SUMMARY_ID = "engagement"


def split_path(path: str) -> list[str]:
    """Split a slash path into segments, rejecting empty segments."""
    segments = path.strip("/").split("/")
    if not path.strip("/") or any(not s for s in segments):
        msg = f"Invalid store path: {path!r}"
        raise ValueError(msg)
    return segments


def is_document_path(path: str) -> bool:
    """Documents live at even depth (collection/doc[/collection/doc...])."""
    return len(split_path(path)) % 2 == 0


def parent_collection(path: str) -> tuple[str, str]:
    """Return (collection_path, doc_id) for a document path."""
    segments = split_path(path)
    if len(segments) % 2 != 0:
        msg = f"Not a document path: {path!r}"
        raise ValueError(msg)
    return "/".join(segments[:-1]), segments[-1]


def join(*segments: str) -> str:
    for s in segments:
        if not s or "/" in s:
            msg = f"Invalid path segment: {s!r}"
            raise ValueError(msg)
    return "/".join(segments)


def tutorial_path(tutorial_id: str) -> str:
    return join(TUTORIALS, tutorial_id)


def user_path(user_id: str) -> str:
    return join(USERS, user_id)


def watch_sessions_collection(user_id: str) -> str:
    return join(USERS, user_id, WATCH_SESSIONS)


def watch_session_path(user_id: str, tutorial_id: str) -> str:
    return join(USERS, user_id, WATCH_SESSIONS, tutorial_id)


def view_logs_collection(tutorial_id: str) -> str:
    return join(TUTORIALS, tutorial_id, VIEW_LOGS)


def engagement_summary_path(tutorial_id: str) -> str:
    return join(TUTORIALS, tutorial_id, STATS, ENGAGEMENT_SUMMARY_ID)
