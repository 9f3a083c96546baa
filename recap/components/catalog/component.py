"""
Catalog component - Tutorial lookup for watch views.

Resolves a tutorial document and its YouTube video id. Both must be
resolved before a watch view may start recording.

Invariants:
- A missing document is terminal (`not_found`)
- A link without a recognisable video id is terminal (`invalid_video`)
- Store failures never propagate (`load_failed`)
"""

from __future__ import annotations

import logging
import re

from pydantic import ValidationError

from recap.core.entities import Tutorial
from recap.core.paths import tutorial_path
from recap.core.ports.store import StoreError

from .models import CatalogError, GetTutorialInput, TutorialOutput
from .ports import TutorialReaderPort

logger = logging.getLogger(__name__)

_VIDEO_ID = r"([a-zA-Z0-9_-]{11})"
_VIDEO_PATTERNS = (
    re.compile(r"youtu\.be/" + _VIDEO_ID),
    re.compile(r"youtube\.com/watch\?v=" + _VIDEO_ID),
    re.compile(r"youtube\.com/embed/" + _VIDEO_ID),
)

EMBED_BASE_URL = "https://www.youtube.com/embed/"


# --- Pure Functions ---


def extract_video_id(url: str | None) -> str | None:
    """
    Extract the YouTube video id from a share, watch or embed link.

    Supports: youtu.be/xxx, youtube.com/watch?v=xxx, youtube.com/embed/xxx
    """
    if not url:
        return None
    for pattern in _VIDEO_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def embed_url(video_id: str) -> str:
    return f"{EMBED_BASE_URL}{video_id}"


# --- Component Entry Points ---


def _failed(code: str, message: str, tutorial: Tutorial | None = None) -> TutorialOutput:
    return TutorialOutput(
        tutorial=tutorial,
        errors=[CatalogError(code=code, message=message)],  # type: ignore[arg-type]
        success=False,
    )


def run_get_tutorial(
    inp: GetTutorialInput,
    *,
    store: TutorialReaderPort,
) -> TutorialOutput:
    """
    Resolve a tutorial and its video.

    Args:
        inp: Input containing the tutorial id
        store: Document reader

    Returns:
        TutorialOutput with the tutorial, video id and embed URL
    """
    if not inp.tutorial_id or "/" in inp.tutorial_id:
        return _failed("invalid_input", "Tutorial id is missing")

    try:
        doc = store.get(tutorial_path(inp.tutorial_id))
    except StoreError:
        logger.exception("Failed to load tutorial %s", inp.tutorial_id)
        return _failed("load_failed", "Could not load tutorial")

    if doc is None:
        return _failed("not_found", "Tutorial not found")

    try:
        tutorial = Tutorial.from_store(doc.id, doc.data)
    except ValidationError:
        logger.warning("Tutorial %s has a malformed document", inp.tutorial_id)
        return _failed("not_found", "Tutorial not found")

    video_id = extract_video_id(tutorial.video_url)
    if video_id is None:
        return _failed("invalid_video", "Invalid YouTube link", tutorial)

    return TutorialOutput(
        tutorial=tutorial,
        video_id=video_id,
        embed_url=embed_url(video_id),
    )


def run(inp: GetTutorialInput, *, store: TutorialReaderPort) -> TutorialOutput:
    """Main entry point for the catalog component."""
    if isinstance(inp, GetTutorialInput):
        return run_get_tutorial(inp, store=store)
    raise ValueError(f"Unknown input type: {type(inp)}")
