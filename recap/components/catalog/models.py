"""
Catalog component input/output models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from recap.core.entities import Tutorial

CatalogErrorCode = Literal["invalid_input", "not_found", "invalid_video", "load_failed"]


@dataclass(frozen=True)
class CatalogError:
    """Catalog lookup error."""

    code: CatalogErrorCode
    message: str


@dataclass(frozen=True)
class GetTutorialInput:
    """Input for resolving a tutorial for a watch view."""

    tutorial_id: str


@dataclass(frozen=True)
class TutorialOutput:
    """
    Output of a tutorial lookup.

    On success video_id and embed_url are always set: a tutorial whose
    link yields no YouTube id is reported as `invalid_video`.
    """

    tutorial: Tutorial | None
    video_id: str | None = None
    embed_url: str | None = None
    errors: list[CatalogError] = field(default_factory=list)
    success: bool = True
