"""
Catalog component - Tutorial lookup and YouTube link parsing.
"""

from .component import embed_url, extract_video_id, run, run_get_tutorial
from .models import CatalogError, GetTutorialInput, TutorialOutput
from .ports import TutorialReaderPort

__all__ = [
    # Entry points
    "run",
    "run_get_tutorial",
    # Pure functions
    "embed_url",
    "extract_video_id",
    # Models
    "CatalogError",
    "GetTutorialInput",
    "TutorialOutput",
    # Ports
    "TutorialReaderPort",
]
