"""Story pipeline: taste ingestion and story generation orchestration"""

from .coordinator import StoryCoordinator
from .taste import TasteProfileBuilder

__all__ = [
    "StoryCoordinator",
    "TasteProfileBuilder",
]
