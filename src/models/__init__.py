"""
Models package - Pydantic data models for Storystone

Re-exports all models for cleaner imports:
    from src.models import Story, VocabularyPool, WordTier
    from src.models import NarrativeProfile, NarrativeDirective
"""

from src.models.models import *
from src.models.profiles import (
    NARRATIVE_BUCKETS,
    StoryDestination,
    NarrativeTags,
    NarrativeDirective,
    EntitySummary,
    NarrativeProfile,
)
