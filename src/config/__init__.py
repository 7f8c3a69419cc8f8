"""Configuration package for Storystone"""

from .settings import Settings, get_settings
from .limits import (
    PROFILES_PER_DIRECTIVE,
    TAGS_PER_BUCKET,
    POOL_GROWTH_FACTOR,
    INSIGHT_TAGS_TAKE,
)

__all__ = [
    "Settings",
    "get_settings",
    "PROFILES_PER_DIRECTIVE",
    "TAGS_PER_BUCKET",
    "POOL_GROWTH_FACTOR",
    "INSIGHT_TAGS_TAKE",
]
