"""
Profile Sampler - builds one story directive from stored narrative profiles

Sampling is intentionally random: every story start draws a different mix
of the user's tastes. Pass a seeded `random.Random` for reproducible tests.
"""

import logging
import random
from typing import Dict, List, Optional, Sequence, TypeVar

from src.config.limits import PROFILES_PER_DIRECTIVE, TAGS_PER_BUCKET
from src.models.profiles import (
    NARRATIVE_BUCKETS,
    NarrativeDirective,
    NarrativeProfile,
    StoryDestination,
)
from src.services.text_processing import remove_case_insensitive_duplicates

logger = logging.getLogger(__name__)

T = TypeVar("T")


def sample_without_replacement(items: Sequence[T], count: int, rng: Optional[random.Random] = None) -> List[T]:
    """
    Fisher-Yates shuffle of a copy, then take the first `count` items.

    Returns every item (shuffled) when fewer than `count` exist.
    """
    rng = rng or random
    shuffled = list(items)
    index = len(shuffled)
    while index > 1:
        swap = rng.randrange(index)
        index -= 1
        shuffled[index], shuffled[swap] = shuffled[swap], shuffled[index]
    return shuffled[:count]


def merge_narratives(profiles: Sequence[NarrativeProfile]) -> Dict[str, List[str]]:
    """Concatenate each bucket across profiles, in profile order"""
    merged: Dict[str, List[str]] = {bucket: [] for bucket in NARRATIVE_BUCKETS}
    for profile in profiles:
        for bucket in NARRATIVE_BUCKETS:
            merged[bucket].extend(profile.narrative.bucket(bucket))
    return merged


def sample_buckets(
    merged: Dict[str, List[str]],
    per_bucket: int = TAGS_PER_BUCKET,
    rng: Optional[random.Random] = None,
) -> Dict[str, List[str]]:
    """Dedupe each bucket case-insensitively, then sample up to `per_bucket` tags"""
    sampled = {}
    for bucket in NARRATIVE_BUCKETS:
        unique = remove_case_insensitive_duplicates(merged.get(bucket, []))
        sampled[bucket] = sample_without_replacement(unique, per_bucket, rng)
    return sampled


def build_directive(
    profiles: Sequence[NarrativeProfile],
    rng: Optional[random.Random] = None,
    profiles_per_directive: int = PROFILES_PER_DIRECTIVE,
    per_bucket: int = TAGS_PER_BUCKET,
) -> Optional[NarrativeDirective]:
    """
    Merge a random subset of profiles into one NarrativeDirective.

    Args:
        profiles: All stored narrative profiles
        rng: Optional random source
        profiles_per_directive: Profiles sampled per directive
        per_bucket: Tags sampled per bucket

    Returns:
        The directive, or None when no profiles exist (not ready yet)
    """
    if not profiles:
        return None

    chosen = sample_without_replacement(profiles, profiles_per_directive, rng)
    buckets = sample_buckets(merge_narratives(chosen), per_bucket, rng)

    # Destination is taken whole from the first sampled profile, never merged
    destination = chosen[0].narrative.story_destination
    if not destination.is_complete():
        destination = StoryDestination()

    logger.info(
        f"🎲 Directive built from {len(chosen)}/{len(profiles)} profiles: "
        f"{', '.join(p.entity.name for p in chosen)}"
    )
    return NarrativeDirective(**buckets, story_destination=destination.model_copy(deep=True))
