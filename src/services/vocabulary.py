"""
Vocabulary Pool Manager - three-tier word state for the foreign language

Tiers:
- base_words: candidates surfaced by generated stories
- getting_used_words: seen in stories, still being reinforced
- comfortable_words: mastered

All functions here are pure: they take a VocabularyPool and return a new one.
FirebaseService applies them inside a transaction on the single pool node,
so a reconcile and a user move never interleave.
"""

import logging
import math
from typing import Iterable, List, Optional

from src.config.limits import POOL_GROWTH_FACTOR
from src.models import VocabularyPool, WordTier
from src.services.errors import InputValidationError
from src.services.text_processing import (
    edit_words,
    exclude_case_insensitive,
    remove_case_insensitive_duplicates,
    round_half_up,
)

logger = logging.getLogger(__name__)


def parse_tier(value: Optional[str]) -> WordTier:
    """Map a wire tier name to WordTier, rejecting anything else"""
    try:
        return WordTier(value)
    except ValueError:
        valid = ", ".join(tier.value for tier in WordTier)
        raise InputValidationError(f"Invalid target: {value}. Must be one of {valid}.")


def reconcile(pool: Optional[VocabularyPool], new_words: Iterable[str]) -> VocabularyPool:
    """
    Merge freshly generated pool words into the base tier.

    First generation (no pool): the new words become base_words.
    Afterwards: base = dedupe(base + new) minus anything already in the
    getting-used or comfortable tiers (case-insensitive).
    """
    new_words = list(new_words)
    if pool is None:
        return VocabularyPool(base_words=remove_case_insensitive_duplicates(new_words))

    words_to_erase = pool.getting_used_words + pool.comfortable_words
    raw_words = remove_case_insensitive_duplicates(pool.base_words + new_words)
    base_words = exclude_case_insensitive(raw_words, words_to_erase)

    return pool.model_copy(update={"base_words": base_words})


def move_words(pool: Optional[VocabularyPool], selected: Iterable[str], target: WordTier) -> VocabularyPool:
    """
    Move user-selected words into `target`.

    Each selected word is removed from all three tiers (exact match on the
    stored casing) and then appended to the target tier.
    """
    selected = list(selected)
    pool = pool or VocabularyPool()

    # Also drop case variants from the non-target tiers to keep tiers disjoint
    lowered = {word.lower() for word in selected}
    tiers = {}
    for tier in WordTier:
        remaining = edit_words(pool.tier(tier), selected)
        tiers[tier.value] = [word for word in remaining if word.lower() not in lowered]

    tiers[target.value] = edit_words(tiers[target.value], [], selected)
    return pool.model_copy(update=tiers)


def compute_pool_size(pool: Optional[VocabularyPool], default_pool_size: int = 20) -> int:
    """
    Number of foreign words to request for the next story.

    When either the comfortable or the getting-used tier holds more than
    half the default quota, grow the request by 85% of both tier sizes so
    enough genuinely new words survive exclusion.
    """
    if pool is None:
        return default_pool_size

    comfortable = len(pool.comfortable_words)
    getting_used = len(pool.getting_used_words)
    threshold = math.ceil(default_pool_size / 2)

    if comfortable > threshold or getting_used > threshold:
        growth = round_half_up(comfortable * POOL_GROWTH_FACTOR) + round_half_up(getting_used * POOL_GROWTH_FACTOR)
        logger.info(
            f"📈 Pool size grown {default_pool_size} → {default_pool_size + growth} "
            f"(comfortable={comfortable}, getting_used={getting_used})"
        )
        return default_pool_size + growth
    return default_pool_size


def shape_story_pool(generated: Iterable[str], pool: Optional[VocabularyPool]) -> List[str]:
    """
    Words a new story is locked to.

    Mastered words are dropped and words still being reinforced are added,
    so every story keeps revisiting the getting-used tier.
    """
    generated = list(generated)
    if pool is None or not (pool.comfortable_words or pool.getting_used_words):
        return generated
    return edit_words(generated, pool.comfortable_words, pool.getting_used_words)


def find_overlaps(pool: VocabularyPool) -> List[str]:
    """Lowercase words present in more than one tier (empty when disjoint)"""
    seen = {}
    overlaps = []
    for tier in WordTier:
        for word in {w.lower() for w in pool.tier(tier)}:
            if word in seen and seen[word] != tier:
                overlaps.append(word)
            seen.setdefault(word, tier)
    return sorted(set(overlaps))
