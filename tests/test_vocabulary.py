"""
Unit tests for the three-tier vocabulary pool.

Covers reconcile after a story start, user moves between tiers, the pool
size quota and story pool shaping.

Run with: python -m pytest tests/test_vocabulary.py -v
"""

import random
import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.models import VocabularyPool, WordTier
from src.services.errors import InputValidationError
from src.services.vocabulary import (
    compute_pool_size,
    find_overlaps,
    move_words,
    parse_tier,
    reconcile,
    shape_story_pool,
)


class TestReconcile:

    def test_first_story_seeds_base_tier(self):
        pool = reconcile(None, ["casa", "Casa", "luz"])
        assert pool.base_words == ["casa", "luz"]
        assert pool.getting_used_words == []
        assert pool.comfortable_words == []

    def test_new_words_merged_into_base(self):
        pool = VocabularyPool(base_words=["casa"])
        assert reconcile(pool, ["luz", "CASA"]).base_words == ["casa", "luz"]

    def test_words_in_higher_tiers_excluded(self):
        pool = VocabularyPool(
            base_words=["casa"],
            getting_used_words=["Luz"],
            comfortable_words=["mar"],
        )
        updated = reconcile(pool, ["luz", "MAR", "sol"])
        assert updated.base_words == ["casa", "sol"]
        assert updated.getting_used_words == ["Luz"]
        assert updated.comfortable_words == ["mar"]
        assert find_overlaps(updated) == []

    def test_case_variants_in_stored_base_collapse(self):
        pool = VocabularyPool(base_words=["a", "A", "b"], getting_used_words=["b"])
        updated = reconcile(pool, ["c", "A"])
        assert updated.base_words == ["a", "c"]
        assert updated.getting_used_words == ["b"]

    def test_input_pool_not_mutated(self):
        pool = VocabularyPool(base_words=["casa"])
        reconcile(pool, ["luz"])
        assert pool.base_words == ["casa"]


class TestMoveWords:

    def test_move_to_target_tier(self):
        pool = VocabularyPool(base_words=["casa", "luz"], getting_used_words=["mar"])
        updated = move_words(pool, ["casa"], WordTier.COMFORTABLE)
        assert updated.base_words == ["luz"]
        assert updated.comfortable_words == ["casa"]
        assert updated.getting_used_words == ["mar"]

    def test_move_back_to_base(self):
        pool = VocabularyPool(comfortable_words=["casa"])
        updated = move_words(pool, ["casa"], WordTier.BASE)
        assert updated.base_words == ["casa"]
        assert updated.comfortable_words == []

    def test_move_within_same_tier_keeps_word_once(self):
        pool = VocabularyPool(base_words=["casa", "luz"])
        updated = move_words(pool, ["casa"], WordTier.BASE)
        assert updated.base_words == ["luz", "casa"]

    def test_case_variants_removed_from_other_tiers(self):
        pool = VocabularyPool(base_words=["Casa"], getting_used_words=["casa"])
        updated = move_words(pool, ["casa"], WordTier.COMFORTABLE)
        assert updated.base_words == []
        assert updated.getting_used_words == []
        assert updated.comfortable_words == ["casa"]

    def test_move_without_pool(self):
        updated = move_words(None, ["casa"], WordTier.GETTING_USED)
        assert updated.getting_used_words == ["casa"]


class TestPoolSize:

    def test_default_without_pool(self):
        assert compute_pool_size(None) == 20

    def test_default_at_threshold(self):
        pool = VocabularyPool(comfortable_words=[f"w{i}" for i in range(10)])
        assert compute_pool_size(pool, 20) == 20

    def test_grows_past_threshold(self):
        pool = VocabularyPool(
            comfortable_words=[f"c{i}" for i in range(11)],
            getting_used_words=[f"g{i}" for i in range(3)],
        )
        # round(11 * 0.85) + round(3 * 0.85) = 9 + 3
        assert compute_pool_size(pool, 20) == 32

    def test_half_rounds_up(self):
        pool = VocabularyPool(
            getting_used_words=[f"g{i}" for i in range(11)],
            comfortable_words=[f"c{i}" for i in range(10)],
        )
        # 11 * 0.85 = 9.35 -> 9, 10 * 0.85 = 8.5 -> 9
        assert compute_pool_size(pool, 20) == 38


class TestShapeStoryPool:

    def test_unchanged_without_higher_tiers(self):
        assert shape_story_pool(["casa", "luz"], VocabularyPool(base_words=["mar"])) == ["casa", "luz"]
        assert shape_story_pool(["casa"], None) == ["casa"]

    def test_drops_mastered_and_adds_reinforced(self):
        pool = VocabularyPool(getting_used_words=["sol"], comfortable_words=["casa"])
        assert shape_story_pool(["casa", "luz"], pool) == ["luz", "sol"]


class TestTierHelpers:

    def test_parse_tier(self):
        assert parse_tier("comfortable_words") == WordTier.COMFORTABLE

    def test_parse_tier_rejects_unknown(self):
        with pytest.raises(InputValidationError):
            parse_tier("learned")
        with pytest.raises(InputValidationError):
            parse_tier(None)

    def test_overlaps_detected(self):
        pool = VocabularyPool(base_words=["Casa"], comfortable_words=["casa"])
        assert find_overlaps(pool) == ["casa"]

    def test_display_names(self):
        assert WordTier.GETTING_USED.display_name == "Familiar"
        assert WordTier.COMFORTABLE.display_name == "Learned"


class TestTierDisjointness:
    """Random reconcile / move sequences never leave a word in two tiers"""

    WORDS = ["casa", "Casa", "CASA", "luz", "Luz", "mar", "sol", "Sol", "camino", "noche"]

    def _step(self, pool, rng):
        if pool is None or rng.random() < 0.5:
            return reconcile(pool, rng.sample(self.WORDS, rng.randint(1, 4)))
        stored = pool.base_words + pool.getting_used_words + pool.comfortable_words
        candidates = stored + self.WORDS
        selected = rng.sample(candidates, min(len(candidates), rng.randint(1, 3)))
        return move_words(pool, selected, rng.choice(list(WordTier)))

    def test_random_sequences_stay_disjoint(self):
        for seed in range(200):
            rng = random.Random(seed)
            pool = None
            for _ in range(15):
                pool = self._step(pool, rng)
                assert find_overlaps(pool) == [], f"seed {seed}: {pool}"

    def test_moves_of_case_variants_stay_disjoint(self):
        pool = reconcile(None, ["casa", "luz"])
        pool = move_words(pool, ["casa"], WordTier.COMFORTABLE)
        pool = reconcile(pool, ["CASA", "mar"])
        pool = move_words(pool, ["Casa"], WordTier.GETTING_USED)
        assert find_overlaps(pool) == []
        assert pool.base_words == ["luz", "mar"]
        assert pool.getting_used_words == ["Casa"]
        assert pool.comfortable_words == []
