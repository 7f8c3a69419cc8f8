"""
Tests for StoryCoordinator - story start, continuation, translation and
word moves against the in-memory storage and a fake generator.

Run with: python -m pytest tests/test_coordinator.py -v
"""

import asyncio
import random
import sys
from pathlib import Path
from unittest import mock

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.models import VocabularyPool, WordTier
from src.pipeline.coordinator import StoryCoordinator
from src.prompts.story import get_continue_prompt, get_terminal_prompt
from src.services.errors import (
    AlreadyGeneratingError,
    InputValidationError,
    MalformedGenerationResponse,
    StoryEndedError,
    StoryNotFoundError,
    UpstreamServiceError,
)

from fakes import FakeGemini, InMemoryStorage, make_profile, make_story


def _coordinator(storage, gemini, settings):
    return StoryCoordinator(storage, gemini, settings, rng=random.Random(42))


async def _seed_story(storage, segment_count, **fields):
    story = make_story(segment_count, **fields)
    await storage.create_story(story)
    return story


class TestStartStory:

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.gemini = FakeGemini()

    def _start(self, settings):
        return asyncio.run(_coordinator(self.storage, self.gemini, settings).start_story())

    def _add_profile(self):
        asyncio.run(self.storage.insert_profile(make_profile("E1", story_tone=["Eerie"], characters=["Cartographer"])))

    def test_no_profiles_is_not_ready(self, settings):
        assert self._start(settings) is None
        assert self.gemini.json_calls == []
        assert self.storage.stories == {}

    def test_story_created_with_first_segment(self, settings):
        self._add_profile()
        result = self._start(settings)

        story = asyncio.run(self.storage.get_story(result.story_id))
        assert story.title == "The Glass Orchard"
        assert story.segments == ["The first segment."]
        assert story.pool_words == ["casa", "luz", "camino"]
        assert story.generation_status is False
        assert story.ended is False
        assert story.story_components.story_tone == ["Eerie"]

    def test_history_seeded_with_final_pool(self, settings):
        self._add_profile()
        result = self._start(settings)

        story = asyncio.run(self.storage.get_story(result.story_id))
        assert [turn.role for turn in story.story_context] == ["user", "model"]
        assert "[casa,luz,camino]" in story.story_context[0].text
        assert story.story_context[1].text == "The first segment."

    def test_prompt_and_generation_settings(self, settings):
        self._add_profile()
        self._start(settings)

        call = self.gemini.json_calls[0]
        assert "fixed pool of 20 spanish words" in call["prompt"]
        assert "Eerie" in call["prompt"]
        assert call["schema"]["required"] == ["title", "story", "pool_words"]
        assert call["temperature"] == settings.story_start_temperature

    def test_first_story_creates_pool(self, settings):
        self._add_profile()
        result = self._start(settings)

        pool = asyncio.run(self.storage.get_pool())
        assert pool.base_words == ["casa", "luz", "camino"]
        assert pool.version == 1
        assert result.pool_size == 20

    def test_pool_reconciled_against_higher_tiers(self, settings):
        self._add_profile()
        self.storage.pool = VocabularyPool(
            base_words=["mar"],
            getting_used_words=["sol"],
            comfortable_words=[f"w{i}" for i in range(10)] + ["casa"],
            version=3,
        ).model_dump(mode="json")

        result = self._start(settings)

        pool = asyncio.run(self.storage.get_pool())
        assert pool.base_words == ["mar", "luz", "camino"]
        assert pool.version == 4
        # 11 comfortable words pass the threshold: 20 + round(11 * 0.85) + round(1 * 0.85)
        assert result.pool_size == 30
        # Mastered words leave the story pool, reinforced ones join it
        assert result.pool_words == ["luz", "camino", "sol"]

    def test_malformed_generation_stores_nothing(self, settings):
        self._add_profile()
        self.gemini.start_response = {"title": "No story"}

        with pytest.raises(MalformedGenerationResponse):
            self._start(settings)
        assert self.storage.stories == {}
        assert self.storage.pool is None

    def test_upstream_failure_propagates(self, settings):
        self._add_profile()
        self.gemini.fail_with = UpstreamServiceError("gemini", "bad request", upstream_status=400)

        with pytest.raises(UpstreamServiceError):
            self._start(settings)
        assert len(self.gemini.json_calls) == 1


class TestContinueStory:

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.gemini = FakeGemini(segment="A new segment.")

    def _continue(self, settings, segment_count, **fields):
        async def run():
            story = await _seed_story(self.storage, segment_count, **fields)
            coordinator = _coordinator(self.storage, self.gemini, settings)
            return await coordinator.continue_story(story.story_id)
        return asyncio.run(run())

    def test_appends_segment_and_turn_pair(self, settings):
        result = self._continue(settings, 3)

        story = asyncio.run(self.storage.get_story("story_test"))
        assert result.count_segment == 3
        assert result.new_segment == "A new segment."
        assert result.is_ended is False
        assert story.segment_count == 4
        assert len(story.story_context) == 8
        assert story.generation_status is False

    def test_chat_receives_stored_history(self, settings):
        self._continue(settings, 2)
        call = self.gemini.chat_calls[0]
        assert len(call["history"]) == 4
        assert call["temperature"] == settings.story_continue_temperature

    @pytest.mark.parametrize("count,marker", [
        (5, "Rising Action part, which will be told in 40 segments"),
        (45, "Climax, which will be told in 5 segments"),
        (50, "Falling Action part, which will be told in 7 segments"),
        (57, "Resolution, which will be told in 4 segments"),
    ])
    def test_act_boundaries_issue_phase_prompts(self, settings, count, marker):
        self._continue(settings, count)
        assert marker in self.gemini.chat_calls[0]["prompt"]

    @pytest.mark.parametrize("count", [1, 4, 6, 44, 46, 56, 59])
    def test_other_counts_continue(self, settings, count):
        self._continue(settings, count)
        assert self.gemini.chat_calls[0]["prompt"] == get_continue_prompt(settings.foreign_language)

    @pytest.mark.parametrize("count,act", [
        (5, "rising_action"),
        (20, "rising_action"),
        (47, "climax"),
        (60, "resolution"),
    ])
    def test_segment_logged_with_current_act(self, settings, count, act):
        event_logger = mock.MagicMock()

        async def run():
            story = await _seed_story(self.storage, count)
            coordinator = StoryCoordinator(self.storage, self.gemini, settings, logger=event_logger)
            await coordinator.continue_story(story.story_id)

        asyncio.run(run())
        event_logger.segment_generated.assert_called_once_with("story_test", count, act, "A new segment.")

    def test_terminal_generation_ends_story(self, settings):
        result = self._continue(settings, 60)

        story = asyncio.run(self.storage.get_story("story_test"))
        assert self.gemini.chat_calls[0]["prompt"] == get_terminal_prompt()
        assert result.is_ended is True
        assert story.ended is True
        assert story.segment_count == 61

    def test_ended_story_refused(self, settings):
        with pytest.raises(StoryEndedError):
            self._continue(settings, 61, ended=True)
        assert self.gemini.chat_calls == []

    def test_unknown_story(self, settings):
        coordinator = _coordinator(self.storage, self.gemini, settings)
        with pytest.raises(StoryNotFoundError):
            asyncio.run(coordinator.continue_story("story_missing"))

    def test_story_already_generating(self, settings):
        with pytest.raises(AlreadyGeneratingError):
            self._continue(settings, 3, generation_status=True)
        assert self.gemini.chat_calls == []

    def test_concurrent_continuations_generate_once(self, settings):
        async def run():
            story = await _seed_story(self.storage, 3)
            coordinator = _coordinator(self.storage, self.gemini, settings)
            return await asyncio.gather(
                coordinator.continue_story(story.story_id),
                coordinator.continue_story(story.story_id),
                return_exceptions=True,
            )

        results = asyncio.run(run())

        errors = [r for r in results if isinstance(r, Exception)]
        assert len(errors) == 1
        assert isinstance(errors[0], AlreadyGeneratingError)
        assert len(self.gemini.chat_calls) == 1
        story = asyncio.run(self.storage.get_story("story_test"))
        assert story.segment_count == 4
        assert story.generation_status is False

    def test_generation_failure_releases_flag(self, settings):
        self.gemini.fail_with = UpstreamServiceError("gemini", "down", upstream_status=503, transient=True)

        with pytest.raises(UpstreamServiceError):
            self._continue(settings, 3)

        story = asyncio.run(self.storage.get_story("story_test"))
        assert story.generation_status is False
        assert story.segment_count == 3
        assert self.storage.release_calls == ["story_test"]
        # Transient errors are retried up to the configured attempts
        assert len(self.gemini.chat_calls) == settings.retry_max_attempts

    def test_retry_after_failure_succeeds(self, settings):
        self.gemini.fail_with = UpstreamServiceError("gemini", "bad", upstream_status=400)
        with pytest.raises(UpstreamServiceError):
            self._continue(settings, 3)

        self.gemini.fail_with = None
        coordinator = _coordinator(self.storage, self.gemini, settings)
        result = asyncio.run(coordinator.continue_story("story_test"))
        assert result.count_segment == 3


class TestReads:

    def test_get_story(self, storage, gemini, settings):
        asyncio.run(_seed_story(storage, 2))
        story = asyncio.run(_coordinator(storage, gemini, settings).get_story("story_test"))
        assert story.segment_count == 2

    def test_get_unknown_story(self, storage, gemini, settings):
        with pytest.raises(StoryNotFoundError) as exc_info:
            asyncio.run(_coordinator(storage, gemini, settings).get_story("story_missing"))
        assert exc_info.value.status_code == 404

    def test_list_preferences(self, storage, gemini, settings):
        asyncio.run(storage.insert_profile(make_profile("E1", name="Arrival")))
        preferences = asyncio.run(_coordinator(storage, gemini, settings).list_preferences())
        assert [p.name for p in preferences] == ["Arrival"]
        assert preferences[0].type == "movie"


class TestTranslateSegment:

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.gemini = FakeGemini()
        asyncio.run(_seed_story(self.storage, 3))

    def _translate(self, settings, story_id="story_test", index=1, segment="segment 2"):
        coordinator = _coordinator(self.storage, self.gemini, settings)
        return asyncio.run(coordinator.translate_segment(story_id, index, segment))

    def test_translation_generated_and_stored(self, settings):
        assert self._translate(settings) == "[...] house [...]"
        assert self.storage.stories["story_test"]["translations"] == {"1": "[...] house [...]"}
        assert "segment 2" in self.gemini.text_calls[0]

    def test_translation_memoized(self, settings):
        self._translate(settings)
        self.gemini.translation = "something else"
        assert self._translate(settings) == "[...] house [...]"
        assert len(self.gemini.text_calls) == 1

    def test_stored_segment_is_translated(self, settings):
        self._translate(settings, segment="client copy")
        assert "segment 2" in self.gemini.text_calls[0]
        assert "client copy" not in self.gemini.text_calls[0]

    @pytest.mark.parametrize("story_id,index,segment", [
        (None, 0, "text"),
        ("story_test", None, "text"),
        ("story_test", 0, ""),
    ])
    def test_missing_fields(self, settings, story_id, index, segment):
        with pytest.raises(InputValidationError):
            self._translate(settings, story_id, index, segment)

    @pytest.mark.parametrize("index", [-1, 3])
    def test_index_out_of_range(self, settings, index):
        with pytest.raises(InputValidationError):
            self._translate(settings, index=index)

    def test_unknown_story(self, settings):
        with pytest.raises(StoryNotFoundError):
            self._translate(settings, story_id="story_missing")


class TestMoveWords:

    def test_move_commits_new_version(self, storage, gemini, settings):
        storage.pool = VocabularyPool(base_words=["casa", "luz"], version=2).model_dump(mode="json")
        pool = asyncio.run(_coordinator(storage, gemini, settings).move_words(["casa"], WordTier.GETTING_USED))
        assert pool.base_words == ["luz"]
        assert pool.getting_used_words == ["casa"]
        assert pool.version == 3

    def test_nothing_selected(self, storage, gemini, settings):
        with pytest.raises(InputValidationError):
            asyncio.run(_coordinator(storage, gemini, settings).move_words(["", None], WordTier.BASE))
