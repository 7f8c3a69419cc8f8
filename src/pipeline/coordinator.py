"""
Story Coordinator - orchestrates story generation

Start: profiles -> directive -> pool quota -> first segment (title + pool
words) -> story pool shaping -> persist story -> reconcile vocabulary pool.

Continue: claim the story's generation flag -> phase instruction from the
arc -> chat over the stored history -> append segment + turn pair and
release the flag in one write. Any failure after the claim releases the
flag before the error propagates.
"""

import logging
import random
import time
from typing import Iterable, List, Optional

from src.config.settings import Settings
from src.models import (
    ContinueStoryResult,
    NarrativeProfile,
    PreferenceItem,
    StartStoryResult,
    Story,
    StorySummary,
    StoryTurn,
    VocabularyPool,
    WordTier,
)
from src.prompts.story import (
    STORY_RESPONSE_SCHEMA,
    get_phase_prompt,
    get_seeded_user_turn,
    get_story_start_prompt,
    get_translation_prompt,
)
from src.services.errors import InputValidationError, StoryNotFoundError
from src.services.gemini import GeminiService
from src.services.logger import get_logger
from src.services.profile_sampler import build_directive
from src.services.retry import RetryPolicy, execute_with_retry
from src.services.story_arc import ArcPhase, StoryArc
from src.services.validation_service import parse_story_start_response
from src.services.vocabulary import compute_pool_size, move_words, reconcile, shape_story_pool

logger = logging.getLogger(__name__)


class StoryCoordinator:
    """
    Coordinates profile sampling, generation and persistence for stories.

    All storage goes through `storage` (FirebaseService in production, an
    in-memory fake in tests); all text generation through `gemini`.
    """

    def __init__(
        self,
        storage,
        gemini: GeminiService,
        settings: Settings,
        rng: Optional[random.Random] = None,
        logger=None,
    ):
        """
        Initialize the coordinator.

        Args:
            storage: Storage service instance
            gemini: Generation service
            settings: Application settings (language pair, arc, temperatures)
            rng: Optional random source for profile sampling
            logger: Optional StorystoneLogger
        """
        self.storage = storage
        self.gemini = gemini
        self.settings = settings
        self.rng = rng
        self.logger = logger if logger else get_logger()
        self.arc = StoryArc(settings.story_act_lengths)
        self.retry_policy = RetryPolicy(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay_seconds,
            max_delay=settings.retry_max_delay_seconds,
        )

    async def _generate(self, func, *args, **kwargs):
        return await execute_with_retry(func, *args, policy=self.retry_policy, service="gemini", **kwargs)

    # =========================================================================
    # STORY START
    # =========================================================================

    async def start_story(self) -> Optional[StartStoryResult]:
        """
        Create a new story from the stored narrative profiles.

        Returns:
            The new story's id/title/pool, or None when no profiles exist yet

        Raises:
            UpstreamServiceError / MalformedGenerationResponse: generation failed
            PersistenceError: storage failed
        """
        start_time = time.time()
        self.logger.job_received("start_story", "new")

        profiles: List[NarrativeProfile] = await self.storage.list_profiles()
        directive = build_directive(profiles, rng=self.rng)
        if directive is None:
            logger.info("⏸️ No narrative profiles yet; story start skipped")
            return None

        pool = await self.storage.get_pool()
        pool_size = compute_pool_size(pool, self.settings.default_pool_size)
        exposition_segments = self.settings.story_act_lengths[0]

        prompt = get_story_start_prompt(
            directive,
            language=self.settings.story_language,
            foreign_language=self.settings.foreign_language,
            pool_size=pool_size,
            word_type=self.settings.word_type,
            exposition_segments=exposition_segments,
        )

        try:
            raw = await self._generate(
                self.gemini.generate_json,
                prompt,
                STORY_RESPONSE_SCHEMA,
                self.settings.story_start_temperature,
            )
            payload = parse_story_start_response(raw)
        except Exception as e:
            self.logger.job_failed("start_story", "new", str(e))
            raise

        pool_words = shape_story_pool(payload.pool_words, pool)
        seeded_turn = get_seeded_user_turn(
            directive,
            language=self.settings.story_language,
            foreign_language=self.settings.foreign_language,
            pool_words=pool_words,
            exposition_segments=exposition_segments,
        )

        story = Story(
            title=payload.title,
            segments=[payload.story],
            story_context=[StoryTurn.of("user", seeded_turn), StoryTurn.of("model", payload.story)],
            story_components=directive,
            pool_words=pool_words,
        )
        await self.storage.create_story(story)

        new_pool = await self.storage.update_pool(lambda current: reconcile(current, payload.pool_words))
        logger.info(
            f"📚 Pool reconciled to v{new_pool.version}: {len(new_pool.base_words)} base, "
            f"{len(new_pool.getting_used_words)} getting used, {len(new_pool.comfortable_words)} comfortable"
        )

        self.logger.segment_generated(story.story_id, 0, ArcPhase.EXPOSITION.value, payload.story)
        self.logger.job_completed("start_story", story.story_id, time.time() - start_time)

        return StartStoryResult(
            story_id=story.story_id,
            title=story.title,
            pool_words=pool_words,
            pool_size=pool_size,
        )

    # =========================================================================
    # CONTINUATION
    # =========================================================================

    async def continue_story(self, story_id: str) -> ContinueStoryResult:
        """
        Generate the next segment of a story.

        Raises:
            StoryNotFoundError: unknown story
            StoryEndedError: the story already has its final segment
            AlreadyGeneratingError: another continuation is in flight
            UpstreamServiceError: generation failed (the flag is released)
        """
        start_time = time.time()
        self.logger.job_received("continue_story", story_id)

        story = await self.storage.claim_generation(story_id)

        try:
            count = story.segment_count
            phase = self.arc.next_phase(count)
            prompt = get_phase_prompt(
                phase,
                story.story_components,
                self.settings.foreign_language,
                self.settings.story_act_lengths,
            )
            segment = await self._generate(
                self.gemini.continue_chat,
                story.story_context,
                prompt,
                self.settings.story_continue_temperature,
            )
            ended = self.arc.is_final_generation(count)
            updated = await self.storage.append_segment(story_id, prompt, segment, ended)
        except Exception as e:
            await self._release_after_failure(story_id, e)
            self.logger.job_failed("continue_story", story_id, str(e))
            raise

        self.logger.segment_generated(story_id, count, self.arc.act_for(count).value, segment)
        self.logger.job_completed("continue_story", story_id, time.time() - start_time)
        if updated.ended:
            logger.info(f"🏁 Story {story_id} ended at {updated.segment_count} segments")

        return ContinueStoryResult(count_segment=count, new_segment=segment, is_ended=updated.ended)

    async def _release_after_failure(self, story_id: str, error: Exception):
        try:
            await self.storage.release_generation(story_id)
            logger.warning(f"🔓 Released generation flag of {story_id} after failure: {error}")
        except Exception as release_error:
            # The original error is the one the caller needs
            logger.error(f"❌ Could not release generation flag of {story_id}: {release_error}")

    # =========================================================================
    # READS
    # =========================================================================

    async def get_story(self, story_id: str) -> Story:
        story = await self.storage.get_story(story_id)
        if story is None:
            raise StoryNotFoundError(story_id)
        return story

    async def list_stories(self) -> List[StorySummary]:
        return await self.storage.list_stories()

    async def list_preferences(self) -> List[PreferenceItem]:
        profiles = await self.storage.list_profiles()
        return [PreferenceItem.from_entity(profile.entity) for profile in profiles]

    async def get_pool(self) -> Optional[VocabularyPool]:
        return await self.storage.get_pool()

    # =========================================================================
    # TRANSLATION
    # =========================================================================

    async def translate_segment(self, story_id: Optional[str], index: Optional[int], segment: Optional[str]) -> str:
        """
        Translation aid for one segment, generated once and then memoized.

        Raises:
            InputValidationError: missing fields or index out of range
            StoryNotFoundError: unknown story
        """
        if not story_id or index is None or not segment:
            raise InputValidationError("segment, segmentIndex and storyId are required.")

        story = await self.get_story(story_id)
        if index < 0 or index >= story.segment_count:
            raise InputValidationError(f"Segment index {index} is out of range.")

        key = str(index)
        if key in story.translations:
            logger.info(f"♻️ Translation cache hit for {story_id}[{index}]")
            return story.translations[key]

        # The stored text is authoritative; the client copy only has to be present
        prompt = get_translation_prompt(
            story.segments[index], self.settings.story_language, self.settings.foreign_language
        )
        translation = await self._generate(
            self.gemini.generate_text, prompt, self.settings.translation_temperature
        )
        await self.storage.save_translation(story_id, index, translation)
        return translation

    # =========================================================================
    # VOCABULARY
    # =========================================================================

    async def move_words(self, selected: Iterable[str], target: WordTier) -> VocabularyPool:
        """Move words between tiers as one committed pool update"""
        selected = [word for word in selected if word]
        if not selected:
            raise InputValidationError("No words selected.")
        pool = await self.storage.update_pool(lambda current: move_words(current, selected, target))
        logger.info(f"🔀 Moved {len(selected)} words to {target.value} (pool v{pool.version})")
        return pool
