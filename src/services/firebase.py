"""
Firebase service for Storystone

Handles all Firebase Realtime Database operations for narrative profiles,
the vocabulary pool and stories.

Layout:
    profiles/{entity_id}     NarrativeProfile (insert-only)
    pool                     VocabularyPool singleton
    stories/{story_id}       Story
    story_index/{story_id}   {title, ended, created_at} for the stories list

Every read-modify-write goes through `ref.transaction()`. The update
functions are module-level and pure so they can be tested without a
database; raising inside one aborts the transaction and the exception
reaches the caller unchanged.
"""

import asyncio
import logging
import os
import re
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import firebase_admin
from firebase_admin import credentials, db
from firebase_admin import exceptions as firebase_exceptions

from src.models import NarrativeProfile, Story, StorySummary, StoryTurn, VocabularyPool
from src.services.errors import (
    AlreadyGeneratingError,
    DuplicateEntityError,
    PersistenceError,
    StoryEndedError,
    StoryNotFoundError,
)
from src.services.vocabulary import find_overlaps

logger = logging.getLogger(__name__)

PoolMutation = Callable[[Optional[VocabularyPool]], VocabularyPool]


def sanitize_firebase_key(key: str) -> str:
    """
    Sanitize a string to be a valid Firebase Realtime Database key.
    Firebase keys cannot contain: . $ # [ ] /
    """
    if not isinstance(key, str):
        return str(key)
    return re.sub(r'[.$#\[\]/]', '_', key)


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# =========================================================================
# TRANSACTION UPDATE FUNCTIONS
# =========================================================================

def insert_profile_update(current: Optional[Dict], profile_data: Dict[str, Any], entity_id: str) -> Dict[str, Any]:
    """Write the profile only if the entity has none yet"""
    if current is not None:
        raise DuplicateEntityError(entity_id)
    return profile_data


def pool_update(current: Optional[Dict], mutate: PoolMutation) -> Dict[str, Any]:
    """
    Apply a pure pool mutation and bump the version.

    Overlapping tiers are logged; the write still happens so a user move can
    repair them.
    """
    pool = VocabularyPool(**current) if current else None
    updated = mutate(pool)
    updated = updated.model_copy(update={
        "version": (pool.version if pool else 0) + 1,
        "updated_at": datetime.now(timezone.utc),
    })
    overlaps = find_overlaps(updated)
    if overlaps:
        logger.warning(f"⚠️ Vocabulary tiers overlap after update: {overlaps}")
    return updated.model_dump(mode="json")


def claim_generation_update(current: Optional[Dict], story_id: str) -> Dict[str, Any]:
    """
    Set generation_status only when it is false.

    Raises:
        StoryNotFoundError: no story at the path
        StoryEndedError: the story already has its final segment
        AlreadyGeneratingError: another continuation holds the flag
    """
    if current is None:
        raise StoryNotFoundError(story_id)
    if current.get("ended"):
        raise StoryEndedError(story_id)
    if current.get("generation_status"):
        raise AlreadyGeneratingError(story_id)
    claimed = dict(current)
    claimed["generation_status"] = True
    claimed["updated_at"] = _utcnow_iso()
    return claimed


def append_segment_update(
    current: Optional[Dict],
    story_id: str,
    prompt: str,
    segment: str,
    ended: bool,
) -> Dict[str, Any]:
    """
    Append one segment with its user/model turn pair and clear the flag.

    The segment count and history length move together in this single write.
    """
    if current is None:
        raise StoryNotFoundError(story_id)
    story = Story(**current)
    story.segments.append(segment)
    story.story_context.extend([StoryTurn.of("user", prompt), StoryTurn.of("model", segment)])
    story.generation_status = False
    story.ended = story.ended or ended
    story.updated_at = datetime.now(timezone.utc)
    return story.model_dump(mode="json")


def release_generation_update(current: Optional[Dict], story_id: str) -> Dict[str, Any]:
    """Clear the generation flag after a failed continuation"""
    if current is None:
        raise StoryNotFoundError(story_id)
    released = dict(current)
    released["generation_status"] = False
    return released


# =========================================================================
# SERVICE
# =========================================================================

class FirebaseService:
    """Service for Firebase Realtime Database operations"""

    def __init__(self, database_url: str, credentials_dict: Optional[Dict[str, Any]] = None,
                 credentials_path: Optional[str] = None, logger=None):
        """
        Initialize Firebase service.

        Args:
            database_url: Firebase Realtime Database URL
            credentials_dict: Optional dict with Firebase credentials (project_id, client_email, private_key)
            credentials_path: Optional path to Firebase service account JSON
            logger: Optional StorystoneLogger for storage debug logging
        """
        self.database_url = database_url
        self.credentials_dict = credentials_dict
        self.credentials_path = credentials_path
        self.logger = logger
        self._initialized = False
        # firebase_admin is synchronous
        self._executor = ThreadPoolExecutor(max_workers=10, thread_name_prefix="firebase")

    async def _run_sync(self, operation: str, path: str, func, *args, **kwargs):
        """
        Run a synchronous Firebase call in the thread pool.

        SDK failures become PersistenceError; pipeline errors raised inside
        transaction functions pass through.
        """
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(self._executor, lambda: func(*args, **kwargs))
        except (firebase_exceptions.FirebaseError, db.TransactionAbortedError, ValueError) as e:
            logger.error(f"❌ Firebase {operation} failed for {path}: {e}")
            raise PersistenceError(operation, path, e)

    def shutdown(self):
        """Shutdown the thread pool executor. Call during app shutdown."""
        if self._executor:
            self._executor.shutdown(wait=True)
            self._executor = None

    def initialize(self):
        """Initialize Firebase app (call once at startup)"""
        if self._initialized:
            return

        try:
            firebase_admin.get_app()
            logger.info("   Firebase app already initialized")
        except ValueError:
            if self.credentials_dict:
                logger.info("   Initializing Firebase with credentials from environment variables")
                cred = credentials.Certificate(self.credentials_dict)
            elif self.credentials_path and os.path.exists(self.credentials_path):
                logger.info("   Initializing Firebase with credentials file: [REDACTED]")
                cred = credentials.Certificate(self.credentials_path)
            else:
                logger.info("   Initializing Firebase with Application Default Credentials")
                cred = credentials.ApplicationDefault()

            firebase_admin.initialize_app(cred, {
                'databaseURL': self.database_url
            })

        self._initialized = True
        self.db = db.reference()

    def _log_write(self, operation: str, path: str, summary: str, data: Any, start_time: float):
        if self.logger:
            self.logger.storage_operation(
                operation=operation,
                path=path,
                data_summary=summary,
                size_bytes=len(str(data)) if data else 0,
                duration=time.time() - start_time
            )

    def _log_read(self, path: str, summary: str, data: Any, start_time: float):
        if self.logger:
            self.logger.storage_read(
                path=path,
                result_summary=summary,
                size_bytes=len(str(data)) if data else 0,
                duration=time.time() - start_time
            )

    # Profile Operations

    async def insert_profile(self, profile: NarrativeProfile) -> NarrativeProfile:
        """
        Store a narrative profile keyed by its entity id.

        Raises:
            DuplicateEntityError: the entity already has a profile
        """
        start_time = time.time()
        path = f"profiles/{sanitize_firebase_key(profile.entity_id)}"
        profile_data = profile.model_dump(mode='json')

        def _sync_insert():
            return self.db.child(path).transaction(
                lambda current: insert_profile_update(current, profile_data, profile.entity_id)
            )

        await self._run_sync("insert", path, _sync_insert)
        self._log_write("transaction", path, f"Profile: {profile.entity.name}", profile_data, start_time)
        return profile

    async def list_profiles(self) -> List[NarrativeProfile]:
        """All stored narrative profiles; unreadable rows are skipped"""
        start_time = time.time()
        data = await self._run_sync("read", "profiles", lambda: self.db.child('profiles').get())
        self._log_read("profiles", f"{len(data) if data else 0} profiles", data, start_time)

        if not data:
            return []

        profiles = []
        for key, profile_data in data.items():
            try:
                profiles.append(NarrativeProfile(**profile_data))
            except (TypeError, ValueError) as e:
                logger.warning(f"⚠️ Failed to parse profile {key}: {e}")
        return profiles

    # Vocabulary Pool Operations

    async def get_pool(self) -> Optional[VocabularyPool]:
        start_time = time.time()
        data = await self._run_sync("read", "pool", lambda: self.db.child('pool').get())
        self._log_read("pool", "Pool found" if data else "No pool yet", data, start_time)
        return VocabularyPool(**data) if data else None

    async def update_pool(self, mutate: PoolMutation) -> VocabularyPool:
        """
        Apply a pure pool mutation as one transaction.

        Args:
            mutate: Function from the current pool (None before the first
                story) to the new pool

        Returns:
            The committed pool
        """
        start_time = time.time()

        def _sync_update():
            return self.db.child('pool').transaction(lambda current: pool_update(current, mutate))

        data = await self._run_sync("transaction", "pool", _sync_update)
        pool = VocabularyPool(**data)
        self._log_write("transaction", "pool", f"Pool v{pool.version}", data, start_time)
        return pool

    # Story Operations

    async def create_story(self, story: Story) -> Story:
        start_time = time.time()
        story_data = story.model_dump(mode='json')
        index_data = {
            "title": story.title,
            "ended": story.ended,
            "created_at": story_data["created_at"],
        }

        def _sync_create():
            self.db.update({
                f"stories/{story.story_id}": story_data,
                f"story_index/{story.story_id}": index_data,
            })

        await self._run_sync("set", f"stories/{story.story_id}", _sync_create)
        self._log_write("set", f"stories/{story.story_id}", f"Story: {story.title}", story_data, start_time)
        return story

    async def get_story(self, story_id: str) -> Optional[Story]:
        start_time = time.time()
        path = f"stories/{sanitize_firebase_key(story_id)}"
        data = await self._run_sync("read", path, lambda: self.db.child(path).get())
        self._log_read(path, "Story found" if data else "Story not found", data, start_time)
        return Story(**data) if data else None

    async def list_stories(self) -> List[StorySummary]:
        """Story summaries, oldest first"""
        start_time = time.time()
        data = await self._run_sync("read", "story_index", lambda: self.db.child('story_index').get())
        self._log_read("story_index", f"{len(data) if data else 0} stories", data, start_time)

        if not data:
            return []

        rows = sorted(data.items(), key=lambda item: item[1].get("created_at") or "")
        return [
            StorySummary(title=row.get("title", ""), story_id=story_id, ended=bool(row.get("ended")))
            for story_id, row in rows
        ]

    async def claim_generation(self, story_id: str) -> Story:
        """
        Atomically take the story's generation flag.

        Returns:
            The story as claimed

        Raises:
            StoryNotFoundError, StoryEndedError, AlreadyGeneratingError
        """
        start_time = time.time()
        path = f"stories/{sanitize_firebase_key(story_id)}"

        def _sync_claim():
            return self.db.child(path).transaction(lambda current: claim_generation_update(current, story_id))

        data = await self._run_sync("claim", path, _sync_claim)
        self._log_write("transaction", path, "Generation claimed", None, start_time)
        return Story(**data)

    async def append_segment(self, story_id: str, prompt: str, segment: str, ended: bool) -> Story:
        """Append a segment + turn pair, clear the flag and set `ended` in one transaction"""
        start_time = time.time()
        path = f"stories/{sanitize_firebase_key(story_id)}"

        def _sync_append():
            return self.db.child(path).transaction(
                lambda current: append_segment_update(current, story_id, prompt, segment, ended)
            )

        data = await self._run_sync("append", path, _sync_append)
        story = Story(**data)
        if story.ended:
            await self._run_sync(
                "set", f"story_index/{story_id}/ended",
                lambda: self.db.child(f"story_index/{sanitize_firebase_key(story_id)}/ended").set(True)
            )
        self._log_write("transaction", path, f"Segment {story.segment_count} appended", segment, start_time)
        return story

    async def release_generation(self, story_id: str) -> None:
        start_time = time.time()
        path = f"stories/{sanitize_firebase_key(story_id)}"

        def _sync_release():
            return self.db.child(path).transaction(lambda current: release_generation_update(current, story_id))

        await self._run_sync("release", path, _sync_release)
        self._log_write("transaction", path, "Generation released", None, start_time)

    async def save_translation(self, story_id: str, index: int, translation: str) -> None:
        start_time = time.time()
        path = f"stories/{sanitize_firebase_key(story_id)}/translations/{index}"
        await self._run_sync("set", path, lambda: self.db.child(path).set(translation))
        self._log_write("set", path, f"Translation of segment {index}", translation, start_time)
