"""
Pydantic data models for Storystone

Stories, the vocabulary pool and the JSON request/response shapes of the API.
Wire field names (storyId, segmentIndex, selectedWords...) are kept exactly as
the web client sends and reads them.
"""

from pydantic import BaseModel, Field, field_validator
from typing import List, Optional, Dict, Literal, Any
from datetime import datetime, timezone
from enum import Enum
import uuid

from src.models.profiles import NarrativeDirective, EntitySummary
from src.config.limits import SEGMENT_MAX_LENGTH


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Enums
# ============================================================================

class WordTier(str, Enum):
    """Vocabulary mastery tiers (values are the stored column names)"""
    BASE = "base_words"                   # New candidates
    GETTING_USED = "getting_used_words"   # Seen in stories, being reinforced
    COMFORTABLE = "comfortable_words"     # Mastered

    @property
    def display_name(self) -> str:
        return {
            WordTier.BASE: "Base",
            WordTier.GETTING_USED: "Familiar",
            WordTier.COMFORTABLE: "Learned",
        }[self]


# ============================================================================
# Vocabulary
# ============================================================================

class VocabularyPool(BaseModel):
    """
    Singleton vocabulary pool for the configured language pair.

    The three tiers are pairwise disjoint (case-insensitive) at rest.
    `version` increases on every committed write.
    """
    base_words: List[str] = Field(default_factory=list)
    getting_used_words: List[str] = Field(default_factory=list)
    comfortable_words: List[str] = Field(default_factory=list)
    version: int = 0
    updated_at: Optional[datetime] = None

    @field_validator("base_words", "getting_used_words", "comfortable_words", mode="before")
    @classmethod
    def _none_to_list(cls, value):
        return value or []

    def tier(self, tier: WordTier) -> List[str]:
        return getattr(self, tier.value)


# ============================================================================
# Story
# ============================================================================

class TurnPart(BaseModel):
    text: str


class StoryTurn(BaseModel):
    """One turn of model chat history (Gemini content shape)"""
    role: Literal["user", "model"]
    parts: List[TurnPart]

    @classmethod
    def of(cls, role: str, text: str) -> "StoryTurn":
        return cls(role=role, parts=[TurnPart(text=text)])

    @property
    def text(self) -> str:
        return "".join(part.text for part in self.parts)


class Story(BaseModel):
    """
    A serialized novel.

    Every generated segment adds one user/model turn pair to story_context,
    so len(story_context) == 2 * len(segments).
    """
    story_id: str = Field(default_factory=lambda: f"story_{uuid.uuid4().hex[:16]}")
    title: str
    segments: List[str] = Field(default_factory=list)
    story_context: List[StoryTurn] = Field(default_factory=list)
    story_components: NarrativeDirective = Field(default_factory=NarrativeDirective)
    pool_words: List[str] = Field(default_factory=list)
    translations: Dict[str, str] = Field(
        default_factory=dict,
        description="Translated text keyed by segment index (string keys for Firebase)"
    )
    generation_status: bool = False
    ended: bool = False
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("segments", "story_context", "pool_words", mode="before")
    @classmethod
    def _none_to_list(cls, value):
        return value or []

    @field_validator("translations", mode="before")
    @classmethod
    def _translations_to_dict(cls, value):
        # Firebase turns dicts with dense integer keys into lists
        if not value:
            return {}
        if isinstance(value, list):
            return {str(i): text for i, text in enumerate(value) if text is not None}
        return {str(k): v for k, v in value.items()}

    @property
    def segment_count(self) -> int:
        return len(self.segments)


# ============================================================================
# API request/response models
# ============================================================================

class EntitySearchResult(BaseModel):
    """Search hit returned by GET /api/entities"""
    id: str
    name: str
    image_url: str
    type: str = "N/A"
    release_year: Optional[Any] = None


class AddEntityRequest(BaseModel):
    id: Optional[str] = None


class StoryStatusResponse(BaseModel):
    segments: List[str]
    title: str
    is_generating: bool
    is_ended: bool


class StorySummary(BaseModel):
    title: str
    story_id: str
    ended: bool


class StartStoryResult(BaseModel):
    story_id: str
    title: str
    pool_words: List[str]
    pool_size: int


class ContinueStoryResult(BaseModel):
    count_segment: int = Field(description="Segment count before this generation")
    new_segment: str
    is_ended: bool


class TranslationRequest(BaseModel):
    segment: Optional[str] = Field(default=None, max_length=SEGMENT_MAX_LENGTH)
    segmentIndex: Optional[int] = None
    storyId: Optional[str] = None


class SelectedWord(BaseModel):
    """A word picked on the words page; id is '<index>-<tier column>'"""
    id: str
    value: str


class MoveWordsRequest(BaseModel):
    selectedWords: Optional[List[SelectedWord]] = None
    target: Optional[str] = None


class WordsResponse(BaseModel):
    base: List[str]
    getting: List[str]
    comfortab: List[str]

    @classmethod
    def from_pool(cls, pool: Optional[VocabularyPool]) -> "WordsResponse":
        if pool is None:
            return cls(base=[], getting=[], comfortab=[])
        return cls(
            base=pool.base_words,
            getting=pool.getting_used_words,
            comfortab=pool.comfortable_words,
        )


class PreferenceItem(BaseModel):
    name: str
    type: str
    image_url: Optional[str] = None
    release_year: Optional[Any] = None

    @classmethod
    def from_entity(cls, entity: EntitySummary) -> "PreferenceItem":
        return cls(
            name=entity.name,
            type=entity.type,
            image_url=entity.image_url,
            release_year=entity.release_year,
        )
