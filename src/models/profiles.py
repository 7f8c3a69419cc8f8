"""
Narrative Profile Models for Storystone

One NarrativeProfile is stored per liked entity (movie, TV show, book):
- EntitySummary: the entity card shown on the preferences page
- NarrativeTags: tags bucketed by narrative role (plot, characters, setting...)
- NarrativeProfile: entity + raw tags + narrative buckets, immutable once stored

NarrativeDirective is the merged/sampled bucket map that seeds a story.
"""

from pydantic import BaseModel, Field, model_validator
from typing import List, Dict, Optional, Any
from datetime import datetime, timezone


# ============================================================================
# Narrative buckets
# ============================================================================

# Every bucket is always present on NarrativeTags / NarrativeDirective
NARRATIVE_BUCKETS = (
    "audience",
    "characters",
    "characters_archetype",
    "characters_description",
    "characters_elements",
    "characters_related_nouns",
    "characters_relationship",
    "characters_role",
    "plot_archetype",
    "plot_description",
    "settings_description",
    "settings_places",
    "settings_styles",
    "settings_time",
    "story_genre",
    "story_pace",
    "story_style",
    "story_subgenre",
    "story_theme",
    "story_tone",
    "story_topic",
)


class StoryDestination(BaseModel):
    """Destination flavour taken from a cross-domain destination entity"""
    destinations: List[str] = Field(default_factory=list)
    characteristic: List[str] = Field(default_factory=list)

    def is_complete(self) -> bool:
        return bool(self.destinations) and bool(self.characteristic)


class NarrativeTags(BaseModel):
    """
    Tags bucketed by narrative role.

    All 21 buckets exist as lists even when empty, so consumers never
    special-case a missing key. Unknown keys in stored data are ignored.
    """
    audience: List[str] = Field(default_factory=list)
    characters: List[str] = Field(default_factory=list)
    characters_archetype: List[str] = Field(default_factory=list)
    characters_description: List[str] = Field(default_factory=list)
    characters_elements: List[str] = Field(default_factory=list)
    characters_related_nouns: List[str] = Field(default_factory=list)
    characters_relationship: List[str] = Field(default_factory=list)
    characters_role: List[str] = Field(default_factory=list)
    plot_archetype: List[str] = Field(default_factory=list)
    plot_description: List[str] = Field(default_factory=list)
    settings_description: List[str] = Field(default_factory=list)
    settings_places: List[str] = Field(default_factory=list)
    settings_styles: List[str] = Field(default_factory=list)
    settings_time: List[str] = Field(default_factory=list)
    story_genre: List[str] = Field(default_factory=list)
    story_pace: List[str] = Field(default_factory=list)
    story_style: List[str] = Field(default_factory=list)
    story_subgenre: List[str] = Field(default_factory=list)
    story_theme: List[str] = Field(default_factory=list)
    story_tone: List[str] = Field(default_factory=list)
    story_topic: List[str] = Field(default_factory=list)
    story_destination: StoryDestination = Field(default_factory=StoryDestination)

    model_config = {"extra": "ignore"}

    @model_validator(mode="before")
    @classmethod
    def _none_to_empty(cls, data: Any) -> Any:
        # Firebase drops empty lists, and older rows may hold nulls
        if isinstance(data, dict):
            data = dict(data)
            for bucket in NARRATIVE_BUCKETS:
                if data.get(bucket) is None:
                    data[bucket] = []
            if data.get("story_destination") is None:
                data["story_destination"] = {}
        return data

    def bucket(self, name: str) -> List[str]:
        return getattr(self, name)

    def buckets(self) -> Dict[str, List[str]]:
        return {name: list(getattr(self, name)) for name in NARRATIVE_BUCKETS}


class NarrativeDirective(NarrativeTags):
    """
    Sampled, merged buckets used to seed one story (at most a handful per bucket).

    Stored embedded in Story.story_components.
    """

    def first(self, bucket: str, default: str = "undefined") -> str:
        """First sampled value of a bucket, or the placeholder the prompts expect"""
        values = self.bucket(bucket)
        return values[0] if values else default


# ============================================================================
# Entity / profile
# ============================================================================

class EntitySummary(BaseModel):
    """Entity card stored with a profile (and returned by search)"""
    entity_id: str
    name: str
    image_url: Optional[str] = None
    type: str = "N/A"
    release_year: Optional[Any] = None
    description: Optional[str] = None
    short_description: Optional[str] = None


class NarrativeProfile(BaseModel):
    """
    Narrative taste derived from one liked entity.

    Keyed by entity_id; inserting a second profile for the same entity is
    a DuplicateEntityError. There is no update path.
    """
    entity: EntitySummary
    raw_narrative_tags: List[Dict[str, str]] = Field(
        default_factory=list,
        description="Tag records keyed by taxonomy path, e.g. {'urn:tag:plot:qloo': 'Heist'}"
    )
    raw_recommended_tags: List[List[Dict[str, str]]] = Field(
        default_factory=list,
        description="Tag groups of recommended books/movies, kept for future tailoring"
    )
    narrative: NarrativeTags = Field(default_factory=NarrativeTags)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def entity_id(self) -> str:
        return self.entity.entity_id
