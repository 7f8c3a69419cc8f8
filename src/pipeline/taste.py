"""
Taste Profile Builder - liked entity to NarrativeProfile

Workflow for one entity id:
1. Fetch the entity card and its tags (streaming/wikipedia tags dropped)
2. Fetch the entity's affinity (insight) tags
3. Fetch one cross-domain recommendation per artist / movie / destination:
   - movie (and book) cross entities are kept as raw recommended tags
   - artist: music genres fill story_pace, affinity tags join the raw tags
   - destination: characteristic + destination genres fill story_destination
4. Map the direct tag types into buckets, then let the classifier sort the
   rest (its output is appended to the direct buckets)
5. Insert the profile (DuplicateEntityError when already stored)
"""

import logging
import time
from typing import Any, Dict, List, Optional, Tuple

from src.config.limits import (
    CROSS_DOMAIN_ENTITY_TYPES,
    CROSS_ENTITY_INSIGHT_TAG_TYPES,
    ENTITY_INSIGHT_TAG_TYPES,
    EXCLUDED_ENTITY_TAG_TYPES,
)
from src.models import NarrativeProfile, StoryDestination
from src.services.errors import InputValidationError
from src.services.logger import get_logger
from src.services.qloo import QlooClient, parse_entity_summary, tags_as_records
from src.services.tag_classifier import TagClassifierClient
from src.services.tag_normalizer import (
    CHARACTERISTIC_TAG,
    DESTINATION_GENRE_TAG,
    MUSIC_GENRE_TAG,
    apply_predictions,
    build_direct_narrative,
    filter_tag_values,
    normalize_tags,
)

logger = logging.getLogger(__name__)

RECOMMENDED_ENTITY_TYPES = ("urn:entity:book", "urn:entity:movie")
ARTIST_ENTITY_TYPE = "urn:entity:artist"
DESTINATION_ENTITY_TYPE = "urn:entity:destination"


class TasteProfileBuilder:
    """Builds and stores the narrative profile of a liked entity"""

    def __init__(self, storage, qloo: QlooClient, classifier: TagClassifierClient, logger=None):
        self.storage = storage
        self.qloo = qloo
        self.classifier = classifier
        self.logger = logger if logger else get_logger()

    async def _cross_domain_entities(self, entity_id: str) -> List[Dict[str, Any]]:
        """Top recommendation per cross-domain type, with its affinity tags"""
        cross_entities = []
        for entity_type in CROSS_DOMAIN_ENTITY_TYPES:
            entity = await self.qloo.get_cross_domain_entity(entity_id, entity_type)
            if entity is None:
                logger.info(f"   No {entity_type} recommendation for {entity_id}")
                continue
            affinity_tags = await self.qloo.get_insight_tags(entity["entity_id"], CROSS_ENTITY_INSIGHT_TAG_TYPES)
            cross_entities.append({
                "entity_type": entity.get("subtype"),
                "tags": tags_as_records(entity.get("tags") or [], "type"),
                "affinity_tags": affinity_tags,
            })
        return cross_entities

    def _fold_cross_entities(
        self,
        entity_tags: List[Dict[str, str]],
        cross_entities: List[Dict[str, Any]],
    ) -> Tuple[List[Dict[str, str]], List[List[Dict[str, str]]], List[str], Optional[StoryDestination]]:
        """
        Split cross-domain results into raw narrative tags, recommended tag
        groups, story pace and destination.
        """
        raw_narrative_tags = list(entity_tags)
        raw_recommended_tags: List[List[Dict[str, str]]] = []
        story_pace: List[str] = []
        destination: Optional[StoryDestination] = None

        for cross in cross_entities:
            entity_type = cross["entity_type"]
            if entity_type in RECOMMENDED_ENTITY_TYPES:
                raw_recommended_tags.append(cross["tags"])
                raw_recommended_tags.append(cross["affinity_tags"])
            elif entity_type == ARTIST_ENTITY_TYPE:
                story_pace = filter_tag_values(cross["tags"], MUSIC_GENRE_TAG)
                raw_narrative_tags = list(entity_tags) + cross["affinity_tags"]
            elif entity_type == DESTINATION_ENTITY_TYPE:
                destination = StoryDestination(
                    characteristic=filter_tag_values(cross["affinity_tags"], CHARACTERISTIC_TAG),
                    destinations=filter_tag_values(cross["tags"], DESTINATION_GENRE_TAG),
                )
            else:
                logger.warning(f"⚠️ Ignoring cross-domain entity of type {entity_type}")

        return raw_narrative_tags, raw_recommended_tags, story_pace, destination

    async def build_profile(self, entity_id: str) -> NarrativeProfile:
        """
        Build a profile without storing it.

        Raises:
            InputValidationError: empty entity id
            UpstreamServiceError: Qloo or classifier failure
        """
        if not entity_id or not str(entity_id).strip():
            raise InputValidationError("Invalid Qloo Entity ID provided.")
        entity_id = str(entity_id).strip()

        entity = await self.qloo.get_entity(entity_id)
        summary = parse_entity_summary(entity)

        selected_tags = [
            {tag["type"]: tag.get("name")}
            for tag in entity.get("tags") or []
            if tag.get("type") and tag["type"] not in EXCLUDED_ENTITY_TAG_TYPES
        ]
        affinity_tags = await self.qloo.get_insight_tags(entity_id, ENTITY_INSIGHT_TAG_TYPES)
        entity_tags = selected_tags + affinity_tags

        cross_entities = await self._cross_domain_entities(entity_id)
        raw_narrative_tags, raw_recommended_tags, story_pace, destination = self._fold_cross_entities(
            entity_tags, cross_entities
        )

        narrative = build_direct_narrative(raw_narrative_tags, story_pace, destination)

        classifier_input = normalize_tags(raw_narrative_tags)
        if classifier_input:
            predictions = await self.classifier.predict(classifier_input)
            narrative = apply_predictions(predictions, narrative)
            logger.info(f"🏷️ Classified {len(predictions)} tags for {summary.name}")
        else:
            logger.info(f"   No tags to classify for {summary.name}; using direct buckets only")

        return NarrativeProfile(
            entity=summary,
            raw_narrative_tags=raw_narrative_tags,
            raw_recommended_tags=raw_recommended_tags,
            narrative=narrative,
        )

    async def add_entity(self, entity_id: str) -> NarrativeProfile:
        """
        Build and insert the profile of a liked entity.

        Raises:
            DuplicateEntityError: the entity is already in the preferences
        """
        start_time = time.time()
        self.logger.job_received("add_entity", str(entity_id or ""))

        try:
            profile = await self.build_profile(entity_id)
            await self.storage.insert_profile(profile)
        except Exception as e:
            self.logger.job_failed("add_entity", str(entity_id or ""), str(e))
            raise

        self.logger.job_completed("add_entity", profile.entity_id, time.time() - start_time)
        return profile
