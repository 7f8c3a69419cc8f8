"""
Tag Normalizer - raw Qloo tag records to narrative buckets

Raw tag records are single-key dicts keyed by a taxonomy path:
    {"urn:tag:plot:qloo": "Heist"}

The path is `namespace:category:tag_type:source`. This module:
- parses taxonomy keys explicitly (unrecognized keys are skipped with a warning)
- formats deduplicated `tag_type:source:value` strings for the classifier
- maps a few known tag types straight into narrative buckets
- folds classifier predictions back into buckets

Architecture:
- Pure functions, no network calls
- TasteProfileBuilder (src/pipeline/taste.py) calls the classifier in between
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional

from src.models.profiles import NARRATIVE_BUCKETS, NarrativeTags, StoryDestination

logger = logging.getLogger(__name__)

TAXONOMY_DELIMITER = ":"

# Tag types that map straight into a narrative bucket without the classifier
DIRECT_TAG_BUCKETS: Dict[str, str] = {
    "urn:tag:plot:qloo": "plot_description",
    "urn:tag:character:qloo": "characters_description",
    "urn:tag:audience:qloo": "audience",
    "urn:tag:theme:qloo": "story_theme",
}

# Cross-domain tag types that fill specific narrative fields
MUSIC_GENRE_TAG = "urn:tag:genre:music"
DESTINATION_GENRE_TAG = "urn:tag:genre:destination"
CHARACTERISTIC_TAG = "urn:tag:characteristic:qloo"

_BUCKET_SET = frozenset(NARRATIVE_BUCKETS)


@dataclass(frozen=True)
class TaxonomyKey:
    """A parsed taxonomy path such as urn:tag:plot:qloo"""
    namespace: str
    category: str
    tag_type: str
    source: Optional[str] = None

    @property
    def label(self) -> str:
        """`tag_type:source` prefix used in classifier input"""
        return f"{self.tag_type}{TAXONOMY_DELIMITER}{self.source}"


def parse_taxonomy_key(key: str) -> Optional[TaxonomyKey]:
    """
    Parse a taxonomy path.

    Returns None for keys with fewer than 3 segments (unrecognized);
    callers log and skip them.
    """
    parts = str(key).split(TAXONOMY_DELIMITER)
    if len(parts) < 3:
        return None
    source = parts[3] if len(parts) > 3 else None
    return TaxonomyKey(namespace=parts[0], category=parts[1], tag_type=parts[2], source=source)


def normalize_tags(records: Iterable[Mapping[str, str]]) -> List[str]:
    """
    Format raw tag records as `tag_type:source:value` strings.

    Deduplication is case-insensitive on the value only; the first
    occurrence wins and insertion order is kept. Malformed keys are skipped.

    Args:
        records: Iterable of {taxonomy_key: value} dicts

    Returns:
        Deduplicated formatted tags
    """
    seen_values = set()
    output = []
    for record in records:
        for key, value in record.items():
            taxonomy = parse_taxonomy_key(key)
            if taxonomy is None:
                logger.warning(f"⚠️ Unexpected key format '{key}' while processing raw tags")
                continue
            value = str(value)
            lowered = value.lower()
            if lowered in seen_values:
                continue
            seen_values.add(lowered)
            output.append(f"{taxonomy.label}{TAXONOMY_DELIMITER}{value}")
    return output


def filter_tag_values(records: Iterable[Mapping[str, str]], tag_key: str) -> List[str]:
    """Values of the records whose (single) key equals `tag_key`"""
    values = []
    for record in records:
        if not record:
            continue
        key = next(iter(record))
        if key == tag_key:
            values.append(record[key])
    return values


def build_direct_narrative(
    raw_narrative_tags: List[Mapping[str, str]],
    story_pace: Optional[List[str]] = None,
    destination: Optional[StoryDestination] = None,
) -> NarrativeTags:
    """
    Narrative buckets filled only from the direct tag-type table.

    Used as-is when no tags can be sent to the classifier, and as the base
    that classifier predictions are appended to.
    """
    buckets: Dict[str, List[str]] = {
        bucket: filter_tag_values(raw_narrative_tags, tag_key)
        for tag_key, bucket in DIRECT_TAG_BUCKETS.items()
    }
    buckets["story_pace"] = list(story_pace or [])
    narrative = NarrativeTags(**buckets)
    if destination is not None:
        narrative.story_destination = destination
    return narrative


def extract_tag_value(text: str) -> str:
    """
    Take the value segment out of a classifier `text` (`tag_type:source:value`).

    Malformed text is logged and returned unchanged.
    """
    parts = str(text).split(TAXONOMY_DELIMITER)
    if len(parts) >= 3:
        return parts[2]
    logger.warning(f"⚠️ Unexpected tag format '{text}' while processing model results")
    return text


def apply_predictions(predictions: Iterable[Mapping[str, str]], narrative: NarrativeTags) -> NarrativeTags:
    """
    Append each classified tag to the bucket named by its predicted label.

    Labels outside the bucket set (e.g. "other") are dropped silently.
    Returns a new NarrativeTags; the input is not mutated.
    """
    updated = narrative.model_copy(deep=True)
    for prediction in predictions:
        label = prediction.get("predicted_label")
        if label not in _BUCKET_SET:
            continue
        updated.bucket(label).append(extract_tag_value(prediction.get("text", "")))
    return updated
