"""
Unit tests for the tag normalizer - raw Qloo tag records to narrative buckets.

No network calls: classifier predictions are given as plain dicts.

Run with: python -m pytest tests/test_tag_normalizer.py -v
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.models import NARRATIVE_BUCKETS, NarrativeTags, StoryDestination
from src.services.tag_normalizer import (
    apply_predictions,
    build_direct_narrative,
    extract_tag_value,
    filter_tag_values,
    normalize_tags,
    parse_taxonomy_key,
)


class TestParseTaxonomyKey:

    def test_full_key(self):
        key = parse_taxonomy_key("urn:tag:plot:qloo")
        assert key.namespace == "urn"
        assert key.category == "tag"
        assert key.tag_type == "plot"
        assert key.source == "qloo"
        assert key.label == "plot:qloo"

    def test_key_without_source(self):
        key = parse_taxonomy_key("urn:tag:genre")
        assert key.tag_type == "genre"
        assert key.source is None

    def test_short_key_is_unrecognized(self):
        assert parse_taxonomy_key("plot") is None
        assert parse_taxonomy_key("urn:tag") is None


class TestNormalizeTags:

    def test_formats_type_source_value(self):
        records = [{"urn:tag:plot:qloo": "Heist"}, {"urn:tag:genre:media": "Thriller"}]
        assert normalize_tags(records) == ["plot:qloo:Heist", "genre:media:Thriller"]

    def test_dedupes_on_value_case_insensitively(self):
        records = [
            {"urn:tag:plot:qloo": "Heist"},
            {"urn:tag:keyword:qloo": "heist"},
            {"urn:tag:theme:qloo": "Loyalty"},
        ]
        # Same value under another tag type is still a duplicate
        assert normalize_tags(records) == ["plot:qloo:Heist", "theme:qloo:Loyalty"]

    def test_malformed_keys_skipped(self):
        records = [{"plot": "Heist"}, {"urn:tag:theme:qloo": "Loyalty"}]
        assert normalize_tags(records) == ["theme:qloo:Loyalty"]

    def test_empty_input(self):
        assert normalize_tags([]) == []


class TestDirectNarrative:

    def test_direct_tag_types_fill_buckets(self):
        records = [
            {"urn:tag:plot:qloo": "Heist"},
            {"urn:tag:character:qloo": "Antihero"},
            {"urn:tag:audience:qloo": "Adult"},
            {"urn:tag:theme:qloo": "Betrayal"},
            {"urn:tag:keyword:qloo": "Vault"},
        ]
        narrative = build_direct_narrative(records, story_pace=["Jazz"])

        assert narrative.plot_description == ["Heist"]
        assert narrative.characters_description == ["Antihero"]
        assert narrative.audience == ["Adult"]
        assert narrative.story_theme == ["Betrayal"]
        assert narrative.story_pace == ["Jazz"]
        assert narrative.story_genre == []

    def test_every_bucket_present(self):
        narrative = build_direct_narrative([])
        for bucket in NARRATIVE_BUCKETS:
            assert narrative.bucket(bucket) == []
        assert narrative.story_destination == StoryDestination()

    def test_destination_attached(self):
        destination = StoryDestination(destinations=["Harbor town"], characteristic=["Foggy"])
        narrative = build_direct_narrative([], destination=destination)
        assert narrative.story_destination.destinations == ["Harbor town"]

    def test_filter_tag_values(self):
        records = [{"urn:tag:genre:music": "Jazz"}, {"urn:tag:genre:media": "Drama"}, {}]
        assert filter_tag_values(records, "urn:tag:genre:music") == ["Jazz"]


class TestApplyPredictions:

    def test_predictions_appended_to_labelled_bucket(self):
        base = NarrativeTags(plot_description=["Heist"])
        predictions = [
            {"text": "plot:qloo:Revenge", "predicted_label": "plot_description"},
            {"text": "genre:media:Noir", "predicted_label": "story_genre"},
        ]
        narrative = apply_predictions(predictions, base)

        assert narrative.plot_description == ["Heist", "Revenge"]
        assert narrative.story_genre == ["Noir"]

    def test_unknown_label_dropped(self):
        narrative = apply_predictions(
            [{"text": "keyword:qloo:Vault", "predicted_label": "other"}],
            NarrativeTags(),
        )
        assert all(not values for values in narrative.buckets().values())

    def test_input_not_mutated(self):
        base = NarrativeTags()
        apply_predictions([{"text": "plot:qloo:Heist", "predicted_label": "plot_description"}], base)
        assert base.plot_description == []

    def test_malformed_text_kept_whole(self):
        assert extract_tag_value("Heist") == "Heist"
        assert extract_tag_value("plot:qloo:Heist") == "Heist"
