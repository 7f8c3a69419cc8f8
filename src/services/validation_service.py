"""
Validation Service for LLM Output Processing

Cleans and validates the structured JSON the model returns when a story
starts ({title, story, pool_words}). Handles common issues:
- Markdown code blocks around the JSON
- Preamble text before the JSON object
- Invalid control characters
- Missing/wrong-type fields

Architecture:
- Called by StoryCoordinator after the story start generation; plain functions
"""

import json
import re
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from src.services.errors import MalformedGenerationResponse

logger = logging.getLogger(__name__)


@dataclass
class StoryStartPayload:
    """Validated first-turn response"""
    title: str
    story: str
    pool_words: List[str]


# =========================================================================
# JSON CLEANING
# =========================================================================

# Control characters other than \t, \n and \r break json.loads
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")
_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


def clean_json_output(output: str) -> str:
    """
    Reduce a model reply to the JSON object inside it.

    The first decodable object wins, so code fences, a chatty preamble or a
    trailing remark around it are all dropped. Without one, only the fences
    are stripped and the caller's json.loads reports the problem.
    """
    text = _CONTROL_CHARS.sub("", output.strip())
    found = _first_json_object(text)
    if found is not None:
        return found
    return _FENCE.sub("", text).strip()


def _first_json_object(text: str) -> Optional[str]:
    decoder = json.JSONDecoder(strict=False)
    start = text.find("{")
    while start != -1:
        try:
            _, end = decoder.raw_decode(text, start)
            return text[start:end]
        except json.JSONDecodeError:
            start = text.find("{", start + 1)
    return None


# =========================================================================
# STORY START RESPONSE
# =========================================================================

def parse_story_start_response(raw: str) -> StoryStartPayload:
    """
    Parse and validate the first-turn JSON.

    Pool words are stripped and empty entries dropped; order is kept.

    Raises:
        MalformedGenerationResponse: when the JSON cannot be parsed or a
            required field is missing or has the wrong type
    """
    if not raw or not raw.strip():
        raise MalformedGenerationResponse("Empty story start response")

    try:
        data: Dict[str, Any] = json.loads(clean_json_output(raw), strict=False)
    except json.JSONDecodeError as e:
        logger.warning(f"⚠️ Story start response is not JSON: {e} (first 200 chars: {raw[:200]!r})")
        raise MalformedGenerationResponse(f"Story start response is not valid JSON: {e}")

    if not isinstance(data, dict):
        raise MalformedGenerationResponse("Story start response is not a JSON object")

    title = data.get("title")
    story = data.get("story")
    pool_words = data.get("pool_words")

    if not isinstance(title, str) or not title.strip():
        raise MalformedGenerationResponse("Story start response has no title")
    if not isinstance(story, str) or not story.strip():
        raise MalformedGenerationResponse("Story start response has no story segment")
    if not isinstance(pool_words, list):
        raise MalformedGenerationResponse("Story start response has no pool_words list")

    words = [str(word).strip() for word in pool_words if word is not None and str(word).strip()]
    if len(words) != len(pool_words):
        logger.info(f"🧹 Dropped {len(pool_words) - len(words)} empty pool words")

    return StoryStartPayload(title=title.strip(), story=story.strip(), pool_words=words)
