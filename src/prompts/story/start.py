"""
Story Start Prompt

Assembles the first request of a story and the user turn stored in its
history once the pool words are final.
"""

from typing import List

from src.models.profiles import NarrativeDirective
from .exposition import get_exposition_prompt
from .language_rules import (
    get_closing_rules_prompt,
    get_first_turn_request,
    get_language_rules_prompt,
    get_seeded_context_prompt,
)


def get_story_instructions(directive: NarrativeDirective, foreign_language: str, exposition_segments: int = 5) -> str:
    """Narrative instructions plus closing rules (shared by the request and the stored turn)"""
    return get_exposition_prompt(directive, exposition_segments) + get_closing_rules_prompt(foreign_language)


def get_story_start_prompt(
    directive: NarrativeDirective,
    language: str,
    foreign_language: str,
    pool_size: int,
    word_type: str,
    exposition_segments: int = 5,
) -> str:
    """
    Generate the prompt that produces title, first segment and pool words.

    Args:
        directive: Sampled narrative buckets
        language: Language the story is told in
        foreign_language: Language of the embedded words
        pool_size: Foreign words the model must select
        word_type: Kind of words to select
        exposition_segments: Segments the exposition is told in

    Returns:
        Complete prompt text
    """
    return (
        get_language_rules_prompt(language, foreign_language, pool_size, word_type)
        + get_story_instructions(directive, foreign_language, exposition_segments)
        + " "
        + get_first_turn_request()
    )


def get_seeded_user_turn(
    directive: NarrativeDirective,
    language: str,
    foreign_language: str,
    pool_words: List[str],
    exposition_segments: int = 5,
) -> str:
    """First user turn of the stored history, locked to the final pool words"""
    return get_seeded_context_prompt(language, foreign_language, pool_words) + get_story_instructions(
        directive, foreign_language, exposition_segments
    )
