"""
Story Prompts Package

Prompts for the serialized language-learning story:
- language_rules: word-pool rules and the first-turn response schema
- exposition: narrative instructions built from a NarrativeDirective
- start: the story start request and the seeded history turn
- phases: one instruction per arc phase after the exposition
- translation: per-segment translation aid

Each prompt is a function that accepts context and returns a formatted prompt string.
"""

from .language_rules import STORY_RESPONSE_SCHEMA, get_language_rules_prompt, get_seeded_context_prompt
from .exposition import get_exposition_prompt
from .start import get_story_start_prompt, get_seeded_user_turn, get_story_instructions
from .phases import get_phase_prompt, get_continue_prompt, get_terminal_prompt
from .translation import get_translation_prompt

__all__ = [
    "STORY_RESPONSE_SCHEMA",
    "get_language_rules_prompt",
    "get_seeded_context_prompt",
    "get_exposition_prompt",
    "get_story_start_prompt",
    "get_seeded_user_turn",
    "get_story_instructions",
    "get_phase_prompt",
    "get_continue_prompt",
    "get_terminal_prompt",
    "get_translation_prompt",
]
