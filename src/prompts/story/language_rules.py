"""
Language-Learning Rules Prompts

The word-pool contract shared by every story:
- story start: the model picks `pool_size` foreign words and locks them
- seeded context: the first stored user turn, locking the pool actually
  attached to the story (after mastered/reinforced words were applied)
"""

from typing import List

# Structured output requested on the first segment only
STORY_RESPONSE_SCHEMA = {
    "type": "object",
    "properties": {
        "title": {"type": "string"},
        "story": {"type": "string"},
        "pool_words": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["title", "story", "pool_words"],
}


def get_language_rules_prompt(language: str, foreign_language: str, pool_size: int, word_type: str) -> str:
    """
    Generate the word-pool rules sent with the story start request.

    Args:
        language: Language the story is told in
        foreign_language: Language of the embedded words
        pool_size: Number of foreign words to lock for this story
        word_type: Kind of words to select (e.g. "common")

    Returns:
        Formatted rules prompt
    """
    return f"""
            You are a multilingual language-learning assistant. Your task is to create a single engaging story in {language} that incorporates a fixed pool of {pool_size} {foreign_language} words.
            Fixed Rules:
            1. Word Pool Lock:
            At the beginning of the session select {pool_size} unique foreign words from the target language, they must not repeat. Do not reveal them. Lock them and never output any other {foreign_language} word that is not in the pool, no matter the circumstance.
            Story Format:
            2.0. If in the story you need to use the {language} equivalent of any {foreign_language} word in the word pool, always use the {foreign_language} version instead. Use only {foreign_language} words from the word pool. Never use, in the story or in any of your outputs, any other {foreign_language} word that isn't in the pool. This rule must never be broken.
            2.1. The story will be told in segments of around 80 words. If a segment uses {foreign_language} words, that segment should be around 110 words instead.
            3.1. Narrative:
            The start of the narrative must be completely engaging, exciting and so unique that it is extremely difficult to replicate.
            4. {foreign_language} Words Selection Method:
            Select {word_type} words.
            Select words that deepen engagement, reinforce the narrative, or feel contextually natural.
            Pick them based on the story you're building, not randomly.
            5. Grammar and coherence:
            You are free to use phrases or even whole sentences in {foreign_language} if needed. The {foreign_language} words must follow {foreign_language} grammar and the nature of the language.
            6. Story creation instructions:
"""


def get_closing_rules_prompt(foreign_language: str) -> str:
    """Rules appended after the narrative instructions (stored in history too)"""
    return (
        f"7. Do not make the {foreign_language} words stand out, it would make the reading experience worse. "
        "8. In each of your turns you will output only the next segment. "
        "9. Ensure you did exactly all I asked you to do"
    )


def get_first_turn_request() -> str:
    """Extra instruction for the first turn only: title and pool alongside the segment"""
    return (
        "Just for this turn, give me the title and the pool of words along with the segment too. "
        "For the novel's title, create an uncommon, highly original, and evocative title that hints at "
        "the story's depth without revealing too much. Absolutely avoid generic fantasy, sci-fi, or "
        "overly dramatic cliches."
    )


def get_seeded_context_prompt(language: str, foreign_language: str, pool_words: List[str]) -> str:
    """
    Generate the preamble of the first stored user turn.

    Continuations replay the whole history, so this turn is what keeps the
    model locked to the story's final pool words.
    """
    pool = ",".join(pool_words)
    return f"""You are a multilingual language-learning assistant. Your task is to create a single addictive story in {language} that incorporates a fixed pool of {foreign_language} words.
        1. Pool of words:
        The pool of words is this: [{pool}]. Never output any other {foreign_language} word that is not in the pool, no matter the circumstance.
        2. Story Format:
        If in the story you need to use the {language} equivalent of any {foreign_language} word in the pool of words, always use the {foreign_language} version instead. Use only {foreign_language} words from the pool of words. Never use, in the story or in any of your outputs, any other {foreign_language} word that isn't in the pool. This is a rule. The story will be told in segments of around 80 words. If a segment uses {foreign_language} words, that segment should be around 110 words instead.
        3. Grammar and coherence:
        You are free to construct phrases or even whole sentences in {foreign_language} if needed, using the {foreign_language} words from the word pool. Their usage must follow {foreign_language} grammar and the nature of the language.
        4. Story creation instructions:
        """
