"""
Segment Translation Prompt

Helps the reader with the foreign words of one segment: each foreign word
is translated in place, and everything except the translated words and
their immediate neighbours is masked.
"""


def get_translation_prompt(segment: str, language: str, foreign_language: str) -> str:
    """
    Generate the translation prompt for one segment.

    Args:
        segment: Segment text as stored
        language: Language the story is told in
        foreign_language: Language of the embedded words

    Returns:
        Formatted prompt
    """
    return f"""
            In the following text, replace every {foreign_language} word with its translation to {language}.
            Then replace all the other text with [...], except for the translated words and the two words next to each of them (one before and one after).
            Output only the resulting text, with no explanations.
            Text:
            {segment}
"""
