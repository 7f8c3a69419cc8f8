"""
Story Exposition Prompt

Narrative instructions for the first segment: tone, genre, plot and the
exposition setting/characters, all drawn from the sampled NarrativeDirective.
Missing values render as 'undefined' and the model is told to invent them.
"""

from typing import List

from src.models.profiles import NarrativeDirective


def _join(values: List[str]) -> str:
    return ",".join(values)


def get_exposition_prompt(directive: NarrativeDirective, exposition_segments: int = 5) -> str:
    """
    Generate the narrative-instruction part of the story start prompt.

    Args:
        directive: Sampled narrative buckets for this story
        exposition_segments: Segments the exposition is told in

    Returns:
        Formatted narrative instructions
    """
    d = directive
    genres = d.bucket("story_genre")
    subgenres = d.bucket("story_subgenre")

    return f"""
            You are going to tell a short addictive and compelling story. You will use the Freytag's Pyramid as a reference for the structure.
            To tell the story you have to use a {d.first('story_tone')} tone and tell it in a pace like {d.first('story_pace')}. The genre of the story you will tell is {genres[0] if genres else 'undefined'} and {genres[1] if len(genres) > 1 else 'undefined'}, its subgenre {subgenres[0] if subgenres else 'undefined'} and {subgenres[1] if len(subgenres) > 1 else 'undefined'}, diving in themes like [{_join(d.story_theme[:3])}] and in topics like {_join(d.story_topic)}. The plot is a {d.first('plot_description')} one and its archetype is {d.first('plot_archetype')}. The story is oriented towards an {d.first('audience')} audience. The story has a {d.first('story_style')} style.

            These are the details for the Exposition part:
            The exposition part will be told in {exposition_segments} segments.
            The place of the setting is a {d.first('settings_places')}, it's set in {d.first('settings_time')} times. Its style is {d.first('settings_styles')} and it holds {d.first('settings_description')} visuals.
            The main character is a {_join(d.characters_description[:2])} {d.first('characters')}, its archetype is {d.first('characters_archetype')} and its role in the story's world is {d.first('characters_role')}. They have these elements [{_join(d.characters_elements[:2])}] and if suited for them and for the story, they could be related to a {d.first('characters_related_nouns')}. Evaluate if the main character will have key supporting characters or if the story will hold secondary ones in this part. Afterwards, if suited, take at most two from here: [{_join(d.characters[1:])}] they could have any of these roles [{_join(d.characters_role[1:])}] and be related, if suited, to [{_join(d.characters_related_nouns[1:])}]. If you will include them, then the character's relationship is {d.first('characters_relationship')}.

            Final advice:
            ALWAYS MAKE SURE TO NOT USE THE INSTRUCTIONS I GAVE YOU AND I WILL GIVE YOU FOR THE STORY AS WORDS IN THE STORY.
            The very first sentence or paragraph needs to grab the reader's attention immediately and make them want to continue.
            Keep the total number of characters very limited. Each one should have a clear purpose. Make dialogue reveal character and advance the plot. Every word counts. Cut anything that doesn't contribute to character, plot, setting, or theme.
            Let the theme emerge naturally from the characters' actions and the events of the story. If you use symbolism, keep it subtle.
            Show instead of tell: use actions, sensory details and dialogue, and engage all five senses in your descriptions.
            For all characters, places, unique species, technologies and unique terms introduced in this story, generate names that are exceptionally uncommon, highly original and phonetically distinct from commonly known names. Never blend or vary existing common names or names you generated before. Avoid generic human, fantasy or sci-fi names and anything that sounds like a famous character or place. The names must still be easy to read and pronounce, distinct from each other, unique across different novels, and ideally hint at the essence of what they name.
            If some of my specifications say 'undefined' or are empty lists, craft an original substitute for it based on the soul of the current story.
"""
