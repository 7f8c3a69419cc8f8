"""
Story Phase Prompts

One instruction per arc phase after the exposition. The phase is picked by
StoryArc.next_phase(); counts between act boundaries use the generic
continue instruction so the model keeps developing the current act.
"""

from typing import Sequence

from src.models.profiles import NarrativeDirective
from src.services.story_arc import ArcPhase, DEFAULT_ACT_LENGTHS


def _join(values) -> str:
    return ",".join(values)


def _first(values, default: str = "undefined") -> str:
    return values[0] if values else default


def get_continue_prompt(foreign_language: str) -> str:
    """Generic instruction for every count that is not an act boundary"""
    return (
        "Continue the story, building on the previous events. Maintain the established tone, style, and pacing. "
        "Deepen character reactions and sensory details. Show, don't tell. "
        "Ensure the narrative remains engaging and propels the reader forward. "
        f"Do not make the {foreign_language} words stand out. "
        "Ensure you do all it was instructed to you. Output the next segment"
    )


def get_rising_action_prompt(components: NarrativeDirective, segments: int) -> str:
    """
    Generate the rising action instruction.

    Brings in the destination flavour (when one was sampled), the secondary
    places not used by the exposition and every sampled character.
    """
    destination = components.story_destination
    places = _join(components.settings_places[1:])
    return f"""
            Now the story enters the Rising Action part, which will be told in {segments} segments.
            The main character's journey leads them towards a {_first(destination.characteristic)} place like {_first(destination.destinations)}, and the story can move through places like [{places}].
            Introduce complications and escalate the conflict step by step. If suited, bring in characters like [{_join(components.characters)}] with archetypes like [{_join(components.characters_archetype[3:])}] and related to [{_join(components.characters_related_nouns[3:])}].
            Every segment should raise the stakes and keep the reader wanting more.
            Output the next segment
"""


def get_climax_prompt(segments: int) -> str:
    return f"""
            Now the story reaches its Climax, which will be told in {segments} segments.
            This is the turning point: the conflict peaks and the main character faces the decisive moment. Keep the tension at its highest.
            Output the next segment
"""


def get_falling_action_prompt(segments: int) -> str:
    return f"""
            Now the story enters the Falling Action part, which will be told in {segments} segments.
            Show the consequences of the climax, resolve the secondary conflicts and let the tension ease while keeping the reader engaged.
            Output the next segment
"""


def get_resolution_prompt(segments: int) -> str:
    return f"""
            Now the story enters its Resolution, which will be told in {segments} segments.
            Tie up the loose ends and show how the main character and their world have changed.
            Output the next segment
"""


def get_terminal_prompt() -> str:
    return "You will output the last segment of the story. Amaze the readers. Output the last segment"


def get_phase_prompt(
    phase: ArcPhase,
    components: NarrativeDirective,
    foreign_language: str,
    act_lengths: Sequence[int] = DEFAULT_ACT_LENGTHS,
) -> str:
    """
    Instruction for the next segment of an existing story.

    Args:
        phase: Phase returned by StoryArc.next_phase()
        components: Directive stored with the story
        foreign_language: Language of the embedded words
        act_lengths: Act lengths the story is told in

    Returns:
        The prompt text

    Raises:
        ValueError: for EXPOSITION, which only starts a story
    """
    _, rising, climax, falling, resolution = act_lengths

    if phase == ArcPhase.RISING_ACTION:
        return get_rising_action_prompt(components, rising)
    if phase == ArcPhase.CLIMAX:
        return get_climax_prompt(climax)
    if phase == ArcPhase.FALLING_ACTION:
        return get_falling_action_prompt(falling)
    if phase == ArcPhase.RESOLUTION:
        return get_resolution_prompt(resolution)
    if phase == ArcPhase.TERMINAL:
        return get_terminal_prompt()
    if phase == ArcPhase.CONTINUE:
        return get_continue_prompt(foreign_language)
    raise ValueError(f"No continuation prompt for phase {phase.value}")
