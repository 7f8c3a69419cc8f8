"""
Story Arc - five-act segment state machine

A story is told in Freytag acts measured in segments. The default acts
(5, 40, 5, 7, 4) give a 61-segment novel:

    count  0      exposition      (segments 1-5)
    count  5      rising action   (segments 6-45)
    count 45      climax          (segments 46-50)
    count 50      falling action  (segments 51-57)
    count 57      resolution      (segments 58-61)
    count 60      terminal        (segment 61, the last one)

`count` is always the number of segments that exist *before* the next one
is generated. A new instruction is only issued at an exact act boundary;
every other count reissues the generic continue instruction. After the
terminal generation the story is ended and the machine refuses to go on.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Sequence, Tuple

from src.services.errors import StoryEndedError

DEFAULT_ACT_LENGTHS: Tuple[int, ...] = (5, 40, 5, 7, 4)


class ArcPhase(str, Enum):
    EXPOSITION = "exposition"
    RISING_ACTION = "rising_action"
    CLIMAX = "climax"
    FALLING_ACTION = "falling_action"
    RESOLUTION = "resolution"
    TERMINAL = "terminal"
    CONTINUE = "continue"


# Acts in the order they are told
ACT_PHASES: Tuple[ArcPhase, ...] = (
    ArcPhase.EXPOSITION,
    ArcPhase.RISING_ACTION,
    ArcPhase.CLIMAX,
    ArcPhase.FALLING_ACTION,
    ArcPhase.RESOLUTION,
)


@dataclass(frozen=True)
class PhaseSpec:
    """One act: where it starts (segment count) and how many segments it spans"""
    phase: ArcPhase
    start_count: int
    length: int

    @property
    def end_count(self) -> int:
        return self.start_count + self.length


def build_arc_table(act_lengths: Sequence[int] = DEFAULT_ACT_LENGTHS) -> List[PhaseSpec]:
    """
    Ordered act table built from the five act lengths.

    Raises:
        ValueError: if there are not exactly five positive act lengths
    """
    if len(act_lengths) != len(ACT_PHASES):
        raise ValueError(f"Expected {len(ACT_PHASES)} act lengths, got {len(act_lengths)}")
    if any(length < 1 for length in act_lengths):
        raise ValueError(f"Act lengths must be positive: {list(act_lengths)}")

    table = []
    start = 0
    for phase, length in zip(ACT_PHASES, act_lengths):
        table.append(PhaseSpec(phase=phase, start_count=start, length=length))
        start += length
    return table


class StoryArc:
    """
    Maps a segment count to the instruction phase for the next segment.

    The terminal count is the act sum minus one: the segment generated there
    is the last of the resolution and brings the story to exactly
    `max_story_length` segments.
    """

    def __init__(self, act_lengths: Sequence[int] = DEFAULT_ACT_LENGTHS):
        self.table = build_arc_table(act_lengths)
        self.max_story_length = sum(act_lengths)
        self.terminal_count = self.max_story_length - 1
        self._boundaries: Dict[int, ArcPhase] = {spec.start_count: spec.phase for spec in self.table}

    def next_phase(self, count: int) -> ArcPhase:
        """
        Phase of the instruction that produces segment number count + 1.

        Raises:
            StoryEndedError: past the terminal count (the story is over)
            ValueError: for a negative count
        """
        if count < 0:
            raise ValueError(f"Segment count cannot be negative: {count}")
        if count > self.terminal_count:
            raise StoryEndedError()
        if count == self.terminal_count:
            return ArcPhase.TERMINAL
        return self._boundaries.get(count, ArcPhase.CONTINUE)

    def act_for(self, count: int) -> ArcPhase:
        """The act a segment count falls inside (for display/logging)"""
        for spec in self.table:
            if spec.start_count <= count < spec.end_count:
                return spec.phase
        raise StoryEndedError()

    def is_final_generation(self, count: int) -> bool:
        """True when generating at `count` produces the story's last segment"""
        return count == self.terminal_count
