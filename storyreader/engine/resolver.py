"""
Choice resolution.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel

from storyreader.schemas.story import StoryChoice


class ResolutionKind(str, Enum):
    CONTINUE = "continue"
    TERMINATE = "terminate"


class Resolution(BaseModel):
    """Where a choice leads"""

    kind: ResolutionKind
    next_part_id: Optional[str] = None

    @property
    def terminates(self) -> bool:
        return self.kind == ResolutionKind.TERMINATE


def resolve_choice(choice: StoryChoice) -> Resolution:
    """
    Map a choice to the next part, or to the end of the story.

    A choice without a destination ends the story whether or not its source
    part is flagged as an ending.
    """
    if choice.is_terminal:
        return Resolution(kind=ResolutionKind.TERMINATE)
    return Resolution(kind=ResolutionKind.CONTINUE, next_part_id=choice.next_part_id)
