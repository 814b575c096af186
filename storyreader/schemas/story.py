"""
Story graph and reading-state schema definitions.

Rows coming back from storage are validated into these models before the
engine touches them, so a missing required field fails loudly instead of
propagating a half-formed record.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, validator


class PublicationStatus(str, Enum):
    """Publication state of a story"""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    PUBLISHED = "published"


class Story(BaseModel):
    """A story and its ownership/publication metadata"""

    id: str = Field(..., description="Unique story identifier")
    title: str = Field(..., description="Story title")
    description: Optional[str] = Field(None, description="Short blurb")
    genre: Optional[str] = Field(None, description="Genre keyword")
    author_id: Optional[str] = Field(None, description="Owning author")
    status: PublicationStatus = Field(default=PublicationStatus.DRAFT)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def is_owned_by(self, reader_id: Optional[str]) -> bool:
        return bool(reader_id) and self.author_id == reader_id

    def is_visible_to(self, reader_id: Optional[str]) -> bool:
        """Published stories are visible to anyone, drafts only to their author."""
        return self.status == PublicationStatus.PUBLISHED or self.is_owned_by(reader_id)


class StoryPart(BaseModel):
    """A node of the story graph"""

    id: str = Field(..., description="Unique part identifier")
    story_id: str = Field(..., description="Story this part belongs to")
    content: str = Field(..., description="Text shown to the reader")
    is_start: bool = Field(default=False)
    is_ending: bool = Field(default=False)
    created_at: datetime = Field(..., description="Fallback ordering key for start resolution")


class StoryChoice(BaseModel):
    """An edge leaving a part; no next part means the choice ends the story"""

    id: str = Field(..., description="Unique choice identifier")
    part_id: str = Field(..., description="Source part")
    choice_text: str = Field(..., description="Label shown to the reader")
    next_part_id: Optional[str] = Field(None, description="Destination part")
    order_index: int = Field(default=0, description="Position among the part's choices")

    @validator("next_part_id")
    def blank_next_part_is_none(cls, v):
        # Authoring tools store "End Story" links as empty strings
        if v is not None and not v.strip():
            return None
        return v

    @property
    def is_terminal(self) -> bool:
        return self.next_part_id is None


class StoryNode(BaseModel):
    """A part together with its ordered outgoing choices"""

    part: StoryPart
    choices: List[StoryChoice] = Field(default_factory=list)

    @property
    def id(self) -> str:
        return self.part.id

    @property
    def content(self) -> str:
        return self.part.content

    @property
    def is_ending(self) -> bool:
        return self.part.is_ending

    @property
    def requires_finish(self) -> bool:
        """Ending nodes and nodes without choices can only be finished."""
        return self.part.is_ending or not self.choices

    def find_choice(self, choice_id: str) -> Optional[StoryChoice]:
        for choice in self.choices:
            if choice.id == choice_id:
                return choice
        return None


class StoryProgress(BaseModel):
    """Durable pointer of one reader into one story"""

    id: Optional[str] = Field(None, description="None for transient preview progress")
    user_id: str
    story_id: str
    current_part_id: Optional[str] = None
    completed: bool = False
    updated_at: Optional[datetime] = None

    @property
    def is_transient(self) -> bool:
        return self.id is None


class PathEntry(BaseModel):
    """
    One step of a reading pass.

    Arrival entries carry a snapshot of the part content as the reader saw
    it. Choice entries carry the choice made on ``part_id``; ``next_part_id``
    is empty when the choice ended the story.
    """

    part_id: str = Field(..., min_length=1)
    choice_id: Optional[str] = None
    choice_text: Optional[str] = None
    next_part_id: Optional[str] = None
    timestamp: datetime
    part_content: Optional[str] = None

    @property
    def is_choice(self) -> bool:
        return bool(self.choice_id)

    class Config:
        extra = "ignore"
