"""
Schemas for the story reading engine
"""

from .story import (
    PathEntry,
    PublicationStatus,
    Story,
    StoryChoice,
    StoryNode,
    StoryPart,
    StoryProgress,
)

__all__ = [
    "Story",
    "StoryPart",
    "StoryChoice",
    "StoryNode",
    "StoryProgress",
    "PathEntry",
    "PublicationStatus",
]
