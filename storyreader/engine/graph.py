"""
Read-only view over a story's parts (nodes) and choices (edges).
"""

from typing import Awaitable, Optional, TypeVar

from storyreader.engine.errors import (
    EngineError,
    PartNotFoundError,
    PersistenceError,
    StoryNotFoundError,
)
from storyreader.engine.repository import StoryRepository
from storyreader.schemas.story import Story, StoryNode
from storyreader.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class StoryGraph:
    """
    Loads nodes of the story graph through a ``StoryRepository``.

    Choices are always returned in (order_index, id) order so that two
    passes over the same graph see the same choice list, which replay
    depends on. Storage failures surface as ``PersistenceError``.
    """

    def __init__(self, repository: StoryRepository):
        self.repository = repository

    async def _read(self, operation: str, call: Awaitable[T]) -> T:
        try:
            return await call
        except EngineError:
            raise
        except Exception as e:
            logger.error(f"Failed to {operation}: {e}")
            raise PersistenceError(operation, e) from e

    async def load_story(self, story_id: str, reader_id: Optional[str]) -> Story:
        """
        Fetch a story the reader is allowed to see.

        Raises:
            StoryNotFoundError: The story is absent, or a draft of another author
            PersistenceError: Storage failed
        """
        story = await self._read(
            "load story", self.repository.fetch_story(story_id, reader_id)
        )
        if story is None:
            raise StoryNotFoundError(story_id)
        return story

    async def load_node(self, part_id: str, story_id: Optional[str] = None) -> StoryNode:
        """
        Fetch a part with its ordered choices.

        Args:
            part_id: Part to load
            story_id: When given, parts of any other story are treated as missing

        Raises:
            PartNotFoundError: The part does not exist (in ``story_id``)
            PersistenceError: Storage failed
        """
        part = await self._read("load story part", self.repository.fetch_part(part_id))
        if part is None:
            raise PartNotFoundError(part_id)
        if story_id is not None and part.story_id != story_id:
            logger.warning(f"Part {part_id} belongs to story {part.story_id}, not {story_id}")
            raise PartNotFoundError(part_id)

        choices = await self._read(
            "load story choices", self.repository.fetch_choices(part_id)
        )
        choices = sorted(choices, key=lambda c: (c.order_index, c.id))
        logger.debug(f"Loaded part {part_id} with {len(choices)} choices")
        return StoryNode(part=part, choices=choices)

    async def resolve_start_node(self, story_id: str) -> Optional[str]:
        """
        Pick the part a fresh reading pass starts from.

        Returns:
            The flagged start part, else the earliest created part, else None
            when the story has no parts at all
        """
        part = await self._read(
            "load start part", self.repository.fetch_start_part(story_id)
        )
        if part is None:
            logger.info(f"Story {story_id} has no parts")
            return None
        if not part.is_start:
            logger.debug(f"No start flag on story {story_id}, using first part {part.id}")
        return part.id
