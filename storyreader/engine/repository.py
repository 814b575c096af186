"""
Data-access contract consumed by the reading engine.

The engine never talks to the database directly; it goes through a
``StoryRepository``. ``SQLStoryRepository`` is the SQLite implementation
backed by ``DatabaseManager``; its blocking calls run in worker threads so
the engine's suspension points are exactly the storage calls.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from storyreader.db.manager import DatabaseManager
from storyreader.schemas.story import (
    PathEntry,
    Story,
    StoryChoice,
    StoryPart,
    StoryProgress,
)
from storyreader.utils.logger import get_logger

logger = get_logger(__name__)


class StoryRepository(ABC):
    """Abstract data-access collaborator"""

    @abstractmethod
    async def fetch_story(self, story_id: str, reader_id: Optional[str]) -> Optional[Story]:
        """Return the story if it is published or owned by ``reader_id``."""

    @abstractmethod
    async def fetch_part(self, part_id: str) -> Optional[StoryPart]:
        """Return the part, or None if it does not exist."""

    @abstractmethod
    async def fetch_choices(self, part_id: str) -> List[StoryChoice]:
        """Return the part's choices ordered by order_index."""

    @abstractmethod
    async def fetch_start_part(self, story_id: str) -> Optional[StoryPart]:
        """Return the flagged start part, else the earliest created, else None."""

    @abstractmethod
    async def upsert_progress(self, reader_id: str, story_id: str) -> StoryProgress:
        """Return the single progress record for the pair, creating it if needed."""

    @abstractmethod
    async def update_progress(self, progress_id: str, fields: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def mark_completed(self, progress_id: str) -> None:
        ...

    @abstractmethod
    async def reset_progress(self, progress_id: str) -> None:
        ...

    @abstractmethod
    async def save_reader_path(
        self, reader_id: str, story_id: str, entries: List[PathEntry]
    ) -> None:
        """Store the exported path of a finished reading pass."""

    @abstractmethod
    async def fetch_reader_path(
        self, reader_id: str, story_id: str
    ) -> Optional[List[PathEntry]]:
        ...


class SQLStoryRepository(StoryRepository):
    """StoryRepository over the SQLite ``DatabaseManager``"""

    def __init__(self, db: DatabaseManager):
        self.db = db

    async def _call(self, func, *args):
        return await asyncio.to_thread(func, *args)

    async def fetch_story(self, story_id: str, reader_id: Optional[str]) -> Optional[Story]:
        data = await self._call(self.db.get_visible_story, story_id, reader_id)
        return Story(**data) if data else None

    async def fetch_part(self, part_id: str) -> Optional[StoryPart]:
        data = await self._call(self.db.get_part, part_id)
        return StoryPart(**data) if data else None

    async def fetch_choices(self, part_id: str) -> List[StoryChoice]:
        rows = await self._call(self.db.list_choices, part_id)
        return [StoryChoice(**row) for row in rows]

    async def fetch_start_part(self, story_id: str) -> Optional[StoryPart]:
        data = await self._call(self.db.get_start_part, story_id)
        return StoryPart(**data) if data else None

    async def upsert_progress(self, reader_id: str, story_id: str) -> StoryProgress:
        data = await self._call(self.db.upsert_progress, reader_id, story_id)
        return StoryProgress(**data)

    async def update_progress(self, progress_id: str, fields: Dict[str, Any]) -> None:
        updated = await self._call(self.db.update_progress, progress_id, fields)
        if not updated:
            raise LookupError(f"Progress {progress_id} not found")

    async def mark_completed(self, progress_id: str) -> None:
        updated = await self._call(self.db.mark_progress_completed, progress_id)
        if not updated:
            raise LookupError(f"Progress {progress_id} not found")

    async def reset_progress(self, progress_id: str) -> None:
        updated = await self._call(self.db.reset_progress, progress_id)
        if not updated:
            raise LookupError(f"Progress {progress_id} not found")

    async def save_reader_path(
        self, reader_id: str, story_id: str, entries: List[PathEntry]
    ) -> None:
        payload = [entry.model_dump(mode="json", exclude_none=True) for entry in entries]
        await self._call(self.db.save_reader_path, reader_id, story_id, payload)

    async def fetch_reader_path(
        self, reader_id: str, story_id: str
    ) -> Optional[List[PathEntry]]:
        data = await self._call(self.db.get_reader_path, reader_id, story_id)
        if not data:
            return None
        return [PathEntry(**entry) for entry in data["story_path"]]
