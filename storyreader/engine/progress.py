"""
Per-reader progress persistence.

``ProgressStore`` is the only place the reading engine writes reader state.
In read-only mode (author previews and replays) every write is skipped and
the store hands out a transient progress record that is never saved.
"""

from datetime import datetime
from typing import Any, Awaitable, Callable, Dict

from storyreader.engine.errors import EngineError, PersistenceError
from storyreader.engine.repository import StoryRepository
from storyreader.schemas.story import StoryProgress
from storyreader.utils.logger import get_logger

logger = get_logger(__name__)


class ProgressStore:
    """Progress operations for one reading session"""

    def __init__(self, repository: StoryRepository, read_only: bool = False):
        self.repository = repository
        self.read_only = read_only

    async def get_or_create(self, reader_id: str, story_id: str) -> StoryProgress:
        """
        Return the reader's progress record for the story, creating it once.

        Repeated and concurrent calls for the same pair share one record.
        """
        if self.read_only:
            return StoryProgress(id=None, user_id=reader_id, story_id=story_id)
        try:
            progress = await self.repository.upsert_progress(reader_id, story_id)
        except EngineError:
            raise
        except Exception as e:
            logger.error(f"Progress upsert failed for {reader_id}/{story_id}: {e}")
            raise PersistenceError("load reading progress", e) from e
        logger.debug(
            f"Progress {progress.id}: part={progress.current_part_id} completed={progress.completed}"
        )
        return progress

    async def advance(self, progress: StoryProgress, next_part_id: str) -> StoryProgress:
        """Point the progress at ``next_part_id``. Last write wins."""
        fields = {"current_part_id": next_part_id}
        return await self._write(
            progress,
            "save progress",
            fields,
            lambda: self.repository.update_progress(progress.id, fields),
        )

    async def complete(self, progress: StoryProgress) -> StoryProgress:
        return await self._write(
            progress,
            "mark story completed",
            {"completed": True},
            lambda: self.repository.mark_completed(progress.id),
        )

    async def reset(self, progress: StoryProgress) -> StoryProgress:
        """Rewind to "not started" so the next session resolves the start part."""
        return await self._write(
            progress,
            "restart story",
            {"current_part_id": None, "completed": False},
            lambda: self.repository.reset_progress(progress.id),
        )

    async def _write(
        self,
        progress: StoryProgress,
        operation: str,
        fields: Dict[str, Any],
        persist: Callable[[], Awaitable[None]],
    ) -> StoryProgress:
        updated = progress.model_copy(update={**fields, "updated_at": datetime.utcnow()})
        if self.read_only or progress.is_transient:
            logger.debug(f"Read-only session, skipping '{operation}'")
            return updated

        try:
            await persist()
        except Exception as e:
            logger.error(f"Failed to {operation} for progress {progress.id}: {e}")
            raise PersistenceError(operation, e) from e

        logger.debug(f"Progress {progress.id}: {operation} {fields}")
        return updated
