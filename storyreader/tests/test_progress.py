"""
Tests for progress persistence.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from storyreader.engine.errors import PersistenceError
from storyreader.engine.progress import ProgressStore
from storyreader.schemas.story import StoryProgress
from storyreader.tests.builders import READER


class TestGetOrCreate:
    """Test progress creation"""

    @pytest.mark.asyncio
    async def test_creates_fresh_progress(self, repository, linear_story):
        progress = await ProgressStore(repository).get_or_create(READER, linear_story)
        assert progress.id is not None
        assert progress.current_part_id is None
        assert progress.completed is False

    @pytest.mark.asyncio
    async def test_repeated_calls_share_one_record(self, db, repository, linear_story):
        store = ProgressStore(repository)
        first = await store.get_or_create(READER, linear_story)
        second = await store.get_or_create(READER, linear_story)
        assert first.id == second.id
        assert db.count_progress(READER, linear_story) == 1

    @pytest.mark.asyncio
    async def test_concurrent_calls_share_one_record(self, db, repository, linear_story):
        results = await asyncio.gather(
            *[ProgressStore(repository).get_or_create(READER, linear_story) for _ in range(5)]
        )
        assert len({p.id for p in results}) == 1
        assert db.count_progress(READER, linear_story) == 1

    @pytest.mark.asyncio
    async def test_read_only_store_never_writes(self, db, repository, linear_story):
        progress = await ProgressStore(repository, read_only=True).get_or_create(
            READER, linear_story
        )
        assert progress.is_transient
        assert db.count_progress(READER, linear_story) == 0

    @pytest.mark.asyncio
    async def test_storage_failure_wrapped(self):
        repository = AsyncMock()
        repository.upsert_progress.side_effect = RuntimeError("database is locked")
        with pytest.raises(PersistenceError) as exc_info:
            await ProgressStore(repository).get_or_create(READER, "story")
        assert "database is locked" in str(exc_info.value)


class TestWrites:
    """Test advance, complete and reset"""

    @pytest.mark.asyncio
    async def test_advance_and_complete(self, db, repository, linear_story):
        store = ProgressStore(repository)
        progress = await store.get_or_create(READER, linear_story)

        progress = await store.advance(progress, "B")
        assert progress.current_part_id == "B"
        assert db.get_progress(READER, linear_story)["current_part_id"] == "B"

        progress = await store.complete(progress)
        assert progress.completed is True
        assert db.get_progress(READER, linear_story)["completed"] is True

    @pytest.mark.asyncio
    async def test_last_write_wins(self, db, repository, linear_story):
        store = ProgressStore(repository)
        progress = await store.get_or_create(READER, linear_story)
        await store.advance(progress, "A")
        await store.advance(progress, "B")
        assert db.get_progress(READER, linear_story)["current_part_id"] == "B"

    @pytest.mark.asyncio
    async def test_reset(self, db, repository, linear_story):
        store = ProgressStore(repository)
        progress = await store.get_or_create(READER, linear_story)
        progress = await store.complete(await store.advance(progress, "B"))

        progress = await store.reset(progress)
        assert progress.current_part_id is None
        assert progress.completed is False
        stored = db.get_progress(READER, linear_story)
        assert stored["current_part_id"] is None
        assert stored["completed"] is False

    @pytest.mark.asyncio
    async def test_transient_progress_skips_writes(self):
        repository = AsyncMock()
        store = ProgressStore(repository)
        progress = StoryProgress(id=None, user_id=READER, story_id="story")

        progress = await store.advance(progress, "B")
        progress = await store.complete(progress)

        assert progress.current_part_id == "B"
        assert progress.completed
        repository.update_progress.assert_not_called()
        repository.mark_completed.assert_not_called()

    @pytest.mark.asyncio
    async def test_write_failure_wrapped(self):
        repository = AsyncMock()
        repository.update_progress.side_effect = LookupError("Progress p1 not found")
        store = ProgressStore(repository)
        progress = StoryProgress(id="p1", user_id=READER, story_id="story")

        with pytest.raises(PersistenceError) as exc_info:
            await store.advance(progress, "B")
        assert exc_info.value.operation == "save progress"
        assert isinstance(exc_info.value.cause, LookupError)
