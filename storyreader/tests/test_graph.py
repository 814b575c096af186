"""
Tests for the story graph accessor and choice resolution.
"""

from unittest.mock import patch

import pytest

from storyreader.engine.errors import PartNotFoundError, PersistenceError, StoryNotFoundError
from storyreader.engine.graph import StoryGraph
from storyreader.engine.resolver import ResolutionKind, resolve_choice
from storyreader.schemas.story import StoryChoice
from storyreader.tests.builders import AUTHOR, READER, add_choice, add_part


class TestStoryGraph:
    """Test loading stories and nodes"""

    @pytest.mark.asyncio
    async def test_load_story(self, repository, linear_story):
        story = await StoryGraph(repository).load_story(linear_story, READER)
        assert story.id == linear_story
        assert story.title == "S"

    @pytest.mark.asyncio
    async def test_load_missing_story(self, repository):
        with pytest.raises(StoryNotFoundError):
            await StoryGraph(repository).load_story("missing", READER)

    @pytest.mark.asyncio
    async def test_draft_hidden_from_other_readers(self, db, repository):
        db.save_story({"id": "draft", "title": "Draft", "author_id": AUTHOR})
        graph = StoryGraph(repository)
        with pytest.raises(StoryNotFoundError):
            await graph.load_story("draft", READER)
        story = await graph.load_story("draft", AUTHOR)
        assert story.is_owned_by(AUTHOR)

    @pytest.mark.asyncio
    async def test_load_node(self, repository, linear_story):
        node = await StoryGraph(repository).load_node("A")
        assert node.id == "A"
        assert node.content == "Content of A"
        assert [c.id for c in node.choices] == ["go"]
        assert node.requires_finish is False

    @pytest.mark.asyncio
    async def test_ending_node_requires_finish(self, repository, linear_story):
        node = await StoryGraph(repository).load_node("B")
        assert node.is_ending
        assert node.choices == []
        assert node.requires_finish

    @pytest.mark.asyncio
    async def test_load_missing_node(self, repository, linear_story):
        with pytest.raises(PartNotFoundError) as exc_info:
            await StoryGraph(repository).load_node("ghost")
        assert exc_info.value.part_id == "ghost"

    @pytest.mark.asyncio
    async def test_choice_order_is_stable(self, db, repository, linear_story):
        add_choice(db, "B", "c2", None, order_index=2)
        add_choice(db, "B", "c1-b", None, order_index=1)
        add_choice(db, "B", "c1-a", None, order_index=1)
        graph = StoryGraph(repository)
        first = [c.id for c in (await graph.load_node("B")).choices]
        second = [c.id for c in (await graph.load_node("B")).choices]
        assert first == ["c1-a", "c1-b", "c2"]
        assert first == second

    @pytest.mark.asyncio
    async def test_part_of_another_story_is_missing(self, db, repository, linear_story):
        db.save_story({"id": "other", "title": "Other", "author_id": "other-author"})
        add_part(db, "other", "elsewhere", 0, is_start=True)
        graph = StoryGraph(repository)

        with pytest.raises(PartNotFoundError):
            await graph.load_node("elsewhere", linear_story)
        assert (await graph.load_node("elsewhere", "other")).id == "elsewhere"

    @pytest.mark.asyncio
    async def test_storage_failure_wrapped(self, repository, linear_story):
        graph = StoryGraph(repository)
        with patch.object(repository.db, "get_part", side_effect=RuntimeError("disk I/O error")):
            with pytest.raises(PersistenceError) as exc_info:
                await graph.load_node("A")
        assert exc_info.value.operation == "load story part"


class TestStartNode:
    """Test start node selection"""

    @pytest.mark.asyncio
    async def test_flagged_start(self, repository, branching_story):
        assert await StoryGraph(repository).resolve_start_node(branching_story) == "A"

    @pytest.mark.asyncio
    async def test_several_flagged_starts(self, db, repository):
        db.save_story({"id": "multi", "title": "Multi", "status": "published"})
        add_part(db, "multi", "late", 9, is_start=True)
        add_part(db, "multi", "early", 3, is_start=True)
        assert await StoryGraph(repository).resolve_start_node("multi") == "early"

    @pytest.mark.asyncio
    async def test_earliest_part_without_flag(self, db, repository):
        db.save_story({"id": "plain", "title": "Plain", "status": "published"})
        add_part(db, "plain", "later", 7)
        add_part(db, "plain", "earliest", 1)
        assert await StoryGraph(repository).resolve_start_node("plain") == "earliest"

    @pytest.mark.asyncio
    async def test_no_parts(self, repository, empty_story):
        assert await StoryGraph(repository).resolve_start_node(empty_story) is None


class TestResolveChoice:
    """Test mapping choices to destinations"""

    def test_continue(self):
        choice = StoryChoice(id="c", part_id="A", choice_text="go", next_part_id="B")
        resolution = resolve_choice(choice)
        assert resolution.kind == ResolutionKind.CONTINUE
        assert resolution.next_part_id == "B"
        assert not resolution.terminates

    def test_terminate_without_destination(self):
        choice = StoryChoice(id="c", part_id="A", choice_text="The end")
        resolution = resolve_choice(choice)
        assert resolution.terminates
        assert resolution.next_part_id is None

    def test_blank_destination_terminates(self):
        choice = StoryChoice(id="c", part_id="A", choice_text="The end", next_part_id="  ")
        assert choice.next_part_id is None
        assert resolve_choice(choice).kind == ResolutionKind.TERMINATE
