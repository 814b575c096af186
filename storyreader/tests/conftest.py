"""
Shared fixtures: a throwaway SQLite database and a few small story graphs.
"""

import os
import tempfile

# Keep the API module's database out of the working tree
os.environ.setdefault(
    "DATABASE_PATH", os.path.join(tempfile.mkdtemp(), "storyreader-test.db")
)

import pytest

from storyreader.db.manager import DatabaseManager
from storyreader.engine.repository import SQLStoryRepository
from storyreader.tests.builders import AUTHOR, add_choice, add_part


@pytest.fixture
def db(tmp_path):
    return DatabaseManager(str(tmp_path / "stories.db"))


@pytest.fixture
def repository(db):
    return SQLStoryRepository(db)


@pytest.fixture
def linear_story(db):
    """A (start) --go--> B (ending, no choices)"""
    db.save_story(
        {"id": "story-s", "title": "S", "author_id": AUTHOR, "status": "published"}
    )
    add_part(db, "story-s", "A", 0, is_start=True)
    add_part(db, "story-s", "B", 1, is_ending=True)
    add_choice(db, "A", "go", "B")
    return "story-s"


@pytest.fixture
def end_choice_story(db):
    """Single non-ending part X whose only choice ends the story."""
    db.save_story(
        {"id": "story-s2", "title": "S2", "author_id": AUTHOR, "status": "published"}
    )
    add_part(db, "story-s2", "X", 0, is_ending=False)
    add_choice(db, "X", "the-end", None, text="End the story")
    return "story-s2"


@pytest.fixture
def empty_story(db):
    db.save_story(
        {"id": "story-empty", "title": "Empty", "author_id": AUTHOR, "status": "published"}
    )
    return "story-empty"


@pytest.fixture
def branching_story(db):
    """
    A (start): left -> B, right -> C
    B: onward -> D, back -> A
    C: ending
    D: leave (ends the story)
    """
    db.save_story(
        {"id": "story-b", "title": "Branches", "author_id": AUTHOR, "status": "published"}
    )
    add_part(db, "story-b", "A", 0, is_start=True)
    add_part(db, "story-b", "B", 1)
    add_part(db, "story-b", "C", 2, is_ending=True)
    add_part(db, "story-b", "D", 3)
    add_choice(db, "A", "left", "B", order_index=0)
    add_choice(db, "A", "right", "C", order_index=1)
    add_choice(db, "B", "onward", "D", order_index=0)
    add_choice(db, "B", "back", "A", order_index=1)
    add_choice(db, "D", "leave", None, order_index=0)
    return "story-b"
