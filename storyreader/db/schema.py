"""
Database schema definitions using SQLAlchemy.

This module defines the tables for the story graph (stories, parts, choices),
per-reader progress and exported reading paths. All data is stored in a
single SQLite database file.
"""

# mypy: ignore-errors

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()  # type: ignore


def _new_id() -> str:
    return str(uuid.uuid4())


class Story(Base):
    """
    Story table.

    Attributes:
        id: Unique story identifier (UUID)
        title: Story title
        description: Short blurb
        genre: Genre keyword
        author_id: Owning author's user id
        status: Publication state (draft, submitted, published)
        created_at: Timestamp when story was created
        updated_at: Timestamp when story was last modified
    """

    __tablename__ = "stories"

    id = Column(String, primary_key=True, default=_new_id)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    genre = Column(String, nullable=True)
    author_id = Column(String, nullable=True, index=True)
    status = Column(String, nullable=False, default="draft")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )


class StoryPart(Base):
    """
    Story part (graph node).

    Attributes:
        id: Unique part identifier (UUID)
        story_id: Owning story
        content: Text shown to the reader
        is_start: Author-set start marker
        is_ending: Author-set ending marker
        created_at: Creation time, fallback ordering for start resolution
    """

    __tablename__ = "story_parts"

    id = Column(String, primary_key=True, default=_new_id)
    story_id = Column(
        String, ForeignKey("stories.id", ondelete="CASCADE"), nullable=False
    )
    content = Column(Text, nullable=False, default="")
    is_start = Column(Boolean, nullable=False, default=False)
    is_ending = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (Index("ix_story_parts_story_created", "story_id", "created_at"),)


class StoryChoice(Base):
    """
    Story choice (graph edge). A NULL next_part_id ends the story.
    """

    __tablename__ = "story_choices"

    id = Column(String, primary_key=True, default=_new_id)
    part_id = Column(
        String,
        ForeignKey("story_parts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    choice_text = Column(String, nullable=False)
    next_part_id = Column(String, nullable=True)
    order_index = Column(Integer, nullable=False, default=0)


class StoryProgress(Base):
    """
    Reader progress; exactly one row per (user_id, story_id).
    """

    __tablename__ = "story_progress"

    id = Column(String, primary_key=True, default=_new_id)
    user_id = Column(String, nullable=False)
    story_id = Column(String, nullable=False)
    current_part_id = Column(String, nullable=True)
    completed = Column(Boolean, nullable=False, default=False)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "story_id", name="uq_story_progress_reader"),
    )


class ReaderPath(Base):
    """
    Last exported reading path of a reader through a story.

    Attributes:
        story_path: Ordered list of path entries as JSON
    """

    __tablename__ = "user_story_paths"

    id = Column(String, primary_key=True, default=_new_id)
    user_id = Column(String, nullable=False)
    story_id = Column(String, nullable=False)
    story_path = Column(JSON, nullable=False, default=list)
    updated_at = Column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __table_args__ = (
        UniqueConstraint("user_id", "story_id", name="uq_user_story_paths_reader"),
    )
