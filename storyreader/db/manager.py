"""
Database manager for the story reading engine.

This module provides a high-level interface for database operations on the
story graph, reader progress and exported reading paths, with automatic
connection management.
"""

import os
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import create_engine, or_
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session as DBSession
from sqlalchemy.orm import sessionmaker

from storyreader.db.schema import (
    Base,
    ReaderPath,
    Story,
    StoryChoice,
    StoryPart,
    StoryProgress,
)
from storyreader.utils.logger import get_logger

logger = get_logger(__name__)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _story_to_dict(story: Story) -> Dict[str, Any]:
    return {
        "id": story.id,
        "title": story.title,
        "description": story.description,
        "genre": story.genre,
        "author_id": story.author_id,
        "status": story.status,
        "created_at": _iso(story.created_at),
        "updated_at": _iso(story.updated_at),
    }


def _part_to_dict(part: StoryPart) -> Dict[str, Any]:
    return {
        "id": part.id,
        "story_id": part.story_id,
        "content": part.content,
        "is_start": bool(part.is_start),
        "is_ending": bool(part.is_ending),
        "created_at": _iso(part.created_at),
    }


def _choice_to_dict(choice: StoryChoice) -> Dict[str, Any]:
    return {
        "id": choice.id,
        "part_id": choice.part_id,
        "choice_text": choice.choice_text,
        "next_part_id": choice.next_part_id,
        "order_index": choice.order_index,
    }


def _progress_to_dict(progress: StoryProgress) -> Dict[str, Any]:
    return {
        "id": progress.id,
        "user_id": progress.user_id,
        "story_id": progress.story_id,
        "current_part_id": progress.current_part_id,
        "completed": bool(progress.completed),
        "updated_at": _iso(progress.updated_at),
    }


class DatabaseManager:
    """
    Manages database operations for stories, progress and reading paths.

    The graph tables are written only by the authoring helpers (seeding and
    tests); the reading engine reads them and mutates progress.

    Attributes:
        db_path: Path to the SQLite database file
        engine: SQLAlchemy engine for database connections
        SessionLocal: Factory for creating database sessions
    """

    def __init__(self, db_path: str = "data/storyreader.db"):
        """
        Initialize the database manager.

        Args:
            db_path: Path to SQLite database file (created if doesn't exist)
        """
        self.db_path = db_path

        directory = os.path.dirname(db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        self.engine = create_engine(
            f"sqlite:///{db_path}",
            echo=False,  # Set to True for SQL debugging
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine)

        logger.info(f"Database initialized at {db_path}")

    # ==================== Authoring Operations ====================

    def save_story(self, story_dict: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert or update a story.

        Args:
            story_dict: Dictionary with keys id (optional), title, description,
                genre, author_id, status

        Returns:
            Dictionary with saved story data
        """
        db: DBSession = self.SessionLocal()
        try:
            story = None
            if story_dict.get("id"):
                story = db.query(Story).filter(Story.id == story_dict["id"]).first()

            if story:
                for key in ("title", "description", "genre", "author_id", "status"):
                    if key in story_dict:
                        setattr(story, key, story_dict[key])
                story.updated_at = datetime.utcnow()  # type: ignore
            else:
                story = Story(
                    id=story_dict.get("id") or str(uuid.uuid4()),
                    title=story_dict["title"],
                    description=story_dict.get("description"),
                    genre=story_dict.get("genre"),
                    author_id=story_dict.get("author_id"),
                    status=story_dict.get("status", "draft"),
                )
                db.add(story)

            db.commit()
            result = _story_to_dict(story)
            logger.debug(f"Saved story {result['id']}: {result['title']}")
            return result
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to save story: {e}")
            raise
        finally:
            db.close()

    def save_part(self, part_dict: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert or update a story part.

        Args:
            part_dict: Dictionary with keys id (optional), story_id, content,
                is_start, is_ending, created_at (optional datetime)

        Returns:
            Dictionary with saved part data
        """
        db: DBSession = self.SessionLocal()
        try:
            part = None
            if part_dict.get("id"):
                part = db.query(StoryPart).filter(StoryPart.id == part_dict["id"]).first()

            if part:
                for key in ("content", "is_start", "is_ending"):
                    if key in part_dict:
                        setattr(part, key, part_dict[key])
            else:
                part = StoryPart(
                    id=part_dict.get("id") or str(uuid.uuid4()),
                    story_id=part_dict["story_id"],
                    content=part_dict.get("content", ""),
                    is_start=part_dict.get("is_start", False),
                    is_ending=part_dict.get("is_ending", False),
                    created_at=part_dict.get("created_at") or datetime.utcnow(),
                )
                db.add(part)

            db.commit()
            result = _part_to_dict(part)
            logger.debug(f"Saved part {result['id']} of story {result['story_id']}")
            return result
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to save part: {e}")
            raise
        finally:
            db.close()

    def save_choice(self, choice_dict: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert or update a choice.

        Args:
            choice_dict: Dictionary with keys id (optional), part_id,
                choice_text, next_part_id (None ends the story), order_index

        Returns:
            Dictionary with saved choice data
        """
        db: DBSession = self.SessionLocal()
        try:
            choice = None
            if choice_dict.get("id"):
                choice = (
                    db.query(StoryChoice)
                    .filter(StoryChoice.id == choice_dict["id"])
                    .first()
                )

            if choice:
                for key in ("choice_text", "next_part_id", "order_index"):
                    if key in choice_dict:
                        setattr(choice, key, choice_dict[key])
            else:
                choice = StoryChoice(
                    id=choice_dict.get("id") or str(uuid.uuid4()),
                    part_id=choice_dict["part_id"],
                    choice_text=choice_dict["choice_text"],
                    next_part_id=choice_dict.get("next_part_id"),
                    order_index=choice_dict.get("order_index", 0),
                )
                db.add(choice)

            db.commit()
            result = _choice_to_dict(choice)
            logger.debug(f"Saved choice {result['id']} on part {result['part_id']}")
            return result
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to save choice: {e}")
            raise
        finally:
            db.close()

    def delete_choice(self, choice_id: str) -> bool:
        """
        Delete a choice.

        Returns:
            True if deleted, False if not found
        """
        db: DBSession = self.SessionLocal()
        try:
            choice = db.query(StoryChoice).filter(StoryChoice.id == choice_id).first()
            if choice:
                db.delete(choice)
                db.commit()
                logger.info(f"Deleted choice {choice_id}")
                return True
            return False
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to delete choice: {e}")
            raise
        finally:
            db.close()

    # ==================== Graph Queries ====================

    def get_visible_story(
        self, story_id: str, reader_id: Optional[str]
    ) -> Optional[Dict[str, Any]]:
        """
        Retrieve a story if it is published or owned by the reader.

        Args:
            story_id: The story's unique identifier
            reader_id: The requesting reader

        Returns:
            Dictionary with story data, or None if absent or not visible
        """
        db: DBSession = self.SessionLocal()
        try:
            visible = Story.status == "published"
            if reader_id:
                visible = or_(visible, Story.author_id == reader_id)
            story = db.query(Story).filter(Story.id == story_id).filter(visible).first()
            return _story_to_dict(story) if story else None
        finally:
            db.close()

    def get_part(self, part_id: str) -> Optional[Dict[str, Any]]:
        """Retrieve a part by ID, or None if not found."""
        db: DBSession = self.SessionLocal()
        try:
            part = db.query(StoryPart).filter(StoryPart.id == part_id).first()
            return _part_to_dict(part) if part else None
        finally:
            db.close()

    def list_choices(self, part_id: str) -> List[Dict[str, Any]]:
        """
        List the choices leaving a part.

        Returns:
            Choice dictionaries ordered by order_index, then id
        """
        db: DBSession = self.SessionLocal()
        try:
            choices = (
                db.query(StoryChoice)
                .filter(StoryChoice.part_id == part_id)
                .order_by(StoryChoice.order_index.asc(), StoryChoice.id.asc())
                .all()
            )
            return [_choice_to_dict(c) for c in choices]
        finally:
            db.close()

    def get_start_part(self, story_id: str) -> Optional[Dict[str, Any]]:
        """
        Retrieve the part a reading pass starts from.

        The earliest-created part flagged is_start wins; without a flagged
        part the earliest-created part is used.

        Returns:
            Part dictionary, or None if the story has no parts
        """
        db: DBSession = self.SessionLocal()
        try:
            ordered = db.query(StoryPart).filter(StoryPart.story_id == story_id)
            ordering = (StoryPart.created_at.asc(), StoryPart.id.asc())

            part = ordered.filter(StoryPart.is_start.is_(True)).order_by(*ordering).first()
            if part is None:
                logger.debug(f"No start part flagged for story {story_id}")
                part = ordered.order_by(*ordering).first()
            return _part_to_dict(part) if part else None
        finally:
            db.close()

    # ==================== Progress Operations ====================

    def upsert_progress(self, user_id: str, story_id: str) -> Dict[str, Any]:
        """
        Return the progress row for (user_id, story_id), creating it if absent.

        The insert is a single INSERT ... ON CONFLICT DO NOTHING against the
        unique (user_id, story_id) constraint, so concurrent callers end up
        sharing one row. An existing row is returned untouched.
        """
        db: DBSession = self.SessionLocal()
        try:
            statement = (
                sqlite_insert(StoryProgress)
                .values(
                    id=str(uuid.uuid4()),
                    user_id=user_id,
                    story_id=story_id,
                    current_part_id=None,
                    completed=False,
                    updated_at=datetime.utcnow(),
                )
                .on_conflict_do_nothing(index_elements=["user_id", "story_id"])
            )
            db.execute(statement)
            db.commit()

            progress = (
                db.query(StoryProgress)
                .filter(StoryProgress.user_id == user_id)
                .filter(StoryProgress.story_id == story_id)
                .one()
            )
            result = _progress_to_dict(progress)
            logger.debug(f"Progress {result['id']} for reader {user_id} on {story_id}")
            return result
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to upsert progress: {e}")
            raise
        finally:
            db.close()

    def get_progress(self, user_id: str, story_id: str) -> Optional[Dict[str, Any]]:
        """Retrieve the progress row for a reader and story, or None."""
        db: DBSession = self.SessionLocal()
        try:
            progress = (
                db.query(StoryProgress)
                .filter(StoryProgress.user_id == user_id)
                .filter(StoryProgress.story_id == story_id)
                .first()
            )
            return _progress_to_dict(progress) if progress else None
        finally:
            db.close()

    def count_progress(self, user_id: str, story_id: str) -> int:
        db: DBSession = self.SessionLocal()
        try:
            return (
                db.query(StoryProgress)
                .filter(StoryProgress.user_id == user_id)
                .filter(StoryProgress.story_id == story_id)
                .count()
            )
        finally:
            db.close()

    def update_progress(self, progress_id: str, updates: Dict[str, Any]) -> bool:
        """
        Update progress fields.

        Args:
            progress_id: The progress row's identifier
            updates: Dictionary of fields to update (current_part_id, completed)

        Returns:
            True if updated successfully, False if not found
        """
        db: DBSession = self.SessionLocal()
        try:
            progress = (
                db.query(StoryProgress).filter(StoryProgress.id == progress_id).first()
            )
            if progress:
                for key, value in updates.items():
                    if hasattr(progress, key) and key not in ["id", "user_id", "story_id"]:
                        setattr(progress, key, value)  # type: ignore
                progress.updated_at = datetime.utcnow()  # type: ignore
                db.commit()
                logger.debug(f"Updated progress {progress_id}: {list(updates.keys())}")
                return True
            return False
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to update progress: {e}")
            raise
        finally:
            db.close()

    def mark_progress_completed(self, progress_id: str) -> bool:
        return self.update_progress(progress_id, {"completed": True})

    def reset_progress(self, progress_id: str) -> bool:
        return self.update_progress(
            progress_id, {"current_part_id": None, "completed": False}
        )

    # ==================== Reading Path Operations ====================

    def save_reader_path(
        self, user_id: str, story_id: str, entries: List[Dict[str, Any]]
    ) -> Dict[str, Any]:
        """
        Store the latest exported path of a reader through a story.

        Args:
            user_id: Reader identifier
            story_id: Story identifier
            entries: JSON-ready path entries, in order

        Returns:
            Dictionary with the saved path
        """
        db: DBSession = self.SessionLocal()
        try:
            now = datetime.utcnow()
            statement = sqlite_insert(ReaderPath).values(
                id=str(uuid.uuid4()),
                user_id=user_id,
                story_id=story_id,
                story_path=entries,
                updated_at=now,
            )
            statement = statement.on_conflict_do_update(
                index_elements=["user_id", "story_id"],
                set_={"story_path": statement.excluded.story_path, "updated_at": now},
            )
            db.execute(statement)
            db.commit()
            logger.debug(f"Saved {len(entries)} path entries for {user_id} on {story_id}")
            return {
                "user_id": user_id,
                "story_id": story_id,
                "story_path": entries,
                "updated_at": now.isoformat(),
            }
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to save reader path: {e}")
            raise
        finally:
            db.close()

    def get_reader_path(self, user_id: str, story_id: str) -> Optional[Dict[str, Any]]:
        """Retrieve the exported path for a reader and story, or None."""
        db: DBSession = self.SessionLocal()
        try:
            row = (
                db.query(ReaderPath)
                .filter(ReaderPath.user_id == user_id)
                .filter(ReaderPath.story_id == story_id)
                .first()
            )
            if row:
                return {
                    "user_id": row.user_id,
                    "story_id": row.story_id,
                    "story_path": row.story_path or [],
                    "updated_at": _iso(row.updated_at),
                }
            return None
        finally:
            db.close()
