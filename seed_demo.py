#!/usr/bin/env python3
"""
Seed a demo story into the database and walk it with the reading engine.

Run with:
    python seed_demo.py seed             # create the demo story, print its id
    python seed_demo.py walk STORY_ID    # read it, always taking the first choice
    python seed_demo.py replay STORY_ID  # replay the reader's exported path
"""

import argparse
import asyncio
import sys
from datetime import datetime, timedelta

from storyreader.config import settings
from storyreader.db.manager import DatabaseManager
from storyreader.engine import (
    SQLStoryRepository,
    SessionState,
    export_path,
    load_saved_path,
    open_session,
    restart_story,
)
from storyreader.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)

DEMO_AUTHOR = "demo-author"
DEMO_READER = "demo-reader"


def seed(db: DatabaseManager) -> str:
    """Create "The Lighthouse", a three-part story with two endings."""
    story = db.save_story(
        {
            "title": "The Lighthouse",
            "description": "A keeper, a storm and a light that will not stay lit.",
            "genre": "mystery",
            "author_id": DEMO_AUTHOR,
            "status": "published",
        }
    )
    base = datetime.utcnow()
    shore = db.save_part(
        {
            "story_id": story["id"],
            "content": "The storm is coming in. The lighthouse lamp flickers.",
            "is_start": True,
            "created_at": base,
        }
    )
    tower = db.save_part(
        {
            "story_id": story["id"],
            "content": "At the top of the tower the lamp burns steady again. Ships pass safely.",
            "is_ending": True,
            "created_at": base + timedelta(seconds=1),
        }
    )
    db.save_choice(
        {
            "part_id": shore["id"],
            "choice_text": "Climb the tower",
            "next_part_id": tower["id"],
            "order_index": 0,
        }
    )
    db.save_choice(
        {
            "part_id": shore["id"],
            "choice_text": "Go back to bed",
            "next_part_id": None,
            "order_index": 1,
        }
    )
    return story["id"]


async def walk(db: DatabaseManager, story_id: str) -> None:
    repository = SQLStoryRepository(db)
    await restart_story(repository, DEMO_READER, story_id)
    session = await open_session(repository, DEMO_READER, story_id)

    while session.state == SessionState.PRESENTING:
        print(f"\n{session.node.content}")
        if session.node.requires_finish:
            result = await session.finish()
            break
        choice = session.node.choices[0]
        print(f"  -> {choice.choice_text}")
        result = await session.choose(choice.id)
        if result is not None:
            break
    else:
        print(f"Story unavailable: {session.unavailable.message}")
        return

    await export_path(repository, result)
    print(f"\nFinished, {len(result.path)} path entries exported")


async def replay(db: DatabaseManager, story_id: str) -> None:
    repository = SQLStoryRepository(db)
    payload = await load_saved_path(repository, DEMO_READER, story_id)
    if payload is None:
        print("No exported path, run 'walk' first")
        return

    session = await open_session(
        repository, DEMO_READER, story_id, path_payload=payload, step_delay=0.5
    )
    outcome = await session.replay.wait()
    print(f"Replay {outcome.status.value}, stopped at {outcome.stopped_at}")
    for entry in outcome.path:
        label = entry.choice_text if entry.is_choice else entry.part_content
        print(f"  {entry.part_id[:8]}  {label}")


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Seed and walk the demo story",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("command", choices=["seed", "walk", "replay"])
    parser.add_argument("story_id", nargs="?")
    parser.add_argument("--db", default=settings.database_path, help="SQLite file")
    parser.add_argument("--log-level", default="WARNING")
    args = parser.parse_args()

    setup_logging(level=args.log_level.upper(), enable_colors=True)
    db = DatabaseManager(args.db)

    if args.command == "seed":
        print(seed(db))
        return 0

    if not args.story_id:
        parser.error(f"{args.command} needs a story id")

    if args.command == "walk":
        asyncio.run(walk(db, args.story_id))
    else:
        asyncio.run(replay(db, args.story_id))
    return 0


if __name__ == "__main__":
    sys.exit(main())
