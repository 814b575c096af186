"""
Reader progress API endpoints ("read again" and saved paths).
"""

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from storyreader.api import reading
from storyreader.engine.errors import EngineError
from storyreader.engine.graph import StoryGraph
from storyreader.engine.session import load_saved_path, restart_story
from storyreader.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


class ResetRequest(BaseModel):
    reader_id: str


@router.post("/{story_id}/reset")
async def reset_progress(story_id: str, request: ResetRequest):
    """Rewind the reader's progress so the story starts over."""
    logger.info(f"Resetting progress of {request.reader_id} on story {story_id}")
    try:
        progress = await restart_story(reading.repository, request.reader_id, story_id)
    except EngineError as e:
        raise reading.http_error(e)
    return progress.model_dump(mode="json")


@router.get("/{story_id}/path")
async def get_saved_path(story_id: str, reader_id: str = Query(...)):
    """Return the reader's exported path, encoded for replay."""
    try:
        await StoryGraph(reading.repository).load_story(story_id, reader_id)
    except EngineError as e:
        raise reading.http_error(e)

    encoded = await load_saved_path(reading.repository, reader_id, story_id)
    if encoded is None:
        raise HTTPException(status_code=404, detail="No saved path for this story")
    return {"story_id": story_id, "reader_id": reader_id, "path": encoded}
