"""
Reading session API endpoints.

Sessions live in memory for as long as the reader keeps the story open;
reader progress and exported paths are persisted through the repository.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from storyreader.config import settings
from storyreader.db.manager import DatabaseManager
from storyreader.engine.errors import (
    EngineError,
    NotFoundError,
    PersistenceError,
    SessionBusyError,
)
from storyreader.engine.repository import SQLStoryRepository
from storyreader.engine.session import ReadingSession, export_path, open_session
from storyreader.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()

# Database-backed repository for graph reads and progress writes
db = DatabaseManager(settings.database_path)
repository = SQLStoryRepository(db)

# Open reading sessions (not persisted)
sessions_db: Dict[str, ReadingSession] = {}


class ReadingStartRequest(BaseModel):
    """Request to open a reading session"""

    story_id: str
    reader_id: str
    preview: bool = Field(default=False, description="Author preview, no progress saved")
    path: Optional[str] = Field(
        default=None, description="Encoded path to replay instead of reading"
    )


class ChoiceRequest(BaseModel):
    choice_id: str


def http_error(error: EngineError) -> HTTPException:
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, SessionBusyError):
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, PersistenceError):
        return HTTPException(
            status_code=503, detail="Failed to save progress, please try again"
        )
    return HTTPException(status_code=400, detail=str(error))


def _get_session(session_id: str) -> ReadingSession:
    session = sessions_db.get(session_id)
    if session is None:
        logger.error(f"✗ Reading session not found: {session_id}")
        raise HTTPException(status_code=404, detail="Reading session not found")
    return session


@router.post("/")
async def start_reading(request: ReadingStartRequest):
    """
    Open a reading, preview or replay session.

    Returns:
        The session view; ``state`` is ``unavailable`` when the story cannot
        be read, with role-specific guidance in ``unavailable``
    """
    logger.info("=" * 60)
    logger.info("READING SESSION REQUEST")
    logger.info(f"Story ID: {request.story_id}")
    logger.info(f"Reader ID: {request.reader_id}")
    logger.debug(f"Preview: {request.preview}, replay: {bool(request.path)}")

    try:
        session = await open_session(
            repository,
            request.reader_id,
            request.story_id,
            preview=request.preview,
            path_payload=request.path,
        )
    except EngineError as e:
        raise http_error(e)

    sessions_db[session.id] = session
    logger.info(f"✓ Session opened: {session.id} ({session.state.value})")
    logger.debug(f"Open sessions: {len(sessions_db)}")
    return session.snapshot().model_dump(mode="json")


@router.get("/{session_id}")
async def get_reading(session_id: str):
    return _get_session(session_id).snapshot().model_dump(mode="json")


@router.post("/{session_id}/choices")
async def make_choice(session_id: str, request: ChoiceRequest):
    """
    Apply the reader's choice.

    Returns:
        Dictionary with the session view and, when the choice ended the
        story, the finished pass
    """
    session = _get_session(session_id)
    logger.info(f"Choice {request.choice_id} in session {session_id}")

    try:
        result = await session.choose(request.choice_id)
    except EngineError as e:
        raise http_error(e)

    return {
        "session": session.snapshot().model_dump(mode="json"),
        "result": result.model_dump(mode="json") if result else None,
    }


@router.post("/{session_id}/finish")
async def finish_reading(session_id: str):
    session = _get_session(session_id)
    logger.info(f"Finishing session {session_id}")

    try:
        result = await session.finish()
    except EngineError as e:
        raise http_error(e)

    return {
        "session": session.snapshot().model_dump(mode="json"),
        "result": result.model_dump(mode="json"),
    }


@router.post("/{session_id}/export")
async def export_reading_path(session_id: str):
    """Persist the path of a finished session for later replay."""
    session = _get_session(session_id)
    if session.result is None:
        raise HTTPException(status_code=400, detail="Session has not ended yet")

    try:
        exported = await export_path(repository, session.result)
    except EngineError as e:
        raise http_error(e)

    return {"session_id": session_id, "exported": exported}


@router.get("/{session_id}/path")
async def get_reading_path(session_id: str) -> Dict[str, Any]:
    session = _get_session(session_id)
    return {
        "session_id": session_id,
        "entries": [e.model_dump(mode="json") for e in session.recorder.entries],
        "journey": [e.part_id for e in session.recorder.unique_parts()],
        "encoded": session.recorder.encode(),
    }


@router.delete("/{session_id}")
async def close_reading(session_id: str):
    """Close a session; a running replay is cancelled."""
    session = _get_session(session_id)
    if session.replay is not None:
        session.replay.cancel()
    del sessions_db[session_id]
    logger.info(f"Closed session {session_id}")
    return {"session_id": session_id, "closed": True}
