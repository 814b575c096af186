"""
Core engine components for interactive story reading
"""

from .graph import StoryGraph
from .path import PathRecorder, decode_path, encode_path
from .progress import ProgressStore
from .replay import ReplayEngine, ReplayResult, ReplayStatus
from .repository import SQLStoryRepository, StoryRepository
from .resolver import Resolution, ResolutionKind, resolve_choice
from .session import (
    ReadingSession,
    SessionMode,
    SessionResult,
    SessionState,
    export_path,
    load_saved_path,
    open_session,
    restart_story,
)

__all__ = [
    "StoryGraph",
    "StoryRepository",
    "SQLStoryRepository",
    "ProgressStore",
    "PathRecorder",
    "encode_path",
    "decode_path",
    "Resolution",
    "ResolutionKind",
    "resolve_choice",
    "ReadingSession",
    "SessionMode",
    "SessionState",
    "SessionResult",
    "ReplayEngine",
    "ReplayResult",
    "ReplayStatus",
    "open_session",
    "restart_story",
    "export_path",
    "load_saved_path",
]
