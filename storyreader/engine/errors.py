"""
Errors raised by the reading engine.

All of them are scoped to a single reading session; none should take the
application down.
"""

from typing import Optional


class EngineError(Exception):
    """Base class for reading engine errors"""


class NotFoundError(EngineError):
    """A story or part is absent or not visible to the reader"""


class StoryNotFoundError(NotFoundError):
    def __init__(self, story_id: str):
        super().__init__(f"Story not found or not visible: {story_id}")
        self.story_id = story_id


class PartNotFoundError(NotFoundError):
    def __init__(self, part_id: str):
        super().__init__(f"Story part not found: {part_id}")
        self.part_id = part_id


class GraphIncompleteError(EngineError):
    """The story has no parts to read"""

    def __init__(self, story_id: str):
        super().__init__(f"Story has no parts: {story_id}")
        self.story_id = story_id


class PersistenceError(EngineError):
    """Saving reader progress failed; the reader may retry"""

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        message = f"Failed to {operation}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.operation = operation
        self.cause = cause


class ReplayDesyncError(EngineError):
    """The recorded choice no longer exists on the replayed node"""

    def __init__(self, part_id: str, choice_id: Optional[str] = None):
        if choice_id:
            message = f"Recorded choice {choice_id} is not available on part {part_id}"
        else:
            message = f"No recorded choice for part {part_id}"
        super().__init__(message)
        self.part_id = part_id
        self.choice_id = choice_id


class PathDecodeError(EngineError):
    """A transported reading path could not be decoded"""


class InvalidActionError(EngineError):
    """The requested action is not available in the session's current state"""


class SessionBusyError(EngineError):
    """Another action is still being processed for this session"""
