"""
Deterministic replay of a recorded reading path.

The replay engine drives a read-only ``ReadingSession`` and, instead of
waiting for the reader, applies the choice that was recorded on each node
after a fixed delay. When the recording no longer matches the live graph it
stops and leaves the node on screen for the reader to continue by hand.
"""

import asyncio
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Sequence

from pydantic import BaseModel, Field

from storyreader.config import settings
from storyreader.engine.errors import EngineError, ReplayDesyncError
from storyreader.engine.session import ReadingSession, SessionMode, SessionState
from storyreader.schemas.story import PathEntry, StoryChoice, StoryNode
from storyreader.utils.logger import get_logger

logger = get_logger(__name__)


class ReplayStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    DESYNCED = "desynced"
    CANCELLED = "cancelled"
    UNAVAILABLE = "unavailable"


class ReplayResult(BaseModel):
    status: ReplayStatus
    stopped_at: Optional[str] = Field(None, description="Part left on screen")
    applied_choices: List[str] = Field(default_factory=list)
    path: List[PathEntry] = Field(default_factory=list)
    detail: Optional[str] = None


class ReplayEngine:
    """
    Re-walks a recorded path through a replay-mode session.

    Attributes:
        session: The read-only session being driven
        entries: The recorded path
        step_delay: Seconds each node stays visible before auto-advancing
        status: Current ReplayStatus
    """

    def __init__(
        self,
        session: ReadingSession,
        entries: Sequence[PathEntry],
        step_delay: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if session.mode != SessionMode.REPLAY:
            raise ValueError("Replay requires a session in replay mode")
        if not entries:
            raise ValueError("Cannot replay an empty path")

        self.session = session
        self.entries = list(entries)
        self.step_delay = settings.replay_step_delay if step_delay is None else step_delay
        self.status = ReplayStatus.PENDING
        self.applied_choices: List[str] = []
        self.detail: Optional[str] = None

        self._recorded_choices = [e for e in self.entries if e.is_choice]
        self._cursor = 0
        self._cancelled = False
        self._task: Optional[asyncio.Task] = None
        self._sleep = sleep

        session.replay = self

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    async def prepare(self) -> None:
        """Start the session on the first recorded part."""
        if self.session.state == SessionState.INITIALIZING:
            await self.session.start(start_part_id=self.entries[0].part_id)

    def start(self) -> asyncio.Task:
        """Run the replay in the background; returns the task."""
        if self._task is None:
            self._task = asyncio.create_task(self.run())
        return self._task

    def cancel(self) -> None:
        """
        Stop the replay. A pending auto-advance never fires after this.
        """
        if self._cancelled:
            return
        self._cancelled = True
        if self.status in (ReplayStatus.PENDING, ReplayStatus.RUNNING):
            self.status = ReplayStatus.CANCELLED
        if self._task is not None and not self._task.done():
            self._task.cancel()
        logger.info(f"Replay of session {self.session.id[:8]} cancelled")

    async def wait(self) -> ReplayResult:
        if self._task is not None:
            try:
                await self._task
            except asyncio.CancelledError:
                if not self._task.cancelled():
                    raise
        return self.result()

    def result(self) -> ReplayResult:
        node = self.session.node
        return ReplayResult(
            status=self.status,
            stopped_at=node.id if node is not None else None,
            applied_choices=list(self.applied_choices),
            path=self.session.path,
            detail=self.detail,
        )

    async def run(self) -> ReplayResult:
        """Drive the session until the path ends, desyncs or is cancelled."""
        try:
            await self.prepare()
        except EngineError as e:
            self._stop(ReplayStatus.UNAVAILABLE, str(e))
            return self.result()
        if self._cancelled:
            return self.result()
        self.status = ReplayStatus.RUNNING
        logger.info(
            f"Replaying {len(self._recorded_choices)} recorded choices in session {self.session.id[:8]}"
        )

        try:
            while not self._cancelled:
                state = self.session.state
                if state == SessionState.UNAVAILABLE:
                    self._stop(ReplayStatus.UNAVAILABLE, "Story is not available")
                    break
                if state == SessionState.ENDED:
                    self._stop(ReplayStatus.COMPLETED)
                    break

                node = self.session.node
                if node.requires_finish:
                    self._stop(ReplayStatus.COMPLETED)
                    break

                try:
                    choice = self._next_recorded_choice(node)
                except ReplayDesyncError as e:
                    self._stop(ReplayStatus.DESYNCED, str(e))
                    break

                await self._sleep(self.step_delay)
                if self._cancelled:
                    break

                try:
                    await self.session.choose(choice.id)
                except EngineError as e:
                    self._stop(ReplayStatus.DESYNCED, str(e))
                    break
                except Exception as e:
                    logger.error(f"Unexpected error while replaying: {e}", exc_info=True)
                    self._stop(ReplayStatus.DESYNCED, str(e))
                    break
                self.applied_choices.append(choice.id)
        except asyncio.CancelledError:
            self._cancelled = True
            self.status = ReplayStatus.CANCELLED
            raise

        if self._cancelled:
            self.status = ReplayStatus.CANCELLED
        return self.result()

    def _next_recorded_choice(self, node: StoryNode) -> StoryChoice:
        """
        Find the next recorded choice made on ``node`` and its live counterpart.

        Recorded choices are consumed in order, so a node visited twice
        replays the choice made on each visit.
        """
        for index in range(self._cursor, len(self._recorded_choices)):
            entry = self._recorded_choices[index]
            if entry.part_id != node.id:
                continue
            choice = node.find_choice(entry.choice_id)
            if choice is None:
                raise ReplayDesyncError(node.id, entry.choice_id)
            self._cursor = index + 1
            return choice
        raise ReplayDesyncError(node.id)

    def _stop(self, status: ReplayStatus, detail: Optional[str] = None) -> None:
        self.status = status
        self.detail = detail
        if status == ReplayStatus.DESYNCED:
            logger.warning(
                f"Replay desynced in session {self.session.id[:8]}, handing control to the reader: {detail}"
            )
        else:
            logger.info(f"Replay of session {self.session.id[:8]} {status.value}")
