"""
Reading session controller.

A ``ReadingSession`` walks one reader through one story:

    initializing -> presenting -> choosing  -> presenting ... -> ended
                                -> finishing -> ended
    initializing -> unavailable

Every piece of context (reader, story, mode) is passed in explicitly. The
only suspension points are storage calls, and only one mutating action runs
at a time per session; a second one is rejected with ``SessionBusyError``
instead of racing the first on the same progress record.
"""

import asyncio
import uuid
from contextlib import asynccontextmanager
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from pydantic import BaseModel, Field

from storyreader.engine.errors import (
    EngineError,
    GraphIncompleteError,
    InvalidActionError,
    NotFoundError,
    PartNotFoundError,
    PathDecodeError,
    PersistenceError,
    SessionBusyError,
    StoryNotFoundError,
)
from storyreader.engine.graph import StoryGraph
from storyreader.engine.path import PathRecorder, decode_path, encode_path
from storyreader.engine.progress import ProgressStore
from storyreader.engine.repository import StoryRepository
from storyreader.engine.resolver import resolve_choice
from storyreader.schemas.story import (
    PathEntry,
    Story,
    StoryChoice,
    StoryNode,
    StoryProgress,
)
from storyreader.utils.logger import VERBOSE, get_logger

if TYPE_CHECKING:
    from storyreader.engine.replay import ReplayEngine

logger = get_logger(__name__)


class SessionMode(str, Enum):
    READ = "read"
    PREVIEW = "preview"
    REPLAY = "replay"


class SessionState(str, Enum):
    INITIALIZING = "initializing"
    PRESENTING = "presenting"
    CHOOSING = "choosing"
    FINISHING = "finishing"
    ENDED = "ended"
    UNAVAILABLE = "unavailable"


class UnavailableReason(str, Enum):
    NOT_FOUND = "not_found"
    NO_CONTENT = "no_content"


class UnavailableAction(str, Enum):
    ADD_CONTENT = "add_content"
    CANCEL = "cancel"
    ACKNOWLEDGE = "acknowledge"


class UnavailableInfo(BaseModel):
    """What to tell the reader when a story cannot be read"""

    reason: UnavailableReason
    title: str
    message: str
    actions: List[UnavailableAction]


class ChoiceView(BaseModel):
    id: str
    text: str
    ends_story: bool


class NodeView(BaseModel):
    part_id: str
    content: str
    is_ending: bool
    choices: List[ChoiceView] = Field(default_factory=list)
    can_finish: bool


class SessionView(BaseModel):
    """Serializable snapshot of a reading session"""

    id: str
    story_id: str
    reader_id: str
    mode: SessionMode
    state: SessionState
    story_title: Optional[str] = None
    node: Optional[NodeView] = None
    saving: bool = False
    path_length: int = 0
    last_error: Optional[str] = None
    unavailable: Optional[UnavailableInfo] = None
    replay_status: Optional[str] = None


class SessionResult(BaseModel):
    """Handed to the caller when a reading pass ends"""

    story_id: str
    reader_id: str
    completed: bool = Field(..., description="Completion was persisted")
    preview: bool = False
    path: List[PathEntry]
    encoded_path: str


def _no_content_info(is_author: bool) -> UnavailableInfo:
    if is_author:
        return UnavailableInfo(
            reason=UnavailableReason.NO_CONTENT,
            title="Story Not Ready",
            message="This story doesn't have any content yet. Would you like to add some content now?",
            actions=[UnavailableAction.ADD_CONTENT, UnavailableAction.CANCEL],
        )
    return UnavailableInfo(
        reason=UnavailableReason.NO_CONTENT,
        title="Story Unavailable",
        message="This story is not available for reading at this time.",
        actions=[UnavailableAction.ACKNOWLEDGE],
    )


NOT_FOUND_INFO = UnavailableInfo(
    reason=UnavailableReason.NOT_FOUND,
    title="Story Unavailable",
    message="This story could not be found or is not available to you.",
    actions=[UnavailableAction.ACKNOWLEDGE],
)


class ReadingSession:
    """
    State machine for one reading pass.

    Attributes:
        id: Session identifier
        reader_id: Reader walking the story
        story_id: Story being read
        mode: read, preview (author, no progress writes) or replay
        state: Current SessionState
        node: Node being presented, if any
        progress: Reader progress (transient in preview/replay)
        recorder: Path of this pass
        result: Set once the session has ended
    """

    def __init__(
        self,
        repository: StoryRepository,
        reader_id: str,
        story_id: str,
        mode: SessionMode = SessionMode.READ,
    ):
        self.id = str(uuid.uuid4())
        self.repository = repository
        self.reader_id = reader_id
        self.story_id = story_id
        self.mode = mode

        self.graph = StoryGraph(repository)
        self.progress_store = ProgressStore(repository, read_only=self.read_only)
        self.recorder = PathRecorder()

        self.state = SessionState.INITIALIZING
        self.story: Optional[Story] = None
        self.node: Optional[StoryNode] = None
        self.progress: Optional[StoryProgress] = None
        self.unavailable: Optional[UnavailableInfo] = None
        self.result: Optional[SessionResult] = None
        self.last_error: Optional[str] = None
        self.replay: Optional["ReplayEngine"] = None

        self._lock = asyncio.Lock()

    @property
    def read_only(self) -> bool:
        return self.mode in (SessionMode.PREVIEW, SessionMode.REPLAY)

    @property
    def saving(self) -> bool:
        return self._lock.locked()

    @property
    def path(self) -> List[PathEntry]:
        return list(self.recorder.entries)

    def _transition(self, state: SessionState) -> None:
        logger.log(
            VERBOSE, f"Session {self.id[:8]}: {self.state.value} -> {state.value}"
        )
        self.state = state

    def _require(self, *states: SessionState) -> None:
        if self.state not in states:
            raise InvalidActionError(
                f"Action not available while session is {self.state.value}"
            )

    @asynccontextmanager
    async def _exclusive(self):
        if self._lock.locked():
            raise SessionBusyError("A previous action is still being processed")
        async with self._lock:
            yield

    # ==================== Initialization ====================

    async def start(self, start_part_id: Optional[str] = None) -> SessionView:
        """
        Load the story, the reader's progress and the first node to present.

        Args:
            start_part_id: Explicit entry node (replays); otherwise the stored
                progress position or the story's start node is used

        Raises:
            PersistenceError: The story or progress could not be loaded; start
                may be retried
        """
        async with self._exclusive():
            self._require(SessionState.INITIALIZING)
            logger.info(
                f"Starting {self.mode.value} session {self.id[:8]} for reader "
                f"{self.reader_id} on story {self.story_id}"
            )

            try:
                self.story = await self.graph.load_story(self.story_id, self.reader_id)
            except StoryNotFoundError as e:
                logger.warning(f"✗ {e}")
                self._become_unavailable(NOT_FOUND_INFO)
                return self.snapshot()
            except PersistenceError as e:
                self.last_error = str(e)
                raise

            try:
                self.progress = await self.progress_store.get_or_create(
                    self.reader_id, self.story_id
                )
            except PersistenceError as e:
                self.last_error = str(e)
                raise

            try:
                node = await self._load_entry_node(start_part_id)
            except GraphIncompleteError as e:
                logger.info(f"✗ {e}")
                self._become_unavailable(
                    _no_content_info(self.story.is_owned_by(self.reader_id))
                )
                return self.snapshot()
            except NotFoundError as e:
                logger.warning(f"✗ {e}")
                self._become_unavailable(NOT_FOUND_INFO)
                return self.snapshot()
            except PersistenceError as e:
                self.last_error = str(e)
                raise

            self.last_error = None
            self._present(node)
            logger.info(f"✓ Session {self.id[:8]} presenting part {node.id}")
            return self.snapshot()

    async def _load_entry_node(self, start_part_id: Optional[str]) -> StoryNode:
        if start_part_id:
            return await self.graph.load_node(start_part_id, self.story_id)

        resume_id = self.progress.current_part_id if self.progress else None
        if resume_id:
            try:
                return await self.graph.load_node(resume_id, self.story_id)
            except PartNotFoundError:
                logger.warning(
                    f"Saved position {resume_id} no longer exists, restarting from the start part"
                )

        entry_id = await self.graph.resolve_start_node(self.story_id)
        if entry_id is None:
            raise GraphIncompleteError(self.story_id)
        return await self.graph.load_node(entry_id, self.story_id)

    def _become_unavailable(self, info: UnavailableInfo) -> None:
        self.unavailable = info
        self._transition(SessionState.UNAVAILABLE)

    def _present(self, node: StoryNode) -> None:
        self.node = node
        self.recorder.record_arrival(node.id, node.content)
        self._transition(SessionState.PRESENTING)

    # ==================== Reader Actions ====================

    def available_actions(self) -> List[str]:
        """Choice ids the reader may pick, or ["finish"] on ending nodes."""
        if self.state == SessionState.UNAVAILABLE and self.unavailable:
            return [action.value for action in self.unavailable.actions]
        if self.state != SessionState.PRESENTING or self.node is None:
            return []
        if self.node.requires_finish:
            return ["finish"]
        return [choice.id for choice in self.node.choices]

    async def choose(self, choice_id: str) -> Optional[SessionResult]:
        """
        Apply a choice on the presented node.

        Returns:
            The SessionResult when the choice ended the story, else None

        Raises:
            InvalidActionError: Not presenting, the node only allows finishing,
                or the choice does not belong to the node
            SessionBusyError: Another action is in flight
            PersistenceError: The next part could not be loaded or progress
                could not be saved; the session keeps presenting the same node
            PartNotFoundError: The choice leads to a part that no longer exists
                or that belongs to another story
        """
        async with self._exclusive():
            self._require(SessionState.PRESENTING)
            node = self.node
            if node.requires_finish:
                raise InvalidActionError("This part can only be finished")
            choice = node.find_choice(choice_id)
            if choice is None:
                raise InvalidActionError(f"Choice {choice_id} is not available on part {node.id}")

            self._transition(SessionState.CHOOSING)
            resolution = resolve_choice(choice)
            logger.debug(f"Choice {choice.id} on part {node.id} resolved to {resolution.kind.value}")

            if resolution.terminates:
                return await self._finish(choice)

            try:
                next_node = await self.graph.load_node(resolution.next_part_id, self.story_id)
                self.progress = await self.progress_store.advance(self.progress, next_node.id)
            except EngineError as e:
                self._fail_back_to_presenting(e)
                raise

            self.recorder.record_choice(node.id, choice.id, choice.choice_text, next_node.id)
            self.last_error = None
            self._present(next_node)
            return None

    async def finish(self) -> SessionResult:
        """
        Finish the story on an ending node (or a node without choices).

        Raises:
            InvalidActionError: The presented node still offers choices
            PersistenceError: Completion could not be saved; may be retried
        """
        async with self._exclusive():
            self._require(SessionState.PRESENTING)
            if not self.node.requires_finish:
                raise InvalidActionError("Pick a choice to continue this story")
            return await self._finish()

    async def _finish(self, choice: Optional[StoryChoice] = None) -> SessionResult:
        node = self.node
        self._transition(SessionState.FINISHING)
        try:
            self.progress = await self.progress_store.complete(self.progress)
        except PersistenceError as e:
            self._fail_back_to_presenting(e)
            raise

        if choice is not None:
            self.recorder.record_choice(node.id, choice.id, choice.choice_text)
        else:
            self.recorder.record_finish(node.id, node.content)

        self.last_error = None
        self._transition(SessionState.ENDED)
        self.result = SessionResult(
            story_id=self.story_id,
            reader_id=self.reader_id,
            completed=not self.read_only,
            preview=self.mode == SessionMode.PREVIEW,
            path=self.path,
            encoded_path=self.recorder.encode(),
        )
        logger.info(
            f"✓ Session {self.id[:8]} ended on part {node.id} after {len(self.recorder)} path entries"
        )
        return self.result

    def _fail_back_to_presenting(self, error: Exception) -> None:
        logger.error(f"✗ Session {self.id[:8]}: {error}")
        self.last_error = (
            "Failed to save progress, please try again"
            if isinstance(error, PersistenceError)
            else str(error)
        )
        self._transition(SessionState.PRESENTING)

    # ==================== Views ====================

    def snapshot(self) -> SessionView:
        node_view = None
        if self.node is not None and self.state != SessionState.UNAVAILABLE:
            node_view = NodeView(
                part_id=self.node.id,
                content=self.node.content,
                is_ending=self.node.is_ending,
                choices=[
                    ChoiceView(id=c.id, text=c.choice_text, ends_story=c.is_terminal)
                    for c in self.node.choices
                ],
                can_finish=self.node.requires_finish,
            )
        return SessionView(
            id=self.id,
            story_id=self.story_id,
            reader_id=self.reader_id,
            mode=self.mode,
            state=self.state,
            story_title=self.story.title if self.story else None,
            node=node_view,
            saving=self.saving,
            path_length=len(self.recorder),
            last_error=self.last_error,
            unavailable=self.unavailable,
            replay_status=self.replay.status.value if self.replay else None,
        )


async def open_session(
    repository: StoryRepository,
    reader_id: str,
    story_id: str,
    preview: bool = False,
    path_payload: Optional[str] = None,
    step_delay: Optional[float] = None,
) -> ReadingSession:
    """
    Create and start a reading session.

    With ``path_payload`` the session replays the recorded path in the
    background. A payload that cannot be decoded is logged and a normal
    session is started instead.
    """
    from storyreader.engine.replay import ReplayEngine

    if path_payload:
        try:
            entries = decode_path(path_payload)
        except PathDecodeError as e:
            logger.warning(f"Ignoring replay path for story {story_id}: {e}")
        else:
            session = ReadingSession(repository, reader_id, story_id, mode=SessionMode.REPLAY)
            replay = ReplayEngine(session, entries, step_delay=step_delay)
            await replay.prepare()
            replay.start()
            return session

    mode = SessionMode.PREVIEW if preview else SessionMode.READ
    session = ReadingSession(repository, reader_id, story_id, mode=mode)
    await session.start()
    return session


async def restart_story(
    repository: StoryRepository, reader_id: str, story_id: str
) -> StoryProgress:
    """
    Reset a reader's progress so the next session begins at the start part.

    Raises:
        StoryNotFoundError: The story is absent or not visible to the reader
        PersistenceError: The reset could not be saved
    """
    graph = StoryGraph(repository)
    await graph.load_story(story_id, reader_id)

    store = ProgressStore(repository)
    progress = await store.get_or_create(reader_id, story_id)
    progress = await store.reset(progress)
    logger.info(f"Progress of reader {reader_id} on story {story_id} reset")
    return progress


async def export_path(repository: StoryRepository, result: SessionResult) -> bool:
    """
    Persist the path of a finished pass so it can be replayed later.

    Preview passes are never exported.

    Raises:
        PersistenceError: The path could not be saved
    """
    if result.preview:
        logger.debug("Preview pass, path not exported")
        return False
    try:
        await repository.save_reader_path(result.reader_id, result.story_id, result.path)
    except Exception as e:
        logger.error(f"Failed to export path for {result.reader_id}/{result.story_id}: {e}")
        raise PersistenceError("save reading path", e) from e
    return True


async def load_saved_path(
    repository: StoryRepository, reader_id: str, story_id: str
) -> Optional[str]:
    """Return the reader's exported path for a story, encoded for replay."""
    entries = await repository.fetch_reader_path(reader_id, story_id)
    if not entries:
        return None
    return encode_path(entries)
