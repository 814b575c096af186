"""
Reading path recording and transport encoding.

A path is the ordered trace of one reading pass: an arrival entry the first
time a part is shown (with a snapshot of its content) and a choice entry for
every choice made. Paths cross session boundaries (ending screen, shared
replays) as a percent-encoded JSON array.
"""

import json
from datetime import datetime
from typing import Iterable, List, Optional, Set, Tuple
from urllib.parse import quote, unquote

from pydantic import ValidationError

from storyreader.engine.errors import PathDecodeError
from storyreader.schemas.story import PathEntry
from storyreader.utils.logger import get_logger

logger = get_logger(__name__)


class PathRecorder:
    """Append-only log of one reading pass"""

    def __init__(self, entries: Optional[Iterable[PathEntry]] = None):
        self._entries: List[PathEntry] = list(entries or [])
        self._arrived: Set[str] = {e.part_id for e in self._entries if not e.is_choice}

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> Tuple[PathEntry, ...]:
        return tuple(self._entries)

    @property
    def last(self) -> Optional[PathEntry]:
        return self._entries[-1] if self._entries else None

    def record_arrival(self, part_id: str, content_snapshot: str) -> bool:
        """
        Log the first arrival at a part in this pass.

        Returns:
            False when the part was already visited and nothing was appended
        """
        if part_id in self._arrived:
            logger.debug(f"Part {part_id} revisited, arrival already recorded")
            return False
        self._arrived.add(part_id)
        self._entries.append(
            PathEntry(
                part_id=part_id,
                timestamp=datetime.utcnow(),
                part_content=content_snapshot,
            )
        )
        return True

    def record_choice(
        self,
        part_id: str,
        choice_id: str,
        choice_text: str,
        next_part_id: Optional[str] = None,
    ) -> PathEntry:
        entry = PathEntry(
            part_id=part_id,
            choice_id=choice_id,
            choice_text=choice_text,
            next_part_id=next_part_id,
            timestamp=datetime.utcnow(),
        )
        self._entries.append(entry)
        return entry

    def record_finish(self, part_id: str, content_snapshot: str) -> None:
        """Close the pass on an ending part."""
        last = self.last
        if last is not None and not last.is_choice and last.part_id == part_id:
            return
        self._entries.append(
            PathEntry(
                part_id=part_id,
                timestamp=datetime.utcnow(),
                part_content=content_snapshot,
            )
        )

    def choice_entries(self) -> List[PathEntry]:
        return [e for e in self._entries if e.is_choice]

    def unique_parts(self) -> List[PathEntry]:
        """Arrival entries with each part listed once, for journey summaries."""
        seen: Set[str] = set()
        unique = []
        for entry in self._entries:
            if entry.is_choice or entry.part_id in seen:
                continue
            seen.add(entry.part_id)
            unique.append(entry)
        return unique

    def encode(self) -> str:
        return encode_path(self._entries)


def encode_path(entries: Iterable[PathEntry]) -> str:
    """Serialize path entries into a URL-safe string."""
    payload = [entry.model_dump(mode="json", exclude_none=True) for entry in entries]
    return quote(json.dumps(payload, separators=(",", ":"), ensure_ascii=False), safe="")


def decode_path(payload: Optional[str]) -> List[PathEntry]:
    """
    Parse a string produced by ``encode_path``.

    Raises:
        PathDecodeError: The payload is empty, not JSON, not a list of
            entries, or an entry is missing required fields
    """
    if not payload:
        raise PathDecodeError("Empty path payload")

    try:
        raw = json.loads(unquote(payload))
    except ValueError as e:
        raise PathDecodeError(f"Path payload is not valid JSON: {e}") from e

    if not isinstance(raw, list) or not raw:
        raise PathDecodeError("Path payload must be a non-empty list of entries")

    entries = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            raise PathDecodeError(f"Path entry {index} is not an object")
        try:
            entries.append(PathEntry(**item))
        except ValidationError as e:
            raise PathDecodeError(f"Path entry {index} is invalid: {e}") from e

    logger.debug(f"Decoded path with {len(entries)} entries")
    return entries
