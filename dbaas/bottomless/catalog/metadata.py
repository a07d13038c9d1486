"""
Consistency metadata of a generation.

Besides page objects, a generation may hold small marker objects:

    <db_name>-<generation>/.changecounter   4 bytes, database header bytes 24..28
    <db_name>-<generation>/.consistent      4 bytes, big-endian last consistent WAL frame
    <db_name>-<generation>/db.gz            optional consolidated snapshot

The markers let operators judge whether a generation is complete enough
to restore. The snapshot is only inspected here (size and last-modified
time), never produced.

Invariants:
    - Missing markers read as "absent", never as an error
    - Snapshot inspection never raises; failures are reported in the summary
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from ..errors import MalformedKeyError
from ..keys import (
    CHANGE_COUNTER_OBJECT,
    CONSISTENT_FRAME_OBJECT,
    SNAPSHOT_OBJECT,
    generation_prefix,
)
from ..storage.base import ObjectNotFoundError, ObjectStore, StorageError

logger = logging.getLogger(__name__)

# Offset of the file change counter in the SQLite database header
CHANGE_COUNTER_OFFSET = 24
MARKER_SIZE = 4


@dataclass
class SnapshotSummary:
    """Report on a generation's consolidated snapshot.

    Attributes:
        present: Whether db.gz exists
        size_bytes: Object size, if present
        last_modified: Last modification time, if present
        error: Message when the lookup failed for a reason other than absence
    """

    present: bool
    size_bytes: Optional[int] = None
    last_modified: Optional[datetime] = None
    error: Optional[str] = None


class ConsistencyMetadata:
    """Reads and writes durability markers of a database's generations.

    Example:
        >>> metadata = ConsistencyMetadata(store, "mydb")
        >>> await metadata.get_last_consistent_frame(generation)
        42
    """

    def __init__(self, store: ObjectStore, db_name: str) -> None:
        self.store = store
        self.db_name = db_name

    def _key(self, generation: Union[uuid.UUID, str], name: str) -> str:
        return f"{generation_prefix(self.db_name, generation)}{name}"

    async def _read_marker(self, generation: Union[uuid.UUID, str], name: str) -> Optional[bytes]:
        key = self._key(generation, name)
        try:
            data = await self.store.get(key)
        except ObjectNotFoundError:
            return None
        if len(data) < MARKER_SIZE:
            raise MalformedKeyError(f"Marker {key} holds {len(data)} bytes", key=key)
        return data[:MARKER_SIZE]

    async def get_remote_change_counter(self, generation: Union[uuid.UUID, str]) -> Optional[int]:
        """Change counter recorded for a generation, None if never recorded."""
        data = await self._read_marker(generation, CHANGE_COUNTER_OBJECT)
        if data is None:
            return None
        return int.from_bytes(data, "big")

    async def get_last_consistent_frame(self, generation: Union[uuid.UUID, str]) -> int:
        """Last WAL frame known to be durably replicated, 0 if none."""
        data = await self._read_marker(generation, CONSISTENT_FRAME_OBJECT)
        if data is None:
            return 0
        return int.from_bytes(data, "big")

    async def store_change_counter(
        self, generation: Union[uuid.UUID, str], header_page: bytes
    ) -> None:
        """Record the change counter found in the database header page."""
        counter = header_page[CHANGE_COUNTER_OFFSET : CHANGE_COUNTER_OFFSET + MARKER_SIZE]
        if len(counter) != MARKER_SIZE:
            raise ValueError("Header page too short to contain a change counter")
        await self.store.put(self._key(generation, CHANGE_COUNTER_OBJECT), counter)

    async def store_consistent_frame(self, generation: Union[uuid.UUID, str], frame_no: int) -> None:
        """Record the last consistent WAL frame."""
        if frame_no < 0 or frame_no >= 1 << 32:
            raise ValueError(f"Frame number out of range: {frame_no}")
        await self.store.put(
            self._key(generation, CONSISTENT_FRAME_OBJECT), frame_no.to_bytes(MARKER_SIZE, "big")
        )

    async def snapshot_summary(self, generation: Union[uuid.UUID, str]) -> SnapshotSummary:
        """Inspect the consolidated snapshot without downloading it."""
        key = self._key(generation, SNAPSHOT_OBJECT)
        try:
            info = await self.store.head(key)
        except ObjectNotFoundError:
            return SnapshotSummary(present=False)
        except StorageError as e:
            logger.warning(f"Failed to fetch main database snapshot info: {e}")
            return SnapshotSummary(present=False, error=str(e))
        return SnapshotSummary(
            present=True,
            size_bytes=info.size,
            last_modified=info.last_modified,
        )
