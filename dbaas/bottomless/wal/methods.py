"""
WAL method interception for bottomless.

The host database engine drives its write-ahead log through a fixed set
of operations. WalMethods is that operation set as an abstract interface.
PassThroughWal forwards every operation to an inner implementation, and
ReplicatingWal overrides open() and frames() to feed the replicator, plus
undo() and checkpoint() to keep its bookkeeping in step with the host:

    host engine ──▶ ReplicatingWal ──▶ inner WalMethods (native WAL)
                          │
                          ▼
                     Replicator ──▶ object store

Invariants:
    - Every operation is forwarded to the inner WAL; the overrides only add
      replication around the forwarded call
    - frames() replicates a committing batch *before* forwarding it; a
      replication failure returns SQLITE_IOERR_WRITE and the batch is not
      written locally
    - Host page numbers are 1-based; the replicator stores page_no - 1
    - A host rollback (undo) discards the staged pages of the transaction
    - The consistent frame is the WAL frame number of the last commit; it
      restarts from zero after a checkpoint that backfilled the whole log

How to change safely:
    - New host operations go into WalMethods and PassThroughWal together
    - Keep ReplicatingWal free of storage code; it only talks to Replicator
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable, Optional, Tuple

from ..errors import BottomlessError
from ..replicator.replicator import Replicator

logger = logging.getLogger(__name__)

SQLITE_OK = 0
SQLITE_CANTOPEN = 14
SQLITE_IOERR = 10
SQLITE_IOERR_WRITE = SQLITE_IOERR | (3 << 8)

WAL_SUFFIX = "-wal"

PageFrame = Tuple[int, bytes]


class WalMethods(ABC):
    """Operation set of a host WAL implementation."""

    @abstractmethod
    def open(self, wal_name: str) -> int: ...

    @abstractmethod
    def close(self) -> int: ...

    @abstractmethod
    def begin_read_transaction(self) -> Tuple[int, bool]: ...

    @abstractmethod
    def end_read_transaction(self) -> int: ...

    @abstractmethod
    def find_frame(self, page_no: int) -> Tuple[int, int]: ...

    @abstractmethod
    def read_frame(self, frame_no: int, size: int) -> Tuple[int, bytes]: ...

    @abstractmethod
    def db_size(self) -> int: ...

    @abstractmethod
    def begin_write_transaction(self) -> int: ...

    @abstractmethod
    def end_write_transaction(self) -> int: ...

    @abstractmethod
    def undo(self, callback: Callable[[int], int]) -> int: ...

    @abstractmethod
    def savepoint(self) -> Any: ...

    @abstractmethod
    def savepoint_undo(self, savepoint: Any) -> int: ...

    @abstractmethod
    def frames(
        self,
        page_size: int,
        pages: Iterable[PageFrame],
        size_after: int,
        is_commit: bool,
        sync_flags: int,
    ) -> int: ...

    @abstractmethod
    def checkpoint(self, mode: int) -> Tuple[int, int, int]:
        """Returns (rc, frames in the log, frames checkpointed)."""

    @abstractmethod
    def file_size(self) -> int: ...


class PassThroughWal(WalMethods):
    """Forwards every WAL operation to an inner implementation."""

    def __init__(self, inner: WalMethods) -> None:
        self.inner = inner

    def open(self, wal_name: str) -> int:
        return self.inner.open(wal_name)

    def close(self) -> int:
        return self.inner.close()

    def begin_read_transaction(self) -> Tuple[int, bool]:
        return self.inner.begin_read_transaction()

    def end_read_transaction(self) -> int:
        return self.inner.end_read_transaction()

    def find_frame(self, page_no: int) -> Tuple[int, int]:
        return self.inner.find_frame(page_no)

    def read_frame(self, frame_no: int, size: int) -> Tuple[int, bytes]:
        return self.inner.read_frame(frame_no, size)

    def db_size(self) -> int:
        return self.inner.db_size()

    def begin_write_transaction(self) -> int:
        return self.inner.begin_write_transaction()

    def end_write_transaction(self) -> int:
        return self.inner.end_write_transaction()

    def undo(self, callback: Callable[[int], int]) -> int:
        return self.inner.undo(callback)

    def savepoint(self) -> Any:
        return self.inner.savepoint()

    def savepoint_undo(self, savepoint: Any) -> int:
        return self.inner.savepoint_undo(savepoint)

    def frames(
        self,
        page_size: int,
        pages: Iterable[PageFrame],
        size_after: int,
        is_commit: bool,
        sync_flags: int,
    ) -> int:
        return self.inner.frames(page_size, pages, size_after, is_commit, sync_flags)

    def checkpoint(self, mode: int) -> Tuple[int, int, int]:
        return self.inner.checkpoint(mode)

    def file_size(self) -> int:
        return self.inner.file_size()


def database_name_from_wal(wal_name: str) -> str:
    """Database path for a WAL file name (strips a trailing ``-wal``)."""
    if wal_name.endswith(WAL_SUFFIX):
        return wal_name[: -len(WAL_SUFFIX)]
    return wal_name


class ReplicatingWal(PassThroughWal):
    """Pass-through WAL that replicates committed pages.

    Attributes:
        replicator: Session receiving page writes and commits

    Example:
        >>> wal = ReplicatingWal(native_wal, Replicator(config))
        >>> wal.open("/data/mydb-wal")
        >>> wal.frames(4096, [(1, page)], size_after=1, is_commit=True, sync_flags=0)
        0
    """

    def __init__(self, inner: WalMethods, replicator: Replicator) -> None:
        super().__init__(inner)
        self.replicator = replicator
        self._frames_written = 0
        self._frames_committed = 0

    def open(self, wal_name: str) -> int:
        if not wal_name:
            logger.error("Failed to parse WAL file name")
            return SQLITE_CANTOPEN
        self.replicator.register_db(database_name_from_wal(wal_name))

        rc = self.inner.open(wal_name)
        if rc != SQLITE_OK:
            return rc

        logger.info(
            f"Generation {self.replicator.generation} "
            f"({self.replicator.clock.decode(self.replicator.generation)})"
        )
        return SQLITE_OK

    def frames(
        self,
        page_size: int,
        pages: Iterable[PageFrame],
        size_after: int,
        is_commit: bool,
        sync_flags: int,
    ) -> int:
        pages = list(pages)
        for page_no, data in pages:
            self.replicator.write(page_no - 1, data)

        if is_commit:
            try:
                self.replicator.commit()
            except BottomlessError as e:
                logger.error(f"Failed to replicate: {e}")
                return SQLITE_IOERR_WRITE

        rc = self.inner.frames(page_size, pages, size_after, is_commit, sync_flags)
        if rc != SQLITE_OK:
            return rc

        self._frames_written += len(pages)
        if is_commit:
            self._frames_committed = self._frames_written
            try:
                self.replicator.mark_consistent_frame(self._frames_committed)
            except BottomlessError as e:
                logger.warning(f"Failed to record consistent frame: {e}")
        return rc

    def undo(self, callback: Callable[[int], int]) -> int:
        rc = self.inner.undo(callback)
        # Frames written since the last commit are overwritten by the next transaction
        self._frames_written = self._frames_committed
        self.replicator.discard_pending()
        return rc

    def checkpoint(self, mode: int) -> Tuple[int, int, int]:
        rc, log_frames, checkpointed = self.inner.checkpoint(mode)
        if rc == SQLITE_OK and log_frames == checkpointed:
            # Fully backfilled: the next writer restarts the log at frame 1
            logger.debug("WAL fully checkpointed", extra={"frames": checkpointed})
            self._frames_written = 0
            self._frames_committed = 0
        return rc, log_frames, checkpointed

    @property
    def frames_committed(self) -> int:
        """WAL frame number of the last committed frame."""
        return self._frames_committed


def wrap_wal(inner: WalMethods, replicator: Optional[Replicator] = None) -> ReplicatingWal:
    """Wrap a native WAL implementation with replication."""
    return ReplicatingWal(inner, replicator or Replicator())
