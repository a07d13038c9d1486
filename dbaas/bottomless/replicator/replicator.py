"""
Replicator session for bottomless.

One Replicator serves exactly one open database handle. It mints the
session's generation, stages page writes of the current transaction and
flushes them to the object store when the host commits.

The host calls write()/commit() from its own thread; both block until the
remote round trip finishes. This is deliberate backpressure: the host
cannot advance past a commit until its pages are acknowledged remotely.

Invariants:
    - The generation is minted once and never changes for the session
    - The write buffer is owned by the session and cleared only after a
      fully successful flush (pages and change counter marker) or when the
      host rolls the transaction back
    - All storage coroutines run on the session's BlockingBridge loop

How to change safely:
    - Keep write()/commit() synchronous; the host WAL layer is synchronous
    - Do not share a Replicator between database handles
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional, Union

from ..catalog.catalog import GenerationCatalog
from ..catalog.metadata import ConsistencyMetadata
from ..config import BottomlessConfig
from ..errors import BottomlessError
from ..generation import GenerationClock
from ..restore import GenerationRestorer
from ..storage.base import ObjectStore, StorageError, create_object_store
from .bridge import BlockingBridge
from .buffer import PageWriteBuffer
from .committer import Committer

logger = logging.getLogger(__name__)


class Replicator:
    """Replicates committed pages of one database to the object store.

    Attributes:
        config: Bottomless configuration
        store: Object store gateway
        generation: Generation minted for this session
        db_name: Registered database name

    Example:
        >>> with Replicator(config) as replicator:
        ...     replicator.register_db("mydb")
        ...     replicator.write(0, header_page)
        ...     replicator.commit()
    """

    PAGE_SIZE = 4096

    def __init__(
        self,
        config: Optional[BottomlessConfig] = None,
        store: Optional[ObjectStore] = None,
        clock: Optional[GenerationClock] = None,
    ) -> None:
        """Initialize the replicator session and connect to storage.

        Args:
            config: Configuration, loaded from the environment when omitted
            store: Object store, created from config.s3 when omitted
            clock: Generation clock

        Raises:
            StorageTransportError: If the store cannot be connected
        """
        self.config = config or BottomlessConfig.from_env()
        self.page_size = self.config.replicator.page_size
        self.clock = clock or GenerationClock()
        self.store = store or create_object_store(
            self.config.s3, max_keys=self.config.replicator.list_page_size
        )
        self.generation: uuid.UUID = self.clock.mint()
        self.db_name: Optional[str] = None

        self._buffer = PageWriteBuffer()
        self._committer = Committer(self.store, self.page_size)
        self._bridge = BlockingBridge()
        self._bridge.start()
        try:
            self._bridge.run(self.store.connect())
        except Exception:
            self._bridge.stop()
            raise

        logger.info(
            "Replicator session started",
            extra={"bucket": self.store.bucket, "generation": str(self.generation)},
        )

    @property
    def bucket(self) -> str:
        return self.store.bucket

    @property
    def pending_pages(self) -> int:
        """Number of pages staged for the next commit."""
        return len(self._buffer)

    def register_db(self, db_name: str) -> None:
        """Bind the session to a database name."""
        self.db_name = db_name
        logger.info(
            "Registered database",
            extra={"db_name": db_name, "generation": str(self.generation)},
        )

    def _require_db(self) -> str:
        if not self.db_name:
            raise BottomlessError("No database registered with the replicator", code="NO_DATABASE")
        return self.db_name

    def write(self, page_no: int, data: bytes) -> None:
        """Stage a page image for the current transaction. No I/O."""
        self._buffer.write(page_no, data)

    def commit(self) -> int:
        """Flush the staged pages, blocking until they are durable.

        Returns:
            Number of pages uploaded

        Raises:
            PageSizeMismatchError: If a staged page has the wrong size
            StorageTransportError: If an upload fails; the staged pages are
                kept so the commit can be retried
        """
        db_name = self._require_db()
        return self._bridge.run(self._commit(db_name))

    async def _commit(self, db_name: str) -> int:
        header_page = self._buffer.get(0)
        store_change_counter = None
        if header_page is not None:
            metadata = ConsistencyMetadata(self.store, db_name)

            async def store_change_counter() -> None:
                await metadata.store_change_counter(self.generation, header_page)

        return await self._committer.commit(
            self._buffer, db_name, self.generation, after_upload=store_change_counter
        )

    def discard_pending(self) -> int:
        """Drop staged pages of a transaction the host rolled back.

        Returns:
            Number of pages discarded
        """
        discarded = len(self._buffer)
        if discarded:
            logger.info("Discarding staged pages", extra={"pages": discarded})
        self._buffer.clear()
        return discarded

    def mark_consistent_frame(self, frame_no: int) -> None:
        """Record the last WAL frame known to be durably replicated."""
        db_name = self._require_db()
        self._bridge.run(
            ConsistencyMetadata(self.store, db_name).store_consistent_frame(
                self.generation, frame_no
            )
        )

    def latest_generation(self) -> Optional[uuid.UUID]:
        """Newest generation of the registered database, if any."""
        catalog = GenerationCatalog(self.store, self._require_db(), self.clock)
        return self._bridge.run(catalog.latest_generation())

    def boot(self, generation: Optional[Union[uuid.UUID, str]] = None) -> Dict[int, bytes]:
        """Download every page of a generation (the newest when omitted)."""
        restorer = GenerationRestorer(self.store, self._require_db(), self.clock, self.page_size)

        async def _boot() -> Dict[int, bytes]:
            resolved = await restorer.resolve_generation(generation)
            return await restorer.boot(resolved)

        return self._bridge.run(_boot())

    def is_bucket_empty(self) -> bool:
        """Whether the bucket holds no object at all.

        A failed listing reads as "not empty" so callers never restore over
        data they could not see.
        """
        try:
            page = self._bridge.run(self.store.list_page("", max_keys=1))
        except StorageError as e:
            logger.warning(f"Failed to list bucket {self.bucket}: {e}")
            return False
        return not page.objects and not page.common_prefixes

    def close(self) -> None:
        """Close the store and stop the bridge. Staged pages are discarded."""
        if not self._bridge.is_running:
            return
        if self._buffer:
            logger.warning(
                "Closing replicator with uncommitted pages",
                extra={"pages": len(self._buffer)},
            )
        try:
            self._bridge.run(self.store.close())
        finally:
            self._bridge.stop()

    @property
    def stats(self) -> Dict[str, Any]:
        """Session statistics."""
        return {
            "generation": str(self.generation),
            "db_name": self.db_name,
            "pending_pages": len(self._buffer),
            **self._committer.stats,
        }

    def __enter__(self) -> "Replicator":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
