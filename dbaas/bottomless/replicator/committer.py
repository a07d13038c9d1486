"""
Flushes a PageWriteBuffer to the object store.

Invariants:
    - Each page is uploaded as its own immutable object
    - Uploads are idempotent: the same key always receives the same
      content for a given buffered image, so a failed commit can be
      retried with the same buffer
    - The buffer is cleared only after every upload succeeded, including
      the uploads of the after_upload hook
    - Validation and upload are interleaved in buffer order; pages before
      a failing page may already be durable (no rollback)

How to change safely:
    - Never clear the buffer on a failure path
    - Keep the key layout in keys.page_key; restore depends on it
"""

from __future__ import annotations

import logging
import uuid
from typing import Awaitable, Callable, Optional, Union

from ..errors import PageSizeMismatchError
from ..keys import PAGE_SIZE, page_key
from ..storage.base import ObjectStore
from .buffer import PageWriteBuffer

logger = logging.getLogger(__name__)


class Committer:
    """Uploads buffered pages under a generation's namespace.

    Attributes:
        store: Object store to upload to
        page_size: Required length of every page image

    Example:
        >>> committer = Committer(store)
        >>> await committer.commit(buffer, "mydb", generation)
        3
    """

    def __init__(self, store: ObjectStore, page_size: int = PAGE_SIZE) -> None:
        self.store = store
        self.page_size = page_size
        self._commit_count = 0
        self._pages_uploaded = 0

    async def commit(
        self,
        buffer: PageWriteBuffer,
        db_name: str,
        generation: Union[uuid.UUID, str],
        after_upload: Optional[Callable[[], Awaitable[None]]] = None,
    ) -> int:
        """Upload every buffered page, then clear the buffer.

        Args:
            buffer: Pages staged during the transaction
            db_name: Database name
            generation: Active generation
            after_upload: Coroutine function run once every page is stored
                and before the buffer is cleared; its failure fails the commit

        Returns:
            Number of pages uploaded

        Raises:
            PageSizeMismatchError: If a page image has the wrong length
            StorageTransportError: If an upload fails
        """
        logger.info(f"Write buffer size: {len(buffer)}")

        uploaded = 0
        for page_no, data in buffer.items():
            if len(data) != self.page_size:
                raise PageSizeMismatchError(page_no, len(data), self.page_size)
            key = page_key(db_name, generation, page_no)
            logger.debug(f"Committing {key}")
            await self.store.put(key, data)
            uploaded += 1

        if after_upload is not None:
            await after_upload()

        buffer.clear()
        self._commit_count += 1
        self._pages_uploaded += uploaded
        return uploaded

    @property
    def stats(self) -> dict:
        """Committer statistics."""
        return {
            "commit_count": self._commit_count,
            "pages_uploaded": self._pages_uploaded,
        }
