"""
Base protocol and types for the object store gateway.

This module defines the ObjectStore protocol that all backends must
implement, along with the listing result types and storage errors.

Invariants:
    - get() and head() raise ObjectNotFoundError for missing keys and
      StorageTransportError for everything else
    - list_page() returns at most one page; callers follow next_marker
    - Keys are returned in ascending lexical order

How to change safely:
    - Protocol changes require updating all implementations
    - Never enumerate a prefix with a single list_page() call; use
      iter_list_pages() so large listings are not truncated
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import (
    TYPE_CHECKING,
    AsyncIterator,
    List,
    Optional,
    Protocol,
    runtime_checkable,
)
import logging

from ..errors import BottomlessError

if TYPE_CHECKING:
    from ..config import S3Config

logger = logging.getLogger(__name__)


class StorageError(BottomlessError):
    """Base exception for object store operations."""
    pass


class ObjectNotFoundError(StorageError):
    """The requested object does not exist."""

    def __init__(self, key: str) -> None:
        super().__init__(f"No such key: {key}", code="NOT_FOUND", details={"key": key})
        self.key = key


class StorageTransportError(StorageError):
    """Network, authentication or service failure."""

    def __init__(self, message: str, operation: Optional[str] = None) -> None:
        super().__init__(message, code="TRANSPORT_ERROR", details={"operation": operation})
        self.operation = operation


@dataclass(frozen=True)
class ObjectInfo:
    """Metadata of a stored object.

    Attributes:
        key: Object key
        size: Object size in bytes
        last_modified: Last modification time (UTC), if known
    """
    key: str
    size: int
    last_modified: Optional[datetime] = None


@dataclass
class ListPage:
    """One page of a prefix listing.

    Attributes:
        objects: Objects directly under the prefix
        common_prefixes: Grouped prefixes (only when a delimiter was given)
        next_marker: Marker for the next page, None when the listing is complete
    """
    objects: List[ObjectInfo] = field(default_factory=list)
    common_prefixes: List[str] = field(default_factory=list)
    next_marker: Optional[str] = None

    @property
    def is_truncated(self) -> bool:
        return self.next_marker is not None


@runtime_checkable
class ObjectStore(Protocol):
    """Protocol for object store backends.

    A thin gateway over bucket primitives with no business logic.
    All methods are coroutines; synchronous callers go through
    replicator.bridge.BlockingBridge.

    Example:
        >>> store = S3ObjectStore(config.s3)
        >>> await store.connect()
        >>> await store.put("db-<generation>/000000000000", page)
    """

    @property
    @abstractmethod
    def bucket(self) -> str:
        """Bucket name."""
        ...

    @abstractmethod
    async def connect(self) -> None:
        """Open the underlying client.

        Raises:
            StorageTransportError: If the client cannot be created
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release the underlying client."""
        ...

    @abstractmethod
    async def put(self, key: str, data: bytes) -> None:
        """Store an object, replacing any previous content under the key."""
        ...

    @abstractmethod
    async def get(self, key: str) -> bytes:
        """Fetch an object's content.

        Raises:
            ObjectNotFoundError: If the key does not exist
            StorageTransportError: For any other failure
        """
        ...

    @abstractmethod
    async def head(self, key: str) -> ObjectInfo:
        """Fetch an object's size and last-modified time.

        Raises:
            ObjectNotFoundError: If the key does not exist
            StorageTransportError: For any other failure
        """
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete an object. Deleting a missing key is not an error."""
        ...

    @abstractmethod
    async def list_page(
        self,
        prefix: str,
        delimiter: Optional[str] = None,
        marker: Optional[str] = None,
        max_keys: Optional[int] = None,
    ) -> ListPage:
        """List one page of keys under a prefix, starting after marker."""
        ...

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether the client is open."""
        ...


async def iter_list_pages(
    store: ObjectStore,
    prefix: str,
    delimiter: Optional[str] = None,
    max_keys: Optional[int] = None,
) -> AsyncIterator[ListPage]:
    """Yield every page of a listing, following continuation markers.

    Args:
        store: Object store to list
        prefix: Key prefix
        delimiter: Optional delimiter for common-prefix grouping
        max_keys: Optional page size hint

    Yields:
        ListPage objects until the store returns no marker
    """
    marker = None
    while True:
        page = await store.list_page(
            prefix, delimiter=delimiter, marker=marker, max_keys=max_keys
        )
        yield page
        if page.next_marker is None:
            return
        if page.next_marker == marker:
            raise StorageTransportError(
                f"Listing of {prefix!r} did not advance past marker {marker!r}",
                operation="list",
            )
        marker = page.next_marker


def create_object_store(config: "S3Config", max_keys: Optional[int] = None) -> ObjectStore:
    """Factory function to create the object store from configuration.

    Args:
        config: S3 configuration
        max_keys: Default listing page size

    Returns:
        S3ObjectStore bound to the configured bucket
    """
    from .s3 import S3ObjectStore

    return S3ObjectStore(config, max_keys=max_keys)
