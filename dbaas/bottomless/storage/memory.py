"""
In-memory object store implementation for testing.

This module provides a simple in-memory bucket for:
- Unit tests
- Integration tests of the replicator and catalog
- Local development without MinIO

Invariants:
    - All data is lost on process exit
    - Listing follows S3 ListObjects semantics (ascending keys, common
      prefixes, marker-based continuation)
    - Thread-safe: a session may drive it from its bridge thread while a
      test inspects it from the main thread

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep listing semantics identical to S3; pagination tests depend on it
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set, Tuple

from .base import (
    ListPage,
    ObjectInfo,
    ObjectNotFoundError,
    StorageTransportError,
)

logger = logging.getLogger(__name__)


class InMemoryObjectStore:
    """In-memory implementation of ObjectStore for testing.

    Attributes:
        max_keys: Largest page returned by list_page (S3 default is 1000)

    Example:
        >>> store = InMemoryObjectStore(max_keys=2)
        >>> await store.connect()
        >>> await store.put("db-gen/000000000000", page)
    """

    def __init__(self, bucket: str = "bottomless", max_keys: int = 1000) -> None:
        """Initialize in-memory store.

        Args:
            bucket: Bucket name reported by the store
            max_keys: Maximum entries per listing page
        """
        self._bucket = bucket
        self.max_keys = max_keys
        self._objects: Dict[str, Tuple[bytes, datetime]] = {}
        self._lock = threading.Lock()
        self._connected = False
        self._failing_keys: Set[str] = set()
        self._fail_all = False
        self.put_count = 0
        self.list_count = 0

    @property
    def bucket(self) -> str:
        return self._bucket

    @property
    def is_connected(self) -> bool:
        """Whether connected (always true after connect())."""
        return self._connected

    async def connect(self) -> None:
        """Connect (no-op for in-memory)."""
        self._connected = True
        logger.debug("InMemoryObjectStore connected")

    async def close(self) -> None:
        """Close without clearing data; tests inspect contents afterwards."""
        self._connected = False
        logger.debug("InMemoryObjectStore closed")

    def _check(self, operation: str, key: str) -> None:
        if not self._connected:
            raise StorageTransportError("Not connected", operation)
        if self._fail_all or key in self._failing_keys:
            raise StorageTransportError(f"Injected failure for {operation} {key!r}", operation)

    async def put(self, key: str, data: bytes) -> None:
        self._check("put", key)
        with self._lock:
            self._objects[key] = (bytes(data), datetime.now(timezone.utc))
            self.put_count += 1

    async def get(self, key: str) -> bytes:
        self._check("get", key)
        with self._lock:
            if key not in self._objects:
                raise ObjectNotFoundError(key)
            return self._objects[key][0]

    async def head(self, key: str) -> ObjectInfo:
        self._check("head", key)
        with self._lock:
            if key not in self._objects:
                raise ObjectNotFoundError(key)
            data, modified = self._objects[key]
            return ObjectInfo(key=key, size=len(data), last_modified=modified)

    async def delete(self, key: str) -> None:
        self._check("delete", key)
        with self._lock:
            self._objects.pop(key, None)

    async def list_page(
        self,
        prefix: str,
        delimiter: Optional[str] = None,
        marker: Optional[str] = None,
        max_keys: Optional[int] = None,
    ) -> ListPage:
        self._check("list", prefix)
        limit = min(max_keys or self.max_keys, self.max_keys)

        with self._lock:
            self.list_count += 1
            keys = sorted(k for k in self._objects if k.startswith(prefix))
            snapshot = {k: self._objects[k] for k in keys}

        # Build the ordered entries: (name, is_prefix)
        entries: List[Tuple[str, bool]] = []
        for key in keys:
            if marker is not None and key <= marker:
                continue
            if delimiter:
                idx = key.find(delimiter, len(prefix))
                if idx >= 0:
                    group = key[: idx + len(delimiter)]
                    if marker is not None and group <= marker:
                        continue
                    if entries and entries[-1] == (group, True):
                        continue
                    entries.append((group, True))
                    continue
            entries.append((key, False))

        page_entries = entries[:limit]
        next_marker = page_entries[-1][0] if len(entries) > limit else None

        objects = []
        prefixes = []
        for name, is_prefix in page_entries:
            if is_prefix:
                prefixes.append(name)
            else:
                data, modified = snapshot[name]
                objects.append(ObjectInfo(key=name, size=len(data), last_modified=modified))

        return ListPage(objects=objects, common_prefixes=prefixes, next_marker=next_marker)

    # Testing helpers

    def keys(self, prefix: str = "") -> List[str]:
        """All stored keys under a prefix, ascending."""
        with self._lock:
            return sorted(k for k in self._objects if k.startswith(prefix))

    def get_object_bytes(self, key: str) -> bytes:
        """Synchronous read for assertions."""
        with self._lock:
            return self._objects[key][0]

    def get_object_count(self, prefix: str = "") -> int:
        return len(self.keys(prefix))

    def set_object(self, key: str, data: bytes, last_modified: Optional[datetime] = None) -> None:
        """Seed an object synchronously."""
        with self._lock:
            self._objects[key] = (bytes(data), last_modified or datetime.now(timezone.utc))

    def fail_on(self, key: str) -> None:
        """Make every operation on key raise StorageTransportError."""
        self._failing_keys.add(key)

    def fail_all(self, enabled: bool = True) -> None:
        """Make every operation raise StorageTransportError."""
        self._fail_all = enabled

    def clear_failures(self) -> None:
        self._failing_keys.clear()
        self._fail_all = False
