"""
Object store gateway for bottomless.

This module provides a pluggable bucket interface supporting:
- S3 and S3-compatible services via aiobotocore (production)
- In-memory (for testing)

Invariants:
    - Missing objects are reported as ObjectNotFoundError, never as a
      generic transport failure
    - Every enumeration follows continuation markers to completion

How to change safely:
    - New backends must implement the ObjectStore protocol
    - Verify listing order and marker semantics match S3
"""

from .base import (
    ListPage,
    ObjectInfo,
    ObjectNotFoundError,
    ObjectStore,
    StorageError,
    StorageTransportError,
    create_object_store,
    iter_list_pages,
)
from .memory import InMemoryObjectStore
from .s3 import S3ObjectStore

__all__ = [
    # Protocol and types
    "ObjectStore",
    "ObjectInfo",
    "ListPage",
    "StorageError",
    "ObjectNotFoundError",
    "StorageTransportError",
    # Helpers
    "iter_list_pages",
    "create_object_store",
    # Implementations
    "S3ObjectStore",
    "InMemoryObjectStore",
]
