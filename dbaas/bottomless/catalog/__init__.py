"""
Generation catalog for bottomless.

This module provides read and prune operations over the remote history
of a database:
- list generations (optionally filtered by creation date)
- inspect one generation's consistency markers and snapshot
- remove one generation or every generation older than a date
- detect the database name stored in a bucket

Invariants:
    - Operations are independent of any live replicator session
    - Removal deletes objects key by key and is idempotent
"""

from .catalog import GenerationCatalog, GenerationInfo, detect_db
from .metadata import ConsistencyMetadata, SnapshotSummary

__all__ = [
    "GenerationCatalog",
    "GenerationInfo",
    "ConsistencyMetadata",
    "SnapshotSummary",
    "detect_db",
]
