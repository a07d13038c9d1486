"""
Host WAL interception for bottomless.

This module adapts the host database engine's WAL operation set:
- WalMethods: abstract operation set
- PassThroughWal: forwards every operation to a native implementation
- ReplicatingWal: additionally replicates committed pages

Invariants:
    - Only open() and frames() carry extra behavior
    - A replication failure surfaces to the host as SQLITE_IOERR_WRITE
"""

from .methods import (
    SQLITE_CANTOPEN,
    SQLITE_IOERR_WRITE,
    SQLITE_OK,
    PassThroughWal,
    ReplicatingWal,
    WalMethods,
    database_name_from_wal,
    wrap_wal,
)

__all__ = [
    "WalMethods",
    "PassThroughWal",
    "ReplicatingWal",
    "wrap_wal",
    "database_name_from_wal",
    "SQLITE_OK",
    "SQLITE_CANTOPEN",
    "SQLITE_IOERR_WRITE",
]
