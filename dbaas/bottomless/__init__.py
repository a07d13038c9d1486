"""
bottomless - generation-based WAL page replication to object storage.

This package ships database pages written during local transactions to
an S3 bucket, organizes them under time-ordered generations and supports
listing, pruning and restoring from that remote history.

Architecture:
    ┌─────────────┐     ┌────────────────┐     ┌──────────────────┐
    │ Host engine │────▶│ ReplicatingWal │────▶│ native WAL       │
    └─────────────┘     └───────┬────────┘     └──────────────────┘
                                │ write/commit (blocking)
                                ▼
                        ┌────────────────┐     ┌──────────────────┐
                        │   Replicator   │────▶│ BlockingBridge   │
                        └───────┬────────┘     │ (asyncio thread) │
                                │              └────────┬─────────┘
                                ▼                       ▼
                        ┌────────────────┐     ┌──────────────────┐
                        │   Committer    │────▶│   ObjectStore    │
                        └────────────────┘     │  (S3 / memory)   │
                                               └────────▲─────────┘
                        ┌────────────────┐              │
                        │ bottomless-cli │──▶ GenerationCatalog,
                        └────────────────┘    GenerationRestorer

Remote layout:
    <db_name>-<generation>/<page_no:012>    one page
    <db_name>-<generation>/db.gz            optional consolidated snapshot
    <db_name>-<generation>/.changecounter   change counter marker
    <db_name>-<generation>/.consistent      consistent frame marker

Invariants:
    - commit() returns only after every staged page is durable remotely
    - Ascending listing of generations yields the newest first
    - Page uploads are idempotent; a failed commit can be retried

How to change safely:
    - Never change the key layout or the generation timestamp encoding;
      existing buckets depend on both
"""

from ._version import __version__

__all__ = ["__version__"]
