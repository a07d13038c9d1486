"""
Replicator session for bottomless.

This module ships the pages of committed host transactions to the
object store:
- PageWriteBuffer stages the page images of one transaction
- Committer uploads them under the session's generation
- BlockingBridge runs the async uploads on a dedicated loop thread
- Replicator ties these together behind a synchronous host interface

Invariants:
    - commit() returns only after every staged page is durable
    - A failed commit leaves the staged pages in place for a retry
"""

from .bridge import BlockingBridge
from .buffer import PageWriteBuffer
from .committer import Committer
from .replicator import Replicator

__all__ = ["Replicator", "PageWriteBuffer", "Committer", "BlockingBridge"]
