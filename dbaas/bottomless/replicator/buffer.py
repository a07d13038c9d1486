"""
Per-transaction page staging for bottomless.

The PageWriteBuffer collects page images written during one host
transaction. Only the last image written to a page number before commit
is kept, mirroring WAL semantics where only the final pre-commit image
of a page matters.

Invariants:
    - write() performs no I/O
    - Iteration order is insertion order of the first write to each page
    - The buffer is cleared only by the committer after a full flush
"""

from __future__ import annotations

import logging
from typing import Dict, Iterator, Optional, Tuple

logger = logging.getLogger(__name__)


class PageWriteBuffer:
    """Staging map from page number to page bytes.

    Example:
        >>> buffer = PageWriteBuffer()
        >>> buffer.write(0, header_page)
        >>> buffer.write(0, newer_header_page)  # supersedes the first image
        >>> len(buffer)
        1
    """

    def __init__(self) -> None:
        self._pages: Dict[int, bytes] = {}

    def write(self, page_no: int, data: bytes) -> None:
        """Insert or overwrite the buffered image of a page.

        Raises:
            ValueError: If page_no is negative
        """
        if page_no < 0:
            raise ValueError(f"Page number must be non-negative, got {page_no}")
        logger.debug("Buffered page write", extra={"page_no": page_no, "size": len(data)})
        self._pages[page_no] = bytes(data)

    def get(self, page_no: int) -> Optional[bytes]:
        return self._pages.get(page_no)

    def items(self) -> Iterator[Tuple[int, bytes]]:
        return iter(list(self._pages.items()))

    def clear(self) -> None:
        self._pages.clear()

    def __len__(self) -> int:
        return len(self._pages)

    def __contains__(self, page_no: object) -> bool:
        return page_no in self._pages

    def __bool__(self) -> bool:
        return bool(self._pages)
