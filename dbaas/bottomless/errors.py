"""
Error types for bottomless replication.

This module defines the exceptions raised by the replication core:
- BottomlessError: Base exception
- MalformedKeyError: A listed key or marker cannot be decoded
- PageSizeMismatchError: A buffered page is not exactly PAGE_SIZE bytes
- GenerationNotFoundError: A generation has no objects in the bucket

Storage-level errors (ObjectNotFoundError, StorageTransportError) live in
storage.base and inherit from BottomlessError as well.

Invariants:
    - All errors inherit from BottomlessError
    - Errors carry a stable code for programmatic handling
    - Error messages name the offending key, page or generation
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class BottomlessError(Exception):
    """Base exception for all bottomless errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "BOTTOMLESS_ERROR"
        self.details = details or {}


class MalformedKeyError(BottomlessError):
    """A key, prefix or generation identifier could not be decoded.

    Raised when:
    - A listed prefix does not contain a valid generation identifier
    - A page object name is not a 12-digit page number
    - A metadata marker is truncated
    """

    def __init__(self, message: str, key: Optional[str] = None) -> None:
        super().__init__(message, code="MALFORMED_KEY", details={"key": key})
        self.key = key


class PageSizeMismatchError(BottomlessError):
    """A buffered page image has the wrong length."""

    def __init__(self, page_no: int, actual: int, expected: int) -> None:
        super().__init__(
            f"Unexpected write not equal to page size: page {page_no} has "
            f"{actual} bytes, expected {expected}",
            code="PAGE_SIZE_MISMATCH",
            details={"page_no": page_no, "actual": actual, "expected": expected},
        )
        self.page_no = page_no
        self.actual = actual
        self.expected = expected


class GenerationNotFoundError(BottomlessError):
    """No objects exist for the requested generation."""

    def __init__(self, generation: Any, db_name: str) -> None:
        super().__init__(
            f"Generation {generation} not found for {db_name}",
            code="GENERATION_NOT_FOUND",
            details={"generation": str(generation), "db_name": db_name},
        )
        self.generation = generation
        self.db_name = db_name
