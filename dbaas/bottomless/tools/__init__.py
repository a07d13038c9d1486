"""
CLI tools for bottomless administration.

This module provides command-line tools for:
- ls: List generations and inspect their consistency markers
- restore: Rebuild a database file from a generation
- rm: Remove one generation or all generations older than a date

Invariants:
    - Tools work offline (no running replicator required)
    - Removal is idempotent
"""

from .cli import build_parser, main, run

__all__ = ["main", "build_parser", "run"]
