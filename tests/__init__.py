"""
Bottomless test suite.

This package contains:
- unit/: Unit tests against the in-memory object store
- integration/: Replicate/restore flows and optional live S3 tests
"""
