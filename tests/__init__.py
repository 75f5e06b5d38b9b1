"""
shardlog test suite.

This package contains:
- unit/: Unit tests (no external dependencies)
- integration/: Store-level tests against the in-memory backend
"""
