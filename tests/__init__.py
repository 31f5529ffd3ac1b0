"""
Localbase Test Suite.

This package contains:
- unit/: Unit tests (single components, in-memory or temporary SQLite)
- integration/: Integration tests (assembled engine: auth, RPC, persistence)
"""
