"""
Durable key-value storage for Localbase.

This module provides a pluggable storage interface supporting:
- SQLite (durable, one file per engine)
- In-memory (for testing)

Invariants:
    - Values are strings; the table store owns JSON serialization
    - A write is visible to the next read in the same process

How to change safely:
    - New backends must implement the KeyValueStorage protocol
    - Register new backends in create_storage()
"""

from .base import KeyValueStorage, create_storage
from .memory import MemoryStorage
from .sqlite import SqliteStorage

__all__ = [
    # Protocol
    "KeyValueStorage",
    # Factory
    "create_storage",
    # Implementations
    "MemoryStorage",
    "SqliteStorage",
]
