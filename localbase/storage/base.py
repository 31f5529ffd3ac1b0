"""
Base protocol for durable key-value storage.

The engine persists each table as one JSON document and the current session
as another, exactly like a browser's localStorage. Any backend offering
string keys and string values can host it.

Invariants:
    - set_item() returns only after the value is readable by get_item()
    - get_item() returns None for absent keys, never raises KeyError
    - keys() reflects every successful set_item()/remove_item()

How to change safely:
    - Protocol changes require updating all implementations
    - Keep values as str; serialization belongs to the table store
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..config import Settings


@runtime_checkable
class KeyValueStorage(Protocol):
    """Protocol for key-value storage backends.

    Example:
        >>> storage = MemoryStorage()
        >>> storage.set_item("localbase_table_orders", "[]")
        >>> storage.get_item("localbase_table_orders")
        '[]'
    """

    def get_item(self, key: str) -> str | None:
        """Read a value.

        Args:
            key: Storage key

        Returns:
            Stored value, or None if absent

        Raises:
            StorageError: If the backend cannot be read
        """
        ...

    def set_item(self, key: str, value: str) -> None:
        """Write a value, replacing any previous one.

        Raises:
            StorageError: If the backend cannot be written
        """
        ...

    def remove_item(self, key: str) -> None:
        """Delete a value. Removing an absent key is a no-op."""
        ...

    def keys(self) -> list[str]:
        """List all stored keys."""
        ...


def create_storage(settings: Settings) -> KeyValueStorage:
    """Factory function to create a storage backend from configuration.

    Args:
        settings: Engine settings

    Returns:
        Appropriate KeyValueStorage implementation

    Raises:
        ValueError: If backend is not supported
    """
    from ..config import StorageBackend
    from .memory import MemoryStorage
    from .sqlite import SqliteStorage

    backend = settings.backend
    if backend == StorageBackend.MEMORY:
        return MemoryStorage()
    elif backend == StorageBackend.SQLITE:
        return SqliteStorage(settings.sqlite_path)
    else:
        raise ValueError(f"Unsupported storage backend: {backend}")
