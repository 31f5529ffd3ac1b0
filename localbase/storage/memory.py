"""
In-memory key-value storage for testing.

Invariants:
    - All data is lost on process exit
    - Behaves exactly like a durable backend within one process

How to change safely:
    - Keep interface compatible with the KeyValueStorage protocol
    - Add features to help with testing scenarios
"""

from __future__ import annotations

import logging

from ..errors import StorageError

logger = logging.getLogger(__name__)


class MemoryStorage:
    """Dict-backed implementation of KeyValueStorage.

    Example:
        >>> storage = MemoryStorage()
        >>> storage.set_item("k", "v")
        >>> storage.keys()
        ['k']
    """

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        """Initialize storage.

        Args:
            initial: Optional pre-populated entries
        """
        self._items: dict[str, str] = dict(initial or {})
        self._fail_writes: Exception | None = None

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self._fail_writes is not None:
            raise StorageError(f"Write failed: {self._fail_writes}", key=key)
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items.keys())

    # Testing helpers

    def clear(self) -> None:
        """Remove every entry (testing helper)."""
        self._items.clear()

    def inject_write_failure(self, exception: Exception | None) -> None:
        """Make every subsequent set_item() fail (testing helper).

        Pass None to restore normal behaviour.
        """
        self._fail_writes = exception
        logger.debug("MemoryStorage write failure injection", extra={"enabled": exception is not None})
