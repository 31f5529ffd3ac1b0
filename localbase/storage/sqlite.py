"""
SQLite-backed key-value storage.

Stores every entry as one row of a single key/value table so that tables and
the session survive process restarts.

Table schema:
    kv_store:
        - key TEXT PRIMARY KEY
        - value TEXT NOT NULL
        - updated_at INTEGER (Unix ms)

Invariants:
    - One SQLite file per engine
    - Every write is its own committed transaction
    - Readers always see the last committed value

How to change safely:
    - Schema migrations must be backward compatible
    - Keep one connection per operation; the engine is single-threaded but
      the file may be inspected by the CLI concurrently
"""

from __future__ import annotations

import logging
import sqlite3
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from ..errors import StorageError

logger = logging.getLogger(__name__)


class SqliteStorage:
    """Durable KeyValueStorage on a SQLite file.

    Example:
        >>> storage = SqliteStorage("/tmp/localbase.db")
        >>> storage.set_item("localbase_session", "{}")
        >>> storage.get_item("localbase_session")
        '{}'
    """

    def __init__(self, path: str, busy_timeout_ms: int = 5000) -> None:
        """Initialize the store and create its schema.

        Args:
            path: SQLite database file
            busy_timeout_ms: SQLite busy timeout
        """
        self.path = Path(path)
        self.busy_timeout_ms = busy_timeout_ms
        with self._get_connection() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at INTEGER NOT NULL
                )
                """
            )
        logger.info(f"Opened SQLite storage: {self.path}")

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Open a connection, translating SQLite failures to StorageError."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

        try:
            conn = sqlite3.connect(
                str(self.path),
                timeout=self.busy_timeout_ms / 1000.0,
                isolation_level=None,
            )
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open storage file {self.path}: {e}") from e

        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            yield conn
        except sqlite3.Error as e:
            raise StorageError(f"Storage operation failed: {e}") from e
        finally:
            conn.close()

    def get_item(self, key: str) -> str | None:
        with self._get_connection() as conn:
            cursor = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,))
            row = cursor.fetchone()
            return row[0] if row else None

    def set_item(self, key: str, value: str) -> None:
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                                               updated_at = excluded.updated_at
                """,
                (key, value, int(time.time() * 1000)),
            )

    def remove_item(self, key: str) -> None:
        with self._get_connection() as conn:
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))

    def keys(self) -> list[str]:
        with self._get_connection() as conn:
            cursor = conn.execute("SELECT key FROM kv_store ORDER BY key")
            return [row[0] for row in cursor.fetchall()]
