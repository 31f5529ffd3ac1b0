"""
Table store: the process-wide map of table name to row sequence.

Each table is an ordered list of row dicts, materialized lazily on first
reference and persisted to key-value storage as one JSON array under
``table_prefix + name`` after every mutation.

Invariants:
    - Mutations replace a table's list wholesale, then persist it
    - Insertion order is preserved; rows are never re-sorted in place
    - Persisted JSON that cannot be parsed loads as an empty table
    - Only JSON values are persisted; a row holding anything else fails
      the write with StorageError instead of being stringified
    - Reads never touch storage (read-after-write holds in memory),
      except persisted() which reads the stored snapshot on purpose

How to change safely:
    - Keep the storage layout stable; it is the only migration surface
    - Never hand stored row objects to callers that may mutate them;
      copy at the query boundary instead
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from ..errors import StorageError
from ..storage.base import KeyValueStorage

logger = logging.getLogger(__name__)

Row = dict[str, Any]


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"))


def next_id(rows: list[Row]) -> int:
    """Next auto-assigned id: one past the largest numeric id, or 1.

    Non-numeric ids (such as "user-123") and booleans are ignored.

    Example:
        >>> next_id([{"id": 4}, {"id": "user-1"}])
        5
    """
    max_id = 0
    for row in rows:
        value = row.get("id")
        if isinstance(value, (int, float)) and not isinstance(value, bool) and value > max_id:
            max_id = value
    return int(max_id) + 1


class TableStore:
    """In-memory tables mirrored to KeyValueStorage.

    Example:
        >>> store = TableStore(MemoryStorage())
        >>> store.load()
        >>> store.replace("orders", [{"id": 1}])
        >>> store.rows("orders")
        [{'id': 1}]
    """

    def __init__(self, storage: KeyValueStorage, prefix: str = "localbase_table_") -> None:
        """Initialize the store.

        Args:
            storage: Durable key-value backend
            prefix: Key prefix of table entries
        """
        self.storage = storage
        self.prefix = prefix
        self._tables: dict[str, list[Row]] = {}

    def _key(self, table: str) -> str:
        return self.prefix + table

    def _parse(self, table: str, raw: str | None) -> list[Row]:
        if raw is None:
            return []
        try:
            value = json.loads(raw)
        except ValueError:
            logger.warning(
                f"Malformed persisted data for table '{table}', loading it empty",
                extra={"table": table},
            )
            return []
        if not isinstance(value, list):
            logger.warning(
                f"Persisted data for table '{table}' is not a list, loading it empty",
                extra={"table": table},
            )
            return []
        return [row for row in value if isinstance(row, dict)]

    def load(self) -> list[str]:
        """Load every persisted table from storage.

        Returns:
            Names of the tables that were loaded
        """
        loaded = []
        for key in self.storage.keys():
            if not key.startswith(self.prefix):
                continue
            table = key[len(self.prefix):]
            self._tables[table] = self._parse(table, self.storage.get_item(key))
            loaded.append(table)
        logger.debug(f"Loaded {len(loaded)} tables from storage", extra={"tables": loaded})
        return loaded

    def rows(self, table: str) -> list[Row]:
        """Live row list of a table, created empty on first reference.

        Creating the table does not persist it.
        """
        if table not in self._tables:
            self._tables[table] = []
        return self._tables[table]

    def persist(self, table: str) -> None:
        """Write the current rows of a table to storage.

        Raises:
            StorageError: If the backend write fails
        """
        key = self._key(table)
        try:
            payload = _dumps(self.rows(table))
        except (TypeError, ValueError) as e:
            raise StorageError(f"Failed to serialize table '{table}': {e}", key=key) from e
        self.storage.set_item(key, payload)

    def replace(self, table: str, rows: list[Row]) -> None:
        """Install a new row list for a table and persist it.

        The in-memory list is replaced before the write, so a failed write
        leaves memory ahead of storage; use transaction() to roll back.

        Raises:
            StorageError: If the backend write fails
        """
        self._tables[table] = rows
        self.persist(table)
        logger.debug(f"Persisted table '{table}'", extra={"table": table, "rows": len(rows)})

    def persisted(self, table: str) -> list[Row]:
        """Rows of a table as currently stored, parsed fresh from storage."""
        return self._parse(table, self.storage.get_item(self._key(table)))

    def next_id(self, table: str) -> int:
        """Next auto-assigned id of a table."""
        return next_id(self.rows(table))

    def table_names(self) -> list[str]:
        """Names of all tables known in memory, sorted."""
        return sorted(self._tables)

    def seed(self, seed_data: dict[str, list[Row]]) -> list[str]:
        """Fill empty tables with seed rows.

        Args:
            seed_data: Mapping of table name to rows

        Returns:
            Names of the tables that were seeded
        """
        seeded = []
        for table, seed_rows in seed_data.items():
            if self.rows(table):
                continue
            self.replace(table, [dict(row) for row in seed_rows])
            seeded.append(table)
        if seeded:
            logger.info(f"Seeded {len(seeded)} tables", extra={"tables": seeded})
        return seeded

    def clear(self, table: str | None = None) -> list[str]:
        """Empty one table, or every known table, and persist the result.

        Returns:
            Names of the tables that were cleared
        """
        names = [table] if table is not None else self.table_names()
        for name in names:
            self.replace(name, [])
        return names

    @contextmanager
    def transaction(self, *tables: str) -> Iterator[None]:
        """Group mutations of several tables into one unit.

        On any exception the in-memory tables are restored to their state on
        entry and storage is rewritten from it, then the exception is
        re-raised.

        Example:
            >>> with store.transaction("orders", "profiles"):
            ...     store.replace("profiles", new_profiles)
            ...     store.replace("orders", new_orders)
        """
        snapshot = {name: list(self.rows(name)) for name in tables}
        try:
            yield
        except Exception:
            for name, rows in snapshot.items():
                self._tables[name] = rows
                try:
                    self.persist(name)
                except StorageError:
                    logger.exception(
                        f"Failed to restore table '{name}' in storage after rollback",
                        extra={"table": name},
                    )
            logger.warning(
                "Transaction rolled back",
                extra={"tables": list(tables)},
            )
            raise
