"""
Chainable query builder bound to one table.

A QueryBuilder accumulates filters, a sort, a limit, a projection and at
most one pending mutation, then runs exactly one terminal operation when
execute() is called or the builder is awaited:

    1. insert   (if insert() was called)
    2. update   (else, if update() was called)
    3. delete   (else, if delete() was called)
    4. select   (default)

Invariants:
    - Filters are ANDed; insert ignores them, update/delete/select honor them
    - Rows that do not match an update keep their identity and values
    - Storage is written before any change event is published
    - A failed write restores the in-memory table and no event is published
    - Results and events carry copies; callers never alias stored rows
    - Errors are returned in the APIResponse, never raised
    - A builder runs once; executing or awaiting it again returns the
      first result

How to change safely:
    - New filters must be pure predicates over one row
    - Keep the dispatch order; callers chain insert().select().single()
    - Update events carry old=None; subscribers depend on that shape
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Generator, Iterable
from typing import TYPE_CHECKING, Any

from ..errors import QueryError
from ..realtime.bus import ChangeType, EventBus
from ..response import APIResponse
from ..schema.validate import validate_or_raise
from ..store.tables import Row, TableStore
from ..timeutil import now_iso
from . import filters
from .projection import JoinSpec, parse_projection

if TYPE_CHECKING:
    from ..schema.registry import SchemaRegistry

logger = logging.getLogger(__name__)

_UNSET = object()


class QueryBuilder:
    """Single-use command object for one table.

    Example:
        >>> result = (
        ...     engine.table("orders")
        ...     .select("*, service:services(id, name, type)")
        ...     .eq("user_id", "user-123")
        ...     .order("created_at", ascending=False)
        ...     .execute()
        ... )
        >>> result.count
        3
    """

    def __init__(
        self,
        table: str,
        store: TableStore,
        bus: EventBus,
        registry: SchemaRegistry | None = None,
        validate_writes: bool = False,
    ) -> None:
        self.table = table
        self._store = store
        self._bus = bus
        self._registry = registry
        self._validate_writes = validate_writes

        self._filters: list[filters.Predicate] = []
        self._sort: tuple[str, bool] | None = None
        self._limit: int | None = None
        self._single = False
        self._projection_text = "*"

        self._pending_insert: Any = _UNSET
        self._pending_update: dict[str, Any] | None = None
        self._pending_delete = False

        self._result: APIResponse | None = None
        store.rows(table)

    def __repr__(self) -> str:
        return f"QueryBuilder(table={self.table!r}, filters={len(self._filters)})"

    # Modifiers

    def select(self, projection: str = "*") -> QueryBuilder:
        """Set the projection; see localbase.query.projection for the grammar."""
        self._projection_text = projection
        return self

    def eq(self, column: str, value: Any) -> QueryBuilder:
        self._filters.append(filters.eq(column, value))
        return self

    def neq(self, column: str, value: Any) -> QueryBuilder:
        self._filters.append(filters.neq(column, value))
        return self

    def gt(self, column: str, value: Any) -> QueryBuilder:
        self._filters.append(filters.gt(column, value))
        return self

    def gte(self, column: str, value: Any) -> QueryBuilder:
        self._filters.append(filters.gte(column, value))
        return self

    def lt(self, column: str, value: Any) -> QueryBuilder:
        self._filters.append(filters.lt(column, value))
        return self

    def lte(self, column: str, value: Any) -> QueryBuilder:
        self._filters.append(filters.lte(column, value))
        return self

    def in_(self, column: str, values: Iterable[Any]) -> QueryBuilder:
        self._filters.append(filters.in_(column, values))
        return self

    def order(self, column: str, ascending: bool = True) -> QueryBuilder:
        """Sort by one column; a later call replaces an earlier one."""
        self._sort = (column, ascending)
        return self

    def limit(self, count: int) -> QueryBuilder:
        self._limit = count
        return self

    def single(self) -> QueryBuilder:
        """Return the first matching row (or None) instead of a list."""
        self._single = True
        return self

    def maybe_single(self) -> QueryBuilder:
        """Same as single(); zero rows is not an error for either."""
        self._single = True
        return self

    # Mutations

    def insert(self, rows: Row | list[Row]) -> QueryBuilder:
        """Queue an insert of one row or a list of rows."""
        self._pending_insert = rows
        return self

    def update(self, patch: Row) -> QueryBuilder:
        """Queue a shallow merge of patch into every matching row."""
        self._pending_update = patch
        return self

    def delete(self) -> QueryBuilder:
        """Queue removal of every matching row."""
        self._pending_delete = True
        return self

    # Execution

    def execute(self) -> APIResponse:
        """Run the terminal operation.

        Returns:
            APIResponse with data, count and status, or a populated error
        """
        if self._result is not None:
            return self._result

        try:
            if self._pending_insert is not _UNSET:
                result = self._run_insert()
            elif self._pending_update is not None:
                result = self._run_update()
            elif self._pending_delete:
                result = self._run_delete()
            else:
                result = self._run_select()
        except Exception as e:
            logger.warning(
                f"Query on '{self.table}' failed: {e}",
                extra={"table": self.table, "error_type": type(e).__name__},
            )
            result = APIResponse.failure(e)

        self._result = result
        return result

    async def _execute_async(self) -> APIResponse:
        return self.execute()

    def __await__(self) -> Generator[Any, None, APIResponse]:
        return self._execute_async().__await__()

    # Internals

    def _validate(self, row: Row) -> None:
        if not self._validate_writes or self._registry is None:
            return
        table_def = self._registry.get_table(self.table)
        if table_def is not None:
            validate_or_raise(table_def, row)

    def _matches(self, row: Row) -> bool:
        return filters.matches_all(row, self._filters)

    def _run_insert(self) -> APIResponse:
        payload = self._pending_insert
        many = isinstance(payload, list)
        incoming = payload if many else [payload]
        if not all(isinstance(row, dict) for row in incoming):
            raise QueryError(f"insert() on '{self.table}' expects a row or a list of rows")

        current = self._store.rows(self.table)
        new_rows: list[Row] = []
        next_id = self._store.next_id(self.table)
        for source in incoming:
            row = copy.deepcopy(source)
            if row.get("id") is None:
                row["id"] = next_id
                next_id += 1
            elif filters.is_number(row["id"]) and row["id"] >= next_id:
                next_id = int(row["id"]) + 1
            if not row.get("created_at"):
                row["created_at"] = now_iso()
            self._validate(row)
            new_rows.append(row)

        if new_rows:
            with self._store.transaction(self.table):
                self._store.replace(self.table, current + new_rows)
            logger.debug(
                f"Inserted {len(new_rows)} rows into '{self.table}'",
                extra={"table": self.table, "rows": len(new_rows)},
            )
            for row in new_rows:
                self._bus.publish(self.table, ChangeType.INSERT, None, row)

        inserted = copy.deepcopy(new_rows)
        if self._single:
            data: Any = inserted[0] if inserted else None
        else:
            data = inserted if many else inserted[0]
        return APIResponse(data=data, status=201, status_text="Created")

    def _run_update(self) -> APIResponse:
        patch = self._pending_update
        if not isinstance(patch, dict):
            raise QueryError(f"update() on '{self.table}' expects a mapping")
        self._validate(patch)

        current = self._store.rows(self.table)
        updated_rows: list[Row] = []
        new_data: list[Row] = []
        for row in current:
            if self._matches(row):
                updated = {**row, **copy.deepcopy(patch), "updated_at": now_iso()}
                updated_rows.append(updated)
                new_data.append(updated)
            else:
                new_data.append(row)

        if updated_rows:
            with self._store.transaction(self.table):
                self._store.replace(self.table, new_data)
            logger.debug(
                f"Updated {len(updated_rows)} rows in '{self.table}'",
                extra={"table": self.table, "rows": len(updated_rows)},
            )
            for row in updated_rows:
                self._bus.publish(self.table, ChangeType.UPDATE, None, row)
        else:
            logger.warning(
                f"Update on '{self.table}' matched no rows",
                extra={"table": self.table, "patch_keys": sorted(patch)},
            )

        projection = parse_projection(self._projection_text)
        data = None if projection.is_default else copy.deepcopy(updated_rows)
        return APIResponse(data=data, count=len(updated_rows), status=200, status_text="OK")

    def _run_delete(self) -> APIResponse:
        current = self._store.rows(self.table)
        kept = [row for row in current if not self._matches(row)]
        deleted = len(current) - len(kept)

        if deleted:
            with self._store.transaction(self.table):
                self._store.replace(self.table, kept)
            logger.debug(
                f"Deleted {deleted} rows from '{self.table}'",
                extra={"table": self.table, "rows": deleted},
            )
            self._bus.publish(self.table, ChangeType.DELETE, None, None)

        return APIResponse(data=None, count=deleted, status=204, status_text="No Content")

    def _run_select(self) -> APIResponse:
        projection = parse_projection(self._projection_text)
        if self._limit is not None and (not isinstance(self._limit, int) or self._limit < 0):
            raise QueryError(f"limit() expects a non-negative integer, got {self._limit!r}")

        result = [row for row in self._store.rows(self.table) if self._matches(row)]
        if self._sort is not None:
            column, ascending = self._sort
            result = filters.sort_rows(result, column, ascending)
        if self._limit is not None:
            result = result[: self._limit]

        rows = [projection.project(copy.deepcopy(row)) for row in result]
        for join in projection.joins:
            self._attach_join(rows, result, join)

        if self._single:
            return APIResponse(data=rows[0] if rows else None, status=200, status_text="OK")
        return APIResponse(data=rows, count=len(rows), status=200, status_text="OK")

    def _foreign_key(self, join: JoinSpec) -> str:
        if join.fk:
            return join.fk
        if self._registry is not None:
            table_def = self._registry.get_table(self.table)
            if table_def is not None:
                declared = table_def.foreign_key_for(join.table)
                if declared:
                    return declared
        return f"{join.alias}_id"

    def _attach_join(self, rows: list[Row], sources: list[Row], join: JoinSpec) -> None:
        fk = self._foreign_key(join)
        # Joins read the persisted snapshot, not the in-memory table
        by_id: dict[Any, Row] = {}
        for target in self._store.persisted(join.table):
            key = _join_key(target.get("id"))
            if key is not None:
                by_id.setdefault(key, target)

        for row, source in zip(rows, sources):
            key = _join_key(source.get(fk))
            match = by_id.get(key) if key is not None else None
            row[join.alias] = join.project(match) if match is not None else None


def _join_key(value: Any) -> Any:
    # 1 and 1.0 address the same row; True does not
    if isinstance(value, bool):
        return ("bool", value)
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, (dict, list)):
        return None
    return value
