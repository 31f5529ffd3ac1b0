"""
Projection parsing for select().

Grammar (comma-separated items, whitespace ignored):
    *                           all base columns
    name                        one base column
    table(cols)                 join, alias defaults to the table name
    alias:table(cols)           join attached under alias
    alias:table!fk_column(cols) join through an explicit foreign key

Inside a join, cols is "*" or a list of column names; joins nest only one
level deep.

Example:
    >>> p = parse_projection("*, category:categories(*)")
    >>> p.star, p.joins[0].alias, p.joins[0].table
    (True, 'category', 'categories')
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from ..errors import QueryError

DEFAULT_PROJECTION = "*"

_JOIN_RE = re.compile(
    r"^(?:(?P<alias>[A-Za-z_][\w]*)\s*:\s*)?"
    r"(?P<table>[A-Za-z_][\w]*)"
    r"(?:\s*!\s*(?P<fk>[A-Za-z_][\w]*))?"
    r"\s*\((?P<cols>.*)\)$",
    re.DOTALL,
)
_NAME_RE = re.compile(r"^[A-Za-z_][\w]*$")


@dataclass(frozen=True)
class JoinSpec:
    """One embedded relation of a projection.

    Attributes:
        alias: Key the joined row is attached under
        table: Joined table
        fk: Explicit foreign-key column on the base row, if given
        star: Whether every joined column is kept
        columns: Joined columns to keep when star is False
    """

    alias: str
    table: str
    fk: str | None = None
    star: bool = True
    columns: tuple[str, ...] = ()

    def project(self, row: dict[str, Any]) -> dict[str, Any]:
        if self.star:
            return dict(row)
        return {name: row.get(name) for name in self.columns}


@dataclass(frozen=True)
class Projection:
    """Parsed select() argument."""

    raw: str = DEFAULT_PROJECTION
    star: bool = True
    columns: tuple[str, ...] = ()
    joins: tuple[JoinSpec, ...] = ()

    @property
    def is_default(self) -> bool:
        """Whether this is the bare "*" projection."""
        return self.raw.strip() == DEFAULT_PROJECTION

    def project(self, row: dict[str, Any]) -> dict[str, Any]:
        """Keep the projected base columns of a row (joins excluded)."""
        if self.star:
            return dict(row)
        return {name: row.get(name) for name in self.columns}


def split_items(text: str) -> list[str]:
    """Split on commas that are not inside parentheses."""
    items: list[str] = []
    depth = 0
    current: list[str] = []
    for ch in text:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth < 0:
                raise QueryError(f"Unbalanced parentheses in projection '{text}'")
        if ch == "," and depth == 0:
            items.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
    if depth != 0:
        raise QueryError(f"Unbalanced parentheses in projection '{text}'")
    items.append("".join(current).strip())
    return [item for item in items if item]


def _parse_join_columns(text: str, table: str) -> tuple[bool, tuple[str, ...]]:
    items = split_items(text)
    if not items:
        return True, ()
    star = False
    columns: list[str] = []
    for item in items:
        if item == "*":
            star = True
        elif _NAME_RE.match(item):
            columns.append(item)
        else:
            raise QueryError(
                f"Unsupported column '{item}' in join '{table}'",
                hint="Joins nest one level deep and list plain column names",
            )
    return star, tuple(columns)


def parse_projection(text: str | None) -> Projection:
    """Parse a select() argument.

    Raises:
        QueryError: If the projection cannot be parsed
    """
    raw = DEFAULT_PROJECTION if text is None or not text.strip() else text
    star = False
    columns: list[str] = []
    joins: list[JoinSpec] = []

    for item in split_items(raw):
        if item == "*":
            star = True
            continue
        if _NAME_RE.match(item):
            columns.append(item)
            continue
        match = _JOIN_RE.match(item)
        if not match:
            raise QueryError(f"Cannot parse projection item '{item}'")
        table = match.group("table")
        join_star, join_columns = _parse_join_columns(match.group("cols"), table)
        joins.append(
            JoinSpec(
                alias=match.group("alias") or table,
                table=table,
                fk=match.group("fk"),
                star=join_star,
                columns=join_columns,
            )
        )

    # Only joins listed: base columns are kept whole
    if not star and not columns:
        star = True
    return Projection(raw=raw, star=star, columns=tuple(columns), joins=tuple(joins))
