"""
Row predicates and ordering for the query builder.

Comparison rules:
    - eq is loose: a numeric string equals the number it spells
      ("5" == 5), and a missing column equals None
    - neq is strict: values of different kinds are never equal
      ("5" != 5 holds)
    - gt/gte/lt/lte are false when either side is None or the two values
      cannot be ordered; numeric strings are coerced like eq does
    - in_ uses strict equality against each candidate

Sort rules:
    - Stable; ties keep insertion order
    - None (or a missing column) sorts last ascending and first descending
    - Values that cannot be ordered against each other are ties
"""

from __future__ import annotations

import operator
from collections.abc import Callable, Iterable
from functools import cmp_to_key
from typing import Any

Row = dict[str, Any]
Predicate = Callable[[Row], bool]


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _as_number(value: str) -> float | None:
    text = value.strip()
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def _coerce_pair(a: Any, b: Any) -> tuple[Any, Any]:
    """Coerce a numeric string to a number when compared with a number."""
    if isinstance(a, str) and is_number(b):
        number = _as_number(a)
        if number is not None:
            return number, b
    elif is_number(a) and isinstance(b, str):
        number = _as_number(b)
        if number is not None:
            return a, number
    return a, b


def loose_equals(a: Any, b: Any) -> bool:
    """Equality with numeric string coercion."""
    if a is None or b is None:
        return a is None and b is None
    a, b = _coerce_pair(a, b)
    try:
        return bool(a == b)
    except TypeError:
        return False


def strict_equals(a: Any, b: Any) -> bool:
    """Equality that also requires both values to be of the same kind.

    int and float are one kind; bool is its own kind.
    """
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if is_number(a) and is_number(b):
        return a == b
    return type(a) is type(b) and a == b


def _ordered(op: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def compare(a: Any, b: Any) -> bool:
        if a is None or b is None:
            return False
        a, b = _coerce_pair(a, b)
        try:
            return bool(op(a, b))
        except TypeError:
            return False

    return compare


greater_than = _ordered(operator.gt)
greater_or_equal = _ordered(operator.ge)
less_than = _ordered(operator.lt)
less_or_equal = _ordered(operator.le)


def eq(column: str, value: Any) -> Predicate:
    return lambda row: loose_equals(row.get(column), value)


def neq(column: str, value: Any) -> Predicate:
    return lambda row: not strict_equals(row.get(column), value)


def gt(column: str, value: Any) -> Predicate:
    return lambda row: greater_than(row.get(column), value)


def gte(column: str, value: Any) -> Predicate:
    return lambda row: greater_or_equal(row.get(column), value)


def lt(column: str, value: Any) -> Predicate:
    return lambda row: less_than(row.get(column), value)


def lte(column: str, value: Any) -> Predicate:
    return lambda row: less_or_equal(row.get(column), value)


def in_(column: str, values: Iterable[Any]) -> Predicate:
    candidates = list(values)
    return lambda row: any(strict_equals(row.get(column), v) for v in candidates)


def matches_all(row: Row, predicates: list[Predicate]) -> bool:
    """Whether a row satisfies every predicate (True for no predicates)."""
    return all(predicate(row) for predicate in predicates)


def _compare_values(a: Any, b: Any) -> int:
    if a is None and b is None:
        return 0
    if a is None:
        return 1
    if b is None:
        return -1
    try:
        if a < b:
            return -1
        if a > b:
            return 1
    except TypeError:
        return 0
    return 0


def sort_rows(rows: list[Row], column: str, ascending: bool = True) -> list[Row]:
    """Return rows stably sorted by one column.

    Example:
        >>> sort_rows([{"n": 2}, {"n": None}, {"n": 1}], "n")
        [{'n': 1}, {'n': 2}, {'n': None}]
    """
    if ascending:
        key = cmp_to_key(lambda x, y: _compare_values(x.get(column), y.get(column)))
    else:
        key = cmp_to_key(lambda x, y: -_compare_values(x.get(column), y.get(column)))
    return sorted(rows, key=key)
