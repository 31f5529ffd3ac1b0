"""
Row validation for Localbase.

Invariants:
    - Validation errors are deterministic (columns checked in row key order)
    - Undeclared columns are accepted; they are the ad-hoc part of a row
    - Required-ness is not enforced, so partial patches validate too
"""

from __future__ import annotations

from difflib import get_close_matches
from typing import Any

from ..errors import RowValidationError
from .types import TableDef


def validate_row(table: TableDef, row: dict[str, Any]) -> tuple[bool, list[str]]:
    """Validate a row (or update patch) against a table definition.

    Args:
        table: Table definition to validate against
        row: Row values

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors: list[str] = []

    for name, value in row.items():
        col = table.get_column(name)
        if col is None:
            continue
        is_valid, error = col.validate_value(value)
        if not is_valid and error:
            errors.append(error)

    return len(errors) == 0, errors


def validate_or_raise(table: TableDef, row: dict[str, Any]) -> None:
    """Validate a row and raise on failure.

    Raises:
        RowValidationError: If any declared column has an invalid value
    """
    is_valid, errors = validate_row(table, row)
    if not is_valid:
        raise RowValidationError(table.name, errors)


def suggest_columns(table: TableDef, name: str, max_suggestions: int = 3) -> list[str]:
    """Suggest declared column names similar to name.

    Useful for pointing out typos in ad-hoc columns.

    Example:
        >>> suggest_columns(orders, "staus")
        ['status']
    """
    return get_close_matches(name, table.column_names, n=max_suggestions, cutoff=0.6)


def unknown_columns(table: TableDef, row: dict[str, Any]) -> list[str]:
    """Columns of row that the table does not declare, in row order."""
    known = set(table.column_names)
    return [name for name in row if name not in known]
