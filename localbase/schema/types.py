"""
Core type definitions for Localbase table schemas.

Rows are stored as plain dicts, but every known table declares its columns
so that writes can be type-checked and joins can find foreign keys:
- FieldKind: Column value kinds
- ColumnDef: One column of a table
- TableDef: Declared column set of one table

Invariants:
    - Column names are unique within a table
    - enum_values are only meaningful for ENUM columns
    - references names another table; it is a hint for joins, not a
      constraint (referential integrity is never enforced)
    - Columns not declared on a TableDef are still accepted in rows

How to change safely:
    - Add new columns as nullable
    - Append new enum values; removing one can invalidate persisted rows

Example:
    >>> from localbase.schema.types import TableDef, column
    >>> Orders = TableDef(
    ...     name="orders",
    ...     columns=(
    ...         column("id", "int"),
    ...         column("status", "enum", enum_values=("pending", "cancelled")),
    ...         column("service_id", "int", references="services"),
    ...     ),
    ... )
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class FieldKind(Enum):
    """Supported column kinds."""

    STRING = "str"
    INTEGER = "int"
    FLOAT = "float"
    BOOLEAN = "bool"
    TIMESTAMP = "timestamp"  # ISO-8601 string
    JSON = "json"  # Arbitrary JSON value
    ENUM = "enum"  # Enumerated string values
    LIST_STRING = "list_str"
    LIST_INT = "list_int"

    @classmethod
    def from_str(cls, value: str) -> FieldKind:
        """Convert string representation to FieldKind.

        Raises:
            ValueError: If value is not a valid column kind
        """
        for kind in cls:
            if kind.value == value:
                return kind
        valid = [k.value for k in cls]
        raise ValueError(f"Invalid field kind '{value}'. Valid kinds: {valid}")


_VALIDATORS = {
    FieldKind.STRING: lambda v: isinstance(v, str),
    FieldKind.INTEGER: lambda v: isinstance(v, int) and not isinstance(v, bool),
    FieldKind.FLOAT: lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
    FieldKind.BOOLEAN: lambda v: isinstance(v, bool),
    FieldKind.TIMESTAMP: lambda v: isinstance(v, str),
    FieldKind.JSON: lambda _: True,
    FieldKind.LIST_STRING: lambda v: isinstance(v, list) and all(isinstance(i, str) for i in v),
    FieldKind.LIST_INT: lambda v: isinstance(v, list)
    and all(isinstance(i, int) and not isinstance(i, bool) for i in v),
}


@dataclass(frozen=True)
class ColumnDef:
    """Definition of a single column.

    Attributes:
        name: Column name
        kind: Value kind
        nullable: Whether None is accepted
        enum_values: Valid values if kind is ENUM
        references: Table this column points at (foreign key by convention)
        description: Human-readable description
    """

    name: str
    kind: FieldKind
    nullable: bool = True
    enum_values: tuple[str, ...] | None = None
    references: str | None = None
    description: str = ""

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Column name cannot be empty")
        if self.kind == FieldKind.ENUM and not self.enum_values:
            raise ValueError(f"enum_values required for ENUM column '{self.name}'")

    def validate_value(self, value: Any) -> tuple[bool, str | None]:
        """Validate a value against this column.

        Returns:
            Tuple of (is_valid, error_message)
        """
        if value is None:
            if not self.nullable:
                return False, f"Column '{self.name}' cannot be null"
            return True, None

        if self.kind == FieldKind.ENUM:
            if not isinstance(value, str):
                return False, f"Column '{self.name}' must be a string, got {type(value).__name__}"
            if value not in self.enum_values:
                return (
                    False,
                    f"Column '{self.name}' must be one of {self.enum_values}, got '{value}'",
                )
            return True, None

        validator = _VALIDATORS.get(self.kind)
        if validator and not validator(value):
            return (
                False,
                f"Column '{self.name}' has invalid type {type(value).__name__} for kind {self.kind.value}",
            )
        return True, None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation for serialization."""
        result: dict[str, Any] = {"name": self.name, "kind": self.kind.value}
        if not self.nullable:
            result["nullable"] = False
        if self.enum_values:
            result["enum_values"] = list(self.enum_values)
        if self.references:
            result["references"] = self.references
        if self.description:
            result["description"] = self.description
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ColumnDef:
        """Create from dictionary representation."""
        return cls(
            name=data["name"],
            kind=FieldKind.from_str(data["kind"]),
            nullable=data.get("nullable", True),
            enum_values=tuple(data["enum_values"]) if data.get("enum_values") else None,
            references=data.get("references"),
            description=data.get("description", ""),
        )


@dataclass(frozen=True)
class TableDef:
    """Declared column set of one table.

    Attributes:
        name: Table name
        columns: Declared columns, in display order
        description: Human-readable description
    """

    name: str
    columns: tuple[ColumnDef, ...] = ()
    description: str = ""

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Table name cannot be empty")
        names = [c.name for c in self.columns]
        duplicates = {n for n in names if names.count(n) > 1}
        if duplicates:
            raise ValueError(f"Duplicate columns in table '{self.name}': {sorted(duplicates)}")

    @property
    def column_names(self) -> list[str]:
        """Names of all declared columns."""
        return [c.name for c in self.columns]

    def get_column(self, name: str) -> ColumnDef | None:
        """Get a column by name."""
        for col in self.columns:
            if col.name == name:
                return col
        return None

    def foreign_key_for(self, target_table: str) -> str | None:
        """Name of the first column referencing target_table, if any."""
        for col in self.columns:
            if col.references == target_table:
                return col.name
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        result: dict[str, Any] = {
            "name": self.name,
            "columns": [c.to_dict() for c in self.columns],
        }
        if self.description:
            result["description"] = self.description
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TableDef:
        """Create from dictionary representation."""
        return cls(
            name=data["name"],
            columns=tuple(ColumnDef.from_dict(c) for c in data.get("columns", [])),
            description=data.get("description", ""),
        )


def column(
    name: str,
    kind: str | FieldKind,
    *,
    nullable: bool = True,
    enum_values: tuple[str, ...] | None = None,
    references: str | None = None,
    description: str = "",
) -> ColumnDef:
    """Convenience function to create a ColumnDef.

    Example:
        >>> status = column("status", "enum", enum_values=("pending", "completed"))
        >>> service = column("service_id", "int", references="services")
    """
    if isinstance(kind, str):
        kind = FieldKind.from_str(kind)
    return ColumnDef(
        name=name,
        kind=kind,
        nullable=nullable,
        enum_values=enum_values,
        references=references,
        description=description,
    )
