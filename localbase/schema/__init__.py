"""
Table schemas for Localbase.

Rows are dynamic dicts; known tables additionally declare their columns so
that writes can be type-checked and joins can locate foreign keys.

Invariants:
    - The registry is frozen once the engine is built
    - Undeclared tables and undeclared columns are always accepted
"""

from .registry import DuplicateRegistrationError, RegistryFrozenError, SchemaRegistry
from .tables import BUILTIN_TABLES, default_registry
from .types import ColumnDef, FieldKind, TableDef, column
from .validate import suggest_columns, unknown_columns, validate_or_raise, validate_row

__all__ = [
    # Types
    "FieldKind",
    "ColumnDef",
    "TableDef",
    "column",
    # Registry
    "SchemaRegistry",
    "RegistryFrozenError",
    "DuplicateRegistrationError",
    "BUILTIN_TABLES",
    "default_registry",
    # Validation
    "validate_row",
    "validate_or_raise",
    "suggest_columns",
    "unknown_columns",
]
