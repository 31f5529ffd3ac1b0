"""
Schema Registry for Localbase.

The SchemaRegistry holds the declared TableDef of every known table. It
provides:
- Registration of table definitions
- Lookup by table name
- Schema fingerprinting for consistency checks
- Freeze mechanism to prevent runtime modifications

Invariants:
    - Registry is mutable while the engine is being built, frozen after
    - Table names are unique
    - Fingerprint changes when the schema changes
    - Tables absent from the registry are still usable (undeclared schema)

Example:
    >>> registry = SchemaRegistry()
    >>> registry.register_table(TableDef(name="orders", columns=(column("id", "int"),)))
    >>> registry.freeze()
    'sha256:...'
    >>> registry.get_table("orders").name
    'orders'
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Iterator

from .types import TableDef

logger = logging.getLogger(__name__)


class RegistryFrozenError(Exception):
    """Raised when attempting to modify a frozen registry."""

    pass


class DuplicateRegistrationError(Exception):
    """Raised when attempting to register a duplicate table name."""

    pass


class SchemaRegistry:
    """Registry of table definitions.

    Attributes:
        frozen: Whether the registry is frozen (immutable)
        fingerprint: SHA-256 hash of the schema (computed on freeze)
    """

    def __init__(self) -> None:
        """Initialize an empty, mutable registry."""
        self._tables: dict[str, TableDef] = {}
        self._frozen = False
        self._fingerprint: str | None = None

    @property
    def frozen(self) -> bool:
        """Whether the registry is frozen."""
        return self._frozen

    @property
    def fingerprint(self) -> str | None:
        """Schema fingerprint (available after freeze)."""
        return self._fingerprint

    def register_table(self, table: TableDef) -> None:
        """Register a table definition.

        Raises:
            RegistryFrozenError: If registry is frozen
            DuplicateRegistrationError: If the table name is already registered
        """
        if self._frozen:
            raise RegistryFrozenError(f"Cannot register table '{table.name}': registry is frozen")

        if table.name in self._tables:
            raise DuplicateRegistrationError(f"Table '{table.name}' already registered")

        for col in table.columns:
            if col.references and col.references not in self._tables and col.references != table.name:
                logger.debug(
                    f"Table '{table.name}' column '{col.name}' references unregistered table "
                    f"'{col.references}'"
                )

        self._tables[table.name] = table
        logger.debug(f"Registered table: {table.name} ({len(table.columns)} columns)")

    def get_table(self, name: str) -> TableDef | None:
        """Get a table definition by name, or None if undeclared."""
        return self._tables.get(name)

    def tables(self) -> Iterator[TableDef]:
        """Iterate over all registered tables."""
        yield from self._tables.values()

    def __contains__(self, name: object) -> bool:
        return name in self._tables

    def __len__(self) -> int:
        return len(self._tables)

    def freeze(self) -> str:
        """Freeze the registry and compute fingerprint.

        Returns:
            Schema fingerprint string

        Raises:
            RegistryFrozenError: If already frozen
        """
        if self._frozen:
            raise RegistryFrozenError("Registry is already frozen")

        self._fingerprint = self._compute_fingerprint()
        self._frozen = True
        logger.debug(
            f"Schema registry frozen with {len(self._tables)} tables, "
            f"fingerprint={self._fingerprint}"
        )
        return self._fingerprint

    def _compute_fingerprint(self) -> str:
        """Compute SHA-256 fingerprint over the canonical JSON schema."""
        canonical = json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))
        return f"sha256:{hashlib.sha256(canonical.encode('utf-8')).hexdigest()}"

    def to_dict(self) -> dict:
        """Convert registry to dictionary representation, sorted by name."""
        return {"tables": [self._tables[name].to_dict() for name in sorted(self._tables)]}

    def to_json(self, indent: int | None = 2) -> str:
        """Convert registry to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True)

    @classmethod
    def from_dict(cls, data: dict) -> SchemaRegistry:
        """Create registry from dictionary representation (not frozen)."""
        registry = cls()
        for table_data in data.get("tables", []):
            registry.register_table(TableDef.from_dict(table_data))
        return registry

    def validate_all(self) -> list[str]:
        """Validate that every foreign key points at a registered table.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []
        for table in self._tables.values():
            for col in table.columns:
                if col.references and col.references not in self._tables:
                    errors.append(
                        f"Column '{col.name}' in table '{table.name}' references "
                        f"unknown table '{col.references}'"
                    )
        return errors
