"""
Unit tests for table schemas.

Tests cover:
- ColumnDef validation
- TableDef construction and lookups
- SchemaRegistry registration, freezing and fingerprinting
- Row validation
- Built-in tables
"""

import pytest

from localbase.errors import RowValidationError
from localbase.schema import (
    BUILTIN_TABLES,
    DuplicateRegistrationError,
    FieldKind,
    RegistryFrozenError,
    SchemaRegistry,
    TableDef,
    column,
    default_registry,
    suggest_columns,
    unknown_columns,
    validate_or_raise,
    validate_row,
)


class TestColumnDef:
    """Tests for ColumnDef."""

    def test_kind_from_string(self):
        """Kinds are given by their string value."""
        assert column("id", "int").kind == FieldKind.INTEGER

    def test_invalid_kind(self):
        """Unknown kinds are rejected."""
        with pytest.raises(ValueError):
            column("id", "uuid")

    def test_enum_requires_values(self):
        """ENUM columns need enum_values."""
        with pytest.raises(ValueError):
            column("status", "enum")

    def test_integer_rejects_bool(self):
        """bool is not an int column value."""
        col = column("n", "int")
        assert col.validate_value(3) == (True, None)
        ok, error = col.validate_value(True)
        assert not ok
        assert "n" in error

    def test_float_accepts_int(self):
        """Integers are valid floats."""
        assert column("amount", "float").validate_value(15)[0]

    def test_nullable(self):
        """None passes unless the column is non-nullable."""
        assert column("a", "str").validate_value(None)[0]
        assert not column("a", "str", nullable=False).validate_value(None)[0]

    def test_enum_values(self):
        """ENUM columns accept only listed values."""
        col = column("role", "enum", enum_values=("user", "admin"))
        assert col.validate_value("admin")[0]
        assert not col.validate_value("root")[0]
        assert not col.validate_value(1)[0]

    def test_list_kinds(self):
        """List columns check their element types."""
        assert column("s", "list_str").validate_value(["a", "b"])[0]
        assert not column("s", "list_str").validate_value(["a", 1])[0]
        assert not column("i", "list_int").validate_value([1, True])[0]

    def test_dict_round_trip(self):
        """to_dict/from_dict preserve the definition."""
        col = column("service_id", "int", references="services", description="Service")
        assert type(col).from_dict(col.to_dict()) == col


class TestTableDef:
    """Tests for TableDef."""

    def test_duplicate_columns(self):
        """Duplicate column names are rejected."""
        with pytest.raises(ValueError):
            TableDef(name="t", columns=(column("a", "str"), column("a", "int")))

    def test_empty_name(self):
        """Tables need a name."""
        with pytest.raises(ValueError):
            TableDef(name="")

    def test_foreign_key_for(self):
        """foreign_key_for() finds the referencing column."""
        table = TableDef(
            name="orders",
            columns=(column("user_id", "str", references="profiles"), column("service_id", "int", references="services")),
        )
        assert table.foreign_key_for("services") == "service_id"
        assert table.foreign_key_for("categories") is None

    def test_get_column(self):
        """Columns are looked up by name."""
        table = TableDef(name="t", columns=(column("a", "str"),))
        assert table.get_column("a").kind == FieldKind.STRING
        assert table.get_column("b") is None


class TestSchemaRegistry:
    """Tests for SchemaRegistry."""

    @pytest.fixture
    def registry(self):
        """Create registry with two tables."""
        reg = SchemaRegistry()
        reg.register_table(TableDef(name="categories", columns=(column("id", "int"),)))
        reg.register_table(
            TableDef(name="services", columns=(column("category_id", "int", references="categories"),))
        )
        return reg

    def test_lookup(self, registry):
        """Registered tables are found by name."""
        assert registry.get_table("services").name == "services"
        assert registry.get_table("missing") is None
        assert "categories" in registry
        assert len(registry) == 2

    def test_duplicate_registration(self, registry):
        """Table names are unique."""
        with pytest.raises(DuplicateRegistrationError):
            registry.register_table(TableDef(name="services"))

    def test_freeze(self, registry):
        """Frozen registries reject changes and expose a fingerprint."""
        fingerprint = registry.freeze()
        assert fingerprint.startswith("sha256:")
        assert registry.frozen
        assert registry.fingerprint == fingerprint
        with pytest.raises(RegistryFrozenError):
            registry.register_table(TableDef(name="orders"))
        with pytest.raises(RegistryFrozenError):
            registry.freeze()

    def test_fingerprint_tracks_schema(self, registry):
        """Different schemas have different fingerprints; equal ones match."""
        clone = SchemaRegistry.from_dict(registry.to_dict())
        assert clone.freeze() == registry.freeze()

        other = SchemaRegistry.from_dict(registry.to_dict())
        other.register_table(TableDef(name="orders"))
        assert other.freeze() != registry.fingerprint

    def test_validate_all(self, registry):
        """Dangling references are reported."""
        assert registry.validate_all() == []
        registry.register_table(TableDef(name="orders", columns=(column("user_id", "str", references="profiles"),)))
        errors = registry.validate_all()
        assert len(errors) == 1
        assert "profiles" in errors[0]

    def test_to_json_sorted(self, registry):
        """JSON output lists tables by name."""
        assert registry.to_json().index('"categories"') < registry.to_json().index('"services"')


class TestValidation:
    """Tests for row validation."""

    @pytest.fixture
    def orders(self):
        """Orders table definition."""
        return default_registry().get_table("orders")

    def test_valid_row(self, orders):
        """A well-typed row passes."""
        ok, errors = validate_row(orders, {"id": 1, "status": "pending", "amount": 7.5})
        assert ok
        assert errors == []

    def test_partial_row(self, orders):
        """Missing columns are not errors."""
        assert validate_row(orders, {"status": "cancelled"})[0]

    def test_invalid_values(self, orders):
        """Every bad column is reported."""
        ok, errors = validate_row(orders, {"status": "lost", "amount": "ten"})
        assert not ok
        assert len(errors) == 2

    def test_validate_or_raise(self, orders):
        """validate_or_raise raises RowValidationError."""
        with pytest.raises(RowValidationError) as exc_info:
            validate_or_raise(orders, {"quantity": "many"})
        assert exc_info.value.table == "orders"
        assert exc_info.value.status == 400

    def test_unknown_columns_and_suggestions(self, orders):
        """Undeclared columns are listed with close matches."""
        assert unknown_columns(orders, {"id": 1, "staus": "x"}) == ["staus"]
        assert "status" in suggest_columns(orders, "staus")


class TestBuiltinTables:
    """Tests for the storefront table definitions."""

    def test_default_registry(self):
        """Every built-in table is registered and the registry is frozen."""
        registry = default_registry()
        assert registry.frozen
        assert {t.name for t in registry.tables()} == {t.name for t in BUILTIN_TABLES}
        assert registry.validate_all() == []

    def test_unfrozen_registry(self):
        """freeze=False leaves the registry open for extension."""
        registry = default_registry(freeze=False)
        registry.register_table(TableDef(name="coupons"))
        assert "coupons" in registry

    def test_foreign_keys(self):
        """Joins used by the storefront resolve through declared keys."""
        registry = default_registry()
        assert registry.get_table("services").foreign_key_for("categories") == "category_id"
        assert registry.get_table("orders").foreign_key_for("services") == "service_id"
        assert registry.get_table("transactions").foreign_key_for("orders") == "order_id"
