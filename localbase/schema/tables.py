"""
Declared tables of the storefront.

Each known table gets a TableDef; the engine registers them in a
SchemaRegistry at startup. Rows written to these tables may still carry
columns that are not listed here.

How to change safely:
    - New columns must be nullable so that persisted rows keep validating
    - Add foreign keys with references= so joins can resolve them
"""

from __future__ import annotations

from .registry import SchemaRegistry
from .types import TableDef, column

ROLES = ("user", "admin")
SERVICE_TYPES = ("smm", "digital_product")
ORDER_STATUSES = ("pending", "processing", "completed", "cancelled", "canceled", "refunded")
TRANSACTION_TYPES = ("deposit", "refund", "order_spend")

CATEGORIES = TableDef(
    name="categories",
    description="Service categories shown in the storefront navigation",
    columns=(
        column("id", "int"),
        column("name", "str"),
        column("slug", "str"),
        column("icon", "str"),
        column("sort_order", "int"),
        column("is_active", "bool"),
        column("created_at", "timestamp"),
    ),
)

SERVICES = TableDef(
    name="services",
    description="Purchasable SMM services and digital products",
    columns=(
        column("id", "int"),
        column("category_id", "int", references="categories"),
        column("name", "str"),
        column("type", "enum", enum_values=SERVICE_TYPES),
        column("price_per_1000", "float"),
        column("fixed_price", "float"),
        column("min_quantity", "int"),
        column("max_quantity", "int"),
        column("input_schema", "list_str"),
        column("description", "str"),
        column("thumbnail_url", "str"),
        column("is_active", "bool"),
        column("created_at", "timestamp"),
        column("updated_at", "timestamp"),
    ),
)

PROFILES = TableDef(
    name="profiles",
    description="User accounts with their wallet balance",
    columns=(
        column("id", "str"),
        column("email", "str"),
        column("role", "enum", enum_values=ROLES),
        column("balance", "float"),
        column("is_active", "bool"),
        column("metadata", "json"),
        column("created_at", "timestamp"),
        column("updated_at", "timestamp"),
    ),
)

USER_ROLES = TableDef(
    name="user_roles",
    description="Role grants per user",
    columns=(
        column("id", "json", description="Numeric or string id"),
        column("user_id", "str", references="profiles"),
        column("role", "enum", enum_values=ROLES),
        column("created_at", "timestamp"),
    ),
)

ORDERS = TableDef(
    name="orders",
    description="Customer orders",
    columns=(
        column("id", "int"),
        column("user_id", "str", references="profiles"),
        column("service_id", "int", references="services"),
        column("status", "enum", enum_values=ORDER_STATUSES),
        column("amount", "float"),
        column("total_cost", "float"),
        column("link", "str"),
        column("quantity", "int"),
        column("input_data", "json"),
        column("custom_inputs", "json"),
        column("fulfillment_data", "json"),
        column("start_count", "int"),
        column("remains", "int"),
        column("created_at", "timestamp"),
        column("updated_at", "timestamp"),
    ),
)

TRANSACTIONS = TableDef(
    name="transactions",
    description="Wallet ledger entries",
    columns=(
        column("id", "int"),
        column("user_id", "str", references="profiles"),
        column("amount", "float"),
        column("type", "enum", enum_values=TRANSACTION_TYPES),
        column("description", "str"),
        column("order_id", "int", references="orders"),
        column("created_at", "timestamp"),
    ),
)

BUILTIN_TABLES: tuple[TableDef, ...] = (
    CATEGORIES,
    SERVICES,
    PROFILES,
    USER_ROLES,
    ORDERS,
    TRANSACTIONS,
)


def default_registry(freeze: bool = True) -> SchemaRegistry:
    """Build a registry holding every built-in table.

    Args:
        freeze: Freeze the registry before returning it

    Returns:
        SchemaRegistry with the storefront tables registered
    """
    registry = SchemaRegistry()
    for table in BUILTIN_TABLES:
        registry.register_table(table)
    if freeze:
        registry.freeze()
    return registry
