"""
Engine: the composition root of Localbase.

An Engine wires the key-value storage, table store, event bus, schema
registry, session simulator and RPC dispatcher together and is the only
object application code needs to hold:

    engine = create_engine(Settings(storage_backend="sqlite", sqlite_path="shop.db"))
    orders = engine.table("orders").select("*").eq("user_id", uid).execute()
    engine.subscribe("orders", on_change)
    engine.rpc("refund_order", {"order_id": 1003}).execute()

Invariants:
    - Construct one Engine per application and pass it to consumers;
      there is no module-level instance
    - All components share the same storage, store and bus
    - Seeding fills only tables that are empty after loading storage

How to change safely:
    - New components are constructed here and injected, never imported
      as globals by the components themselves
    - Keep create_engine() the single place that reads Settings
"""

from __future__ import annotations

import logging
from typing import Any

from .auth.session import AuthClient
from .config import Settings
from .query.builder import QueryBuilder
from .realtime.bus import ALL_EVENTS, EventBus, Listener, Subscription
from .rpc.dispatcher import Procedure, RpcCall, RpcContext, RpcDispatcher
from .schema.registry import SchemaRegistry
from .schema.tables import default_registry
from .storage.base import KeyValueStorage, create_storage
from .store.seed import default_seed, load_seed_file
from .store.tables import Row, TableStore

logger = logging.getLogger(__name__)


class Engine:
    """Embedded reactive data engine.

    Attributes:
        settings: Effective configuration
        storage: Durable key-value backend
        store: In-memory tables mirrored to storage
        bus: Table change feed
        registry: Declared table schemas
        auth: Session simulator
        rpc_dispatcher: Named procedure registry
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        settings: Settings | None = None,
        registry: SchemaRegistry | None = None,
    ) -> None:
        """Wire the engine components. Call load() before use.

        Args:
            storage: Key-value backend
            settings: Configuration (defaults from the environment)
            registry: Table schemas (defaults to the built-in tables)
        """
        self.settings = settings or Settings()
        self.storage = storage
        self.registry = registry if registry is not None else default_registry()
        self.store = TableStore(storage, prefix=self.settings.table_prefix)
        self.bus = EventBus()
        self.auth = AuthClient(storage, self.table, session_key=self.settings.session_key)
        self.rpc_dispatcher = RpcDispatcher(RpcContext(store=self.store, bus=self.bus, auth=self.auth))

    def load(self) -> list[str]:
        """Load persisted tables from storage.

        Returns:
            Names of the loaded tables
        """
        loaded = self.store.load()
        logger.info(f"Loaded {len(loaded)} tables from storage", extra={"tables": loaded})
        return loaded

    def seed(self, seed_data: dict[str, list[Row]] | None = None) -> list[str]:
        """Fill empty tables with seed rows.

        Args:
            seed_data: Mapping of table name to rows; defaults to the
                configured seed file, or the built-in demo data

        Returns:
            Names of the tables that were seeded
        """
        if seed_data is None:
            if self.settings.seed_file:
                seed_data = load_seed_file(self.settings.seed_file)
            else:
                seed_data = default_seed()
        return self.store.seed(seed_data)

    def table(self, name: str) -> QueryBuilder:
        """Start a query against a table."""
        return QueryBuilder(
            name,
            self.store,
            self.bus,
            registry=self.registry,
            validate_writes=self.settings.validate_writes,
        )

    from_ = table

    def subscribe(self, table: str, callback: Listener, event: str = ALL_EVENTS) -> Subscription:
        """Receive a ChangeEvent for each change of a table."""
        return self.bus.subscribe(table, callback, event=event)

    def rpc(self, name: str, params: dict[str, Any] | None = None) -> RpcCall:
        """Prepare a procedure call; run it with execute() or await."""
        return RpcCall(self.rpc_dispatcher, name, params)

    def register_procedure(self, name: str, procedure: Procedure, replace: bool = False) -> None:
        """Register a custom RPC procedure."""
        self.rpc_dispatcher.register(name, procedure, replace=replace)

    def table_names(self) -> list[str]:
        """Names of every table known to the store or the registry."""
        names = set(self.store.table_names())
        names.update(t.name for t in self.registry.tables())
        return sorted(names)


def create_engine(
    settings: Settings | None = None,
    storage: KeyValueStorage | None = None,
) -> Engine:
    """Build, load and (if configured) seed an engine.

    Args:
        settings: Configuration (defaults from the environment)
        storage: Backend to use instead of the configured one

    Returns:
        Ready-to-use Engine

    Raises:
        ValueError: If the configuration is invalid

    Example:
        >>> engine = create_engine(Settings(storage_backend="memory"))
        >>> engine.table("categories").select("name").execute().count
        3
    """
    settings = settings or Settings()
    settings.validate_backend()
    settings.log_config()

    engine = Engine(storage if storage is not None else create_storage(settings), settings)
    engine.load()
    if settings.seed_on_start:
        seeded = engine.seed()
        logger.info(f"Engine ready, seeded {len(seeded)} tables", extra={"seeded": seeded})
    else:
        logger.info("Engine ready")
    return engine
