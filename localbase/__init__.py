"""
Localbase - embedded reactive data engine for the SMM storefront.

Localbase stands in for a hosted PostgREST-style backend. It keeps named
tables of JSON rows in memory, mirrors them to durable key-value storage,
and publishes a change event for every mutation:

Architecture:
    ┌──────────────┐   table()    ┌──────────────┐   replace()   ┌──────────────┐
    │  Application │────────────▶│ QueryBuilder │─────────────▶│  TableStore  │
    └──────┬───────┘             └──────┬───────┘               └──────┬───────┘
           │ auth / rpc()               │ publish()                    │ set_item()
           ▼                            ▼                              ▼
    ┌──────────────┐             ┌──────────────┐               ┌──────────────┐
    │ AuthClient / │             │   EventBus   │               │ KeyValue     │
    │ RpcDispatcher│             │ (listeners)  │               │ Storage      │
    └──────────────┘             └──────────────┘               └──────────────┘

Invariants:
    - Every terminal operation returns an APIResponse; errors are data
    - Storage is written before change events are published
    - Tables are seeded once, only while empty
    - The engine is constructed explicitly; there is no global instance

How to change safely:
    - Keep the persisted layout (one JSON array per table, one session
      entry) backward compatible
    - New table kinds are declared in localbase.schema.tables
"""

from ._version import __version__
from .config import Settings, StorageBackend
from .engine import Engine, create_engine
from .errors import (
    AuthError,
    ConflictError,
    ErrorDescriptor,
    LocalbaseError,
    NotFoundError,
    QueryError,
    RowValidationError,
    StorageError,
    UnsupportedError,
)
from .realtime import ChangeEvent, ChangeType, Subscription
from .response import APIResponse

__all__ = [
    "__version__",
    # Engine
    "Engine",
    "create_engine",
    "Settings",
    "StorageBackend",
    # Results
    "APIResponse",
    "ErrorDescriptor",
    # Realtime
    "ChangeEvent",
    "ChangeType",
    "Subscription",
    # Errors
    "LocalbaseError",
    "NotFoundError",
    "ConflictError",
    "UnsupportedError",
    "AuthError",
    "RowValidationError",
    "StorageError",
    "QueryError",
]
