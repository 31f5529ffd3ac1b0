"""
RPC dispatcher for Localbase.
"""

from .dispatcher import (
    BUILTIN_PROCEDURES,
    CANCELLED_STATUSES,
    Procedure,
    RpcCall,
    RpcContext,
    RpcDispatcher,
    refund_order,
)

__all__ = [
    "RpcDispatcher",
    "RpcCall",
    "RpcContext",
    "Procedure",
    "BUILTIN_PROCEDURES",
    "CANCELLED_STATUSES",
    "refund_order",
]
