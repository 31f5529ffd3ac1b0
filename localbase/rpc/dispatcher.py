"""
RPC dispatcher: named procedures spanning several tables.

Procedures are plain functions ``(context, params) -> data``. They raise
LocalbaseError subclasses for expected failures; the dispatcher converts
every exception into an error envelope.

Built-in procedures:
    refund_order {order_id}: credit the order amount back to its owner
        and cancel the order

Invariants:
    - A procedure either applies all of its table changes or none of them
    - Change events are published only after every write succeeded
    - Unknown names answer "Function not found" (404)

How to change safely:
    - Register new procedures with RpcDispatcher.register(); never branch
      on the name inside call()
    - Wrap multi-table writes in TableStore.transaction()
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Generator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ..errors import ConflictError, NotFoundError, UnsupportedError
from ..query.filters import is_number, loose_equals, strict_equals
from ..realtime.bus import ChangeType, EventBus
from ..response import APIResponse
from ..store.tables import TableStore
from ..timeutil import now_iso

if TYPE_CHECKING:
    from ..auth.session import AuthClient

logger = logging.getLogger(__name__)

CANCELLED_STATUSES = frozenset({"cancelled", "canceled"})


@dataclass
class RpcContext:
    """Engine services available to procedures."""

    store: TableStore
    bus: EventBus
    auth: AuthClient


Procedure = Callable[[RpcContext, dict[str, Any]], Any]


def _find_index(rows: list[dict[str, Any]], match: Callable[[Any], bool]) -> int:
    for index, row in enumerate(rows):
        if match(row.get("id")):
            return index
    return -1


def _as_amount(value: Any) -> float | None:
    if is_number(value):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def refund_order(context: RpcContext, params: dict[str, Any]) -> bool:
    """Cancel an order and credit its amount to the owner's balance.

    Args:
        context: Engine services
        params: {"order_id": id}; a numeric string matches a numeric id

    Returns:
        True

    Raises:
        NotFoundError: Order or owning profile does not exist
        ConflictError: Order is already cancelled, or has no amount
    """
    order_id = params.get("order_id")
    store = context.store

    orders = store.rows("orders")
    order_index = _find_index(orders, lambda value: loose_equals(value, order_id))
    if order_index == -1:
        raise NotFoundError("Order not found", "order", order_id)
    order = orders[order_index]

    if str(order.get("status", "")).lower() in CANCELLED_STATUSES:
        raise ConflictError("Order already cancelled", details={"order_id": order.get("id")})

    profiles = store.rows("profiles")
    user_id = order.get("user_id")
    profile_index = _find_index(profiles, lambda value: strict_equals(value, user_id))
    if profile_index == -1:
        raise NotFoundError("User not found", "profile", user_id)
    profile = profiles[profile_index]

    amount = order.get("amount")
    if amount is None:
        amount = order.get("total_cost")
    refund = _as_amount(amount)
    if refund is None:
        raise ConflictError(
            "Order has no refundable amount",
            details={"order_id": order.get("id"), "amount": amount},
        )
    balance = _as_amount(profile.get("balance")) or 0.0

    old_order = copy.deepcopy(order)
    new_profile = {**profile, "balance": balance + refund}
    new_order = {**order, "status": "cancelled", "updated_at": now_iso()}

    new_profiles = list(profiles)
    new_profiles[profile_index] = new_profile
    new_orders = list(orders)
    new_orders[order_index] = new_order

    with store.transaction("profiles", "orders"):
        store.replace("profiles", new_profiles)
        store.replace("orders", new_orders)
        refreshed = context.auth.refresh_session_user(new_profile)

    logger.info(
        f"Refunded order {new_order.get('id')}",
        extra={
            "order_id": new_order.get("id"),
            "user_id": user_id,
            "amount": refund,
            "session_refreshed": refreshed,
        },
    )
    context.bus.publish("orders", ChangeType.UPDATE, old_order, new_order)
    return True


BUILTIN_PROCEDURES: dict[str, Procedure] = {
    "refund_order": refund_order,
}


class RpcDispatcher:
    """Registry of named procedures.

    Example:
        >>> result = engine.rpc("refund_order", {"order_id": 1003}).execute()
        >>> result.data
        True
    """

    def __init__(self, context: RpcContext) -> None:
        self._context = context
        self._procedures: dict[str, Procedure] = dict(BUILTIN_PROCEDURES)

    def register(self, name: str, procedure: Procedure, replace: bool = False) -> None:
        """Register a procedure under a name.

        Raises:
            ValueError: If the name is taken and replace is False
        """
        if name in self._procedures and not replace:
            raise ValueError(f"Procedure '{name}' is already registered")
        self._procedures[name] = procedure
        logger.debug(f"Registered procedure '{name}'")

    def names(self) -> list[str]:
        """Registered procedure names, sorted."""
        return sorted(self._procedures)

    def call(self, name: str, params: dict[str, Any] | None = None) -> APIResponse:
        """Run a procedure and wrap its outcome in an APIResponse."""
        procedure = self._procedures.get(name)
        try:
            if procedure is None:
                raise UnsupportedError("Function not found", name)
            data = procedure(self._context, dict(params or {}))
        except Exception as e:
            logger.info(f"RPC '{name}' failed: {e}", extra={"function": name})
            return APIResponse.failure(e)
        return APIResponse(data=data, status=200, status_text="OK")


class RpcCall:
    """Deferred procedure call returned by Engine.rpc().

    Runs once, on execute() or when awaited.
    """

    def __init__(self, dispatcher: RpcDispatcher, name: str, params: dict[str, Any] | None) -> None:
        self.name = name
        self.params = params
        self._dispatcher = dispatcher
        self._result: APIResponse | None = None

    def execute(self) -> APIResponse:
        if self._result is None:
            self._result = self._dispatcher.call(self.name, self.params)
        return self._result

    async def _execute_async(self) -> APIResponse:
        return self.execute()

    def __await__(self) -> Generator[Any, None, APIResponse]:
        return self._execute_async().__await__()
