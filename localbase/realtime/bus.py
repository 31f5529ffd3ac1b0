"""
In-process change feed for table mutations.

Every successful insert, update or delete publishes ChangeEvents to the
listeners subscribed to that table. Delivery is synchronous and happens in
registration order, after the mutation has been persisted.

Invariants:
    - Listeners of one table never see events of another table
    - A raising listener is logged and skipped; the mutation and the
      remaining listeners are unaffected
    - Unsubscribing removes exactly one registration; repeating it is a no-op
    - Each listener receives its own copy of the row data, never the stored
      row objects nor another listener's copy

How to change safely:
    - Keep delivery synchronous; callers rely on events having been handled
      when execute() returns
    - New event fields must be optional in to_dict() consumers
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..timeutil import now_iso

logger = logging.getLogger(__name__)


class ChangeType(str, Enum):
    """Kinds of table change."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


ALL_EVENTS = "*"


@dataclass(frozen=True)
class ChangeEvent:
    """One table change as seen by subscribers.

    Attributes:
        table: Table the change happened in
        event_type: INSERT, UPDATE or DELETE
        old: Row before the change (None for inserts and generic deletes)
        new: Row after the change (None for deletes)
        commit_timestamp: ISO-8601 time the event was published
    """

    table: str
    event_type: ChangeType
    old: dict[str, Any] | None
    new: dict[str, Any] | None
    commit_timestamp: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the realtime payload shape."""
        return {
            "table": self.table,
            "eventType": self.event_type.value,
            "old": self.old,
            "new": self.new,
            "commit_timestamp": self.commit_timestamp,
        }


Listener = Callable[[ChangeEvent], Any]


class Subscription:
    """Handle returned by subscribe(); call unsubscribe() to stop delivery."""

    def __init__(self, bus: EventBus, table: str, callback: Listener, event: str) -> None:
        self._bus = bus
        self.table = table
        self.callback = callback
        self.event = event
        self.active = True

    def unsubscribe(self) -> None:
        """Stop delivering events to this registration."""
        if not self.active:
            return
        self.active = False
        self._bus._remove(self)

    def matches(self, event_type: ChangeType) -> bool:
        return self.event == ALL_EVENTS or self.event == event_type.value

    def __repr__(self) -> str:
        return f"Subscription(table={self.table!r}, event={self.event!r}, active={self.active})"


class EventBus:
    """Table-scoped subscription registry.

    Example:
        >>> bus = EventBus()
        >>> sub = bus.subscribe("orders", lambda e: print(e.event_type.value))
        >>> bus.publish("orders", ChangeType.INSERT, None, {"id": 1})
        INSERT
        >>> sub.unsubscribe()
    """

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []

    def subscribe(self, table: str, callback: Listener, event: str = ALL_EVENTS) -> Subscription:
        """Register a listener for changes of one table.

        Args:
            table: Table name
            callback: Called with a ChangeEvent per change
            event: "INSERT", "UPDATE", "DELETE" or "*" for all

        Returns:
            Subscription handle

        Raises:
            ValueError: If event is not a known event type
        """
        event = event.upper()
        if event != ALL_EVENTS and event not in ChangeType.__members__:
            valid = [ALL_EVENTS] + [t.value for t in ChangeType]
            raise ValueError(f"Invalid event filter '{event}'. Valid filters: {valid}")

        subscription = Subscription(self, table, callback, event)
        self._subscriptions.append(subscription)
        logger.debug(f"Subscribed to '{table}'", extra={"table": table, "event": event})
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
        logger.debug(f"Unsubscribed from '{subscription.table}'", extra={"table": subscription.table})

    def subscriber_count(self, table: str | None = None) -> int:
        """Number of active registrations, optionally for one table."""
        if table is None:
            return len(self._subscriptions)
        return sum(1 for s in self._subscriptions if s.table == table)

    def publish(
        self,
        table: str,
        event_type: ChangeType,
        old: dict[str, Any] | None,
        new: dict[str, Any] | None,
    ) -> ChangeEvent:
        """Deliver a change to every current listener of a table.

        Returns:
            The published event
        """
        event = ChangeEvent(
            table=table,
            event_type=event_type,
            old=copy.deepcopy(old),
            new=copy.deepcopy(new),
        )

        # Snapshot so listeners may unsubscribe while being notified
        for subscription in list(self._subscriptions):
            if not subscription.active or subscription.table != table:
                continue
            if not subscription.matches(event_type):
                continue
            delivered = ChangeEvent(
                table=table,
                event_type=event_type,
                old=copy.deepcopy(event.old),
                new=copy.deepcopy(event.new),
                commit_timestamp=event.commit_timestamp,
            )
            try:
                subscription.callback(delivered)
            except Exception:
                logger.exception(
                    f"Listener for '{table}' failed on {event_type.value}",
                    extra={"table": table, "event_type": event_type.value},
                )
        return event
