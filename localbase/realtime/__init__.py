"""
Realtime change feed for Localbase.
"""

from .bus import ALL_EVENTS, ChangeEvent, ChangeType, EventBus, Listener, Subscription

__all__ = [
    "ALL_EVENTS",
    "ChangeEvent",
    "ChangeType",
    "EventBus",
    "Listener",
    "Subscription",
]
