"""
Session simulator for Localbase.
"""

from .session import AdminApi, AuthChangeEvent, AuthClient, AuthListener, AuthSubscription

__all__ = [
    "AuthClient",
    "AdminApi",
    "AuthChangeEvent",
    "AuthListener",
    "AuthSubscription",
]
