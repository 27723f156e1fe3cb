"""Identity provider implementations."""

from .base import AuthProvider
from .broadcast import StateBroadcaster, StateSubscription
from .identity_toolkit import IdentityToolkitProvider
from .in_memory import InMemoryAuthProvider

__all__ = [
    "AuthProvider",
    "IdentityToolkitProvider",
    "InMemoryAuthProvider",
    "StateBroadcaster",
    "StateSubscription",
]
