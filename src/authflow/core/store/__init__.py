"""Host store and reducer."""

from .auth_store import AuthStore
from .reducer import reduce

__all__ = ["AuthStore", "reduce"]
