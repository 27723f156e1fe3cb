"""Identity provider interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from authflow.core.models.auth_state import AuthState


class AuthProvider(ABC):
    """Abstract interface for identity provider backends.

    ``sign_in`` and ``sign_out`` resolve at most once. ``state_changes`` is a
    long-lived stream that ends only with an error or when the consumer stops
    iterating. All three must tolerate cancellation of the awaiting task; a
    cancelled call may still complete on the provider side.
    """

    @abstractmethod
    async def sign_in(self, provider_id: str, identity_token: str, nonce: str) -> AuthState:
        """Sign in with credentials issued by an upstream identity provider.

        Args:
            provider_id: Upstream identity provider, e.g. ``apple.com``
            identity_token: Opaque ID token obtained from the upstream SDK
            nonce: Raw nonce that was hashed into the token request

        Returns:
            The authenticated state

        Raises:
            ProviderError: If the provider rejects the sign-in
        """

    @abstractmethod
    async def sign_out(self) -> None:
        """Sign the current user out.

        Raises:
            ProviderError: If the provider could not sign out
        """

    @abstractmethod
    def state_changes(self) -> AsyncIterator[AuthState]:
        """Subscribe to account-state changes pushed by the provider.

        Each call returns a new, independent subscription.
        """
