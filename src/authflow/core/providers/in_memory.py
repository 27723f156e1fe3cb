"""In-memory identity provider for tests, demos and local development."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone

from loguru import logger

from authflow.core.errors import AuthErrorKind, ProviderError
from authflow.core.models.auth_state import AuthState, SessionMetadata, UserRecord
from authflow.core.providers.base import AuthProvider
from authflow.core.providers.broadcast import StateBroadcaster, StateSubscription


@dataclass
class _Account:
    user: UserRecord
    nonce: str | None = None


class InMemoryAuthProvider(AuthProvider):
    """Identity provider backed by a dictionary of registered identity tokens.

    Successful sign-ins and :meth:`push_state` calls are broadcast to every
    ``state_changes`` subscriber, the same way a hosted provider reports
    account changes.
    """

    def __init__(
        self,
        *,
        enabled_providers: set[str] | None = None,
        tenant_id: str | None = None,
        latency: float = 0.0,
    ) -> None:
        self._accounts: dict[str, _Account] = {}
        self._enabled_providers = enabled_providers
        self._disabled: set[tuple[str, str]] = set()
        self._created_at: dict[tuple[str, str], datetime] = {}
        self._tenant_id = tenant_id
        self._latency = latency
        self._current: AuthState | None = None
        self._sign_out_error: ProviderError | None = None
        self._broadcaster = StateBroadcaster()
        self.sign_in_calls = 0
        self.sign_out_calls = 0

    def register(self, identity_token: str, user: UserRecord, nonce: str | None = None) -> None:
        """Accept ``identity_token`` for ``user``, optionally bound to ``nonce``."""
        self._accounts[identity_token] = _Account(user=user, nonce=nonce)

    def disable_user(self, user: UserRecord) -> None:
        self._disabled.add(user.key)

    def fail_sign_out(self, error: ProviderError | None) -> None:
        """Make subsequent sign-outs fail with ``error`` (None restores success)."""
        self._sign_out_error = error

    @property
    def current_state(self) -> AuthState | None:
        return self._current

    @property
    def subscriber_count(self) -> int:
        return self._broadcaster.subscriber_count

    async def sign_in(self, provider_id: str, identity_token: str, nonce: str) -> AuthState:
        self.sign_in_calls += 1
        if self._latency:
            await asyncio.sleep(self._latency)

        if self._enabled_providers is not None and provider_id not in self._enabled_providers:
            raise ProviderError(
                f"Sign-in with {provider_id} is not enabled",
                kind=AuthErrorKind.OPERATION_NOT_ALLOWED,
                code="OPERATION_NOT_ALLOWED",
            )

        account = self._accounts.get(identity_token)
        if account is None or account.user.provider_id != provider_id:
            raise ProviderError(
                "Identity token was not issued by this provider",
                kind=AuthErrorKind.INVALID_CREDENTIAL,
                code="INVALID_IDP_RESPONSE",
            )
        if account.nonce is not None and account.nonce != nonce:
            raise ProviderError(
                "Nonce does not match the identity token",
                kind=AuthErrorKind.INVALID_CREDENTIAL,
                code="MISSING_OR_INVALID_NONCE",
            )
        if account.user.key in self._disabled:
            raise ProviderError(
                "The user account has been disabled",
                kind=AuthErrorKind.USER_DISABLED,
                code="USER_DISABLED",
            )

        now = datetime.now(timezone.utc)
        is_new_user = account.user.key not in self._created_at
        created_at = self._created_at.setdefault(account.user.key, now)

        state = AuthState(
            user=account.user,
            provider_data=(account.user,),
            metadata=SessionMetadata(last_sign_in_at=now, created_at=created_at),
            tenant_id=self._tenant_id,
            is_new_user=is_new_user,
        )
        logger.debug(f"In-memory sign-in for {account.user.provider_id}/{account.user.uid}")
        self.push_state(state)
        return state

    async def sign_out(self) -> None:
        self.sign_out_calls += 1
        if self._latency:
            await asyncio.sleep(self._latency)
        if self._sign_out_error is not None:
            raise self._sign_out_error
        self._current = None

    def state_changes(self) -> StateSubscription:
        return self._broadcaster.subscribe()

    def push_state(self, state: AuthState) -> None:
        """Publish ``state`` to subscribers, e.g. to simulate a silent refresh."""
        self._current = state
        self._broadcaster.publish(state)

    def fail_stream(self, error: BaseException) -> None:
        """Terminate all open ``state_changes`` subscriptions with ``error``."""
        self._broadcaster.fail(error)
