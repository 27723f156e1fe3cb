"""Tests for the in-memory identity provider."""

import asyncio

import pytest

from authflow.core.errors import AuthErrorKind, ProviderError
from authflow.core.models.auth_state import UserRecord
from authflow.core.providers.in_memory import InMemoryAuthProvider


class TestInMemorySignIn:
    @pytest.mark.asyncio
    async def test_sign_in_returns_state(self, in_memory_provider, provider_id, identity_token, nonce, user_record):
        state = await in_memory_provider.sign_in(provider_id, identity_token, nonce)

        assert state.user == user_record
        assert state.provider_data == (user_record,)
        assert state.metadata is not None
        assert state.metadata.created_at == state.metadata.last_sign_in_at
        assert state.is_new_user is True
        assert in_memory_provider.current_state == state

    @pytest.mark.asyncio
    async def test_second_sign_in_is_not_new_user(self, in_memory_provider, provider_id, identity_token, nonce):
        first = await in_memory_provider.sign_in(provider_id, identity_token, nonce)
        second = await in_memory_provider.sign_in(provider_id, identity_token, nonce)

        assert second.is_new_user is False
        assert second.metadata.created_at == first.metadata.created_at

    @pytest.mark.asyncio
    async def test_unknown_token_is_invalid_credential(self, in_memory_provider, provider_id, nonce):
        with pytest.raises(ProviderError) as exc_info:
            await in_memory_provider.sign_in(provider_id, "forged-token", nonce)

        assert exc_info.value.kind is AuthErrorKind.INVALID_CREDENTIAL

    @pytest.mark.asyncio
    async def test_token_for_other_provider_is_invalid_credential(self, in_memory_provider, identity_token, nonce):
        with pytest.raises(ProviderError) as exc_info:
            await in_memory_provider.sign_in("google.com", identity_token, nonce)

        assert exc_info.value.kind is AuthErrorKind.INVALID_CREDENTIAL

    @pytest.mark.asyncio
    async def test_nonce_mismatch_is_invalid_credential(self, in_memory_provider, provider_id, identity_token):
        with pytest.raises(ProviderError) as exc_info:
            await in_memory_provider.sign_in(provider_id, identity_token, "replayed-nonce")

        assert exc_info.value.code == "MISSING_OR_INVALID_NONCE"

    @pytest.mark.asyncio
    async def test_disabled_user(self, in_memory_provider, provider_id, identity_token, nonce, user_record):
        in_memory_provider.disable_user(user_record)

        with pytest.raises(ProviderError) as exc_info:
            await in_memory_provider.sign_in(provider_id, identity_token, nonce)

        assert exc_info.value.kind is AuthErrorKind.USER_DISABLED

    @pytest.mark.asyncio
    async def test_provider_not_enabled(self, identity_token, nonce, user_record):
        provider = InMemoryAuthProvider(enabled_providers={"google.com"})
        provider.register(identity_token, user_record)

        with pytest.raises(ProviderError) as exc_info:
            await provider.sign_in(user_record.provider_id, identity_token, nonce)

        assert exc_info.value.kind is AuthErrorKind.OPERATION_NOT_ALLOWED

    @pytest.mark.asyncio
    async def test_tenant_is_reported(self, identity_token, nonce):
        provider = InMemoryAuthProvider(tenant_id="tenant-1")
        provider.register(identity_token, UserRecord(provider_id="apple.com", uid="u1"))

        state = await provider.sign_in("apple.com", identity_token, nonce)

        assert state.tenant_id == "tenant-1"


class TestInMemorySignOut:
    @pytest.mark.asyncio
    async def test_sign_out_clears_current_state(self, in_memory_provider, provider_id, identity_token, nonce):
        await in_memory_provider.sign_in(provider_id, identity_token, nonce)
        await in_memory_provider.sign_out()

        assert in_memory_provider.current_state is None
        assert in_memory_provider.sign_out_calls == 1

    @pytest.mark.asyncio
    async def test_configured_sign_out_failure(self, in_memory_provider):
        in_memory_provider.fail_sign_out(ProviderError("offline", kind=AuthErrorKind.LOGOUT_FAILURE))

        with pytest.raises(ProviderError):
            await in_memory_provider.sign_out()

        in_memory_provider.fail_sign_out(None)
        await in_memory_provider.sign_out()


class TestInMemoryStateChanges:
    @pytest.mark.asyncio
    async def test_sign_in_is_broadcast_to_every_subscriber(
        self, in_memory_provider, provider_id, identity_token, nonce
    ):
        first = in_memory_provider.state_changes()
        second = in_memory_provider.state_changes()
        assert in_memory_provider.subscriber_count == 2

        state = await in_memory_provider.sign_in(provider_id, identity_token, nonce)

        assert await asyncio.wait_for(first.__anext__(), 1.0) == state
        assert await asyncio.wait_for(second.__anext__(), 1.0) == state

    @pytest.mark.asyncio
    async def test_push_state_reaches_subscriber(self, signed_in_state):
        provider = InMemoryAuthProvider()
        stream = provider.state_changes()

        provider.push_state(signed_in_state)

        assert await asyncio.wait_for(stream.__anext__(), 1.0) == signed_in_state

    @pytest.mark.asyncio
    async def test_fail_stream_raises_and_unsubscribes(self):
        provider = InMemoryAuthProvider()
        stream = provider.state_changes()

        provider.fail_stream(ProviderError("network down"))

        with pytest.raises(ProviderError):
            await stream.__anext__()
        assert stream.closed
        assert provider.subscriber_count == 0

        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()

    @pytest.mark.asyncio
    async def test_closed_subscription_stops_receiving(self, signed_in_state):
        provider = InMemoryAuthProvider()
        stream = provider.state_changes()

        await stream.aclose()
        provider.push_state(signed_in_state)

        assert provider.subscriber_count == 0
        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()

    @pytest.mark.asyncio
    async def test_latency_delays_sign_in(self, identity_token, nonce, user_record):
        provider = InMemoryAuthProvider(latency=0.05)
        provider.register(identity_token, user_record)

        task = asyncio.ensure_future(provider.sign_in(user_record.provider_id, identity_token, nonce))
        await asyncio.sleep(0)
        assert not task.done()

        state = await asyncio.wait_for(task, 1.0)
        assert state.user == user_record
