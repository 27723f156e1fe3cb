"""Identity provider backed by the Identity Toolkit REST API.

Sign-in exchanges an upstream identity token (Apple, Google, ...) through
``accounts:signInWithIdp`` and then reads the full account through
``accounts:lookup``. The token exchange itself happens on the provider side;
this adapter only forwards the credential and maps the JSON responses.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlencode

import httpx
from loguru import logger
from pydantic import BaseModel

from authflow.core.errors import AuthErrorKind, ProviderError
from authflow.core.models.auth_state import AuthState, SessionMetadata, UserRecord
from authflow.core.providers.base import AuthProvider
from authflow.core.providers.broadcast import StateBroadcaster, StateSubscription
from authflow.runtime.config.config_data import IdentityToolkitConfig
from authflow.runtime.context import get_config

# Provider ID of the primary account record, as opposed to linked IdP identities
PRIMARY_PROVIDER_ID = "firebase"

_ERROR_KINDS: dict[str, AuthErrorKind] = {
    "INVALID_IDP_RESPONSE": AuthErrorKind.INVALID_CREDENTIAL,
    "INVALID_ID_TOKEN": AuthErrorKind.INVALID_CREDENTIAL,
    "INVALID_CREDENTIAL": AuthErrorKind.INVALID_CREDENTIAL,
    "INVALID_LOGIN_CREDENTIALS": AuthErrorKind.INVALID_CREDENTIAL,
    "INVALID_PROVIDER_ID": AuthErrorKind.INVALID_CREDENTIAL,
    "MISSING_OR_INVALID_NONCE": AuthErrorKind.INVALID_CREDENTIAL,
    "OPERATION_NOT_ALLOWED": AuthErrorKind.OPERATION_NOT_ALLOWED,
    "USER_DISABLED": AuthErrorKind.USER_DISABLED,
}


class IdpSession(BaseModel):
    """Tokens returned by a successful sign-in, held in memory only."""

    local_id: str
    id_token: str
    refresh_token: str | None = None
    expires_at: int | None = None


def error_from_response(response: httpx.Response) -> ProviderError:
    """Build a ProviderError from an Identity Toolkit error response.

    Error bodies look like ``{"error": {"code": 400, "message": "USER_DISABLED"}}``;
    the message may carry a detail suffix separated by `` : ``.
    """
    try:
        message = response.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return ProviderError(
            f"Identity Toolkit returned HTTP {response.status_code}",
            kind=AuthErrorKind.PROVIDER_FAILURE,
            code=f"HTTP_{response.status_code}",
        )

    code = str(message).split(" : ", 1)[0].strip()
    kind = _ERROR_KINDS.get(code, AuthErrorKind.PROVIDER_FAILURE)
    return ProviderError(f"Identity Toolkit error: {message}", kind=kind, code=code)


def _timestamp(value: Any) -> datetime | None:
    """Parse an epoch-milliseconds string."""
    if value in (None, ""):
        return None
    try:
        return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
    except (TypeError, ValueError):
        logger.debug(f"Ignoring malformed timestamp {value!r}")
        return None


def _linked_identity(info: dict[str, Any]) -> UserRecord | None:
    uid = info.get("rawId") or info.get("federatedId")
    provider_id = info.get("providerId")
    if not uid or not provider_id:
        return None
    return UserRecord(
        provider_id=provider_id,
        uid=uid,
        display_name=info.get("displayName"),
        photo_url=info.get("photoUrl"),
        email=info.get("email"),
        phone_number=info.get("phoneNumber"),
        username=info.get("screenName"),
    )


def state_from_account(
    account: dict[str, Any], *, is_new_user: bool | None = None, tenant_id: str | None = None
) -> AuthState:
    """Map an ``accounts:lookup`` user entry onto an AuthState."""
    user = UserRecord(
        provider_id=PRIMARY_PROVIDER_ID,
        uid=account["localId"],
        display_name=account.get("displayName"),
        photo_url=account.get("photoUrl"),
        email=account.get("email"),
        phone_number=account.get("phoneNumber"),
        username=account.get("screenName"),
    )
    linked = [_linked_identity(info) for info in account.get("providerUserInfo", [])]
    return AuthState(
        user=user,
        provider_data=tuple(record for record in linked if record is not None),
        metadata=SessionMetadata(
            last_sign_in_at=_timestamp(account.get("lastLoginAt")),
            created_at=_timestamp(account.get("createdAt")),
        ),
        tenant_id=account.get("tenantId", tenant_id),
        is_new_user=is_new_user,
    )


def state_from_sign_in(data: dict[str, Any], tenant_id: str | None = None) -> AuthState:
    """Map a ``accounts:signInWithIdp`` response onto an AuthState.

    Used when the follow-up account lookup is unavailable; the response carries
    only the identity that was just used.
    """
    user = UserRecord(
        provider_id=PRIMARY_PROVIDER_ID,
        uid=data["localId"],
        display_name=data.get("displayName"),
        photo_url=data.get("photoUrl"),
        email=data.get("email"),
        username=data.get("screenName"),
    )
    linked = _linked_identity(
        {
            "providerId": data.get("providerId"),
            "federatedId": data.get("federatedId"),
            "displayName": data.get("displayName"),
            "photoUrl": data.get("photoUrl"),
            "email": data.get("email"),
            "screenName": data.get("screenName"),
        }
    )
    return AuthState(
        user=user,
        provider_data=(linked,) if linked else (),
        tenant_id=data.get("tenantId", tenant_id),
        is_new_user=bool(data.get("isNewUser", False)),
    )


class IdentityToolkitProvider(AuthProvider):
    """AuthProvider implementation calling the Identity Toolkit REST API.

    Args:
        config: Provider configuration (defaults to the ``identity_toolkit`` section)
        client: Optional pre-configured httpx client; owned by the caller
    """

    def __init__(
        self,
        config: IdentityToolkitConfig | None = None,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config or get_config().identity_toolkit
        self._client = client
        self._owns_client = client is None
        self._session: IdpSession | None = None
        self._broadcaster = StateBroadcaster()
        self._closed = False

    @property
    def session(self) -> IdpSession | None:
        return self._session

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._config.timeout_seconds)
        return self._client

    async def _post(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        if self._closed:
            raise ProviderError("Provider is closed", code="CLOSED")

        url = f"{self._config.base_url.rstrip('/')}/accounts:{endpoint}"
        try:
            response = await self._get_client().post(
                url, params={"key": self._config.api_key}, json=payload
            )
        except httpx.HTTPError as e:
            raise ProviderError(
                f"Identity Toolkit request failed: {e}",
                kind=AuthErrorKind.PROVIDER_FAILURE,
                code="NETWORK_ERROR",
            ) from e

        if response.is_error:
            raise error_from_response(response)
        return response.json()

    async def sign_in(self, provider_id: str, identity_token: str, nonce: str) -> AuthState:
        payload: dict[str, Any] = {
            "postBody": urlencode(
                {"id_token": identity_token, "providerId": provider_id, "nonce": nonce}
            ),
            "requestUri": self._config.request_uri,
            "returnSecureToken": True,
            "returnIdpCredential": True,
        }
        if self._config.tenant_id:
            payload["tenantId"] = self._config.tenant_id

        data = await self._post("signInWithIdp", payload)

        # Account-linking conflicts come back as 200 with an errorMessage
        if data.get("errorMessage"):
            code = str(data["errorMessage"])
            raise ProviderError(
                f"Identity Toolkit error: {code}",
                kind=_ERROR_KINDS.get(code, AuthErrorKind.PROVIDER_FAILURE),
                code=code,
            )

        expires_in = data.get("expiresIn")
        self._session = IdpSession(
            local_id=data["localId"],
            id_token=data["idToken"],
            refresh_token=data.get("refreshToken"),
            expires_at=int(time.time()) + int(expires_in) if expires_in else None,
        )
        is_new_user = bool(data.get("isNewUser", False))

        try:
            lookup = await self._post("lookup", {"idToken": self._session.id_token})
            state = state_from_account(
                lookup["users"][0], is_new_user=is_new_user, tenant_id=self._config.tenant_id
            )
        except (ProviderError, KeyError, IndexError) as e:
            logger.warning(f"Account lookup after sign-in failed, using sign-in response: {e!r}")
            state = state_from_sign_in(data, tenant_id=self._config.tenant_id)

        self._broadcaster.publish(state)
        return state

    async def sign_out(self) -> None:
        if self._closed:
            raise ProviderError(
                "Provider is closed", kind=AuthErrorKind.LOGOUT_FAILURE, code="CLOSED"
            )
        # The REST API keeps no client session; dropping the tokens signs out locally
        self._session = None

    def state_changes(self) -> StateSubscription:
        return self._broadcaster.subscribe()

    async def aclose(self) -> None:
        """End all subscriptions and close the HTTP client if this adapter owns it."""
        if self._closed:
            return
        self._closed = True
        self._broadcaster.complete()
        if self._owns_client and self._client is not None:
            await self._client.aclose()

    async def __aenter__(self) -> IdentityToolkitProvider:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
