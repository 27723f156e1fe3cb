"""Authentication state snapshot models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from authflow.core.errors import AuthErrorKind


class UserRecord(BaseModel):
    """Identity record issued by an upstream identity provider."""

    model_config = ConfigDict(frozen=True)

    provider_id: str = Field(description="Identity provider that issued this record")
    uid: str = Field(description="Provider-scoped unique user ID")
    display_name: str | None = Field(default=None, description="Display name")
    photo_url: str | None = Field(default=None, description="Profile photo URL")
    email: str | None = Field(default=None, description="Email address")
    phone_number: str | None = Field(default=None, description="Phone number")
    username: str | None = Field(default=None, description="Username")

    @property
    def key(self) -> tuple[str, str]:
        """Natural key distinguishing linked identities."""
        return (self.provider_id, self.uid)


class SessionMetadata(BaseModel):
    """Session timestamps reported by the provider."""

    model_config = ConfigDict(frozen=True)

    last_sign_in_at: datetime | None = Field(default=None, description="Last sign-in time")
    created_at: datetime | None = Field(default=None, description="Account creation time")


class SignInIntent(BaseModel):
    """Credential material required to start a sign-in."""

    model_config = ConfigDict(frozen=True)

    identity_token: str = Field(min_length=1, description="Opaque token from an upstream SDK")
    nonce: str = Field(min_length=1, description="Raw nonce used to obtain the token")
    provider_id: str = Field(min_length=1, description="Identity provider ID, e.g. apple.com")

    def __repr__(self) -> str:
        # Keep credential material out of logs and tracebacks
        return f"SignInIntent(provider_id={self.provider_id!r})"

    __str__ = __repr__


class AuthState(BaseModel):
    """Snapshot of the authenticated principal.

    ``error`` is the authoritative signal that the last operation failed. Identity
    fields may still hold stale data from an earlier sign-in alongside it.
    """

    model_config = ConfigDict(frozen=True)

    user: UserRecord | None = Field(default=None, description="Primary user record")
    provider_data: tuple[UserRecord, ...] | None = Field(
        default=None, description="Linked provider identities"
    )
    metadata: SessionMetadata | None = Field(default=None, description="Session metadata")
    tenant_id: str | None = Field(default=None, description="Tenant identifier")
    is_new_user: bool | None = Field(
        default=None, description="Whether the sign-in created the account (None = unknown)"
    )
    input_data: SignInIntent | None = Field(
        default=None, description="Pending sign-in credentials threaded through state"
    )
    error: AuthErrorKind | None = Field(default=None, description="Failure of the last operation")

    @classmethod
    def empty(cls) -> AuthState:
        """State before any successful sign-in."""
        return cls()

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None and self.error is None

    def linked_identity(self, provider_id: str) -> UserRecord | None:
        """Return the linked identity issued by ``provider_id``, if any."""
        for record in self.provider_data or ():
            if record.provider_id == provider_id:
                return record
        return None
