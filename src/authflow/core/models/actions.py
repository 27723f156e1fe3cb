"""Action vocabulary exchanged with the host store.

Intents flow from the store into the coordinator; outcomes flow back. Every
action carries a ``kind`` discriminator so the closed set can be validated from
plain data with :func:`parse_action`.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from authflow.core.errors import AuthErrorKind
from authflow.core.models.auth_state import AuthState, SignInIntent


class _Action(BaseModel):
    model_config = ConfigDict(frozen=True)


class SignIn(_Action):
    """Intent: sign in with credentials obtained from an upstream SDK.

    Fields are optional so that malformed intents can be represented and
    rejected by the coordinator instead of failing at construction time.
    """

    kind: Literal["sign_in"] = "sign_in"
    identity_token: str | None = Field(default=None, description="Opaque identity token")
    nonce: str | None = Field(default=None, description="Raw nonce")
    provider_id: str | None = Field(default=None, description="Identity provider ID")

    @classmethod
    def from_intent(cls, intent: SignInIntent) -> SignIn:
        return cls(
            identity_token=intent.identity_token,
            nonce=intent.nonce,
            provider_id=intent.provider_id,
        )

    @property
    def has_payload(self) -> bool:
        """True when any credential field is set, even to an empty string."""
        return any(
            value is not None for value in (self.identity_token, self.nonce, self.provider_id)
        )

    def to_intent(self) -> SignInIntent | None:
        """Return the validated payload, or None when any field is missing or empty."""
        if not (self.identity_token and self.nonce and self.provider_id):
            return None
        return SignInIntent(
            identity_token=self.identity_token,
            nonce=self.nonce,
            provider_id=self.provider_id,
        )

    def __repr__(self) -> str:
        return f"SignIn(provider_id={self.provider_id!r})"


class SignOut(_Action):
    """Intent: sign the current user out."""

    kind: Literal["sign_out"] = "sign_out"


class LoggedIn(_Action):
    """Outcome: the provider reports an authenticated state."""

    kind: Literal["logged_in"] = "logged_in"
    state: AuthState


class LoggedOut(_Action):
    """Outcome: sign-out completed."""

    kind: Literal["logged_out"] = "logged_out"


class Failure(_Action):
    """Outcome: the last operation failed."""

    kind: Literal["failure"] = "failure"
    error: AuthErrorKind


Intent = Union[SignIn, SignOut]
Outcome = Union[LoggedIn, LoggedOut, Failure]
Action = Annotated[
    Union[SignIn, SignOut, LoggedIn, LoggedOut, Failure],
    Field(discriminator="kind"),
]

_action_adapter: TypeAdapter[Any] = TypeAdapter(Action)


def parse_action(data: dict[str, Any] | str) -> SignIn | SignOut | LoggedIn | LoggedOut | Failure:
    """Validate a plain dict or JSON string into one of the action types."""
    if isinstance(data, str):
        return _action_adapter.validate_json(data)
    return _action_adapter.validate_python(data)


def is_intent(action: object) -> bool:
    return isinstance(action, (SignIn, SignOut))


def is_outcome(action: object) -> bool:
    return isinstance(action, (LoggedIn, LoggedOut, Failure))
