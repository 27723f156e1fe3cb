"""Error taxonomy for authentication flows."""

from __future__ import annotations

from enum import Enum


class AuthErrorKind(str, Enum):
    """Failure kinds reported through ``Failure`` outcome actions."""

    INVALID_CREDENTIAL = "invalid_credential"
    LOGOUT_FAILURE = "logout_failure"
    OPERATION_NOT_ALLOWED = "operation_not_allowed"
    USER_DISABLED = "user_disabled"
    PROVIDER_FAILURE = "provider_failure"


# Kinds a sign-in call is allowed to surface; everything else collapses to
# PROVIDER_FAILURE.
SIGN_IN_ERROR_KINDS = frozenset(
    {
        AuthErrorKind.INVALID_CREDENTIAL,
        AuthErrorKind.OPERATION_NOT_ALLOWED,
        AuthErrorKind.USER_DISABLED,
        AuthErrorKind.PROVIDER_FAILURE,
    }
)


class AuthFlowError(Exception):
    """Base exception for the authflow package."""


class ProviderError(AuthFlowError):
    """Raised by identity providers when an operation fails.

    Args:
        message: Human readable description
        kind: Failure kind the provider assigned to this error
        code: Optional provider-specific machine readable code
    """

    def __init__(
        self,
        message: str,
        kind: AuthErrorKind = AuthErrorKind.PROVIDER_FAILURE,
        code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.code = code

    def __repr__(self) -> str:
        return f"ProviderError({str(self)!r}, kind={self.kind.value!r}, code={self.code!r})"


class CoordinatorStateError(AuthFlowError):
    """Raised when the coordinator is used outside its started lifetime."""


def sign_in_failure_kind(error: BaseException) -> AuthErrorKind:
    """Map any exception raised by a sign-in call to the sign-in taxonomy."""
    if isinstance(error, ProviderError) and error.kind in SIGN_IN_ERROR_KINDS:
        return error.kind
    return AuthErrorKind.PROVIDER_FAILURE
