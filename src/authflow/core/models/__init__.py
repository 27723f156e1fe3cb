"""Action and state models."""

from .actions import (
    Action,
    Failure,
    Intent,
    LoggedIn,
    LoggedOut,
    Outcome,
    SignIn,
    SignOut,
    is_intent,
    is_outcome,
    parse_action,
)
from .auth_state import AuthState, SessionMetadata, SignInIntent, UserRecord

__all__ = [
    "Action",
    "AuthState",
    "Failure",
    "Intent",
    "LoggedIn",
    "LoggedOut",
    "Outcome",
    "SessionMetadata",
    "SignIn",
    "SignInIntent",
    "SignOut",
    "UserRecord",
    "is_intent",
    "is_outcome",
    "parse_action",
]
