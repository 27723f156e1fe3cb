"""Reducer folding outcome actions into AuthState snapshots."""

from __future__ import annotations

from typing import Any

from authflow.core.models.actions import Failure, LoggedIn, LoggedOut, SignIn
from authflow.core.models.auth_state import AuthState


def _updated(state: AuthState, **changes: Any) -> AuthState:
    """Copy ``state`` with ``changes``, returning ``state`` itself when nothing differs."""
    candidate = state.model_copy(update=changes)
    return state if candidate == state else candidate


def reduce(state: AuthState, action: object) -> AuthState:
    """Return the state that results from applying ``action`` to ``state``.

    Equal results are returned as the original object, so re-dispatching an
    equivalent ``LoggedIn`` leaves the store untouched.

    Pending credentials in ``input_data`` survive only a bare ``SignIn()``,
    which asks to retry them. A partial ``SignIn`` or any ``Failure`` drops them.
    """
    if isinstance(action, SignIn):
        if not action.has_payload:
            return _updated(state, error=None)
        return _updated(state, error=None, input_data=action.to_intent())

    if isinstance(action, LoggedIn):
        reconciled = action.state.model_copy(update={"error": None, "input_data": None})
        return state if reconciled == state else reconciled

    if isinstance(action, LoggedOut):
        empty = AuthState.empty()
        return state if state == empty else empty

    if isinstance(action, Failure):
        # Identity fields stay as they were; error marks the last operation as failed
        return _updated(state, error=action.error, input_data=None)

    return state
