"""Minimal host store wiring a reducer to the flow coordinator."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any, Protocol

from loguru import logger

from authflow.core.models.auth_state import AuthState
from authflow.core.store.reducer import reduce

Listener = Callable[[Any, AuthState], None]
Reducer = Callable[[AuthState, Any], AuthState]


class Middleware(Protocol):
    def handle(self, action: object, state: AuthState | None = None) -> None: ...


class AuthStore:
    """Holds the current AuthState and dispatches actions.

    ``dispatch`` reduces the action first, notifies listeners, then hands the
    action and the new state to each middleware (the flow coordinator).
    """

    def __init__(
        self,
        initial_state: AuthState | None = None,
        *,
        reducer: Reducer = reduce,
    ) -> None:
        self._state = initial_state or AuthState.empty()
        self._reducer = reducer
        self._middlewares: list[Middleware] = []
        self._listeners: list[Listener] = []
        self._waiters: list[tuple[Callable[[Any], bool], asyncio.Future]] = []

    @property
    def state(self) -> AuthState:
        return self._state

    def add_middleware(self, middleware: Middleware) -> None:
        self._middlewares.append(middleware)

    async def attach(self, coordinator: Any) -> None:
        """Start ``coordinator`` with this store's dispatch and register it as middleware."""
        await coordinator.start(self.dispatch)
        self.add_middleware(coordinator)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(action, new_state)`` after every dispatch.

        Returns:
            A function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def dispatch(self, action: Any) -> None:
        previous = self._state
        self._state = self._reducer(previous, action)
        if self._state is not previous:
            logger.trace(f"{type(action).__name__} updated the auth state")

        for listener in list(self._listeners):
            listener(action, self._state)

        for predicate, future in list(self._waiters):
            if not future.done() and predicate(action):
                future.set_result(action)

        for middleware in list(self._middlewares):
            middleware.handle(action, self._state)

    def expect(self, predicate: Callable[[Any], bool]) -> asyncio.Future:
        """Return a future resolved with the next dispatched action matching ``predicate``.

        The future is registered before this method returns, so actions dispatched
        synchronously right afterwards are not missed. Cancelling it unregisters it.
        """
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        entry = (predicate, future)
        self._waiters.append(entry)

        def _unregister(_: asyncio.Future) -> None:
            if entry in self._waiters:
                self._waiters.remove(entry)

        future.add_done_callback(_unregister)
        return future
