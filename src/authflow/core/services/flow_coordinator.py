"""Flow coordinator translating authentication intents into provider calls.

The coordinator is the single translator between the host store and an
:class:`~authflow.core.providers.base.AuthProvider`:

- ``SignIn`` starts a provider sign-in, superseding any sign-in in flight.
- ``SignOut`` starts a provider sign-out, superseding any sign-out in flight.
- The provider's change stream is subscribed to once, in :meth:`FlowCoordinator.start`,
  and every state it pushes is forwarded as ``LoggedIn``.

Every operation holds a token in a per-kind slot. Starting a new operation of
the same kind swaps the slot and cancels the previous task; a completing
operation dispatches its outcome only if its token is still current. All slot
mutation happens on the event loop thread.
"""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import AsyncIterator, Awaitable, Callable, Coroutine
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

from loguru import logger as _logger

from authflow.core.errors import AuthErrorKind, CoordinatorStateError, sign_in_failure_kind
from authflow.core.models.actions import (
    Failure,
    LoggedIn,
    LoggedOut,
    Outcome,
    SignIn,
    SignOut,
)
from authflow.core.models.auth_state import AuthState, SignInIntent
from authflow.core.providers.base import AuthProvider
from authflow.runtime.config.config_data import LoginOutcomeSource
from authflow.runtime.context import get_config

T = TypeVar("T")

Dispatch = Callable[[Outcome], Any]


class OperationKind(str, Enum):
    SIGN_IN = "sign_in"
    SIGN_OUT = "sign_out"


@dataclass
class InFlightOperation:
    """Slot entry for the currently active operation of one kind."""

    kind: OperationKind
    token: int
    task: asyncio.Task | None = None

    @property
    def label(self) -> str:
        return f"{self.kind.value}#{self.token}"


def resolve_sign_in(action: SignIn, state: AuthState | None = None) -> SignInIntent | None:
    """Return the credentials to sign in with, or None when they are incomplete.

    An action carrying any credential field is judged on its own payload.
    Only a bare ``SignIn()`` uses the pending ``state.input_data``, and then
    as a whole.
    """
    if action.has_payload:
        return action.to_intent()
    return state.input_data if state is not None else None


class FlowCoordinator:
    """Coordinates sign-in/sign-out calls and provider state changes.

    Args:
        provider: Identity provider the intents are translated to
        logger: Diagnostic sink; defaults to the package logger bound to this component
        login_outcome_source: ``change_stream`` (default) forwards LoggedIn only from
            the provider's change stream; ``call_result`` dispatches LoggedIn from the
            sign-in call itself and does not subscribe to the stream
        operation_timeout: Seconds to wait for a single provider call before failing it
    """

    def __init__(
        self,
        provider: AuthProvider,
        *,
        logger: Any = None,
        login_outcome_source: LoginOutcomeSource | str | None = None,
        operation_timeout: float | None = None,
    ) -> None:
        config = get_config().coordinator
        self._provider = provider
        self._log = logger or _logger.bind(component="flow_coordinator")
        self._login_outcome_source = LoginOutcomeSource(
            login_outcome_source or config.login_outcome_source
        )
        self._operation_timeout = (
            operation_timeout if operation_timeout is not None else config.operation_timeout_seconds
        )

        self._dispatch: Dispatch | None = None
        self._in_flight: dict[OperationKind, InFlightOperation] = {}
        self._tokens = itertools.count(1)
        self._subscription_task: asyncio.Task | None = None
        self._started = False
        self._closed = False

    @property
    def login_outcome_source(self) -> LoginOutcomeSource:
        return self._login_outcome_source

    @property
    def started(self) -> bool:
        return self._started

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def subscribed(self) -> bool:
        """Whether the change-stream subscription is still running."""
        return self._subscription_task is not None and not self._subscription_task.done()

    def in_flight(self, kind: OperationKind) -> bool:
        return kind in self._in_flight

    async def start(self, dispatch: Dispatch) -> None:
        """Receive the host dispatch function and subscribe to provider state changes.

        Raises:
            CoordinatorStateError: If the coordinator was already started or closed
        """
        if self._closed:
            raise CoordinatorStateError("Coordinator is closed")
        if self._started:
            raise CoordinatorStateError("Coordinator already started")

        self._dispatch = dispatch
        self._started = True

        if self._login_outcome_source is LoginOutcomeSource.CHANGE_STREAM:
            stream = self._provider.state_changes()
            self._subscription_task = asyncio.get_running_loop().create_task(
                self._forward_state_changes(stream), name="authflow-state-changes"
            )
            self._subscription_task.add_done_callback(self._report_task_failure)

        self._log.info(
            f"Flow coordinator started (login outcomes from {self._login_outcome_source.value})"
        )

    @asynccontextmanager
    async def attached(self, dispatch: Dispatch) -> AsyncIterator[FlowCoordinator]:
        """Start the coordinator for the duration of an ``async with`` block."""
        await self.start(dispatch)
        try:
            yield self
        finally:
            await self.close()

    def handle(self, action: object, state: AuthState | None = None) -> None:
        """Handle one action from the store.

        Never blocks on the provider: calls are scheduled as tasks and report
        back through the dispatch function.

        Args:
            action: Action dispatched by the store
            state: Latest state snapshot, used for credentials threaded through state
        """
        if not self._started:
            raise CoordinatorStateError("Coordinator has not been started")
        if self._closed:
            raise CoordinatorStateError("Coordinator is closed")

        if isinstance(action, SignIn):
            self._handle_sign_in(action, state)
        elif isinstance(action, SignOut):
            self._start_operation(OperationKind.SIGN_OUT, self._run_sign_out)
        else:
            self._log.trace(f"Ignoring {type(action).__name__}")

    async def close(self) -> None:
        """Cancel in-flight operations and the change-stream subscription."""
        if self._closed:
            return
        self._closed = True

        tasks = [op.task for op in self._in_flight.values() if op.task is not None]
        self._in_flight.clear()
        if self._subscription_task is not None:
            tasks.append(self._subscription_task)

        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self._log.info("Flow coordinator closed")

    def _handle_sign_in(self, action: SignIn, state: AuthState | None) -> None:
        intent = resolve_sign_in(action, state)
        if intent is None:
            self._log.warning("Rejecting sign-in with missing credentials")
            self._emit(Failure(error=AuthErrorKind.INVALID_CREDENTIAL))
            return

        async def run(operation: InFlightOperation) -> None:
            await self._run_sign_in(operation, intent)

        self._start_operation(OperationKind.SIGN_IN, run)

    def _start_operation(
        self,
        kind: OperationKind,
        runner: Callable[[InFlightOperation], Coroutine[Any, Any, None]],
    ) -> None:
        previous = self._in_flight.pop(kind, None)
        if previous is not None:
            self._log.debug(f"Superseding {previous.label}")
            if previous.task is not None:
                previous.task.cancel()

        operation = InFlightOperation(kind=kind, token=next(self._tokens))
        self._in_flight[kind] = operation
        operation.task = asyncio.get_running_loop().create_task(
            runner(operation), name=f"authflow-{operation.label}"
        )
        operation.task.add_done_callback(self._report_task_failure)
        self._log.debug(f"Started {operation.label}")

    async def _call(self, awaitable: Awaitable[T]) -> T:
        if self._operation_timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, self._operation_timeout)

    async def _run_sign_in(self, operation: InFlightOperation, intent: SignInIntent) -> None:
        try:
            result = await self._call(
                self._provider.sign_in(intent.provider_id, intent.identity_token, intent.nonce)
            )
        except asyncio.TimeoutError:
            self._log.warning(f"{operation.label} timed out after {self._operation_timeout}s")
            self._complete(operation, Failure(error=AuthErrorKind.PROVIDER_FAILURE))
            return
        except Exception as e:
            kind = sign_in_failure_kind(e)
            self._log.warning(f"{operation.label} with {intent.provider_id} failed: {kind.value} ({e!r})")
            self._complete(operation, Failure(error=kind))
            return

        if self._login_outcome_source is LoginOutcomeSource.CALL_RESULT:
            self._complete(operation, LoggedIn(state=result))
        else:
            # LoggedIn arrives through the change stream
            self._complete(operation, None)

    async def _run_sign_out(self, operation: InFlightOperation) -> None:
        try:
            await self._call(self._provider.sign_out())
        except asyncio.TimeoutError:
            self._log.warning(f"{operation.label} timed out after {self._operation_timeout}s")
            self._complete(operation, Failure(error=AuthErrorKind.LOGOUT_FAILURE))
            return
        except Exception as e:
            self._log.warning(f"{operation.label} failed: {e!r}")
            self._complete(operation, Failure(error=AuthErrorKind.LOGOUT_FAILURE))
            return

        self._complete(operation, LoggedOut())

    def _complete(self, operation: InFlightOperation, outcome: Outcome | None) -> None:
        current = self._in_flight.get(operation.kind)
        if current is None or current.token != operation.token:
            self._log.debug(f"Discarding outcome of superseded {operation.label}")
            return

        del self._in_flight[operation.kind]
        self._log.debug(f"Completed {operation.label}")
        if outcome is not None:
            self._emit(outcome)

    async def _forward_state_changes(self, stream: AsyncIterator[AuthState]) -> None:
        try:
            async for state in stream:
                try:
                    self._emit(LoggedIn(state=state))
                except Exception:
                    self._log.exception("Dispatching a provider state change failed")
        except Exception as e:
            # Stream errors are diagnostic only and never become outcome actions
            self._log.opt(exception=e).warning(
                "Provider state-change stream failed; state changes are no longer forwarded"
            )
        else:
            self._log.info("Provider state-change stream ended")
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

    def _emit(self, outcome: Outcome) -> None:
        if self._dispatch is None or self._closed:
            self._log.debug(f"Dropping {type(outcome).__name__} after close")
            return
        self._dispatch(outcome)

    def _report_task_failure(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._log.opt(exception=exc).error(f"Task {task.get_name()} failed")
