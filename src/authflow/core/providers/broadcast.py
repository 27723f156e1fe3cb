"""Fan-out of provider state changes to any number of subscribers."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from authflow.core.models.auth_state import AuthState


@dataclass(frozen=True)
class _StreamEnd:
    error: BaseException | None = None


class StateSubscription:
    """Async iterator over states published after the subscription was created.

    Registration happens at construction, so no state published between
    subscribing and the first ``__anext__`` is lost.
    """

    def __init__(self, broadcaster: StateBroadcaster) -> None:
        self._broadcaster = broadcaster
        self._queue: asyncio.Queue[AuthState | _StreamEnd] = asyncio.Queue()
        self._closed = False
        broadcaster._register(self._queue)

    def __aiter__(self) -> StateSubscription:
        return self

    async def __anext__(self) -> AuthState:
        if self._closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if isinstance(item, _StreamEnd):
            self.close()
            if item.error is not None:
                raise item.error
            raise StopAsyncIteration
        return item

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._broadcaster._unregister(self._queue)

    async def aclose(self) -> None:
        self.close()


class StateBroadcaster:
    """Publishes states to every open subscription."""

    def __init__(self) -> None:
        self._queues: set[asyncio.Queue] = set()

    def _register(self, queue: asyncio.Queue) -> None:
        self._queues.add(queue)

    def _unregister(self, queue: asyncio.Queue) -> None:
        self._queues.discard(queue)

    @property
    def subscriber_count(self) -> int:
        return len(self._queues)

    def subscribe(self) -> StateSubscription:
        return StateSubscription(self)

    def publish(self, state: AuthState) -> None:
        for queue in list(self._queues):
            queue.put_nowait(state)

    def fail(self, error: BaseException) -> None:
        """Terminate every open subscription with ``error``."""
        for queue in list(self._queues):
            queue.put_nowait(_StreamEnd(error))

    def complete(self) -> None:
        """End every open subscription normally."""
        for queue in list(self._queues):
            queue.put_nowait(_StreamEnd())
