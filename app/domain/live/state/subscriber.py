"""Long-lived subscriber connections for session state events."""

import asyncio
from collections.abc import AsyncIterator
from datetime import datetime
from typing import Protocol

import orjson

from app.domain.utils.clock import utc_now

from .state_models import SessionLiveState, StateEventType

_CLOSED = object()


class StateSubscriber(Protocol):
    connected_at: datetime

    def send(self, event: StateEventType, state: SessionLiveState) -> None: ...

    def close(self) -> None: ...


class QueueSubscriber:
    """Buffers events for one SSE client until the stream generator drains them."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        self.connected_at = utc_now()
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, event: StateEventType, state: SessionLiveState) -> None:
        if self._closed:
            return
        self._queue.put_nowait(
            {
                "event": str(event),
                "data": orjson.dumps(state.model_dump(mode="json")).decode(),
            }
        )

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    async def events(self) -> AsyncIterator[dict[str, str]]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item
