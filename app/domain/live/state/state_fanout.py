"""Ephemeral live state and event fan-out for sessions.

State lives in the ephemeral store under one key per session and is re-set
with a fresh TTL on every mutation. Changes are published on a per-session
channel; every process that holds SSE clients for the session subscribes to
that channel and forwards events to its local clients.

Channel subscriptions are reference-counted per process: the first local
subscriber opens it, the last one closes it.
"""

from datetime import datetime
from functools import partial

import orjson
from loguru import logger

from app.domain.utils.clock import utc_now
from app.schemas import LiveStatus
from app.services.ephemeral_store import EphemeralStore

from .state_models import HostInfo, SessionLiveState, StateEvent, StateEventType
from .subscriber import StateSubscriber
from .viewer_throttle import ViewerCountThrottle


class StateFanout:
    def __init__(
        self,
        store: EphemeralStore,
        *,
        service_key: str = "livecast",
        state_ttl_seconds: int = 24 * 60 * 60,
        throttle: ViewerCountThrottle | None = None,
    ):
        self._store = store
        self._service_key = service_key
        self._state_ttl_seconds = state_ttl_seconds
        self._throttle = throttle if throttle is not None else ViewerCountThrottle()
        self._connections: dict[str, list[StateSubscriber]] = {}
        self._subscribed: set[str] = set()

    def state_key(self, session_id: str) -> str:
        return f"{self._service_key}:session:state:{session_id}"

    def channel(self, session_id: str) -> str:
        return f"{self._service_key}:session:events:{session_id}"

    # ==================== STATE ====================

    async def initialize(
        self,
        session_id: str,
        host: HostInfo | None,
        started_at: datetime | None = None,
    ) -> SessionLiveState:
        state = SessionLiveState(
            session_id=session_id,
            started_at=started_at or utc_now(),
            host=host,
        )
        self._throttle.reset(session_id)
        await self._save(state)
        logger.info(f"🟢 Initialized live state for session {session_id}")
        return state

    async def get_state(self, session_id: str) -> SessionLiveState | None:
        raw = await self._store.get(self.state_key(session_id))
        if not raw:
            return None
        return SessionLiveState.model_validate(orjson.loads(raw))

    async def _save(self, state: SessionLiveState) -> None:
        await self._store.set_with_ttl(
            self.state_key(state.session_id),
            orjson.dumps(state.model_dump(mode="json")).decode(),
            self._state_ttl_seconds,
        )

    async def record_join(self, session_id: str, user_id: str) -> SessionLiveState | None:
        state = await self.get_state(session_id)
        if state is None:
            logger.warning(f"Live state missing for session {session_id}, skipping join of {user_id}")
            return None
        if user_id in state.participants:
            return state

        state.participants.append(user_id)
        state.viewer_count = len(state.participants)
        state.total_viewers += 1
        state.peak_viewer_count = max(state.peak_viewer_count, state.viewer_count)
        await self._save(state)
        logger.debug(f"Session {session_id} join {user_id}, viewers={state.viewer_count}")

        await self._maybe_broadcast_viewer_count(state)
        return state

    async def record_leave(
        self,
        session_id: str,
        user_id: str,
        *,
        broadcast: bool = True,
    ) -> SessionLiveState | None:
        state = await self.get_state(session_id)
        if state is None:
            logger.warning(f"Live state missing for session {session_id}, skipping leave of {user_id}")
            return None
        if user_id not in state.participants:
            return state

        state.participants.remove(user_id)
        state.viewer_count = len(state.participants)
        await self._save(state)
        logger.debug(f"Session {session_id} leave {user_id}, viewers={state.viewer_count}")

        if broadcast:
            await self._maybe_broadcast_viewer_count(state)
        if state.viewer_count == 0:
            self._throttle.reset(session_id)
        return state

    async def _maybe_broadcast_viewer_count(self, state: SessionLiveState) -> None:
        if self._throttle.should_broadcast(state.session_id, state.viewer_count):
            await self.broadcast(state.session_id, StateEventType.VIEWER_COUNT_UPDATE, state)

    # ==================== EVENTS ====================

    async def broadcast(
        self,
        session_id: str,
        event: StateEventType,
        state: SessionLiveState,
    ) -> None:
        message = StateEvent(type=event, data=state)
        await self._store.publish(
            self.channel(session_id),
            orjson.dumps(message.model_dump(mode="json")).decode(),
        )
        logger.debug(f"📣 Broadcast {event} for session {session_id}")

    async def room_started(self, session_id: str) -> bool:
        state = await self.get_state(session_id)
        if state is None:
            logger.warning(f"Live state missing for session {session_id}, room_started not broadcast")
            return False
        await self.broadcast(session_id, StateEventType.ROOM_STARTED, state)
        return True

    async def end_session(self, session_id: str) -> SessionLiveState | None:
        """Mark the live state ended, broadcast ``room_ended`` and drop local clients.

        Safe to call more than once: an already-ended state is not re-broadcast.
        """
        state = await self.get_state(session_id)
        if state is None or state.status == LiveStatus.ENDED:
            await self._close_connections(session_id)
            return state

        state.status = LiveStatus.ENDED
        await self._save(state)
        self._throttle.reset(session_id)
        await self.broadcast(session_id, StateEventType.ROOM_ENDED, state)

        for conn in list(self._connections.get(session_id, [])):
            conn.send(StateEventType.ROOM_ENDED, state)
        await self._close_connections(session_id)

        logger.info(f"🔴 Live state ended for session {session_id}")
        return state

    # ==================== SUBSCRIBERS ====================

    async def subscribe(
        self,
        session_id: str,
        subscriber: StateSubscriber,
    ) -> SessionLiveState | None:
        """Register ``subscriber`` and push it the current state snapshot."""
        conns = self._connections.setdefault(session_id, [])
        conns.append(subscriber)

        if session_id not in self._subscribed:
            self._subscribed.add(session_id)
            try:
                await self._store.subscribe(
                    self.channel(session_id),
                    partial(self._on_channel_message, session_id),
                )
            except Exception:
                self._subscribed.discard(session_id)
                conns.remove(subscriber)
                if not conns:
                    self._connections.pop(session_id, None)
                raise
        logger.info(f"SSE subscriber added for session {session_id} (total: {len(conns)})")

        state = await self.get_state(session_id)
        if state is not None:
            subscriber.send(StateEventType.STATE, state)
            if state.status == LiveStatus.ENDED:
                subscriber.close()
                await self.unsubscribe(session_id, subscriber)
        return state

    async def unsubscribe(self, session_id: str, subscriber: StateSubscriber) -> None:
        conns = self._connections.get(session_id)
        if not conns or subscriber not in conns:
            return
        conns.remove(subscriber)
        logger.info(f"SSE subscriber removed for session {session_id} (remaining: {len(conns)})")
        if not conns:
            self._connections.pop(session_id, None)
            await self._release_channel(session_id)

    async def _on_channel_message(self, session_id: str, raw: str) -> None:
        message = StateEvent.model_validate(orjson.loads(raw))
        conns = list(self._connections.get(session_id, []))
        for conn in conns:
            conn.send(message.type, message.data)
        if message.type == StateEventType.ROOM_ENDED:
            await self._close_connections(session_id)

    async def _close_connections(self, session_id: str) -> None:
        conns = self._connections.pop(session_id, [])
        for conn in conns:
            conn.close()
        await self._release_channel(session_id)
        if conns:
            logger.info(f"Closed {len(conns)} SSE connections for session {session_id}")

    async def _release_channel(self, session_id: str) -> None:
        if session_id in self._subscribed:
            self._subscribed.discard(session_id)
            await self._store.unsubscribe(self.channel(session_id))

    # ==================== LIFECYCLE ====================

    @property
    def connection_count(self) -> int:
        return sum(len(conns) for conns in self._connections.values())

    @property
    def session_count(self) -> int:
        return len(self._connections)

    async def health(self) -> dict:
        try:
            healthy = await self._store.ping()
        except Exception as e:
            logger.warning(f"Ephemeral store ping failed: {e}")
            healthy = False
        return {
            "healthy": healthy,
            "active_connections": self.connection_count,
            "subscribed_sessions": self.session_count,
        }

    async def close(self) -> None:
        for session_id in list(self._connections):
            await self._close_connections(session_id)
        logger.info("State fan-out closed")
