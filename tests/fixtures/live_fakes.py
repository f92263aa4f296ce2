"""In-memory doubles for the live store, the ephemeral store and LiveKit.

``FakeLiveStore`` mirrors the Mongo store's contract: the same unique
constraints (room name, one joined row per user, one row per LiveKit sid,
one ledger row per notification) and the same conditional updates that
return None instead of raising when nothing matches.
"""

import asyncio
from datetime import datetime, timedelta
from unittest.mock import AsyncMock

from app.domain.live.session.session_models import ParticipantResponse, SessionResponse
from app.domain.live.session.session_state_machine import SessionStateMachine
from app.schemas import ParticipantRole, ParticipantStatus, SessionStatus
from app.services.ephemeral_store import MessageHandler
from app.services.integrations.livekit_service import RoomSummary
from app.utils.app_errors import AppErrorCode, conflict


class FakeLiveStore:
    def __init__(self):
        self.sessions: dict[str, SessionResponse] = {}
        self.participants: dict[str, ParticipantResponse] = {}
        self.ledger: dict[str, tuple[str, datetime]] = {}

    # Sessions

    async def insert_session(self, session: SessionResponse) -> SessionResponse:
        for existing in self.sessions.values():
            if existing.room_name == session.room_name or existing.session_id == session.session_id:
                raise conflict(AppErrorCode.E_ROOM_NAME_CONFLICT, session.room_name)
        self.sessions[session.session_id] = session
        return session

    async def get_session(self, session_id: str) -> SessionResponse | None:
        return self.sessions.get(session_id)

    async def get_session_by_room(self, room_name: str) -> SessionResponse | None:
        return next((s for s in self.sessions.values() if s.room_name == room_name), None)

    async def list_sessions(
        self,
        *,
        status: SessionStatus | None = None,
        owner_id: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[SessionResponse], int]:
        rows = [
            s
            for s in self.sessions.values()
            if (status is None or s.status == status) and (owner_id is None or s.owner_id == owner_id)
        ]
        rows.sort(key=lambda s: s.created_at, reverse=True)
        return rows[offset : offset + limit], len(rows)

    async def list_sessions_by_status(self, status: SessionStatus) -> list[SessionResponse]:
        return [s for s in self.sessions.values() if s.status == status]

    async def transition_session(
        self,
        session_id: str,
        new_status: SessionStatus,
        now: datetime,
    ) -> SessionResponse | None:
        session = self.sessions.get(session_id)
        if session is None or session.status not in SessionStateMachine.get_valid_sources(new_status):
            return None

        update: dict = {"status": new_status, "updated_at": now}
        if new_status == SessionStatus.ACTIVE:
            update["started_at"] = now
        elif new_status == SessionStatus.ENDED:
            update["ended_at"] = now
        session = session.model_copy(update=update)
        self.sessions[session_id] = session
        return session

    # Participants

    async def insert_participant(self, participant: ParticipantResponse) -> ParticipantResponse:
        for existing in self.participants.values():
            if (
                existing.session_id == participant.session_id
                and existing.user_id == participant.user_id
                and existing.status == ParticipantStatus.JOINED
            ):
                raise conflict(AppErrorCode.E_ALREADY_JOINED, participant.user_id)
        self.participants[participant.participant_id] = participant
        return participant

    async def list_participants(
        self,
        session_id: str,
        *,
        status: ParticipantStatus | None = None,
        role: ParticipantRole | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[ParticipantResponse], int]:
        rows = [
            p
            for p in self.participants.values()
            if p.session_id == session_id
            and (status is None or p.status == status)
            and (role is None or p.role == role)
        ]
        rows.sort(key=lambda p: p.joined_at, reverse=True)
        return rows[offset : offset + limit], len(rows)

    async def list_joined_participants(self, session_id: str) -> list[ParticipantResponse]:
        return [
            p
            for p in self.participants.values()
            if p.session_id == session_id and p.status == ParticipantStatus.JOINED
        ]

    async def attach_livekit_sids(
        self,
        session_id: str,
        user_id: str,
        participant_sid: str,
        room_sid: str | None,
    ) -> ParticipantResponse | None:
        if any(p.livekit_participant_sid == participant_sid for p in self.participants.values()):
            return None
        pending = [
            p
            for p in self.participants.values()
            if p.session_id == session_id
            and p.user_id == user_id
            and p.status == ParticipantStatus.JOINED
            and p.livekit_participant_sid is None
        ]
        if not pending:
            return None
        newest = max(pending, key=lambda p: p.joined_at)
        updated = newest.model_copy(
            update={"livekit_participant_sid": participant_sid, "livekit_room_sid": room_sid}
        )
        self.participants[updated.participant_id] = updated
        return updated

    def _mark_left(self, match, now: datetime) -> ParticipantResponse | None:
        for p in self.participants.values():
            if p.status == ParticipantStatus.JOINED and match(p):
                updated = p.model_copy(update={"status": ParticipantStatus.LEFT, "left_at": now})
                self.participants[p.participant_id] = updated
                return updated
        return None

    async def mark_participant_left_by_sid(
        self, participant_sid: str, now: datetime
    ) -> ParticipantResponse | None:
        return self._mark_left(lambda p: p.livekit_participant_sid == participant_sid, now)

    async def mark_participant_left_by_id(
        self, participant_id: str, now: datetime
    ) -> ParticipantResponse | None:
        return self._mark_left(lambda p: p.participant_id == participant_id, now)

    async def mark_user_left(
        self, session_id: str, user_id: str, now: datetime
    ) -> ParticipantResponse | None:
        return self._mark_left(lambda p: p.session_id == session_id and p.user_id == user_id, now)

    # Notification ledger; the sleeps let concurrent callers interleave

    async def is_notification_processed(self, notification_id: str) -> bool:
        await asyncio.sleep(0)
        return notification_id in self.ledger

    async def record_notification(
        self,
        notification_id: str,
        event_type: str,
        now: datetime,
        ttl: timedelta,
    ) -> bool:
        await asyncio.sleep(0)
        if notification_id in self.ledger:
            return False
        self.ledger[notification_id] = (event_type, now + ttl)
        return True

    async def purge_expired_notifications(self, now: datetime) -> int:
        expired = [k for k, (_, expires_at) in self.ledger.items() if expires_at < now]
        for key in expired:
            del self.ledger[key]
        return len(expired)

    async def ping(self) -> bool:
        return True


class FakeEphemeralStore:
    """Key/value plus pub/sub where ``publish`` dispatches to handlers inline."""

    def __init__(self):
        self.values: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.handlers: dict[str, MessageHandler] = {}
        self.published: list[tuple[str, str]] = []
        self.subscribe_calls = 0
        self.unsubscribe_calls = 0
        self.healthy = True
        self.subscribe_error: Exception | None = None

    async def get(self, key: str) -> str | None:
        return self.values.get(key)

    async def set_with_ttl(self, key: str, value: str, seconds: int) -> None:
        self.values[key] = value
        self.ttls[key] = seconds

    async def publish(self, channel: str, message: str) -> int:
        self.published.append((channel, message))
        handler = self.handlers.get(channel)
        if handler is None:
            return 0
        await handler(message)
        return 1

    async def subscribe(self, channel: str, handler: MessageHandler) -> None:
        self.subscribe_calls += 1
        if self.subscribe_error is not None:
            raise self.subscribe_error
        self.handlers[channel] = handler

    async def unsubscribe(self, channel: str) -> None:
        self.unsubscribe_calls += 1
        self.handlers.pop(channel, None)

    async def ping(self) -> bool:
        return self.healthy

    async def close(self) -> None:
        self.handlers.clear()


class FakeLivekitService:
    """Records room calls; rooms created here are what ``list_rooms`` reports."""

    url = "wss://livekit.test"

    def __init__(self):
        self.rooms: dict[str, str] = {}
        self.token_error: Exception | None = None
        self.create_room = AsyncMock(side_effect=self._create_room)
        self.delete_room = AsyncMock(side_effect=self._delete_room)
        self.list_rooms = AsyncMock(side_effect=self._list_rooms)

    async def _create_room(self, room_name: str, empty_timeout: int = 600, max_participants: int = 100, metadata=None):
        self.rooms[room_name] = f"RM_{room_name}"
        return RoomSummary(name=room_name, sid=self.rooms[room_name])

    async def _delete_room(self, room_name: str) -> None:
        self.rooms.pop(room_name, None)

    async def _list_rooms(self) -> list[RoomSummary]:
        return [RoomSummary(name=name, sid=sid) for name, sid in self.rooms.items()]

    def create_access_token(self, room, identity, display_name, role=ParticipantRole.VIEWER, metadata=None) -> str:
        if self.token_error is not None:
            raise self.token_error
        return f"token:{room}:{identity}:{role.value}"
