"""Durable store for sessions, participants and the notification ledger.

Every status change is one conditional ``find_one(...).update(...)`` keyed
on the expected current status, so a duplicate or reordered webhook either matches
and applies once or matches nothing and becomes a no-op.
"""

from datetime import datetime, timedelta
from typing import Any, Protocol

from beanie import UpdateResponse
from beanie.operators import In, Set
from loguru import logger
from pymongo import AsyncMongoClient, DESCENDING
from pymongo.errors import DuplicateKeyError

from app.schemas import (
    Participant,
    ParticipantRole,
    ParticipantStatus,
    ProcessedNotification,
    Session,
    SessionStatus,
)
from app.utils.app_errors import AppErrorCode, conflict

from .session.session_models import ParticipantResponse, SessionResponse
from .session.session_state_machine import SessionStateMachine


class LiveStore(Protocol):
    # Sessions
    async def insert_session(self, session: SessionResponse) -> SessionResponse: ...

    async def get_session(self, session_id: str) -> SessionResponse | None: ...

    async def get_session_by_room(self, room_name: str) -> SessionResponse | None: ...

    async def list_sessions(
        self,
        *,
        status: SessionStatus | None = None,
        owner_id: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[SessionResponse], int]: ...

    async def list_sessions_by_status(self, status: SessionStatus) -> list[SessionResponse]: ...

    async def transition_session(
        self,
        session_id: str,
        new_status: SessionStatus,
        now: datetime,
    ) -> SessionResponse | None: ...

    # Participants
    async def insert_participant(self, participant: ParticipantResponse) -> ParticipantResponse: ...

    async def list_participants(
        self,
        session_id: str,
        *,
        status: ParticipantStatus | None = None,
        role: ParticipantRole | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[ParticipantResponse], int]: ...

    async def list_joined_participants(self, session_id: str) -> list[ParticipantResponse]: ...

    async def attach_livekit_sids(
        self,
        session_id: str,
        user_id: str,
        participant_sid: str,
        room_sid: str | None,
    ) -> ParticipantResponse | None: ...

    async def mark_participant_left_by_sid(
        self, participant_sid: str, now: datetime
    ) -> ParticipantResponse | None: ...

    async def mark_participant_left_by_id(
        self, participant_id: str, now: datetime
    ) -> ParticipantResponse | None: ...

    async def mark_user_left(
        self, session_id: str, user_id: str, now: datetime
    ) -> ParticipantResponse | None: ...

    # Notification ledger
    async def is_notification_processed(self, notification_id: str) -> bool: ...

    async def record_notification(
        self,
        notification_id: str,
        event_type: str,
        now: datetime,
        ttl: timedelta,
    ) -> bool: ...

    async def purge_expired_notifications(self, now: datetime) -> int: ...

    async def ping(self) -> bool: ...


def _session_out(doc: Session) -> SessionResponse:
    return SessionResponse(**doc.model_dump(exclude={"id", "revision_id"}))


def _participant_out(doc: Participant) -> ParticipantResponse:
    return ParticipantResponse(**doc.model_dump(exclude={"id", "revision_id"}))


class MongoLiveStore:
    """``LiveStore`` backed by Beanie documents on MongoDB."""

    def __init__(self, client: AsyncMongoClient | None = None):
        self._client = client

    # ==================== SESSIONS ====================

    async def insert_session(self, session: SessionResponse) -> SessionResponse:
        doc = Session(**session.model_dump())
        try:
            await doc.insert()
        except DuplicateKeyError as e:
            logger.warning(f"Duplicate key inserting session room={session.room_name}: {e}")
            raise conflict(
                AppErrorCode.E_ROOM_NAME_CONFLICT,
                f"Room name already in use: {session.room_name}",
            ) from e
        return _session_out(doc)

    async def get_session(self, session_id: str) -> SessionResponse | None:
        doc = await Session.find_one(Session.session_id == session_id)
        return _session_out(doc) if doc else None

    async def get_session_by_room(self, room_name: str) -> SessionResponse | None:
        doc = await Session.find_one(Session.room_name == room_name)
        return _session_out(doc) if doc else None

    async def list_sessions(
        self,
        *,
        status: SessionStatus | None = None,
        owner_id: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[SessionResponse], int]:
        filters: list[Any] = []
        if status is not None:
            filters.append(Session.status == status.value)
        if owner_id is not None:
            filters.append(Session.owner_id == owner_id)

        query = Session.find(*filters)
        total = await query.count()
        docs = (
            await Session.find(*filters)
            .sort([("created_at", DESCENDING)])
            .skip(offset)
            .limit(limit)
            .to_list()
        )
        return [_session_out(d) for d in docs], total

    async def list_sessions_by_status(self, status: SessionStatus) -> list[SessionResponse]:
        docs = await Session.find(Session.status == status.value).to_list()
        return [_session_out(d) for d in docs]

    async def transition_session(
        self,
        session_id: str,
        new_status: SessionStatus,
        now: datetime,
    ) -> SessionResponse | None:
        """Move a session to ``new_status`` if its current status allows it.

        Returns the updated session, or None when the session is missing or its
        current status is not a valid source for ``new_status``.
        """
        sources = [s.value for s in SessionStateMachine.get_valid_sources(new_status)]
        if not sources:
            return None

        updates: dict[Any, Any] = {
            Session.status: new_status.value,
            Session.updated_at: now,
        }
        if new_status == SessionStatus.ACTIVE:
            updates[Session.started_at] = now
        elif new_status == SessionStatus.ENDED:
            updates[Session.ended_at] = now

        doc = await Session.find_one(
            Session.session_id == session_id,
            In(Session.status, sources),
        ).update(Set(updates), response_type=UpdateResponse.NEW_DOCUMENT)
        return _session_out(doc) if doc else None

    # ==================== PARTICIPANTS ====================

    async def insert_participant(self, participant: ParticipantResponse) -> ParticipantResponse:
        doc = Participant(**participant.model_dump())
        try:
            await doc.insert()
        except DuplicateKeyError as e:
            raise conflict(
                AppErrorCode.E_ALREADY_JOINED,
                f"User {participant.user_id} already joined session {participant.session_id}",
            ) from e
        return _participant_out(doc)

    async def list_participants(
        self,
        session_id: str,
        *,
        status: ParticipantStatus | None = None,
        role: ParticipantRole | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[ParticipantResponse], int]:
        filters: list[Any] = [Participant.session_id == session_id]
        if status is not None:
            filters.append(Participant.status == status.value)
        if role is not None:
            filters.append(Participant.role == role.value)

        total = await Participant.find(*filters).count()
        docs = (
            await Participant.find(*filters)
            .sort([("joined_at", DESCENDING)])
            .skip(offset)
            .limit(limit)
            .to_list()
        )
        return [_participant_out(d) for d in docs], total

    async def list_joined_participants(self, session_id: str) -> list[ParticipantResponse]:
        docs = await Participant.find(
            Participant.session_id == session_id,
            Participant.status == ParticipantStatus.JOINED.value,
        ).to_list()
        return [_participant_out(d) for d in docs]

    async def attach_livekit_sids(
        self,
        session_id: str,
        user_id: str,
        participant_sid: str,
        room_sid: str | None,
    ) -> ParticipantResponse | None:
        """Attach LiveKit sids to the newest joined row that has none yet.

        Returns None when no such row exists or the sid is already attached to
        another row.
        """
        candidate = await Participant.find_one(
            Participant.session_id == session_id,
            Participant.user_id == user_id,
            Participant.status == ParticipantStatus.JOINED.value,
            Participant.livekit_participant_sid == None,  # noqa: E711
            sort=[("joined_at", DESCENDING)],
        )
        if candidate is None:
            return None

        try:
            doc = await Participant.find_one(
                Participant.participant_id == candidate.participant_id,
                Participant.status == ParticipantStatus.JOINED.value,
                Participant.livekit_participant_sid == None,  # noqa: E711
            ).update(
                Set(
                    {
                        Participant.livekit_participant_sid: participant_sid,
                        Participant.livekit_room_sid: room_sid,
                    }
                ),
                response_type=UpdateResponse.NEW_DOCUMENT,
            )
        except DuplicateKeyError:
            logger.info(f"Participant sid {participant_sid} already attached to another row")
            return None
        return _participant_out(doc) if doc else None

    async def _mark_left(self, *filters: Any, now: datetime) -> ParticipantResponse | None:
        doc = await Participant.find_one(
            *filters,
            Participant.status == ParticipantStatus.JOINED.value,
        ).update(
            Set(
                {
                    Participant.status: ParticipantStatus.LEFT.value,
                    Participant.left_at: now,
                }
            ),
            response_type=UpdateResponse.NEW_DOCUMENT,
        )
        return _participant_out(doc) if doc else None

    async def mark_participant_left_by_sid(
        self, participant_sid: str, now: datetime
    ) -> ParticipantResponse | None:
        return await self._mark_left(
            Participant.livekit_participant_sid == participant_sid, now=now
        )

    async def mark_participant_left_by_id(
        self, participant_id: str, now: datetime
    ) -> ParticipantResponse | None:
        return await self._mark_left(Participant.participant_id == participant_id, now=now)

    async def mark_user_left(
        self, session_id: str, user_id: str, now: datetime
    ) -> ParticipantResponse | None:
        return await self._mark_left(
            Participant.session_id == session_id,
            Participant.user_id == user_id,
            now=now,
        )

    # ==================== NOTIFICATION LEDGER ====================

    async def is_notification_processed(self, notification_id: str) -> bool:
        doc = await ProcessedNotification.find_one(
            ProcessedNotification.notification_id == notification_id
        )
        return doc is not None

    async def record_notification(
        self,
        notification_id: str,
        event_type: str,
        now: datetime,
        ttl: timedelta,
    ) -> bool:
        """Insert the ledger row. Returns False if another worker inserted it first."""
        try:
            await ProcessedNotification(
                notification_id=notification_id,
                event_type=event_type,
                processed_at=now,
                expires_at=now + ttl,
            ).insert()
        except DuplicateKeyError:
            return False
        return True

    async def purge_expired_notifications(self, now: datetime) -> int:
        result = await ProcessedNotification.find(ProcessedNotification.expires_at < now).delete()
        return result.deleted_count if result else 0

    async def ping(self) -> bool:
        if self._client is None:
            return False
        await self._client.admin.command("ping")
        return True
