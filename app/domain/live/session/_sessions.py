"""Session operations."""

import orjson
from loguru import logger

from app.domain.live.state.state_models import HostInfo
from app.domain.utils.clock import utc_now
from app.schemas import ParticipantRole, ParticipantStatus, SessionStatus
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode, conflict, invalid_request

from ...utils.idgen import new_session_id
from ._base import BaseService, normalize_room_name
from .session_models import (
    ParticipantListResponse,
    SessionCreateParams,
    SessionListResponse,
    SessionResponse,
)


class SessionOperations(BaseService):
    """Session-related operations."""

    def _validate_create(self, params: SessionCreateParams) -> tuple[int, int]:
        if not params.title.strip():
            raise invalid_request("title is required")
        if not params.owner_id.strip():
            raise invalid_request("owner_id is required")
        if not params.room_name.strip():
            raise invalid_request("room_name is required")

        max_participants = (
            params.max_participants
            if params.max_participants is not None
            else self.cfg.DEFAULT_MAX_PARTICIPANTS
        )
        empty_timeout = (
            params.empty_timeout if params.empty_timeout is not None else self.cfg.DEFAULT_EMPTY_TIMEOUT
        )
        if max_participants < 1:
            raise invalid_request("max_participants must be at least 1")
        if empty_timeout < 0:
            raise invalid_request("empty_timeout must be 0 or greater")
        return max_participants, empty_timeout

    async def create_session(self, params: SessionCreateParams) -> SessionResponse:
        """
        Create a session and its LiveKit room.

        The row is inserted as scheduled, the room is created, then the row is
        moved to active and its live state initialized. If room creation fails
        the row is moved to error and E_LIVEKIT_ERROR is raised.
        """
        max_participants, empty_timeout = self._validate_create(params)

        room_name = normalize_room_name(params.room_name)
        if not room_name:
            raise invalid_request(f"room_name has no usable characters: {params.room_name!r}")

        if await self.store.get_session_by_room(room_name):
            raise conflict(
                AppErrorCode.E_ROOM_NAME_CONFLICT,
                f'Session with room name "{room_name}" already exists',
            )

        now = utc_now()
        session = await self.store.insert_session(
            SessionResponse(
                session_id=new_session_id(),
                room_name=room_name,
                owner_id=params.owner_id.strip(),
                title=params.title.strip(),
                description=params.description,
                status=SessionStatus.SCHEDULED,
                max_participants=max_participants,
                empty_timeout=empty_timeout,
                metadata=params.metadata or {},
                created_at=now,
                updated_at=now,
            )
        )
        logger.debug(f"Created scheduled session {session.session_id} for room {room_name}")

        try:
            await self.livekit.create_room(
                room_name=room_name,
                empty_timeout=empty_timeout,
                max_participants=max_participants,
                metadata=orjson.dumps(params.metadata).decode() if params.metadata else None,
            )
        except Exception as e:
            logger.error(f"LiveKit room creation failed for session {session.session_id}: {e!s}")
            await self.store.transition_session(session.session_id, SessionStatus.ERROR, utc_now())
            raise AppError(
                errcode=AppErrorCode.E_LIVEKIT_ERROR,
                errmesg=f"Failed to create LiveKit room {room_name}: {e!s}",
                status_code=HttpStatusCode.BAD_GATEWAY,
            ) from e

        active = await self.store.transition_session(session.session_id, SessionStatus.ACTIVE, utc_now())
        if active is None:
            # Ended by its owner while the room was being created
            return await self._require_session(session.session_id)

        await self.fanout.initialize(
            active.session_id,
            HostInfo(
                user_id=active.owner_id,
                display_name=params.host_display_name or active.owner_id,
            ),
            started_at=active.started_at,
        )
        logger.info(f"🟢 Session {active.session_id} active in room {room_name}")
        return active

    async def get_session(self, session_id: str) -> SessionResponse:
        return await self._require_session(session_id)

    async def list_sessions(
        self,
        status: SessionStatus | None = None,
        owner_id: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> SessionListResponse:
        sessions, total = await self.store.list_sessions(
            status=status, owner_id=owner_id, limit=limit, offset=offset
        )
        return SessionListResponse(sessions=sessions, total=total, limit=limit, offset=offset)

    async def list_participants(
        self,
        session_id: str,
        status: ParticipantStatus | None = None,
        role: ParticipantRole | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> ParticipantListResponse:
        await self._require_session(session_id)
        participants, total = await self.store.list_participants(
            session_id, status=status, role=role, limit=limit, offset=offset
        )
        return ParticipantListResponse(
            participants=participants, total=total, limit=limit, offset=offset
        )
