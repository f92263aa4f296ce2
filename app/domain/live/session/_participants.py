"""Participant join/leave operations."""

from loguru import logger

from app.domain.utils.clock import utc_now
from app.schemas import ParticipantRole, ParticipantStatus, SessionStatus
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode, conflict, invalid_request, not_found

from ...utils.idgen import new_participant_id
from ._base import BaseService
from .session_models import JoinSessionParams, JoinSessionResponse, ParticipantResponse


class ParticipantOperations(BaseService):
    """Join and leave through the API, before and after LiveKit confirms."""

    async def join_session(self, session_id: str, params: JoinSessionParams) -> JoinSessionResponse:
        """Insert a joined participant row and issue a LiveKit access token.

        The row has no LiveKit sid until the participant_joined webhook arrives.
        At most one joined row per (session, user) is enforced by the store.
        """
        if not params.user_id.strip() or not params.display_name.strip():
            raise invalid_request("user_id and display_name are required")

        session = await self._require_session(session_id)
        if session.status != SessionStatus.ACTIVE:
            raise conflict(
                AppErrorCode.E_SESSION_NOT_ACTIVE,
                f"Session {session_id} is {session.status}, not active",
            )
        if params.role == ParticipantRole.HOST and params.user_id != session.owner_id:
            raise AppError(
                errcode=AppErrorCode.E_FORBIDDEN,
                errmesg="Only the session owner can join as host",
                status_code=HttpStatusCode.FORBIDDEN,
            )

        participant = await self.store.insert_participant(
            ParticipantResponse(
                participant_id=new_participant_id(),
                session_id=session_id,
                user_id=params.user_id,
                display_name=params.display_name.strip(),
                role=params.role,
                status=ParticipantStatus.JOINED,
                metadata=params.metadata or {},
                joined_at=utc_now(),
            )
        )

        try:
            token = self.livekit.create_access_token(
                room=session.room_name,
                identity=participant.user_id,
                display_name=participant.display_name,
                role=participant.role,
                metadata=params.metadata,
            )
        except Exception:
            await self.store.mark_participant_left_by_id(participant.participant_id, utc_now())
            raise

        logger.info(f"👤 {participant.user_id} joined session {session_id} as {participant.role}")
        return JoinSessionResponse(
            participant=participant,
            token=token,
            livekit_url=self.livekit.url,
            room_name=session.room_name,
        )

    async def leave_session(self, session_id: str, user_id: str) -> ParticipantResponse:
        """Mark the caller's joined row as left.

        Live state is only touched if LiveKit had already confirmed the join; the
        later participant_left webhook then finds nothing to flip.
        """
        await self._require_session(session_id)
        participant = await self.store.mark_user_left(session_id, user_id, utc_now())
        if participant is None:
            raise not_found(
                AppErrorCode.E_PARTICIPANT_NOT_FOUND,
                f"No joined participant {user_id} in session {session_id}",
            )

        if participant.livekit_participant_sid:
            await self.fanout.record_leave(session_id, user_id)

        logger.info(f"👋 {user_id} left session {session_id}")
        return participant
