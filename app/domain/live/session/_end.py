"""Session ending operations."""

from loguru import logger

from app.domain.utils.clock import utc_now
from app.schemas import SessionStatus
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

from ._base import BaseService
from .session_models import SessionEndResult, SessionResponse


class EndSessionOperations(BaseService):
    """Operations for ending sessions.

    ``close_session`` is the single end-of-session path shared by owner
    deletion, the room_finished webhook and the reconciliation sweep.
    """

    async def close_session(self, session: SessionResponse) -> SessionEndResult:
        """Flip every joined participant to left, end the session and its live state.

        Every step is a conditional update, so running this twice for the same
        session changes nothing the second time.
        """
        session_id = session.session_id
        now = utc_now()

        participants_updated = 0
        for participant in await self.store.list_joined_participants(session_id):
            if participant.livekit_participant_sid:
                flipped = await self.store.mark_participant_left_by_sid(
                    participant.livekit_participant_sid, now
                )
            else:
                flipped = await self.store.mark_participant_left_by_id(
                    participant.participant_id, now
                )
            if flipped is None:
                continue
            participants_updated += 1
            await self.fanout.record_leave(session_id, flipped.user_id, broadcast=False)

        ended = await self.store.transition_session(session_id, SessionStatus.ENDED, now)
        already_ended = ended is None
        if ended is None:
            ended = await self.store.get_session(session_id) or session
            logger.debug(f"Session {session_id} not moved to ended (current status: {ended.status})")
        else:
            logger.info(f"🔴 Session {session_id} ended ({participants_updated} participants flipped)")

        await self.fanout.end_session(session_id)

        return SessionEndResult(
            session=ended,
            participants_updated=participants_updated,
            already_ended=already_ended,
        )

    async def delete_session(self, session_id: str, requester_id: str) -> SessionResponse:
        """End a session on behalf of its owner.

        Idempotent for sessions that are already ended. Deleting the LiveKit
        room is best effort; a failure there is logged and does not stop the
        session from ending.
        """
        session = await self._require_session(session_id)

        if session.status == SessionStatus.ENDED:
            logger.info(f"Session {session_id} already ended, nothing to delete")
            return session

        if session.owner_id != requester_id:
            raise AppError(
                errcode=AppErrorCode.E_FORBIDDEN,
                errmesg=f"Only the owner can delete session {session_id}",
                status_code=HttpStatusCode.FORBIDDEN,
            )

        try:
            await self.livekit.delete_room(session.room_name)
        except Exception as e:
            logger.warning(f"Failed to delete LiveKit room {session.room_name}: {e!s}")

        result = await self.close_session(session)
        return result.session
