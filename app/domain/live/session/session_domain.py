"""Session domain service."""

from typing import Any

from app.api.webhooks.schemas.livekit import LiveKitWebhookEvent
from app.app_config import AppEnvironConfig
from app.domain.live.live_store import LiveStore
from app.domain.live.state.state_fanout import StateFanout
from app.schemas import ParticipantRole, ParticipantStatus, SessionStatus
from app.services.integrations.livekit_service import LivekitService

from ._notifications import NotificationOperations
from ._participants import ParticipantOperations
from ._sessions import SessionOperations
from .session_models import (
    JoinSessionParams,
    JoinSessionResponse,
    ParticipantListResponse,
    ParticipantResponse,
    SessionCreateParams,
    SessionEndResult,
    SessionListResponse,
    SessionResponse,
)


class SessionService:
    """Facade over the session operation groups, sharing one set of collaborators."""

    def __init__(
        self,
        store: LiveStore,
        livekit: LivekitService,
        fanout: StateFanout,
        cfg: AppEnvironConfig | None = None,
    ):
        self._sessions = SessionOperations(store, livekit, fanout, cfg)
        self._participants = ParticipantOperations(store, livekit, fanout, cfg)
        self._notifications = NotificationOperations(store, livekit, fanout, cfg)

    # ==================== SESSIONS ====================

    async def create_session(self, params: SessionCreateParams) -> SessionResponse:
        """Create a session and its LiveKit room.

        Raises AppError on invalid input, room name conflict or LiveKit failure.
        """
        return await self._sessions.create_session(params=params)

    async def get_session(self, session_id: str) -> SessionResponse:
        """Raises AppError if session not found."""
        return await self._sessions.get_session(session_id=session_id)

    async def list_sessions(
        self,
        status: SessionStatus | None = None,
        owner_id: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> SessionListResponse:
        return await self._sessions.list_sessions(
            status=status, owner_id=owner_id, limit=limit, offset=offset
        )

    async def delete_session(self, session_id: str, requester_id: str) -> SessionResponse:
        """End a session on behalf of its owner. Idempotent once ended."""
        return await self._notifications.delete_session(
            session_id=session_id, requester_id=requester_id
        )

    async def close_session(self, session: SessionResponse) -> SessionEndResult:
        """Shared end-of-session path: flip joined participants, end session and live state."""
        return await self._notifications.close_session(session)

    # ==================== PARTICIPANTS ====================

    async def join_session(self, session_id: str, params: JoinSessionParams) -> JoinSessionResponse:
        return await self._participants.join_session(session_id=session_id, params=params)

    async def leave_session(self, session_id: str, user_id: str) -> ParticipantResponse:
        return await self._participants.leave_session(session_id=session_id, user_id=user_id)

    async def list_participants(
        self,
        session_id: str,
        status: ParticipantStatus | None = None,
        role: ParticipantRole | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> ParticipantListResponse:
        return await self._sessions.list_participants(
            session_id=session_id, status=status, role=role, limit=limit, offset=offset
        )

    # ==================== NOTIFICATIONS ====================

    async def handle_notification(self, event: LiveKitWebhookEvent) -> dict[str, Any]:
        """Apply one LiveKit event. Store and cache errors propagate to the caller."""
        return await self._notifications.handle_notification(event)
