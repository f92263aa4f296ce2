"""Base service for session operations."""

import re

from app.app_config import AppEnvironConfig, get_app_environ_config
from app.domain.live.live_store import LiveStore
from app.domain.live.state.state_fanout import StateFanout
from app.services.integrations.livekit_service import LivekitService
from app.utils.app_errors import AppErrorCode, not_found

from .session_models import SessionResponse

_INVALID_ROOM_CHARS = re.compile(r"[^a-z0-9\-_]")
_REPEATED_HYPHENS = re.compile(r"-+")


def normalize_room_name(room_name: str) -> str:
    """Lowercase the name and reduce it to ``[a-z0-9-_]`` with single, inner hyphens."""
    value = room_name.strip().lower()
    value = _INVALID_ROOM_CHARS.sub("-", value)
    value = _REPEATED_HYPHENS.sub("-", value)
    return value.strip("-")


class BaseService:
    """Base service with shared collaborators and lookups."""

    def __init__(
        self,
        store: LiveStore,
        livekit: LivekitService,
        fanout: StateFanout,
        cfg: AppEnvironConfig | None = None,
    ):
        self.store = store
        self.livekit = livekit
        self.fanout = fanout
        self.cfg = cfg or get_app_environ_config()

    async def _require_session(self, session_id: str) -> SessionResponse:
        session = await self.store.get_session(session_id)
        if session is None:
            raise not_found(AppErrorCode.E_SESSION_NOT_FOUND, f"Session not found: {session_id}")
        return session
