"""Reconciliation of active sessions against LiveKit's live rooms."""

from loguru import logger
from pydantic import BaseModel

from app.domain.live.live_store import LiveStore
from app.domain.live.session.session_domain import SessionService
from app.schemas import SessionStatus
from app.services.integrations.livekit_service import LivekitService


class SweepStats(BaseModel):
    sessions_scanned: int = 0
    stale_found: int = 0
    participants_updated: int = 0
    errors: int = 0


class ReconciliationSweeper:
    """Close active sessions whose LiveKit room no longer exists.

    Covers room_finished notifications that were never delivered or were
    recorded in the ledger but never applied.
    """

    def __init__(self, store: LiveStore, livekit: LivekitService, sessions: SessionService):
        self._store = store
        self._livekit = livekit
        self._sessions = sessions

    async def run(self) -> SweepStats:
        stats = SweepStats()

        active = await self._store.list_sessions_by_status(SessionStatus.ACTIVE)
        stats.sessions_scanned = len(active)
        if not active:
            logger.debug("Reconciliation: no active sessions")
            return stats

        live_rooms = {room.name for room in await self._livekit.list_rooms()}
        stale = [s for s in active if s.room_name not in live_rooms]
        stats.stale_found = len(stale)

        for session in stale:
            try:
                result = await self._sessions.close_session(session)
                stats.participants_updated += result.participants_updated
                logger.info(
                    f"🧹 Reconciled stale session {session.session_id} (room {session.room_name})"
                )
            except Exception:
                stats.errors += 1
                logger.exception(f"Failed to reconcile session {session.session_id}")

        logger.info(f"Reconciliation finished: {stats.model_dump()}")
        return stats
