"""Idempotent processing of queued LiveKit notifications."""

from datetime import timedelta
from typing import Any, Literal

from loguru import logger
from pydantic import BaseModel, ValidationError

from app.api.webhooks.schemas.livekit import parse_livekit_event
from app.domain.live.live_store import LiveStore
from app.domain.live.session.session_domain import SessionService
from app.domain.utils.clock import utc_now

ProcessOutcome = Literal["processed", "duplicate", "ignored", "invalid"]


class ProcessResult(BaseModel):
    notification_id: str
    event_type: str
    outcome: ProcessOutcome
    details: dict[str, Any] | None = None


class NotificationProcessor:
    """Run one queued notification through the dedup ledger and the session service.

    The ledger row is written before the event is applied. A crash between the
    two leaves the notification marked processed but unapplied; the
    reconciliation sweep closes the session-level gap.

    Store and cache errors are not caught here: they propagate so the queue
    retries the job.
    """

    def __init__(
        self,
        store: LiveStore,
        sessions: SessionService,
        ledger_ttl: timedelta = timedelta(hours=24),
    ):
        self._store = store
        self._sessions = sessions
        self._ledger_ttl = ledger_ttl

    async def process(
        self,
        notification_id: str,
        event_type: str,
        payload: dict[str, Any],
    ) -> ProcessResult:
        if await self._store.is_notification_processed(notification_id):
            logger.info(f"Notification {notification_id} ({event_type}) already processed")
            return ProcessResult(
                notification_id=notification_id, event_type=event_type, outcome="duplicate"
            )

        recorded = await self._store.record_notification(
            notification_id, event_type, utc_now(), self._ledger_ttl
        )
        if not recorded:
            logger.info(f"Notification {notification_id} claimed by another worker")
            return ProcessResult(
                notification_id=notification_id, event_type=event_type, outcome="duplicate"
            )

        try:
            event = parse_livekit_event(payload)
        except ValidationError as e:
            # Retrying cannot fix a payload shape
            logger.error(f"❌ Invalid {event_type} payload for {notification_id}: {e}")
            return ProcessResult(
                notification_id=notification_id, event_type=event_type, outcome="invalid"
            )

        if event is None:
            logger.info(f"Ignoring unhandled LiveKit event type {event_type} ({notification_id})")
            return ProcessResult(
                notification_id=notification_id, event_type=event_type, outcome="ignored"
            )

        details = await self._sessions.handle_notification(event)
        logger.info(f"✅ Processed {event_type} notification {notification_id}: {details}")
        return ProcessResult(
            notification_id=notification_id,
            event_type=event_type,
            outcome="processed",
            details=details,
        )
