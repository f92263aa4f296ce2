"""LiveKit notification handling for sessions."""

from typing import Any

from loguru import logger

from app.api.webhooks.schemas.livekit import (
    LiveKitWebhookEvent,
    ParticipantJoinedEvent,
    ParticipantLeftEvent,
    RoomFinishedEvent,
    RoomStartedEvent,
)
from app.domain.utils.clock import utc_now

from ._end import EndSessionOperations


class NotificationOperations(EndSessionOperations):
    """Apply LiveKit webhook events to sessions, participants and live state."""

    async def handle_notification(self, event: LiveKitWebhookEvent) -> dict[str, Any]:
        if isinstance(event, ParticipantJoinedEvent):
            return await self.handle_participant_joined(event)
        if isinstance(event, ParticipantLeftEvent):
            return await self.handle_participant_left(event)
        if isinstance(event, RoomStartedEvent):
            return await self.handle_room_started(event)
        if isinstance(event, RoomFinishedEvent):
            return await self.handle_room_finished(event)

        logger.warning(f"Unhandled LiveKit event: {getattr(event, 'event', None)}")
        return {"ignored": True}

    async def handle_participant_joined(self, event: ParticipantJoinedEvent) -> dict[str, Any]:
        """Attach LiveKit sids to the pending participant row and count the viewer."""
        identity = event.participant.identity
        logger.info(f"👤 PARTICIPANT JOINED: {identity} room={event.room.name} sid={event.participant.sid}")

        session = await self.store.get_session_by_room(event.room.name)
        if session is None:
            logger.warning(f"No session for room {event.room.name}, ignoring join of {identity}")
            return {"handled": "participant_joined", "applied": False}

        participant = await self.store.attach_livekit_sids(
            session.session_id,
            identity,
            event.participant.sid,
            event.room.sid,
        )
        if participant is None:
            logger.info(f"No pending participant row for {identity} in session {session.session_id}")
            return {"handled": "participant_joined", "applied": False}

        await self.fanout.record_join(session.session_id, participant.user_id)
        return {
            "handled": "participant_joined",
            "applied": True,
            "participant_id": participant.participant_id,
        }

    async def handle_participant_left(self, event: ParticipantLeftEvent) -> dict[str, Any]:
        """Flip the row holding this LiveKit sid to left.

        The sid is the only key used here: a user who rejoined has a new sid,
        so a late leave for the old one can never touch the new row.
        """
        logger.info(f"👋 PARTICIPANT LEFT: {event.participant.identity} sid={event.participant.sid}")

        participant = await self.store.mark_participant_left_by_sid(event.participant.sid, utc_now())
        if participant is None:
            logger.debug(f"Participant sid {event.participant.sid} unknown or already left")
            return {"handled": "participant_left", "applied": False}

        await self.fanout.record_leave(participant.session_id, participant.user_id)
        return {
            "handled": "participant_left",
            "applied": True,
            "participant_id": participant.participant_id,
        }

    async def handle_room_started(self, event: RoomStartedEvent) -> dict[str, Any]:
        logger.info(f"🟢 ROOM STARTED: {event.room.name} (sid={event.room.sid})")

        session = await self.store.get_session_by_room(event.room.name)
        if session is None:
            logger.warning(f"No session for room {event.room.name}, ignoring room_started")
            return {"handled": "room_started", "applied": False}

        broadcast = await self.fanout.room_started(session.session_id)
        return {"handled": "room_started", "applied": broadcast}

    async def handle_room_finished(self, event: RoomFinishedEvent) -> dict[str, Any]:
        logger.info(f"🔴 ROOM FINISHED: {event.room.name} (sid={event.room.sid})")

        session = await self.store.get_session_by_room(event.room.name)
        if session is None:
            logger.warning(f"No session for room {event.room.name}, ignoring room_finished")
            return {"handled": "room_finished", "applied": False}

        result = await self.close_session(session)
        return {
            "handled": "room_finished",
            "applied": not result.already_ended,
            "participants_updated": result.participants_updated,
        }
