"""Webhook schemas for external providers."""

from app.api.webhooks.schemas.livekit import (
    HANDLED_EVENT_TYPES,
    LiveKitWebhookEvent,
    ParticipantInfo,
    ParticipantJoinedEvent,
    ParticipantLeftEvent,
    Room,
    RoomFinishedEvent,
    RoomStartedEvent,
    parse_livekit_event,
)

__all__ = [
    "HANDLED_EVENT_TYPES",
    "LiveKitWebhookEvent",
    "ParticipantInfo",
    "ParticipantJoinedEvent",
    "ParticipantLeftEvent",
    "Room",
    "RoomFinishedEvent",
    "RoomStartedEvent",
    "parse_livekit_event",
]
