"""LiveKit webhook event schemas.

Only the events this service reacts to are modelled. Payloads arrive as
protobuf JSON: camelCase keys, enums as names, int64 values as strings.
LiveKit enum fields stay plain strings so a value added upstream does not
fail validation.

See https://docs.livekit.io/home/server/webhooks/
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _LiveKitModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ParticipantInfo(_LiveKitModel):
    sid: str
    identity: str = Field(..., description="Our user_id")
    name: str | None = None
    metadata: str | None = None
    state: str | None = None
    kind: str | None = None
    joined_at: int | None = Field(None, alias="joinedAt")
    disconnect_reason: str | None = Field(None, alias="disconnectReason")


class Room(_LiveKitModel):
    name: str
    sid: str | None = None
    metadata: str | None = None
    empty_timeout: int | None = Field(None, alias="emptyTimeout")
    max_participants: int | None = Field(None, alias="maxParticipants")
    num_participants: int | None = Field(None, alias="numParticipants")
    creation_time: int | None = Field(None, alias="creationTime")


class _RoomEvent(_LiveKitModel):
    id: str = Field(..., description="LiveKit event id, used as the notification id")
    created_at: int | None = Field(None, alias="createdAt")
    room: Room


class RoomStartedEvent(_RoomEvent):
    event: Literal["room_started"] = "room_started"


class RoomFinishedEvent(_RoomEvent):
    """All participants left and the room's empty timeout expired."""

    event: Literal["room_finished"] = "room_finished"


class ParticipantJoinedEvent(_RoomEvent):
    event: Literal["participant_joined"] = "participant_joined"
    participant: ParticipantInfo


class ParticipantLeftEvent(_RoomEvent):
    event: Literal["participant_left"] = "participant_left"
    participant: ParticipantInfo


LiveKitWebhookEvent = Annotated[
    RoomStartedEvent | RoomFinishedEvent | ParticipantJoinedEvent | ParticipantLeftEvent,
    Field(discriminator="event"),
]

HANDLED_EVENT_TYPES = frozenset(
    {"room_started", "room_finished", "participant_joined", "participant_left"}
)

_event_adapter: TypeAdapter[LiveKitWebhookEvent] = TypeAdapter(LiveKitWebhookEvent)


def parse_livekit_event(payload: dict[str, Any]) -> LiveKitWebhookEvent | None:
    """Parse a webhook payload into its typed event.

    Returns None for event types this service does not handle. Raises
    ``pydantic.ValidationError`` when a handled type is missing required fields.
    """
    if payload.get("event") not in HANDLED_EVENT_TYPES:
        return None
    return _event_adapter.validate_python(payload)
