"""Participant ODM schema."""

from datetime import datetime
from typing import Any

from beanie import Document, Indexed
from pydantic import Field, field_validator
from pymongo import ASCENDING, DESCENDING, IndexModel

from .schema_utils import parse_mongo_datetime
from .session_state import ParticipantRole, ParticipantStatus


class Participant(Document):
    """One user's membership span in a session.

    ``livekit_participant_sid`` stays null until LiveKit confirms the join; once
    set it is globally unique and is the only key used to mark the departure.
    """

    participant_id: Indexed(str, unique=True)  # type: ignore[valid-type]
    session_id: str
    user_id: str
    display_name: str
    role: ParticipantRole = ParticipantRole.VIEWER
    status: ParticipantStatus = ParticipantStatus.JOINED

    livekit_participant_sid: str | None = None
    livekit_room_sid: str | None = None

    metadata: dict[str, Any] = Field(default_factory=dict)

    joined_at: datetime
    left_at: datetime | None = None

    @field_validator("joined_at", "left_at", mode="before")
    @classmethod
    def _parse_datetime(cls, v: Any) -> Any:
        """Parse MongoDB Extended JSON datetime format."""
        return parse_mongo_datetime(v)

    class Settings:
        name = "participant"
        indexes = [
            [("participant_id", 1)],  # unique handled by Indexed
            IndexModel(
                [("session_id", ASCENDING), ("user_id", ASCENDING)],
                partialFilterExpression={"status": "joined"},
                unique=True,
                name="session_user_joined_unique",
            ),
            IndexModel(
                [("livekit_participant_sid", ASCENDING)],
                partialFilterExpression={"livekit_participant_sid": {"$type": "string"}},
                unique=True,
                name="livekit_participant_sid_unique",
            ),
            IndexModel(
                [("session_id", ASCENDING), ("status", ASCENDING), ("joined_at", DESCENDING)],
                name="session_status_joined_at",
            ),
        ]
