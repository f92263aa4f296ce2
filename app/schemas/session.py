"""Session ODM schema."""

from datetime import datetime
from typing import Any

from beanie import Document, Indexed
from pydantic import Field, field_validator
from pymongo import DESCENDING, IndexModel

from .schema_utils import parse_mongo_datetime
from .session_state import SessionStatus


class Session(Document):
    """Session document model.

    ``room_name`` is the LiveKit room name. It is unique and never rewritten
    after insert.
    """

    session_id: Indexed(str, unique=True)  # type: ignore[valid-type]
    room_name: Indexed(str, unique=True)  # type: ignore[valid-type]
    owner_id: str

    title: str
    description: str | None = None

    status: SessionStatus = SessionStatus.SCHEDULED
    max_participants: int = 100
    empty_timeout: int = 600
    metadata: dict[str, Any] = Field(default_factory=dict)

    # Timestamps
    created_at: datetime
    updated_at: datetime
    started_at: datetime | None = None
    ended_at: datetime | None = None

    @field_validator("created_at", "updated_at", "started_at", "ended_at", mode="before")
    @classmethod
    def _parse_datetime(cls, v: Any) -> Any:
        """Parse MongoDB Extended JSON datetime format."""
        return parse_mongo_datetime(v)

    class Settings:
        name = "session"
        indexes = [
            [("session_id", 1)],  # unique handled by Indexed
            [("room_name", 1)],  # unique handled by Indexed
            IndexModel(
                [("status", 1), ("created_at", DESCENDING)],
                name="status_created_at",
            ),
            IndexModel(
                [("owner_id", 1), ("created_at", DESCENDING)],
                name="owner_created_at",
            ),
        ]
