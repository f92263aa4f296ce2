"""Ephemeral live state models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from app.domain.utils.clock import utc_now
from app.schemas import LiveStatus


class StateEventType(str, Enum):
    STATE = "state"
    ROOM_STARTED = "room_started"
    VIEWER_COUNT_UPDATE = "viewer_count_update"
    ROOM_ENDED = "room_ended"

    def __str__(self) -> str:
        return self.value


class HostInfo(BaseModel):
    user_id: str
    display_name: str


class SessionLiveState(BaseModel):
    """Derived view of a session's live viewership, cached with a TTL."""

    session_id: str
    status: LiveStatus = LiveStatus.ACTIVE
    participants: list[str] = Field(default_factory=list)
    started_at: datetime
    viewer_count: int = 0
    total_viewers: int = 0
    peak_viewer_count: int = 0
    host: HostInfo | None = None


class StateEvent(BaseModel):
    """Message published on a session's pub/sub channel."""

    type: StateEventType
    data: SessionLiveState
    timestamp: datetime = Field(default_factory=utc_now)
