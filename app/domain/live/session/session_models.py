"""Session domain models."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from app.schemas import ParticipantRole, ParticipantStatus, SessionStatus


class SessionResponse(BaseModel):
    """Session response model."""

    session_id: str
    room_name: str
    owner_id: str

    title: str
    description: str | None = None

    status: SessionStatus
    max_participants: int
    empty_timeout: int
    metadata: dict[str, Any] = Field(default_factory=dict)

    # Timestamps
    created_at: datetime
    updated_at: datetime
    started_at: datetime | None = None
    ended_at: datetime | None = None


class ParticipantResponse(BaseModel):
    """Participant response model."""

    participant_id: str
    session_id: str
    user_id: str
    display_name: str
    role: ParticipantRole
    status: ParticipantStatus

    livekit_participant_sid: str | None = None
    livekit_room_sid: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    joined_at: datetime
    left_at: datetime | None = None


class SessionListResponse(BaseModel):
    """Session list response with pagination."""

    sessions: list[SessionResponse]
    total: int
    limit: int
    offset: int


class ParticipantListResponse(BaseModel):
    participants: list[ParticipantResponse]
    total: int
    limit: int
    offset: int


class SessionCreateParams(BaseModel):
    """Parameters for creating a session."""

    title: str
    owner_id: str
    room_name: str
    description: str | None = None
    host_display_name: str | None = None
    max_participants: int | None = None
    empty_timeout: int | None = None
    metadata: dict[str, Any] | None = None


class JoinSessionParams(BaseModel):
    user_id: str
    display_name: str
    role: ParticipantRole = ParticipantRole.VIEWER
    metadata: dict[str, Any] | None = None


class JoinSessionResponse(BaseModel):
    """Result of a successful join: the membership row plus LiveKit credentials."""

    participant: ParticipantResponse
    token: str
    livekit_url: str | None = None
    room_name: str


class SessionEndResult(BaseModel):
    """Outcome of closing a session through any end-of-session path."""

    session: SessionResponse
    participants_updated: int = 0
    already_ended: bool = False
