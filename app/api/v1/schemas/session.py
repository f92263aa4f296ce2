from typing import Any

from pydantic import BaseModel, Field

from app.schemas import ParticipantRole


class CreateSessionIn(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    owner_id: str = Field(..., min_length=1)
    room_name: str = Field(..., min_length=1, max_length=128)
    description: str | None = Field(None, max_length=2000)
    host_display_name: str | None = None
    max_participants: int | None = Field(None, ge=1)
    empty_timeout: int | None = Field(None, ge=0, description="Seconds LiveKit keeps an empty room")
    metadata: dict[str, Any] | None = None


class DeleteSessionIn(BaseModel):
    requester_id: str = Field(..., min_length=1, description="User asking to end the session")


class JoinSessionIn(BaseModel):
    user_id: str = Field(..., min_length=1)
    display_name: str = Field(..., min_length=1, max_length=100)
    role: ParticipantRole = ParticipantRole.VIEWER
    metadata: dict[str, Any] | None = None


class LeaveSessionIn(BaseModel):
    user_id: str = Field(..., min_length=1)
