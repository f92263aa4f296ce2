"""Common enums used across schemas."""

from enum import Enum


class SessionStatus(str, Enum):
    """Session lifecycle states.

    State Transition Flow:

    SCHEDULED → ACTIVE → ENDED
        ↓          ↑
      ERROR      ENDED (owner delete before the room was confirmed)

    State Descriptions:
    - SCHEDULED: Session row inserted, LiveKit room not confirmed yet. Set by create_session().
    - ACTIVE: LiveKit room created. Set by create_session() once create_room() succeeds.
    - ENDED: Session finished. Set by delete_session(), the LiveKit room_finished webhook
      or the reconciliation sweep.
    - ERROR: LiveKit room creation failed. Set by create_session().

    Terminal states (no further transitions): ENDED, ERROR.
    ENDED → ENDED is accepted as an idempotent no-op.
    """

    SCHEDULED = "scheduled"
    ACTIVE = "active"
    ENDED = "ended"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value


class ParticipantRole(str, Enum):
    HOST = "host"
    VIEWER = "viewer"

    def __str__(self) -> str:
        return self.value


class ParticipantStatus(str, Enum):
    JOINED = "joined"
    LEFT = "left"

    def __str__(self) -> str:
        return self.value


class LiveStatus(str, Enum):
    """Status carried by the ephemeral live state of a session."""

    ACTIVE = "active"
    ENDED = "ended"

    def __str__(self) -> str:
        return self.value


__all__ = ["LiveStatus", "ParticipantRole", "ParticipantStatus", "SessionStatus"]
