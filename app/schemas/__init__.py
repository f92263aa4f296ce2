"""Beanie ODM schemas for MongoDB collections."""

from .init import init_beanie_odm
from .participant import Participant
from .processed_notification import ProcessedNotification
from .session import Session
from .session_state import LiveStatus, ParticipantRole, ParticipantStatus, SessionStatus

__all__ = [
    "LiveStatus",
    "Participant",
    "ParticipantRole",
    "ParticipantStatus",
    "ProcessedNotification",
    "Session",
    "SessionStatus",
    "init_beanie_odm",
]
