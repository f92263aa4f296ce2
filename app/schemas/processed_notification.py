"""Deduplication ledger for LiveKit webhook notifications."""

from datetime import datetime
from typing import Any

from beanie import Document, Indexed
from pydantic import field_validator
from pymongo import ASCENDING, IndexModel

from .schema_utils import parse_mongo_datetime


class ProcessedNotification(Document):
    notification_id: Indexed(str, unique=True)  # type: ignore[valid-type]
    event_type: str
    processed_at: datetime
    expires_at: datetime

    @field_validator("processed_at", "expires_at", mode="before")
    @classmethod
    def _parse_datetime(cls, v: Any) -> Any:
        return parse_mongo_datetime(v)

    class Settings:
        name = "processed_notification"
        indexes = [
            [("notification_id", 1)],  # unique handled by Indexed
            IndexModel([("expires_at", ASCENDING)], name="expires_at"),
        ]
