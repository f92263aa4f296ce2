"""Datetime coercion shared by the ODM documents."""

from datetime import datetime, timezone
from typing import Any


def parse_mongo_datetime(v: Any) -> Any:
    """Coerce stored timestamps to aware UTC datetimes.

    Mongo hands back naive datetimes unless the client is tz-aware, and rows
    loaded with mongoimport carry Extended JSON (``{'$date': '...Z'}``).
    Anything else is left for pydantic to validate.
    """
    if isinstance(v, dict) and "$date" in v:
        v = datetime.fromisoformat(v["$date"].replace("Z", "+00:00"))
    if isinstance(v, datetime) and v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v
