"""UTC timestamp helpers shared by the models and the refresh code."""
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Attach UTC to naive values and convert aware ones to UTC.

    SQLite stores DateTime(timezone=True) columns without an offset, so values
    read back from it are naive; every stored timestamp is written in UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
