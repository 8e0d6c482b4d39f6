"""Staleness policy: is the cached data old enough to refresh?"""
from datetime import datetime
from typing import Optional

from tiktrack.models.timestamps import as_utc

DEFAULT_THRESHOLD_HOURS = 1.0


def is_refresh_due(
    last_refresh_time: Optional[datetime],
    now: datetime,
    threshold_hours: float = DEFAULT_THRESHOLD_HOURS,
) -> bool:
    """
    Decide whether a batch refresh is due.

    Args:
        last_refresh_time: When the last batch completed, or None if never.
        now: Current time. Naive values on either side are taken as UTC.
        threshold_hours: Freshness window. Exactly at the threshold is still fresh.

    Returns:
        True if never refreshed or strictly older than the threshold.
    """
    if last_refresh_time is None:
        return True
    hours_since = (as_utc(now) - as_utc(last_refresh_time)).total_seconds() / 3600.0
    return hours_since > threshold_hours
