"""Clock and window keying for quota counters.

Maps wall-clock timestamps (epoch seconds) to discrete bucket indices used
as counter keys. Every daily tier goes through day_bucket()/day_label() so
per-identity and global counters roll over at the same instant.
"""

import math
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

MINUTE_SECONDS = 60.0
DAY_SECONDS = 86400.0

DAILY_CALENDAR = "calendar"
DAILY_ROLLING = "rolling"
DAILY_WINDOW_MODES = (DAILY_CALENDAR, DAILY_ROLLING)

KEY_DELIMITER = ":"


def bucket(timestamp: float, width: float) -> int:
    """Return floor(timestamp / width)."""
    return math.floor(timestamp / width)


def minute_bucket(timestamp: float) -> int:
    return bucket(timestamp, MINUTE_SECONDS)


def _local_date(timestamp: float, tz: str):
    return datetime.fromtimestamp(timestamp, ZoneInfo(tz)).date()


def day_bucket(timestamp: float, mode: str = DAILY_CALENDAR, tz: str = "UTC") -> int:
    """Return the daily bucket index for a timestamp.

    Args:
        timestamp: Epoch seconds.
        mode: "calendar" uses the calendar date in ``tz`` (as a date ordinal);
            "rolling" uses fixed 24h epoch-day windows.
        tz: IANA timezone name, only used in calendar mode.

    Raises:
        ValueError: If mode is not a known daily window mode.
    """
    if mode == DAILY_CALENDAR:
        return _local_date(timestamp, tz).toordinal()
    if mode == DAILY_ROLLING:
        return bucket(timestamp, DAY_SECONDS)
    raise ValueError("Unknown daily window mode: {}".format(mode))


def day_label(timestamp: float, mode: str = DAILY_CALENDAR, tz: str = "UTC") -> str:
    """Return a stable label for the current day ("YYYY-MM-DD" in calendar mode)."""
    if mode == DAILY_CALENDAR:
        return _local_date(timestamp, tz).isoformat()
    return str(day_bucket(timestamp, mode, tz))


def window_key(identity: str, bucket_index: int) -> str:
    return "{}{}{}".format(identity, KEY_DELIMITER, bucket_index)


def key_bucket(key: str) -> int:
    """Extract the bucket index from a window key.

    Splits from the right so identities containing the delimiter (IPv6
    addresses) are handled.
    """
    _, _, raw = key.rpartition(KEY_DELIMITER)
    return int(raw)


def seconds_until_next_minute(timestamp: float) -> int:
    next_start = (minute_bucket(timestamp) + 1) * MINUTE_SECONDS
    return max(1, math.ceil(next_start - timestamp))


def seconds_until_next_day(
    timestamp: float, mode: str = DAILY_CALENDAR, tz: str = "UTC"
) -> int:
    if mode == DAILY_ROLLING:
        next_start = (bucket(timestamp, DAY_SECONDS) + 1) * DAY_SECONDS
        return max(1, math.ceil(next_start - timestamp))

    zone = ZoneInfo(tz)
    local_now = datetime.fromtimestamp(timestamp, zone)
    midnight = datetime.combine(
        local_now.date() + timedelta(days=1), datetime.min.time(), tzinfo=zone
    )
    return max(1, math.ceil(midnight.timestamp() - timestamp))
