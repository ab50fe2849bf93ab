"""
Time utilities for Israel time (Asia/Jerusalem) handling.
"""

import time
from datetime import datetime
from typing import Optional, Union
from zoneinfo import ZoneInfo

# City hall local time
ISRAEL_TZ = ZoneInfo("Asia/Jerusalem")

# Sheet timestamp layout, e.g. "14:05 19-10-26"
SHEET_TIME_FORMAT = "%H:%M %d-%m-%y"

# Provider timestamps below this are in seconds, not milliseconds
SECONDS_THRESHOLD = 10 ** 11


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def to_epoch_ms(value: Union[str, int, float, None]) -> Optional[int]:
    """
    Normalize a provider timestamp to epoch milliseconds.

    Gupshup sends milliseconds, Meta sends seconds; both may be strings.

    Args:
        value: Raw timestamp

    Returns:
        Milliseconds, or None if the value is missing or not numeric
    """
    if value is None or value == "":
        return None

    try:
        ts = int(float(value))
    except (TypeError, ValueError):
        return None

    if ts < SECONDS_THRESHOLD:
        ts *= 1000
    return ts


def format_sheet_time(timestamp_ms: int, timezone: str = "Asia/Jerusalem") -> str:
    """
    Format an epoch-millisecond timestamp for the complaints sheet.

    Args:
        timestamp_ms: Event timestamp
        timezone: IANA timezone name

    Returns:
        Local time formatted as HH:MM dd-mm-yy
    """
    tz = ISRAEL_TZ if timezone == "Asia/Jerusalem" else ZoneInfo(timezone)
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=tz).strftime(SHEET_TIME_FORMAT)


def get_current_time_israel() -> datetime:
    """Get the current time in Israel."""
    return datetime.now(ISRAEL_TZ)
