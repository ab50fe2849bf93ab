"""
Validation and sanitization helpers for webhook data and sheet values.
"""

import hashlib
import re
import time
from datetime import datetime, timezone
from typing import Optional, Union
from urllib.parse import urlparse

MAX_TEXT_LENGTH = 5000
MAX_CAPTION_LENGTH = 1000
MAX_SHEET_CELL_LENGTH = 32767

PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{6,14}$")
CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
SHEET_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f]")
FORMULA_PREFIX = re.compile(r"^[=+\-@]")

MIN_TIMESTAMP_MS = int(datetime(2020, 1, 1, tzinfo=timezone.utc).timestamp() * 1000)
MAX_FUTURE_SKEW_MS = 24 * 60 * 60 * 1000


def is_valid_phone_number(phone: Optional[str]) -> bool:
    """Check an E.164-like phone number (optional +, 7-15 digits)."""
    if not phone or not isinstance(phone, str):
        return False
    return PHONE_PATTERN.match(phone) is not None


def is_valid_url(url: Optional[str]) -> bool:
    """Allow only absolute http and https URLs."""
    if not url or not isinstance(url, str):
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def is_valid_timestamp(timestamp: Union[str, int, None], now_ms: Optional[int] = None) -> bool:
    """
    Check that a millisecond timestamp is plausible.

    Args:
        timestamp: Millisecond timestamp, as int or numeric string
        now_ms: Reference time (defaults to wall clock)

    Returns:
        True if not before 2020 and at most one day in the future
    """
    try:
        ts = int(timestamp)
    except (TypeError, ValueError):
        return False

    if now_ms is None:
        now_ms = int(time.time() * 1000)

    return MIN_TIMESTAMP_MS <= ts <= now_ms + MAX_FUTURE_SKEW_MS


def sanitize_text(text: Optional[str], max_length: int = MAX_TEXT_LENGTH) -> str:
    """Strip control characters (keeping newlines and tabs), truncate and trim."""
    if not text or not isinstance(text, str):
        return ""
    return CONTROL_CHARS.sub("", text)[:max_length].strip()


def sanitize_for_sheets(value):
    """
    Neutralize spreadsheet formula injection.

    Non-string values are returned unchanged.
    """
    if not isinstance(value, str):
        return value

    if FORMULA_PREFIX.match(value):
        value = "'" + value

    value = SHEET_CONTROL_CHARS.sub("", value)
    return value[:MAX_SHEET_CELL_LENGTH]


def generate_message_id(sender: str, timestamp_ms: int, kind: str, content: str = "") -> str:
    """
    Derive a deterministic event id for payloads that carry none.

    The same event retried by the provider produces the same id.
    """
    raw = f"{sender}|{timestamp_ms}|{kind}|{content}"
    digest = hashlib.sha256(raw.encode("utf-8")).hexdigest()[:32]
    return f"derived-{digest}"
