"""
In-memory sliding-window rate limiter keyed by phone number.
"""

import logging
import math
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

from complaints_bot.domain.errors import RateLimitError

logger = logging.getLogger(__name__)

# Tracked phones beyond which a check triggers an inline cleanup
CLEANUP_THRESHOLD = 1000


@dataclass
class RateLimitDecision:
    allowed: bool
    retry_after: int = 0


class RateLimiter:
    """Allows at most `max_requests` per phone within a sliding `window_ms`."""

    def __init__(self, window_ms: int = 60000, max_requests: int = 10):
        self.window_ms = window_ms
        self.max_requests = max_requests
        self._requests: Dict[str, List[int]] = {}

    def check_limit(self, phone: str, now_ms: Optional[int] = None) -> RateLimitDecision:
        """
        Record a request for a phone and decide whether it is allowed.

        Rejected requests are not recorded.

        Args:
            phone: Phone number
            now_ms: Current time in milliseconds (defaults to wall clock)

        Returns:
            RateLimitDecision with the retry delay in seconds when rejected
        """
        if now_ms is None:
            now_ms = int(time.time() * 1000)

        recent = [ts for ts in self._requests.get(phone, []) if now_ms - ts < self.window_ms]

        if len(recent) >= self.max_requests:
            self._requests[phone] = recent
            retry_after = math.ceil((min(recent) + self.window_ms - now_ms) / 1000)
            return RateLimitDecision(allowed=False, retry_after=max(1, retry_after))

        recent.append(now_ms)
        self._requests[phone] = recent

        if len(self._requests) > CLEANUP_THRESHOLD:
            self.cleanup(now_ms)

        return RateLimitDecision(allowed=True)

    def enforce(self, phone: str, now_ms: Optional[int] = None) -> None:
        """Raise RateLimitError when the phone is over its limit."""
        decision = self.check_limit(phone, now_ms)
        if not decision.allowed:
            logger.warning(f"Rate limit exceeded for phone: {phone}")
            raise RateLimitError(
                f"Too many requests. Please wait {decision.retry_after} seconds.",
                retry_after=decision.retry_after,
            )

    def cleanup(self, now_ms: Optional[int] = None) -> int:
        """
        Drop expired timestamps and phones with no recent requests.

        Returns:
            Number of phones removed
        """
        if now_ms is None:
            now_ms = int(time.time() * 1000)

        removed = 0
        for phone in list(self._requests):
            valid = [ts for ts in self._requests[phone] if now_ms - ts < self.window_ms]
            if valid:
                self._requests[phone] = valid
            else:
                del self._requests[phone]
                removed += 1
        return removed

    def reset(self, phone: str) -> None:
        self._requests.pop(phone, None)

    def stats(self) -> dict:
        return {
            "tracked_phones": len(self._requests),
            "window_ms": self.window_ms,
            "max_requests": self.max_requests,
        }
