"""
Bounded set of processed event ids for idempotent webhook handling.
"""

import logging
from collections import OrderedDict

logger = logging.getLogger(__name__)

DEFAULT_MAX_SIZE = 10000


class DeduplicationSet:
    """
    Insertion-ordered set of processed ids.

    When the set grows past `max_size`, the oldest-inserted ids are evicted
    first. An evicted id that reappears is treated as new.
    """

    def __init__(self, max_size: int = DEFAULT_MAX_SIZE):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self._ids: "OrderedDict[str, None]" = OrderedDict()

    def is_processed(self, event_id: str) -> bool:
        """Check whether an event id has already been processed."""
        return event_id in self._ids

    def mark_processed(self, event_id: str) -> None:
        """
        Mark an event id as processed.

        Call this before any side-effecting work so a retried webhook is
        dropped rather than processed twice.

        Args:
            event_id: Unique event identifier
        """
        if event_id in self._ids:
            return

        self._ids[event_id] = None

        evicted = 0
        while len(self._ids) > self.max_size:
            self._ids.popitem(last=False)
            evicted += 1

        if evicted:
            logger.debug(f"Evicted {evicted} processed ids (max_size={self.max_size})")

    def check_and_mark(self, event_id: str) -> bool:
        """
        Return True if the id was already processed, otherwise mark it.

        Args:
            event_id: Unique event identifier

        Returns:
            True for a duplicate
        """
        if self.is_processed(event_id):
            return True
        self.mark_processed(event_id)
        return False

    def clear(self) -> None:
        self._ids.clear()

    def __contains__(self, event_id: str) -> bool:
        return self.is_processed(event_id)

    def __len__(self) -> int:
        return len(self._ids)
