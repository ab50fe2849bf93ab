"""
Windowed association store for pairing text messages with images.

Keeps, per sender, the most recent text and the most recent image together
with the event timestamp they were recorded at. Entries expire lazily on
lookup and are also removed by a periodic sweep, so senders that are never
queried again do not hold memory indefinitely.

Lookups compare event timestamps. The sweep runs outside any event, so it
compares the wall-clock time each entry was stored at instead; a delayed
delivery is therefore never swept before its partner can arrive.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple, Union

from complaints_bot.domain.message import ImagePayload, MessageKind, TextPayload
from complaints_bot.utils.time import now_ms as wall_clock_ms

logger = logging.getLogger(__name__)

StoredValue = Union[TextPayload, ImagePayload]
Clock = Callable[[], int]


@dataclass(frozen=True)
class AssociationEntry:
    """One stored value for a sender and message kind."""
    key: str
    kind: MessageKind
    value: StoredValue
    recorded_at_ms: int
    stored_at_ms: int = 0


def is_expired(reference_ms: int, now_ms: int, window_ms: int) -> bool:
    """
    Check whether a timestamp falls outside the pairing window.

    The distance is absolute so that a later-stamped event processed first
    pairs exactly like the in-order case. A distance of exactly `window_ms`
    is still inside the window.

    Args:
        reference_ms: Timestamp the entry is measured from
        now_ms: Timestamp to compare against, on the same clock
        window_ms: Window length in milliseconds

    Returns:
        True if the entry should be discarded
    """
    return abs(now_ms - reference_ms) > window_ms


class WindowedAssociationStore:
    """In-memory last-write-wins store keyed by (sender, kind)."""

    def __init__(self, clock: Optional[Clock] = None):
        self._entries: Dict[Tuple[str, MessageKind], AssociationEntry] = {}
        self.clock = clock or wall_clock_ms

    def store(self, sender: str, kind: MessageKind, value: StoredValue, at_timestamp_ms: int) -> None:
        """
        Record a value for a sender, replacing any previous value of the same kind.

        Args:
            sender: Sender identifier (e.g. phone number)
            kind: Message kind the value belongs to
            value: Text or image payload
            at_timestamp_ms: The event's own timestamp in milliseconds
        """
        if not sender:
            return

        self._entries[(sender, kind)] = AssociationEntry(
            key=sender,
            kind=kind,
            value=value,
            recorded_at_ms=at_timestamp_ms,
            stored_at_ms=self.clock(),
        )

    def lookup(
        self,
        sender: str,
        kind: MessageKind,
        now_timestamp_ms: int,
        window_ms: int
    ) -> Optional[StoredValue]:
        """
        Return the live value for a sender, deleting it if it has expired.

        Args:
            sender: Sender identifier
            kind: Message kind to look up
            now_timestamp_ms: Timestamp of the event doing the lookup
            window_ms: Pairing window in milliseconds

        Returns:
            The stored payload, or None if absent or expired
        """
        entry = self._entries.get((sender, kind))
        if entry is None:
            return None

        if is_expired(entry.recorded_at_ms, now_timestamp_ms, window_ms):
            del self._entries[(sender, kind)]
            return None

        return entry.value

    def sweep(self, now_ms: int, window_ms: int) -> int:
        """
        Remove every entry stored more than one window before `now_ms`.

        Args:
            now_ms: Current time on the store's clock (see `clock`)
            window_ms: Pairing window in milliseconds

        Returns:
            Number of evicted entries
        """
        expired = [
            key for key, entry in self._entries.items()
            if is_expired(entry.stored_at_ms, now_ms, window_ms)
        ]

        for key in expired:
            del self._entries[key]

        if expired:
            logger.info(f"Swept {len(expired)} expired pairing entries")

        return len(expired)

    def stats(self) -> dict:
        """Count live entries per kind."""
        texts = sum(1 for sender, kind in self._entries if kind == MessageKind.TEXT)
        return {
            "recent_messages": texts,
            "recent_images": len(self._entries) - texts,
        }

    def clear(self) -> None:
        """Drop all stored entries."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
