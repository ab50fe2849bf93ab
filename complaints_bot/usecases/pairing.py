"""
Message pairing policy and the pairing engine.

Everything in this module is synchronous: the dedup check, the store lookup
and the store update for one event must complete before the request handler
reaches its next await, so two back-to-back events from the same sender always
see a consistent view of the store.
"""

import logging
from typing import Optional

from complaints_bot.domain.message import (
    IMAGE_ONLY_SENTINEL,
    PAIRING_WINDOW_MS,
    ImagePayload,
    InboundMessage,
    MessageKind,
    PairingConfidence,
    PairingResult,
    TextPayload,
)
from complaints_bot.infrastructure.association_store import Clock, WindowedAssociationStore
from complaints_bot.infrastructure.deduplication import DeduplicationSet

logger = logging.getLogger(__name__)

# Stored text is capped to bound per-sender memory
MAX_STORED_TEXT_LENGTH = 1000


class PairingPolicy:
    """Decides the resolved complaint text for one inbound message."""

    def __init__(
        self,
        store: WindowedAssociationStore,
        window_ms: int = PAIRING_WINDOW_MS,
        reverse_pairing: bool = False
    ):
        self.store = store
        self.window_ms = window_ms
        self.reverse_pairing = reverse_pairing

    def resolve(self, message: InboundMessage) -> PairingResult:
        """
        Resolve text, image and confidence for a non-duplicate message.

        Also records the message in the store for future pairing.

        Args:
            message: Normalized inbound message

        Returns:
            PairingResult for this event
        """
        if message.kind == MessageKind.TEXT:
            return self._resolve_text(message)
        return self._resolve_image(message)

    def _resolve_text(self, message: InboundMessage) -> PairingResult:
        text = message.text or ""
        self.store.store(
            message.sender,
            MessageKind.TEXT,
            TextPayload(body=text[:MAX_STORED_TEXT_LENGTH]),
            message.timestamp_ms,
        )

        if self.reverse_pairing:
            image = self.store.lookup(
                message.sender, MessageKind.IMAGE, message.timestamp_ms, self.window_ms
            )
            if image is not None:
                logger.info(f"Paired text from {message.sender} with earlier image")
                return PairingResult(
                    text=text,
                    image_url=image.url,
                    confidence=PairingConfidence.PAIRED_IMAGE_TO_TEXT,
                )

        return PairingResult(text=text, confidence=PairingConfidence.DIRECT_TEXT)

    def _resolve_image(self, message: InboundMessage) -> PairingResult:
        url = message.image_url or ""
        caption = (message.caption or "").strip()

        # Caption wins: never consult the store for text
        if caption:
            self.store.store(
                message.sender,
                MessageKind.IMAGE,
                ImagePayload(url=url, caption=caption),
                message.timestamp_ms,
            )
            return PairingResult(
                text=caption,
                image_url=url,
                confidence=PairingConfidence.CAPTION_ON_IMAGE,
            )

        paired = self.store.lookup(
            message.sender, MessageKind.TEXT, message.timestamp_ms, self.window_ms
        )
        self.store.store(
            message.sender,
            MessageKind.IMAGE,
            ImagePayload(url=url, caption=""),
            message.timestamp_ms,
        )

        if paired is not None:
            logger.info(f"Paired image from {message.sender} with earlier text")
            return PairingResult(
                text=paired.body,
                image_url=url,
                confidence=PairingConfidence.PAIRED_TEXT_TO_IMAGE,
            )

        logger.info(f"No text to pair with image from {message.sender}, using fallback")
        return PairingResult(
            text=IMAGE_ONLY_SENTINEL,
            image_url=url,
            confidence=PairingConfidence.IMAGE_ONLY_FALLBACK,
        )


class PairingEngine:
    """
    Deduplication plus pairing for inbound events.

    Constructed once by the application factory and shared by reference with
    the webhook handler and the sweep job.
    """

    def __init__(
        self,
        window_ms: int = PAIRING_WINDOW_MS,
        dedup_max_size: int = 10000,
        reverse_pairing: bool = False,
        clock: Optional[Clock] = None
    ):
        self.window_ms = window_ms
        self.dedup = DeduplicationSet(max_size=dedup_max_size)
        self.store = WindowedAssociationStore(clock=clock)
        self.policy = PairingPolicy(self.store, window_ms=window_ms, reverse_pairing=reverse_pairing)

    def is_duplicate(self, event_id: str) -> bool:
        """Check for an already processed event without marking it."""
        return self.dedup.is_processed(event_id)

    def accept(self, message: InboundMessage) -> Optional[PairingResult]:
        """
        Deduplicate and pair an inbound message.

        Args:
            message: Normalized inbound message

        Returns:
            PairingResult, or None if the event was already processed
        """
        if self.dedup.check_and_mark(message.id):
            logger.info(f"Message {message.id} already processed, skipping")
            return None

        return self.policy.resolve(message)

    def sweep(self, now_ms: Optional[int] = None) -> int:
        """Evict entries stored more than one window ago, by the store's wall clock."""
        if now_ms is None:
            now_ms = self.store.clock()
        return self.store.sweep(now_ms, self.window_ms)

    def stats(self) -> dict:
        """Current store and dedup sizes."""
        return {
            **self.store.stats(),
            "processed_messages": len(self.dedup),
            "window_ms": self.window_ms,
        }

    def clear(self) -> None:
        self.store.clear()
        self.dedup.clear()
