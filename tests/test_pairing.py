"""
Unit tests for the pairing policy and pairing engine.
"""

from unittest.mock import MagicMock

from complaints_bot.domain.message import (
    IMAGE_ONLY_SENTINEL,
    ImagePayload,
    MessageKind,
    PairingConfidence,
    TextPayload,
)
from complaints_bot.infrastructure.association_store import WindowedAssociationStore
from complaints_bot.usecases.pairing import MAX_STORED_TEXT_LENGTH, PairingEngine, PairingPolicy

SENDER = "972501234567"


class TestPairingPolicy:
    """Tests for PairingPolicy.resolve."""

    def test_text_message_is_direct(self, text_message):
        store = WindowedAssociationStore()
        policy = PairingPolicy(store)

        result = policy.resolve(text_message("פנס שבור", timestamp_ms=0))

        assert result.text == "פנס שבור"
        assert result.image_url is None
        assert result.confidence == PairingConfidence.DIRECT_TEXT
        assert store.lookup(SENDER, MessageKind.TEXT, 0, 60000) == TextPayload(body="פנס שבור")

    def test_captioned_image_uses_caption(self, image_message):
        store = WindowedAssociationStore()
        policy = PairingPolicy(store)

        result = policy.resolve(image_message(caption="בור ברחוב יפו", timestamp_ms=0))

        assert result.text == "בור ברחוב יפו"
        assert result.image_url == "https://example.com/lamp.jpg"
        assert result.confidence == PairingConfidence.CAPTION_ON_IMAGE
        assert store.lookup(SENDER, MessageKind.IMAGE, 0, 60000) == ImagePayload(
            url="https://example.com/lamp.jpg", caption="בור ברחוב יפו"
        )

    def test_caption_precedes_pairing(self, text_message, image_message):
        """A captioned image never looks up text, even when a pairable text exists."""
        store = WindowedAssociationStore()
        store.store(SENDER, MessageKind.TEXT, TextPayload(body="earlier"), 0)
        store.lookup = MagicMock(wraps=store.lookup)
        policy = PairingPolicy(store)

        result = policy.resolve(image_message(caption="caption text", timestamp_ms=1000))

        assert result.text == "caption text"
        store.lookup.assert_not_called()

    def test_captionless_image_pairs_with_recent_text(self, image_message):
        store = WindowedAssociationStore()
        store.store(SENDER, MessageKind.TEXT, TextPayload(body="פנס שבור"), 0)
        policy = PairingPolicy(store)

        result = policy.resolve(image_message(timestamp_ms=30000))

        assert result.text == "פנס שבור"
        assert result.image_url == "https://example.com/lamp.jpg"
        assert result.confidence == PairingConfidence.PAIRED_TEXT_TO_IMAGE

    def test_whitespace_caption_counts_as_empty(self, image_message):
        store = WindowedAssociationStore()
        store.store(SENDER, MessageKind.TEXT, TextPayload(body="text"), 0)
        policy = PairingPolicy(store)

        result = policy.resolve(image_message(caption="   ", timestamp_ms=1000))

        assert result.confidence == PairingConfidence.PAIRED_TEXT_TO_IMAGE

    def test_image_without_text_uses_sentinel(self, image_message):
        policy = PairingPolicy(WindowedAssociationStore())

        result = policy.resolve(image_message(timestamp_ms=0))

        assert result.confidence == PairingConfidence.IMAGE_ONLY_FALLBACK
        assert result.text == IMAGE_ONLY_SENTINEL
        assert result.text != ""

    def test_captionless_image_is_recorded_for_future_pairing(self, image_message):
        store = WindowedAssociationStore()
        PairingPolicy(store).resolve(image_message(timestamp_ms=5000))

        assert store.lookup(SENDER, MessageKind.IMAGE, 5000, 60000) == ImagePayload(
            url="https://example.com/lamp.jpg", caption=""
        )

    def test_other_senders_do_not_pair(self, text_message, image_message):
        policy = PairingPolicy(WindowedAssociationStore())
        policy.resolve(text_message("someone else", sender="972509876543"))

        result = policy.resolve(image_message(timestamp_ms=1000))

        assert result.confidence == PairingConfidence.IMAGE_ONLY_FALLBACK

    def test_stored_text_is_truncated(self, text_message):
        store = WindowedAssociationStore()
        long_text = "א" * (MAX_STORED_TEXT_LENGTH + 500)

        result = PairingPolicy(store).resolve(text_message(long_text))

        assert result.text == long_text
        stored = store.lookup(SENDER, MessageKind.TEXT, 0, 60000)
        assert len(stored.body) == MAX_STORED_TEXT_LENGTH

    def test_text_stays_direct_when_reverse_pairing_disabled(self, text_message, image_message):
        policy = PairingPolicy(WindowedAssociationStore())
        policy.resolve(image_message(timestamp_ms=0))

        result = policy.resolve(text_message("late text", timestamp_ms=10000))

        assert result.confidence == PairingConfidence.DIRECT_TEXT
        assert result.image_url is None

    def test_reverse_pairing_attaches_recent_image(self, text_message, image_message):
        policy = PairingPolicy(WindowedAssociationStore(), reverse_pairing=True)
        policy.resolve(image_message(timestamp_ms=0))

        result = policy.resolve(text_message("late text", timestamp_ms=10000))

        assert result.text == "late text"
        assert result.image_url == "https://example.com/lamp.jpg"
        assert result.confidence == PairingConfidence.PAIRED_IMAGE_TO_TEXT

    def test_reverse_pairing_respects_window(self, text_message, image_message):
        policy = PairingPolicy(WindowedAssociationStore(), reverse_pairing=True)
        policy.resolve(image_message(timestamp_ms=0))

        result = policy.resolve(text_message("too late", timestamp_ms=60001))

        assert result.confidence == PairingConfidence.DIRECT_TEXT


class TestEndToEndScenario:
    """Text followed by a captionless image from the same sender."""

    def test_image_within_window_pairs(self, engine, text_message, image_message):
        engine.accept(text_message("פנס שבור", timestamp_ms=0, message_id="t1"))

        result = engine.accept(image_message(timestamp_ms=30000, message_id="i1"))

        assert result.text == "פנס שבור"
        assert result.confidence == PairingConfidence.PAIRED_TEXT_TO_IMAGE
        assert result.source == "whatsapp:pairedTextToImage"

    def test_image_after_window_falls_back(self, engine, text_message, image_message):
        engine.accept(text_message("פנס שבור", timestamp_ms=0, message_id="t1"))

        result = engine.accept(image_message(timestamp_ms=65000, message_id="i1"))

        assert result.text == IMAGE_ONLY_SENTINEL
        assert result.confidence == PairingConfidence.IMAGE_ONLY_FALLBACK
        assert result.source == "whatsapp:imageOnlyFallback"


class TestPairingEngine:
    """Tests for deduplication and housekeeping in the engine."""

    def test_duplicate_event_returns_none(self, engine, text_message):
        assert engine.accept(text_message(message_id="dup")) is not None
        assert engine.accept(text_message(message_id="dup")) is None

    def test_duplicate_does_not_touch_store(self, engine, text_message):
        engine.accept(text_message("first", timestamp_ms=0, message_id="dup"))
        engine.accept(text_message("second", timestamp_ms=1000, message_id="dup"))

        assert engine.store.lookup(SENDER, MessageKind.TEXT, 1000, 60000) == TextPayload(body="first")

    def test_is_duplicate_does_not_mark(self, engine, text_message):
        assert engine.is_duplicate("x") is False
        assert engine.is_duplicate("x") is False
        assert engine.accept(text_message(message_id="x")) is not None

    def test_sweep_uses_configured_window(self, text_message):
        engine = PairingEngine(window_ms=1000, clock=MagicMock(return_value=0))
        engine.accept(text_message(timestamp_ms=0, message_id="t1"))

        assert engine.sweep(now_ms=1000) == 0
        assert engine.sweep(now_ms=1001) == 1

    def test_sweep_defaults_to_store_clock(self, text_message):
        clock = MagicMock(return_value=0)
        engine = PairingEngine(clock=clock)
        engine.accept(text_message(timestamp_ms=0, message_id="t1"))

        clock.return_value = 60001
        assert engine.sweep() == 1

    def test_sweep_between_delayed_text_and_image_keeps_pairing(self, text_message, image_message):
        now = 1760000000000
        engine = PairingEngine(clock=MagicMock(return_value=now))
        engine.accept(text_message("פנס שבור", timestamp_ms=now - 120000, message_id="t1"))

        assert engine.sweep() == 0

        result = engine.accept(image_message(timestamp_ms=now - 110000, message_id="i1"))
        assert result.confidence == PairingConfidence.PAIRED_TEXT_TO_IMAGE
        assert result.text == "פנס שבור"

    def test_stats(self, engine, text_message, image_message):
        engine.accept(text_message(message_id="t1"))
        engine.accept(image_message(caption="c", message_id="i1"))

        stats = engine.stats()

        assert stats["recent_messages"] == 1
        assert stats["recent_images"] == 1
        assert stats["processed_messages"] == 2
        assert stats["window_ms"] == 60000
