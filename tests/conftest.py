"""
Pytest configuration and fixtures for City Hall Complaints Bot tests.
"""

import json
import time
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from complaints_bot.config.settings import Settings
from complaints_bot.domain.message import InboundMessage, MessageKind
from complaints_bot.infrastructure.security import compute_signature
from complaints_bot.main import create_app
from complaints_bot.usecases.pairing import PairingEngine

TEST_WEBHOOK_SECRET = "test-webhook-secret"
TEST_PHONE = "972501234567"


def now_ms() -> int:
    return int(time.time() * 1000)


def signed_headers(body: bytes, secret: str = TEST_WEBHOOK_SECRET) -> dict:
    """Headers carrying a valid HMAC signature for a raw body."""
    return {
        "Content-Type": "application/json",
        "X-Webhook-Signature": compute_signature(body, secret),
    }


def gupshup_text_payload(text: str, message_id: str = "gs-text-1", phone: str = TEST_PHONE, timestamp: int = None) -> dict:
    return {
        "type": "message",
        "payload": {
            "id": message_id,
            "source": phone,
            "type": "text",
            "payload": {"text": text},
            "sender": {"phone": phone, "name": "Test User"},
            "timestamp": str(timestamp or now_ms()),
        },
    }


def gupshup_image_payload(
    url: str = "https://example.com/pothole.jpg",
    caption: str = None,
    message_id: str = "gs-image-1",
    phone: str = TEST_PHONE,
    timestamp: int = None
) -> dict:
    content = {"url": url}
    if caption is not None:
        content["caption"] = caption
    return {
        "type": "message",
        "payload": {
            "id": message_id,
            "source": phone,
            "type": "image",
            "payload": content,
            "sender": {"phone": phone, "name": "Test User"},
            "timestamp": str(timestamp or now_ms()),
        },
    }


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from the environment's secrets."""
    return Settings(
        _env_file=None,
        openrouter_api_key="sk-test123",
        webhook_secret=TEST_WEBHOOK_SECRET,
        skip_webhook_auth=False,
        meta_verify_token="verify-me",
        rate_limit_enabled=True,
        rate_limit_max_requests=10,
        upload_images_to_drive=False,
        dashboard_enabled=False,
    )


@pytest.fixture
def app(test_settings):
    """Fresh application with background processing stubbed out."""
    application = create_app(test_settings)
    application.state.message_queue.enqueue = MagicMock()
    return application


@pytest.fixture
def client(app) -> TestClient:
    """Create a test client."""
    return TestClient(app)


@pytest.fixture
def post_signed(client):
    """POST a JSON payload to /webhook with a valid signature."""
    def _post(payload: dict):
        body = json.dumps(payload).encode("utf-8")
        return client.post("/webhook", content=body, headers=signed_headers(body))
    return _post


@pytest.fixture
def engine() -> PairingEngine:
    """Pairing engine with default window and dedup size."""
    return PairingEngine()


@pytest.fixture
def text_message():
    def _make(text: str = "פנס שבור", timestamp_ms: int = 0, message_id: str = "text-1", sender: str = TEST_PHONE):
        return InboundMessage(
            id=message_id,
            sender=sender,
            kind=MessageKind.TEXT,
            text=text,
            timestamp_ms=timestamp_ms,
        )
    return _make


@pytest.fixture
def image_message():
    def _make(
        caption: str = None,
        timestamp_ms: int = 0,
        message_id: str = "image-1",
        sender: str = TEST_PHONE,
        url: str = "https://example.com/lamp.jpg"
    ):
        return InboundMessage(
            id=message_id,
            sender=sender,
            kind=MessageKind.IMAGE,
            image_url=url,
            caption=caption,
            timestamp_ms=timestamp_ms,
        )
    return _make


@pytest.fixture
def mock_llm_response() -> dict:
    """Classifier JSON for a broken street lamp."""
    return {
        "שם הפונה": "יוסי כהן",
        "קטגוריה": "תאורה",
        "רמת דחיפות": "גבוהה",
        "תוכן הפנייה": "פנס שבור ברחוב יפו",
        "תאריך ושעה": "10:00 01-01-25",
        "טלפון": TEST_PHONE,
        "קישור לתמונה": "",
        "סוג הפנייה": "תלונה",
        "מחלקה אחראית": "חשמל",
    }
