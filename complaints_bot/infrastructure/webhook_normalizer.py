"""
Normalization of provider webhook payloads into InboundMessage events.

Supported shapes:
- Gupshup v2: {"type": "message", "payload": {"id", "type", "payload", "sender", ...}}
- Gupshup flat: {"type": "text", "payload": {"payload": ..., "sender", "timestamp"}}
- Legacy: {"payload": {"sender": "<phone>", "message": {"text"}, "timestamp"}}
- Meta Cloud API: {"object": ..., "entry": [{"changes": [{"value": {"messages": [...]}}]}]}
"""

import logging
from typing import Any, List, Optional

from complaints_bot.domain.errors import ValidationError
from complaints_bot.domain.message import InboundMessage, MessageKind
from complaints_bot.utils.time import now_ms as current_ms, to_epoch_ms
from complaints_bot.utils.validation import (
    MAX_CAPTION_LENGTH,
    MAX_TEXT_LENGTH,
    generate_message_id,
    is_valid_phone_number,
    is_valid_timestamp,
    is_valid_url,
    sanitize_text,
)

logger = logging.getLogger(__name__)

SUPPORTED_KINDS = {kind.value for kind in MessageKind}
META_GRAPH_URL = "https://graph.facebook.com"


def normalize_webhook(
    body: Any,
    graph_api_version: str = "v18.0",
    now_ms: Optional[int] = None
) -> List[InboundMessage]:
    """
    Convert a provider webhook body into normalized messages.

    Args:
        body: Parsed JSON body
        graph_api_version: Meta Graph API version used for media references
        now_ms: Reference time for validation and missing timestamps

    Returns:
        Normalized messages; empty for events that are not text or image messages

    Raises:
        ValidationError: The payload is a message but is malformed
    """
    if not isinstance(body, dict):
        raise ValidationError("Invalid payload structure", ["Body is not a JSON object"])

    if now_ms is None:
        now_ms = current_ms()

    if "entry" in body:
        return _normalize_meta(body, graph_api_version, now_ms)

    payload = body.get("payload")
    if not isinstance(payload, dict):
        raise ValidationError("Invalid payload structure", ["Missing message content"])

    if isinstance(payload.get("sender"), str):
        return _normalize_legacy(payload, now_ms)

    return _normalize_gupshup(body, payload, now_ms)


def _normalize_gupshup(body: dict, payload: dict, now_ms: int) -> List[InboundMessage]:
    outer_type = body.get("type")
    if outer_type == "message":
        kind = payload.get("type")
    elif outer_type in SUPPORTED_KINDS:
        kind = outer_type
    else:
        logger.info(f"Ignoring Gupshup event of type {outer_type}")
        return []

    if kind not in SUPPORTED_KINDS:
        logger.info(f"Ignoring unsupported message type: {kind}")
        return []

    sender_info = payload.get("sender")
    if not isinstance(sender_info, dict):
        sender_info = {}
    sender = str(sender_info.get("phone") or payload.get("source") or "")
    raw_timestamp = payload.get("timestamp", body.get("timestamp"))
    content = payload.get("payload")

    text = image_url = caption = None
    if kind == MessageKind.TEXT.value:
        text = content.get("text") if isinstance(content, dict) else content
    else:
        content = content if isinstance(content, dict) else {}
        image_url = content.get("url")
        caption = content.get("caption")

    message = _build_message(
        event_id=payload.get("id"),
        sender=sender,
        kind=kind,
        text=text,
        image_url=image_url,
        caption=caption,
        raw_timestamp=raw_timestamp,
        provider="gupshup",
        sender_name=sender_info.get("name"),
        now_ms=now_ms,
    )
    return [message]


def _normalize_legacy(payload: dict, now_ms: int) -> List[InboundMessage]:
    message_info = payload.get("message") or {}
    message = _build_message(
        event_id=payload.get("id"),
        sender=payload["sender"],
        kind=MessageKind.TEXT.value,
        text=message_info.get("text"),
        image_url=None,
        caption=None,
        raw_timestamp=payload.get("timestamp"),
        provider="gupshup",
        sender_name=None,
        now_ms=now_ms,
    )
    return [message]


def _normalize_meta(body: dict, graph_api_version: str, now_ms: int) -> List[InboundMessage]:
    """
    Normalize every text and image message in a Meta webhook.

    Invalid messages are logged and skipped; the valid rest of the batch is
    still returned.

    Raises:
        ValidationError: The batch carried messages and none of them were valid
    """
    messages = []
    rejected = []

    for entry in body.get("entry") or []:
        for change in entry.get("changes") or []:
            value = change.get("value") or {}
            names = {
                contact.get("wa_id"): (contact.get("profile") or {}).get("name")
                for contact in value.get("contacts") or []
            }

            for raw in value.get("messages") or []:
                kind = raw.get("type")
                if kind not in SUPPORTED_KINDS:
                    logger.info(f"Ignoring unsupported Meta message type: {kind}")
                    continue

                text = image_url = caption = None
                if kind == MessageKind.TEXT.value:
                    text = (raw.get("text") or {}).get("body")
                else:
                    image = raw.get("image") or {}
                    image_url = image.get("link")
                    if not image_url and image.get("id"):
                        image_url = f"{META_GRAPH_URL}/{graph_api_version}/{image['id']}"
                    caption = image.get("caption")

                sender = str(raw.get("from") or "")
                try:
                    message = _build_message(
                        event_id=raw.get("id"),
                        sender=sender,
                        kind=kind,
                        text=text,
                        image_url=image_url,
                        caption=caption,
                        raw_timestamp=raw.get("timestamp"),
                        provider="meta",
                        sender_name=names.get(sender),
                        now_ms=now_ms,
                    )
                except ValidationError as e:
                    logger.warning(f"Skipping invalid Meta message {raw.get('id')}: {e.errors}")
                    rejected.extend(e.errors)
                    continue
                messages.append(message)

    if not messages and rejected:
        raise ValidationError("Invalid webhook payload", rejected)
    if not messages:
        logger.info("Meta webhook carried no text or image messages")
    return messages


def _build_message(
    event_id: Optional[str],
    sender: str,
    kind: str,
    text: Optional[str],
    image_url: Optional[str],
    caption: Optional[str],
    raw_timestamp: Any,
    provider: str,
    sender_name: Optional[str],
    now_ms: int
) -> InboundMessage:
    """Validate extracted fields and build the normalized message."""
    errors = []

    if not sender:
        errors.append("Missing sender phone")
    elif not is_valid_phone_number(sender):
        errors.append("Invalid phone number format")

    if raw_timestamp in (None, ""):
        timestamp_ms = now_ms
    else:
        timestamp_ms = to_epoch_ms(raw_timestamp)
        if timestamp_ms is None or not is_valid_timestamp(timestamp_ms, now_ms):
            errors.append("Invalid timestamp")

    if kind == MessageKind.TEXT.value:
        if not isinstance(text, str) or not text.strip():
            errors.append("Missing text content")
        elif len(text) > MAX_TEXT_LENGTH:
            errors.append(f"Text content exceeds maximum length ({MAX_TEXT_LENGTH} characters)")
    else:
        if not image_url:
            errors.append("Missing image URL")
        elif not is_valid_url(image_url):
            errors.append("Invalid image URL")
        if caption and len(caption) > MAX_CAPTION_LENGTH:
            errors.append(f"Image caption exceeds maximum length ({MAX_CAPTION_LENGTH} characters)")

    if errors:
        raise ValidationError("Invalid webhook payload", errors)

    text = sanitize_text(text) if text else None
    caption = sanitize_text(caption, MAX_CAPTION_LENGTH) if caption else None

    if not event_id:
        event_id = generate_message_id(sender, timestamp_ms, kind, text or image_url or "")

    return InboundMessage(
        id=str(event_id),
        sender=sender,
        kind=MessageKind(kind),
        text=text,
        image_url=image_url,
        caption=caption,
        timestamp_ms=timestamp_ms,
        provider=provider,
        sender_name=sender_name,
    )
