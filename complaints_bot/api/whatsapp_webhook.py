"""
WhatsApp webhook endpoint for receiving complaint messages from Gupshup and Meta.
"""

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse

from complaints_bot.config.settings import Settings
from complaints_bot.domain.errors import ValidationError
from complaints_bot.infrastructure.message_queue import MessageQueue
from complaints_bot.infrastructure.rate_limiter import RateLimiter
from complaints_bot.infrastructure.security import authenticate_webhook
from complaints_bot.infrastructure.webhook_normalizer import normalize_webhook
from complaints_bot.usecases.complaint_service import ComplaintService
from complaints_bot.usecases.pairing import PairingEngine

logger = logging.getLogger(__name__)
router = APIRouter()


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_pairing_engine(request: Request) -> PairingEngine:
    return request.app.state.pairing_engine


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_message_queue(request: Request) -> MessageQueue:
    return request.app.state.message_queue


def get_complaint_service(request: Request) -> ComplaintService:
    return request.app.state.complaint_service


@router.post("/webhook")
async def whatsapp_webhook(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    engine: PairingEngine = Depends(get_pairing_engine),
    limiter: RateLimiter = Depends(get_rate_limiter),
    queue: MessageQueue = Depends(get_message_queue),
    service: ComplaintService = Depends(get_complaint_service),
):
    """
    Handle incoming WhatsApp complaint messages.

    Text and image messages are deduplicated and paired synchronously, then
    classification and the sheet append are queued for background processing.
    """
    raw_body = await request.body()

    authenticate_webhook(
        raw_body,
        request.headers,
        secret=settings.webhook_secret,
        skip_auth=settings.skip_webhook_auth,
    )

    try:
        body = json.loads(raw_body)
    except ValueError:
        raise ValidationError("Invalid payload structure", ["Body is not valid JSON"])

    messages = normalize_webhook(body, graph_api_version=settings.meta_graph_api_version)
    if not messages:
        return {"status": "ignored"}

    # No awaits below: dedup, pairing and queueing for each event run as one unit
    results = []
    for message in messages:
        if engine.is_duplicate(message.id):
            logger.info(f"Message {message.id} already processed, skipping")
            results.append({"id": message.id, "status": "duplicate"})
            continue

        if settings.rate_limit_enabled:
            limiter.enforce(message.sender)

        pairing = engine.accept(message)
        if pairing is None:
            results.append({"id": message.id, "status": "duplicate"})
            continue

        logger.info(
            f"Received {message.kind.value} from {message.sender} via {message.provider}, "
            f"id: {message.id}, pairing: {pairing.confidence.value}"
        )
        queue.enqueue(service.process, message, pairing)
        results.append({
            "id": message.id,
            "status": "queued",
            "confidence": pairing.confidence.value,
        })

    if len(results) == 1:
        return results[0]
    return {"status": "batch", "messages": results}


@router.get("/webhook")
async def verify_meta_subscription(
    settings: Settings = Depends(get_app_settings),
    hub_mode: Optional[str] = Query(default=None, alias="hub.mode"),
    hub_verify_token: Optional[str] = Query(default=None, alias="hub.verify_token"),
    hub_challenge: Optional[str] = Query(default=None, alias="hub.challenge"),
):
    """Answer Meta's webhook subscription handshake."""
    if (
        hub_mode == "subscribe"
        and settings.meta_verify_token
        and hub_verify_token == settings.meta_verify_token
    ):
        logger.info("Meta webhook subscription verified")
        return PlainTextResponse(hub_challenge or "")

    logger.warning("Meta webhook verification failed")
    raise HTTPException(status_code=403, detail="Verification failed")


@router.get("/stats")
async def stats(
    engine: PairingEngine = Depends(get_pairing_engine),
    limiter: RateLimiter = Depends(get_rate_limiter),
    queue: MessageQueue = Depends(get_message_queue),
    service: ComplaintService = Depends(get_complaint_service),
):
    """Pairing, queue, rate limiter and processing statistics."""
    return {
        "pairing": engine.stats(),
        "queue": queue.stats(),
        "rate_limiter": limiter.stats(),
        "processing": service.stats(),
    }


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "cityhall-complaints-bot"}
