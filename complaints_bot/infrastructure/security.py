"""
Webhook signature verification (HMAC-SHA256).

Meta signs the raw body with the app secret and sends the hex digest as
`X-Hub-Signature-256: sha256=<digest>`. Gupshup and custom relays send the
same digest over the raw body without the prefix. Neither provider ships a
Python SDK for this check, so it is computed with `hmac` directly.
"""

import hashlib
import hmac
import logging
from typing import Mapping, Optional

from complaints_bot.domain.errors import AuthenticationError, ConfigurationError

logger = logging.getLogger(__name__)

# Headers checked in order; providers use different names
SIGNATURE_HEADERS = (
    "X-Webhook-Signature",
    "X-Hub-Signature-256",
    "X-Gupshup-Signature",
)


def compute_signature(payload: bytes, secret: str) -> str:
    """Hex HMAC-SHA256 digest of a raw request body."""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def verify_webhook_signature(payload: bytes, signature: Optional[str], secret: Optional[str]) -> bool:
    """
    Verify a webhook signature against the raw body.

    Args:
        payload: Raw request body
        signature: Hex digest from the request header, optionally "sha256=" prefixed
        secret: Shared webhook secret

    Returns:
        True if the signature is valid
    """
    if not signature or not secret:
        return False

    if signature.startswith("sha256="):
        signature = signature[len("sha256="):]

    expected = compute_signature(payload, secret)
    return hmac.compare_digest(signature.lower(), expected)


def get_signature_header(headers: Mapping[str, str]) -> Optional[str]:
    """Return the first signature header present."""
    for name in SIGNATURE_HEADERS:
        value = headers.get(name)
        if value:
            return value
    return None


def authenticate_webhook(
    payload: bytes,
    headers: Mapping[str, str],
    secret: str,
    skip_auth: bool = False
) -> None:
    """
    Raise unless the request carries a valid signature.

    Args:
        payload: Raw request body
        headers: Request headers
        secret: Configured webhook secret
        skip_auth: Development bypass

    Raises:
        ConfigurationError: No secret is configured
        AuthenticationError: Signature missing or invalid
    """
    if skip_auth:
        logger.warning("Webhook authentication skipped (SKIP_WEBHOOK_AUTH=true)")
        return

    if not secret:
        raise ConfigurationError("WEBHOOK_SECRET not configured")

    signature = get_signature_header(headers)
    if not signature:
        raise AuthenticationError("Missing webhook signature")

    if not verify_webhook_signature(payload, signature, secret):
        raise AuthenticationError("Invalid signature")
