"""
Inbound message and pairing domain models.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

# Reserved marker for "image received, no associable text".
# Must never be the empty string so downstream consumers can tell the two apart.
IMAGE_ONLY_SENTINEL = "[IMAGE_ONLY_NO_TEXT]"

# Maximum gap between a text and an image from the same sender
PAIRING_WINDOW_MS = 60000

# Source tag prefix written to the spreadsheet
SOURCE_PREFIX = "whatsapp"


class MessageKind(str, Enum):
    """Kind of inbound message handled by the pairing engine."""
    TEXT = "text"
    IMAGE = "image"


class PairingConfidence(str, Enum):
    """How the resolved text of a complaint was obtained."""
    DIRECT_TEXT = "directText"
    CAPTION_ON_IMAGE = "captionOnImage"
    PAIRED_TEXT_TO_IMAGE = "pairedTextToImage"
    PAIRED_IMAGE_TO_TEXT = "pairedImageToText"
    IMAGE_ONLY_FALLBACK = "imageOnlyFallback"


class InboundMessage(BaseModel):
    """Provider-independent message event produced by the webhook normalizer."""
    id: str = Field(..., min_length=1)
    sender: str = Field(..., min_length=1)
    kind: MessageKind
    text: Optional[str] = None
    image_url: Optional[str] = None
    caption: Optional[str] = None
    timestamp_ms: int
    provider: str = "gupshup"
    sender_name: Optional[str] = None


class TextPayload(BaseModel):
    """Stored text awaiting a possible image."""
    body: str

    class Config:
        frozen = True


class ImagePayload(BaseModel):
    """Stored image awaiting a possible text."""
    url: str
    caption: str = ""

    class Config:
        frozen = True


class PairingResult(BaseModel):
    """Resolved complaint content for one inbound event."""
    text: str
    image_url: Optional[str] = None
    confidence: PairingConfidence

    class Config:
        frozen = True

    @property
    def source(self) -> str:
        """Spreadsheet source tag embedding the pairing confidence."""
        return f"{SOURCE_PREFIX}:{self.confidence.value}"
