"""
Complaint service: classification and spreadsheet logging for paired messages.
"""

import logging
import time

from complaints_bot.ai.complaint_classifier import classify_complaint
from complaints_bot.config.settings import Settings
from complaints_bot.domain.complaint import FIELD_REQUESTER_NAME, FIELD_SOURCE
from complaints_bot.domain.message import InboundMessage, PairingResult
from complaints_bot.infrastructure.google_drive import upload_image_to_drive
from complaints_bot.infrastructure.google_sheets import append_complaint_row, update_dashboard_stats
from complaints_bot.utils.time import format_sheet_time

logger = logging.getLogger(__name__)


class ComplaintService:
    """Runs the downstream steps for one resolved complaint and keeps statistics."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.total_processed = 0
        self.total_failed = 0
        self._total_processing_ms = 0

    async def process(self, message: InboundMessage, pairing: PairingResult) -> bool:
        """
        Classify a complaint and append it to the sheet.

        Failures are logged and counted; pairing state is never touched here.

        Args:
            message: The inbound message that produced the pairing
            pairing: Resolved text, image and confidence

        Returns:
            True if the row was written
        """
        started = time.monotonic()
        event_time = format_sheet_time(message.timestamp_ms, self.settings.timezone)

        image_link = pairing.image_url
        if image_link and self.settings.upload_images_to_drive:
            drive_link = await upload_image_to_drive(image_link, message.sender, event_time)
            if drive_link:
                image_link = drive_link

        analysis = await classify_complaint(
            message=pairing.text,
            timestamp=event_time,
            phone=message.sender,
            image_url=image_link,
        )

        fields = analysis.to_fields()
        if not fields.get(FIELD_REQUESTER_NAME) and message.sender_name:
            fields[FIELD_REQUESTER_NAME] = message.sender_name
        fields[FIELD_SOURCE] = pairing.source

        try:
            written = await append_complaint_row(fields)
        except Exception as e:
            logger.exception(f"Error writing complaint {message.id} to sheet: {e}")
            written = False

        elapsed_ms = int((time.monotonic() - started) * 1000)
        self._record(written, elapsed_ms)

        if written:
            logger.info(f"Complaint from {message.sender} logged successfully ({pairing.source})")
        else:
            logger.error(f"Complaint {message.id} from {message.sender} was not logged")

        return written

    def _record(self, written: bool, elapsed_ms: int) -> None:
        if written:
            self.total_processed += 1
        else:
            self.total_failed += 1
        self._total_processing_ms += elapsed_ms

    def stats(self) -> dict:
        """Processing statistics for the dashboard and /stats."""
        attempts = self.total_processed + self.total_failed
        return {
            "total_processed": self.total_processed,
            "total_failed": self.total_failed,
            "success_rate": round(100 * self.total_processed / attempts) if attempts else 0,
            "avg_processing_ms": round(self._total_processing_ms / attempts) if attempts else 0,
        }

    async def publish_dashboard(self) -> bool:
        """Push the current statistics to the dashboard worksheet."""
        return await update_dashboard_stats(self.stats())
