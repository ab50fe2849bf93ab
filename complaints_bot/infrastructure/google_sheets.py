"""
Google Sheets integration for complaint rows and the dashboard, with retry logic.
"""

import asyncio
import logging
from functools import lru_cache
from typing import List

import gspread
from gspread.exceptions import APIError, WorksheetNotFound
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from complaints_bot.config.settings import get_settings
from complaints_bot.domain.complaint import SHEET_COLUMNS, build_sheet_values
from complaints_bot.domain.errors import ConfigurationError
from complaints_bot.utils.time import get_current_time_israel
from complaints_bot.utils.validation import sanitize_for_sheets

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive.file",
]


@lru_cache()
def get_spreadsheet() -> gspread.Spreadsheet:
    """Open the configured spreadsheet with the service account."""
    settings = get_settings()

    info = settings.service_account_info
    if not info:
        raise ConfigurationError("Google service account credentials are not configured")
    if not settings.sheet_id:
        raise ConfigurationError("SHEET_ID is not configured")

    client = gspread.service_account_from_dict(info, scopes=SCOPES)
    return client.open_by_key(settings.sheet_id)


def get_complaints_worksheet() -> gspread.Worksheet:
    """Worksheet complaint rows are appended to."""
    name = get_settings().sheet_worksheet_name
    spreadsheet = get_spreadsheet()
    return spreadsheet.worksheet(name) if name else spreadsheet.sheet1


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=5),
    retry=retry_if_exception_type(APIError),
    reraise=True
)
def _append_row_sync(values: List[str]) -> None:
    """
    Synchronous append with retry logic.

    Args:
        values: Cell values in A:J order
    """
    get_complaints_worksheet().append_row(
        values,
        value_input_option="RAW",
        table_range="A:J",
    )


async def append_complaint_row(fields: dict) -> bool:
    """
    Append a complaint to the sheet.

    Args:
        fields: Flat field map keyed by column name, including "source"

    Returns:
        True if the row was appended, False otherwise
    """
    values = [sanitize_for_sheets(value) for value in build_sheet_values(fields)]

    try:
        await asyncio.to_thread(_append_row_sync, values)
    except APIError as e:
        logger.error(f"Failed to append sheet row after retries: {e}")
        return False

    logger.info(f"Sheet updated with entry from {fields.get(SHEET_COLUMNS[3], '')}")
    return True


def _get_or_create_dashboard() -> gspread.Worksheet:
    settings = get_settings()
    spreadsheet = get_spreadsheet()
    try:
        return spreadsheet.worksheet(settings.dashboard_worksheet_name)
    except WorksheetNotFound:
        logger.info(f"Creating dashboard worksheet: {settings.dashboard_worksheet_name}")
        return spreadsheet.add_worksheet(title=settings.dashboard_worksheet_name, rows=20, cols=2)


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=5),
    retry=retry_if_exception_type(APIError),
    reraise=True
)
def _write_dashboard_sync(rows: List[List[str]]) -> None:
    _get_or_create_dashboard().update(values=rows, range_name="A1")


async def update_dashboard_stats(stats: dict) -> bool:
    """
    Write processing statistics to the dashboard worksheet.

    Args:
        stats: Dict with total_processed, success_rate and avg_processing_ms

    Returns:
        True if the dashboard was updated
    """
    rows = [
        ["מדד", "ערך"],
        ["סה\"כ פניות שעובדו", str(stats.get("total_processed", 0))],
        ["אחוז הצלחה", f"{stats.get('success_rate', 0)}%"],
        ["זמן עיבוד ממוצע (ms)", str(stats.get("avg_processing_ms", 0))],
        ["עודכן לאחרונה", get_current_time_israel().strftime("%H:%M %d-%m-%y")],
    ]

    try:
        await asyncio.to_thread(_write_dashboard_sync, rows)
    except APIError as e:
        logger.error(f"Failed to update dashboard after retries: {e}")
        return False

    logger.info("Dashboard stats updated")
    return True
