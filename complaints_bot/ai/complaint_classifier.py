"""
LLM-powered complaint classifier.
Uses an OpenAI-compatible endpoint (OpenRouter) to turn complaint text into
the structured fields written to the complaints sheet.
"""

import logging
from functools import lru_cache
from typing import Optional

from openai import AsyncOpenAI, APIError, APITimeoutError, RateLimitError
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from complaints_bot.config.settings import get_settings
from complaints_bot.domain.complaint import (
    FIELD_CONTENT,
    FIELD_DATETIME,
    FIELD_IMAGE_LINK,
    FIELD_PHONE,
    ComplaintAnalysis,
)
from complaints_bot.domain.message import IMAGE_ONLY_SENTINEL
from complaints_bot.utils.json_parser import merge_with_defaults, safe_json_parse, validate_ai_response

logger = logging.getLogger(__name__)

# Prompt for complaint analysis (the city hall works in Hebrew)
COMPLAINT_PROMPT = """הודעה חדשה התקבלה במערכת פניות הציבור. נתח את הטקסט הבא והחזר תשובה בפורמט JSON בלבד עם השדות הבאים:

- "שם הפונה": אם נמסר בגוף ההודעה
- "קטגוריה": סיווג הפנייה (כמו תאורה, ניקיון, תחבורה, ביטחון וכו')
- "רמת דחיפות": רגילה / גבוהה / מיידית
- "תוכן הפנייה": הטקסט המקורי
- "תאריך ושעה": פורמט HH:mm DD-MM-YY לפי שעון ישראל
- "טלפון": מספר הטלפון של הפונה
- "קישור לתמונה": אם קיים
- "סוג הפנייה": תלונה / בקשה / מחמאה / אחר
- "מחלקה אחראית": מחלקה רלוונטית בעירייה (כמו תברואה, חשמל, גינון וכו')
{image_only_note}
הודעה: \"\"\"{message}\"\"\"
טלפון: {phone}
תמונה: {image_url}
תאריך ושעה: {timestamp}
"""

IMAGE_ONLY_NOTE = f"""
שים לב: הערך {IMAGE_ONLY_SENTINEL} פירושו שהתקבלה תמונה ללא טקסט מצורף. סווג לפי ההקשר הקיים בלבד.
"""


@lru_cache()
def get_openai_client() -> AsyncOpenAI:
    """Get the shared OpenRouter client."""
    settings = get_settings()
    return AsyncOpenAI(
        api_key=settings.openrouter_api_key,
        base_url=settings.openrouter_base_url,
    )


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_exception_type((APIError, APITimeoutError, RateLimitError)),
    reraise=True
)
async def _call_llm(prompt: str) -> str:
    """
    Make a chat completion call with retry logic.

    Args:
        prompt: Full user prompt

    Returns:
        Response content string
    """
    response = await get_openai_client().chat.completions.create(
        model=get_settings().openrouter_model,
        messages=[{"role": "user", "content": prompt}],
        temperature=0.1,
        max_tokens=800
    )
    return response.choices[0].message.content or ""


def build_fallback_analysis(
    message: str,
    timestamp: str,
    phone: str,
    image_url: Optional[str]
) -> ComplaintAnalysis:
    """Analysis used when the classifier fails; keeps the raw complaint data."""
    return ComplaintAnalysis(
        content=message,
        received_at=timestamp,
        phone=phone,
        image_link=image_url or "",
        is_fallback=True,
    )


async def classify_complaint(
    message: str,
    timestamp: str,
    phone: str,
    image_url: Optional[str] = None
) -> ComplaintAnalysis:
    """
    Classify a complaint into structured fields.

    Never raises: API and parse failures produce a fallback analysis.

    Args:
        message: Resolved complaint text (may be the image-only sentinel)
        timestamp: Event time formatted for the sheet
        phone: Sender phone number
        image_url: Optional image link

    Returns:
        ComplaintAnalysis with all fields populated as far as possible
    """
    fallback = build_fallback_analysis(message, timestamp, phone, image_url)

    prompt = COMPLAINT_PROMPT.format(
        image_only_note=IMAGE_ONLY_NOTE if message == IMAGE_ONLY_SENTINEL else "",
        message=message,
        phone=phone or "לא צוין",
        image_url=image_url or "אין",
        timestamp=timestamp,
    )

    try:
        result_text = await _call_llm(prompt)
    except (APIError, APITimeoutError, RateLimitError) as e:
        logger.error(f"LLM API error after retries: {e}")
        return fallback
    except Exception as e:
        logger.exception(f"Error classifying complaint: {e}")
        return fallback

    parsed = safe_json_parse(result_text)
    if not parsed.success:
        logger.error(f"Failed to parse LLM response: {parsed.error}")
        logger.debug(f"Raw LLM response: {result_text}")
        return fallback

    validation = validate_ai_response(parsed.data)
    if not validation.valid:
        logger.warning(f"LLM response failed validation: {validation.errors}")

    # Authoritative values from the event always win over the model
    merged = merge_with_defaults(parsed.data, fallback.to_fields())
    merged[FIELD_CONTENT] = merged.get(FIELD_CONTENT) or message
    merged[FIELD_DATETIME] = timestamp
    merged[FIELD_PHONE] = phone
    merged[FIELD_IMAGE_LINK] = image_url or ""

    logger.info(f"Classified complaint from {phone}: {merged.get('קטגוריה', '')}")
    return ComplaintAnalysis.model_validate(merged)
