"""
Robust JSON parsing for LLM responses.
"""

import json
from dataclasses import dataclass, field
from typing import Any, List, Optional

from complaints_bot.domain.complaint import (
    COMPLAINT_TYPES,
    EXPECTED_AI_FIELDS,
    FIELD_COMPLAINT_TYPE,
    FIELD_URGENCY,
    URGENCY_LEVELS,
)

MIN_PRESENT_FIELDS = 5
MAX_FIELD_LENGTH = 10000


@dataclass
class JsonParseResult:
    success: bool
    data: Any = None
    error: Optional[str] = None


@dataclass
class ResponseValidation:
    valid: bool
    errors: List[str] = field(default_factory=list)


def extract_json(text: Optional[str]) -> Optional[str]:
    """
    Extract the first balanced JSON object from free text.

    Braces inside string literals (including escaped quotes) are ignored.

    Args:
        text: Text that may contain a JSON object

    Returns:
        The JSON substring, or None if no complete object is found
    """
    if not text or not isinstance(text, str):
        return None

    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escape_next = False

    for i in range(start, len(text)):
        char = text[i]

        if escape_next:
            escape_next = False
            continue
        if char == "\\":
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue

        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]

    return None


def safe_json_parse(text: Optional[str]) -> JsonParseResult:
    """Parse JSON directly, falling back to extracting an embedded object."""
    if not text:
        return JsonParseResult(success=False, error="Empty input")

    try:
        return JsonParseResult(success=True, data=json.loads(text))
    except json.JSONDecodeError:
        pass

    extracted = extract_json(text)
    if extracted is None:
        return JsonParseResult(success=False, error="No valid JSON found in text")

    try:
        return JsonParseResult(success=True, data=json.loads(extracted))
    except json.JSONDecodeError as e:
        return JsonParseResult(success=False, error=f"Failed to parse extracted JSON: {e}")


def validate_ai_response(data: Any) -> ResponseValidation:
    """
    Validate a classifier response against the complaint schema.

    Not every field is required, but at least five of the nine must be
    present, and enumerated fields must use their allowed values.
    """
    if not isinstance(data, dict):
        return ResponseValidation(valid=False, errors=["Response is not an object"])

    errors = []

    present = [name for name in EXPECTED_AI_FIELDS if name in data]
    if len(present) < MIN_PRESENT_FIELDS:
        errors.append(
            f"Response missing too many expected fields. Found: {len(present)}/{len(EXPECTED_AI_FIELDS)}"
        )

    urgency = data.get(FIELD_URGENCY)
    if urgency and urgency not in URGENCY_LEVELS:
        errors.append(f"Invalid urgency level: {urgency}")

    complaint_type = data.get(FIELD_COMPLAINT_TYPE)
    if complaint_type and complaint_type not in COMPLAINT_TYPES:
        errors.append(f"Invalid complaint type: {complaint_type}")

    for name, value in data.items():
        if isinstance(value, str) and len(value) > MAX_FIELD_LENGTH:
            errors.append(f'Field "{name}" exceeds maximum length')

    return ResponseValidation(valid=not errors, errors=errors)


def merge_with_defaults(ai_response: Any, defaults: dict) -> dict:
    """Overlay non-empty stringified response values onto defaults."""
    merged = dict(defaults)

    if not isinstance(ai_response, dict):
        return merged

    for key, value in ai_response.items():
        if value is None:
            continue
        string_value = str(value).strip()
        if string_value:
            merged[key] = string_value

    return merged
