"""
Complaint analysis model and spreadsheet row schema.
"""

from typing import List

from pydantic import BaseModel, Field

# Hebrew field names shared by the LLM contract and the sheet
FIELD_REQUESTER_NAME = "שם הפונה"
FIELD_CATEGORY = "קטגוריה"
FIELD_URGENCY = "רמת דחיפות"
FIELD_CONTENT = "תוכן הפנייה"
FIELD_DATETIME = "תאריך ושעה"
FIELD_PHONE = "טלפון"
FIELD_IMAGE_LINK = "קישור לתמונה"
FIELD_COMPLAINT_TYPE = "סוג הפנייה"
FIELD_DEPARTMENT = "מחלקה אחראית"
FIELD_SOURCE = "source"

EXPECTED_AI_FIELDS: List[str] = [
    FIELD_REQUESTER_NAME,
    FIELD_CATEGORY,
    FIELD_URGENCY,
    FIELD_CONTENT,
    FIELD_DATETIME,
    FIELD_PHONE,
    FIELD_IMAGE_LINK,
    FIELD_COMPLAINT_TYPE,
    FIELD_DEPARTMENT,
]

URGENCY_LEVELS = ["רגילה", "גבוהה", "מיידית"]
COMPLAINT_TYPES = ["תלונה", "בקשה", "מחמאה", "אחר"]

# Column order A:J in the complaints worksheet
SHEET_COLUMNS: List[str] = [
    FIELD_DATETIME,
    FIELD_CONTENT,
    FIELD_REQUESTER_NAME,
    FIELD_PHONE,
    FIELD_IMAGE_LINK,
    FIELD_CATEGORY,
    FIELD_URGENCY,
    FIELD_COMPLAINT_TYPE,
    FIELD_DEPARTMENT,
    FIELD_SOURCE,
]
SHEET_RANGE = "A:J"


class ComplaintAnalysis(BaseModel):
    """Structured classification of a complaint, keyed by the Hebrew field names."""
    requester_name: str = Field("", alias=FIELD_REQUESTER_NAME)
    category: str = Field("", alias=FIELD_CATEGORY)
    urgency: str = Field("", alias=FIELD_URGENCY)
    content: str = Field("", alias=FIELD_CONTENT)
    received_at: str = Field("", alias=FIELD_DATETIME)
    phone: str = Field("", alias=FIELD_PHONE)
    image_link: str = Field("", alias=FIELD_IMAGE_LINK)
    complaint_type: str = Field("", alias=FIELD_COMPLAINT_TYPE)
    department: str = Field("", alias=FIELD_DEPARTMENT)
    is_fallback: bool = False

    class Config:
        populate_by_name = True

    def to_fields(self) -> dict:
        """Return the analysis as a dict keyed by the Hebrew field names."""
        return self.model_dump(by_alias=True, exclude={"is_fallback"})


def build_sheet_values(fields: dict) -> List[str]:
    """
    Order a flat field map into the worksheet's column layout.

    Args:
        fields: Mapping of column name to value

    Returns:
        List of cell values in A:J order
    """
    return [str(fields.get(column) or "") for column in SHEET_COLUMNS]
