import enum

from pydantic import Field

from home_inventory.common.exceptions import NextAction
from home_inventory.common.schemas import AppBaseModel


class ConfidenceBucket(str, enum.Enum):
    LOW = "low"  # likely needs editing
    MEDIUM = "medium"  # review recommended
    HIGH = "high"  # likely correct


class FieldCompleteness(AppBaseModel):
    merchant_name: bool
    receipt_date: bool
    total_amount: bool
    items: bool
    score: float = Field(..., ge=0.0, le=1.0)


class ReceiptQualityReport(AppBaseModel):
    """
    Receipt-level assessment shown to the user next to the draft.
    next_action tells the UI which path to offer (review, retake, manual entry).
    """
    overall_confidence: float = Field(..., ge=0.0, le=1.0)
    bucket: ConfidenceBucket
    text_detected: bool
    completeness: FieldCompleteness
    items_found: int = Field(..., ge=0)
    low_confidence_items: int = Field(..., ge=0)
    recommendations: list[str] = Field(default_factory=list)
    next_action: NextAction
