from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import Field, field_validator
from home_inventory.common.schemas import AppBaseModel, AppInputModel
from home_inventory.extracted_items.models import ExtractedItem, ExtractedItemStatus
from home_inventory.ocr.schemas import BoundingBox
from home_inventory.scoring.schemas import ConfidenceBucket
from home_inventory.scoring.service import bucket_for


class ExtractedItemValidationMixin:

    @field_validator('name', check_fields=False)
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            if not v:
                raise ValueError("Item name cannot be empty")
        return v

    @field_validator('unit_price', 'total_price', check_fields=False)
    @classmethod
    def validate_price(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        if v is not None:
            if v < 0:
                raise ValueError("Price cannot be negative")
            if v.as_tuple().exponent < -2:
                raise ValueError("Price can have at most 2 decimal places")
        return v


class ExtractedItemUpdate(AppInputModel, ExtractedItemValidationMixin):
    """User correction of a receipt line during review. Setting any field marks the item as edited."""

    name: Optional[str] = Field(None, min_length=1, max_length=500)
    quantity: Optional[int] = Field(None, ge=0)
    unit_price: Optional[Decimal] = Field(None, ge=0)
    total_price: Optional[Decimal] = Field(None, ge=0)


# --- RESPONSES ---
class ExtractedItemResponse(AppBaseModel):
    id: int = Field(..., gt=0)
    receipt_id: int
    position: int
    name: str
    quantity: int
    unit_price: Optional[Decimal] = None
    total_price: Optional[Decimal] = None
    confidence: float = Field(..., ge=0.0, le=1.0)
    confidence_bucket: ConfidenceBucket
    status: ExtractedItemStatus
    bounding_box: Optional[BoundingBox] = None
    raw_text: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, item: ExtractedItem) -> "ExtractedItemResponse":
        bounding_box = None
        if item.bbox_x is not None and item.bbox_y is not None:
            bounding_box = BoundingBox(
                x=item.bbox_x,
                y=item.bbox_y,
                width=item.bbox_width or 0,
                height=item.bbox_height or 0,
            )
        return cls(
            id=item.id,
            receipt_id=item.receipt_id,
            position=item.position,
            name=item.name,
            quantity=item.quantity,
            unit_price=item.unit_price,
            total_price=item.total_price,
            confidence=item.confidence,
            confidence_bucket=bucket_for(item.confidence),
            status=item.status,
            bounding_box=bounding_box,
            raw_text=item.raw_text,
            created_at=item.created_at,
            updated_at=item.updated_at,
        )
