from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import Field

from home_inventory.common.schemas import AppBaseModel
from home_inventory.ocr.schemas import BoundingBox


class CandidateItem(AppBaseModel):
    """A receipt line recognized as a purchased item, before scoring."""
    name: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=0)
    unit_price: Optional[Decimal] = Field(None, ge=0)
    total_price: Optional[Decimal] = Field(None, ge=0)
    quantity_detected: bool = False
    price_detected: bool = Field(False, description="A well-formed price within bounds was found")
    line_index: int = Field(..., ge=0, description="Index of the OCR line holding the price")
    raw_text: str
    bounding_box: Optional[BoundingBox] = None


class ParsedReceipt(AppBaseModel):
    merchant_name: Optional[str] = None
    receipt_date: Optional[date] = None
    total_amount: Optional[Decimal] = None
    subtotal_amount: Optional[Decimal] = None
    tax_amount: Optional[Decimal] = None
    items: list[CandidateItem] = Field(default_factory=list)
    item_region: tuple[int, int] = Field(
        (0, 0),
        description="Half-open [start, end) range of line indexes between header and totals"
    )
    raw_text: str = ""

    def in_item_region(self, line_index: int) -> bool:
        start, end = self.item_region
        return start <= line_index < end
