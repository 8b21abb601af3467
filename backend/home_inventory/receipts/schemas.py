from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from pydantic import Field, field_validator
from home_inventory.common.schemas import AppBaseModel, AppInputModel, PaginatedResponse
from home_inventory.extracted_items.schemas import ExtractedItemResponse
from home_inventory.inventory.schemas import InventoryItemResponse
from home_inventory.receipts.models import Receipt, ReceiptStatus
from home_inventory.scoring.schemas import ReceiptQualityReport


class ReceiptUpdate(AppInputModel):
    """Corrections to receipt header fields during review."""

    merchant_name: Optional[str] = Field(None, max_length=255)
    receipt_date: Optional[date] = None
    total_amount: Optional[Decimal] = Field(None, ge=0)

    @field_validator('merchant_name')
    @classmethod
    def validate_merchant_name(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class ConfirmItemInput(AppInputModel):
    """
    One reviewed item to turn into an inventory item.
    Name and quantity are checked by the confirmation step so that a bad
    item is reported instead of failing the whole request.
    """
    extracted_item_id: int = Field(..., description="Receipt line this inventory item comes from")
    name: str = Field(..., max_length=500)
    quantity: int = Field(1, description="Must be positive")
    category_id: int
    location_id: int
    description: Optional[str] = Field(None, max_length=5000)
    purchase_price: Optional[Decimal] = Field(None, ge=0, description="Defaults to the extracted total price")
    serial_number: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = Field(None, max_length=5000)


class ConfirmReceiptRequest(AppInputModel):
    items: list[ConfirmItemInput] = Field(default_factory=list)


# --- RESPONSES ---
class ReceiptResponse(AppBaseModel):
    id: int = Field(..., gt=0)
    processing_status: ReceiptStatus
    merchant_name: Optional[str] = None
    receipt_date: Optional[date] = None
    total_amount: Optional[Decimal] = None
    subtotal_amount: Optional[Decimal] = None
    tax_amount: Optional[Decimal] = None
    confidence: Optional[float] = None
    preprocessing_level: str
    image_url: Optional[str] = None
    image_status: Optional[str] = None
    image_expires_at: Optional[datetime] = None
    error_message: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class ReceiptDetailResponse(ReceiptResponse):
    raw_ocr_text: Optional[str] = None
    items: list[ExtractedItemResponse] = Field(default_factory=list)

    @classmethod
    def from_model(cls, receipt: Receipt, **extra) -> "ReceiptDetailResponse":
        """Expects receipt.extracted_items to be loaded already."""
        data = ReceiptResponse.model_validate(receipt).model_dump()
        return cls(
            **data,
            raw_ocr_text=receipt.raw_ocr_text,
            items=[ExtractedItemResponse.from_model(item) for item in receipt.extracted_items],
            **extra
        )


class ReceiptDraftResponse(ReceiptDetailResponse):
    """Result of processing a photo: the persisted draft and how much to trust it."""
    quality: ReceiptQualityReport


class ReceiptListResponse(PaginatedResponse[ReceiptResponse]):
    pass


class ConfirmationFailure(AppBaseModel):
    extracted_item_id: int
    errors: list[str]


class ConfirmationResult(AppBaseModel):
    receipt_id: int
    receipt_status: ReceiptStatus
    created_items: list[InventoryItemResponse] = Field(default_factory=list)
    failed_items: list[ConfirmationFailure] = Field(default_factory=list)
    rejected_items: int = Field(0, ge=0, description="Unsubmitted receipt lines marked as rejected")
