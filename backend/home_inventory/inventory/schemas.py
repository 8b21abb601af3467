from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from pydantic import Field, field_validator
from home_inventory.common.schemas import AppBaseModel, AppInputModel, PaginatedResponse

class InventoryItemValidationMixin:

    @field_validator('name', check_fields=False)
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            if not v:
                raise ValueError("Item name cannot be empty")
        return v

    @field_validator('purchase_price', check_fields=False)
    @classmethod
    def validate_purchase_price(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        if v is not None:
            if v < 0:
                raise ValueError("Purchase price cannot be negative")
            if v.as_tuple().exponent < -2:
                raise ValueError("Purchase price can have at most 2 decimal places")
        return v

class InventoryItemCreate(AppInputModel, InventoryItemValidationMixin):

    name: str = Field(..., min_length=1, max_length=500, description="Item name")
    description: Optional[str] = Field(None, max_length=5000)
    quantity: int = Field(1, gt=0, description="Number of units owned")
    purchase_date: Optional[date] = Field(None, description="Date of purchase")
    purchase_price: Optional[Decimal] = Field(None, ge=0, description="Purchase price")
    serial_number: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = Field(None, max_length=5000)
    category_id: int = Field(..., gt=0, description="Category ID")
    location_id: int = Field(..., gt=0, description="Location ID")
    receipt_id: Optional[int] = Field(None, gt=0, description="Source receipt ID (set by confirmation)")
    extracted_item_id: Optional[int] = Field(None, gt=0, description="Source receipt line ID (set by confirmation)")

class InventoryItemUpdate(AppInputModel, InventoryItemValidationMixin):

    name: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = Field(None, max_length=5000)
    quantity: Optional[int] = Field(None, gt=0)
    purchase_date: Optional[date] = None
    purchase_price: Optional[Decimal] = Field(None, ge=0)
    serial_number: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = Field(None, max_length=5000)
    category_id: Optional[int] = Field(None, gt=0)
    location_id: Optional[int] = Field(None, gt=0)

# --- RESPONSES ---
class InventoryItemResponse(AppBaseModel):
    id: int = Field(..., gt=0)
    name: str
    description: Optional[str] = None
    quantity: int
    purchase_date: Optional[date] = None
    purchase_price: Optional[Decimal] = None
    serial_number: Optional[str] = None
    notes: Optional[str] = None
    category_id: int
    location_id: int
    receipt_id: Optional[int] = None
    extracted_item_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime

class InventoryItemListResponse(PaginatedResponse[InventoryItemResponse]):
    pass
