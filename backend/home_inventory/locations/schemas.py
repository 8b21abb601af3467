from datetime import datetime
from typing import Optional
from pydantic import Field, field_validator
from home_inventory.common.schemas import AppBaseModel, PaginatedResponse

class LocationValidationMixin:

    @field_validator('name', check_fields=False)
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            if not v:
                raise ValueError("Location name cannot be empty")
        return v

    @field_validator('parent_id', check_fields=False)
    @classmethod
    def validate_parent_id(cls, v: Optional[int]) -> Optional[int]:
        if v is not None:
            if v <= 0:
                raise ValueError("Parent ID must be a positive integer")
        return v

# --- BASE MODEL ---
class LocationBase(AppBaseModel, LocationValidationMixin):

    name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Location name (required, 1-255 characters, unique)"
    )

    description: Optional[str] = Field(
        None,
        max_length=2000,
        description="Optional description"
    )

    parent_id: Optional[int] = Field(
        None,
        gt=0,
        description="Parent location ID (optional, null for root locations)"
    )

class LocationCreate(LocationBase):
    pass

class LocationUpdate(AppBaseModel, LocationValidationMixin):

    name: Optional[str] = Field(
        None,
        min_length=1,
        max_length=255,
        description="Location name"
    )

    description: Optional[str] = Field(
        None,
        max_length=2000,
        description="Optional description"
    )

    parent_id: Optional[int] = Field(
        None,
        gt=0,
        description="Parent location ID"
    )

# --- RESPONSES ---
class LocationResponse(LocationBase):
    id: int = Field(..., gt=0)
    created_at: datetime
    updated_at: datetime

class LocationListResponse(PaginatedResponse[LocationResponse]):
    pass
