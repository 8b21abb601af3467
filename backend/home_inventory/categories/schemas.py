import re
from datetime import datetime
from typing import Optional
from pydantic import Field, field_validator
from home_inventory.common.schemas import AppBaseModel, PaginatedResponse

class CategoryValidationMixin:

    @field_validator('name', check_fields=False)
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            v = re.sub(r'\s+', ' ', v)
            if not v:
                raise ValueError("Category name cannot be empty")
        return v

# --- BASE MODEL ---
class CategoryBase(AppBaseModel, CategoryValidationMixin):

    name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Category name (required, 1-255 characters, unique ignoring case)"
    )

    description: Optional[str] = Field(
        None,
        max_length=2000,
        description="What belongs here (e.g. 'Power tools and hand tools')"
    )

class CategoryCreate(CategoryBase):
    pass

class CategoryUpdate(AppBaseModel, CategoryValidationMixin):

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)

# --- RESPONSES ---
class CategoryResponse(CategoryBase):
    id: int = Field(..., gt=0)
    items_count: int = Field(0, ge=0, description="Inventory items filed under this category")
    created_at: datetime
    updated_at: datetime

class CategoryListResponse(PaginatedResponse[CategoryResponse]):
    pass
