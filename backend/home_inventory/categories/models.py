from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, Index, Integer, String, Text, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from home_inventory.db.main import Base

if TYPE_CHECKING:
    from home_inventory.inventory.models import InventoryItem

class Category(Base):
    """
    Category model grouping inventory items (Electronics, Kitchen, Tools...).
    Confirmed receipt lines must be filed under one.

    Attributes:
        id: Primary key
        name: Category name (unique, indexed)
        description: Optional free-text description
        created_at: Timestamp of creation
        updated_at: Timestamp of last update
        inventory_items: Items assigned to this category
    """
    __tablename__ = "categories"
    __table_args__ = (
        CheckConstraint("length(trim(name)) > 0", name="check_category_name_not_blank"),
        Index('idx_categories_name', 'name'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    inventory_items: Mapped[list['InventoryItem']] = relationship('InventoryItem', back_populates='category')
