from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Integer, String, Text, Date, DateTime, Numeric,
    ForeignKey, Index, CheckConstraint
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from home_inventory.db.main import Base

if TYPE_CHECKING:
    from home_inventory.categories.models import Category
    from home_inventory.locations.models import Location
    from home_inventory.receipts.models import Receipt
    from home_inventory.extracted_items.models import ExtractedItem


class InventoryItem(Base):
    """
    InventoryItem model representing a single cataloged possession.

    Attributes:
        id: Primary key
        name: Item name (not nullable)
        quantity: Number of units owned (positive)
        purchase_date / purchase_price: Optional purchase details
        category_id: Foreign key to category (not nullable)
        location_id: Foreign key to location (not nullable)
        receipt_id: Soft back-reference to the source receipt (SET NULL on delete)
        extracted_item_id: Soft back-reference to the source receipt line (SET NULL on delete)
    """
    __tablename__ = 'inventory_items'

    __table_args__ = (
        CheckConstraint('quantity > 0', name='check_inventory_quantity_positive'),
        CheckConstraint('purchase_price IS NULL OR purchase_price >= 0', name='check_inventory_purchase_price_non_negative'),
        Index('idx_inventory_items_category_id', 'category_id'),
        Index('idx_inventory_items_location_id', 'location_id'),
        Index('idx_inventory_items_receipt_id', 'receipt_id'),
        {'comment': 'Cataloged household items, optionally traced back to a confirmed receipt'}
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    purchase_date: Mapped[Optional[date]] = mapped_column(Date)
    purchase_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    serial_number: Mapped[Optional[str]] = mapped_column(String(255))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    category_id: Mapped[int] = mapped_column(Integer, ForeignKey('categories.id', ondelete='RESTRICT'), nullable=False)
    location_id: Mapped[int] = mapped_column(Integer, ForeignKey('locations.id', ondelete='RESTRICT'), nullable=False)
    receipt_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey('receipts.id', ondelete='SET NULL'), nullable=True)
    extracted_item_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey('extracted_items.id', ondelete='SET NULL'), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    category: Mapped['Category'] = relationship('Category', back_populates='inventory_items')
    location: Mapped['Location'] = relationship('Location', back_populates='inventory_items')
    receipt: Mapped[Optional['Receipt']] = relationship('Receipt', back_populates='inventory_items')
    extracted_item: Mapped[Optional['ExtractedItem']] = relationship('ExtractedItem')
