from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Integer, String, Text, DateTime, Float, Numeric,
    ForeignKey, Index, CheckConstraint, Enum as SAEnum
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from home_inventory.db.main import Base

if TYPE_CHECKING:
    from home_inventory.receipts.models import Receipt


class ExtractedItemStatus(str, enum.Enum):
    PENDING = "pending"
    EDITED = "edited"
    REJECTED = "rejected"
    CONFIRMED = "confirmed"


class ExtractedItem(Base):
    """
    ExtractedItem model representing one line item read from a receipt photo.

    Attributes:
        id: Primary key (auto-incremented)
        receipt_id: Foreign key to receipt (not nullable, CASCADE on delete)
        position: Order of the item on the receipt, top to bottom
        name: Item name as read (or as edited by the user)
        quantity: Quantity (not nullable, non-negative)
        unit_price / total_price: Prices (nullable when unreadable, non-negative)
        confidence: Composite confidence score (0.0-1.0)
        status: Review status (pending, edited, rejected, confirmed)
        bbox_*: Bounding box of the source line on the processed image
        raw_text: Original OCR text of the item
    """
    __tablename__ = 'extracted_items'

    __table_args__ = (
        CheckConstraint('quantity >= 0', name='check_extracted_quantity_non_negative'),
        CheckConstraint('unit_price IS NULL OR unit_price >= 0', name='check_extracted_unit_price_non_negative'),
        CheckConstraint('total_price IS NULL OR total_price >= 0', name='check_extracted_total_price_non_negative'),
        CheckConstraint('confidence >= 0 AND confidence <= 1', name='check_extracted_confidence_range'),
        Index('idx_extracted_items_receipt_id', 'receipt_id'),
        Index('idx_extracted_items_status', 'status'),
        {'comment': 'Receipt line items awaiting review, with confidence and source geometry'}
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    receipt_id: Mapped[int] = mapped_column(Integer, ForeignKey('receipts.id', ondelete='CASCADE'), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    unit_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    total_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    confidence: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, comment='Composite confidence score (0.0-1.0)')
    status: Mapped[ExtractedItemStatus] = mapped_column(SAEnum(ExtractedItemStatus, name='extracted_item_status', values_callable=lambda x: [e.value for e in x]), nullable=False, default=ExtractedItemStatus.PENDING, server_default=ExtractedItemStatus.PENDING.value)
    bbox_x: Mapped[Optional[int]] = mapped_column(Integer)
    bbox_y: Mapped[Optional[int]] = mapped_column(Integer)
    bbox_width: Mapped[Optional[int]] = mapped_column(Integer)
    bbox_height: Mapped[Optional[int]] = mapped_column(Integer)
    raw_text: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    receipt: Mapped['Receipt'] = relationship('Receipt', back_populates='extracted_items')
