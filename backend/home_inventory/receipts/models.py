from __future__ import annotations

import enum
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import (
    Integer, String, Date, DateTime, Text, Float,
    Index, CheckConstraint, Numeric, Enum as SAEnum
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from home_inventory.db.main import Base

if TYPE_CHECKING:
    from home_inventory.extracted_items.models import ExtractedItem
    from home_inventory.inventory.models import InventoryItem


class ReceiptStatus(str, enum.Enum):
    DRAFT = "draft"
    PROCESSING = "processing"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class Receipt(Base):
    """
    Receipt model representing one photographed purchase receipt.
    Holds the draft extraction until the user confirms it into inventory items.
    """
    __tablename__ = 'receipts'

    __table_args__ = (
        CheckConstraint('total_amount IS NULL OR total_amount >= 0', name='check_receipt_total_amount_non_negative'),
        CheckConstraint('confidence IS NULL OR (confidence >= 0 AND confidence <= 1)', name='check_receipt_confidence_range'),
        Index('idx_receipts_image_expires_at', 'image_expires_at'),
        Index('idx_receipts_processing_status', 'processing_status'),
        {'comment': 'Receipts with extraction results, review state and image lifecycle management'}
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    processing_status: Mapped[ReceiptStatus] = mapped_column(SAEnum(ReceiptStatus, name='receipt_status', values_callable=lambda x: [e.value for e in x]), nullable=False, default=ReceiptStatus.DRAFT, server_default=ReceiptStatus.DRAFT.value)
    merchant_name: Mapped[Optional[str]] = mapped_column(String(255))
    receipt_date: Mapped[Optional[date]] = mapped_column(Date)
    total_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    subtotal_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    tax_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    confidence: Mapped[Optional[float]] = mapped_column(Float, comment='Overall extraction confidence (0.0-1.0)')
    raw_ocr_text: Mapped[Optional[str]] = mapped_column(Text)
    preprocessing_level: Mapped[str] = mapped_column(String(20), nullable=False, server_default="none")
    image_url: Mapped[Optional[str]] = mapped_column(Text)
    image_hash: Mapped[Optional[str]] = mapped_column(String(64))
    image_expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), comment='Image expiration date for automatic cleanup')
    image_status: Mapped[Optional[str]] = mapped_column(String(50), server_default="active")
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    extracted_items: Mapped[List['ExtractedItem']] = relationship(
        'ExtractedItem',
        back_populates='receipt',
        order_by='ExtractedItem.position',
        cascade='all, delete-orphan',
        passive_deletes=True
    )
    inventory_items: Mapped[List['InventoryItem']] = relationship('InventoryItem', back_populates='receipt', passive_deletes=True)
