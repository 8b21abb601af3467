from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import ForeignKey, Index, Integer, String, Text, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from home_inventory.db.main import Base

if TYPE_CHECKING:
    from home_inventory.inventory.models import InventoryItem

class Location(Base):
    """
    Location model representing hierarchical storage places (House > Kitchen > Pantry).

    Attributes:
        id: Primary key
        name: Location name (unique, indexed)
        description: Optional free-text description
        parent_id: Foreign key to parent location (nullable for root locations, indexed)
        created_at: Timestamp of creation
        updated_at: Timestamp of last update
        parent: Reference to parent location (self-referential)
        children: List of child locations
        inventory_items: Items stored in this location
    """
    __tablename__ = "locations"
    __table_args__ = (
        Index('idx_locations_name', 'name'),
        Index('idx_locations_parent_id', 'parent_id'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(Text)
    parent_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("locations.id", ondelete="RESTRICT"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    parent: Mapped[Optional['Location']] = relationship('Location', foreign_keys=[parent_id], remote_side=[id], back_populates='children')
    children: Mapped[list['Location']] = relationship('Location', foreign_keys=[parent_id], back_populates='parent')
    inventory_items: Mapped[list['InventoryItem']] = relationship('InventoryItem', back_populates='location')
