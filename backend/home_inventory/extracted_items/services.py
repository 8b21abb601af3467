import logging
from typing import Sequence
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from home_inventory.common.exceptions import ResourceNotFoundError
from home_inventory.common.services import AppService
from home_inventory.extracted_items.models import ExtractedItem, ExtractedItemStatus
from home_inventory.extracted_items.schemas import ExtractedItemUpdate
from home_inventory.parsing.schemas import CandidateItem

logger = logging.getLogger(__name__)


class ExtractedItemService(AppService[ExtractedItem, ExtractedItemUpdate, ExtractedItemUpdate]):

    def __init__(self, session: AsyncSession):
        super().__init__(model=ExtractedItem, session=session)

    def build(self, position: int, candidate: CandidateItem, confidence: float) -> ExtractedItem:
        """Maps a scored parser candidate onto a new (unsaved) row."""
        bbox = candidate.bounding_box
        return ExtractedItem(
            position=position,
            name=candidate.name[:500],
            quantity=candidate.quantity,
            unit_price=candidate.unit_price,
            total_price=candidate.total_price,
            confidence=confidence,
            status=ExtractedItemStatus.PENDING,
            bbox_x=bbox.x if bbox else None,
            bbox_y=bbox.y if bbox else None,
            bbox_width=bbox.width if bbox else None,
            bbox_height=bbox.height if bbox else None,
            raw_text=candidate.raw_text,
        )

    async def get_for_receipt(self, receipt_id: int, item_id: int) -> ExtractedItem:
        """Loads an item only if it belongs to the given receipt."""
        stmt = select(ExtractedItem).where(
            ExtractedItem.id == item_id,
            ExtractedItem.receipt_id == receipt_id
        )
        result = await self.session.execute(stmt)
        item = result.scalar_one_or_none()

        if not item:
            raise ResourceNotFoundError("ExtractedItem", item_id)

        return item

    async def list_for_receipt(self, receipt_id: int) -> Sequence[ExtractedItem]:
        stmt = (
            select(ExtractedItem)
            .where(ExtractedItem.receipt_id == receipt_id)
            .order_by(ExtractedItem.position, ExtractedItem.id)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    def apply_update(self, item: ExtractedItem, data: ExtractedItemUpdate) -> bool:
        """
        Applies user corrections in place. Returns True when anything was set.
        The caller owns the commit.
        """
        update_data = data.model_dump(exclude_unset=True)
        # name and quantity are required columns; null means "leave as is"
        update_data = {
            field: value for field, value in update_data.items()
            if value is not None or field in ("unit_price", "total_price")
        }
        if not update_data:
            return False

        for field, value in update_data.items():
            setattr(item, field, value)
        item.status = ExtractedItemStatus.EDITED

        logger.debug(f"Extracted item {item.id} edited: {sorted(update_data)}")
        return True
