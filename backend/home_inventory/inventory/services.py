import logging
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from home_inventory.common.services import AppService
from home_inventory.categories.models import Category
from home_inventory.locations.models import Location
from home_inventory.inventory.models import InventoryItem
from home_inventory.inventory.schemas import InventoryItemCreate, InventoryItemUpdate

logger = logging.getLogger(__name__)


class InventoryItemService(AppService[InventoryItem, InventoryItemCreate, InventoryItemUpdate]):
    required_fields = ("name", "quantity", "category_id", "location_id")

    def __init__(self, session: AsyncSession):
        super().__init__(model=InventoryItem, session=session)

    async def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        receipt_id: Optional[int] = None,
        category_id: Optional[int] = None,
        location_id: Optional[int] = None
    ) -> dict[str, Any]:
        filters = []
        if receipt_id is not None:
            filters.append(InventoryItem.receipt_id == receipt_id)
        if category_id is not None:
            filters.append(InventoryItem.category_id == category_id)
        if location_id is not None:
            filters.append(InventoryItem.location_id == location_id)

        return await super().get_all(skip=skip, limit=limit, filters=filters)

    async def create(self, data: InventoryItemCreate) -> InventoryItem:
        await self._ensure_references(data.category_id, data.location_id)

        item = InventoryItem(**data.model_dump())
        self.session.add(item)

        try:
            await self.session.commit()
            await self.session.refresh(item)
        except IntegrityError as e:
            await self.session.rollback()
            if self._is_foreign_key_violation(e):
                raise ValueError("Foreign key violation") from e
            raise e

        logger.info(f"Created inventory item id={item.id} name='{item.name}'")
        return item

    async def update(self, item_id: int, data: InventoryItemUpdate) -> InventoryItem:
        update_data = data.model_dump(exclude_unset=True)
        await self._ensure_references(update_data.get("category_id"), update_data.get("location_id"))
        return await super().update(item_id, data)

    async def _ensure_references(self, category_id: Optional[int], location_id: Optional[int]) -> None:
        if category_id is not None:
            await self._ensure_exists(model=Category, field=Category.id, value=category_id, resource_name="Category")
        if location_id is not None:
            await self._ensure_exists(model=Location, field=Location.id, value=location_id, resource_name="Location")
