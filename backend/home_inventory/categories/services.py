import logging
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from home_inventory.common.services import AppService
from home_inventory.common.exceptions import ResourceAlreadyExistsError
from home_inventory.categories.models import Category
from home_inventory.categories.schemas import CategoryCreate, CategoryUpdate, CategoryResponse
from home_inventory.categories.exceptions import CategoryInUseError
from home_inventory.inventory.models import InventoryItem

logger = logging.getLogger(__name__)

class CategoryService(AppService[Category, CategoryCreate, CategoryUpdate]):
    # Uniqueness is checked case-insensitively by _ensure_unique_name

    def __init__(self, session: AsyncSession):
        super().__init__(model=Category, session=session)

    async def get_category(self, category_id: int) -> CategoryResponse:
        category = await self.get_by_id(category_id)
        return await self._to_response(category)

    async def list_categories(self, skip: int = 0, limit: int = 100, search: Optional[str] = None) -> dict[str, Any]:
        """
        Paginated categories ordered by name, each with its inventory item count.

        Args:
            search: Case-insensitive substring of the category name
        """
        filters = [Category.name.ilike(f"%{search}%")] if search else []

        count_stmt = select(func.count()).select_from(Category).where(*filters)
        total = (await self.session.execute(count_stmt)).scalar() or 0

        items_count_subq = (
            select(func.count(InventoryItem.id))
            .where(InventoryItem.category_id == Category.id)
            .scalar_subquery()
        )
        stmt = (
            select(Category, items_count_subq.label("items_count"))
            .where(*filters)
            .order_by(Category.name)
            .offset(skip)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        rows = (await self.session.execute(stmt)).all()

        items = []
        for category, items_count in rows:
            response = CategoryResponse.model_validate(category)
            response.items_count = items_count or 0
            items.append(response)

        return {"items": items, "total": total, "skip": skip, "limit": limit}

    async def create(self, data: CategoryCreate) -> CategoryResponse:
        await self._ensure_unique_name(data.name)

        new_category = Category(name=data.name, description=data.description)
        self.session.add(new_category)

        try:
            await self.session.commit()
            await self.session.refresh(new_category)
        except IntegrityError as e:
            await self.session.rollback()
            raise ResourceAlreadyExistsError("Category", "name", data.name) from e

        logger.info(f"Created category id={new_category.id} name='{new_category.name}'")
        return await self._to_response(new_category)

    async def update(self, category_id: int, data: CategoryUpdate) -> CategoryResponse:
        category = await self.get_by_id(category_id)
        update_data = data.model_dump(exclude_unset=True)

        if update_data.get("name") not in (None, category.name):
            await self._ensure_unique_name(update_data["name"], exclude_id=category_id)

        # name is required; an explicit null leaves it unchanged
        if update_data.get("name", "") is None:
            del update_data["name"]

        if update_data:
            for key, value in update_data.items():
                setattr(category, key, value)
            try:
                await self.session.commit()
                await self.session.refresh(category)
            except IntegrityError as e:
                await self.session.rollback()
                raise ResourceAlreadyExistsError("Category", "name", data.name) from e

        return await self._to_response(category)

    async def delete(self, category_id: int) -> None:
        category = await self.get_by_id(category_id)

        # Inventory items keep a hard reference to their category
        if await self._exists(InventoryItem, InventoryItem.category_id, category_id):
            raise CategoryInUseError(category_id)

        await self.session.delete(category)

        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()

            if self._is_foreign_key_violation(e):
                raise CategoryInUseError(category_id) from e

            raise e

        logger.info(f"Deleted category id={category_id}")

    async def _ensure_unique_name(self, name: str, exclude_id: Optional[int] = None) -> None:
        """'Tools' and 'tools' are the same category."""
        stmt = select(Category.id).where(func.lower(Category.name) == name.lower())
        if exclude_id is not None:
            stmt = stmt.where(Category.id != exclude_id)
        result = await self.session.execute(stmt)
        if result.first() is not None:
            raise ResourceAlreadyExistsError("Category", "name", name)

    async def _to_response(self, category: Category) -> CategoryResponse:
        """Category with the number of inventory items filed under it."""
        count_stmt = select(func.count(InventoryItem.id)).where(InventoryItem.category_id == category.id)
        items_count = (await self.session.execute(count_stmt)).scalar() or 0

        response = CategoryResponse.model_validate(category)
        response.items_count = items_count
        return response
