from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.sql.elements import ColumnElement
from home_inventory.common.exceptions import ResourceAlreadyExistsError, ResourceNotFoundError
from home_inventory.common.schemas import AppBaseModel
from typing import Any, TypeVar, Generic, Type, Optional, Sequence


ModelType = TypeVar("ModelType", bound=DeclarativeBase)
CreateSchemaType = TypeVar("CreateSchemaType", bound=AppBaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=AppBaseModel)

class AppService(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    """
    Base service class that provides common functionality
    like session management and generic validation checks.
    """

    # NOT NULL columns: an explicit null in an update payload leaves them unchanged
    required_fields: tuple[str, ...] = ()

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        self.model = model
        self.session = session

    async def get_by_id(self, id: int) -> ModelType:
        stmt = select(self.model).where(self.model.id == id).execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        obj = result.scalar_one_or_none()

        if not obj:
            raise ResourceNotFoundError(self.model.__name__, id)

        return obj

    async def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        filters: Optional[Sequence[ColumnElement]] = None
    ) -> dict[str, Any]:
        filters = list(filters or [])

        count_stmt = select(func.count()).select_from(self.model).where(*filters)
        count_result = await self.session.execute(count_stmt)
        total = count_result.scalar() or 0

        stmt = (
            select(self.model)
            .where(*filters)
            .offset(skip)
            .limit(limit)
            .order_by(self.model.id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return {"items": result.scalars().all(), "total": total, "skip": skip, "limit": limit}

    async def update(self, id: int, data: UpdateSchemaType) -> ModelType:
        db_obj = await self.get_by_id(id)

        update_data = {
            field: value for field, value in data.model_dump(exclude_unset=True).items()
            if value is not None or field not in self.required_fields
        }

        if not update_data:
            return db_obj

        for field, value in update_data.items():
            if hasattr(db_obj, field):
                setattr(db_obj, field, value)

        self.session.add(db_obj)
        try:
            await self.session.commit()
            await self.session.refresh(db_obj)
        except IntegrityError as e:
            await self.session.rollback()
            raise e

        return db_obj

    async def delete(self, id: int) -> None:
        db_obj = await self.get_by_id(id)

        await self.session.delete(db_obj)
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise e

    async def _ensure_unique(self, model: Type[ModelType], field: ColumnElement, value: Any, resource_name: str, field_name: str) -> None:
        """
        Generic check if a record with a given field value already exists.

        Args:
            model: The SQLAlchemy model class (e.g., Category)
            field: The SQLAlchemy column attribute (e.g., Category.name)
            value: The value to check
            resource_name: Name of the resource for the error message (e.g., "Category")
            field_name: Name of the field for the error message (e.g., "name")
        """
        stmt = select(model).where(field == value)
        result = await self.session.execute(stmt)
        if result.scalars().first():
            raise ResourceAlreadyExistsError(resource_name, field_name, value)

    async def _ensure_exists(self, model: Type[ModelType], field: ColumnElement, value: Any, resource_name: str) -> None:
        """
        Generic check to ensure a related record exists (e.g. parent_id).

        Args:
            model: The SQLAlchemy model class (e.g., Location)
            field: The SQLAlchemy column attribute (e.g., Location.id)
            value: The value to check
            resource_name: Name of the resource for the error message (e.g., "Parent Location")
        """
        if not await self._exists(model, field, value):
            raise ResourceNotFoundError(resource_name, value)

    async def _exists(self, model: Type[ModelType], field: ColumnElement, value: Any) -> bool:
        stmt = select(func.count()).select_from(model).where(field == value)
        result = await self.session.execute(stmt)
        return (result.scalar() or 0) > 0

    def _is_foreign_key_violation(self, e: IntegrityError) -> bool:
        """
        Checks if the IntegrityError is caused by a foreign key violation.
        Supports asyncpg (sqlstate), psycopg2 (pgcode) and SQLite (message).

        Args:
            e: The IntegrityError object

        Returns:
            True if the IntegrityError is caused by a foreign key violation, False otherwise
        """
        # asyncpg puts sqlstate in e.orig.sqlstate
        if getattr(e.orig, 'sqlstate', None) == '23503':
            return True
        # psycopg2 puts pgcode in e.orig.pgcode
        if getattr(e.orig, 'pgcode', None) == '23503':
            return True
        return "FOREIGN KEY constraint failed" in str(e.orig)
