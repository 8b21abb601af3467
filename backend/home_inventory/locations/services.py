import logging
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from home_inventory.common.services import AppService
from home_inventory.common.exceptions import ResourceAlreadyExistsError
from home_inventory.locations.models import Location
from home_inventory.locations.schemas import LocationCreate, LocationUpdate
from home_inventory.locations.exceptions import (
    LocationCycleError,
    LocationHasChildrenError,
    LocationInUseError
)
from home_inventory.inventory.models import InventoryItem

logger = logging.getLogger(__name__)

class LocationService(AppService[Location, LocationCreate, LocationUpdate]):
    def __init__(self, session: AsyncSession):
        super().__init__(model=Location, session=session)

    async def create(self, data: LocationCreate) -> Location:
        await self._ensure_unique(model=Location, field=Location.name, value=data.name, resource_name="Location", field_name="name")

        # Parent Existence Check (Referential Integrity check before DB hit)
        if data.parent_id:
            await self._ensure_exists(model=Location, field=Location.id, value=data.parent_id, resource_name="Parent Location")

        new_location = Location(
            name=data.name,
            description=data.description,
            parent_id=data.parent_id
        )

        self.session.add(new_location)

        try:
            await self.session.commit()
            await self.session.refresh(new_location)
        except IntegrityError as e:
            await self.session.rollback()
            raise ResourceAlreadyExistsError("Location", "name", data.name) from e

        return new_location

    async def update(self, location_id: int, data: LocationUpdate) -> Location:
        location = await self.get_by_id(location_id)

        update_data = data.model_dump(exclude_unset=True)

        if not update_data:
            return location

        if "name" in update_data and update_data["name"] != location.name:
            await self._ensure_unique(model=Location, field=Location.name, value=update_data["name"], resource_name="Location", field_name="name")

        if "parent_id" in update_data and update_data["parent_id"] != location.parent_id:
            new_parent_id = update_data["parent_id"]
            if new_parent_id is not None:
                await self._ensure_exists(model=Location, field=Location.id, value=new_parent_id, resource_name="Parent Location")

                # The new parent must not be the location itself or one of its descendants
                if await self._check_is_descendant(ancestor_id=location.id, descendant_id=new_parent_id):
                    raise LocationCycleError()

        for key, value in update_data.items():
            setattr(location, key, value)

        try:
            await self.session.commit()
            await self.session.refresh(location)
        except IntegrityError as e:
            await self.session.rollback()
            raise ResourceAlreadyExistsError("Location", "name", data.name) from e

        return location

    async def delete(self, location_id: int) -> None:
        location = await self.get_by_id(location_id)

        if await self._exists(Location, Location.parent_id, location_id):
            raise LocationHasChildrenError()

        if await self._exists(InventoryItem, InventoryItem.location_id, location_id):
            raise LocationInUseError(location_id)

        await self.session.delete(location)

        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()

            if self._is_foreign_key_violation(e):
                raise LocationHasChildrenError() from e

            raise e

    async def _check_is_descendant(self, ancestor_id: int, descendant_id: int) -> bool:
        """
        Checks if descendant_id is actually a descendant of ancestor_id (or the same).
        Used to prevent cycles when moving a location.
        """
        if ancestor_id == descendant_id:
            return True

        # Recursive CTE to walk up the tree (from descendant to root)
        cte = select(Location.id, Location.parent_id).where(Location.id == descendant_id).cte(name="ancestry", recursive=True)

        parent_alias = select(Location.id, Location.parent_id).join(cte, Location.id == cte.c.parent_id)
        cte = cte.union_all(parent_alias)

        stmt = select(cte.c.id).where(cte.c.id == ancestor_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None
