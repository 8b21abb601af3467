from typing import Annotated, Optional

from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from home_inventory.db.main import get_session
from home_inventory.inventory.schemas import (
    InventoryItemCreate,
    InventoryItemUpdate,
    InventoryItemResponse,
    InventoryItemListResponse
)
from home_inventory.inventory.services import InventoryItemService

router = APIRouter()

async def get_inventory_item_service(session: Annotated[AsyncSession, Depends(get_session)]) -> InventoryItemService:
    return InventoryItemService(session)

ServiceDependency = Annotated[InventoryItemService, Depends(get_inventory_item_service)]

@router.get("/", response_model=InventoryItemListResponse, status_code=status.HTTP_200_OK, summary="List inventory items")
async def get_inventory_items(
    service: ServiceDependency,
    receipt_id: Optional[int] = Query(None, gt=0, description="Only items created from this receipt"),
    category_id: Optional[int] = Query(None, gt=0),
    location_id: Optional[int] = Query(None, gt=0),
    skip: int = Query(0, ge=0, description="Number of items to skip"),
    limit: int = Query(100, ge=1, le=100, description="Max number of items to return")
):
    return await service.get_all(skip=skip, limit=limit, receipt_id=receipt_id, category_id=category_id, location_id=location_id)

@router.get("/{item_id}", response_model=InventoryItemResponse, status_code=status.HTTP_200_OK, summary="Get inventory item by ID")
async def get_inventory_item(item_id: int, service: ServiceDependency):
    return await service.get_by_id(item_id)


@router.post("/", response_model=InventoryItemResponse, status_code=status.HTTP_201_CREATED, summary="Create an inventory item")
async def create_inventory_item(data: InventoryItemCreate, service: ServiceDependency):
    return await service.create(data)


@router.patch("/{item_id}", response_model=InventoryItemResponse, status_code=status.HTTP_200_OK, summary="Update an inventory item")
async def update_inventory_item(item_id: int, data: InventoryItemUpdate, service: ServiceDependency):
    return await service.update(item_id, data)


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete an inventory item")
async def delete_inventory_item(item_id: int, service: ServiceDependency):
    await service.delete(item_id)
    return None
