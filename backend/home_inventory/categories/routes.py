from typing import Annotated, Optional

from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from home_inventory.db.main import get_session
from home_inventory.categories.schemas import (
    CategoryCreate,
    CategoryUpdate,
    CategoryResponse,
    CategoryListResponse
)
from home_inventory.categories.services import CategoryService

router = APIRouter()

async def get_category_service(session: Annotated[AsyncSession, Depends(get_session)]) -> CategoryService:
    return CategoryService(session)

ServiceDependency = Annotated[CategoryService, Depends(get_category_service)]

@router.get("/", response_model=CategoryListResponse, status_code=status.HTTP_200_OK, summary="List categories with item counts")
async def get_categories(
    service: ServiceDependency,
    search: Optional[str] = Query(None, min_length=1, max_length=255, description="Filter by part of the name"),
    skip: int = Query(0, ge=0, description="Number of items to skip"),
    limit: int = Query(100, ge=1, le=100, description="Max number of items to return")
):
    return await service.list_categories(skip=skip, limit=limit, search=search)

@router.get("/{category_id}", response_model=CategoryResponse, status_code=status.HTTP_200_OK, summary="Get category by ID")
async def get_category(category_id: int, service: ServiceDependency):
    return await service.get_category(category_id)


@router.post("/", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED, summary="Create a category")
async def create_category(data: CategoryCreate, service: ServiceDependency):
    """
    Names are unique ignoring case: "Tools" and "tools" conflict (409).
    """
    return await service.create(data)


@router.patch("/{category_id}", response_model=CategoryResponse, status_code=status.HTTP_200_OK, summary="Rename or describe a category")
async def update_category(category_id: int, data: CategoryUpdate, service: ServiceDependency):
    return await service.update(category_id, data)


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete an unused category")
async def delete_category(category_id: int, service: ServiceDependency):
    """
    Fails with 409 while inventory items still use the category.
    """
    await service.delete(category_id)
    return None
