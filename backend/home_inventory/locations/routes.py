from typing import Annotated

from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from home_inventory.db.main import get_session
from home_inventory.locations.schemas import (
    LocationCreate,
    LocationUpdate,
    LocationResponse,
    LocationListResponse
)
from home_inventory.locations.services import LocationService

router = APIRouter()

async def get_location_service(session: Annotated[AsyncSession, Depends(get_session)]) -> LocationService:
    return LocationService(session)

ServiceDependency = Annotated[LocationService, Depends(get_location_service)]

@router.get("/", response_model=LocationListResponse, status_code=status.HTTP_200_OK, summary="List all locations")
async def get_locations(service: ServiceDependency, skip: int = Query(0, ge=0, description="Number of items to skip"), limit: int = Query(100, ge=1, le=100, description="Max number of items to return")):
    return await service.get_all(skip=skip, limit=limit)

@router.get("/{location_id}", response_model=LocationResponse, status_code=status.HTTP_200_OK, summary="Get location by ID")
async def get_location(location_id: int, service: ServiceDependency):
    return await service.get_by_id(location_id)


@router.post("/", response_model=LocationResponse, status_code=status.HTTP_201_CREATED, summary="Create a new location")
async def create_location(data: LocationCreate, service: ServiceDependency):
    return await service.create(data)


@router.patch("/{location_id}", response_model=LocationResponse, status_code=status.HTTP_200_OK, summary="Update a location")
async def update_location(location_id: int, data: LocationUpdate, service: ServiceDependency):
    return await service.update(location_id, data)


@router.delete("/{location_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a location")
async def delete_location(location_id: int, service: ServiceDependency):
    await service.delete(location_id)
    return None
