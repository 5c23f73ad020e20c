from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.db import get_db
from app.schemas.driver import DriverCreate, DriverResponse, DriverUpdate
from app.services.compliance.entities import EntityKind
from app.services.entity import EntityService

router = APIRouter()


async def _service(db: AsyncSession = Depends(get_db)) -> EntityService:
    return EntityService(db)


@router.get("", response_model=List[DriverResponse])
async def list_drivers(
    fleet_id: str = Depends(deps.get_current_fleet),
    service: EntityService = Depends(_service),
) -> List[DriverResponse]:
    return await service.list_entities(EntityKind.DRIVER, fleet_id)


@router.post("", response_model=DriverResponse, status_code=status.HTTP_201_CREATED)
async def create_driver(
    payload: DriverCreate,
    fleet_id: str = Depends(deps.get_current_fleet),
    service: EntityService = Depends(_service),
) -> DriverResponse:
    return await service.create_entity(EntityKind.DRIVER, fleet_id, payload)


@router.get("/{driver_id}", response_model=DriverResponse)
async def get_driver(
    driver_id: str,
    fleet_id: str = Depends(deps.get_current_fleet),
    service: EntityService = Depends(_service),
) -> DriverResponse:
    try:
        return await service.get_entity(EntityKind.DRIVER, fleet_id, driver_id)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.patch("/{driver_id}", response_model=DriverResponse)
async def update_driver(
    driver_id: str,
    payload: DriverUpdate,
    fleet_id: str = Depends(deps.get_current_fleet),
    service: EntityService = Depends(_service),
) -> DriverResponse:
    try:
        return await service.update_entity(EntityKind.DRIVER, fleet_id, driver_id, payload)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.delete("/{driver_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_driver(
    driver_id: str,
    fleet_id: str = Depends(deps.get_current_fleet),
    service: EntityService = Depends(_service),
) -> None:
    try:
        await service.delete_entity(EntityKind.DRIVER, fleet_id, driver_id)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
