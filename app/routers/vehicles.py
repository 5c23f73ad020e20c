from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.db import get_db
from app.schemas.vehicle import VehicleCreate, VehicleResponse, VehicleUpdate
from app.services.compliance.entities import EntityKind
from app.services.entity import EntityService

router = APIRouter()


async def _service(db: AsyncSession = Depends(get_db)) -> EntityService:
    return EntityService(db)


@router.get("", response_model=List[VehicleResponse])
async def list_vehicles(
    fleet_id: str = Depends(deps.get_current_fleet),
    service: EntityService = Depends(_service),
) -> List[VehicleResponse]:
    return await service.list_entities(EntityKind.VEHICLE, fleet_id)


@router.post("", response_model=VehicleResponse, status_code=status.HTTP_201_CREATED)
async def create_vehicle(
    payload: VehicleCreate,
    fleet_id: str = Depends(deps.get_current_fleet),
    service: EntityService = Depends(_service),
) -> VehicleResponse:
    return await service.create_entity(EntityKind.VEHICLE, fleet_id, payload)


@router.get("/{vehicle_id}", response_model=VehicleResponse)
async def get_vehicle(
    vehicle_id: str,
    fleet_id: str = Depends(deps.get_current_fleet),
    service: EntityService = Depends(_service),
) -> VehicleResponse:
    try:
        return await service.get_entity(EntityKind.VEHICLE, fleet_id, vehicle_id)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.patch("/{vehicle_id}", response_model=VehicleResponse)
async def update_vehicle(
    vehicle_id: str,
    payload: VehicleUpdate,
    fleet_id: str = Depends(deps.get_current_fleet),
    service: EntityService = Depends(_service),
) -> VehicleResponse:
    try:
        return await service.update_entity(EntityKind.VEHICLE, fleet_id, vehicle_id, payload)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.delete("/{vehicle_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_vehicle(
    vehicle_id: str,
    fleet_id: str = Depends(deps.get_current_fleet),
    service: EntityService = Depends(_service),
) -> None:
    try:
        await service.delete_entity(EntityKind.VEHICLE, fleet_id, vehicle_id)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
