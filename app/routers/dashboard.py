from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.db import get_db
from app.schemas.dashboard import DashboardResponse
from app.services.entity import EntityService

router = APIRouter()


async def _service(db: AsyncSession = Depends(get_db)) -> EntityService:
    return EntityService(db)


@router.get("", response_model=DashboardResponse)
async def get_dashboard(
    fleet_id: str = Depends(deps.get_current_fleet),
    service: EntityService = Depends(_service),
) -> DashboardResponse:
    return await service.dashboard(fleet_id)
