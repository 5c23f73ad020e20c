from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.db import get_db
from app.schemas.alert import AlertResponse
from app.services.entity import EntityService

router = APIRouter()


async def _service(db: AsyncSession = Depends(get_db)) -> EntityService:
    return EntityService(db)


@router.get("", response_model=List[AlertResponse])
async def list_alerts(
    status: Optional[str] = Query(default=None, pattern="^(queued|sent|failed)$"),
    limit: int = Query(default=100, ge=1, le=500),
    fleet_id: str = Depends(deps.get_current_fleet),
    service: EntityService = Depends(_service),
) -> List[AlertResponse]:
    return await service.list_alerts(fleet_id, status=status, limit=limit)
