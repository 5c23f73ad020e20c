from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.db import get_db
from app.schemas.document import ReviewQueueItem
from app.services.document import DocumentService

router = APIRouter()


async def _service(db: AsyncSession = Depends(get_db)) -> DocumentService:
    return DocumentService(db)


@router.get("", response_model=List[ReviewQueueItem])
async def review_queue(
    fleet_id: str = Depends(deps.get_current_fleet),
    service: DocumentService = Depends(_service),
) -> List[ReviewQueueItem]:
    return await service.review_queue(fleet_id)
