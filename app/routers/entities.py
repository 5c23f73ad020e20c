from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.db import get_db
from app.schemas.dashboard import RecalculateResponse
from app.services.entity import EntityService

router = APIRouter()


async def _service(db: AsyncSession = Depends(get_db)) -> EntityService:
    return EntityService(db)


@router.post("/{entity_type}/{entity_id}/recalculate-status", response_model=RecalculateResponse)
async def recalculate_status(
    entity_type: str,
    entity_id: str,
    fleet_id: str = Depends(deps.get_current_fleet),
    service: EntityService = Depends(_service),
) -> RecalculateResponse:
    try:
        result = await service.recalculate(entity_type, fleet_id, entity_id)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return RecalculateResponse(
        entity_type=entity_type.lower(),
        entity_id=entity_id,
        status=result.status,
        reason=result.reason,
        missing_docs=result.missing_docs or [],
        expired_docs=result.expired_docs or [],
        expiring_soon_docs=[doc.doc_type for doc in result.expiring_soon_docs or []],
    )
