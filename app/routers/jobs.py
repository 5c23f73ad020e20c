from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.db import get_db
from app.schemas.alert import ExpirationSweepResult, RetrySweepResult
from app.services.alerts.expiration import ExpirationAlertService
from app.services.alerts.retry import AlertRetryService

router = APIRouter(dependencies=[Depends(deps.verify_cron_secret)])


async def _expiration_service(db: AsyncSession = Depends(get_db)) -> ExpirationAlertService:
    return ExpirationAlertService(db)


async def _retry_service(db: AsyncSession = Depends(get_db)) -> AlertRetryService:
    return AlertRetryService(db)


@router.get("/check-expirations", response_model=ExpirationSweepResult)
async def check_expirations(
    service: ExpirationAlertService = Depends(_expiration_service),
) -> ExpirationSweepResult:
    return await service.run_expiration_sweep()


@router.get("/retry-failed-alerts", response_model=RetrySweepResult)
async def retry_failed_alerts(
    service: AlertRetryService = Depends(_retry_service),
) -> RetrySweepResult:
    return await service.run_retry_sweep()
