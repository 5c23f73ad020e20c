from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.services.health import HealthService

router = APIRouter()


@router.get("/healthz", summary="Health check")
async def health_check() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/health", summary="Dependency diagnostics")
async def health_report(db: AsyncSession = Depends(get_db)) -> JSONResponse:
    report: Dict[str, Any] = await HealthService(db).report()
    status_code = 200 if report["checks"].get("database") == "ok" else 503
    return JSONResponse(status_code=status_code, content=jsonable_encoder(report))
