import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from app.api.router import api_router
from app.background.scheduler import shutdown_scheduler, start_scheduler
from app.core.config import get_settings
from app.core.db import init_database, test_database_connection

settings = get_settings()
logger = logging.getLogger(__name__)

DB_INIT_TIMEOUT_SECONDS = 30.0

database_state: Dict[str, Any] = {"ready": False, "error": None}


async def prepare_database() -> None:
    """Connect and create missing tables without blocking startup."""
    if not await test_database_connection():
        database_state["error"] = "Database connection failed"
        logger.error("database_unreachable")
        return
    try:
        await asyncio.wait_for(init_database(), timeout=DB_INIT_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        database_state["error"] = f"Database initialization timed out after {DB_INIT_TIMEOUT_SECONDS:.0f}s"
        logger.error("database_init_timeout")
        return
    except Exception as exc:
        database_state["error"] = str(exc)
        logger.exception("database_init_failed")
        return
    database_state.update(ready=True, error=None)
    logger.info("database_ready")


@asynccontextmanager
async def lifespan(_: FastAPI):
    logger.info("roadready_starting", extra={"environment": settings.environment})
    # Health probes answer while the database is still coming up
    init_task = asyncio.create_task(prepare_database())

    if settings.enable_scheduler:
        try:
            start_scheduler()
        except Exception:
            logger.exception("Error starting alert scheduler")

    yield

    shutdown_scheduler()
    if not init_task.done():
        init_task.cancel()
    logger.info("roadready_stopped")


app = FastAPI(
    title=settings.project_name,
    debug=settings.debug,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.backend_cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept", "Origin"],
)

app.include_router(api_router, prefix="/api")


@app.get("/", tags=["Health"])
async def root() -> dict[str, str]:
    return {"status": "ok", "service": settings.project_name}


@app.get("/ready", tags=["Health"])
async def readiness_check() -> dict:
    if not database_state["ready"]:
        raise HTTPException(
            status_code=503,
            detail={"status": "not_ready", "database_ready": False, "error": database_state["error"]},
        )
    return {"status": "ready", "database_ready": True}
