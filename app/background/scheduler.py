from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from app.core.config import get_settings
from app.core.db import AsyncSessionFactory
from app.services.alerts.expiration import ExpirationAlertService
from app.services.alerts.retry import AlertRetryService

logger = logging.getLogger(__name__)
settings = get_settings()

alert_scheduler = AsyncIOScheduler()


async def run_expiration_sweep_job() -> None:
    async with AsyncSessionFactory() as session:
        try:
            result = await ExpirationAlertService(session).run_expiration_sweep()
            logger.info(
                "expiration_sweep",
                extra={"processed": result.processed, "alerts_sent": result.alerts_sent, "errors": len(result.errors)},
            )
        except Exception as exc:
            logger.exception("Expiration sweep job failed", extra={"error": str(exc)})


async def run_alert_retry_job() -> None:
    async with AsyncSessionFactory() as session:
        try:
            result = await AlertRetryService(session).run_retry_sweep()
            logger.info(
                "alert_retry_sweep",
                extra={"retried": result.retried, "still_failed": result.still_failed, "errors": len(result.errors)},
            )
        except Exception as exc:
            logger.exception("Alert retry job failed", extra={"error": str(exc)})


def start_scheduler() -> None:
    if alert_scheduler.running:
        return
    alert_scheduler.add_job(run_expiration_sweep_job, "cron", hour=settings.expiration_sweep_hour, minute=0, id="expiration-sweep", max_instances=1, coalesce=True)
    alert_scheduler.add_job(run_alert_retry_job, "interval", minutes=settings.retry_interval_minutes, id="alert-retry", max_instances=1, coalesce=True)
    alert_scheduler.start()
    logger.info(
        "Alert scheduler started",
        extra={"sweep_hour": settings.expiration_sweep_hour, "retry_interval_minutes": settings.retry_interval_minutes},
    )


def shutdown_scheduler() -> None:
    if alert_scheduler.running:
        alert_scheduler.shutdown(wait=False)
        logger.info("Alert scheduler stopped")
