from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import clock
from app.core.config import Settings, get_settings
from app.models.alert import Alert
from app.models.document import Document
from app.services.storage import StorageService

logger = logging.getLogger(__name__)


class HealthService:
    def __init__(
        self,
        db: AsyncSession,
        storage: Optional[StorageService] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.db = db
        self.settings = settings or get_settings()
        self.storage = storage or StorageService(self.settings)

    async def report(self) -> Dict[str, Any]:
        """Dependency checks plus review/alert counters.

        Email is required for alerting, so its absence degrades the service. SMS is optional.
        """
        checks: Dict[str, str] = {}
        metrics: Dict[str, int] = {}

        try:
            await self.db.execute(text("SELECT 1"))
            checks["database"] = "ok"
            metrics["pending_reviews"] = await self.db.scalar(
                select(func.count(Document.id)).where(Document.needs_review.is_(True))
            ) or 0
            metrics["failed_alerts_24h"] = await self.db.scalar(
                select(func.count(Alert.id)).where(
                    Alert.status == "failed",
                    Alert.created_at >= clock.utc_now() - timedelta(hours=24),
                )
            ) or 0
        except Exception as exc:
            logger.exception("Health check database query failed", extra={"error": str(exc)})
            checks["database"] = "error"

        if not self.storage.configured:
            checks["storage"] = "not_configured"
        else:
            checks["storage"] = "ok" if await self.storage.check_connection() else "error"

        checks["email"] = "ok" if self.settings.email_configured else "not_configured"
        checks["sms"] = "ok" if self.settings.sms_configured else "not_configured"

        degraded = any(checks[name] != "ok" for name in ("database", "storage", "email"))
        return {
            "status": "degraded" if degraded else "ok",
            "timestamp": clock.utc_now(),
            "checks": checks,
            "metrics": metrics,
        }
