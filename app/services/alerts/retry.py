from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import clock
from app.core.config import Settings, get_settings
from app.models.alert import Alert
from app.models.document import Document
from app.models.fleet import Fleet
from app.schemas.alert import RetrySweepResult
from app.services.alerts.expiration import send_safely
from app.services.alerts.messages import AlertItem, build_alert_email, build_digest_email, build_sms_text
from app.services.alerts.owner import DatabaseOwnerLookup, FleetOwnerLookup, OwnerContact
from app.services.compliance.entities import EntityKind, get_entity
from app.services.compliance.status_engine import EXPIRING_SOON, days_until
from app.services.notifications import (
    DeliveryResult,
    EmailSender,
    SMSSender,
    build_email_sender,
    build_sms_sender,
)

logger = logging.getLogger(__name__)


class AlertRetryService:
    """Re-sends alerts logged as failed, updating each row in place.

    There is no attempt ceiling: a row that keeps failing is picked up by every run
    until it ages out of the lookback window.
    """

    def __init__(
        self,
        db: AsyncSession,
        email_sender: Optional[EmailSender] = None,
        sms_sender: Optional[SMSSender] = None,
        owner_lookup: Optional[FleetOwnerLookup] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.db = db
        self.email_sender = email_sender or build_email_sender()
        self.sms_sender = sms_sender or build_sms_sender()
        self.owner_lookup = owner_lookup or DatabaseOwnerLookup(db)
        self.settings = settings or get_settings()

    async def run_retry_sweep(self, now: Optional[datetime] = None) -> RetrySweepResult:
        now = now or clock.utc_now()
        result = RetrySweepResult(timestamp=now)
        since = now - timedelta(hours=self.settings.alert_retry_lookback_hours)

        rows = await self.db.execute(
            select(Alert)
            .where(Alert.status == "failed", Alert.created_at >= since)
            .order_by(Alert.created_at.asc(), Alert.id)
            .limit(self.settings.alert_retry_batch_size)
        )
        failed = list(rows.scalars().all())
        if not failed:
            result.message = "No failed alerts to retry"
            return result

        by_fleet: Dict[str, List[str]] = {}
        for alert in failed:
            by_fleet.setdefault(alert.fleet_id, []).append(alert.id)

        for fleet_id, alert_ids in by_fleet.items():
            try:
                await self._retry_fleet(fleet_id, alert_ids, now, result)
            except Exception as exc:
                await self.db.rollback()
                logger.exception("Alert retry failed for fleet", extra={"fleet_id": fleet_id})
                result.errors.append(f"Fleet {fleet_id}: {exc}")

        logger.info(
            "alert_retry_complete",
            extra={"retried": result.retried, "still_failed": result.still_failed, "errors": len(result.errors)},
        )
        return result

    async def _retry_fleet(self, fleet_id: str, alert_ids: List[str], now: datetime, result: RetrySweepResult) -> None:
        fleet = await self.db.get(Fleet, fleet_id)
        if fleet is None:
            result.errors.append(f"Fleet {fleet_id}: Not found")
            return
        owner = await self.owner_lookup.get_owner_contact(fleet)
        today = now.date()

        digest: List[Tuple[str, AlertItem]] = []
        for alert_id in alert_ids:
            alert = await self.db.get(Alert, alert_id)
            if alert is None:
                continue
            try:
                item = await self._rebuild_item(alert, today)
                if alert.channel == "email" and alert.reason == EXPIRING_SOON:
                    # Re-batched below into a single digest for the fleet
                    digest.append((alert_id, item))
                    continue
                outcome = await self._resend(alert, item, owner)
                await self._record(alert_id, outcome, now, result)
            except Exception as exc:
                await self.db.rollback()
                logger.exception("Alert retry raised", extra={"alert_id": alert_id})
                result.errors.append(f"Alert {alert_id}: {exc}")
                result.still_failed += 1

        if digest:
            subject, html_body, text_body = build_digest_email([item for _, item in digest])
            outcome = await send_safely(
                self.email_sender.send(owner.email, subject, html_body, text_body), "email", owner.email
            )
            for alert_id, _ in digest:
                await self._record(alert_id, outcome, now, result)

    async def _rebuild_item(self, alert: Alert, today: date) -> AlertItem:
        """Message context from the document and entity as they are now, not as they were."""
        document_type = "Document"
        entity_name = "Unknown"
        expiration_date: Optional[date] = None
        entity_type = alert.entity_type or EntityKind.VEHICLE.value

        doc = await self.db.get(Document, alert.document_id) if alert.document_id else None
        if doc is not None:
            document_type = doc.doc_type
            expiration_date = doc.expiration_date
            entity_type = doc.entity_type
            entity = await get_entity(self.db, EntityKind(doc.entity_type), doc.entity_id, doc.fleet_id)
            if entity is not None:
                entity_name = entity.display_name or entity_name

        return AlertItem(
            entity_type=entity_type,
            entity_name=entity_name,
            document_type=document_type,
            expiration_date=expiration_date,
            reason=alert.reason,
            days_until_expiration=days_until(expiration_date, today) if expiration_date else None,
        )

    async def _resend(self, alert: Alert, item: AlertItem, owner: OwnerContact) -> DeliveryResult:
        if alert.channel == "email":
            subject, html_body, text_body = build_alert_email(item)
            return await send_safely(
                self.email_sender.send(owner.email, subject, html_body, text_body), "email", owner.email
            )
        if alert.channel == "sms":
            if not owner.phone:
                return DeliveryResult(False, error="Owner has no phone number")
            return await send_safely(self.sms_sender.send(owner.phone, build_sms_text(item)), "sms", owner.phone)
        return DeliveryResult(False, error=f"Unknown channel '{alert.channel}'")

    async def _record(self, alert_id: str, outcome: DeliveryResult, now: datetime, result: RetrySweepResult) -> None:
        alert = await self.db.get(Alert, alert_id)
        if alert is None:
            return
        alert.status = "sent" if outcome.success else "failed"
        alert.error = outcome.error
        alert.message_id = outcome.message_id or alert.message_id
        alert.sent_at = now if outcome.success else None
        alert.updated_at = now
        try:
            await self.db.commit()
        except Exception as exc:
            await self.db.rollback()
            logger.exception("Failed to update alert", extra={"alert_id": alert_id})
            result.errors.append(f"Alert {alert_id}: Failed to update - {exc}")
            return
        if outcome.success:
            result.retried += 1
        else:
            result.still_failed += 1
