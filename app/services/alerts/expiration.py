"""Daily expiration sweep.

For every fleet: classify dated documents, skip any document already alerted in
the dedup window, send one urgent email (plus SMS) per expired document and one
digest email for everything expiring soon, and log an Alert row for every
attempt. The window check is a best-effort guard: two sweeps that overlap on the
same fleet can both pass it and double-send. The in-process scheduler never runs
two sweeps at once; an external trigger racing it is an accepted risk.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Set, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import clock
from app.core.config import Settings, get_settings
from app.models.alert import Alert
from app.models.document import Document
from app.models.fleet import Fleet
from app.schemas.alert import ExpirationSweepResult
from app.services.alerts.messages import AlertItem, build_alert_email, build_digest_email, build_sms_text
from app.services.alerts.owner import DatabaseOwnerLookup, FleetOwnerLookup, OwnerContact
from app.services.compliance.entities import ENTITY_MODELS, EntityKind
from app.services.compliance.status_engine import (
    EXPIRED,
    EXPIRING_SOON,
    ComplianceRules,
    classify_expiration,
    days_until,
)
from app.services.notifications import (
    DeliveryResult,
    EmailSender,
    SMSSender,
    build_email_sender,
    build_sms_sender,
)

logger = logging.getLogger(__name__)

EntityKey = Tuple[str, str]


@dataclass(frozen=True)
class DocumentRef:
    """Plain copy of the document columns an alert needs; survives session rollbacks."""

    id: str
    entity_type: str
    entity_id: str
    doc_type: str
    expiration_date: Optional[date]

    @classmethod
    def of(cls, doc: Document) -> "DocumentRef":
        return cls(doc.id, doc.entity_type, doc.entity_id, doc.doc_type, doc.expiration_date)


async def send_safely(coro, channel: str, recipient: str) -> DeliveryResult:
    """Await a sender call; an exception becomes a failed result so the attempt still gets logged."""
    try:
        return await coro
    except Exception as exc:
        logger.exception("Alert send raised", extra={"channel": channel, "recipient": recipient})
        return DeliveryResult(False, error=str(exc) or type(exc).__name__)


class ExpirationAlertService:
    def __init__(
        self,
        db: AsyncSession,
        email_sender: Optional[EmailSender] = None,
        sms_sender: Optional[SMSSender] = None,
        owner_lookup: Optional[FleetOwnerLookup] = None,
        rules: Optional[ComplianceRules] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.db = db
        self.email_sender = email_sender or build_email_sender()
        self.sms_sender = sms_sender or build_sms_sender()
        self.owner_lookup = owner_lookup or DatabaseOwnerLookup(db)
        self.rules = rules or ComplianceRules.from_settings()
        self.settings = settings or get_settings()

    async def run_expiration_sweep(self, now: Optional[datetime] = None) -> ExpirationSweepResult:
        now = now or clock.utc_now()
        result = ExpirationSweepResult(timestamp=now)

        fleet_ids = list((await self.db.execute(select(Fleet.id).order_by(Fleet.created_at, Fleet.id))).scalars().all())
        for fleet_id in fleet_ids:
            try:
                fleet = await self.db.get(Fleet, fleet_id)
                if fleet is None:
                    continue
                result.alerts_sent += await self._process_fleet(fleet, now, result.errors)
                result.processed += 1
            except Exception as exc:
                await self.db.rollback()
                logger.exception("Expiration sweep failed for fleet", extra={"fleet_id": fleet_id})
                result.errors.append(f"Fleet {fleet_id}: {exc}")

        logger.info(
            "expiration_sweep_complete",
            extra={"processed": result.processed, "alerts_sent": result.alerts_sent, "errors": len(result.errors)},
        )
        return result

    async def _process_fleet(self, fleet: Fleet, now: datetime, errors: List[str]) -> int:
        fleet_id = fleet.id
        owner = await self.owner_lookup.get_owner_contact(fleet)
        rules = self.rules.with_fleet_overrides(fleet.required_documents, fleet.expiring_soon_days)
        today = now.date()

        rows = await self.db.execute(
            select(Document)
            .where(Document.fleet_id == fleet_id, Document.expiration_date.is_not(None))
            .order_by(Document.expiration_date, Document.id)
        )
        documents = [DocumentRef.of(doc) for doc in rows.scalars().all()]

        expired: List[DocumentRef] = []
        expiring: List[DocumentRef] = []
        for doc in documents:
            urgency = classify_expiration(doc.expiration_date, today, rules.expiring_soon_days)
            if urgency == EXPIRED:
                expired.append(doc)
            elif urgency == EXPIRING_SOON:
                expiring.append(doc)
        if not expired and not expiring:
            return 0

        names = await self._entity_names(fleet_id, expired + expiring, errors)
        recently_alerted = await self._recently_alerted(fleet_id, now)

        sent = 0
        for doc in expired:
            if doc.id in recently_alerted:
                continue
            item = self._alert_item(fleet_id, doc, EXPIRED, today, names, errors)
            if item is None:
                continue
            sent += await self._send_urgent(fleet_id, doc, item, owner, now, errors)
            recently_alerted.add(doc.id)

        digest: List[Tuple[DocumentRef, AlertItem]] = []
        for doc in expiring:
            if doc.id in recently_alerted:
                continue
            item = self._alert_item(fleet_id, doc, EXPIRING_SOON, today, names, errors)
            if item is not None:
                digest.append((doc, item))
        if digest:
            sent += await self._send_digest(fleet_id, digest, owner, now, errors)

        return sent

    def _alert_item(
        self,
        fleet_id: str,
        doc: DocumentRef,
        reason: str,
        today: date,
        names: Dict[EntityKey, str],
        errors: List[str],
    ) -> Optional[AlertItem]:
        name = names.get((doc.entity_type, doc.entity_id))
        if name is None and reason == EXPIRING_SOON:
            # Expiring documents of a deleted entity stay in the digest as "Unknown"
            logger.warning("Digest entry for missing entity", extra={"document_id": doc.id, "entity_id": doc.entity_id})
            name = "Unknown"
        if name is None:
            errors.append(
                f"Fleet {fleet_id}: Skipped alert for document {doc.id} - entity {doc.entity_type}:{doc.entity_id} not found"
            )
            return None
        return AlertItem(
            entity_type=doc.entity_type,
            entity_name=name,
            document_type=doc.doc_type,
            expiration_date=doc.expiration_date,
            reason=reason,
            days_until_expiration=days_until(doc.expiration_date, today),
        )

    async def _send_urgent(
        self,
        fleet_id: str,
        doc: DocumentRef,
        item: AlertItem,
        owner: OwnerContact,
        now: datetime,
        errors: List[str],
    ) -> int:
        sent = 0
        subject, html_body, text_body = build_alert_email(item)
        outcome = await send_safely(
            self.email_sender.send(owner.email, subject, html_body, text_body), "email", owner.email
        )
        if await self.log_alert(fleet_id, "email", owner.email, EXPIRED, doc, outcome, now, errors) and outcome.success:
            sent += 1

        # SMS is optional: silently skipped without a phone number or provider
        if owner.phone and self.sms_sender.configured:
            outcome = await send_safely(self.sms_sender.send(owner.phone, build_sms_text(item)), "sms", owner.phone)
            if await self.log_alert(fleet_id, "sms", owner.phone, EXPIRED, doc, outcome, now, errors) and outcome.success:
                sent += 1
        return sent

    async def _send_digest(
        self,
        fleet_id: str,
        digest: List[Tuple[DocumentRef, AlertItem]],
        owner: OwnerContact,
        now: datetime,
        errors: List[str],
    ) -> int:
        subject, html_body, text_body = build_digest_email([item for _, item in digest])
        outcome = await send_safely(
            self.email_sender.send(owner.email, subject, html_body, text_body), "email", owner.email
        )
        # One row per document so each one is covered by the dedup window
        for doc, _ in digest:
            await self.log_alert(fleet_id, "email", owner.email, EXPIRING_SOON, doc, outcome, now, errors)
        return 1 if outcome.success else 0

    async def log_alert(
        self,
        fleet_id: str,
        channel: str,
        to_address: str,
        reason: str,
        doc: DocumentRef,
        outcome: DeliveryResult,
        now: datetime,
        errors: List[str],
    ) -> bool:
        alert = Alert(
            id=str(uuid.uuid4()),
            fleet_id=fleet_id,
            channel=channel,
            to_address=to_address,
            reason=reason,
            entity_type=doc.entity_type,
            entity_id=doc.entity_id,
            document_id=doc.id,
            status="sent" if outcome.success else "failed",
            error=outcome.error,
            message_id=outcome.message_id,
            sent_at=now if outcome.success else None,
            created_at=now,
            updated_at=now,
        )
        self.db.add(alert)
        try:
            # Commit per row so a sweep cut off mid-way keeps what it already logged
            await self.db.commit()
        except Exception as exc:
            await self.db.rollback()
            logger.exception("Failed to log alert", extra={"fleet_id": fleet_id, "document_id": doc.id})
            errors.append(f"Fleet {fleet_id}: Failed to log alert - {exc}")
            return False
        return True

    async def _entity_names(self, fleet_id: str, documents: List[DocumentRef], errors: List[str]) -> Dict[EntityKey, str]:
        ids_by_kind: Dict[str, Set[str]] = {}
        for doc in documents:
            ids_by_kind.setdefault(doc.entity_type, set()).add(doc.entity_id)

        names: Dict[EntityKey, str] = {}
        for kind_value, ids in ids_by_kind.items():
            try:
                model = ENTITY_MODELS[EntityKind(kind_value)]
            except ValueError:
                errors.append(f"Fleet {fleet_id}: Unknown entity type '{kind_value}'")
                continue
            rows = await self.db.execute(select(model).where(model.fleet_id == fleet_id, model.id.in_(ids)))
            for entity in rows.scalars().all():
                names[(kind_value, entity.id)] = entity.display_name or "Unknown"
        return names

    async def _recently_alerted(self, fleet_id: str, now: datetime) -> Set[str]:
        since = now - timedelta(hours=self.settings.alert_dedup_hours)
        rows = await self.db.execute(
            select(Alert.document_id).where(
                Alert.fleet_id == fleet_id,
                Alert.created_at >= since,
                Alert.document_id.is_not(None),
            )
        )
        return set(rows.scalars().all())
