from __future__ import annotations

import logging
from datetime import date
from typing import Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import clock
from app.models.document import Document
from app.models.fleet import Fleet
from app.services.compliance.entities import ENTITY_MODELS, EntityKind, get_entity, parse_entity_kind
from app.services.compliance.status_engine import (
    ComplianceRules,
    StatusResult,
    compute_status,
    refresh_document_status,
)

logger = logging.getLogger(__name__)


class StatusSynchronizer:
    """Recomputes an entity's compliance status from its documents and stores it."""

    def __init__(self, db: AsyncSession, rules: Optional[ComplianceRules] = None) -> None:
        self.db = db
        self.base_rules = rules or ComplianceRules.from_settings()

    async def rules_for_fleet(self, fleet_id: str) -> ComplianceRules:
        fleet = await self.db.get(Fleet, fleet_id)
        if fleet is None:
            return self.base_rules
        return self.base_rules.with_fleet_overrides(fleet.required_documents, fleet.expiring_soon_days)

    async def synchronize_status(
        self,
        entity_kind: EntityKind | str,
        entity_id: str,
        fleet_id: str,
        today: Optional[date] = None,
    ) -> StatusResult:
        kind = parse_entity_kind(entity_kind) if isinstance(entity_kind, str) else entity_kind
        today = today or clock.today()

        entity = await get_entity(self.db, kind, entity_id, fleet_id)
        if entity is None:
            raise LookupError(f"{kind.value} {entity_id} not found in fleet {fleet_id}")

        rules = await self.rules_for_fleet(fleet_id)
        result = await self.db.execute(
            select(Document).where(
                Document.fleet_id == fleet_id,
                Document.entity_type == kind.value,
                Document.entity_id == entity_id,
            )
        )
        documents = list(result.scalars().all())

        for doc in documents:
            doc_status = refresh_document_status(doc, today, rules.expiring_soon_days)
            if doc.status != doc_status:
                doc.status = doc_status

        status = compute_status(documents, today, rules.required_for(kind.value), rules.expiring_soon_days)

        if entity.status != status.status or entity.status_reason != status.reason:
            entity.status = status.status
            entity.status_reason = status.reason
            entity.status_updated_at = clock.utc_now()
        await self.db.commit()

        logger.info(
            "entity_status_synchronized",
            extra={"entity_type": kind.value, "entity_id": entity_id, "fleet_id": fleet_id, "status": status.status},
        )
        return status

    async def safe_synchronize(
        self,
        entity_kind: EntityKind | str,
        entity_id: str,
        fleet_id: str,
    ) -> Optional[StatusResult]:
        """Synchronize on behalf of a document change; a failure leaves the status stale but never raises."""
        try:
            return await self.synchronize_status(entity_kind, entity_id, fleet_id)
        except Exception as exc:
            await self.db.rollback()
            logger.exception(
                "Failed to recalculate entity status",
                extra={"entity_type": getattr(entity_kind, "value", entity_kind), "entity_id": entity_id, "fleet_id": fleet_id, "error": str(exc)},
            )
            return None

    async def synchronize_fleet(self, fleet_id: str) -> Dict[str, Dict[str, int]]:
        """Refresh every driver and vehicle of a fleet. Returns status counts per entity kind.

        An entity whose refresh fails is counted under its last stored status.
        """
        counts: Dict[str, Dict[str, int]] = {}
        for kind, model in ENTITY_MODELS.items():
            kind_counts = counts.setdefault(kind.value, {"green": 0, "yellow": 0, "red": 0})
            result = await self.db.execute(select(model.id).where(model.fleet_id == fleet_id))
            for entity_id in list(result.scalars().all()):
                status = await self.safe_synchronize(kind, entity_id, fleet_id)
                if status is not None:
                    kind_counts[status.status] += 1
                    continue
                entity = await get_entity(self.db, kind, entity_id, fleet_id)
                if entity is not None:
                    kind_counts[entity.status] += 1
        return counts
