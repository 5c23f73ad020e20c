from __future__ import annotations

import logging
import uuid
from datetime import timedelta
from typing import Any, Dict, List, Optional

from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import clock
from app.models.alert import Alert
from app.models.document import Document
from app.services.compliance.entities import ENTITY_MODELS, Entity, EntityKind, get_entity, parse_entity_kind
from app.services.compliance.status_engine import StatusResult, days_until
from app.services.compliance.synchronizer import StatusSynchronizer
from app.services.storage import StorageService

logger = logging.getLogger(__name__)


class EntityService:
    """Drivers and vehicles of a fleet, plus the fleet-level views built on their statuses."""

    def __init__(
        self,
        db: AsyncSession,
        synchronizer: Optional[StatusSynchronizer] = None,
        storage: Optional[StorageService] = None,
    ) -> None:
        self.db = db
        self.synchronizer = synchronizer or StatusSynchronizer(db)
        self.storage = storage or StorageService()

    async def list_entities(self, kind: EntityKind, fleet_id: str) -> List[Entity]:
        model = ENTITY_MODELS[kind]
        order = model.name if kind == EntityKind.DRIVER else model.unit_number
        result = await self.db.execute(select(model).where(model.fleet_id == fleet_id).order_by(order))
        return list(result.scalars().all())

    async def get_entity(self, kind: EntityKind, fleet_id: str, entity_id: str) -> Entity:
        entity = await get_entity(self.db, kind, entity_id, fleet_id)
        if entity is None:
            raise LookupError(f"{kind.value.capitalize()} not found")
        return entity

    async def create_entity(self, kind: EntityKind, fleet_id: str, payload: BaseModel) -> Entity:
        model = ENTITY_MODELS[kind]
        entity = model(id=str(uuid.uuid4()), fleet_id=fleet_id, **payload.model_dump())
        self.db.add(entity)
        await self.db.commit()
        entity_id = entity.id
        logger.info("entity_created", extra={"entity_type": kind.value, "entity_id": entity_id, "fleet_id": fleet_id})

        # A new entity has no documents, so its first status explains what is missing
        await self.synchronizer.safe_synchronize(kind, entity_id, fleet_id)
        return await self._reload(kind, fleet_id, entity_id)

    async def update_entity(self, kind: EntityKind, fleet_id: str, entity_id: str, payload: BaseModel) -> Entity:
        entity = await self.get_entity(kind, fleet_id, entity_id)
        for field, value in payload.model_dump(exclude_unset=True).items():
            setattr(entity, field, value)
        await self.db.commit()
        return await self._reload(kind, fleet_id, entity_id)

    async def delete_entity(self, kind: EntityKind, fleet_id: str, entity_id: str) -> None:
        """Removes the entity with its documents and stored files. Alert history is kept."""
        entity = await self.get_entity(kind, fleet_id, entity_id)
        result = await self.db.execute(
            select(Document).where(
                Document.fleet_id == fleet_id,
                Document.entity_type == kind.value,
                Document.entity_id == entity_id,
            )
        )
        for document in result.scalars().all():
            if self.storage.configured and not await self.storage.delete(document.file_path):
                logger.warning("Failed to delete file from storage", extra={"key": document.file_path})
            await self.db.delete(document)
        await self.db.delete(entity)
        await self.db.commit()
        logger.info("entity_deleted", extra={"entity_type": kind.value, "entity_id": entity_id, "fleet_id": fleet_id})

    async def recalculate(self, entity_type: str, fleet_id: str, entity_id: str) -> StatusResult:
        kind = parse_entity_kind(entity_type)
        await self.get_entity(kind, fleet_id, entity_id)
        return await self.synchronizer.synchronize_status(kind, entity_id, fleet_id)

    async def dashboard(self, fleet_id: str, upcoming_limit: int = 20) -> Dict[str, Any]:
        """Fleet summary. Statuses are refreshed first so day rollover shows up without a write."""
        counts = await self.synchronizer.synchronize_fleet(fleet_id)

        rules = await self.synchronizer.rules_for_fleet(fleet_id)
        today = clock.today()
        horizon = today + timedelta(days=rules.expiring_soon_days)

        pending_reviews = await self.db.scalar(
            select(func.count(Document.id)).where(Document.fleet_id == fleet_id, Document.needs_review.is_(True))
        )
        failed_alerts = await self.db.scalar(
            select(func.count(Alert.id)).where(
                Alert.fleet_id == fleet_id,
                Alert.status == "failed",
                Alert.created_at >= clock.utc_now() - timedelta(hours=24),
            )
        )

        result = await self.db.execute(
            select(Document)
            .where(
                Document.fleet_id == fleet_id,
                Document.expiration_date.is_not(None),
                Document.expiration_date <= horizon,
            )
            .order_by(Document.expiration_date.asc())
            .limit(upcoming_limit)
        )
        upcoming = []
        for document in result.scalars().all():
            entity = await get_entity(self.db, EntityKind(document.entity_type), document.entity_id, fleet_id)
            upcoming.append(
                {
                    "document_id": document.id,
                    "entity_type": document.entity_type,
                    "entity_id": document.entity_id,
                    "entity_name": entity.display_name if entity else "Unknown",
                    "doc_type": document.doc_type,
                    "expiration_date": document.expiration_date,
                    "days_until_expiration": days_until(document.expiration_date, today),
                    "needs_review": document.needs_review,
                }
            )

        return {
            "drivers": counts[EntityKind.DRIVER.value],
            "vehicles": counts[EntityKind.VEHICLE.value],
            "pending_reviews": pending_reviews or 0,
            "failed_alerts_24h": failed_alerts or 0,
            "upcoming_expirations": upcoming,
        }

    async def list_alerts(
        self,
        fleet_id: str,
        status: Optional[str] = None,
        limit: int = 100,
    ) -> List[Alert]:
        query = select(Alert).where(Alert.fleet_id == fleet_id)
        if status:
            query = query.where(Alert.status == status)
        result = await self.db.execute(query.order_by(Alert.created_at.desc()).limit(limit))
        return list(result.scalars().all())

    async def _reload(self, kind: EntityKind, fleet_id: str, entity_id: str) -> Entity:
        model = ENTITY_MODELS[kind]
        result = await self.db.execute(
            select(model)
            .where(model.id == entity_id, model.fleet_id == fleet_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()
