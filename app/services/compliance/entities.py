from __future__ import annotations

from enum import Enum
from typing import Dict, Optional, Type, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.driver import Driver
from app.models.vehicle import Vehicle

Entity = Union[Driver, Vehicle]


class EntityKind(str, Enum):
    DRIVER = "driver"
    VEHICLE = "vehicle"


ENTITY_MODELS: Dict[EntityKind, Type[Entity]] = {
    EntityKind.DRIVER: Driver,
    EntityKind.VEHICLE: Vehicle,
}


def parse_entity_kind(value: str) -> EntityKind:
    try:
        return EntityKind(value.strip().lower())
    except ValueError as exc:
        raise ValueError(f"Invalid entity type '{value}', expected 'driver' or 'vehicle'") from exc


async def get_entity(db: AsyncSession, kind: EntityKind, entity_id: str, fleet_id: str) -> Optional[Entity]:
    model = ENTITY_MODELS[kind]
    result = await db.execute(select(model).where(model.id == entity_id, model.fleet_id == fleet_id))
    return result.scalar_one_or_none()


def entity_label(kind: str) -> str:
    return "Driver" if kind == EntityKind.DRIVER.value else "Vehicle"
