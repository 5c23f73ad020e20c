from __future__ import annotations

from typing import Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.fleet import Fleet
from app.models.user import User


class OwnerContact:
    def __init__(self, email: str, phone: Optional[str] = None) -> None:
        self.email = email
        self.phone = phone


class FleetOwnerLookup(Protocol):
    async def get_owner_contact(self, fleet: Fleet) -> OwnerContact:
        ...


class DatabaseOwnerLookup:
    """Resolves a fleet owner's contact details from the local user mirror."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_owner_contact(self, fleet: Fleet) -> OwnerContact:
        owner = await self.db.get(User, fleet.owner_id)
        if owner is None:
            raise LookupError("Owner not found")
        if not owner.email:
            raise LookupError("Owner email not found")
        return OwnerContact(email=owner.email, phone=owner.phone or None)
