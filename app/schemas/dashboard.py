from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field


class StatusCounts(BaseModel):
    green: int = 0
    yellow: int = 0
    red: int = 0


class UpcomingExpiration(BaseModel):
    document_id: str
    entity_type: str
    entity_id: str
    entity_name: str
    doc_type: str
    expiration_date: date
    days_until_expiration: int
    needs_review: bool


class DashboardResponse(BaseModel):
    drivers: StatusCounts
    vehicles: StatusCounts
    pending_reviews: int = 0
    failed_alerts_24h: int = 0
    upcoming_expirations: List[UpcomingExpiration] = Field(default_factory=list)


class RecalculateResponse(BaseModel):
    entity_type: str
    entity_id: str
    status: str
    reason: str
    missing_docs: List[str] = Field(default_factory=list)
    expired_docs: List[str] = Field(default_factory=list)
    expiring_soon_docs: List[str] = Field(default_factory=list)

