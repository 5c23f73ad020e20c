from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class AlertResponse(BaseModel):
    id: str
    fleet_id: str
    channel: str
    to_address: str
    reason: str
    entity_type: Optional[str]
    entity_id: Optional[str]
    document_id: Optional[str]
    status: str
    error: Optional[str]
    message_id: Optional[str]
    sent_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ExpirationSweepResult(BaseModel):
    success: bool = True
    processed: int = 0
    alerts_sent: int = 0
    errors: List[str] = Field(default_factory=list)
    timestamp: datetime


class RetrySweepResult(BaseModel):
    success: bool = True
    retried: int = 0
    still_failed: int = 0
    errors: List[str] = Field(default_factory=list)
    message: Optional[str] = None
    timestamp: datetime
