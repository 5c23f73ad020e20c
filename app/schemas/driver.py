from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class DriverCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    license_number: Optional[str] = None
    license_state: Optional[str] = None


class DriverUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    license_number: Optional[str] = None
    license_state: Optional[str] = None


class DriverResponse(BaseModel):
    id: str
    fleet_id: str
    name: str
    email: Optional[str]
    phone: Optional[str]
    license_number: Optional[str]
    license_state: Optional[str]
    status: str
    status_reason: Optional[str]
    status_updated_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
