from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class VehicleCreate(BaseModel):
    unit_number: str = Field(..., min_length=1)
    make: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = Field(default=None, ge=1900, le=2100)
    vin: Optional[str] = None
    plate_number: Optional[str] = None
    plate_state: Optional[str] = None


class VehicleUpdate(BaseModel):
    unit_number: Optional[str] = Field(default=None, min_length=1)
    make: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = Field(default=None, ge=1900, le=2100)
    vin: Optional[str] = None
    plate_number: Optional[str] = None
    plate_state: Optional[str] = None


class VehicleResponse(BaseModel):
    id: str
    fleet_id: str
    unit_number: str
    make: Optional[str]
    model: Optional[str]
    year: Optional[int]
    vin: Optional[str]
    plate_number: Optional[str]
    plate_state: Optional[str]
    status: str
    status_reason: Optional[str]
    status_updated_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
