from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field


class JurisdictionWeight(BaseModel):
    max_weight: Union[int, float]
    unit: str = "lbs"


class CabCardFields(BaseModel):
    expiration_date: Optional[str] = None
    registrant_name: Optional[str] = None
    registrant_address: Optional[str] = None
    plate_number: Optional[str] = None
    vehicle_type: Optional[str] = None
    unit_number: Optional[str] = None
    unladen_weight: Optional[int] = None
    gross_weight: Optional[int] = None
    axles: Optional[int] = None
    seats: Optional[int] = None
    model_year: Optional[int] = None
    make: Optional[str] = None
    fuel: Optional[str] = None
    vin: Optional[str] = None
    document_number: Optional[str] = None
    usdot_number: Optional[str] = None
    carrier_responsible_for_safety_name: Optional[str] = None
    carrier_address: Optional[str] = None
    owner_lessor_name: Optional[str] = None
    jurisdiction_weights: Optional[Dict[str, JurisdictionWeight]] = None


class ParseResult(BaseModel):
    doc_type: str
    fields: CabCardFields
    confidence: Dict[str, float]
    raw_text: str
    errors: List[str] = Field(default_factory=list)


class ExtractionResponse(BaseModel):
    id: str
    document_id: str
    doc_type: str
    extracted_fields: Optional[Dict[str, Any]]
    raw_text: Optional[str]
    confidence: Optional[Dict[str, float]]
    warnings: Optional[List[str]]
    reviewed_by: Optional[str]
    reviewed_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ExtractionUpdate(BaseModel):
    """Human review of extracted fields. Only the supplied keys are overwritten."""

    fields: Dict[str, Any]
