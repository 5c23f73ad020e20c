from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel

from app.schemas.extraction import ExtractionResponse


class DocumentResponse(BaseModel):
    id: str
    fleet_id: str
    entity_type: str
    entity_id: str
    doc_type: str
    expiration_date: Optional[date]
    status: str
    processing_status: Optional[str]
    needs_review: bool
    ai_confidence: Optional[float]
    file_path: str
    file_name: Optional[str]
    mime_type: Optional[str]
    file_size: Optional[int]
    uploaded_by: Optional[str]
    uploaded_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class DocumentDetailResponse(DocumentResponse):
    signed_url: Optional[str] = None
    extraction: Optional[ExtractionResponse] = None


class DocumentUpdate(BaseModel):
    doc_type: Optional[str] = None
    expiration_date: Optional[date] = None
    clear_expiration: bool = False
    needs_review: Optional[bool] = None


class ReviewQueueItem(BaseModel):
    document: DocumentResponse
    entity_name: Optional[str]
    low_confidence_fields: list[str] = []
