from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.db import get_db
from app.schemas.document import DocumentDetailResponse, DocumentResponse, DocumentUpdate
from app.schemas.extraction import ExtractionResponse, ExtractionUpdate
from app.services.classifier import ClassificationSuggestion
from app.services.document import DocumentService

router = APIRouter()


async def _service(db: AsyncSession = Depends(get_db)) -> DocumentService:
    return DocumentService(db)


def _detail(service: DocumentService, document) -> DocumentDetailResponse:
    response = DocumentDetailResponse.model_validate(document)
    response.signed_url = service.signed_url(document)
    return response


@router.get("", response_model=List[DocumentResponse])
async def list_documents(
    entity_type: Optional[str] = Query(default=None),
    entity_id: Optional[str] = Query(default=None),
    fleet_id: str = Depends(deps.get_current_fleet),
    service: DocumentService = Depends(_service),
) -> List[DocumentResponse]:
    try:
        return await service.list_documents(fleet_id, entity_type, entity_id)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.post("/upload", response_model=DocumentDetailResponse, status_code=status.HTTP_201_CREATED)
async def upload_document(
    file: UploadFile = File(...),
    entity_type: str = Form(...),
    entity_id: str = Form(...),
    doc_type: str = Form(...),
    expiration_date: Optional[date] = Form(default=None),
    needs_review: bool = Form(default=False),
    ai_confidence: Optional[float] = Form(default=None),
    fleet_id: str = Depends(deps.get_current_fleet),
    current_user=Depends(deps.get_current_user),
    service: DocumentService = Depends(_service),
) -> DocumentDetailResponse:
    content = await file.read()
    try:
        document = await service.upload_document(
            fleet_id=fleet_id,
            user_id=current_user.id,
            entity_type=entity_type,
            entity_id=entity_id,
            doc_type=doc_type,
            filename=file.filename,
            content_type=file.content_type,
            content=content,
            expiration_date=expiration_date,
            needs_review=needs_review,
            ai_confidence=ai_confidence,
        )
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return _detail(service, document)


@router.post("/extract", response_model=ClassificationSuggestion)
async def suggest_document_fields(
    file: UploadFile = File(...),
    fleet_id: str = Depends(deps.get_current_fleet),
    service: DocumentService = Depends(_service),
) -> ClassificationSuggestion:
    content = await file.read()
    try:
        return await service.suggest_classification(content, file.filename, file.content_type)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.get("/{document_id}", response_model=DocumentDetailResponse)
async def get_document(
    document_id: str,
    fleet_id: str = Depends(deps.get_current_fleet),
    service: DocumentService = Depends(_service),
) -> DocumentDetailResponse:
    try:
        document = await service.get_document(fleet_id, document_id)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return _detail(service, document)


@router.patch("/{document_id}", response_model=DocumentDetailResponse)
async def update_document(
    document_id: str,
    payload: DocumentUpdate,
    fleet_id: str = Depends(deps.get_current_fleet),
    service: DocumentService = Depends(_service),
) -> DocumentDetailResponse:
    try:
        document = await service.update_document(fleet_id, document_id, payload)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return _detail(service, document)


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(
    document_id: str,
    fleet_id: str = Depends(deps.get_current_fleet),
    service: DocumentService = Depends(_service),
) -> None:
    try:
        await service.delete_document(fleet_id, document_id)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.post("/{document_id}/process", response_model=DocumentDetailResponse)
async def process_document(
    document_id: str,
    fleet_id: str = Depends(deps.get_current_fleet),
    service: DocumentService = Depends(_service),
) -> DocumentDetailResponse:
    try:
        document = await service.process_document(fleet_id, document_id)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return _detail(service, document)


@router.put("/{document_id}/extraction", response_model=ExtractionResponse)
async def update_extraction(
    document_id: str,
    payload: ExtractionUpdate,
    fleet_id: str = Depends(deps.get_current_fleet),
    current_user=Depends(deps.get_current_user),
    service: DocumentService = Depends(_service),
) -> ExtractionResponse:
    try:
        return await service.update_extraction(fleet_id, document_id, payload.fields, reviewer_id=current_user.id)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
