from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core import clock
from app.core.config import Settings, get_settings
from app.models.document import Document, DocumentExtraction
from app.schemas.document import DocumentUpdate
from app.schemas.extraction import CabCardFields
from app.services.classifier import ClassificationSuggestion, DocumentClassifier
from app.services.compliance.entities import EntityKind, get_entity, parse_entity_kind
from app.services.compliance.status_engine import compute_document_status
from app.services.compliance.synchronizer import StatusSynchronizer
from app.services.parsers.structured import assess_extraction, parse_structured_document, resolve_structured_type
from app.services.storage import StorageService
from app.services.text_extraction import TextExtractionError, VisionOCRService, extract_text

logger = logging.getLogger(__name__)

# Fields below this confidence are called out to the reviewer
LOW_CONFIDENCE_THRESHOLD = 0.8


class DocumentService:
    def __init__(
        self,
        db: AsyncSession,
        storage: Optional[StorageService] = None,
        classifier: Optional[DocumentClassifier] = None,
        synchronizer: Optional[StatusSynchronizer] = None,
        ocr: Optional[VisionOCRService] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.db = db
        self.settings = settings or get_settings()
        self.storage = storage or StorageService(self.settings)
        self.classifier = classifier or DocumentClassifier(self.settings)
        self.synchronizer = synchronizer or StatusSynchronizer(db)
        self.ocr = ocr or VisionOCRService(self.settings)

    # -- queries ---------------------------------------------------------

    async def list_documents(
        self,
        fleet_id: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
    ) -> List[Document]:
        query = select(Document).where(Document.fleet_id == fleet_id)
        if entity_type:
            query = query.where(Document.entity_type == parse_entity_kind(entity_type).value)
        if entity_id:
            query = query.where(Document.entity_id == entity_id)
        result = await self.db.execute(query.order_by(Document.uploaded_at.desc()))
        return list(result.scalars().all())

    async def get_document(self, fleet_id: str, document_id: str) -> Document:
        result = await self.db.execute(
            select(Document)
            .where(Document.id == document_id, Document.fleet_id == fleet_id)
            .options(selectinload(Document.extraction))
            .execution_options(populate_existing=True)
        )
        document = result.scalar_one_or_none()
        if document is None:
            raise LookupError("Document not found")
        return document

    def signed_url(self, document: Document) -> Optional[str]:
        if not self.storage.configured:
            return None
        try:
            return self.storage.get_signed_url(document.file_path)
        except ValueError:
            logger.warning("Could not sign document URL", extra={"document_id": document.id})
            return None

    async def review_queue(self, fleet_id: str) -> List[Dict[str, Any]]:
        result = await self.db.execute(
            select(Document)
            .where(Document.fleet_id == fleet_id, Document.needs_review.is_(True))
            .options(selectinload(Document.extraction))
            .order_by(Document.uploaded_at.asc())
        )
        items = []
        for document in result.scalars().all():
            entity = await get_entity(self.db, EntityKind(document.entity_type), document.entity_id, fleet_id)
            confidence = (document.extraction.confidence or {}) if document.extraction else {}
            items.append(
                {
                    "document": document,
                    "entity_name": entity.display_name if entity else None,
                    "low_confidence_fields": sorted(
                        name for name, score in confidence.items() if score < LOW_CONFIDENCE_THRESHOLD
                    ),
                }
            )
        return items

    # -- upload ----------------------------------------------------------

    def validate_upload(self, filename: Optional[str], content_type: Optional[str], size: int) -> None:
        if not filename or size == 0:
            raise ValueError("No file provided")
        if content_type not in self.settings.allowed_upload_types:
            raise ValueError("Invalid file type. Only PDF, JPEG, PNG, and WEBP are allowed.")
        if size > self.settings.max_upload_bytes:
            limit_mb = self.settings.max_upload_bytes // (1024 * 1024)
            raise ValueError(f"File size exceeds {limit_mb}MB limit")

    async def suggest_classification(
        self,
        content: bytes,
        filename: str,
        content_type: str,
    ) -> ClassificationSuggestion:
        self.validate_upload(filename, content_type, len(content))
        return await self.classifier.classify(content, filename, content_type)

    async def upload_document(
        self,
        fleet_id: str,
        user_id: Optional[str],
        entity_type: str,
        entity_id: str,
        doc_type: str,
        filename: str,
        content_type: str,
        content: bytes,
        expiration_date: Optional[date] = None,
        needs_review: bool = False,
        ai_confidence: Optional[float] = None,
    ) -> Document:
        self.validate_upload(filename, content_type, len(content))
        kind = parse_entity_kind(entity_type)
        doc_type = (doc_type or "").strip()
        if not doc_type:
            raise ValueError("Document type is required")
        if await get_entity(self.db, kind, entity_id, fleet_id) is None:
            raise LookupError(f"{kind.value.capitalize()} not found")

        key = self.storage.build_key(fleet_id, kind.value, entity_id, filename)
        await self.storage.put(content, key, content_type)

        rules = await self.synchronizer.rules_for_fleet(fleet_id)
        structured_type = resolve_structured_type(doc_type)
        document = Document(
            id=str(uuid.uuid4()),
            fleet_id=fleet_id,
            entity_type=kind.value,
            entity_id=entity_id,
            doc_type=structured_type or doc_type,
            expiration_date=expiration_date,
            status=compute_document_status(expiration_date, clock.today(), needs_review, rules.expiring_soon_days),
            processing_status="processing" if structured_type else None,
            needs_review=needs_review,
            ai_confidence=ai_confidence,
            file_path=key,
            file_name=filename,
            mime_type=content_type,
            file_size=len(content),
            uploaded_by=user_id,
        )
        self.db.add(document)
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            if not await self.storage.delete(key):
                logger.error("Failed to clean up uploaded file", extra={"key": key})
            raise

        document_id = document.id
        logger.info(
            "document_uploaded",
            extra={"document_id": document_id, "fleet_id": fleet_id, "entity_type": kind.value, "entity_id": entity_id},
        )

        await self.synchronizer.safe_synchronize(kind, entity_id, fleet_id)
        if structured_type:
            return await self.process_document(fleet_id, document_id, content=content)
        return await self.get_document(fleet_id, document_id)

    # -- edits -----------------------------------------------------------

    async def update_document(self, fleet_id: str, document_id: str, payload: DocumentUpdate) -> Document:
        document = await self.get_document(fleet_id, document_id)
        if payload.doc_type is not None:
            if not payload.doc_type.strip():
                raise ValueError("Document type cannot be empty")
            document.doc_type = payload.doc_type.strip()
        if payload.clear_expiration:
            document.expiration_date = None
        elif payload.expiration_date is not None:
            document.expiration_date = payload.expiration_date
        if payload.needs_review is not None:
            document.needs_review = payload.needs_review
            if not payload.needs_review and document.processing_status == "needs_review":
                document.processing_status = "complete"

        rules = await self.synchronizer.rules_for_fleet(fleet_id)
        document.status = compute_document_status(
            document.expiration_date, clock.today(), document.needs_review, rules.expiring_soon_days
        )
        entity_type, entity_id = document.entity_type, document.entity_id
        await self.db.commit()

        await self.synchronizer.safe_synchronize(entity_type, entity_id, fleet_id)
        return await self.get_document(fleet_id, document_id)

    async def delete_document(self, fleet_id: str, document_id: str) -> None:
        document = await self.get_document(fleet_id, document_id)
        entity_type, entity_id, key = document.entity_type, document.entity_id, document.file_path

        if self.storage.configured and not await self.storage.delete(key):
            logger.warning("Failed to delete file from storage", extra={"key": key, "document_id": document_id})

        await self.db.delete(document)
        await self.db.commit()
        logger.info("document_deleted", extra={"document_id": document_id, "fleet_id": fleet_id})

        await self.synchronizer.safe_synchronize(entity_type, entity_id, fleet_id)

    # -- structured extraction -------------------------------------------

    async def process_document(self, fleet_id: str, document_id: str, content: Optional[bytes] = None) -> Document:
        """OCR text, field extraction and status refresh for a structured document type."""
        document = await self.get_document(fleet_id, document_id)
        structured_type = resolve_structured_type(document.doc_type)
        if structured_type is None:
            raise ValueError(f"Document type '{document.doc_type}' has no structured extraction")

        entity_type, entity_id = document.entity_type, document.entity_id
        file_path, mime_type = document.file_path, document.mime_type or "application/pdf"
        document.processing_status = "processing"
        await self.db.commit()

        try:
            if content is None:
                content = await self.storage.get(file_path)
            text = await self._read_text(content, mime_type)
            parsed = parse_structured_document(text, structured_type)
            processing_status = assess_extraction(parsed)

            extraction = document.extraction
            if extraction is None:
                extraction = DocumentExtraction(id=str(uuid.uuid4()), document_id=document_id, doc_type=structured_type)
                self.db.add(extraction)
            extraction.doc_type = structured_type
            extraction.extracted_fields = parsed.fields.model_dump(mode="json")
            extraction.raw_text = parsed.raw_text
            extraction.confidence = parsed.confidence
            extraction.warnings = parsed.errors

            if parsed.fields.expiration_date:
                document.expiration_date = date.fromisoformat(parsed.fields.expiration_date)
            document.processing_status = processing_status
            if processing_status == "needs_review":
                document.needs_review = True
            await self.db.commit()
            logger.info(
                "document_processed",
                extra={"document_id": document_id, "processing_status": processing_status, "warnings": len(parsed.errors)},
            )
        except Exception as exc:
            await self.db.rollback()
            logger.exception("Document processing failed", extra={"document_id": document_id, "error": str(exc)})
            document = await self.get_document(fleet_id, document_id)
            document.processing_status = "failed"
            document.needs_review = True
            await self.db.commit()

        await self.synchronizer.safe_synchronize(entity_type, entity_id, fleet_id)
        return await self.get_document(fleet_id, document_id)

    async def _read_text(self, content: bytes, mime_type: str) -> str:
        """Vision OCR when configured, else the PDF text layer."""
        if self.ocr.configured:
            try:
                return await self.ocr.extract_text(content, mime_type)
            except TextExtractionError as exc:
                logger.warning("OCR failed, falling back to PDF text layer", extra={"error": str(exc)})
        return extract_text(content, mime_type)

    async def update_extraction(
        self,
        fleet_id: str,
        document_id: str,
        fields: Dict[str, Any],
        reviewer_id: Optional[str] = None,
    ) -> DocumentExtraction:
        """Apply a reviewer's corrections; the document becomes trusted and the entity is re-synchronized."""
        document = await self.get_document(fleet_id, document_id)
        extraction = document.extraction
        if extraction is None:
            raise LookupError("Extraction not found")

        unknown = set(fields) - set(CabCardFields.model_fields)
        if unknown:
            raise ValueError(f"Unknown extraction fields: {', '.join(sorted(unknown))}")

        merged = dict(extraction.extracted_fields or {})
        merged.update(fields)
        validated = CabCardFields.model_validate(merged)
        expiration_date = document.expiration_date
        if "expiration_date" in fields:
            expiration_date = date.fromisoformat(validated.expiration_date) if validated.expiration_date else None

        confidence = dict(extraction.confidence or {})
        for name in fields:
            confidence[name] = 1.0 if fields[name] is not None else 0.0

        now = clock.utc_now()
        extraction.extracted_fields = validated.model_dump(mode="json")
        extraction.confidence = confidence
        extraction.reviewed_by = reviewer_id
        extraction.reviewed_at = now

        document.expiration_date = expiration_date
        document.processing_status = "complete"
        document.needs_review = False

        rules = await self.synchronizer.rules_for_fleet(fleet_id)
        document.status = compute_document_status(
            document.expiration_date, clock.today(), False, rules.expiring_soon_days
        )
        entity_type, entity_id = document.entity_type, document.entity_id
        await self.db.commit()

        await self.synchronizer.safe_synchronize(entity_type, entity_id, fleet_id)
        document = await self.get_document(fleet_id, document_id)
        return document.extraction
