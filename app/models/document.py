from sqlalchemy import Boolean, Column, Date, DateTime, Float, ForeignKey, Integer, JSON, String, Text, func
from sqlalchemy.orm import relationship

from app.models.base import Base


class Document(Base):
    id = Column(String, primary_key=True)
    fleet_id = Column(String, ForeignKey("fleet.id"), nullable=False, index=True)

    # Polymorphic owner: entity_type is "driver" or "vehicle"
    entity_type = Column(String, nullable=False)
    entity_id = Column(String, nullable=False, index=True)

    doc_type = Column(String, nullable=False)
    expiration_date = Column(Date, nullable=True)
    status = Column(String, nullable=False, default="red")
    processing_status = Column(String, nullable=True)
    needs_review = Column(Boolean, nullable=False, default=False)
    ai_confidence = Column(Float, nullable=True)

    file_path = Column(String, nullable=False)
    file_name = Column(String, nullable=True)
    mime_type = Column(String, nullable=True)
    file_size = Column(Integer, nullable=True)
    uploaded_by = Column(String, nullable=True)

    uploaded_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    extraction = relationship(
        "DocumentExtraction",
        back_populates="document",
        uselist=False,
        cascade="all, delete-orphan",
    )


class DocumentExtraction(Base):
    id = Column(String, primary_key=True)
    document_id = Column(String, ForeignKey("document.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)
    doc_type = Column(String, nullable=False)
    extracted_fields = Column(JSON, nullable=True)
    raw_text = Column(Text, nullable=True)
    confidence = Column(JSON, nullable=True)
    warnings = Column(JSON, nullable=True)
    reviewed_by = Column(String, nullable=True)
    reviewed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    document = relationship("Document", back_populates="extraction")
