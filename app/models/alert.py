from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Text, func

from app.models.base import Base


class Alert(Base):
    """One notification attempt. Also the source of the dedup window."""

    id = Column(String, primary_key=True)
    fleet_id = Column(String, ForeignKey("fleet.id"), nullable=False)
    channel = Column(String, nullable=False)
    to_address = Column(String, nullable=False)
    reason = Column(String, nullable=False)

    entity_type = Column(String, nullable=True)
    entity_id = Column(String, nullable=True)
    # Plain reference: alerts outlive the documents they were about
    document_id = Column(String, nullable=True)

    status = Column(String, nullable=False, default="queued")
    error = Column(Text, nullable=True)
    message_id = Column(String, nullable=True)
    sent_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("ix_alert_fleet_document_created", "fleet_id", "document_id", "created_at"),
        Index("ix_alert_status_created", "status", "created_at"),
    )
