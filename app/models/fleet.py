from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, String, func
from sqlalchemy.orm import relationship

from app.models.base import Base


class Fleet(Base):
    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    owner_id = Column(String, ForeignKey("user.id"), nullable=False, index=True)

    # Per-fleet overrides of the configured compliance rules
    required_documents = Column(JSON, nullable=True)
    expiring_soon_days = Column(Integer, nullable=True)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    owner = relationship("User", back_populates="fleets")
    drivers = relationship("Driver", back_populates="fleet", cascade="all, delete-orphan")
    vehicles = relationship("Vehicle", back_populates="fleet", cascade="all, delete-orphan")
