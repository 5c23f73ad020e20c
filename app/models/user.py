from sqlalchemy import Column, DateTime, String, func
from sqlalchemy.orm import relationship

from app.models.base import Base


class User(Base):
    """Local mirror of an identity-provider account; the id is the token subject."""

    id = Column(String, primary_key=True)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)
    phone = Column(String, nullable=True)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    fleets = relationship("Fleet", back_populates="owner")
