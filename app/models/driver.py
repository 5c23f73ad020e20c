from sqlalchemy import Column, DateTime, ForeignKey, String, func
from sqlalchemy.orm import relationship

from app.models.base import Base


class Driver(Base):
    id = Column(String, primary_key=True)
    fleet_id = Column(String, ForeignKey("fleet.id"), nullable=False, index=True)

    name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    license_number = Column(String, nullable=True)
    license_state = Column(String, nullable=True)

    # Derived from the driver's documents; written only by the status synchronizer
    status = Column(String, nullable=False, default="red")
    status_reason = Column(String, nullable=True)
    status_updated_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    fleet = relationship("Fleet", back_populates="drivers")

    @property
    def display_name(self) -> str:
        return self.name
