from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import relationship

from app.models.base import Base


class Vehicle(Base):
    id = Column(String, primary_key=True)
    fleet_id = Column(String, ForeignKey("fleet.id"), nullable=False, index=True)

    unit_number = Column(String, nullable=False)
    make = Column(String, nullable=True)
    model = Column(String, nullable=True)
    year = Column(Integer, nullable=True)
    vin = Column(String, nullable=True, index=True)
    plate_number = Column(String, nullable=True)
    plate_state = Column(String, nullable=True)

    # Derived from the vehicle's documents; written only by the status synchronizer
    status = Column(String, nullable=False, default="red")
    status_reason = Column(String, nullable=True)
    status_updated_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    fleet = relationship("Fleet", back_populates="vehicles")

    @property
    def display_name(self) -> str:
        return self.unit_number
