"""Pydantic schemas."""

from app.schemas.alert import AlertResponse, ExpirationSweepResult, RetrySweepResult  # noqa: F401
from app.schemas.dashboard import DashboardResponse, RecalculateResponse  # noqa: F401
from app.schemas.document import DocumentDetailResponse, DocumentResponse, DocumentUpdate  # noqa: F401
from app.schemas.driver import DriverCreate, DriverResponse, DriverUpdate  # noqa: F401
from app.schemas.extraction import CabCardFields, ExtractionResponse, ExtractionUpdate  # noqa: F401
from app.schemas.vehicle import VehicleCreate, VehicleResponse, VehicleUpdate  # noqa: F401
