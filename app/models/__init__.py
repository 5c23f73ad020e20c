"""SQLAlchemy models for the RoadReady backend."""

from app.models.alert import Alert  # noqa: F401
from app.models.document import Document, DocumentExtraction  # noqa: F401
from app.models.driver import Driver  # noqa: F401
from app.models.fleet import Fleet  # noqa: F401
from app.models.user import User  # noqa: F401
from app.models.vehicle import Vehicle  # noqa: F401
