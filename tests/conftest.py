"""Pytest configuration and shared fixtures."""

import os
import uuid
from datetime import date
from unittest.mock import AsyncMock, MagicMock

# Set required environment variables for testing BEFORE importing app
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENABLE_SCHEDULER", "false")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.main import app
from app.models.base import Base
from app.models.document import Document
from app.models.driver import Driver
from app.models.fleet import Fleet
from app.models.user import User
from app.models.vehicle import Vehicle
from app.services.notifications import DeliveryResult


@pytest.fixture
def test_client() -> TestClient:
    """Create FastAPI test client.

    Returns:
        TestClient: FastAPI test client instance
    """
    return TestClient(app)


@pytest.fixture(autouse=True)
def clear_dependency_overrides():
    """Ensure FastAPI dependency overrides are reset between tests."""
    app.dependency_overrides = {}
    yield
    app.dependency_overrides = {}


@pytest_asyncio.fixture
async def db_session():
    """Fresh in-memory SQLite database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_factory = async_sessionmaker(bind=engine, expire_on_commit=False)
    async with session_factory() as session:
        yield session
    await engine.dispose()


@pytest_asyncio.fixture
async def fleet(db_session) -> Fleet:
    """A fleet whose owner has both an email address and a phone number."""
    owner = User(id=str(uuid.uuid4()), email="owner@example.com", full_name="Pat Owner", phone="+15550100")
    fleet = Fleet(id=str(uuid.uuid4()), name="Acme Hauling", owner_id=owner.id)
    db_session.add_all([owner, fleet])
    await db_session.commit()
    return fleet


@pytest_asyncio.fixture
async def driver(db_session, fleet) -> Driver:
    driver = Driver(id=str(uuid.uuid4()), fleet_id=fleet.id, name="Jane Smith")
    db_session.add(driver)
    await db_session.commit()
    return driver


@pytest_asyncio.fixture
async def vehicle(db_session, fleet) -> Vehicle:
    vehicle = Vehicle(id=str(uuid.uuid4()), fleet_id=fleet.id, unit_number="TRK-101")
    db_session.add(vehicle)
    await db_session.commit()
    return vehicle


@pytest.fixture
def add_document(db_session):
    """Factory that stores a document for an entity and returns it."""

    async def _add(
        entity,
        doc_type: str,
        expiration_date: date | None,
        needs_review: bool = False,
        entity_type: str | None = None,
        status: str = "green",
    ) -> Document:
        document = Document(
            id=str(uuid.uuid4()),
            fleet_id=entity.fleet_id,
            entity_type=entity_type or type(entity).__name__.lower(),
            entity_id=entity.id,
            doc_type=doc_type,
            expiration_date=expiration_date,
            status=status,
            needs_review=needs_review,
            file_path=f"{entity.fleet_id}/{entity.id}/{doc_type}.pdf",
            file_name=f"{doc_type}.pdf",
            mime_type="application/pdf",
        )
        db_session.add(document)
        await db_session.commit()
        return document

    return _add


@pytest.fixture
def email_sender() -> MagicMock:
    sender = MagicMock()
    sender.configured = True
    sender.send = AsyncMock(return_value=DeliveryResult(success=True, message_id="email-1"))
    return sender


@pytest.fixture
def sms_sender() -> MagicMock:
    sender = MagicMock()
    sender.configured = True
    sender.send = AsyncMock(return_value=DeliveryResult(success=True, message_id="sms-1"))
    return sender


@pytest.fixture
def storage() -> MagicMock:
    storage = MagicMock()
    storage.configured = True
    storage.build_key = MagicMock(side_effect=lambda fleet_id, entity_type, entity_id, filename: f"{fleet_id}/{entity_type}/{entity_id}/{filename}")
    storage.put = AsyncMock(side_effect=lambda content, key, content_type=None: key)
    storage.get = AsyncMock(return_value=b"%PDF-1.4")
    storage.delete = AsyncMock(return_value=True)
    storage.get_signed_url = MagicMock(return_value="https://files.example.com/signed")
    return storage
