"""Tests for driver/vehicle CRUD and the fleet dashboard."""

import uuid
from datetime import timedelta

import pytest
from sqlalchemy import select

from app.core import clock
from app.models.alert import Alert
from app.models.document import Document
from app.schemas.driver import DriverCreate, DriverUpdate
from app.schemas.vehicle import VehicleCreate
from app.services.compliance.entities import EntityKind
from app.services.compliance.status_engine import ComplianceRules
from app.services.compliance.synchronizer import StatusSynchronizer
from app.services.entity import EntityService

RULES = ComplianceRules(
    required_documents={"driver": ["CDL", "Medical Card"], "vehicle": ["Registration", "Insurance"]},
    expiring_soon_days=30,
)


@pytest.fixture
def service(db_session, storage):
    return EntityService(db_session, synchronizer=StatusSynchronizer(db_session, RULES), storage=storage)


class TestCrud:
    @pytest.mark.asyncio
    async def test_new_driver_is_red_for_missing_documents(self, service, fleet):
        driver = await service.create_entity(EntityKind.DRIVER, fleet.id, DriverCreate(name="Carlos Diaz"))

        assert driver.fleet_id == fleet.id
        assert driver.status == "red"
        assert driver.status_reason == "Missing required documents: CDL, Medical Card"

    @pytest.mark.asyncio
    async def test_update_only_touches_sent_fields(self, service, driver):
        updated = await service.update_entity(
            EntityKind.DRIVER, driver.fleet_id, driver.id, DriverUpdate(phone="+15550123")
        )

        assert updated.phone == "+15550123"
        assert updated.name == "Jane Smith"

    @pytest.mark.asyncio
    async def test_vehicles_listed_by_unit_number(self, service, fleet):
        await service.create_entity(EntityKind.VEHICLE, fleet.id, VehicleCreate(unit_number="TRK-300"))
        await service.create_entity(EntityKind.VEHICLE, fleet.id, VehicleCreate(unit_number="TRK-200"))

        vehicles = await service.list_entities(EntityKind.VEHICLE, fleet.id)

        assert [v.unit_number for v in vehicles] == ["TRK-200", "TRK-300"]

    @pytest.mark.asyncio
    async def test_other_fleet_cannot_read_driver(self, service, driver):
        with pytest.raises(LookupError, match="Driver not found"):
            await service.get_entity(EntityKind.DRIVER, "another-fleet", driver.id)

    @pytest.mark.asyncio
    async def test_delete_removes_documents_and_files(self, service, db_session, driver, add_document, storage):
        driver_id, fleet_id = driver.id, driver.fleet_id
        document = await add_document(driver, "CDL", clock.today() + timedelta(days=90))
        path = document.file_path

        await service.delete_entity(EntityKind.DRIVER, fleet_id, driver_id)

        storage.delete.assert_awaited_once_with(path)
        assert (await db_session.execute(select(Document.id))).scalars().all() == []
        with pytest.raises(LookupError):
            await service.get_entity(EntityKind.DRIVER, fleet_id, driver_id)

    @pytest.mark.asyncio
    async def test_recalculate_returns_status(self, service, vehicle, add_document):
        today = clock.today()
        await add_document(vehicle, "Registration", today + timedelta(days=5))
        await add_document(vehicle, "Insurance", today + timedelta(days=300))

        result = await service.recalculate("vehicle", vehicle.fleet_id, vehicle.id)

        assert result.status == "yellow"
        assert [doc.doc_type for doc in result.expiring_soon_docs] == ["Registration"]
        assert result.expiring_soon_docs[0].days_remaining == 5

    @pytest.mark.asyncio
    async def test_recalculate_rejects_unknown_type(self, service, vehicle):
        with pytest.raises(ValueError):
            await service.recalculate("trailer", vehicle.fleet_id, vehicle.id)


class TestDashboard:
    @pytest.mark.asyncio
    async def test_counts_and_upcoming(self, service, db_session, fleet, driver, vehicle, add_document):
        today = clock.today()
        await add_document(driver, "CDL", today + timedelta(days=12))
        await add_document(driver, "Medical Card", today + timedelta(days=400))
        await add_document(vehicle, "Registration", today - timedelta(days=1), needs_review=True)
        now = clock.utc_now()
        db_session.add(
            Alert(
                id=str(uuid.uuid4()),
                fleet_id=fleet.id,
                channel="email",
                to_address="owner@example.com",
                reason="expired",
                status="failed",
                error="SendGrid 503",
                created_at=now,
                updated_at=now,
            )
        )
        await db_session.commit()

        summary = await service.dashboard(fleet.id)

        assert summary["drivers"] == {"green": 0, "yellow": 1, "red": 0}
        assert summary["vehicles"] == {"green": 0, "yellow": 0, "red": 1}
        assert summary["pending_reviews"] == 1
        assert summary["failed_alerts_24h"] == 1
        upcoming = summary["upcoming_expirations"]
        assert [item["doc_type"] for item in upcoming] == ["Registration", "CDL"]
        assert upcoming[0]["entity_name"] == "TRK-101"
        assert upcoming[0]["days_until_expiration"] == -1
        assert upcoming[1]["days_until_expiration"] == 12
