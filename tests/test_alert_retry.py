"""Tests for re-sending failed alerts."""

import uuid
from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select

from app.models.alert import Alert
from app.models.user import User
from app.services.alerts.retry import AlertRetryService
from app.services.notifications import DeliveryResult

NOW = datetime(2026, 3, 1, 8, 0, 0)
TODAY = NOW.date()


def make_service(db_session, email_sender, sms_sender):
    return AlertRetryService(db_session, email_sender=email_sender, sms_sender=sms_sender)


async def seed_failed(db_session, document, channel="email", reason="expired", hours_ago=1, fleet_id=None):
    created = NOW - timedelta(hours=hours_ago)
    alert = Alert(
        id=str(uuid.uuid4()),
        fleet_id=fleet_id or document.fleet_id,
        channel=channel,
        to_address="owner@example.com" if channel == "email" else "+15550100",
        reason=reason,
        entity_type=document.entity_type,
        entity_id=document.entity_id,
        document_id=document.id,
        status="failed",
        error="Email service not configured",
        created_at=created,
        updated_at=created,
    )
    db_session.add(alert)
    await db_session.commit()
    return alert.id


class TestRetrySweep:
    @pytest.mark.asyncio
    async def test_nothing_to_retry(self, db_session, email_sender, sms_sender):
        result = await make_service(db_session, email_sender, sms_sender).run_retry_sweep(now=NOW)

        assert result.retried == 0
        assert result.message == "No failed alerts to retry"
        email_sender.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_email_updated_in_place(self, db_session, driver, add_document, email_sender, sms_sender):
        document = await add_document(driver, "CDL", TODAY - timedelta(days=3))
        alert_id = await seed_failed(db_session, document)

        result = await make_service(db_session, email_sender, sms_sender).run_retry_sweep(now=NOW)

        assert result.retried == 1
        assert result.still_failed == 0
        subject = email_sender.send.call_args.args[1]
        assert subject == 'RoadReady: Driver "Jane Smith" - CDL Expired'

        alert = await db_session.get(Alert, alert_id)
        assert alert.status == "sent"
        assert alert.error is None
        assert alert.message_id == "email-1"
        assert alert.sent_at == NOW
        assert await db_session.scalar(select(func.count(Alert.id))) == 1

    @pytest.mark.asyncio
    async def test_still_failing_counts(self, db_session, driver, add_document, email_sender, sms_sender):
        email_sender.send = AsyncMock(return_value=DeliveryResult(False, error="SendGrid 503"))
        document = await add_document(driver, "CDL", TODAY - timedelta(days=3))
        alert_id = await seed_failed(db_session, document)

        result = await make_service(db_session, email_sender, sms_sender).run_retry_sweep(now=NOW)

        assert result.retried == 0
        assert result.still_failed == 1
        alert = await db_session.get(Alert, alert_id)
        assert alert.status == "failed"
        assert alert.error == "SendGrid 503"

    @pytest.mark.asyncio
    async def test_failures_outside_lookback_are_ignored(self, db_session, driver, add_document, email_sender, sms_sender):
        document = await add_document(driver, "CDL", TODAY - timedelta(days=3))
        await seed_failed(db_session, document, hours_ago=30)

        result = await make_service(db_session, email_sender, sms_sender).run_retry_sweep(now=NOW)

        assert result.message == "No failed alerts to retry"

    @pytest.mark.asyncio
    async def test_sms_without_owner_phone_stays_failed(self, db_session, fleet, driver, add_document, email_sender, sms_sender):
        owner = await db_session.get(User, fleet.owner_id)
        owner.phone = None
        await db_session.commit()
        document = await add_document(driver, "CDL", TODAY - timedelta(days=3))
        alert_id = await seed_failed(db_session, document, channel="sms")

        result = await make_service(db_session, email_sender, sms_sender).run_retry_sweep(now=NOW)

        assert result.still_failed == 1
        sms_sender.send.assert_not_awaited()
        alert = await db_session.get(Alert, alert_id)
        assert alert.error == "Owner has no phone number"

    @pytest.mark.asyncio
    async def test_expiring_soon_failures_rebatched_into_digest(
        self, db_session, driver, vehicle, add_document, email_sender, sms_sender
    ):
        medical = await add_document(driver, "Medical Card", TODAY + timedelta(days=10))
        insurance = await add_document(vehicle, "Insurance", TODAY + timedelta(days=20))
        first = await seed_failed(db_session, medical, reason="expiring_soon")
        second = await seed_failed(db_session, insurance, reason="expiring_soon")

        result = await make_service(db_session, email_sender, sms_sender).run_retry_sweep(now=NOW)

        assert email_sender.send.await_count == 1
        assert email_sender.send.call_args.args[1] == "RoadReady Daily Digest: 0 Expired, 2 Expiring Soon"
        assert result.retried == 2
        for alert_id in (first, second):
            assert (await db_session.get(Alert, alert_id)).status == "sent"

    @pytest.mark.asyncio
    async def test_deleted_document_uses_placeholders(self, db_session, driver, add_document, email_sender, sms_sender):
        document = await add_document(driver, "CDL", TODAY - timedelta(days=3))
        await seed_failed(db_session, document)
        await db_session.delete(document)
        await db_session.commit()

        result = await make_service(db_session, email_sender, sms_sender).run_retry_sweep(now=NOW)

        assert result.retried == 1
        subject = email_sender.send.call_args.args[1]
        assert subject == 'RoadReady: Driver "Unknown" - Document Expired'

    @pytest.mark.asyncio
    async def test_unknown_fleet_reported(self, db_session, driver, add_document, email_sender, sms_sender):
        document = await add_document(driver, "CDL", TODAY - timedelta(days=3))
        await seed_failed(db_session, document, fleet_id="gone-fleet")

        result = await make_service(db_session, email_sender, sms_sender).run_retry_sweep(now=NOW)

        assert result.errors == ["Fleet gone-fleet: Not found"]
        email_sender.send.assert_not_awaited()
