"""Tests for the email and SMS providers."""

from unittest.mock import AsyncMock, MagicMock, Mock, patch

import httpx
import pytest

from app.core.config import Settings
from app.services.notifications import (
    EMAIL_NOT_CONFIGURED,
    SMS_NOT_CONFIGURED,
    ProviderEmailSender,
    TwilioSMSSender,
)


def make_settings(**overrides) -> Settings:
    return Settings(database_url="sqlite+aiosqlite:///:memory:", **overrides)


@pytest.fixture
def mock_httpx_client() -> Mock:
    client = Mock()
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=None)
    return client


class TestProviderEmailSender:
    @pytest.mark.asyncio
    async def test_unconfigured_returns_failure(self):
        sender = ProviderEmailSender(make_settings())

        result = await sender.send("owner@example.com", "Subject", "<p>hi</p>", "hi")

        assert sender.configured is False
        assert result.success is False
        assert result.error == EMAIL_NOT_CONFIGURED

    @pytest.mark.asyncio
    async def test_sendgrid_used_when_key_present(self):
        sender = ProviderEmailSender(make_settings(sendgrid_api_key="SG.key", email_from_address="alerts@roadready.app"))
        response = MagicMock(status_code=202, headers={"X-Message-Id": "sg-123"})

        with patch("app.services.notifications.SendGridAPIClient") as client_cls:
            client_cls.return_value.send.return_value = response
            result = await sender.send("owner@example.com", "Subject", "<p>hi</p>", "hi")

        assert result.success is True
        assert result.message_id == "sg-123"
        client_cls.assert_called_once_with("SG.key")

    @pytest.mark.asyncio
    async def test_sendgrid_rejection_is_failure(self):
        sender = ProviderEmailSender(make_settings(sendgrid_api_key="SG.key", email_from_address="alerts@roadready.app"))

        with patch("app.services.notifications.SendGridAPIClient") as client_cls:
            client_cls.return_value.send.return_value = MagicMock(status_code=401, headers={})
            result = await sender.send("owner@example.com", "Subject", "<p>hi</p>", "hi")

        assert result.success is False
        assert "401" in result.error

    @pytest.mark.asyncio
    async def test_smtp_fallback(self):
        sender = ProviderEmailSender(
            make_settings(smtp_host="smtp.example.com", smtp_username="alerts@example.com", smtp_password="secret")
        )

        with patch("app.services.notifications.smtplib.SMTP") as smtp_cls:
            server = smtp_cls.return_value.__enter__.return_value
            result = await sender.send("owner@example.com", "Subject", "<p>hi</p>", "hi")

        assert result.success is True
        server.login.assert_called_once_with("alerts@example.com", "secret")
        sent = server.send_message.call_args.args[0]
        assert sent["To"] == "owner@example.com"
        assert sent["Subject"] == "Subject"


class TestTwilioSMSSender:
    @pytest.mark.asyncio
    async def test_unconfigured_returns_failure(self):
        result = await TwilioSMSSender(make_settings()).send("+15550100", "hello")

        assert result.success is False
        assert result.error == SMS_NOT_CONFIGURED

    @pytest.mark.asyncio
    async def test_send_posts_to_twilio(self, mock_httpx_client):
        sender = TwilioSMSSender(
            make_settings(sms_twilio_account_sid="AC1", sms_twilio_auth_token="token", sms_twilio_from_number="+15559999")
        )
        response = Mock(status_code=201)
        response.json.return_value = {"sid": "SM42"}
        mock_httpx_client.post = AsyncMock(return_value=response)

        with patch("app.services.notifications.httpx.AsyncClient", return_value=mock_httpx_client):
            result = await sender.send("+15550100", "hello")

        assert result.success is True
        assert result.message_id == "SM42"
        url = mock_httpx_client.post.call_args.args[0]
        assert url == "https://api.twilio.com/2010-04-01/Accounts/AC1/Messages.json"
        assert mock_httpx_client.post.call_args.kwargs["data"] == {"To": "+15550100", "From": "+15559999", "Body": "hello"}

    @pytest.mark.asyncio
    async def test_network_error_is_failure(self, mock_httpx_client):
        sender = TwilioSMSSender(
            make_settings(sms_twilio_account_sid="AC1", sms_twilio_auth_token="token", sms_twilio_from_number="+15559999")
        )
        mock_httpx_client.post = AsyncMock(side_effect=httpx.ConnectError("unreachable"))

        with patch("app.services.notifications.httpx.AsyncClient", return_value=mock_httpx_client):
            result = await sender.send("+15550100", "hello")

        assert result.success is False
        assert result.error.startswith("Twilio failure")
