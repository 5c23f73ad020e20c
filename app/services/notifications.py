from __future__ import annotations

import asyncio
import logging
import smtplib
from email.message import EmailMessage
from typing import Optional, Protocol

import httpx
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Content, Email, Mail, To

from app.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

EMAIL_NOT_CONFIGURED = "Email service not configured"
SMS_NOT_CONFIGURED = "SMS service not configured"


class DeliveryResult:
    def __init__(self, success: bool, message_id: Optional[str] = None, error: Optional[str] = None) -> None:
        self.success = success
        self.message_id = message_id
        self.error = error

    def __repr__(self) -> str:
        return f"DeliveryResult(success={self.success}, message_id={self.message_id!r}, error={self.error!r})"


class EmailSender(Protocol):
    @property
    def configured(self) -> bool:
        ...

    async def send(self, to: str, subject: str, html_body: str, text_body: str) -> DeliveryResult:
        ...


class SMSSender(Protocol):
    @property
    def configured(self) -> bool:
        ...

    async def send(self, to: str, body: str) -> DeliveryResult:
        ...


class ProviderEmailSender:
    """SendGrid when an API key is set, SMTP otherwise."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()

    @property
    def configured(self) -> bool:
        return self.settings.email_configured and bool(self._from_address)

    @property
    def _from_address(self) -> Optional[str]:
        return self.settings.email_from_address or self.settings.smtp_username

    async def send(self, to: str, subject: str, html_body: str, text_body: str) -> DeliveryResult:
        if not self.configured:
            logger.error("Email provider not configured", extra={"recipient": to})
            return DeliveryResult(False, error=EMAIL_NOT_CONFIGURED)
        if self.settings.sendgrid_api_key:
            return await asyncio.to_thread(self._send_via_sendgrid, to, subject, html_body, text_body)
        return await asyncio.to_thread(self._send_via_smtp, to, subject, html_body, text_body)

    def _send_via_sendgrid(self, to: str, subject: str, html_body: str, text_body: str) -> DeliveryResult:
        message = Mail(
            from_email=Email(self._from_address, self.settings.email_from_name),
            to_emails=To(to),
            subject=subject,
        )
        message.add_content(Content("text/plain", text_body))
        message.add_content(Content("text/html", html_body))
        try:
            response = SendGridAPIClient(self.settings.sendgrid_api_key).send(message)
        except Exception as exc:
            logger.exception("SendGrid send failed", extra={"recipient": to})
            return DeliveryResult(False, error=f"SendGrid failure: {exc}")

        if response.status_code in (200, 201, 202):
            headers = response.headers or {}
            return DeliveryResult(True, message_id=headers.get("X-Message-Id"))
        logger.error("SendGrid rejected email", extra={"status": response.status_code, "recipient": to})
        return DeliveryResult(False, error=f"SendGrid failure: HTTP {response.status_code}")

    def _send_via_smtp(self, to: str, subject: str, html_body: str, text_body: str) -> DeliveryResult:
        message = EmailMessage()
        message["From"] = f"{self.settings.email_from_name} <{self._from_address}>"
        message["To"] = to
        message["Subject"] = subject
        message.set_content(text_body)
        message.add_alternative(html_body, subtype="html")

        try:
            with smtplib.SMTP(self.settings.smtp_host, self.settings.smtp_port) as server:
                server.starttls()
                server.login(self.settings.smtp_username, self.settings.smtp_password)
                server.send_message(message)
        except Exception as exc:
            logger.exception("Failed to send SMTP email", extra={"recipient": to})
            return DeliveryResult(False, error=f"SMTP failure: {exc}")
        return DeliveryResult(True, message_id=message.get("Message-ID"))


class TwilioSMSSender:
    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()

    @property
    def configured(self) -> bool:
        return self.settings.sms_configured

    async def send(self, to: str, body: str) -> DeliveryResult:
        if not self.configured:
            return DeliveryResult(False, error=SMS_NOT_CONFIGURED)

        sid = self.settings.sms_twilio_account_sid
        url = f"https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"
        data = {
            "To": to,
            "From": self.settings.sms_twilio_from_number,
            "Body": body,
        }
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    url,
                    data=data,
                    auth=(sid, self.settings.sms_twilio_auth_token),
                    timeout=10,
                )
        except httpx.HTTPError as exc:
            logger.exception("Twilio request failed", extra={"recipient": to})
            return DeliveryResult(False, error=f"Twilio failure: {exc}")

        if response.status_code in (200, 201):
            return DeliveryResult(True, message_id=response.json().get("sid"))
        logger.error("Twilio SMS failed", extra={"status": response.status_code, "body": response.text})
        return DeliveryResult(False, error=f"Twilio failure: {response.text}")


def build_email_sender() -> EmailSender:
    return ProviderEmailSender()


def build_sms_sender() -> SMSSender:
    return TwilioSMSSender()
