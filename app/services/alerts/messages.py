"""Subjects and bodies for expiration alerts."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from html import escape
from typing import List, Optional, Tuple

from app.core.config import get_settings
from app.services.compliance.entities import entity_label
from app.services.compliance.status_engine import EXPIRED

_STYLE = """
      body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
      .container { max-width: 600px; margin: 0 auto; padding: 20px; }
      .header { background-color: #1e40af; color: white; padding: 20px; text-align: center; }
      .content { background-color: #f9fafb; padding: 20px; border: 1px solid #e5e7eb; }
      .alert { color: white; padding: 15px; margin: 20px 0; text-align: center; font-weight: bold; }
      table { width: 100%; border-collapse: collapse; margin: 15px 0; }
      th { background-color: #f3f4f6; padding: 10px; text-align: left; }
      td { padding: 10px; border-bottom: 1px solid #e5e7eb; }
      .footer { text-align: center; padding: 20px; color: #6b7280; font-size: 12px; }
"""

_FOOTER_TEXT = "This is an automated alert from RoadReady\nKnow who's road-ready. Every day."


@dataclass
class AlertItem:
    """One document worth telling the fleet owner about."""

    entity_type: str
    entity_name: str
    document_type: str
    expiration_date: Optional[date]
    reason: str
    days_until_expiration: Optional[int] = None


def _dashboard_url() -> str:
    return f"{get_settings().app_base_url.rstrip('/')}/dashboard"


def _format_date(value: Optional[date]) -> str:
    if value is None:
        return "unknown"
    return value.strftime("%m/%d/%Y")


def _html_page(title: str, inner: str) -> str:
    return (
        "<!DOCTYPE html><html><head><style>"
        f"{_STYLE}"
        "</style></head><body><div class=\"container\">"
        f"<div class=\"header\"><h1>{escape(title)}</h1></div>"
        f"<div class=\"content\">{inner}"
        f"<p><a href=\"{escape(_dashboard_url())}\">View Dashboard</a></p></div>"
        "<div class=\"footer\"><p>This is an automated alert from RoadReady</p>"
        "<p>Know who's road-ready. Every day.</p></div>"
        "</div></body></html>"
    )


def build_alert_email(item: AlertItem) -> Tuple[str, str, str]:
    """Return (subject, html, text) for a single-document alert."""
    expired = item.reason == EXPIRED
    label = entity_label(item.entity_type)
    headline = "Document Expired" if expired else "Document Expiring Soon"
    status_text = "EXPIRED - Not Road Ready" if expired else "Expiring Soon"
    advice = (
        "This document has expired. The driver/vehicle is not road-ready until this is resolved."
        if expired
        else "This document will expire soon. Please renew before the expiration date."
    )
    subject = (
        f"RoadReady: {label} \"{item.entity_name}\" - {item.document_type} "
        f"{'Expired' if expired else 'Expiring Soon'}"
    )

    color = "#dc2626" if expired else "#f59e0b"
    urgency = "URGENT" if expired else "Warning"
    inner = (
        f"<div class=\"alert\" style=\"background-color: {color}\">{urgency}: {headline}</div>"
        f"<p><strong>{label}:</strong> {escape(item.entity_name)}</p>"
        f"<p><strong>Document Type:</strong> {escape(item.document_type)}</p>"
        f"<p><strong>Expiration Date:</strong> {_format_date(item.expiration_date)}</p>"
        f"<p><strong>Status:</strong> {status_text}</p>"
        f"<p>{advice}</p>"
    )
    text = "\n".join(
        [
            f"RoadReady Alert: {headline}",
            "",
            f"{label}: {item.entity_name}",
            f"Document Type: {item.document_type}",
            f"Expiration Date: {_format_date(item.expiration_date)}",
            f"Status: {status_text}",
            "",
            advice,
            "",
            f"View Dashboard: {_dashboard_url()}",
            "",
            "---",
            _FOOTER_TEXT,
        ]
    )
    return subject, _html_page("RoadReady Alert", inner), text


def build_digest_email(items: List[AlertItem]) -> Tuple[str, str, str]:
    """One email listing every item, expired ones first."""
    expired = [item for item in items if item.reason == EXPIRED]
    expiring = [item for item in items if item.reason != EXPIRED]
    subject = f"RoadReady Daily Digest: {len(expired)} Expired, {len(expiring)} Expiring Soon"

    html_sections: List[str] = []
    text_lines: List[str] = ["RoadReady Daily Digest", ""]
    if expired:
        rows = "".join(
            f"<tr><td>{entity_label(item.entity_type)}</td><td>{escape(item.entity_name)}</td>"
            f"<td>{escape(item.document_type)}</td><td>{_format_date(item.expiration_date)}</td></tr>"
            for item in expired
        )
        html_sections.append(
            f"<h2>Expired Documents ({len(expired)})</h2>"
            f"<table><tr><th>Type</th><th>Name</th><th>Document</th><th>Expired</th></tr>{rows}</table>"
        )
        text_lines.append(f"Expired Documents ({len(expired)}):")
        text_lines.extend(
            f"- {entity_label(item.entity_type)} {item.entity_name}: {item.document_type} expired {_format_date(item.expiration_date)}"
            for item in expired
        )
        text_lines.append("")
    if expiring:
        rows = "".join(
            f"<tr><td>{entity_label(item.entity_type)}</td><td>{escape(item.entity_name)}</td>"
            f"<td>{escape(item.document_type)}</td><td>{_format_date(item.expiration_date)}</td>"
            f"<td>{_days_left(item)}</td></tr>"
            for item in expiring
        )
        html_sections.append(
            f"<h2>Expiring Soon ({len(expiring)})</h2>"
            "<table><tr><th>Type</th><th>Name</th><th>Document</th><th>Expires</th><th>Days Left</th></tr>"
            f"{rows}</table>"
        )
        text_lines.append(f"Expiring Soon ({len(expiring)}):")
        text_lines.extend(
            f"- {entity_label(item.entity_type)} {item.entity_name}: {item.document_type} expires "
            f"{_format_date(item.expiration_date)} ({_days_left(item)} days left)"
            for item in expiring
        )
        text_lines.append("")

    text_lines.extend([f"View Dashboard: {_dashboard_url()}", "", "---", _FOOTER_TEXT])
    return subject, _html_page("RoadReady Daily Digest", "".join(html_sections)), "\n".join(text_lines)


def build_sms_text(item: AlertItem) -> str:
    label = entity_label(item.entity_type)
    if item.reason == EXPIRED:
        return (
            f"RoadReady ALERT: {label} \"{item.entity_name}\" - {item.document_type} EXPIRED on "
            f"{_format_date(item.expiration_date)}. Not road-ready. Action required. {_dashboard_url()}"
        )
    days = item.days_until_expiration
    days_text = "1 day" if days == 1 else f"{days} days"
    return (
        f"RoadReady: {label} \"{item.entity_name}\" - {item.document_type} expires in {days_text} "
        f"({_format_date(item.expiration_date)}). Renew soon. {_dashboard_url()}"
    )


def _days_left(item: AlertItem) -> str:
    return "N/A" if item.days_until_expiration is None else str(item.days_until_expiration)
