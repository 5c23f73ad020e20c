"""Document-derived compliance status.

Pure functions only: callers pass the documents, today's date and the rules, and
get back a traffic-light status with an explanation. Nothing here touches the
database, so the same date arithmetic is shared by the synchronizer, the upload
path and the alert sweep.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Sequence

from app.core.config import get_settings

GREEN = "green"
YELLOW = "yellow"
RED = "red"

EXPIRED = "expired"
EXPIRING_SOON = "expiring_soon"

DEFAULT_EXPIRING_SOON_DAYS = 30


class DocumentLike(Protocol):
    doc_type: str
    expiration_date: Optional[date]
    needs_review: bool
    status: Optional[str]


@dataclass
class ExpiringDocument:
    doc_type: str
    expiration_date: date
    days_remaining: int
    awaiting_review: bool = False


@dataclass
class StatusResult:
    status: str
    reason: str
    missing_docs: Optional[List[str]] = None
    expired_docs: Optional[List[str]] = None
    expiring_soon_docs: Optional[List[ExpiringDocument]] = None


@dataclass
class ComplianceRules:
    """Required document types per entity kind plus the yellow window."""

    required_documents: Dict[str, List[str]] = field(default_factory=dict)
    expiring_soon_days: int = DEFAULT_EXPIRING_SOON_DAYS

    def required_for(self, entity_type: str) -> List[str]:
        return list(self.required_documents.get(entity_type, []))

    @classmethod
    def from_settings(cls) -> "ComplianceRules":
        settings = get_settings()
        return cls(
            required_documents={kind: list(types) for kind, types in settings.required_documents.items()},
            expiring_soon_days=settings.expiring_soon_days,
        )

    def with_fleet_overrides(
        self,
        required_documents: Optional[Mapping[str, Sequence[str]]] = None,
        expiring_soon_days: Optional[int] = None,
    ) -> "ComplianceRules":
        merged = {kind: list(types) for kind, types in self.required_documents.items()}
        for kind, types in (required_documents or {}).items():
            merged[kind] = list(types)
        return ComplianceRules(
            required_documents=merged,
            expiring_soon_days=expiring_soon_days if expiring_soon_days is not None else self.expiring_soon_days,
        )


def normalize_doc_type(doc_type: Optional[str]) -> str:
    return (doc_type or "").strip().lower()


def days_until(expiration_date: date, today: date) -> int:
    """Whole days from today to the expiration date; 0 on the day itself, negative once past."""
    return (expiration_date - today).days


def classify_expiration(
    expiration_date: Optional[date],
    today: date,
    expiring_soon_days: int = DEFAULT_EXPIRING_SOON_DAYS,
) -> Optional[str]:
    if expiration_date is None:
        return None
    days = days_until(expiration_date, today)
    if days < 0:
        return EXPIRED
    if days <= expiring_soon_days:
        return EXPIRING_SOON
    return None


def compute_document_status(
    expiration_date: Optional[date],
    today: date,
    needs_review: bool = False,
    expiring_soon_days: int = DEFAULT_EXPIRING_SOON_DAYS,
) -> str:
    """Badge for a single document. An unverified expired document is held at yellow."""
    urgency = classify_expiration(expiration_date, today, expiring_soon_days)
    if urgency == EXPIRED:
        return YELLOW if needs_review else RED
    if urgency == EXPIRING_SOON:
        return YELLOW
    return GREEN


def refresh_document_status(
    document: DocumentLike,
    today: date,
    expiring_soon_days: int = DEFAULT_EXPIRING_SOON_DAYS,
) -> str:
    """Badge after time has passed.

    A document already shown red keeps that badge while it stays expired, even if it
    was flagged for review afterwards; only a reviewer's edit can lift it.
    """
    if (
        document.needs_review
        and document.status == RED
        and classify_expiration(document.expiration_date, today, expiring_soon_days) == EXPIRED
    ):
        return RED
    return compute_document_status(document.expiration_date, today, document.needs_review, expiring_soon_days)


def is_held_for_review(document: DocumentLike) -> bool:
    """Expired-but-unverified documents the engine must not escalate on its own."""
    return bool(document.needs_review) and document.status != RED


def compute_status(
    documents: Iterable[DocumentLike],
    today: date,
    required_types: Sequence[str],
    expiring_soon_days: int = DEFAULT_EXPIRING_SOON_DAYS,
) -> StatusResult:
    """Compliance status for one entity.

    Rules, first match wins: a required type with no document is red, an expired
    required document is red, a required document inside the window is yellow,
    otherwise green. Expired documents still awaiting review count as yellow.
    """
    docs = list(documents)
    by_type: Dict[str, List[DocumentLike]] = {}
    for doc in docs:
        by_type.setdefault(normalize_doc_type(doc.doc_type), []).append(doc)

    required = {normalize_doc_type(name): name for name in required_types}
    missing = [name for key, name in required.items() if not by_type.get(key)]

    expired: List[str] = []
    expiring: List[ExpiringDocument] = []
    for doc in docs:
        if normalize_doc_type(doc.doc_type) not in required or doc.expiration_date is None:
            continue
        days = days_until(doc.expiration_date, today)
        if days < 0:
            if is_held_for_review(doc):
                expiring.append(ExpiringDocument(doc.doc_type, doc.expiration_date, days, awaiting_review=True))
            elif doc.doc_type not in expired:
                expired.append(doc.doc_type)
        elif days <= expiring_soon_days:
            expiring.append(ExpiringDocument(doc.doc_type, doc.expiration_date, days))

    expiring.sort(key=lambda item: item.days_remaining)

    if missing:
        status = RED
        reason = f"Missing required documents: {', '.join(missing)}"
    elif expired:
        status = RED
        reason = f"Expired documents: {', '.join(expired)}"
    elif expiring:
        status = YELLOW
        reason = _expiring_reason(expiring[0])
    else:
        status = GREEN
        reason = "All required documents present and valid"

    return StatusResult(
        status=status,
        reason=reason,
        missing_docs=missing or None,
        expired_docs=expired or None,
        expiring_soon_docs=expiring or None,
    )


def _expiring_reason(item: ExpiringDocument) -> str:
    if item.awaiting_review:
        return f"{item.doc_type} expired on {item.expiration_date.isoformat()}, awaiting review"
    return f"{item.doc_type} expires in {item.days_remaining} days"
