"""Tests for the document-derived compliance status rules."""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

import pytest

from app.services.compliance.status_engine import (
    ComplianceRules,
    classify_expiration,
    compute_document_status,
    compute_status,
    refresh_document_status,
)

TODAY = date(2026, 3, 1)
DRIVER_DOCS = ["CDL", "Medical Card"]


@dataclass
class Doc:
    doc_type: str
    expiration_date: Optional[date]
    needs_review: bool = False
    status: Optional[str] = None

    def __post_init__(self):
        if self.status is None:
            self.status = compute_document_status(self.expiration_date, TODAY, self.needs_review)


def in_days(days: int) -> date:
    return TODAY + timedelta(days=days)


class TestPrecedence:
    """Missing beats expired beats expiring soon beats green."""

    def test_missing_required_document_is_red(self):
        result = compute_status([Doc("CDL", in_days(365))], TODAY, DRIVER_DOCS)

        assert result.status == "red"
        assert result.reason == "Missing required documents: Medical Card"
        assert result.missing_docs == ["Medical Card"]

    def test_missing_wins_over_expired(self):
        result = compute_status([Doc("CDL", in_days(-3))], TODAY, DRIVER_DOCS)

        assert result.status == "red"
        assert result.reason.startswith("Missing required documents")
        assert result.expired_docs == ["CDL"]

    def test_expired_required_document_is_red(self):
        docs = [Doc("CDL", in_days(-1)), Doc("Medical Card", in_days(200))]
        result = compute_status(docs, TODAY, DRIVER_DOCS)

        assert result.status == "red"
        assert result.reason == "Expired documents: CDL"

    def test_expiring_soon_is_yellow_with_days(self):
        docs = [Doc("CDL", in_days(20)), Doc("Medical Card", in_days(200))]
        result = compute_status(docs, TODAY, DRIVER_DOCS)

        assert result.status == "yellow"
        assert result.reason == "CDL expires in 20 days"

    def test_soonest_expiring_document_explains_yellow(self):
        docs = [Doc("CDL", in_days(25)), Doc("Medical Card", in_days(4))]
        result = compute_status(docs, TODAY, DRIVER_DOCS)

        assert result.reason == "Medical Card expires in 4 days"
        assert [item.doc_type for item in result.expiring_soon_docs] == ["Medical Card", "CDL"]

    def test_all_valid_is_green(self):
        docs = [Doc("CDL", in_days(90)), Doc("Medical Card", None)]
        result = compute_status(docs, TODAY, DRIVER_DOCS)

        assert result.status == "green"
        assert result.reason == "All required documents present and valid"
        assert result.missing_docs is None

    def test_document_types_match_case_insensitively(self):
        docs = [Doc(" cdl ", in_days(90)), Doc("MEDICAL CARD", in_days(90))]

        assert compute_status(docs, TODAY, DRIVER_DOCS).status == "green"

    def test_optional_documents_never_affect_status(self):
        docs = [Doc("CDL", in_days(90)), Doc("Medical Card", in_days(90)), Doc("Hazmat", in_days(-10))]

        assert compute_status(docs, TODAY, DRIVER_DOCS).status == "green"

    def test_no_requirements_and_no_documents_is_green(self):
        assert compute_status([], TODAY, []).status == "green"


class TestExpiryBoundary:
    @pytest.mark.parametrize(
        "days, expected",
        [(-1, "expired"), (0, "expiring_soon"), (30, "expiring_soon"), (31, None)],
    )
    def test_window_edges(self, days, expected):
        assert classify_expiration(in_days(days), TODAY, 30) == expected

    def test_document_expiring_today_is_yellow_not_red(self):
        docs = [Doc("CDL", TODAY), Doc("Medical Card", in_days(90))]
        result = compute_status(docs, TODAY, DRIVER_DOCS)

        assert result.status == "yellow"
        assert result.reason == "CDL expires in 0 days"

    def test_custom_window(self):
        docs = [Doc("CDL", in_days(45)), Doc("Medical Card", in_days(200))]

        assert compute_status(docs, TODAY, DRIVER_DOCS, expiring_soon_days=60).status == "yellow"
        assert compute_status(docs, TODAY, DRIVER_DOCS, expiring_soon_days=30).status == "green"


class TestTrustRule:
    """An expired document still awaiting review is held at yellow."""

    def test_expired_unreviewed_document_is_yellow(self):
        docs = [Doc("CDL", in_days(-5), needs_review=True), Doc("Medical Card", in_days(200))]
        result = compute_status(docs, TODAY, DRIVER_DOCS)

        assert result.status == "yellow"
        assert result.reason == f"CDL expired on {in_days(-5).isoformat()}, awaiting review"
        assert result.expired_docs is None
        assert result.expiring_soon_docs[0].awaiting_review is True

    def test_reviewed_expired_document_is_red(self):
        docs = [Doc("CDL", in_days(-5), needs_review=False), Doc("Medical Card", in_days(200))]

        assert compute_status(docs, TODAY, DRIVER_DOCS).status == "red"

    def test_document_already_marked_red_is_not_held(self):
        docs = [Doc("CDL", in_days(-5), needs_review=True, status="red"), Doc("Medical Card", in_days(200))]

        assert compute_status(docs, TODAY, DRIVER_DOCS).status == "red"

    def test_per_document_badge(self):
        assert compute_document_status(in_days(-1), TODAY, needs_review=True) == "yellow"
        assert compute_document_status(in_days(-1), TODAY, needs_review=False) == "red"
        assert compute_document_status(in_days(10), TODAY) == "yellow"
        assert compute_document_status(None, TODAY) == "green"

    def test_refresh_keeps_red_badge_after_review_flag(self):
        assert refresh_document_status(Doc("CDL", in_days(-2), needs_review=True, status="red"), TODAY) == "red"
        assert refresh_document_status(Doc("CDL", in_days(-2), needs_review=True, status="yellow"), TODAY) == "yellow"
        # A corrected date lifts the badge even before review completes
        assert refresh_document_status(Doc("CDL", in_days(90), needs_review=True, status="red"), TODAY) == "green"


class TestComplianceRules:
    def test_fleet_overrides_replace_per_kind(self):
        rules = ComplianceRules(required_documents={"driver": ["CDL"], "vehicle": ["Registration"]})
        merged = rules.with_fleet_overrides({"driver": ["CDL", "Drug Test"]}, expiring_soon_days=14)

        assert merged.required_for("driver") == ["CDL", "Drug Test"]
        assert merged.required_for("vehicle") == ["Registration"]
        assert merged.expiring_soon_days == 14
        assert rules.required_for("driver") == ["CDL"]

    def test_unknown_kind_has_no_requirements(self):
        assert ComplianceRules().required_for("trailer") == []
