"""Tests for the HTTP layer: auth guards and error mapping."""

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

from app.api import deps
from app.main import app
from app.routers import documents, jobs
from app.schemas.alert import ExpirationSweepResult, RetrySweepResult

CRON_HEADERS = {"Authorization": "Bearer test-cron-secret"}


def _user():
    user = MagicMock()
    user.id = "user-1"
    return user


class TestJobsRouter:
    def test_check_expirations_requires_cron_secret(self, test_client):
        response = test_client.get("/api/jobs/check-expirations")

        assert response.status_code == 401

    def test_wrong_secret_rejected(self, test_client):
        response = test_client.get("/api/jobs/retry-failed-alerts", headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401

    def test_check_expirations_runs_sweep(self, test_client):
        service = MagicMock()
        service.run_expiration_sweep = AsyncMock(
            return_value=ExpirationSweepResult(
                processed=3,
                alerts_sent=4,
                errors=["Fleet f-2: Owner not found"],
                timestamp=datetime(2026, 3, 1, 7, 0),
            )
        )
        app.dependency_overrides[jobs._expiration_service] = lambda: service

        response = test_client.get("/api/jobs/check-expirations", headers=CRON_HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["processed"] == 3
        assert body["alerts_sent"] == 4
        assert body["errors"] == ["Fleet f-2: Owner not found"]

    def test_retry_failed_alerts_runs_sweep(self, test_client):
        service = MagicMock()
        service.run_retry_sweep = AsyncMock(
            return_value=RetrySweepResult(message="No failed alerts to retry", timestamp=datetime(2026, 3, 1, 8, 0))
        )
        app.dependency_overrides[jobs._retry_service] = lambda: service

        response = test_client.get("/api/jobs/retry-failed-alerts", headers=CRON_HEADERS)

        assert response.status_code == 200
        assert response.json()["message"] == "No failed alerts to retry"


class TestDocumentsRouter:
    def _override(self, service):
        app.dependency_overrides[documents._service] = lambda: service
        app.dependency_overrides[deps.get_current_fleet] = lambda: "fleet-1"
        app.dependency_overrides[deps.get_current_user] = _user

    def test_requires_credentials(self, test_client):
        response = test_client.get("/api/documents")

        assert response.status_code == 401

    def test_validation_error_maps_to_400(self, test_client):
        service = MagicMock()
        service.upload_document = AsyncMock(side_effect=ValueError("Invalid file type. Only PDF, JPEG, PNG, and WEBP are allowed."))
        self._override(service)

        response = test_client.post(
            "/api/documents/upload",
            files={"file": ("notes.txt", b"hello", "text/plain")},
            data={"entity_type": "driver", "entity_id": "d-1", "doc_type": "CDL"},
        )

        assert response.status_code == 400
        assert response.json()["detail"].startswith("Invalid file type")
        kwargs = service.upload_document.call_args.kwargs
        assert kwargs["fleet_id"] == "fleet-1"
        assert kwargs["user_id"] == "user-1"
        assert kwargs["content_type"] == "text/plain"

    def test_missing_document_maps_to_404(self, test_client):
        service = MagicMock()
        service.get_document = AsyncMock(side_effect=LookupError("Document not found"))
        self._override(service)

        response = test_client.get("/api/documents/doc-404")

        assert response.status_code == 404
        assert response.json()["detail"] == "Document not found"

    def test_review_is_attributed_to_current_user(self, test_client):
        service = MagicMock()
        service.update_extraction = AsyncMock(side_effect=ValueError("Unknown field: color"))
        self._override(service)

        response = test_client.put("/api/documents/doc-1/extraction", json={"fields": {"color": "red"}})

        assert response.status_code == 400
        service.update_extraction.assert_awaited_once_with("fleet-1", "doc-1", {"color": "red"}, reviewer_id="user-1")


class TestHealthRouter:
    def test_liveness(self, test_client):
        response = test_client.get("/api/healthz")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
