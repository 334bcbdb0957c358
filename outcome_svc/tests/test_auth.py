"""
Tests for API authentication against the production app.

conftest.py sets OUTCOME_SVC_API_KEY and points OUTCOME_SVC_DB_DIR at a
temporary directory before the app is imported.
"""
import os

import pytest
from fastapi.testclient import TestClient

# Same key conftest.py exports before any config import
TEST_API_KEY = os.environ["OUTCOME_SVC_API_KEY"]


@pytest.fixture
def authenticated_client():
    """Test client for the real app with API key verification enabled."""
    from outcome_svc.main import app
    return TestClient(app)


class TestAuthentication:

    def test_missing_api_key_returns_401(self, authenticated_client):
        response = authenticated_client.get("/api/v1/patients/patient-001/reevaluations")
        assert response.status_code == 401
        assert "Missing API key" in response.json()["detail"]

    def test_invalid_api_key_returns_403(self, authenticated_client):
        response = authenticated_client.get(
            "/api/v1/patients/patient-001/reevaluations",
            headers={"X-API-Key": "invalid-key"}
        )
        assert response.status_code == 403
        assert "Invalid API key" in response.json()["detail"]

    def test_valid_api_key_allows_access(self, authenticated_client):
        response = authenticated_client.get(
            "/api/v1/patients/auth-test-patient/reevaluations",
            headers={"X-API-Key": TEST_API_KEY}
        )
        assert response.status_code == 200
        assert response.json() == []

    def test_measurement_create_requires_auth(self, authenticated_client):
        payload = {
            "patient_id": "auth-test-patient",
            "clinic_id": "clinic-01",
            "clinician_id": "therapist-07",
            "measure_key": "vas",
            "value": 4,
        }
        assert authenticated_client.post("/api/v1/measurements", json=payload).status_code == 401

        response = authenticated_client.post(
            "/api/v1/measurements",
            json=payload,
            headers={"X-API-Key": TEST_API_KEY}
        )
        assert response.status_code == 201
        assert "X-Request-ID" in response.headers

    def test_protocol_update_requires_auth(self, authenticated_client):
        response = authenticated_client.patch(
            "/api/v1/protocol-assignments/1/progress",
            json={"version": 1, "therapist_id": "therapist-07"}
        )
        assert response.status_code == 401

    @pytest.mark.parametrize("path", ["/", "/health", "/ready", "/metrics", "/api/v1/library/measures"])
    def test_public_endpoints_need_no_key(self, authenticated_client, path):
        assert authenticated_client.get(path).status_code == 200

    def test_request_id_is_generated_or_echoed(self, authenticated_client):
        generated = authenticated_client.get("/health")
        assert len(generated.headers["X-Request-ID"]) == 8

        echoed = authenticated_client.get("/health", headers={"X-Request-ID": "visit-42.abc"})
        assert echoed.headers["X-Request-ID"] == "visit-42.abc"

        rejected = authenticated_client.get("/health", headers={"X-Request-ID": "bad id with spaces"})
        assert rejected.headers["X-Request-ID"] != "bad id with spaces"
