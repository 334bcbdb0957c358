"""
Shared pytest fixtures for service and API tests.

Key patterns:

1. Database Isolation: Each test gets a fresh temporary database
2. DI Override: Use app.dependency_overrides to inject test dependencies
3. Service Injection: Services are created with test repositories

Fixture Hierarchy:
    temp_db → repositories → services → test_app → client
"""
import os
import tempfile
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

# Set test configuration before importing config modules.
# The production database location points into a temp dir so the
# app-level tests (test_auth) never touch ./data.
TEST_API_KEY = "test-api-key-for-testing-purposes-12345678"
os.environ["OUTCOME_SVC_API_KEY"] = TEST_API_KEY
os.environ.setdefault("OUTCOME_SVC_DB_DIR", tempfile.mkdtemp(prefix="outcome_svc_test_"))

from outcome_svc.repositories import (
    Database,
    MeasurementRepository,
    ProtocolRepository,
    SnapshotRepository,
)
from outcome_svc.services import MeasurementService, ProtocolService, ReevaluationService
from outcome_svc.core.exceptions import setup_exception_handlers
from outcome_svc.core import dependencies as deps
from outcome_svc.core.auth import verify_api_key


# Fixed clock for building readings in chronological order
T0 = datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)


def at(days: int) -> datetime:
    """T0 plus a number of days."""
    return T0 + timedelta(days=days)


@pytest.fixture
def temp_db():
    """
    Create a temporary database for testing.

    A fresh SQLite file per test; WAL side files are removed as well.
    """
    fd, db_path = tempfile.mkstemp(suffix='.db')
    os.close(fd)

    db = Database(db_path=db_path)
    yield db

    for path in (db_path, f"{db_path}-wal", f"{db_path}-shm"):
        if os.path.exists(path):
            os.unlink(path)


@pytest.fixture
def measurement_repo(temp_db):
    return MeasurementRepository(db=temp_db)


@pytest.fixture
def snapshot_repo(temp_db):
    return SnapshotRepository(db=temp_db)


@pytest.fixture
def protocol_repo(temp_db):
    return ProtocolRepository(db=temp_db)


@pytest.fixture
def measurement_service(measurement_repo):
    """Create a MeasurementService with the test repository."""
    return MeasurementService(measurement_repository=measurement_repo)


@pytest.fixture
def reevaluation_service(measurement_repo, snapshot_repo):
    return ReevaluationService(
        measurement_repository=measurement_repo,
        snapshot_repository=snapshot_repo
    )


@pytest.fixture
def protocol_service(protocol_repo):
    return ProtocolService(protocol_repository=protocol_repo)


@pytest.fixture
def record(measurement_service):
    """
    Shortcut for appending a reading.

    Usage:
        record("vas", 8, days=0)
    """
    def _record(measure_key, value, days=0, patient_id="patient-001"):
        return measurement_service.record(
            value=value,
            measure_key=measure_key,
            patient_id=patient_id,
            clinician_id="therapist-07",
            clinic_id="clinic-01",
            recorded_at=at(days),
        )
    return _record


@pytest.fixture
def test_app(
    temp_db,
    measurement_repo,
    snapshot_repo,
    protocol_repo,
    measurement_service,
    reevaluation_service,
    protocol_service,
):
    """
    Create a FastAPI test app with dependency overrides.

    Uses the real routers with test database and services injected via
    dependency_overrides, and the production exception handlers.
    """
    from outcome_svc.api.routers import (
        health_router,
        library_router,
        measurements_router,
        protocols_router,
        reevaluations_router,
    )

    app = FastAPI(title="Outcome Service API Test")

    setup_exception_handlers(app)

    app.dependency_overrides[deps.get_database] = lambda: temp_db
    app.dependency_overrides[deps.get_measurement_repository] = lambda: measurement_repo
    app.dependency_overrides[deps.get_snapshot_repository] = lambda: snapshot_repo
    app.dependency_overrides[deps.get_protocol_repository] = lambda: protocol_repo
    app.dependency_overrides[deps.get_measurement_service] = lambda: measurement_service
    app.dependency_overrides[deps.get_reevaluation_service] = lambda: reevaluation_service
    app.dependency_overrides[deps.get_protocol_service] = lambda: protocol_service

    # Skip API key verification in tests
    async def skip_auth():
        return TEST_API_KEY
    app.dependency_overrides[verify_api_key] = skip_auth

    app.include_router(health_router)
    app.include_router(measurements_router)
    app.include_router(reevaluations_router)
    app.include_router(protocols_router)
    app.include_router(library_router)

    yield app

    app.dependency_overrides.clear()


@pytest.fixture
def client(test_app):
    """Create a test client for the API."""
    return TestClient(test_app)
