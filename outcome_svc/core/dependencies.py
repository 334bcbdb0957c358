"""
FastAPI Dependency Injection configuration for the Outcome Service API.

Architecture Flow:
    API Layer (Routers)
         ↓ Depends()
    Service Layer (Business Logic)
         ↓ Injected
    Repository Layer (Data Access)
         ↓ Injected
    Database (SQLite Connection)

Usage in Routers:
    from outcome_svc.core.dependencies import get_measurement_service

    @router.post("/measurements")
    async def record_measurement(
        payload: MeasurementCreate,
        service: MeasurementService = Depends(get_measurement_service)
    ):
        return service.record(...)

Testing:
    # Override dependencies in tests
    app.dependency_overrides[get_database] = lambda: test_database
"""
import logging
from typing import Optional

from outcome_svc.core.config import settings

logger = logging.getLogger(__name__)


# =============================================================================
# DATABASE DEPENDENCY
# =============================================================================

# Lazy import to avoid circular dependencies
_database_instance: Optional["Database"] = None


def get_database() -> "Database":
    """
    Get the database instance (process-wide singleton).

    Created on first use; schema creation and WAL mode happen in the
    Database constructor.
    """
    global _database_instance

    if _database_instance is None:
        from outcome_svc.repositories.base import Database

        logger.info(f"Initializing database: {settings.database_path}")
        _database_instance = Database(
            db_path=settings.database_path,
            busy_timeout=settings.outcome_svc_db_busy_timeout
        )
        logger.info("Database initialized successfully")

    return _database_instance


def reset_database() -> None:
    """Drop the shared Database; the next get_database() call opens a new one."""
    global _database_instance
    _database_instance = None


# =============================================================================
# REPOSITORY DEPENDENCIES
# =============================================================================

def get_measurement_repository() -> "MeasurementRepository":
    """Get a MeasurementRepository instance with database injected."""
    from outcome_svc.repositories import MeasurementRepository

    db = get_database()
    return MeasurementRepository(db=db)


def get_snapshot_repository() -> "SnapshotRepository":
    from outcome_svc.repositories import SnapshotRepository

    db = get_database()
    return SnapshotRepository(db=db)


def get_protocol_repository() -> "ProtocolRepository":
    from outcome_svc.repositories import ProtocolRepository

    db = get_database()
    return ProtocolRepository(db=db)


# =============================================================================
# SERVICE DEPENDENCIES
# =============================================================================

def get_measurement_service() -> "MeasurementService":
    """
    Get a MeasurementService instance with repository injected.

    Returns:
        MeasurementService: Recording, history, progress and trending.
    """
    from outcome_svc.services import MeasurementService

    return MeasurementService(measurement_repository=get_measurement_repository())


def get_reevaluation_service() -> "ReevaluationService":
    """
    Get a ReevaluationService instance.

    Reads baselines through the measurement repository and writes
    snapshots through the snapshot repository.
    """
    from outcome_svc.services import ReevaluationService

    return ReevaluationService(
        measurement_repository=get_measurement_repository(),
        snapshot_repository=get_snapshot_repository()
    )


def get_protocol_service() -> "ProtocolService":
    from outcome_svc.services import ProtocolService

    return ProtocolService(protocol_repository=get_protocol_repository())
