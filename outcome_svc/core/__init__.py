"""
Core module for application configuration, logging, and shared constants.

This module provides:
- Settings: Application configuration via pydantic-settings
- Dependency injection: FastAPI Depends() functions for services and repositories
- Exceptions: Domain-specific exception classes with HTTP status codes
- Datetime utilities: UTC-first datetime handling

The measure library lives in core.measure_library and is imported directly.
"""
from outcome_svc.core.config import settings, Settings

# Dependency injection - import functions for FastAPI Depends()
from outcome_svc.core.dependencies import (
    get_database,
    get_measurement_repository,
    get_snapshot_repository,
    get_protocol_repository,
    get_measurement_service,
    get_reevaluation_service,
    get_protocol_service,
    reset_database,
)

# Exception classes for consistent error handling
from outcome_svc.core.exceptions import (
    OutcomeServiceError,
    NotFoundError,
    MeasureNotFoundError,
    MeasurementNotFoundError,
    SnapshotNotFoundError,
    ProtocolAssignmentNotFoundError,
    InvalidInputError,
    VersionConflictError,
    DatabaseError,
    setup_exception_handlers,
)

# UTC datetime utilities
from outcome_svc.core.datetime_utils import (
    utc_now,
    to_utc,
    ensure_utc,
    format_iso,
    to_db_string,
    from_db_string,
)

__all__ = [
    # Settings
    "settings",
    "Settings",
    # Dependency injection
    "get_database",
    "get_measurement_repository",
    "get_snapshot_repository",
    "get_protocol_repository",
    "get_measurement_service",
    "get_reevaluation_service",
    "get_protocol_service",
    "reset_database",
    # Exceptions
    "OutcomeServiceError",
    "NotFoundError",
    "MeasureNotFoundError",
    "MeasurementNotFoundError",
    "SnapshotNotFoundError",
    "ProtocolAssignmentNotFoundError",
    "InvalidInputError",
    "VersionConflictError",
    "DatabaseError",
    "setup_exception_handlers",
    # Datetime utilities
    "utc_now",
    "to_utc",
    "ensure_utc",
    "format_iso",
    "to_db_string",
    "from_db_string",
]
