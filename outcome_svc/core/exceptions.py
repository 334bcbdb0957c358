"""
Shared exception classes and error handling utilities for the Outcome Service API.

This module provides:
- Custom exception hierarchy for domain-specific errors
- Consistent error response formatting
- Exception handlers for FastAPI integration

Usage:
    from outcome_svc.core.exceptions import MeasureNotFoundError, VersionConflictError

    # In service layer - raise domain exceptions
    raise MeasureNotFoundError(measure_key="vas")

    # In FastAPI - register handlers via setup_exception_handlers(app)
"""
import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


# =============================================================================
# BASE EXCEPTION CLASSES
# =============================================================================

class OutcomeServiceError(Exception):
    """
    Base exception for all Outcome Service domain errors.

    All custom exceptions should inherit from this class.
    Provides consistent error structure with status code and detail message.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail: str = "An unexpected error occurred"

    def __init__(
        self,
        detail: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs: Any
    ):
        """
        Initialize the exception.

        Args:
            detail: Human-readable error message. Uses class default if not provided.
            status_code: HTTP status code. Uses class default if not provided.
            **kwargs: Additional context to include in error response.
        """
        self.detail = detail or self.__class__.detail
        self.status_code = status_code or self.__class__.status_code
        self.context = {k: v for k, v in kwargs.items() if v is not None}
        super().__init__(self.detail)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        result = {"detail": self.detail}
        if self.context:
            result["context"] = self.context
        return result


# =============================================================================
# NOT FOUND EXCEPTIONS
# =============================================================================

class NotFoundError(OutcomeServiceError):
    """Raised when a referenced entity does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    detail = "Resource not found"


class MeasureNotFoundError(NotFoundError):
    """Raised when a measure key is not in the measure library."""

    detail = "Measure not found"

    def __init__(self, measure_key: Optional[str] = None, **kwargs: Any):
        detail = f"Unknown measure '{measure_key}'" if measure_key else self.detail
        super().__init__(detail=detail, measure_key=measure_key, **kwargs)


class MeasurementNotFoundError(NotFoundError):
    """Raised when a measurement record id does not exist."""

    detail = "Measurement not found"

    def __init__(self, record_id: Optional[int] = None, detail: Optional[str] = None, **kwargs: Any):
        if detail is None:
            detail = f"Measurement {record_id} not found" if record_id is not None else self.detail
        super().__init__(detail=detail, record_id=record_id, **kwargs)


class SnapshotNotFoundError(NotFoundError):
    """Raised when a re-evaluation snapshot does not exist."""

    detail = "Re-evaluation not found"

    def __init__(self, snapshot_id: Optional[int] = None, **kwargs: Any):
        detail = f"Re-evaluation {snapshot_id} not found" if snapshot_id is not None else self.detail
        super().__init__(detail=detail, snapshot_id=snapshot_id, **kwargs)


class ProtocolAssignmentNotFoundError(NotFoundError):
    """Raised when a protocol assignment does not exist."""

    detail = "Protocol assignment not found"

    def __init__(self, assignment_id: Optional[int] = None, **kwargs: Any):
        detail = (
            f"Protocol assignment {assignment_id} not found"
            if assignment_id is not None else self.detail
        )
        super().__init__(detail=detail, assignment_id=assignment_id, **kwargs)


# =============================================================================
# INPUT & CONCURRENCY EXCEPTIONS
# =============================================================================

class InvalidInputError(OutcomeServiceError):
    """Raised when request data fails domain validation."""

    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Invalid input"


class VersionConflictError(OutcomeServiceError):
    """Raised when an update carries a stale version number."""

    status_code = status.HTTP_409_CONFLICT
    detail = "Record was modified by another request, please reload"

    def __init__(
        self,
        entity_id: Optional[int] = None,
        expected_version: Optional[int] = None,
        actual_version: Optional[int] = None,
        **kwargs: Any
    ):
        self.entity_id = entity_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            entity_id=entity_id,
            expected_version=expected_version,
            actual_version=actual_version,
            **kwargs
        )


# =============================================================================
# DATABASE EXCEPTIONS
# =============================================================================

class DatabaseError(OutcomeServiceError):
    """Raised when a database operation fails."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail = "Database operation failed"

    def __init__(self, operation: Optional[str] = None, **kwargs: Any):
        detail = f"Database error during {operation}" if operation else self.detail
        super().__init__(detail=detail, operation=operation, **kwargs)


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

async def outcome_service_exception_handler(
    request: Request,
    exc: OutcomeServiceError
) -> JSONResponse:
    """
    Handle OutcomeServiceError exceptions and return consistent JSON responses.

    Conflicts are also counted by the metrics collector so stale-write
    pressure shows up on /metrics.
    """
    if isinstance(exc, VersionConflictError):
        from outcome_svc.core.middleware import get_metrics_collector
        get_metrics_collector().record_version_conflict()

    logger.log(
        logging.ERROR if exc.status_code >= 500 else logging.WARNING,
        f"OutcomeServiceError: {exc.detail}",
        extra={
            "status_code": exc.status_code,
            "path": request.url.path,
            "method": request.method,
            "context": exc.context
        }
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """
    Register exception handlers with the FastAPI application.

    Args:
        app: The FastAPI application instance.

    Example:
        app = FastAPI()
        setup_exception_handlers(app)
    """
    app.add_exception_handler(OutcomeServiceError, outcome_service_exception_handler)
