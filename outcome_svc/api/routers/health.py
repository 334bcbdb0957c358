"""
Probe and metrics endpoints.

/health answers as long as the process is up. /ready additionally checks
that SQLite answers and reports how many outcome measures the library holds.
/metrics and /metrics/json expose request counts, latency percentiles and
the number of stale protocol updates that were rejected.

These routes sit outside /api/v1 and need no API key.
"""
import logging
import sqlite3
import time
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from outcome_svc import __version__
from outcome_svc.core.datetime_utils import format_iso, utc_now
from outcome_svc.core.dependencies import get_database
from outcome_svc.core.measure_library import FAMILY_OUTCOME, list_measures
from outcome_svc.core.middleware import get_metrics_collector
from outcome_svc.repositories.base import Database

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health & Observability"])


# =============================================================================
# RESPONSE MODELS
# =============================================================================

class HealthResponse(BaseModel):
    """Response model for /health endpoint."""
    status: str  # "healthy"
    version: str
    timestamp: str  # ISO 8601 UTC


class DependencyStatus(BaseModel):
    """Status of a single dependency."""
    name: str
    status: str  # "ok" or "unavailable"
    latency_ms: Optional[float] = None
    message: Optional[str] = None


class ReadyResponse(BaseModel):
    """Response model for /ready endpoint."""
    status: str  # "ready" or "not_ready"
    dependencies: List[DependencyStatus]
    timestamp: str


class MetricsResponse(BaseModel):
    """Response model for JSON metrics endpoint."""
    http_requests_total: int
    http_requests_2xx_total: int
    http_requests_4xx_total: int
    http_requests_5xx_total: int
    http_request_duration_ms_p50: float
    http_request_duration_ms_p95: float
    http_request_duration_ms_p99: float
    version_conflicts_total: int
    requests_by_resource: Dict[str, int]


# =============================================================================
# HEALTH ENDPOINT (LIVENESS)
# =============================================================================

@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Liveness probe",
    description="Check if the application is running. Returns immediately without checking dependencies."
)
async def health_check() -> HealthResponse:
    """
    Liveness probe - is the application process alive?

    Always returns 200 if the app is running; dependencies are checked by /ready.
    """
    return HealthResponse(
        status="healthy",
        version=__version__,
        timestamp=format_iso(utc_now())
    )


# =============================================================================
# READINESS ENDPOINT
# =============================================================================

def _check_database(db: Database) -> DependencyStatus:
    """Run a trivial query against SQLite and time it."""
    start = time.perf_counter()
    try:
        conn = db.get_connection()
        try:
            conn.execute("SELECT 1")
        finally:
            conn.close()

        latency_ms = (time.perf_counter() - start) * 1000
        return DependencyStatus(
            name="database",
            status="ok",
            latency_ms=round(latency_ms, 2),
            message="SQLite connection healthy"
        )
    except sqlite3.Error as e:
        latency_ms = (time.perf_counter() - start) * 1000
        logger.error("Database health check failed", extra={"error": str(e)})
        return DependencyStatus(
            name="database",
            status="unavailable",
            latency_ms=round(latency_ms, 2),
            message=f"Connection failed: {type(e).__name__}"
        )


def _check_measure_library() -> DependencyStatus:
    outcome_count = len(list_measures(FAMILY_OUTCOME))
    if outcome_count == 0:
        return DependencyStatus(
            name="measure_library",
            status="unavailable",
            message="No outcome measures defined",
        )
    return DependencyStatus(
        name="measure_library",
        status="ok",
        message=f"{outcome_count} outcome measures loaded",
    )


@router.get(
    "/ready",
    response_model=ReadyResponse,
    summary="Readiness probe",
    description="Check that SQLite answers and the measure library is loaded. Returns 503 otherwise."
)
async def readiness_check(
    response: Response,
    db: Database = Depends(get_database)
) -> ReadyResponse:
    """
    Readiness probe - can the application handle requests?

    Returns:
    - 200 with status="ready" if SQLite answers and outcome measures are loaded
    - 503 with status="not_ready" otherwise
    """
    checks = [_check_database(db), _check_measure_library()]

    if all(check.status == "ok" for check in checks):
        status = "ready"
    else:
        status = "not_ready"
        response.status_code = 503

    return ReadyResponse(
        status=status,
        dependencies=checks,
        timestamp=format_iso(utc_now())
    )


# =============================================================================
# METRICS ENDPOINT
# =============================================================================

@router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Export metrics in Prometheus text format. "
                "Includes HTTP request counts, latency percentiles and rejected stale updates."
)
async def get_metrics() -> Response:
    """
    Export metrics in Prometheus text format.

    Scrape configuration (prometheus.yml):
        scrape_configs:
          - job_name: 'outcome-svc'
            static_configs:
              - targets: ['localhost:8000']
            metrics_path: /metrics
    """
    collector = get_metrics_collector()
    return Response(
        content=collector.get_prometheus_format(),
        media_type="text/plain; version=0.0.4; charset=utf-8"
    )


@router.get(
    "/metrics/json",
    response_model=MetricsResponse,
    summary="JSON metrics",
    description="Export metrics in JSON format for custom dashboards or API consumers."
)
async def get_metrics_json() -> MetricsResponse:
    collector = get_metrics_collector()
    return MetricsResponse(
        **collector.get_summary(),
        requests_by_resource=collector.requests_by_resource(),
    )


# =============================================================================
# ROOT ENDPOINT
# =============================================================================

@router.get(
    "/",
    summary="API root",
    description="Root endpoint with basic API information."
)
async def root() -> Dict[str, Any]:
    """Service name, version, and links to documentation."""
    return {
        "service": "Outcome Service API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
        "ready": "/ready",
        "metrics": "/metrics"
    }
