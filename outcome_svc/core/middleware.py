"""
Request observability for the outcome service.

Every request gets a request_id (taken from an incoming X-Request-ID header
when the caller supplies one) that is attached to all log lines emitted while
the request is handled. Completed requests feed an in-memory collector that
backs /metrics and /metrics/json.

Middleware order in main.py: LoggingMiddleware wraps CORS, which wraps the routers.
"""

import logging
import re
import threading
import time
import uuid
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Deque, Dict, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from outcome_svc.core.logging_config import set_request_id, clear_request_id

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")

# First path segment after /api/v1 that names the resource being touched
_RESOURCES = ("measurements", "reevaluations", "protocol-assignments", "library", "patients")


def resource_for_path(path: str) -> str:
    """Map a request path to a coarse resource label for metrics."""
    parts = [p for p in path.split("/") if p]
    if len(parts) >= 3 and parts[0] == "api" and parts[1] == "v1":
        if parts[2] == "patients" and len(parts) >= 5:
            # /api/v1/patients/{id}/reevaluations -> reevaluations
            candidate = parts[4]
            return candidate if candidate in _RESOURCES else "patients"
        if parts[2] in _RESOURCES:
            return parts[2]
    return "other"


# =============================================================================
# IN-MEMORY METRICS COLLECTOR
# =============================================================================

@dataclass
class RequestMetrics:
    timestamp: datetime
    method: str
    path: str
    status_code: int
    duration_ms: float
    request_id: str


@dataclass
class MetricsCollector:
    """
    Counters plus a bounded latency window.

    Sync endpoints run in the threadpool, so every mutation takes the lock.
    """
    max_history: int = 1000

    _durations: Deque[float] = field(default_factory=deque)
    _by_resource: Counter = field(default_factory=Counter)
    _by_status_class: Counter = field(default_factory=Counter)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    total_requests: int = 0
    version_conflicts: int = 0

    def __post_init__(self) -> None:
        self._durations = deque(maxlen=self.max_history)

    def record_request(self, metrics: RequestMetrics) -> None:
        with self._lock:
            self._durations.append(metrics.duration_ms)
            self.total_requests += 1
            self._by_status_class[f"{metrics.status_code // 100}xx"] += 1
            self._by_resource[resource_for_path(metrics.path)] += 1

    def record_version_conflict(self) -> None:
        """Count a rejected stale-version update."""
        with self._lock:
            self.version_conflicts += 1

    def get_latency_percentiles(self) -> Dict[str, float]:
        """Nearest-rank p50/p95/p99 over the latency window; zeros when empty."""
        with self._lock:
            durations = sorted(self._durations)
        if not durations:
            return {"p50": 0, "p95": 0, "p99": 0}

        last = len(durations) - 1
        return {
            f"p{p}": round(durations[min(int(len(durations) * p / 100), last)], 2)
            for p in (50, 95, 99)
        }

    def requests_by_resource(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._by_resource)

    def get_summary(self) -> Dict:
        latencies = self.get_latency_percentiles()
        with self._lock:
            by_class = dict(self._by_status_class)

        return {
            "http_requests_total": self.total_requests,
            "http_requests_2xx_total": by_class.get("2xx", 0),
            "http_requests_4xx_total": by_class.get("4xx", 0),
            "http_requests_5xx_total": by_class.get("5xx", 0),
            "http_request_duration_ms_p50": latencies["p50"],
            "http_request_duration_ms_p95": latencies["p95"],
            "http_request_duration_ms_p99": latencies["p99"],
            "version_conflicts_total": self.version_conflicts,
        }

    def get_prometheus_format(self) -> str:
        """Render the summary as Prometheus text exposition."""
        summary = self.get_summary()
        lines = [
            "# HELP http_requests_total Total HTTP requests",
            "# TYPE http_requests_total counter",
            f'http_requests_total {summary["http_requests_total"]}',
            "",
            "# HELP http_requests_by_status HTTP requests by status category",
            "# TYPE http_requests_by_status counter",
        ]
        for status_class in ("2xx", "4xx", "5xx"):
            lines.append(
                f'http_requests_by_status{{status="{status_class}"}} '
                f'{summary[f"http_requests_{status_class}_total"]}'
            )
        lines += [
            "",
            "# HELP http_requests_by_resource HTTP requests by API resource",
            "# TYPE http_requests_by_resource counter",
        ]
        for resource, count in sorted(self.requests_by_resource().items()):
            lines.append(f'http_requests_by_resource{{resource="{resource}"}} {count}')
        lines += [
            "",
            "# HELP http_request_duration_ms Request duration in milliseconds",
            "# TYPE http_request_duration_ms gauge",
        ]
        for quantile, key in (("0.5", "p50"), ("0.95", "p95"), ("0.99", "p99")):
            lines.append(
                f'http_request_duration_ms{{quantile="{quantile}"}} '
                f'{summary[f"http_request_duration_ms_{key}"]}'
            )
        lines += [
            "",
            "# HELP version_conflicts_total Updates rejected because of a stale version",
            "# TYPE version_conflicts_total counter",
            f'version_conflicts_total {summary["version_conflicts_total"]}',
        ]
        return "\n".join(lines) + "\n"


metrics_collector = MetricsCollector()


def get_metrics_collector() -> MetricsCollector:
    return metrics_collector


# =============================================================================
# LOGGING MIDDLEWARE
# =============================================================================

def _incoming_request_id(request: Request) -> Optional[str]:
    value = request.headers.get(REQUEST_ID_HEADER)
    if value and _VALID_REQUEST_ID.match(value):
        return value
    return None


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs each API request once on entry and once on completion, records its
    latency, and echoes the request_id back in the X-Request-ID header.

    Probe and docs paths are timed but not logged.
    """

    QUIET_PATHS = {"/health", "/ready", "/metrics", "/metrics/json", "/docs", "/redoc", "/openapi.json"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = _incoming_request_id(request) or uuid.uuid4().hex[:8]
        set_request_id(request_id)

        path = request.url.path
        quiet = path in self.QUIET_PATHS
        started = time.perf_counter()

        if not quiet:
            logger.info(
                "Request started",
                extra={
                    "method": request.method,
                    "path": path,
                    "resource": resource_for_path(path),
                    "query": str(request.query_params) if request.query_params else None,
                }
            )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception(
                "Request failed with exception",
                extra={"method": request.method, "path": path, "error": str(e)}
            )
            raise
        finally:
            duration_ms = (time.perf_counter() - started) * 1000
            clear_request_id()

        metrics_collector.record_request(RequestMetrics(
            timestamp=datetime.now(timezone.utc),
            method=request.method,
            path=path,
            status_code=response.status_code,
            duration_ms=duration_ms,
            request_id=request_id,
        ))

        if not quiet:
            logger.log(
                logging.WARNING if response.status_code >= 400 else logging.INFO,
                "Request completed",
                extra={
                    "method": request.method,
                    "path": path,
                    "status_code": response.status_code,
                    "duration_ms": round(duration_ms, 2),
                    "request_id": request_id,
                }
            )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
