"""
FastAPI application entry point for the Outcome Service API.

This module configures and creates the FastAPI application with:
- Structured JSON Logging with request ID propagation
- Dependency Injection: Services and repositories injected via Depends()
- Exception Handling: Consistent error responses via setup_exception_handlers()
- CORS Middleware
- Lifespan Management: Database initialization
- Metrics Collection: In-memory metrics for Prometheus scraping

Architecture Overview:
    ┌─────────────────────────────────────────────────────────────┐
    │                     FastAPI Application                      │
    ├─────────────────────────────────────────────────────────────┤
    │  Middleware Stack (order matters!)                          │
    │    ├── LoggingMiddleware  - Request logging & metrics       │
    │    └── CORSMiddleware     - Cross-origin support            │
    ├─────────────────────────────────────────────────────────────┤
    │  Routers (api/routers/)                                     │
    │    ├── health.py        - /health, /ready, /metrics         │
    │    ├── measurements.py  - Ledger, progress, trending        │
    │    ├── reevaluations.py - Re-evaluation snapshots           │
    │    ├── protocols.py     - Versioned protocol assignments    │
    │    └── library.py       - Measure catalogue                 │
    ├─────────────────────────────────────────────────────────────┤
    │  Services (services/)     ← Injected via Depends()          │
    │    ├── MeasurementService                                   │
    │    ├── ReevaluationService                                  │
    │    └── ProtocolService (OptimisticUpdateGuard)              │
    ├─────────────────────────────────────────────────────────────┤
    │  Repositories (repositories/)   ← Injected into Services    │
    │    ├── MeasurementRepository                                │
    │    ├── SnapshotRepository                                   │
    │    └── ProtocolRepository                                   │
    ├─────────────────────────────────────────────────────────────┤
    │  Database (SQLite, WAL)         ← Injected into Repositories│
    └─────────────────────────────────────────────────────────────┘
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from outcome_svc import __version__
from outcome_svc.core.config import API_HOST, API_PORT, API_RELOAD
from outcome_svc.core.dependencies import get_database, reset_database
from outcome_svc.core.exceptions import setup_exception_handlers
from outcome_svc.core.logging_config import setup_logging
from outcome_svc.core.measure_library import list_measures
from outcome_svc.core.middleware import REQUEST_ID_HEADER, LoggingMiddleware
from outcome_svc.api.routers import (
    health_router,
    library_router,
    measurements_router,
    protocols_router,
    reevaluations_router,
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for FastAPI application.

    Startup configures logging, opens the database (creating the schema on
    first run) and logs the size of the measure library. Shutdown drops the
    shared Database instance.
    """
    # =========================================================================
    # STARTUP
    # =========================================================================

    # Configure structured logging FIRST (before any other logging)
    setup_logging(level="INFO", json_format=True)

    logger = logging.getLogger(__name__)
    logger.info("Starting Outcome Service API...")

    db = get_database()
    logger.info(
        "Database initialized",
        extra={"db_path": db.db_path}
    )
    logger.info(
        "Measure library loaded",
        extra={"measures": len(list_measures())}
    )

    yield  # Application runs here

    # =========================================================================
    # SHUTDOWN
    # =========================================================================
    logger.info("Outcome Service API shutting down...")
    reset_database()


app = FastAPI(
    title="Outcome Service API",
    description="REST API for clinical outcome tracking: record outcome measures, range of motion "
                "and manual muscle tests, compare against baselines, run re-evaluations and "
                "track protocol progress.",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan
)

# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================
setup_exception_handlers(app)

# =============================================================================
# MIDDLEWARE
# =============================================================================
# Middleware is executed in REVERSE order of registration.

# 1. CORS Middleware (innermost - closest to routes)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[REQUEST_ID_HEADER],
)

# 2. Logging Middleware (outermost - captures all requests)
app.add_middleware(LoggingMiddleware)

# =============================================================================
# ROUTERS
# =============================================================================
app.include_router(health_router)
app.include_router(measurements_router)
app.include_router(reevaluations_router)
app.include_router(protocols_router)
app.include_router(library_router)


if __name__ == "__main__":
    uvicorn.run(
        "outcome_svc.main:app",
        host=API_HOST,
        port=API_PORT,
        reload=API_RELOAD
    )
