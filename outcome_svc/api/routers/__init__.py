"""
API routers module.

This module contains all API route definitions organized by domain.
"""
from outcome_svc.api.routers.health import router as health_router
from outcome_svc.api.routers.measurements import router as measurements_router
from outcome_svc.api.routers.reevaluations import router as reevaluations_router
from outcome_svc.api.routers.protocols import router as protocols_router
from outcome_svc.api.routers.library import router as library_router

__all__ = [
    "health_router",
    "measurements_router",
    "reevaluations_router",
    "protocols_router",
    "library_router",
]
