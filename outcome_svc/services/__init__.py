"""
Service layer for business logic.
"""
from outcome_svc.services.concurrency import OptimisticUpdateGuard
from outcome_svc.services.measurement_service import MeasurementService, TrendingView
from outcome_svc.services.protocol_service import ProtocolService
from outcome_svc.services.reevaluation_service import ReevaluationItemInput, ReevaluationService

__all__ = [
    "MeasurementService",
    "OptimisticUpdateGuard",
    "ProtocolService",
    "ReevaluationItemInput",
    "ReevaluationService",
    "TrendingView",
]
