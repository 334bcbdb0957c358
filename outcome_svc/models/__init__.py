"""
Domain models for the outcome service.
"""
from outcome_svc.models.comparison import ComparisonResult, MeasureProfile, Trend
from outcome_svc.models.measurement import MeasurementRecord
from outcome_svc.models.protocol import (
    Conflict,
    ProgressNote,
    ProtocolAssignment,
    ProtocolStatus,
    Updated,
    UpdateResult,
)
from outcome_svc.models.snapshot import (
    BaselineMode,
    ReevaluationItem,
    ReevaluationSnapshot,
    ReevaluationSummary,
)

__all__ = [
    "BaselineMode",
    "ComparisonResult",
    "Conflict",
    "MeasureProfile",
    "MeasurementRecord",
    "ProgressNote",
    "ProtocolAssignment",
    "ProtocolStatus",
    "ReevaluationItem",
    "ReevaluationSnapshot",
    "ReevaluationSummary",
    "Trend",
    "Updated",
    "UpdateResult",
]
