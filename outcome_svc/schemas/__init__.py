"""
Pydantic schemas for API request/response validation.

This module contains all Pydantic models used at API boundaries.
"""
from outcome_svc.schemas.measurement import (
    ComparisonResponse,
    InterpretationResponse,
    MeasurementCreate,
    MeasurementResponse,
    MmtMeasurementCreate,
    RomMeasurementCreate,
    TrendingPoint,
    TrendingResponse,
)
from outcome_svc.schemas.protocol import (
    ProgressNoteResponse,
    ProtocolAssignmentCreate,
    ProtocolAssignmentResponse,
    ProtocolProgressUpdate,
)
from outcome_svc.schemas.reevaluation import (
    ReevaluationCreate,
    ReevaluationItemCreate,
    ReevaluationItemResponse,
    ReevaluationResponse,
    ReevaluationSummaryResponse,
)

__all__ = [
    # Measurement schemas
    "ComparisonResponse",
    "InterpretationResponse",
    "MeasurementCreate",
    "MeasurementResponse",
    "MmtMeasurementCreate",
    "RomMeasurementCreate",
    "TrendingPoint",
    "TrendingResponse",
    # Protocol schemas
    "ProgressNoteResponse",
    "ProtocolAssignmentCreate",
    "ProtocolAssignmentResponse",
    "ProtocolProgressUpdate",
    # Re-evaluation schemas
    "ReevaluationCreate",
    "ReevaluationItemCreate",
    "ReevaluationItemResponse",
    "ReevaluationResponse",
    "ReevaluationSummaryResponse",
]
