"""
Measurements router - the measurement ledger and per-measure analytics.

Readings of every family (outcome measures, ROM, MMT) share one ledger.
The family shortcuts build the canonical measure key from their
structured fields and validate them against the measure library.

All endpoints require API key authentication.

Architecture:
    HTTP Request → Router (this file) → MeasurementService → MeasurementRepository → Database
"""
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from outcome_svc.core.auth import verify_api_key
from outcome_svc.core.datetime_utils import format_iso
from outcome_svc.core.dependencies import get_measurement_service
from outcome_svc.schemas import (
    ComparisonResponse,
    InterpretationResponse,
    MeasurementCreate,
    MeasurementResponse,
    MmtMeasurementCreate,
    RomMeasurementCreate,
    TrendingPoint,
    TrendingResponse,
)
from outcome_svc.services import MeasurementService, TrendingView

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1",
    tags=["Measurements"],
    dependencies=[Depends(verify_api_key)],  # Require API key for all endpoints
)


def _trending_to_response(view: TrendingView) -> TrendingResponse:
    measure = view.measure
    interpretation = None
    if view.interpretation is not None:
        interpretation = InterpretationResponse(
            severity=view.interpretation.severity,
            severity_vi=view.interpretation.severity_vi,
            description=view.interpretation.description,
            description_vi=view.interpretation.description_vi,
        )
    return TrendingResponse(
        measure_key=measure.key,
        display_name=measure.display_name,
        unit=measure.unit,
        higher_is_better=measure.higher_is_better,
        data_points=[
            TrendingPoint(record_id=p.id, value=p.value, recorded_at=format_iso(p.recorded_at))
            for p in view.data_points
        ],
        previous_value=view.previous_value,
        goal_value=view.goal_value,
        progress_percentage=view.progress_percentage,
        comparison=ComparisonResponse.from_result(view.comparison) if view.comparison else None,
        interpretation=interpretation,
    )


# =============================================================================
# RECORDING
# =============================================================================

@router.post(
    "/measurements",
    response_model=MeasurementResponse,
    status_code=201,
    summary="Record a measurement",
    description="Append one reading to the patient's ledger. The measure key must exist in the "
                "measure library (aliases accepted) and the value must be within its bounds."
)
async def record_measurement(
    payload: MeasurementCreate,
    measurement_service: MeasurementService = Depends(get_measurement_service)
):
    """
    Record a measurement.

    Raises:
    - 400 Bad Request: Value out of range or off the measure's step
    - 404 Not Found: Unknown measure key
    """
    record = measurement_service.record(
        value=payload.value,
        measure_key=payload.measure_key,
        patient_id=payload.patient_id,
        clinician_id=payload.clinician_id,
        clinic_id=payload.clinic_id,
        session_id=payload.session_id,
        note=payload.note,
        recorded_at=payload.recorded_at,
    )
    return MeasurementResponse.from_record(record)


@router.post(
    "/measurements/rom",
    response_model=MeasurementResponse,
    status_code=201,
    summary="Record a range-of-motion reading",
    description="Record a goniometric reading for a joint, side and movement type. "
                "Degrees must be between 0 and the joint's maximum."
)
async def record_rom_measurement(
    payload: RomMeasurementCreate,
    measurement_service: MeasurementService = Depends(get_measurement_service)
):
    record = measurement_service.record_rom(
        joint=payload.joint,
        side=payload.side,
        movement_type=payload.movement_type,
        degree=payload.degree,
        patient_id=payload.patient_id,
        clinician_id=payload.clinician_id,
        clinic_id=payload.clinic_id,
        session_id=payload.session_id,
        note=payload.note,
        recorded_at=payload.recorded_at,
    )
    return MeasurementResponse.from_record(record)


@router.post(
    "/measurements/mmt",
    response_model=MeasurementResponse,
    status_code=201,
    summary="Record a manual muscle test grade",
    description="Record an MMT grade (0-5 in 0.5 steps) for a muscle group and side."
)
async def record_mmt_measurement(
    payload: MmtMeasurementCreate,
    measurement_service: MeasurementService = Depends(get_measurement_service)
):
    record = measurement_service.record_mmt(
        muscle_group=payload.muscle_group,
        side=payload.side,
        grade=payload.grade,
        patient_id=payload.patient_id,
        clinician_id=payload.clinician_id,
        clinic_id=payload.clinic_id,
        session_id=payload.session_id,
        note=payload.note,
        recorded_at=payload.recorded_at,
    )
    return MeasurementResponse.from_record(record)


@router.get(
    "/measurements/{record_id}",
    response_model=MeasurementResponse,
    summary="Get a measurement",
)
async def get_measurement(
    record_id: int,
    measurement_service: MeasurementService = Depends(get_measurement_service)
):
    return MeasurementResponse.from_record(measurement_service.get(record_id))


# =============================================================================
# PER-PATIENT QUERIES
# =============================================================================

@router.get(
    "/patients/{patient_id}/measurements/history",
    response_model=List[MeasurementResponse],
    summary="Measurement history",
    description="All readings of one measure for a patient in chronological order, "
                "optionally only those at or before `until`."
)
async def get_history(
    patient_id: str,
    measure_key: str = Query(..., description="Measure key or alias", example="vas"),
    until: Optional[datetime] = Query(None, description="Only readings at or before this instant"),
    measurement_service: MeasurementService = Depends(get_measurement_service)
):
    records = measurement_service.history(patient_id, measure_key, until=until)
    return [MeasurementResponse.from_record(r) for r in records]


@router.get(
    "/patients/{patient_id}/measurements/progress",
    response_model=ComparisonResponse,
    summary="Baseline vs current",
    description="Compare the patient's first reading with the latest one (at or before `until`). "
                "A patient with a single reading gets trend 'first_record'."
)
async def get_progress(
    patient_id: str,
    measure_key: str = Query(..., description="Measure key or alias", example="vas"),
    until: Optional[datetime] = Query(None, description="Use the latest reading at or before this instant"),
    measurement_service: MeasurementService = Depends(get_measurement_service)
):
    """
    Baseline vs current comparison.

    Raises:
    - 404 Not Found: Unknown measure, or no readings for this patient
    """
    result = measurement_service.progress(patient_id, measure_key, until=until)
    return ComparisonResponse.from_result(result)


@router.get(
    "/patients/{patient_id}/measurements/trending",
    response_model=TrendingResponse,
    summary="Trending view",
    description="Chart-ready data points plus baseline, previous and current values, "
                "trend, goal value and progress toward the goal."
)
async def get_trending(
    patient_id: str,
    measure_key: str = Query(..., description="Measure key or alias", example="ndi"),
    measurement_service: MeasurementService = Depends(get_measurement_service)
):
    return _trending_to_response(measurement_service.trending(patient_id, measure_key))
