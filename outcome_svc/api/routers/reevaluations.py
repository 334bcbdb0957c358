"""
Re-evaluations router.

A re-evaluation compares a batch of current values against each measure's
baseline and stores the result as one immutable snapshot. Either the whole
snapshot is saved or nothing is.

All endpoints require API key authentication.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends

from outcome_svc.core.auth import verify_api_key
from outcome_svc.core.dependencies import get_reevaluation_service
from outcome_svc.schemas import ReevaluationCreate, ReevaluationResponse
from outcome_svc.services import ReevaluationItemInput, ReevaluationService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1",
    tags=["Re-evaluations"],
    dependencies=[Depends(verify_api_key)],
)


@router.post(
    "/reevaluations",
    response_model=ReevaluationResponse,
    status_code=201,
    summary="Perform a re-evaluation",
    description="Compare each submitted value with its baseline and store the results, with "
                "improved/declined/stable/significant counts, as one snapshot. "
                "Submitted values are not added to the measurement history."
)
async def create_reevaluation(
    payload: ReevaluationCreate,
    reevaluation_service: ReevaluationService = Depends(get_reevaluation_service)
):
    """
    Perform a re-evaluation.

    - **baseline_mode**: `first_recorded` (default) or `pre_treatment`
    - **treatment_start**: required with `pre_treatment`
    - **baseline_record_ids**: optional explicit baseline per measure key

    Raises:
    - 400 Bad Request: Empty batch, duplicate measure, out-of-range value,
      or an explicit baseline of another patient/measure
    - 404 Not Found: Unknown measure or baseline measurement
    """
    snapshot = reevaluation_service.perform(
        patient_id=payload.patient_id,
        clinic_id=payload.clinic_id,
        clinician_id=payload.clinician_id,
        items=[
            ReevaluationItemInput(
                measure_key=item.measure_key,
                current_value=item.current_value,
                threshold=item.threshold,
            )
            for item in payload.items
        ],
        baseline_mode=payload.baseline_mode,
        baseline_record_ids=payload.baseline_record_ids,
        treatment_start=payload.treatment_start,
        visit_id=payload.visit_id,
        notes=payload.notes,
        assessed_at=payload.assessed_at,
    )
    return ReevaluationResponse.from_snapshot(snapshot)


@router.get(
    "/reevaluations/{snapshot_id}",
    response_model=ReevaluationResponse,
    summary="Get a re-evaluation snapshot",
)
async def get_reevaluation(
    snapshot_id: int,
    reevaluation_service: ReevaluationService = Depends(get_reevaluation_service)
):
    return ReevaluationResponse.from_snapshot(reevaluation_service.get_snapshot(snapshot_id))


@router.get(
    "/patients/{patient_id}/reevaluations",
    response_model=List[ReevaluationResponse],
    summary="List a patient's re-evaluations",
    description="Snapshots for a patient, most recent first."
)
async def list_reevaluations(
    patient_id: str,
    reevaluation_service: ReevaluationService = Depends(get_reevaluation_service)
):
    return [
        ReevaluationResponse.from_snapshot(snapshot)
        for snapshot in reevaluation_service.list_snapshots(patient_id)
    ]
