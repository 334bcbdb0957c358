"""
Protocol assignments router.

Progress updates use optimistic concurrency: the request body carries the
version the clinician last read, and a stale version is answered with
409 Conflict ("Record was modified by another request, please reload").

All endpoints require API key authentication.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends

from outcome_svc.core.auth import verify_api_key
from outcome_svc.core.dependencies import get_protocol_service
from outcome_svc.schemas import (
    ProtocolAssignmentCreate,
    ProtocolAssignmentResponse,
    ProtocolProgressUpdate,
)
from outcome_svc.services import ProtocolService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1",
    tags=["Protocols"],
    dependencies=[Depends(verify_api_key)],
)


@router.post(
    "/protocol-assignments",
    response_model=ProtocolAssignmentResponse,
    status_code=201,
    summary="Assign a protocol",
    description="Assign a treatment protocol to a patient. The assignment starts active at version 1."
)
async def assign_protocol(
    payload: ProtocolAssignmentCreate,
    protocol_service: ProtocolService = Depends(get_protocol_service)
):
    assignment = protocol_service.assign(
        patient_id=payload.patient_id,
        clinic_id=payload.clinic_id,
        protocol_name=payload.protocol_name,
        therapist_id=payload.therapist_id,
        start_date=payload.start_date,
        target_end_date=payload.target_end_date,
        initial_phase=payload.initial_phase,
    )
    return ProtocolAssignmentResponse.from_assignment(assignment)


@router.get(
    "/protocol-assignments/{assignment_id}",
    response_model=ProtocolAssignmentResponse,
    summary="Get a protocol assignment",
)
async def get_protocol_assignment(
    assignment_id: int,
    protocol_service: ProtocolService = Depends(get_protocol_service)
):
    return ProtocolAssignmentResponse.from_assignment(protocol_service.get(assignment_id))


@router.get(
    "/patients/{patient_id}/protocol-assignments",
    response_model=List[ProtocolAssignmentResponse],
    summary="List a patient's protocol assignments",
)
async def list_protocol_assignments(
    patient_id: str,
    protocol_service: ProtocolService = Depends(get_protocol_service)
):
    return [
        ProtocolAssignmentResponse.from_assignment(a)
        for a in protocol_service.list_for_patient(patient_id)
    ]


@router.patch(
    "/protocol-assignments/{assignment_id}/progress",
    response_model=ProtocolAssignmentResponse,
    summary="Update protocol progress",
    description="Update status, phase, completed sessions and/or add a progress note. "
                "Fails with 409 if the assignment changed since `version` was read."
)
async def update_protocol_progress(
    assignment_id: int,
    payload: ProtocolProgressUpdate,
    protocol_service: ProtocolService = Depends(get_protocol_service)
):
    """
    Update protocol progress.

    Raises:
    - 400 Bad Request: Negative session count
    - 404 Not Found: Unknown assignment
    - 409 Conflict: Stale version; reload and retry
    """
    assignment = protocol_service.update_progress(
        assignment_id=assignment_id,
        expected_version=payload.version,
        therapist_id=payload.therapist_id,
        status=payload.status,
        current_phase=payload.current_phase,
        sessions_completed=payload.sessions_completed,
        note=payload.note,
    )
    return ProtocolAssignmentResponse.from_assignment(assignment)
