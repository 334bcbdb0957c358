"""
Pydantic schemas for protocol assignment API operations.
"""
from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field

from outcome_svc.core.datetime_utils import format_iso
from outcome_svc.models.protocol import ProtocolAssignment, ProtocolStatus


class ProtocolAssignmentCreate(BaseModel):
    patient_id: str = Field(..., min_length=1, max_length=64)
    clinic_id: str = Field(..., min_length=1, max_length=64)
    therapist_id: str = Field(..., min_length=1, max_length=64)
    protocol_name: str = Field(..., min_length=1, max_length=200, example="ACL Reconstruction Rehab")
    start_date: Optional[date] = Field(None, description="Defaults to today (UTC)")
    target_end_date: Optional[date] = None
    initial_phase: str = Field("initial", min_length=1, max_length=50)


class ProtocolProgressUpdate(BaseModel):
    """
    Progress update for an assignment.

    `version` must be the version returned by the last read; a stale
    version is rejected with 409 Conflict.
    """
    version: int = Field(..., ge=1, description="Version the client last read")
    therapist_id: str = Field(..., min_length=1, max_length=64)
    status: Optional[ProtocolStatus] = None
    current_phase: Optional[str] = Field(None, min_length=1, max_length=50)
    sessions_completed: Optional[int] = Field(None, description="Total sessions completed so far (>= 0)")
    note: Optional[str] = Field(None, max_length=2000)

    class Config:
        json_schema_extra = {
            "example": {
                "version": 3,
                "therapist_id": "therapist-07",
                "current_phase": "intermediate",
                "sessions_completed": 6,
                "note": "Full weight bearing, progressing to closed-chain work",
            }
        }


class ProgressNoteResponse(BaseModel):
    recorded_at: str
    therapist_id: str
    phase: str
    note: str


class ProtocolAssignmentResponse(BaseModel):
    id: int
    patient_id: str
    clinic_id: str
    protocol_name: str
    therapist_id: str
    status: str
    current_phase: str
    sessions_completed: int
    start_date: date
    target_end_date: Optional[date] = None
    actual_end_date: Optional[date] = None
    progress_notes: List[ProgressNoteResponse]
    version: int
    created_at: str
    updated_at: str

    @classmethod
    def from_assignment(cls, assignment: ProtocolAssignment) -> 'ProtocolAssignmentResponse':
        return cls(
            id=assignment.id,
            patient_id=assignment.patient_id,
            clinic_id=assignment.clinic_id,
            protocol_name=assignment.protocol_name,
            therapist_id=assignment.therapist_id,
            status=assignment.status.value,
            current_phase=assignment.current_phase,
            sessions_completed=assignment.sessions_completed,
            start_date=assignment.start_date,
            target_end_date=assignment.target_end_date,
            actual_end_date=assignment.actual_end_date,
            progress_notes=[
                ProgressNoteResponse(
                    recorded_at=note.recorded_at,
                    therapist_id=note.therapist_id,
                    phase=note.phase,
                    note=note.note,
                )
                for note in assignment.progress_notes
            ],
            version=assignment.version,
            created_at=format_iso(assignment.created_at),
            updated_at=format_iso(assignment.updated_at),
        )
