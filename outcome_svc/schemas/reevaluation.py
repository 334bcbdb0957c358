"""
Pydantic schemas for re-evaluation API operations.
"""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from outcome_svc.core.datetime_utils import format_iso
from outcome_svc.models.snapshot import BaselineMode, ReevaluationItem, ReevaluationSnapshot


class ReevaluationItemCreate(BaseModel):
    measure_key: str = Field(..., min_length=1, max_length=120, description="Measure key")
    current_value: float = Field(..., allow_inf_nan=False, description="Value measured at this visit")
    threshold: Optional[float] = Field(
        None,
        ge=0,
        allow_inf_nan=False,
        description="Clinician threshold overriding the library MCID/MDC (0 disables significance)",
    )


class ReevaluationCreate(BaseModel):
    """Schema for performing a re-evaluation."""
    patient_id: str = Field(..., min_length=1, max_length=64)
    clinic_id: str = Field(..., min_length=1, max_length=64)
    clinician_id: str = Field(..., min_length=1, max_length=64)
    visit_id: Optional[str] = Field(None, max_length=64)
    notes: Optional[str] = Field(None, max_length=4000)
    assessed_at: Optional[datetime] = Field(None, description="Defaults to now")
    baseline_mode: BaselineMode = Field(
        BaselineMode.FIRST_RECORDED,
        description="first_recorded: first-ever reading; pre_treatment: latest reading at or before treatment_start",
    )
    treatment_start: Optional[datetime] = Field(None, description="Required for pre_treatment mode")
    baseline_record_ids: Optional[Dict[str, int]] = Field(
        None,
        description="Explicit baseline measurement id per measure key; overrides baseline_mode for that measure",
    )
    items: List[ReevaluationItemCreate]

    class Config:
        json_schema_extra = {
            "example": {
                "patient_id": "patient-001",
                "clinic_id": "clinic-01",
                "clinician_id": "therapist-07",
                "visit_id": "visit-2025-02-10",
                "baseline_mode": "first_recorded",
                "items": [
                    {"measure_key": "vas", "current_value": 3},
                    {"measure_key": "rom:knee:left:active", "current_value": 122},
                ],
            }
        }


class ReevaluationItemResponse(BaseModel):
    id: int
    position: int
    measure_key: str
    family: str
    current_value: float
    baseline_value: Optional[float] = None
    baseline_record_id: Optional[int] = None
    change: Optional[float] = None
    change_percentage: Optional[float] = None
    higher_is_better: bool
    threshold: Optional[float] = None
    meets_significance: bool
    trend: str

    @classmethod
    def from_item(cls, item: ReevaluationItem) -> 'ReevaluationItemResponse':
        return cls(
            id=item.id,
            position=item.position,
            measure_key=item.measure_key,
            family=item.family,
            current_value=item.current_value,
            baseline_value=item.baseline_value,
            baseline_record_id=item.baseline_record_id,
            change=item.change,
            change_percentage=item.change_percentage,
            higher_is_better=item.higher_is_better,
            threshold=item.threshold,
            meets_significance=item.meets_significance,
            trend=item.trend.value,
        )


class ReevaluationSummaryResponse(BaseModel):
    total: int
    improved: int
    declined: int
    stable: int
    significant: int
    first_record: int


class ReevaluationResponse(BaseModel):
    id: int
    patient_id: str
    clinic_id: str
    clinician_id: str
    visit_id: Optional[str] = None
    notes: Optional[str] = None
    baseline_mode: str
    treatment_start: Optional[str] = None
    assessed_at: str
    created_at: str
    summary: ReevaluationSummaryResponse
    items: List[ReevaluationItemResponse]

    @classmethod
    def from_snapshot(cls, snapshot: ReevaluationSnapshot) -> 'ReevaluationResponse':
        summary = snapshot.summary
        return cls(
            id=snapshot.id,
            patient_id=snapshot.patient_id,
            clinic_id=snapshot.clinic_id,
            clinician_id=snapshot.clinician_id,
            visit_id=snapshot.visit_id,
            notes=snapshot.notes,
            baseline_mode=snapshot.baseline_mode.value,
            treatment_start=format_iso(snapshot.treatment_start) if snapshot.treatment_start else None,
            assessed_at=format_iso(snapshot.assessed_at),
            created_at=format_iso(snapshot.created_at),
            summary=ReevaluationSummaryResponse(
                total=summary.total,
                improved=summary.improved,
                declined=summary.declined,
                stable=summary.stable,
                significant=summary.significant,
                first_record=summary.first_record,
            ),
            items=[ReevaluationItemResponse.from_item(item) for item in snapshot.items],
        )
