"""
Pydantic schemas for measurement-related API operations.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from outcome_svc.core.datetime_utils import format_iso
from outcome_svc.models.comparison import ComparisonResult
from outcome_svc.models.measurement import MeasurementRecord


class _MeasurementContext(BaseModel):
    """Fields shared by every measurement request."""
    patient_id: str = Field(..., min_length=1, max_length=64, description="Patient identifier")
    clinic_id: str = Field(..., min_length=1, max_length=64, description="Clinic identifier")
    clinician_id: str = Field(..., min_length=1, max_length=64, description="Recording clinician identifier")
    session_id: Optional[str] = Field(None, max_length=64, description="Treatment session / visit reference")
    note: Optional[str] = Field(None, max_length=2000, description="Free-text note")
    recorded_at: Optional[datetime] = Field(
        None,
        description="When the measurement was taken (defaults to now, normalized to UTC)",
    )


class MeasurementCreate(_MeasurementContext):
    """Schema for recording a reading of any measure in the library."""
    measure_key: str = Field(
        ...,
        min_length=1,
        max_length=120,
        description="Measure key, e.g. 'vas', 'rom:knee:left:active', 'mmt:quadriceps:right'",
    )
    value: float = Field(..., allow_inf_nan=False, description="Measured value")

    class Config:
        json_schema_extra = {
            "example": {
                "patient_id": "patient-001",
                "clinic_id": "clinic-01",
                "clinician_id": "therapist-07",
                "measure_key": "vas",
                "value": 7,
                "session_id": "visit-2025-01-10",
                "note": "Pain worse in the morning",
                "recorded_at": "2025-01-10T09:00:00Z",
            }
        }


class RomMeasurementCreate(_MeasurementContext):
    """Schema for a goniometric range-of-motion reading."""
    joint: str = Field(..., description="shoulder, elbow, wrist, hip, knee, ankle, cervical_spine, thoracic_spine, lumbar_spine")
    side: str = Field(..., description="left, right or bilateral")
    movement_type: str = Field(..., description="active or passive")
    degree: float = Field(..., allow_inf_nan=False, description="Measured angle in degrees")


class MmtMeasurementCreate(_MeasurementContext):
    """Schema for a manual muscle test grade."""
    muscle_group: str = Field(..., description="Muscle group, e.g. 'Quadriceps'")
    side: str = Field(..., description="left, right or bilateral")
    grade: float = Field(..., allow_inf_nan=False, description="Grade 0-5 in 0.5 steps")


class MeasurementResponse(BaseModel):
    """Schema for a stored measurement."""
    id: int
    patient_id: str
    clinic_id: str
    clinician_id: str
    measure_key: str
    value: float
    session_id: Optional[str] = None
    note: Optional[str] = None
    recorded_at: str
    created_at: str
    updated_at: str

    @classmethod
    def from_record(cls, record: MeasurementRecord) -> 'MeasurementResponse':
        return cls(**record.to_dict())


class ComparisonResponse(BaseModel):
    """Baseline vs current for one measure."""
    measure_key: str
    higher_is_better: bool
    trend: str = Field(..., description="improved, declined, stable or first_record")
    meets_significance: bool
    current_value: float
    baseline_value: Optional[float] = None
    change: Optional[float] = None
    change_percentage: Optional[float] = Field(None, description="Omitted when the baseline is 0")
    threshold: Optional[float] = Field(None, description="MCID/MDC applied, if any")
    baseline_record_id: Optional[int] = None
    current_record_id: Optional[int] = None
    baseline_recorded_at: Optional[str] = None
    current_recorded_at: Optional[str] = None

    @classmethod
    def from_result(cls, result: ComparisonResult) -> 'ComparisonResponse':
        return cls(
            measure_key=result.measure_key,
            higher_is_better=result.higher_is_better,
            trend=result.trend.value,
            meets_significance=result.meets_significance,
            current_value=result.current_value,
            baseline_value=result.baseline_value,
            change=result.change,
            change_percentage=result.change_percentage,
            threshold=result.threshold,
            baseline_record_id=result.baseline_record_id,
            current_record_id=result.current_record_id,
            baseline_recorded_at=format_iso(result.baseline_recorded_at) if result.baseline_recorded_at else None,
            current_recorded_at=format_iso(result.current_recorded_at) if result.current_recorded_at else None,
        )


class TrendingPoint(BaseModel):
    record_id: int
    value: float
    recorded_at: str


class InterpretationResponse(BaseModel):
    severity: str
    severity_vi: str
    description: str
    description_vi: str


class TrendingResponse(BaseModel):
    """Chart-ready history with progress toward the best possible score."""
    measure_key: str
    display_name: str
    unit: str
    higher_is_better: bool
    data_points: List[TrendingPoint]
    previous_value: Optional[float] = None
    goal_value: float
    progress_percentage: Optional[float] = None
    comparison: Optional[ComparisonResponse] = None
    interpretation: Optional[InterpretationResponse] = None
