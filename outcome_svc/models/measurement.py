"""
Domain model for measurement records.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from outcome_svc.core.datetime_utils import format_iso, from_db_string


@dataclass
class MeasurementRecord:
    """One observation of one measure for one patient. Immutable once stored."""

    id: int
    patient_id: str
    clinic_id: str
    clinician_id: str
    measure_key: str
    value: float
    recorded_at: datetime
    created_at: datetime
    updated_at: datetime
    session_id: Optional[str] = None
    note: Optional[str] = None

    # Column order expected by from_row()
    COLUMNS = (
        "id, patient_id, clinic_id, clinician_id, measure_key, value, "
        "session_id, note, recorded_at, created_at, updated_at"
    )

    @classmethod
    def from_row(cls, row: tuple) -> 'MeasurementRecord':
        """Create a MeasurementRecord from a row selected with COLUMNS."""
        return cls(
            id=row[0],
            patient_id=row[1],
            clinic_id=row[2],
            clinician_id=row[3],
            measure_key=row[4],
            value=row[5],
            session_id=row[6],
            note=row[7],
            recorded_at=from_db_string(row[8]),
            created_at=from_db_string(row[9]),
            updated_at=from_db_string(row[10]),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "patient_id": self.patient_id,
            "clinic_id": self.clinic_id,
            "clinician_id": self.clinician_id,
            "measure_key": self.measure_key,
            "value": self.value,
            "session_id": self.session_id,
            "note": self.note,
            "recorded_at": format_iso(self.recorded_at),
            "created_at": format_iso(self.created_at),
            "updated_at": format_iso(self.updated_at),
        }
