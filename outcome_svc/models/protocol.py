"""
Domain models for protocol assignments and versioned updates.
"""
import json
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import List, Optional, Union

from outcome_svc.core.datetime_utils import from_db_string


class ProtocolStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ON_HOLD = "on_hold"
    DISCONTINUED = "discontinued"


# Statuses that close an assignment and stamp actual_end_date
CLOSED_STATUSES = (ProtocolStatus.COMPLETED, ProtocolStatus.DISCONTINUED)

# Rehabilitation phase ordering; synonyms share a rank
PHASE_ORDER = {
    "initial": 0,
    "acute": 0,
    "intermediate": 1,
    "subacute": 1,
    "advanced": 2,
    "strengthening": 2,
    "return_to_activity": 3,
    "maintenance": 4,
}


@dataclass
class ProgressNote:
    """A dated progress note appended by a therapist."""

    recorded_at: str
    therapist_id: str
    phase: str
    note: str


@dataclass
class ProtocolAssignment:
    """A treatment protocol assigned to a patient. Versioned for optimistic concurrency."""

    id: Optional[int]
    patient_id: str
    clinic_id: str
    protocol_name: str
    therapist_id: str
    status: ProtocolStatus
    current_phase: str
    start_date: date
    sessions_completed: int = 0
    target_end_date: Optional[date] = None
    actual_end_date: Optional[date] = None
    progress_notes: List[ProgressNote] = field(default_factory=list)
    version: int = 1
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    COLUMNS = (
        "id, patient_id, clinic_id, protocol_name, therapist_id, status, current_phase, "
        "sessions_completed, start_date, target_end_date, actual_end_date, progress_notes, "
        "version, created_at, updated_at"
    )

    @classmethod
    def from_row(cls, row: tuple) -> 'ProtocolAssignment':
        """Create a ProtocolAssignment from a row selected with COLUMNS."""
        return cls(
            id=row[0],
            patient_id=row[1],
            clinic_id=row[2],
            protocol_name=row[3],
            therapist_id=row[4],
            status=ProtocolStatus(row[5]),
            current_phase=row[6],
            sessions_completed=row[7],
            start_date=date.fromisoformat(row[8]),
            target_end_date=date.fromisoformat(row[9]) if row[9] else None,
            actual_end_date=date.fromisoformat(row[10]) if row[10] else None,
            progress_notes=[ProgressNote(**note) for note in json.loads(row[11] or "[]")],
            version=row[12],
            created_at=from_db_string(row[13]),
            updated_at=from_db_string(row[14]),
        )

    def notes_json(self) -> str:
        return json.dumps([asdict(note) for note in self.progress_notes], ensure_ascii=False)


@dataclass(frozen=True)
class Updated:
    """Conditional update applied; carries the stored entity at its new version."""
    entity: ProtocolAssignment


@dataclass(frozen=True)
class Conflict:
    """Conditional update rejected; the stored version no longer matched."""
    entity_id: int
    expected_version: int
    actual_version: Optional[int]


UpdateResult = Union[Updated, Conflict]
