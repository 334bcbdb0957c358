"""
Repository for protocol assignments.

Updates go through compare_and_swap(): a single conditional UPDATE keyed on
(id, version). There is no unconditional update path.
"""
import logging
from typing import List, Optional

from outcome_svc.core.datetime_utils import to_db_string, utc_now
from outcome_svc.models.protocol import Conflict, ProtocolAssignment, Updated, UpdateResult
from outcome_svc.repositories.base import Database

logger = logging.getLogger(__name__)


class ProtocolRepository:
    """
    Repository for versioned protocol assignments.

    It should be instantiated via core.dependencies.get_protocol_repository().
    """

    def __init__(self, db: Database):
        self._db = db

    def create(self, assignment: ProtocolAssignment) -> ProtocolAssignment:
        """Insert a new assignment at version 1 and return the stored row."""
        now = to_db_string(utc_now())
        with self._db.transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO protocol_assignments
                (patient_id, clinic_id, protocol_name, therapist_id, status, current_phase,
                 sessions_completed, start_date, target_end_date, actual_end_date,
                 progress_notes, version, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1, ?, ?)
                """,
                (
                    assignment.patient_id,
                    assignment.clinic_id,
                    assignment.protocol_name,
                    assignment.therapist_id,
                    assignment.status.value,
                    assignment.current_phase,
                    assignment.sessions_completed,
                    assignment.start_date.isoformat(),
                    assignment.target_end_date.isoformat() if assignment.target_end_date else None,
                    assignment.actual_end_date.isoformat() if assignment.actual_end_date else None,
                    assignment.notes_json(),
                    now,
                    now,
                ),
            )
            row = conn.execute(
                f"SELECT {ProtocolAssignment.COLUMNS} FROM protocol_assignments WHERE id = ?",
                (cursor.lastrowid,),
            ).fetchone()
        return ProtocolAssignment.from_row(row)

    def get(self, assignment_id: int) -> Optional[ProtocolAssignment]:
        conn = self._db.get_connection()
        try:
            row = conn.execute(
                f"SELECT {ProtocolAssignment.COLUMNS} FROM protocol_assignments WHERE id = ?",
                (assignment_id,),
            ).fetchone()
        finally:
            conn.close()
        return ProtocolAssignment.from_row(row) if row else None

    def list_for_patient(self, patient_id: str) -> List[ProtocolAssignment]:
        conn = self._db.get_connection()
        try:
            rows = conn.execute(
                f"""
                SELECT {ProtocolAssignment.COLUMNS} FROM protocol_assignments
                WHERE patient_id = ?
                ORDER BY created_at DESC, id DESC
                """,
                (patient_id,),
            ).fetchall()
        finally:
            conn.close()
        return [ProtocolAssignment.from_row(row) for row in rows]

    def compare_and_swap(self, assignment: ProtocolAssignment, expected_version: int) -> UpdateResult:
        """
        Write the mutable fields of `assignment` only if the stored version
        still equals `expected_version`, bumping the version by one.

        Returns:
            Updated with the stored entity, or Conflict with the version found.
        """
        with self._db.transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE protocol_assignments
                SET status = ?,
                    current_phase = ?,
                    sessions_completed = ?,
                    target_end_date = ?,
                    actual_end_date = ?,
                    progress_notes = ?,
                    version = version + 1,
                    updated_at = ?
                WHERE id = ? AND version = ?
                """,
                (
                    assignment.status.value,
                    assignment.current_phase,
                    assignment.sessions_completed,
                    assignment.target_end_date.isoformat() if assignment.target_end_date else None,
                    assignment.actual_end_date.isoformat() if assignment.actual_end_date else None,
                    assignment.notes_json(),
                    to_db_string(utc_now()),
                    assignment.id,
                    expected_version,
                ),
            )

            if cursor.rowcount == 0:
                row = conn.execute(
                    "SELECT version FROM protocol_assignments WHERE id = ?",
                    (assignment.id,),
                ).fetchone()
                return Conflict(
                    entity_id=assignment.id,
                    expected_version=expected_version,
                    actual_version=row[0] if row else None,
                )

            row = conn.execute(
                f"SELECT {ProtocolAssignment.COLUMNS} FROM protocol_assignments WHERE id = ?",
                (assignment.id,),
            ).fetchone()
        return Updated(ProtocolAssignment.from_row(row))
