"""
Service layer for protocol assignments.

Progress updates (status, phase, sessions, notes) are versioned: every
update carries the version the clinician last saw and goes through the
OptimisticUpdateGuard.
"""
import logging
import sqlite3
from datetime import date
from typing import List, Optional

from outcome_svc.core.datetime_utils import format_iso, utc_now
from outcome_svc.core.exceptions import (
    DatabaseError,
    InvalidInputError,
    ProtocolAssignmentNotFoundError,
)
from outcome_svc.models.protocol import (
    CLOSED_STATUSES,
    PHASE_ORDER,
    ProgressNote,
    ProtocolAssignment,
    ProtocolStatus,
)
from outcome_svc.repositories import ProtocolRepository
from outcome_svc.services.concurrency import OptimisticUpdateGuard

logger = logging.getLogger(__name__)


def phase_progression_issue(current_phase: str, new_phase: str, sessions_completed: int) -> Optional[str]:
    """
    Describe a questionable phase change, or None when it looks fine.

    Skipping more than one phase forward, or advancing with no completed
    sessions, is flagged. Unknown phase names are not judged.
    """
    current_rank = PHASE_ORDER.get(current_phase)
    new_rank = PHASE_ORDER.get(new_phase)
    if current_rank is None or new_rank is None:
        return None
    if new_rank > current_rank + 1:
        return f"phase skipped from {current_phase} to {new_phase}"
    if new_rank > current_rank and sessions_completed == 0:
        return f"advanced from {current_phase} to {new_phase} with no completed sessions"
    return None


class ProtocolService:
    """
    Service layer for protocol assignment lifecycle and versioned progress.
    """

    def __init__(self, protocol_repository: ProtocolRepository):
        self._repo = protocol_repository
        self._guard = OptimisticUpdateGuard(protocol_repository, ProtocolAssignmentNotFoundError)

    def assign(
        self,
        patient_id: str,
        clinic_id: str,
        protocol_name: str,
        therapist_id: str,
        start_date: Optional[date] = None,
        target_end_date: Optional[date] = None,
        initial_phase: str = "initial",
    ) -> ProtocolAssignment:
        """Create an active assignment at version 1."""
        start = start_date or utc_now().date()
        if target_end_date is not None and target_end_date < start:
            raise InvalidInputError(detail="target_end_date must not be before start_date")

        assignment = ProtocolAssignment(
            id=None,
            patient_id=patient_id,
            clinic_id=clinic_id,
            protocol_name=protocol_name,
            therapist_id=therapist_id,
            status=ProtocolStatus.ACTIVE,
            current_phase=initial_phase,
            start_date=start,
            target_end_date=target_end_date,
        )
        try:
            created = self._repo.create(assignment)
        except sqlite3.Error as e:
            logger.error(f"Database error creating protocol assignment: {e}", exc_info=True)
            raise DatabaseError(operation="assign_protocol") from e

        logger.info(
            "Protocol assigned",
            extra={"assignment_id": created.id, "patient_id": patient_id, "protocol": protocol_name}
        )
        return created

    def get(self, assignment_id: int) -> ProtocolAssignment:
        assignment = self._repo.get(assignment_id)
        if assignment is None:
            raise ProtocolAssignmentNotFoundError(assignment_id=assignment_id)
        return assignment

    def list_for_patient(self, patient_id: str) -> List[ProtocolAssignment]:
        return self._repo.list_for_patient(patient_id)

    def update_progress(
        self,
        assignment_id: int,
        expected_version: int,
        therapist_id: str,
        status: Optional[ProtocolStatus] = None,
        current_phase: Optional[str] = None,
        sessions_completed: Optional[int] = None,
        note: Optional[str] = None,
    ) -> ProtocolAssignment:
        """
        Apply a progress update if the assignment is still at expected_version.

        Raises:
            InvalidInputError: Negative session count.
            ProtocolAssignmentNotFoundError: Unknown assignment.
            VersionConflictError: The assignment changed since expected_version.
        """
        if sessions_completed is not None and sessions_completed < 0:
            raise InvalidInputError(
                detail="sessions_completed must be >= 0",
                sessions_completed=sessions_completed,
            )

        def apply_progress(assignment: ProtocolAssignment) -> ProtocolAssignment:
            if sessions_completed is not None:
                assignment.sessions_completed = sessions_completed

            if current_phase is not None and current_phase != assignment.current_phase:
                issue = phase_progression_issue(
                    assignment.current_phase, current_phase, assignment.sessions_completed
                )
                if issue:
                    logger.warning(
                        "Unusual phase progression",
                        extra={"assignment_id": assignment_id, "issue": issue}
                    )
                assignment.current_phase = current_phase

            if status is not None:
                assignment.status = status
                if status in CLOSED_STATUSES and assignment.actual_end_date is None:
                    assignment.actual_end_date = utc_now().date()

            if note:
                assignment.progress_notes.append(ProgressNote(
                    recorded_at=format_iso(utc_now()),
                    therapist_id=therapist_id,
                    phase=assignment.current_phase,
                    note=note,
                ))
            return assignment

        try:
            updated = self._guard.update(assignment_id, expected_version, apply_progress)
        except sqlite3.Error as e:
            logger.error(f"Database error updating protocol progress: {e}", exc_info=True)
            raise DatabaseError(operation="update_protocol_progress") from e

        logger.info(
            "Protocol progress updated",
            extra={
                "assignment_id": assignment_id,
                "version": updated.version,
                "status": updated.status.value,
                "phase": updated.current_phase,
                "note": note,
            }
        )
        return updated
