"""
Tests for versioned protocol assignments and the optimistic update guard.
"""
import threading
from datetime import date

import pytest

from outcome_svc.core.exceptions import (
    InvalidInputError,
    ProtocolAssignmentNotFoundError,
    VersionConflictError,
)
from outcome_svc.models.protocol import Conflict, ProtocolStatus, Updated
from outcome_svc.services import OptimisticUpdateGuard
from outcome_svc.services.protocol_service import phase_progression_issue


@pytest.fixture
def assignment(protocol_service):
    return protocol_service.assign(
        patient_id="patient-001",
        clinic_id="clinic-01",
        protocol_name="ACL Reconstruction Rehab",
        therapist_id="therapist-07",
        start_date=date(2025, 1, 6),
        target_end_date=date(2025, 4, 6),
    )


# =============================================================================
# LIFECYCLE
# =============================================================================

class TestAssign:

    def test_new_assignment_is_active_at_version_one(self, assignment, protocol_service):
        assert assignment.version == 1
        assert assignment.status is ProtocolStatus.ACTIVE
        assert assignment.current_phase == "initial"
        assert assignment.sessions_completed == 0
        assert assignment.progress_notes == []
        assert protocol_service.get(assignment.id) == assignment

    def test_target_before_start(self, protocol_service):
        with pytest.raises(InvalidInputError, match="target_end_date"):
            protocol_service.assign(
                patient_id="patient-001",
                clinic_id="clinic-01",
                protocol_name="Low Back Pain",
                therapist_id="therapist-07",
                start_date=date(2025, 2, 1),
                target_end_date=date(2025, 1, 1),
            )

    def test_list_for_patient(self, assignment, protocol_service):
        protocol_service.assign(
            patient_id="patient-002",
            clinic_id="clinic-01",
            protocol_name="Shoulder Impingement",
            therapist_id="therapist-07",
        )
        assert [a.id for a in protocol_service.list_for_patient("patient-001")] == [assignment.id]

    def test_get_unknown(self, protocol_service):
        with pytest.raises(ProtocolAssignmentNotFoundError):
            protocol_service.get(42)


class TestUpdateProgress:

    def test_update_bumps_version(self, assignment, protocol_service):
        updated = protocol_service.update_progress(
            assignment.id,
            expected_version=1,
            therapist_id="therapist-07",
            current_phase="intermediate",
            sessions_completed=6,
            note="Full weight bearing",
        )

        assert updated.version == 2
        assert updated.current_phase == "intermediate"
        assert updated.sessions_completed == 6
        assert len(updated.progress_notes) == 1
        assert updated.progress_notes[0].note == "Full weight bearing"
        assert updated.progress_notes[0].phase == "intermediate"
        assert protocol_service.get(assignment.id).version == 2

    def test_stale_version_is_rejected_without_changes(self, assignment, protocol_service):
        protocol_service.update_progress(assignment.id, 1, "therapist-07", sessions_completed=2)

        with pytest.raises(VersionConflictError) as exc_info:
            protocol_service.update_progress(assignment.id, 1, "therapist-08", sessions_completed=9)

        assert exc_info.value.status_code == 409
        assert "please reload" in exc_info.value.detail
        stored = protocol_service.get(assignment.id)
        assert stored.version == 2
        assert stored.sessions_completed == 2

    def test_completing_stamps_end_date(self, assignment, protocol_service):
        updated = protocol_service.update_progress(
            assignment.id, 1, "therapist-07", status=ProtocolStatus.COMPLETED
        )
        assert updated.status is ProtocolStatus.COMPLETED
        assert updated.actual_end_date is not None

    def test_on_hold_does_not_stamp_end_date(self, assignment, protocol_service):
        updated = protocol_service.update_progress(
            assignment.id, 1, "therapist-07", status=ProtocolStatus.ON_HOLD
        )
        assert updated.actual_end_date is None

    def test_negative_sessions(self, assignment, protocol_service):
        with pytest.raises(InvalidInputError):
            protocol_service.update_progress(assignment.id, 1, "therapist-07", sessions_completed=-1)

    def test_unknown_assignment(self, protocol_service):
        with pytest.raises(ProtocolAssignmentNotFoundError):
            protocol_service.update_progress(99, 1, "therapist-07", sessions_completed=1)

    def test_phase_skip_is_logged_not_blocked(self, assignment, protocol_service, caplog):
        with caplog.at_level("WARNING"):
            updated = protocol_service.update_progress(
                assignment.id, 1, "therapist-07", current_phase="advanced"
            )
        assert updated.current_phase == "advanced"
        assert any("Unusual phase progression" in r.getMessage() for r in caplog.records)


class TestPhaseProgression:

    @pytest.mark.parametrize(
        "current, new, sessions, flagged",
        [
            ("initial", "intermediate", 4, False),
            ("initial", "advanced", 10, True),
            ("initial", "intermediate", 0, True),
            ("advanced", "initial", 0, False),
            ("acute", "subacute", 3, False),
            ("custom_phase", "advanced", 0, False),
        ],
    )
    def test_issue_detection(self, current, new, sessions, flagged):
        assert (phase_progression_issue(current, new, sessions) is not None) == flagged


# =============================================================================
# COMPARE-AND-SWAP
# =============================================================================

class TestCompareAndSwap:

    def test_cas_returns_tagged_results(self, assignment, protocol_repo):
        assignment.sessions_completed = 3
        first = protocol_repo.compare_and_swap(assignment, expected_version=1)
        second = protocol_repo.compare_and_swap(assignment, expected_version=1)

        assert isinstance(first, Updated)
        assert first.entity.version == 2
        assert isinstance(second, Conflict)
        assert second.expected_version == 1
        assert second.actual_version == 2

    def test_guard_reports_missing_entity_by_id(self, protocol_repo):
        guard = OptimisticUpdateGuard(protocol_repo, ProtocolAssignmentNotFoundError)
        with pytest.raises(ProtocolAssignmentNotFoundError) as exc_info:
            guard.update(5, 1, lambda entity: entity)

        assert exc_info.value.status_code == 404
        assert exc_info.value.to_dict()["detail"] == "Protocol assignment 5 not found"
        assert exc_info.value.context == {"assignment_id": 5}

    def test_concurrent_updates_with_same_version(self, assignment, protocol_repo):
        guard = OptimisticUpdateGuard(protocol_repo, ProtocolAssignmentNotFoundError)
        barrier = threading.Barrier(2, timeout=5)
        outcomes = []
        lock = threading.Lock()

        def worker(sessions):
            def mutate(entity):
                # Both threads have passed the version check before either writes
                barrier.wait()
                entity.sessions_completed = sessions
                return entity
            try:
                result = guard.update(assignment.id, 1, mutate)
                outcome = ("ok", result.sessions_completed)
            except VersionConflictError as e:
                outcome = ("conflict", e.context["actual_version"])
            with lock:
                outcomes.append(outcome)

        threads = [threading.Thread(target=worker, args=(n,)) for n in (4, 7)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert sorted(kind for kind, _ in outcomes) == ["conflict", "ok"]
        winner = next(value for kind, value in outcomes if kind == "ok")
        loser_saw = next(value for kind, value in outcomes if kind == "conflict")
        assert loser_saw == 2

        stored = protocol_repo.get(assignment.id)
        assert stored.version == 2
        assert stored.sessions_completed == winner

        # The loser reloads and resubmits against the new version
        loser_sessions = ({4, 7} - {winner}).pop()

        def retry(entity):
            entity.sessions_completed = loser_sessions
            return entity

        retried = guard.update(assignment.id, 2, retry)
        assert retried.version == 3
        assert retried.sessions_completed == loser_sessions
        assert protocol_repo.get(assignment.id).sessions_completed == loser_sessions
