"""
Service-level tests for the measurement ledger: recording, history,
baseline/latest selection, progress and the trending view.
"""
from datetime import datetime, timezone

import pytest

from outcome_svc.core.exceptions import (
    InvalidInputError,
    MeasureNotFoundError,
    MeasurementNotFoundError,
)
from outcome_svc.models.comparison import Trend


# =============================================================================
# RECORDING
# =============================================================================

class TestRecord:

    def test_record_returns_stored_reading(self, record):
        stored = record("Pain VAS", 7)

        assert stored.id is not None
        assert stored.measure_key == "vas"
        assert stored.value == 7
        assert stored.recorded_at == datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)

    def test_naive_recorded_at_is_treated_as_utc(self, measurement_service):
        stored = measurement_service.record(
            value=30,
            measure_key="ndi",
            patient_id="patient-001",
            clinician_id="therapist-07",
            clinic_id="clinic-01",
            recorded_at=datetime(2025, 2, 1, 8, 30),
        )
        assert stored.recorded_at == datetime(2025, 2, 1, 8, 30, tzinfo=timezone.utc)

    def test_unknown_measure(self, record):
        with pytest.raises(MeasureNotFoundError):
            record("grip dynamometer", 30)

    def test_out_of_range_is_rejected_and_not_stored(self, record, measurement_service):
        with pytest.raises(InvalidInputError):
            record("vas", 11)
        assert measurement_service.history("patient-001", "vas") == []

    def test_record_rom(self, measurement_service):
        stored = measurement_service.record_rom(
            joint="knee",
            side="left",
            movement_type="active",
            degree=120,
            patient_id="patient-001",
            clinician_id="therapist-07",
            clinic_id="clinic-01",
        )
        assert stored.measure_key == "rom:knee:left:active"

    def test_record_rom_rejects_unknown_joint(self, measurement_service):
        with pytest.raises(InvalidInputError, match="Invalid joint"):
            measurement_service.record_rom(
                joint="finger",
                side="left",
                movement_type="active",
                degree=40,
                patient_id="patient-001",
                clinician_id="therapist-07",
                clinic_id="clinic-01",
            )

    def test_record_mmt(self, measurement_service):
        stored = measurement_service.record_mmt(
            muscle_group="Quadriceps",
            side="right",
            grade=4.5,
            patient_id="patient-001",
            clinician_id="therapist-07",
            clinic_id="clinic-01",
        )
        assert stored.measure_key == "mmt:quadriceps:right"
        assert stored.value == 4.5

    def test_get_unknown_record(self, measurement_service):
        with pytest.raises(MeasurementNotFoundError):
            measurement_service.get(999)


# =============================================================================
# HISTORY & BASELINE
# =============================================================================

class TestHistory:

    def test_history_is_chronological_regardless_of_insert_order(self, record, measurement_service):
        record("vas", 5, days=14)
        record("vas", 8, days=0)
        record("vas", 6, days=7)

        values = [r.value for r in measurement_service.history("patient-001", "vas")]
        assert values == [8, 6, 5]

    def test_equal_timestamps_keep_insertion_order(self, record, measurement_service):
        first = record("vas", 8, days=0)
        second = record("vas", 6, days=0)

        history = measurement_service.history("patient-001", "vas")
        assert [r.id for r in history] == [first.id, second.id]

    def test_history_is_scoped_to_patient_and_measure(self, record, measurement_service):
        record("vas", 8)
        record("ndi", 30)
        record("vas", 4, patient_id="patient-002")

        history = measurement_service.history("patient-001", "vas")
        assert [r.value for r in history] == [8]

    def test_until_filters_inclusively(self, record, measurement_service):
        record("vas", 8, days=0)
        record("vas", 6, days=7)
        record("vas", 4, days=14)

        until = datetime(2025, 1, 13, 9, 0, tzinfo=timezone.utc)
        assert [r.value for r in measurement_service.history("patient-001", "vas", until=until)] == [8, 6]
        assert measurement_service.latest("patient-001", "vas", until=until).value == 6

    def test_baseline_and_latest(self, record, measurement_service):
        record("vas", 8, days=0)
        record("vas", 6, days=7)

        assert measurement_service.baseline("patient-001", "vas").value == 8
        assert measurement_service.latest("patient-001", "vas").value == 6

    def test_empty_history(self, measurement_service):
        assert measurement_service.history("patient-001", "vas") == []
        assert measurement_service.baseline("patient-001", "vas") is None
        assert measurement_service.latest("patient-001", "vas") is None


# =============================================================================
# PROGRESS & TRENDING
# =============================================================================

class TestProgress:

    def test_vas_eight_to_three(self, record, measurement_service):
        baseline = record("vas", 8, days=0)
        record("vas", 6, days=7)
        current = record("vas", 3, days=14)

        result = measurement_service.progress("patient-001", "vas")

        assert result.baseline_value == 8
        assert result.current_value == 3
        assert result.change == -5.0
        assert result.trend is Trend.IMPROVED
        assert result.meets_significance is True
        assert result.baseline_record_id == baseline.id
        assert result.current_record_id == current.id

    def test_single_reading_is_first_record(self, record, measurement_service):
        only = record("lefs", 40)

        result = measurement_service.progress("patient-001", "lefs")

        assert result.trend is Trend.FIRST_RECORD
        assert result.change is None
        assert result.meets_significance is False
        assert result.current_record_id == only.id
        assert result.baseline_record_id is None

    def test_single_reading_is_stable_across_repeated_queries(self, record, measurement_service):
        only = record("lefs", 40)

        for _ in range(3):
            assert measurement_service.baseline("patient-001", "lefs").id == only.id
            assert measurement_service.latest("patient-001", "lefs").id == only.id
            result = measurement_service.progress("patient-001", "lefs")
            assert result.trend is Trend.FIRST_RECORD
            assert result.current_record_id == only.id
            assert result.baseline_record_id is None

        assert [r.id for r in measurement_service.history("patient-001", "lefs")] == [only.id]

    def test_progress_until(self, record, measurement_service):
        record("vas", 8, days=0)
        record("vas", 7, days=7)
        record("vas", 2, days=14)

        result = measurement_service.progress(
            "patient-001", "vas", until=datetime(2025, 1, 13, 9, 0, tzinfo=timezone.utc)
        )
        assert result.current_value == 7
        assert result.trend is Trend.STABLE

    def test_no_readings(self, measurement_service):
        with pytest.raises(MeasurementNotFoundError, match="No vas measurements recorded"):
            measurement_service.progress("patient-001", "vas")


class TestTrending:

    def test_trending_view(self, record, measurement_service):
        record("ndi", 40, days=0)
        record("ndi", 35, days=7)
        record("ndi", 30, days=14)

        view = measurement_service.trending("patient-001", "ndi")

        assert [p.value for p in view.data_points] == [40, 35, 30]
        assert view.previous_value == 35
        assert view.goal_value == 0
        assert view.progress_percentage == pytest.approx(25.0)
        assert view.comparison.change == -10.0
        assert view.comparison.trend is Trend.IMPROVED
        assert view.comparison.meets_significance is True
        assert view.interpretation.severity == "moderate"

    def test_trending_single_point(self, record, measurement_service):
        record("ndi", 40)

        view = measurement_service.trending("patient-001", "ndi")

        assert view.previous_value is None
        assert view.progress_percentage is None
        assert view.comparison.trend is Trend.FIRST_RECORD

    def test_trending_empty(self, measurement_service):
        view = measurement_service.trending("patient-001", "ndi")

        assert view.data_points == []
        assert view.comparison is None
        assert view.interpretation is None
        assert view.goal_value == 0
