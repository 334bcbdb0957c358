"""
Service layer for the measurement ledger.

Records readings for any measurement family and answers per-patient,
per-measure questions over them: history, baseline, latest, progress
(baseline vs current) and the trending view.

Architecture:
    API Layer (routers) -> MeasurementService -> MeasurementRepository -> Database

Dependency Injection:
    Use core.dependencies.get_measurement_service() in routers with Depends().
"""
import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from outcome_svc.core.datetime_utils import ensure_utc, to_utc, utc_now
from outcome_svc.core.exceptions import DatabaseError, MeasurementNotFoundError
from outcome_svc.core.measure_library import MeasureDefinition, get_measure
from outcome_svc.models.comparison import ComparisonResult
from outcome_svc.models.measurement import MeasurementRecord
from outcome_svc.repositories import MeasurementRepository
from outcome_svc.services.analytics import (
    ScoreInterpretation,
    compare,
    interpret_score,
    mmt_measure_key,
    profile_for,
    progress_toward_goal,
    rom_measure_key,
    validate_value,
)

logger = logging.getLogger(__name__)


@dataclass
class TrendingView:
    """Chronological readings plus the summary figures shown on a progress chart."""

    measure: MeasureDefinition
    data_points: List[MeasurementRecord]
    comparison: Optional[ComparisonResult]
    previous_value: Optional[float]
    goal_value: float
    progress_percentage: Optional[float]
    interpretation: Optional[ScoreInterpretation]


class MeasurementService:
    """
    Service layer for measurement recording and per-measure analytics.
    """

    def __init__(self, measurement_repository: MeasurementRepository):
        self._repo = measurement_repository

    # =========================================================================
    # RECORDING
    # =========================================================================

    def record(
        self,
        value: float,
        measure_key: str,
        patient_id: str,
        clinician_id: str,
        clinic_id: str,
        session_id: Optional[str] = None,
        note: Optional[str] = None,
        recorded_at: Optional[datetime] = None,
    ) -> MeasurementRecord:
        """
        Append one reading to the ledger.

        Raises:
            MeasureNotFoundError: Unknown measure key.
            InvalidInputError: Value outside the measure's bounds or step.
            DatabaseError: If the insert fails.
        """
        definition = get_measure(measure_key)
        validate_value(definition, value)

        try:
            record = self._repo.append(
                patient_id=patient_id,
                clinic_id=clinic_id,
                clinician_id=clinician_id,
                measure_key=definition.key,
                value=value,
                recorded_at=to_utc(recorded_at) if recorded_at else utc_now(),
                session_id=session_id,
                note=note,
            )
        except sqlite3.Error as e:
            logger.error(f"Database error recording measurement: {e}", exc_info=True)
            raise DatabaseError(operation="record_measurement") from e

        logger.info(
            "Measurement recorded",
            extra={
                "record_id": record.id,
                "patient_id": patient_id,
                "measure_key": definition.key,
                "family": definition.family,
            }
        )
        return record

    def record_rom(
        self,
        joint: str,
        side: str,
        movement_type: str,
        degree: float,
        patient_id: str,
        clinician_id: str,
        clinic_id: str,
        session_id: Optional[str] = None,
        note: Optional[str] = None,
        recorded_at: Optional[datetime] = None,
    ) -> MeasurementRecord:
        """Record a goniometric range-of-motion reading."""
        return self.record(
            value=degree,
            measure_key=rom_measure_key(joint, side, movement_type),
            patient_id=patient_id,
            clinician_id=clinician_id,
            clinic_id=clinic_id,
            session_id=session_id,
            note=note,
            recorded_at=recorded_at,
        )

    def record_mmt(
        self,
        muscle_group: str,
        side: str,
        grade: float,
        patient_id: str,
        clinician_id: str,
        clinic_id: str,
        session_id: Optional[str] = None,
        note: Optional[str] = None,
        recorded_at: Optional[datetime] = None,
    ) -> MeasurementRecord:
        """Record a manual muscle test grade (0-5 in half grades)."""
        return self.record(
            value=grade,
            measure_key=mmt_measure_key(muscle_group, side),
            patient_id=patient_id,
            clinician_id=clinician_id,
            clinic_id=clinic_id,
            session_id=session_id,
            note=note,
            recorded_at=recorded_at,
        )

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get(self, record_id: int) -> MeasurementRecord:
        record = self._repo.get_by_id(record_id)
        if record is None:
            raise MeasurementNotFoundError(record_id=record_id)
        return record

    def history(
        self,
        patient_id: str,
        measure_key: str,
        until: Optional[datetime] = None,
    ) -> List[MeasurementRecord]:
        """Ascending readings; an empty list when the patient has none."""
        definition = get_measure(measure_key)
        return self._repo.history(patient_id, definition.key, until=ensure_utc(until))

    def latest(
        self,
        patient_id: str,
        measure_key: str,
        until: Optional[datetime] = None,
    ) -> Optional[MeasurementRecord]:
        definition = get_measure(measure_key)
        return self._repo.latest(patient_id, definition.key, until=ensure_utc(until))

    def baseline(self, patient_id: str, measure_key: str) -> Optional[MeasurementRecord]:
        """First reading in history."""
        definition = get_measure(measure_key)
        return self._repo.earliest(patient_id, definition.key)

    def progress(
        self,
        patient_id: str,
        measure_key: str,
        until: Optional[datetime] = None,
    ) -> ComparisonResult:
        """
        Compare the first reading with the latest one (at or before `until`).

        Raises:
            MeasureNotFoundError: Unknown measure key.
            MeasurementNotFoundError: No readings for this patient and measure.
        """
        definition = get_measure(measure_key)
        current = self._repo.latest(patient_id, definition.key, until=ensure_utc(until))
        if current is None:
            raise MeasurementNotFoundError(
                detail=f"No {definition.key} measurements recorded for patient {patient_id}",
                patient_id=patient_id,
                measure_key=definition.key,
            )
        baseline = self._repo.earliest(patient_id, definition.key)
        return self._compare_records(definition, baseline, current)

    def trending(self, patient_id: str, measure_key: str) -> TrendingView:
        """Full history with baseline, previous, current and progress toward the goal score."""
        definition = get_measure(measure_key)
        points = self._repo.history(patient_id, definition.key)

        comparison = None
        previous_value = None
        progress_percentage = None
        interpretation = None
        if points:
            baseline, current = points[0], points[-1]
            comparison = self._compare_records(definition, baseline, current)
            if len(points) >= 2:
                previous_value = points[-2].value
                progress_percentage = progress_toward_goal(
                    baseline.value, current.value, definition.goal_value
                )
            interpretation = interpret_score(definition, current.value)

        return TrendingView(
            measure=definition,
            data_points=points,
            comparison=comparison,
            previous_value=previous_value,
            goal_value=definition.goal_value,
            progress_percentage=progress_percentage,
            interpretation=interpretation,
        )

    def _compare_records(
        self,
        definition: MeasureDefinition,
        baseline: Optional[MeasurementRecord],
        current: MeasurementRecord,
    ) -> ComparisonResult:
        has_baseline = baseline is not None and baseline.id != current.id
        result = compare(
            profile_for(definition),
            current.value,
            baseline.value if has_baseline else None,
        )
        result.current_record_id = current.id
        result.current_recorded_at = current.recorded_at
        if has_baseline:
            result.baseline_record_id = baseline.id
            result.baseline_recorded_at = baseline.recorded_at
        return result
