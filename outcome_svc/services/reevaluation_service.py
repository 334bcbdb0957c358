"""
Service layer for re-evaluations.

A re-evaluation compares a batch of current values, collected at one visit,
against each measure's baseline and stores the results with aggregate counts
as one immutable snapshot.

Baseline selection per item:
    1. An explicit baseline record id for that measure, when given
    2. BaselineMode.FIRST_RECORDED: the patient's first-ever reading
    3. BaselineMode.PRE_TREATMENT: the latest reading at or before treatment_start
Items with no baseline are stored with trend "first_record".

Architecture:
    API Layer -> ReevaluationService -> MeasurementRepository (reads)
                                     -> SnapshotRepository (atomic write)
"""
import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from outcome_svc.core.datetime_utils import ensure_utc, to_utc, utc_now
from outcome_svc.core.exceptions import (
    DatabaseError,
    InvalidInputError,
    MeasurementNotFoundError,
    SnapshotNotFoundError,
)
from outcome_svc.core.measure_library import MeasureDefinition, get_measure, normalize_measure_key
from outcome_svc.models.measurement import MeasurementRecord
from outcome_svc.models.snapshot import (
    BaselineMode,
    ReevaluationItem,
    ReevaluationSnapshot,
    ReevaluationSummary,
)
from outcome_svc.repositories import MeasurementRepository, SnapshotRepository
from outcome_svc.services.analytics import compare, profile_for, validate_value

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReevaluationItemInput:
    """One (measure, current value) pair submitted at a re-evaluation."""

    measure_key: str
    current_value: float
    threshold: Optional[float] = None


class ReevaluationService:
    """
    Progress aggregator: per-item comparison, batch counts, atomic persistence.
    """

    def __init__(
        self,
        measurement_repository: MeasurementRepository,
        snapshot_repository: SnapshotRepository,
    ):
        self._measurements = measurement_repository
        self._snapshots = snapshot_repository

    def perform(
        self,
        patient_id: str,
        clinic_id: str,
        clinician_id: str,
        items: Sequence[ReevaluationItemInput],
        baseline_mode: BaselineMode = BaselineMode.FIRST_RECORDED,
        baseline_record_ids: Optional[Dict[str, int]] = None,
        treatment_start: Optional[datetime] = None,
        visit_id: Optional[str] = None,
        notes: Optional[str] = None,
        assessed_at: Optional[datetime] = None,
    ) -> ReevaluationSnapshot:
        """
        Run a re-evaluation and persist it as one snapshot.

        Raises:
            InvalidInputError: Empty batch, duplicate measure, value out of
                bounds, missing treatment_start in PRE_TREATMENT mode, or an
                explicit baseline belonging to another patient/measure.
            MeasureNotFoundError: Unknown measure key.
            MeasurementNotFoundError: Explicit baseline record id does not exist.
            DatabaseError: If the transactional write fails (nothing is saved).
        """
        if not items:
            raise InvalidInputError(detail="Re-evaluation requires at least one item")

        if baseline_mode is BaselineMode.PRE_TREATMENT and treatment_start is None:
            raise InvalidInputError(
                detail="treatment_start is required when baseline_mode is pre_treatment",
                baseline_mode=baseline_mode.value,
            )
        treatment_start = ensure_utc(treatment_start)

        definitions = self._resolve_definitions(items)
        explicit_baselines = self._normalize_baseline_ids(baseline_record_ids, definitions)

        comparison_items: List[ReevaluationItem] = []
        for position, item in enumerate(items):
            definition = definitions[normalize_measure_key(item.measure_key)]
            validate_value(definition, item.current_value)

            baseline = self._select_baseline(
                patient_id=patient_id,
                definition=definition,
                explicit_record_id=explicit_baselines.get(definition.key),
                baseline_mode=baseline_mode,
                treatment_start=treatment_start,
            )
            result = compare(
                profile_for(definition, item.threshold),
                item.current_value,
                baseline.value if baseline else None,
            )
            comparison_items.append(ReevaluationItem(
                measure_key=definition.key,
                family=definition.family,
                current_value=item.current_value,
                higher_is_better=result.higher_is_better,
                trend=result.trend,
                meets_significance=result.meets_significance,
                baseline_value=result.baseline_value,
                baseline_record_id=baseline.id if baseline else None,
                change=result.change,
                change_percentage=result.change_percentage,
                threshold=result.threshold,
                position=position,
            ))

        snapshot = ReevaluationSnapshot(
            patient_id=patient_id,
            clinic_id=clinic_id,
            clinician_id=clinician_id,
            baseline_mode=baseline_mode,
            treatment_start=treatment_start,
            assessed_at=to_utc(assessed_at) if assessed_at else utc_now(),
            summary=ReevaluationSummary.from_items(comparison_items),
            items=comparison_items,
            visit_id=visit_id,
            notes=notes,
        )

        try:
            saved = self._snapshots.save(snapshot)
        except sqlite3.Error as e:
            logger.error(f"Re-evaluation transaction rolled back: {e}", exc_info=True)
            raise DatabaseError(operation="save_reevaluation") from e

        logger.info(
            "Re-evaluation saved",
            extra={
                "snapshot_id": saved.id,
                "patient_id": patient_id,
                "total": saved.summary.total,
                "improved": saved.summary.improved,
                "declined": saved.summary.declined,
                "stable": saved.summary.stable,
                "significant": saved.summary.significant,
            }
        )
        return saved

    def get_snapshot(self, snapshot_id: int) -> ReevaluationSnapshot:
        snapshot = self._snapshots.get(snapshot_id)
        if snapshot is None:
            raise SnapshotNotFoundError(snapshot_id=snapshot_id)
        return snapshot

    def list_snapshots(self, patient_id: str) -> List[ReevaluationSnapshot]:
        """Snapshots for a patient, most recent first."""
        return self._snapshots.list_for_patient(patient_id)

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _resolve_definitions(
        self,
        items: Sequence[ReevaluationItemInput],
    ) -> Dict[str, MeasureDefinition]:
        """
        Look up every distinct key once for the batch.

        Keyed by the normalized submitted key. Two submitted keys that
        resolve to the same measure (e.g. an alias) count as duplicates.
        """
        definitions: Dict[str, MeasureDefinition] = {}
        seen_canonical: Dict[str, str] = {}
        for item in items:
            normalized = normalize_measure_key(item.measure_key)
            if normalized not in definitions:
                definitions[normalized] = get_measure(item.measure_key)
            canonical = definitions[normalized].key
            if canonical in seen_canonical:
                raise InvalidInputError(
                    detail=f"Measure '{canonical}' appears more than once in this re-evaluation",
                    measure_key=canonical,
                )
            seen_canonical[canonical] = item.measure_key
        return definitions

    def _normalize_baseline_ids(
        self,
        baseline_record_ids: Optional[Dict[str, int]],
        definitions: Dict[str, MeasureDefinition],
    ) -> Dict[str, int]:
        """Map explicit baselines onto canonical keys of measures in this batch."""
        if not baseline_record_ids:
            return {}
        in_batch = {definition.key for definition in definitions.values()}
        explicit: Dict[str, int] = {}
        for measure_key, record_id in baseline_record_ids.items():
            canonical = get_measure(measure_key).key
            if canonical not in in_batch:
                raise InvalidInputError(
                    detail=f"Baseline given for '{canonical}', which is not part of this re-evaluation",
                    measure_key=canonical,
                )
            if canonical in explicit and explicit[canonical] != record_id:
                raise InvalidInputError(
                    detail=f"Conflicting baselines given for '{canonical}'",
                    measure_key=canonical,
                )
            explicit[canonical] = record_id
        return explicit

    def _select_baseline(
        self,
        patient_id: str,
        definition: MeasureDefinition,
        explicit_record_id: Optional[int],
        baseline_mode: BaselineMode,
        treatment_start: Optional[datetime],
    ) -> Optional[MeasurementRecord]:
        if explicit_record_id is not None:
            record = self._measurements.get_by_id(explicit_record_id)
            if record is None:
                raise MeasurementNotFoundError(record_id=explicit_record_id)
            if record.patient_id != patient_id or record.measure_key != definition.key:
                raise InvalidInputError(
                    detail=(
                        f"Baseline measurement {explicit_record_id} does not belong to "
                        f"patient {patient_id} and measure {definition.key}"
                    ),
                    record_id=explicit_record_id,
                )
            return record

        if baseline_mode is BaselineMode.PRE_TREATMENT:
            return self._measurements.latest(patient_id, definition.key, until=treatment_start)
        return self._measurements.earliest(patient_id, definition.key)
