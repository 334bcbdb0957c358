"""
Repository for re-evaluation snapshots.

A snapshot header and all of its items are written in one transaction:
readers either see the complete snapshot or nothing.
"""
import logging
import sqlite3
from typing import Dict, List, Optional

from outcome_svc.core.datetime_utils import from_db_string, to_db_string, utc_now
from outcome_svc.models.comparison import Trend
from outcome_svc.models.snapshot import (
    BaselineMode,
    ReevaluationItem,
    ReevaluationSnapshot,
    ReevaluationSummary,
)
from outcome_svc.repositories.base import Database

logger = logging.getLogger(__name__)

_SNAPSHOT_COLUMNS = (
    "id, patient_id, clinic_id, clinician_id, visit_id, baseline_mode, treatment_start, "
    "notes, assessed_at, total_items, improved_count, declined_count, stable_count, "
    "significant_count, first_record_count, created_at"
)

_ITEM_COLUMNS = (
    "id, snapshot_id, position, measure_key, family, current_value, baseline_value, "
    "baseline_record_id, change, change_percentage, higher_is_better, threshold, "
    "meets_significance, trend"
)


def _snapshot_from_row(row: tuple, items: List[ReevaluationItem]) -> ReevaluationSnapshot:
    return ReevaluationSnapshot(
        id=row[0],
        patient_id=row[1],
        clinic_id=row[2],
        clinician_id=row[3],
        visit_id=row[4],
        baseline_mode=BaselineMode(row[5]),
        treatment_start=from_db_string(row[6]),
        notes=row[7],
        assessed_at=from_db_string(row[8]),
        summary=ReevaluationSummary(
            total=row[9],
            improved=row[10],
            declined=row[11],
            stable=row[12],
            significant=row[13],
            first_record=row[14],
        ),
        created_at=from_db_string(row[15]),
        items=items,
    )


def _item_from_row(row: tuple) -> ReevaluationItem:
    return ReevaluationItem(
        id=row[0],
        position=row[2],
        measure_key=row[3],
        family=row[4],
        current_value=row[5],
        baseline_value=row[6],
        baseline_record_id=row[7],
        change=row[8],
        change_percentage=row[9],
        higher_is_better=bool(row[10]),
        threshold=row[11],
        meets_significance=bool(row[12]),
        trend=Trend(row[13]),
    )


class SnapshotRepository:
    """
    Repository for re-evaluation snapshot persistence.

    It should be instantiated via core.dependencies.get_snapshot_repository().
    """

    def __init__(self, db: Database):
        self._db = db

    def save(self, snapshot: ReevaluationSnapshot) -> ReevaluationSnapshot:
        """
        Persist a snapshot header and all items atomically.

        Raises:
            sqlite3.Error: If any statement fails; nothing is written.
        """
        with self._db.transaction() as conn:
            summary = snapshot.summary
            cursor = conn.execute(
                """
                INSERT INTO reevaluation_snapshots
                (patient_id, clinic_id, clinician_id, visit_id, baseline_mode, treatment_start,
                 notes, assessed_at, total_items, improved_count, declined_count, stable_count,
                 significant_count, first_record_count, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    snapshot.patient_id,
                    snapshot.clinic_id,
                    snapshot.clinician_id,
                    snapshot.visit_id,
                    snapshot.baseline_mode.value,
                    to_db_string(snapshot.treatment_start) if snapshot.treatment_start else None,
                    snapshot.notes,
                    to_db_string(snapshot.assessed_at),
                    summary.total,
                    summary.improved,
                    summary.declined,
                    summary.stable,
                    summary.significant,
                    summary.first_record,
                    to_db_string(utc_now()),
                ),
            )
            snapshot_id = cursor.lastrowid

            for position, item in enumerate(snapshot.items):
                self._insert_item(conn, snapshot_id, position, item)

            header = conn.execute(
                f"SELECT {_SNAPSHOT_COLUMNS} FROM reevaluation_snapshots WHERE id = ?",
                (snapshot_id,),
            ).fetchone()
            items = self._load_items(conn, [snapshot_id])[snapshot_id]

        logger.info(
            f"Saved re-evaluation snapshot with {len(items)} items atomically",
            extra={"snapshot_id": snapshot_id, "patient_id": snapshot.patient_id},
        )
        return _snapshot_from_row(header, items)

    def _insert_item(
        self,
        conn: sqlite3.Connection,
        snapshot_id: int,
        position: int,
        item: ReevaluationItem,
    ) -> None:
        conn.execute(
            """
            INSERT INTO reevaluation_items
            (snapshot_id, position, measure_key, family, current_value, baseline_value,
             baseline_record_id, change, change_percentage, higher_is_better, threshold,
             meets_significance, trend)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                snapshot_id,
                position,
                item.measure_key,
                item.family,
                item.current_value,
                item.baseline_value,
                item.baseline_record_id,
                item.change,
                item.change_percentage,
                int(item.higher_is_better),
                item.threshold,
                int(item.meets_significance),
                item.trend.value,
            ),
        )

    def _load_items(
        self,
        conn: sqlite3.Connection,
        snapshot_ids: List[int],
    ) -> Dict[int, List[ReevaluationItem]]:
        items: Dict[int, List[ReevaluationItem]] = {snapshot_id: [] for snapshot_id in snapshot_ids}
        if not snapshot_ids:
            return items
        placeholders = ", ".join("?" for _ in snapshot_ids)
        rows = conn.execute(
            f"""
            SELECT {_ITEM_COLUMNS} FROM reevaluation_items
            WHERE snapshot_id IN ({placeholders})
            ORDER BY snapshot_id, position
            """,
            snapshot_ids,
        ).fetchall()
        for row in rows:
            items[row[1]].append(_item_from_row(row))
        return items

    def get(self, snapshot_id: int) -> Optional[ReevaluationSnapshot]:
        """Fetch one snapshot with its full item list, or None."""
        with self._db.transaction(immediate=False) as conn:
            header = conn.execute(
                f"SELECT {_SNAPSHOT_COLUMNS} FROM reevaluation_snapshots WHERE id = ?",
                (snapshot_id,),
            ).fetchone()
            if header is None:
                return None
            items = self._load_items(conn, [snapshot_id])[snapshot_id]
        return _snapshot_from_row(header, items)

    def list_for_patient(self, patient_id: str) -> List[ReevaluationSnapshot]:
        """All snapshots for a patient, most recent first."""
        with self._db.transaction(immediate=False) as conn:
            headers = conn.execute(
                f"""
                SELECT {_SNAPSHOT_COLUMNS} FROM reevaluation_snapshots
                WHERE patient_id = ?
                ORDER BY assessed_at DESC, id DESC
                """,
                (patient_id,),
            ).fetchall()
            items = self._load_items(conn, [row[0] for row in headers])
        return [_snapshot_from_row(row, items[row[0]]) for row in headers]
