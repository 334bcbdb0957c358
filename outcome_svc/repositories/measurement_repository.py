"""
Repository for the measurement ledger.

Measurements are append-only: there is no update or delete path. Every
read is a single SELECT, which sees one consistent WAL snapshot.

All SQL is encapsulated in this repository - no SQL in service or API layers.
"""
import logging
from datetime import datetime
from typing import List, Optional

from outcome_svc.core.datetime_utils import to_db_string, utc_now
from outcome_svc.models.measurement import MeasurementRecord
from outcome_svc.repositories.base import Database

logger = logging.getLogger(__name__)


class MeasurementRepository:
    """
    Repository for measurement appends and ordered range queries.

    It should be instantiated via core.dependencies.get_measurement_repository().
    """

    def __init__(self, db: Database):
        self._db = db

    def append(
        self,
        patient_id: str,
        clinic_id: str,
        clinician_id: str,
        measure_key: str,
        value: float,
        recorded_at: datetime,
        session_id: Optional[str] = None,
        note: Optional[str] = None,
    ) -> MeasurementRecord:
        """
        Insert a measurement and return the stored record.

        The insert and read-back happen on one connection before commit, so
        the returned record is exactly what was written.
        """
        now = to_db_string(utc_now())
        conn = self._db.get_connection()
        try:
            cursor = conn.execute(
                """
                INSERT INTO measurements
                (patient_id, clinic_id, clinician_id, measure_key, value,
                 session_id, note, recorded_at, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    patient_id,
                    clinic_id,
                    clinician_id,
                    measure_key,
                    value,
                    session_id,
                    note,
                    to_db_string(recorded_at),
                    now,
                    now,
                ),
            )
            row = conn.execute(
                f"SELECT {MeasurementRecord.COLUMNS} FROM measurements WHERE id = ?",
                (cursor.lastrowid,),
            ).fetchone()
            conn.commit()
            return MeasurementRecord.from_row(row)
        finally:
            conn.close()

    def get_by_id(self, record_id: int) -> Optional[MeasurementRecord]:
        conn = self._db.get_connection()
        try:
            row = conn.execute(
                f"SELECT {MeasurementRecord.COLUMNS} FROM measurements WHERE id = ?",
                (record_id,),
            ).fetchone()
        finally:
            conn.close()
        return MeasurementRecord.from_row(row) if row else None

    def history(
        self,
        patient_id: str,
        measure_key: str,
        until: Optional[datetime] = None,
    ) -> List[MeasurementRecord]:
        """
        All readings for a patient and measure, oldest first.

        Ties on recorded_at keep insertion order.

        Args:
            until: Only readings recorded at or before this instant.
        """
        query = f"""
            SELECT {MeasurementRecord.COLUMNS} FROM measurements
            WHERE patient_id = ? AND measure_key = ?
        """
        params: list = [patient_id, measure_key]
        if until is not None:
            query += " AND recorded_at <= ?"
            params.append(to_db_string(until))
        query += " ORDER BY recorded_at ASC, id ASC"

        conn = self._db.get_connection()
        try:
            rows = conn.execute(query, params).fetchall()
        finally:
            conn.close()
        return [MeasurementRecord.from_row(row) for row in rows]

    def latest(
        self,
        patient_id: str,
        measure_key: str,
        until: Optional[datetime] = None,
    ) -> Optional[MeasurementRecord]:
        """Most recent reading, optionally at or before `until`."""
        query = f"""
            SELECT {MeasurementRecord.COLUMNS} FROM measurements
            WHERE patient_id = ? AND measure_key = ?
        """
        params: list = [patient_id, measure_key]
        if until is not None:
            query += " AND recorded_at <= ?"
            params.append(to_db_string(until))
        query += " ORDER BY recorded_at DESC, id DESC LIMIT 1"

        conn = self._db.get_connection()
        try:
            row = conn.execute(query, params).fetchone()
        finally:
            conn.close()
        return MeasurementRecord.from_row(row) if row else None

    def earliest(self, patient_id: str, measure_key: str) -> Optional[MeasurementRecord]:
        """First reading ever recorded (the ledger baseline)."""
        conn = self._db.get_connection()
        try:
            row = conn.execute(
                f"""
                SELECT {MeasurementRecord.COLUMNS} FROM measurements
                WHERE patient_id = ? AND measure_key = ?
                ORDER BY recorded_at ASC, id ASC LIMIT 1
                """,
                (patient_id, measure_key),
            ).fetchone()
        finally:
            conn.close()
        return MeasurementRecord.from_row(row) if row else None
