"""
Base database connection and initialization.

This module handles database connection management and schema initialization.
Optimized for SQLite concurrency with WAL mode and busy_timeout.

IMPORTANT: Database instantiation should be done through the DI layer.
Use outcome_svc.core.dependencies.get_database() instead of instantiating directly.
"""
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from outcome_svc.core.config import DATABASE_PATH, DATABASE_BUSY_TIMEOUT

logger = logging.getLogger(__name__)


SCHEMA = (
    # Append-only measurement ledger
    """
    CREATE TABLE IF NOT EXISTS measurements (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        patient_id TEXT NOT NULL,
        clinic_id TEXT NOT NULL,
        clinician_id TEXT NOT NULL,
        measure_key TEXT NOT NULL,
        value REAL NOT NULL,
        session_id TEXT,
        note TEXT,
        recorded_at TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_measurements_patient_measure
        ON measurements (patient_id, measure_key, recorded_at, id)
    """,
    """
    CREATE TABLE IF NOT EXISTS reevaluation_snapshots (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        patient_id TEXT NOT NULL,
        clinic_id TEXT NOT NULL,
        clinician_id TEXT NOT NULL,
        visit_id TEXT,
        baseline_mode TEXT NOT NULL,
        treatment_start TEXT,
        notes TEXT,
        assessed_at TEXT NOT NULL,
        total_items INTEGER NOT NULL,
        improved_count INTEGER NOT NULL,
        declined_count INTEGER NOT NULL,
        stable_count INTEGER NOT NULL,
        significant_count INTEGER NOT NULL,
        first_record_count INTEGER NOT NULL,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_reevaluation_snapshots_patient
        ON reevaluation_snapshots (patient_id, assessed_at)
    """,
    """
    CREATE TABLE IF NOT EXISTS reevaluation_items (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        snapshot_id INTEGER NOT NULL,
        position INTEGER NOT NULL,
        measure_key TEXT NOT NULL,
        family TEXT NOT NULL,
        current_value REAL NOT NULL,
        baseline_value REAL,
        baseline_record_id INTEGER,
        change REAL,
        change_percentage REAL,
        higher_is_better INTEGER NOT NULL,
        threshold REAL,
        meets_significance INTEGER NOT NULL,
        trend TEXT NOT NULL,
        UNIQUE (snapshot_id, measure_key),
        FOREIGN KEY (snapshot_id) REFERENCES reevaluation_snapshots(id),
        FOREIGN KEY (baseline_record_id) REFERENCES measurements(id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS protocol_assignments (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        patient_id TEXT NOT NULL,
        clinic_id TEXT NOT NULL,
        protocol_name TEXT NOT NULL,
        therapist_id TEXT NOT NULL,
        status TEXT NOT NULL,
        current_phase TEXT NOT NULL,
        sessions_completed INTEGER NOT NULL DEFAULT 0,
        start_date TEXT NOT NULL,
        target_end_date TEXT,
        actual_end_date TEXT,
        progress_notes TEXT NOT NULL DEFAULT '[]',
        version INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_protocol_assignments_patient
        ON protocol_assignments (patient_id)
    """,
)


class Database:
    """
    SQLite database connection manager with concurrency optimizations.

    Features:
    - WAL mode so readers only ever see committed rows
    - Busy timeout to handle lock contention gracefully
    - Foreign key constraints enabled by default
    - transaction() unit of work for multi-row writes

    Usage:
        # Via dependency injection (recommended):
        from outcome_svc.core.dependencies import get_database
        db = get_database()

        # Direct instantiation (for testing):
        db = Database(db_path="/tmp/test.db")
    """

    def __init__(self, db_path: Optional[str] = None, busy_timeout: Optional[int] = None):
        """
        Initialize database connection.

        Args:
            db_path: Path to SQLite database file. Defaults to config DATABASE_PATH.
            busy_timeout: SQLite busy timeout in milliseconds. Defaults to config value.
        """
        self.db_path = db_path or DATABASE_PATH
        self.busy_timeout = busy_timeout if busy_timeout is not None else DATABASE_BUSY_TIMEOUT

        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._init_db()

    def _configure_connection(self, conn: sqlite3.Connection) -> None:
        """Apply per-connection pragmas."""
        conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout}")
        conn.execute("PRAGMA foreign_keys = ON")

    def _init_db(self) -> None:
        """Initialize database schema and enable WAL mode if not already enabled."""
        conn = sqlite3.connect(self.db_path)
        self._configure_connection(conn)
        cursor = conn.cursor()

        # WAL mode persists in the database file
        cursor.execute("PRAGMA journal_mode = WAL")
        result = cursor.fetchone()
        if result and result[0].lower() == 'wal':
            logger.info(f"SQLite WAL mode enabled for {self.db_path}")
        else:
            logger.warning(f"Failed to enable WAL mode, current mode: {result}")

        for statement in SCHEMA:
            cursor.execute(statement)

        conn.commit()
        conn.close()

        logger.info(
            f"Database initialized: {self.db_path} "
            f"(busy_timeout={self.busy_timeout}ms)"
        )

    def get_connection(self) -> sqlite3.Connection:
        """
        Get a new database connection with concurrency settings.

        Returns:
            sqlite3.Connection: A new connection with foreign keys enabled and busy timeout set.
        """
        conn = sqlite3.connect(self.db_path)
        self._configure_connection(conn)
        return conn

    @contextmanager
    def transaction(self, immediate: bool = True) -> Iterator[sqlite3.Connection]:
        """
        Run a block of statements as one transaction (all or nothing).

        BEGIN IMMEDIATE takes the write lock up front so concurrent writers
        queue on busy_timeout instead of failing at commit time.

        Usage:
            with db.transaction() as conn:
                conn.execute("INSERT ...")
                conn.execute("INSERT ...")
        """
        conn = self.get_connection()
        try:
            conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
