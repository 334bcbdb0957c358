"""
Repository layer for database access.

This module contains all database access operations, encapsulating SQL and data persistence logic.
"""
from outcome_svc.repositories.base import Database
from outcome_svc.repositories.measurement_repository import MeasurementRepository
from outcome_svc.repositories.protocol_repository import ProtocolRepository
from outcome_svc.repositories.snapshot_repository import SnapshotRepository

__all__ = [
    "Database",
    "MeasurementRepository",
    "ProtocolRepository",
    "SnapshotRepository",
]
