"""
UTC-first datetime utilities.

- All datetimes are stored and processed in UTC
- Database storage: fixed-width ISO 8601 strings with microseconds, so that
  lexical order in SQLite equals chronological order
- API responses: ISO 8601 strings with 'Z' suffix
- API requests: accept any ISO 8601 form, normalize to UTC
"""
from datetime import datetime, timezone
from typing import Optional

DB_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utc_now() -> datetime:
    """Get current datetime in UTC with timezone info."""
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC.

    - If datetime is naive (no timezone), assumes it's already UTC
    - If datetime has timezone, converts to UTC
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Ensure datetime is UTC, handling None gracefully."""
    return to_utc(dt) if dt is not None else None


def format_iso(dt: datetime) -> str:
    """
    Format datetime to ISO 8601 string with UTC timezone.

    Example:
        >>> format_iso(datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc))
        '2024-01-15T10:30:00Z'
    """
    return to_utc(dt).strftime("%Y-%m-%dT%H:%M:%SZ")


# =============================================================================
# DATABASE HELPERS
# =============================================================================

def to_db_string(dt: datetime) -> str:
    """Convert datetime to the sortable string stored in SQLite."""
    return to_utc(dt).strftime(DB_FORMAT)


def from_db_string(value: Optional[str]) -> Optional[datetime]:
    """Parse a datetime string read back from SQLite."""
    if value is None:
        return None
    return datetime.strptime(value, DB_FORMAT).replace(tzinfo=timezone.utc)
