"""
Domain models for baseline/current comparison.

MeasureProfile is the normalized view every measurement family is reduced
to before comparison: a direction and an optional significance threshold.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class Trend(str, Enum):
    """Direction-aware classification of a change."""
    IMPROVED = "improved"
    DECLINED = "declined"
    STABLE = "stable"
    FIRST_RECORD = "first_record"


@dataclass(frozen=True)
class MeasureProfile:
    measure_key: str
    higher_is_better: bool
    threshold: Optional[float] = None


@dataclass
class ComparisonResult:
    """Outcome of comparing a current value against a baseline."""

    measure_key: str
    current_value: float
    higher_is_better: bool
    trend: Trend
    meets_significance: bool = False
    baseline_value: Optional[float] = None
    change: Optional[float] = None
    change_percentage: Optional[float] = None
    threshold: Optional[float] = None
    baseline_record_id: Optional[int] = None
    current_record_id: Optional[int] = None
    baseline_recorded_at: Optional[datetime] = None
    current_recorded_at: Optional[datetime] = None

    @property
    def has_baseline(self) -> bool:
        return self.trend is not Trend.FIRST_RECORD
