"""
Domain models for re-evaluation snapshots.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from outcome_svc.models.comparison import Trend


class BaselineMode(str, Enum):
    """How the baseline reading is chosen when none is given explicitly."""
    FIRST_RECORDED = "first_recorded"
    PRE_TREATMENT = "pre_treatment"


@dataclass
class ReevaluationItem:
    """One measure compared at a re-evaluation visit."""

    measure_key: str
    family: str
    current_value: float
    higher_is_better: bool
    trend: Trend
    meets_significance: bool
    baseline_value: Optional[float] = None
    baseline_record_id: Optional[int] = None
    change: Optional[float] = None
    change_percentage: Optional[float] = None
    threshold: Optional[float] = None
    position: int = 0
    id: Optional[int] = None


@dataclass
class ReevaluationSummary:
    total: int = 0
    improved: int = 0
    declined: int = 0
    stable: int = 0
    significant: int = 0
    first_record: int = 0

    @classmethod
    def from_items(cls, items: List[ReevaluationItem]) -> 'ReevaluationSummary':
        summary = cls(total=len(items))
        for item in items:
            if item.trend is Trend.IMPROVED:
                summary.improved += 1
            elif item.trend is Trend.DECLINED:
                summary.declined += 1
            elif item.trend is Trend.STABLE:
                summary.stable += 1
            else:
                summary.first_record += 1
            if item.meets_significance:
                summary.significant += 1
        return summary


@dataclass
class ReevaluationSnapshot:
    """A batch of comparisons captured at one visit. Written once, never mutated."""

    patient_id: str
    clinic_id: str
    clinician_id: str
    baseline_mode: BaselineMode
    assessed_at: datetime
    summary: ReevaluationSummary
    items: List[ReevaluationItem] = field(default_factory=list)
    visit_id: Optional[str] = None
    notes: Optional[str] = None
    treatment_start: Optional[datetime] = None
    created_at: Optional[datetime] = None
    id: Optional[int] = None
