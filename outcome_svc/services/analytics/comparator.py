"""
Baseline/current comparison.

Given a MeasureProfile, a current value and (optionally) a baseline value,
produce a ComparisonResult. No I/O.
"""
from typing import Optional, Tuple

from outcome_svc.models.comparison import ComparisonResult, MeasureProfile, Trend
from outcome_svc.services.analytics.classifier import (
    Number,
    classify,
    effective_threshold,
    to_decimal,
)


def compute_change(baseline: Number, current: Number) -> Tuple[float, Optional[float]]:
    """
    Signed change and percentage change.

    The subtraction is done in decimal so 0.3 - 0.1 is exactly 0.2. The
    percentage is relative to |baseline| and is None when baseline is 0.
    """
    base = to_decimal(baseline)
    delta = to_decimal(current) - base
    if base == 0:
        return float(delta), None
    return float(delta), float(delta / abs(base) * 100)


def compare(
    profile: MeasureProfile,
    current_value: float,
    baseline_value: Optional[float] = None,
) -> ComparisonResult:
    """
    Compare current against baseline for one measure.

    With no baseline the result is FIRST_RECORD: no change, no percentage,
    never significant.
    """
    threshold = effective_threshold(profile.threshold)

    if baseline_value is None:
        return ComparisonResult(
            measure_key=profile.measure_key,
            current_value=current_value,
            higher_is_better=profile.higher_is_better,
            trend=Trend.FIRST_RECORD,
            meets_significance=False,
            threshold=threshold,
        )

    change, change_percentage = compute_change(baseline_value, current_value)
    trend, meets_significance = classify(change, profile.higher_is_better, threshold)

    return ComparisonResult(
        measure_key=profile.measure_key,
        current_value=current_value,
        higher_is_better=profile.higher_is_better,
        trend=trend,
        meets_significance=meets_significance,
        baseline_value=baseline_value,
        change=change,
        change_percentage=change_percentage,
        threshold=threshold,
    )


def progress_toward_goal(baseline: Number, current: Number, goal: Number) -> float:
    """
    Share of the baseline-to-goal distance covered, in percent.

    0 when the baseline already sits on the goal.
    """
    distance = to_decimal(goal) - to_decimal(baseline)
    if distance == 0:
        return 0.0
    return float((to_decimal(current) - to_decimal(baseline)) / distance * 100)
