"""
Trend and significance classification.

Pure functions over a signed change, a direction and an optional threshold.
"""
from decimal import Decimal
from typing import Optional, Tuple, Union

from outcome_svc.models.comparison import Trend

Number = Union[int, float, Decimal]


def to_decimal(value: Number) -> Decimal:
    """
    Exact decimal for a human-entered number.

    Floats go through their shortest repr, so 4.3 becomes Decimal("4.3")
    rather than its binary expansion.
    """
    if isinstance(value, Decimal):
        return value
    return Decimal(repr(float(value)))


def effective_threshold(threshold: Optional[Number]) -> Optional[Number]:
    """A threshold counts only when it is strictly positive."""
    if threshold is None or threshold <= 0:
        return None
    return threshold


def classify(
    change: Number,
    higher_is_better: bool,
    threshold: Optional[Number] = None,
) -> Tuple[Trend, bool]:
    """
    Classify a signed change.

    Args:
        change: current - baseline
        higher_is_better: True when larger values are clinically better
        threshold: MCID/MDC; None or <= 0 means no threshold

    Returns:
        (trend, meets_significance). meets_significance is True only when a
        threshold exists and |change| >= threshold.

    Example:
        >>> classify(-5, higher_is_better=False, threshold=2)
        (<Trend.IMPROVED: 'improved'>, True)
    """
    delta = to_decimal(change)
    magnitude = abs(delta)
    threshold = effective_threshold(threshold)

    if threshold is not None:
        if magnitude < to_decimal(threshold):
            return Trend.STABLE, False
        meets_significance = True
    else:
        if delta == 0:
            return Trend.STABLE, False
        meets_significance = False

    if (delta > 0) == higher_is_better:
        return Trend.IMPROVED, meets_significance
    return Trend.DECLINED, meets_significance
