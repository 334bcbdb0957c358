"""
Outcome analytics: comparison, classification and family adapters.

Everything in this package is pure computation with no I/O.
"""
from outcome_svc.services.analytics.classifier import classify, effective_threshold
from outcome_svc.services.analytics.comparator import compare, compute_change, progress_toward_goal
from outcome_svc.services.analytics.families import (
    ScoreInterpretation,
    interpret_score,
    mmt_measure_key,
    profile_for,
    rom_measure_key,
    validate_value,
)

__all__ = [
    "ScoreInterpretation",
    "classify",
    "compare",
    "compute_change",
    "effective_threshold",
    "interpret_score",
    "mmt_measure_key",
    "profile_for",
    "progress_toward_goal",
    "rom_measure_key",
    "validate_value",
]
