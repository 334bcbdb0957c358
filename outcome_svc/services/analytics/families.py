"""
Per-family adapters.

Each measurement family (standardized outcome measures, range of motion,
manual muscle testing) is reduced to a MeasureProfile for comparison.
The adapters own the family-specific input rules: ROM joint/side/movement
and maximum degrees, MMT muscle group and half-grade scale, and the
severity bands used to interpret an outcome-measure score.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from outcome_svc.core.exceptions import InvalidInputError
from outcome_svc.core.measure_library import (
    FAMILY_MMT,
    FAMILY_OUTCOME,
    FAMILY_ROM,
    MeasureDefinition,
    mmt_key,
    mmt_options,
    rom_key,
    rom_options,
)
from outcome_svc.models.comparison import MeasureProfile

logger = logging.getLogger(__name__)


# =============================================================================
# PROFILE
# =============================================================================

def profile_for(
    definition: MeasureDefinition,
    threshold_override: Optional[float] = None,
) -> MeasureProfile:
    """
    Normalize a definition to the comparison triple.

    A caller-supplied threshold replaces the library MCID/MDC; an override
    of 0 disables significance testing for that comparison.
    """
    threshold = definition.threshold if threshold_override is None else threshold_override
    return MeasureProfile(
        measure_key=definition.key,
        higher_is_better=definition.higher_is_better,
        threshold=threshold,
    )


# =============================================================================
# VALUE VALIDATION
# =============================================================================

def validate_value(definition: MeasureDefinition, value: float) -> None:
    """
    Reject values outside the definition's plausible bounds or off its step.

    Raises:
        InvalidInputError: With a family-specific message.
    """
    if definition.is_in_range(value) and definition.is_on_step(value):
        return

    if definition.family == FAMILY_ROM:
        detail = (
            f"ROM degree {value} out of range for {definition.key}: "
            f"must be between {definition.min_value:g} and {definition.max_value:g}"
        )
    elif definition.family == FAMILY_MMT:
        detail = (
            f"MMT grade {value} is invalid: must be between {definition.min_value:g} "
            f"and {definition.max_value:g} in {definition.step:g} steps"
        )
    elif not definition.is_in_range(value):
        detail = (
            f"Score {value} out of range for {definition.key}: "
            f"must be between {definition.min_value:g} and {definition.max_value:g}"
        )
    else:
        detail = f"Score {value} for {definition.key} must be a multiple of {definition.step:g}"

    logger.warning(
        "Rejected measurement value",
        extra={"measure_key": definition.key, "value": value}
    )
    raise InvalidInputError(detail=detail, measure_key=definition.key, value=value)


# =============================================================================
# FAMILY KEYS
# =============================================================================

def rom_measure_key(joint: str, side: str, movement: str) -> str:
    """
    Canonical key for a range-of-motion reading.

    Raises:
        InvalidInputError: Unknown joint, side or movement type.
    """
    key = rom_key(joint, side, movement)
    parts = key.split(':')
    if len(parts) != 4:
        raise InvalidInputError(detail=f"Invalid range of motion key '{key}'", joint=joint)
    _, joint_key, side_key, movement_key = parts
    joints, sides, movements = rom_options()

    if joint_key not in joints:
        raise InvalidInputError(
            detail=f"Invalid joint '{joint}': must be one of {', '.join(joints)}",
            joint=joint,
        )
    if side_key not in sides:
        raise InvalidInputError(
            detail=f"Invalid side '{side}': must be one of {', '.join(sides)}",
            side=side,
        )
    if movement_key not in movements:
        raise InvalidInputError(
            detail=f"Invalid movement type '{movement}': must be one of {', '.join(movements)}",
            movement_type=movement,
        )
    return key


def mmt_measure_key(muscle_group: str, side: str) -> str:
    """
    Canonical key for a manual muscle test.

    Any muscle group name is accepted; the common list is only a catalogue.

    Raises:
        InvalidInputError: Empty or over-long muscle group, or unknown side.
    """
    _, sides, max_length = mmt_options()
    name = (muscle_group or "").strip()
    if not name or len(name) > max_length:
        raise InvalidInputError(
            detail=f"Muscle group is required and must be at most {max_length} characters",
            muscle_group=muscle_group,
        )
    key = mmt_key(name, side)
    parts = key.split(':')
    if len(parts) != 3 or not parts[1]:
        raise InvalidInputError(detail=f"Invalid muscle group '{muscle_group}'", muscle_group=muscle_group)
    if parts[2] not in sides:
        raise InvalidInputError(
            detail=f"Invalid side '{side}': must be one of {', '.join(sides)}",
            side=side,
        )
    return key


# =============================================================================
# SCORE INTERPRETATION
# =============================================================================

@dataclass(frozen=True)
class ScoreInterpretation:
    severity: str
    severity_vi: str
    description: str
    description_vi: str


# (lower bound on the normalized 0-100 scale, interpretation)
_SEVERITY_BANDS = (
    (75.0, ScoreInterpretation("minimal", "Tối thiểu", "Minimal impairment", "Suy giảm tối thiểu")),
    (50.0, ScoreInterpretation("mild", "Nhẹ", "Mild impairment", "Suy giảm nhẹ")),
    (25.0, ScoreInterpretation("moderate", "Trung bình", "Moderate impairment", "Suy giảm trung bình")),
)
_SEVERE = ScoreInterpretation("severe", "Nặng", "Severe impairment", "Suy giảm nặng")


def interpret_score(definition: MeasureDefinition, score: float) -> Optional[ScoreInterpretation]:
    """
    Severity band for an outcome-measure score.

    The score is mapped onto 0-100 where 100 is the best possible result
    (inverted for lower-is-better scales). Only standardized outcome
    measures are interpreted; ROM and MMT return None.
    """
    if definition.family != FAMILY_OUTCOME:
        return None
    score_range = definition.max_value - definition.min_value
    if score_range <= 0:
        return None

    normalized = (score - definition.min_value) / score_range * 100
    if not definition.higher_is_better:
        normalized = 100 - normalized

    for lower_bound, interpretation in _SEVERITY_BANDS:
        if normalized >= lower_bound:
            return interpretation
    return _SEVERE
