"""
Measure library - single source of truth for measure definitions.

This module provides:
- YAML-based configuration loading and validation
- MeasureDefinition dataclass (bounds, direction, MCID/MDC thresholds)
- Canonical key normalization and alias resolution
- Family key resolution for range of motion and manual muscle testing

All measure-related lookups in the application MUST go through this module.
YAML access is encapsulated here - no other module should read measures.yaml directly.

Usage:
    from outcome_svc.core.measure_library import get_measure, list_measures, rom_key

    vas = get_measure("VAS")                       # alias/case-insensitive
    knee = get_measure(rom_key("knee", "left", "active"))
    catalogue = list_measures(family="outcome_measure")
"""

import logging
import re
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from outcome_svc.core.config import MEASURES_FILE
from outcome_svc.core.exceptions import MeasureNotFoundError

logger = logging.getLogger(__name__)

FAMILY_OUTCOME = "outcome_measure"
FAMILY_ROM = "rom"
FAMILY_MMT = "mmt"
FAMILIES = (FAMILY_OUTCOME, FAMILY_ROM, FAMILY_MMT)


# =============================================================================
# MEASURE DEFINITION DATACLASS
# =============================================================================

@dataclass(frozen=True)
class MeasureDefinition:
    """
    Immutable definition for a measure.

    Attributes:
        key: Canonical key (stored on every measurement)
        family: outcome_measure, rom or mmt
        display_name / display_name_vi: English and Vietnamese labels
        category: Grouping (pain, disability, range_of_motion, strength, ...)
        unit: Measurement unit (points, degrees, grade, seconds, percent)
        min_value / max_value: Inclusive bounds for a valid reading
        higher_is_better: Direction used when classifying change
        mcid: Minimal Clinically Important Difference, if published
        mdc: Minimal Detectable Change, if published
        step: Required value granularity (MMT half grades), None for continuous
        normal_value: Reference value for a healthy adult (ROM)
        aliases: Alternative names that resolve to this measure
    """
    key: str
    family: str
    display_name: str
    display_name_vi: str
    category: str
    unit: str
    min_value: float
    max_value: float
    higher_is_better: bool
    mcid: Optional[float] = None
    mdc: Optional[float] = None
    step: Optional[float] = None
    normal_value: Optional[float] = None
    aliases: Tuple[str, ...] = ()

    @property
    def threshold(self) -> Optional[float]:
        """Significance threshold: MCID, else MDC, else None."""
        for candidate in (self.mcid, self.mdc):
            if candidate is not None and candidate > 0:
                return candidate
        return None

    @property
    def goal_value(self) -> float:
        """Best achievable score on this measure."""
        return self.max_value if self.higher_is_better else self.min_value

    def is_in_range(self, value: float) -> bool:
        return self.min_value <= value <= self.max_value

    def is_on_step(self, value: float) -> bool:
        """True when value is a whole multiple of step (always true without a step)."""
        if self.step is None:
            return True
        multiple = Decimal(repr(value)) / Decimal(repr(self.step))
        return multiple == multiple.to_integral_value()


@dataclass(frozen=True)
class RomJoint:
    """Joint entry of the range-of-motion family template."""
    joint: str
    display_name: str
    display_name_vi: str
    max_degree: float
    normal_degree: float


@dataclass(frozen=True)
class _Library:
    outcome_measures: Tuple[MeasureDefinition, ...]
    rom_category: str
    rom_unit: str
    rom_joints: Dict[str, RomJoint]
    rom_sides: Tuple[str, ...]
    rom_movements: Tuple[str, ...]
    mmt_category: str
    mmt_unit: str
    mmt_sides: Tuple[str, ...]
    mmt_min_grade: float
    mmt_max_grade: float
    mmt_step: float
    mmt_max_muscle_group_length: int
    mmt_common_muscle_groups: Tuple[str, ...]


# =============================================================================
# YAML CONFIGURATION LOADING & VALIDATION
# =============================================================================

def _get_config_path() -> Path:
    """Get the path to the measure library file."""
    if MEASURES_FILE:
        return Path(MEASURES_FILE)
    return Path(__file__).parent / 'measures.yaml'


def _load_yaml_config() -> Dict[str, Any]:
    """
    Load and parse the YAML configuration file.

    Raises:
        FileNotFoundError: If the library file is not found
        yaml.YAMLError: If YAML parsing fails
    """
    config_path = _get_config_path()
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f)
    except FileNotFoundError:
        logger.error("Measure library file not found", extra={'path': str(config_path)})
        raise
    except yaml.YAMLError as e:
        logger.error("Failed to parse measure library", extra={'path': str(config_path), 'error': str(e)})
        raise


def _validate_outcome_entry(raw: Dict[str, Any], index: int) -> None:
    """
    Validate a single outcome measure entry from YAML.

    Raises:
        ValueError: If required fields are missing or invalid
    """
    for field_name in ('key', 'display_name', 'min_value', 'max_value', 'higher_is_better'):
        if field_name not in raw:
            raise ValueError(f"Outcome measure at index {index} is missing required field: '{field_name}'")

    if float(raw['min_value']) >= float(raw['max_value']):
        raise ValueError(f"Outcome measure '{raw['key']}' has min_value >= max_value")

    for field_name in ('mcid', 'mdc'):
        value = raw.get(field_name)
        if value is not None and float(value) < 0:
            raise ValueError(f"Outcome measure '{raw['key']}' has negative {field_name}")


def _optional_float(value: Any) -> Optional[float]:
    return float(value) if value is not None else None


def _parse_outcome_entry(raw: Dict[str, Any]) -> MeasureDefinition:
    """Parse a single outcome measure entry into a MeasureDefinition."""
    return MeasureDefinition(
        key=normalize_measure_key(raw['key']),
        family=FAMILY_OUTCOME,
        display_name=raw['display_name'],
        display_name_vi=raw.get('display_name_vi', raw['display_name']),
        category=raw.get('category', 'other'),
        unit=raw.get('unit', 'points'),
        min_value=float(raw['min_value']),
        max_value=float(raw['max_value']),
        higher_is_better=bool(raw['higher_is_better']),
        mcid=_optional_float(raw.get('mcid')),
        mdc=_optional_float(raw.get('mdc')),
        step=_optional_float(raw.get('step')),
        aliases=tuple(raw.get('aliases') or ()),
    )


@lru_cache(maxsize=1)
def _load_library() -> _Library:
    """
    Load and cache the complete measure library from YAML.

    Cached so the file is read exactly once per process.
    """
    config = _load_yaml_config() or {}

    outcome_definitions: List[MeasureDefinition] = []
    for i, raw in enumerate(config.get('outcome_measures', [])):
        _validate_outcome_entry(raw, i)
        outcome_definitions.append(_parse_outcome_entry(raw))

    rom = config.get('rom', {})
    joints: Dict[str, RomJoint] = {}
    for raw in rom.get('joints', []):
        joint = normalize_measure_key(raw['joint'])
        joints[joint] = RomJoint(
            joint=joint,
            display_name=raw.get('display_name', joint.replace('_', ' ').title()),
            display_name_vi=raw.get('display_name_vi', raw.get('display_name', joint)),
            max_degree=float(raw['max_degree']),
            normal_degree=float(raw.get('normal_degree', raw['max_degree'])),
        )

    mmt = config.get('mmt', {})

    library = _Library(
        outcome_measures=tuple(outcome_definitions),
        rom_category=rom.get('category', 'range_of_motion'),
        rom_unit=rom.get('unit', 'degrees'),
        rom_joints=joints,
        rom_sides=tuple(rom.get('sides', ('left', 'right', 'bilateral'))),
        rom_movements=tuple(rom.get('movements', ('active', 'passive'))),
        mmt_category=mmt.get('category', 'strength'),
        mmt_unit=mmt.get('unit', 'grade'),
        mmt_sides=tuple(mmt.get('sides', ('left', 'right', 'bilateral'))),
        mmt_min_grade=float(mmt.get('min_grade', 0)),
        mmt_max_grade=float(mmt.get('max_grade', 5)),
        mmt_step=float(mmt.get('step', 0.5)),
        mmt_max_muscle_group_length=int(mmt.get('max_muscle_group_length', 80)),
        mmt_common_muscle_groups=tuple(mmt.get('common_muscle_groups', ())),
    )

    logger.info(
        "Measure library loaded",
        extra={
            'outcome_measures': len(library.outcome_measures),
            'rom_joints': len(library.rom_joints),
        }
    )
    return library


# =============================================================================
# KEY NORMALIZATION & LOOKUP
# =============================================================================

def normalize_measure_key(key: str) -> str:
    """
    Normalize a measure key for consistent lookup and storage.

    Rules:
    - Lowercase, strip surrounding whitespace
    - No whitespace around ':' separators
    - Runs of spaces/hyphens become a single underscore
    - Any other character outside [a-z0-9_:] is dropped
    """
    if not key:
        return ''
    normalized = key.lower().strip()
    normalized = re.sub(r'\s*:\s*', ':', normalized)
    normalized = re.sub(r'[\s\-]+', '_', normalized)
    return re.sub(r'[^a-z0-9_:]', '', normalized)


def rom_key(joint: str, side: str, movement: str) -> str:
    """Build the canonical range-of-motion key."""
    return normalize_measure_key(f"{FAMILY_ROM}:{joint}:{side}:{movement}")


def mmt_key(muscle_group: str, side: str) -> str:
    """Build the canonical manual-muscle-test key."""
    return normalize_measure_key(f"{FAMILY_MMT}:{muscle_group}:{side}")


@lru_cache(maxsize=1)
def _build_measure_lookup() -> Dict[str, MeasureDefinition]:
    """
    Build a normalized lookup map from all outcome measure keys and aliases.
    Called once and cached.
    """
    lookup: Dict[str, MeasureDefinition] = {}
    for measure in _load_library().outcome_measures:
        if measure.key in lookup:
            logger.warning("Duplicate measure key detected", extra={'key': measure.key})
        lookup[measure.key] = measure

        for alias in measure.aliases:
            alias_normalized = normalize_measure_key(alias)
            existing = lookup.get(alias_normalized)
            if existing is None:
                lookup[alias_normalized] = measure
            elif existing != measure:
                logger.warning(
                    "Alias collision detected",
                    extra={'alias': alias_normalized, 'existing': existing.key}
                )
    return lookup


def _rom_definition(joint: RomJoint, side: str, movement: str) -> MeasureDefinition:
    library = _load_library()
    return MeasureDefinition(
        key=f"{FAMILY_ROM}:{joint.joint}:{side}:{movement}",
        family=FAMILY_ROM,
        display_name=f"{joint.display_name} ROM ({side}, {movement})",
        display_name_vi=f"Tầm vận động {joint.display_name_vi} ({side}, {movement})",
        category=library.rom_category,
        unit=library.rom_unit,
        min_value=0.0,
        max_value=joint.max_degree,
        higher_is_better=True,
        normal_value=joint.normal_degree,
    )


def _mmt_definition(muscle_group: str, side: str) -> MeasureDefinition:
    library = _load_library()
    label = muscle_group.replace('_', ' ').title()
    return MeasureDefinition(
        key=f"{FAMILY_MMT}:{muscle_group}:{side}",
        family=FAMILY_MMT,
        display_name=f"Manual Muscle Test - {label} ({side})",
        display_name_vi=f"Thử cơ bằng tay - {label} ({side})",
        category=library.mmt_category,
        unit=library.mmt_unit,
        min_value=library.mmt_min_grade,
        max_value=library.mmt_max_grade,
        higher_is_better=True,
        step=library.mmt_step,
        normal_value=library.mmt_max_grade,
    )


@lru_cache(maxsize=1024)
def _resolve_family_key(normalized: str) -> Optional[MeasureDefinition]:
    """Resolve rom:/mmt: keys against the family templates; None when invalid."""
    library = _load_library()
    parts = normalized.split(':')

    if parts[0] == FAMILY_ROM and len(parts) == 4:
        _, joint, side, movement = parts
        if joint in library.rom_joints and side in library.rom_sides and movement in library.rom_movements:
            return _rom_definition(library.rom_joints[joint], side, movement)
        return None

    if parts[0] == FAMILY_MMT and len(parts) == 3:
        _, muscle_group, side = parts
        if (
            muscle_group
            and len(muscle_group) <= library.mmt_max_muscle_group_length
            and side in library.mmt_sides
        ):
            return _mmt_definition(muscle_group, side)
        return None

    return None


# Trigger library load at import time so a broken file fails fast
_load_library()


# =============================================================================
# PUBLIC API - MEASURE ACCESS
# =============================================================================

def get_measure(measure_key: str) -> MeasureDefinition:
    """
    Get a measure definition by key.

    Uses exact normalized lookup only - no fuzzy/substring matching.

    Raises:
        MeasureNotFoundError: If the key is not in the library
    """
    normalized = normalize_measure_key(measure_key)
    definition = _build_measure_lookup().get(normalized)
    if definition is None and ':' in normalized:
        definition = _resolve_family_key(normalized)
    if definition is None:
        raise MeasureNotFoundError(measure_key=measure_key)
    return definition


def list_measures(family: Optional[str] = None) -> List[MeasureDefinition]:
    """
    List measure definitions, optionally filtered by family.

    ROM is expanded for every joint/side/movement; MMT is expanded for the
    common muscle groups only (any muscle group is accepted on record).
    """
    library = _load_library()
    measures: List[MeasureDefinition] = []

    if family in (None, FAMILY_OUTCOME):
        measures.extend(library.outcome_measures)
    if family in (None, FAMILY_ROM):
        for joint in library.rom_joints.values():
            for side in library.rom_sides:
                for movement in library.rom_movements:
                    measures.append(_rom_definition(joint, side, movement))
    if family in (None, FAMILY_MMT):
        for muscle_group in library.mmt_common_muscle_groups:
            for side in library.mmt_sides:
                measures.append(get_measure(mmt_key(muscle_group, side)))
    return measures


def rom_options() -> Tuple[Dict[str, RomJoint], Tuple[str, ...], Tuple[str, ...]]:
    """Valid ROM joints, sides and movements."""
    library = _load_library()
    return library.rom_joints, library.rom_sides, library.rom_movements


def mmt_options() -> Tuple[Tuple[str, ...], Tuple[str, ...], int]:
    """Common MMT muscle groups, valid sides and the maximum muscle group length."""
    library = _load_library()
    return library.mmt_common_muscle_groups, library.mmt_sides, library.mmt_max_muscle_group_length
