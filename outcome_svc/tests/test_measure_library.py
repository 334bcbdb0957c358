"""
Tests for the measure library loaded from measures.yaml.
"""
import pytest

from outcome_svc.core.exceptions import MeasureNotFoundError
from outcome_svc.core.measure_library import (
    FAMILY_MMT,
    FAMILY_OUTCOME,
    FAMILY_ROM,
    get_measure,
    list_measures,
    mmt_key,
    mmt_options,
    normalize_measure_key,
    rom_key,
    rom_options,
)


class TestNormalizeMeasureKey:

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("VAS", "vas"),
            ("  Pain VAS ", "pain_vas"),
            ("quick-dash", "quick_dash"),
            ("ROM : Knee : Left : Active", "rom:knee:left:active"),
            ("SF-36", "sf_36"),
            ("mmt:Wrist Extensors:right", "mmt:wrist_extensors:right"),
            ("", ""),
        ],
    )
    def test_normalization(self, raw, expected):
        assert normalize_measure_key(raw) == expected

    def test_family_key_builders(self):
        assert rom_key("Knee", "Left", "Active") == "rom:knee:left:active"
        assert mmt_key("Hip Flexors", "bilateral") == "mmt:hip_flexors:bilateral"


class TestGetMeasure:

    def test_outcome_measure(self):
        vas = get_measure("vas")
        assert vas.family == FAMILY_OUTCOME
        assert vas.higher_is_better is False
        assert vas.min_value == 0
        assert vas.max_value == 10
        assert vas.mcid == 2.0
        assert vas.threshold == 2.0

    def test_alias_resolves_to_canonical_key(self):
        assert get_measure("Visual Analog Scale").key == "vas"
        assert get_measure("berg").key == "bbs"

    def test_threshold_falls_back_to_mdc(self):
        ndi = get_measure("ndi")
        assert ndi.threshold == 7.5
        assert get_measure("sf36").mdc is None

    def test_rom_key(self):
        knee = get_measure("rom:knee:left:active")
        assert knee.family == FAMILY_ROM
        assert knee.max_value == 150
        assert knee.normal_value == 135
        assert knee.higher_is_better is True
        assert knee.threshold is None

    def test_mmt_key_accepts_any_muscle_group(self):
        mmt = get_measure("mmt:Supraspinatus:left")
        assert mmt.key == "mmt:supraspinatus:left"
        assert mmt.family == FAMILY_MMT
        assert mmt.step == 0.5
        assert mmt.max_value == 5

    @pytest.mark.parametrize(
        "key",
        ["unknown", "rom:knee:left", "rom:toe:left:active", "rom:knee:up:active", "mmt::left", "mmt:deltoid:top"],
    )
    def test_unknown_key_raises(self, key):
        with pytest.raises(MeasureNotFoundError):
            get_measure(key)

    def test_goal_value_follows_direction(self):
        assert get_measure("ndi").goal_value == 0
        assert get_measure("lefs").goal_value == 80
        assert get_measure("fim").goal_value == 126


class TestListMeasures:

    def test_filter_by_family(self):
        outcome = list_measures(FAMILY_OUTCOME)
        assert {m.family for m in outcome} == {FAMILY_OUTCOME}
        assert "vas" in {m.key for m in outcome}

    def test_rom_expands_every_combination(self):
        joints, sides, movements = rom_options()
        assert len(list_measures(FAMILY_ROM)) == len(joints) * len(sides) * len(movements)

    def test_mmt_lists_common_groups_per_side(self):
        groups, sides, max_length = mmt_options()
        measures = list_measures(FAMILY_MMT)
        assert len(measures) == len(groups) * len(sides)
        assert "mmt:quadriceps:right" in {m.key for m in measures}
        assert max_length == 80

    def test_all_families(self):
        families = {m.family for m in list_measures()}
        assert families == {FAMILY_OUTCOME, FAMILY_ROM, FAMILY_MMT}


class TestMeasureDefinition:

    def test_is_on_step(self):
        mmt = get_measure("mmt:deltoid:left")
        assert mmt.is_on_step(3.5)
        assert mmt.is_on_step(4)
        assert not mmt.is_on_step(3.3)
        assert get_measure("vas").is_on_step(3.3)
