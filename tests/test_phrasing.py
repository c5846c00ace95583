from __future__ import annotations

import pytest

from arc_planner.services.exceptions import SectionIndexError
from arc_planner.services.phrasing import (
    MicroTensionMap,
    PhrasePosition,
    SectionEnergyMicroArc,
    infer_phrase_length,
)


def _phrase_ends(micro_map: MicroTensionMap) -> set[int]:
    return {bar for bar, flag in enumerate(micro_map.is_phrase_end) if flag}


def test_infer_phrase_length() -> None:
    assert infer_phrase_length(8) == 4
    assert infer_phrase_length(4) == 2
    assert infer_phrase_length(4, 4) == 4
    assert infer_phrase_length(6, 0) == 4


def test_phrase_ends_for_even_and_ragged_sections() -> None:
    assert _phrase_ends(MicroTensionMap.build(8, 0.5, 0.25, 4)) == {3, 7}
    assert _phrase_ends(MicroTensionMap.build(6, 0.5, 0.25, 4)) == {3, 5}
    assert _phrase_ends(MicroTensionMap.build(4, 0.5, 0.25)) == {1, 3}


def test_single_bar_section_flags() -> None:
    micro_map = MicroTensionMap.build(1, 0.5, 0.25)
    assert micro_map.flags(0) == (True, True, True)


def test_section_boundary_flags() -> None:
    micro_map = MicroTensionMap.flat(8, 0.4)
    assert micro_map.flags(0) == (False, True, False)
    assert micro_map.flags(7) == (True, False, True)
    assert set(micro_map.tension_by_bar) == {0.4}


def test_out_of_range_values_are_clamped() -> None:
    micro_map = MicroTensionMap.build(4, 1.5, 0.5, seed=42)
    assert all(0.0 <= value <= 1.0 for value in micro_map.tension_by_bar)


def test_simple_phrases_rise_linearly() -> None:
    micro_map = MicroTensionMap.with_simple_phrases(8, 0.4, 4)
    assert micro_map.tension(0) == pytest.approx(0.4)
    assert micro_map.tension(3) == pytest.approx(0.6)
    assert micro_map.tension(4) == pytest.approx(0.4)


def test_unseeded_build_rises_within_each_phrase() -> None:
    micro_map = MicroTensionMap.build(8, 0.5, 0.25, seed=0)
    values = micro_map.tension_by_bar
    for start in (0, 4):
        phrase = values[start : start + 4]
        assert all(later > earlier for earlier, later in zip(phrase, phrase[1:]))
    assert micro_map == MicroTensionMap.build(8, 0.5, 0.25, seed=0)


def test_seed_only_adds_small_jitter() -> None:
    plain = MicroTensionMap.build(8, 0.5, 0.25, seed=0).tension_by_bar
    first = MicroTensionMap.build(8, 0.5, 0.25, seed=1).tension_by_bar
    second = MicroTensionMap.build(8, 0.5, 0.25, seed=2).tension_by_bar
    assert first != second
    assert all(abs(a - b) <= 0.01 + 1e-9 for a, b in zip(plain, first))
    assert MicroTensionMap.build(8, 0.5, 0.25, seed=1) == MicroTensionMap.build(8, 0.5, 0.25, seed=1)


def test_higher_macro_tension_raises_average() -> None:
    low = MicroTensionMap.build(8, 0.2, 0.1).tension_by_bar
    high = MicroTensionMap.build(8, 0.8, 0.1).tension_by_bar
    assert sum(high) / len(high) > sum(low) / len(low)


def test_micro_map_bounds_errors() -> None:
    micro_map = MicroTensionMap.build(4, 0.5, 0.25)
    with pytest.raises(SectionIndexError):
        micro_map.tension(4)
    with pytest.raises(SectionIndexError):
        micro_map.flags(-1)
    with pytest.raises(ValueError):
        MicroTensionMap.build(0, 0.5, 0.25)


def test_energy_micro_arc_positions_and_deltas() -> None:
    arc = SectionEnergyMicroArc.build(8, 0.5)
    assert arc.phrase_position_by_bar == (
        PhrasePosition.START,
        PhrasePosition.MIDDLE,
        PhrasePosition.PEAK,
        PhrasePosition.CADENCE,
    ) * 2
    assert arc.energy_delta(0) == pytest.approx(0.0)
    assert arc.energy_delta(1) == pytest.approx(0.0195)
    assert arc.energy_delta(2) == pytest.approx(0.065)
    assert arc.energy_delta(3) == pytest.approx(-0.0325)


def test_energy_micro_arc_ragged_and_short_sections() -> None:
    ragged = SectionEnergyMicroArc.build(6, 0.5)
    assert ragged.phrase_position(4) == PhrasePosition.START
    assert ragged.phrase_position(5) == PhrasePosition.CADENCE

    short = SectionEnergyMicroArc.build(4, 0.5)
    assert short.phrase_position_by_bar == (
        PhrasePosition.START,
        PhrasePosition.CADENCE,
        PhrasePosition.START,
        PhrasePosition.CADENCE,
    )


def test_energy_micro_arc_scales_with_energy() -> None:
    assert SectionEnergyMicroArc.build(8, 0.9).energy_delta(2) > SectionEnergyMicroArc.build(8, 0.2).energy_delta(2)
    seeded = SectionEnergyMicroArc.build(16, 1.0, seed=7)
    assert all(-0.10 <= delta <= 0.10 for delta in seeded.energy_delta_by_bar)


def test_energy_micro_arc_out_of_range_is_neutral() -> None:
    arc = SectionEnergyMicroArc.build(8, 0.5)
    assert arc.energy_delta(99) == 0.0
    assert arc.phrase_position(-1) == PhrasePosition.MIDDLE
    flat = SectionEnergyMicroArc.flat(8)
    assert set(flat.energy_delta_by_bar) == {0.0}
