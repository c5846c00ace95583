from __future__ import annotations

from typing import Optional

import pytest

from arc_planner.app.models import SectionType, layout_sections
from arc_planner.services.arc_library import (
    EnergyArcTemplate,
    EnergySectionTarget,
    StyleCategory,
    get_catalog,
)
from arc_planner.services.energy_arc import EnergyArc
from arc_planner.services.exceptions import SectionIndexError
from arc_planner.services.phrasing import MicroTensionMap
from arc_planner.services.policies import empty_policy
from arc_planner.services.random_source import derive_section_seed
from arc_planner.services.tension import (
    DeterministicTensionQuery,
    SectionTensionProfile,
    SectionTransitionHint,
    TensionDriver,
    classify_transition,
)

INTRO = SectionType.INTRO
V = SectionType.VERSE
C = SectionType.CHORUS
B = SectionType.BRIDGE
OUTRO = SectionType.OUTRO


def _arc(*types: SectionType, template: Optional[EnergyArcTemplate] = None, bars: int = 8) -> EnergyArc:
    return EnergyArc(
        layout_sections((section_type, bars) for section_type in types),
        "PopGroove",
        template or get_catalog().template("PopStandard"),
        empty_policy(),
        style_category=StyleCategory.POP,
        form_id="VerseChorus",
    )


def test_query_is_deterministic() -> None:
    arc = _arc(INTRO, V, C, V, C, B, C, OUTRO)
    first = DeterministicTensionQuery(arc, 42)
    second = DeterministicTensionQuery(arc, 42)
    for index in range(first.section_count):
        assert first.macro_tension(index) == second.macro_tension(index)
        assert first.micro_tension_map(index) == second.micro_tension_map(index)
        assert first.transition_hint(index) == second.transition_hint(index)


def test_values_stay_in_unit_interval() -> None:
    arc = _arc(INTRO, V, C, V, C, B, C, OUTRO)
    for seed in (0, 1, 42, -5):
        query = DeterministicTensionQuery(arc, seed)
        for index in range(query.section_count):
            profile = query.macro_tension(index)
            assert 0.0 <= profile.macro_tension <= 1.0
            assert 0.0 <= profile.micro_tension_default <= 1.0
            assert all(0.0 <= value <= 1.0 for value in query.micro_tension_map(index).tension_by_bar)


def test_verse_into_chorus_builds() -> None:
    query = DeterministicTensionQuery(_arc(V, C), 7)
    verse = query.macro_tension(0)
    chorus = query.macro_tension(1)
    assert TensionDriver.ANTICIPATION in verse.driver
    assert TensionDriver.PRE_CHORUS_BUILD in chorus.driver
    assert TensionDriver.ANTICIPATION in chorus.driver
    assert TensionDriver.RESOLUTION in chorus.driver
    assert chorus.macro_tension > verse.macro_tension
    assert query.transition_hint(0) == SectionTransitionHint.BUILD
    assert query.transition_hint(1) == SectionTransitionHint.NONE


def test_type_drivers() -> None:
    query = DeterministicTensionQuery(_arc(INTRO, V, C, B, OUTRO), 3)
    assert TensionDriver.OPENING in query.macro_tension(0).driver
    assert TensionDriver.BRIDGE_CONTRAST in query.macro_tension(3).driver
    assert TensionDriver.RESOLUTION in query.macro_tension(4).driver


def test_rising_chorus_is_marked_as_peak() -> None:
    template = EnergyArcTemplate(
        name="RisingChorus",
        description="",
        default_energy_by_type={},
        targets={
            (C, 0): EnergySectionTarget.uniform(0.6, C, 0),
            (C, 1): EnergySectionTarget.uniform(0.8, C, 1),
        },
    )
    query = DeterministicTensionQuery(_arc(C, C, template=template), 11)
    assert TensionDriver.RESOLUTION in query.macro_tension(0).driver
    assert TensionDriver.ANTICIPATION in query.macro_tension(0).driver
    assert TensionDriver.PEAK in query.macro_tension(1).driver
    assert TensionDriver.RESOLUTION not in query.macro_tension(1).driver


def test_micro_maps_use_per_section_seeds() -> None:
    seed = 42
    query = DeterministicTensionQuery(_arc(V, C, V, C), seed)
    for index in range(query.section_count):
        profile = query.macro_tension(index)
        expected = MicroTensionMap.build(
            8,
            profile.macro_tension,
            profile.micro_tension_default,
            None,
            derive_section_seed(seed, index),
        )
        assert query.micro_tension_map(index) == expected


def test_phrase_flags_and_context() -> None:
    query = DeterministicTensionQuery(_arc(V, C), 5)
    assert query.phrase_flags(0, 0) == (False, True, False)
    assert query.phrase_flags(0, 3) == (True, False, False)
    assert query.phrase_flags(0, 7) == (True, False, True)

    context = query.tension_context(1, 2)
    assert context.macro_tension == query.macro_tension(1).macro_tension
    assert context.micro_tension == query.micro_tension(1, 2)
    assert context.transition_hint == SectionTransitionHint.NONE
    assert not context.is_section_start


def test_out_of_range_lookups_raise() -> None:
    query = DeterministicTensionQuery(_arc(V, C), 5)
    assert not query.has_tension_data(2)
    with pytest.raises(SectionIndexError):
        query.macro_tension(2)
    with pytest.raises(SectionIndexError):
        query.micro_tension(0, 8)
    with pytest.raises(SectionIndexError):
        query.transition_hint(-1)


@pytest.mark.parametrize(
    ("energy_delta", "tension_delta", "expected"),
    [
        (0.1, 0.1, SectionTransitionHint.BUILD),
        (-0.2, 0.0, SectionTransitionHint.DROP),
        (0.0, -0.2, SectionTransitionHint.DROP),
        (0.0, -0.1, SectionTransitionHint.RELEASE),
        (0.02, 0.02, SectionTransitionHint.SUSTAIN),
        (0.1, 0.0, SectionTransitionHint.BUILD),
        (-0.1, 0.0, SectionTransitionHint.SUSTAIN),
    ],
)
def test_classify_transition(
    energy_delta: float, tension_delta: float, expected: SectionTransitionHint
) -> None:
    assert classify_transition(energy_delta, tension_delta) == expected


def test_profile_factories() -> None:
    profile = SectionTensionProfile.with_macro_tension(1.4, 2, TensionDriver.PEAK)
    assert profile.macro_tension == 1.0
    assert profile.micro_tension_default == pytest.approx(0.5)
    assert profile.with_micro_default(-1.0).micro_tension_default == 0.0
    neutral = SectionTensionProfile.neutral(3)
    assert neutral.macro_tension == 0.0
    assert neutral.driver == TensionDriver.NONE
    assert neutral.driver.names() == []
    assert (TensionDriver.PEAK | TensionDriver.OPENING).names() == ["OPENING", "PEAK"]
