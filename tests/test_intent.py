from __future__ import annotations

import pytest

from arc_planner.app.models import SectionType, layout_sections
from arc_planner.services.arc_library import StyleCategory, get_catalog
from arc_planner.services.energy_arc import EnergyArc
from arc_planner.services.exceptions import SectionIndexError
from arc_planner.services.intent import (
    RegisterConstraints,
    RoleDensityCaps,
    SongIntentQuery,
)
from arc_planner.services.phrasing import PhrasePosition
from arc_planner.services.policies import empty_policy
from arc_planner.services.profiles import EnergyProfileBuilder
from arc_planner.services.tension import DeterministicTensionQuery
from arc_planner.services.variation import SectionVariationPlanner, VariationQuery


def _intent(template_name: str, *types: SectionType, seed: int = 0) -> SongIntentQuery:
    sections = layout_sections((section_type, 8) for section_type in types)
    arc = EnergyArc(
        sections,
        "PopGroove",
        get_catalog().template(template_name),
        empty_policy(),
        style_category=StyleCategory.POP,
        form_id="VerseChorus",
    )
    tension = DeterministicTensionQuery(arc, seed)
    variations = VariationQuery(SectionVariationPlanner("PopGroove", seed).compute_plans(sections, tension, arc))
    return SongIntentQuery(EnergyProfileBuilder.build_profiles(arc, seed), tension, variations)


def test_density_caps_follow_energy() -> None:
    assert RoleDensityCaps.for_energy(0.2) == RoleDensityCaps.low()
    assert RoleDensityCaps.for_energy(0.3) == RoleDensityCaps.default()
    assert RoleDensityCaps.for_energy(0.7) == RoleDensityCaps.default()
    assert RoleDensityCaps.for_energy(0.8) == RoleDensityCaps.high()


def test_register_constraint_defaults() -> None:
    constraints = RegisterConstraints()
    assert constraints.lead_space_ceiling == 72
    assert constraints.bass_floor == 52
    assert constraints.vocal_band == (60, 76)


def test_section_intent_combines_stages() -> None:
    query = _intent("PopStandard", SectionType.VERSE, SectionType.CHORUS, SectionType.VERSE, seed=3)
    assert query.section_count == 3
    chorus = query.section_intent(1)
    assert chorus.section_type == SectionType.CHORUS
    assert chorus.energy == pytest.approx(0.8)
    assert chorus.density_caps == RoleDensityCaps.high()
    assert chorus.role_presence.crash_on_section_start
    assert chorus.base_reference_section_index is None

    repeat = query.section_intent(2)
    assert repeat.base_reference_section_index == 0
    assert "Aprime" in repeat.variation_tags


def test_bar_intent_applies_phrase_offsets() -> None:
    query = _intent("EDMBuildDrop", SectionType.VERSE)
    peak = query.bar_intent(0, 2)
    assert peak.phrase_position == PhrasePosition.PEAK
    assert peak.phrase_offset == pytest.approx(0.2)
    assert peak.energy_delta == pytest.approx(0.051)
    assert peak.effective_energy == pytest.approx(0.551)

    start = query.bar_intent(0, 0)
    assert start.phrase_offset == 0.0
    assert start.is_section_start
    assert start.effective_energy == pytest.approx(0.3)


def test_bar_intent_flags_and_range() -> None:
    query = _intent("PopStandard", SectionType.VERSE, SectionType.CHORUS, seed=8)
    for section in range(query.section_count):
        for bar in range(8):
            intent = query.bar_intent(section, bar)
            assert 0.0 <= intent.effective_energy <= 1.0
            assert 0.0 <= intent.micro_tension <= 1.0
    assert query.bar_intent(1, 7).is_section_end
    assert query.bar_intent(1, 3).is_phrase_end


def test_out_of_range_intent_raises() -> None:
    query = _intent("PopStandard", SectionType.VERSE)
    assert not query.has_intent_data(1)
    with pytest.raises(SectionIndexError):
        query.section_intent(1)
    with pytest.raises(SectionIndexError):
        query.bar_intent(0, 8)
