from __future__ import annotations

from types import MappingProxyType

import pytest

from arc_planner.app.models import SectionType
from arc_planner.services.constraints import (
    EnergyConstraintContext,
    final_chorus_peak,
    same_type_monotonic,
)
from arc_planner.services.exceptions import UnknownPolicyError
from arc_planner.services.policies import (
    EnergyConstraintPolicy,
    all_policies,
    canonical_policy_name,
    default_policy,
    empty_policy,
    get_policy,
    policy_for_style,
)


def _final_chorus_context(proposed: float = 0.65) -> EnergyConstraintContext:
    return EnergyConstraintContext(
        section_type=SectionType.CHORUS,
        type_local_index=1,
        absolute_index=3,
        proposed_energy=proposed,
        previous_same_type_energy=0.70,
        previous_any_section_energy=0.5,
        previous_section_type=SectionType.VERSE,
        next_section_energy=None,
        is_last_of_type=True,
        is_last_section=True,
        total_sections_of_type=2,
        total_sections=4,
        finalized_energies=MappingProxyType({0: 0.4, 1: 0.70, 2: 0.5}),
    )


def test_builtin_policies_are_registered() -> None:
    assert set(all_policies()) == {"PopRock", "Rock", "Jazz", "EDM", "Minimal", "None"}
    assert default_policy().name == "PopRock"
    assert not empty_policy().is_active


def test_policy_names_are_case_insensitive() -> None:
    assert canonical_policy_name("poprock") == "PopRock"
    assert get_policy(" edm ").name == "EDM"
    with pytest.raises(UnknownPolicyError):
        get_policy("Baroque")


@pytest.mark.parametrize(
    ("style", "expected"),
    [
        ("JazzSwing", "Jazz"),
        ("BossaNova", "Jazz"),
        ("DeepHouse", "EDM"),
        ("RockSteady", "Rock"),
        ("PopGroove", "PopRock"),
        ("Funk", "PopRock"),
    ],
)
def test_policy_for_style(style: str, expected: str) -> None:
    assert policy_for_style(style).name == expected


def test_single_adjustment_is_applied_verbatim() -> None:
    policy = EnergyConstraintPolicy(name="Only", rules=(same_type_monotonic(strength=0.3),))
    energy, diagnostics = policy.apply(_final_chorus_context(0.65))
    assert energy == pytest.approx(0.70)
    assert diagnostics[0].startswith("[SameTypeMonotonic] ")
    assert diagnostics[-1] == "SameTypeMonotonic: 0.650 -> 0.700"


def test_adjustments_are_blended_by_strength() -> None:
    policy = EnergyConstraintPolicy(
        name="Blend",
        rules=(
            same_type_monotonic(strength=1.0, min_increment=0.0),
            final_chorus_peak(strength=1.5, min_peak_energy=0.85, peak_proximity_threshold=0.95),
        ),
    )
    energy, diagnostics = policy.apply(_final_chorus_context(0.65))
    assert energy == pytest.approx(0.79)
    assert any(line.startswith("Blended 2 adjustments") for line in diagnostics)
    assert any("= 0.790" in line for line in diagnostics)


def test_zero_total_strength_keeps_proposal() -> None:
    policy = EnergyConstraintPolicy(
        name="Weightless",
        rules=(
            same_type_monotonic(strength=0.0),
            final_chorus_peak(strength=0.0, min_peak_energy=0.9),
        ),
    )
    energy, _ = policy.apply(_final_chorus_context(0.65))
    assert energy == pytest.approx(0.65)


def test_accepting_rules_keep_proposal_and_report() -> None:
    energy, diagnostics = default_policy().apply(_final_chorus_context(0.9))
    assert energy == pytest.approx(0.9)
    assert any(line.startswith("[FinalChorusPeak]") for line in diagnostics)


def test_disabled_policy_is_passthrough() -> None:
    policy = EnergyConstraintPolicy(
        name="Off", rules=(same_type_monotonic(),), enabled=False
    )
    energy, diagnostics = policy.apply(_final_chorus_context(0.1))
    assert energy == pytest.approx(0.1)
    assert diagnostics == []
