"""Energy constraint rule contract and the built-in musical heuristics.

A rule looks at one section's :class:`EnergyConstraintContext` and either
abstains (``no_opinion``), approves the proposal (``accept``) or suggests a new
energy (``adjust``). Rules never see each other's output; blending happens in
:mod:`.policies`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import partial
from types import MappingProxyType
from typing import Callable, Mapping, Optional

from ..app.models import SectionType
from .arc_library import clamp_unit


@dataclass(frozen=True)
class EnergyConstraintContext:
    section_type: SectionType
    type_local_index: int
    absolute_index: int
    proposed_energy: float
    previous_same_type_energy: Optional[float]
    previous_any_section_energy: Optional[float]
    previous_section_type: Optional[SectionType]
    next_section_energy: Optional[float]
    is_last_of_type: bool
    is_last_section: bool
    total_sections_of_type: int
    total_sections: int
    finalized_energies: Mapping[int, float] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def label(self) -> str:
        return f"{self.section_type.value} {self.type_local_index + 1}"


@dataclass(frozen=True)
class EnergyConstraintResult:
    adjusted_energy: Optional[float] = None
    diagnostic: Optional[str] = None

    @classmethod
    def no_opinion(cls) -> "EnergyConstraintResult":
        return cls()

    @classmethod
    def accept(cls, diagnostic: str) -> "EnergyConstraintResult":
        return cls(adjusted_energy=None, diagnostic=diagnostic)

    @classmethod
    def adjust(cls, energy: float, diagnostic: str) -> "EnergyConstraintResult":
        return cls(adjusted_energy=clamp_unit(energy), diagnostic=diagnostic)

    @property
    def has_opinion(self) -> bool:
        return self.adjusted_energy is not None or self.diagnostic is not None

    @property
    def is_adjustment(self) -> bool:
        return self.adjusted_energy is not None


RuleFunction = Callable[[EnergyConstraintContext], EnergyConstraintResult]


@dataclass(frozen=True)
class ConstraintRule:
    name: str
    strength: float
    evaluate: RuleFunction = field(compare=False, repr=False)

    def __call__(self, context: EnergyConstraintContext) -> EnergyConstraintResult:
        return self.evaluate(context)


def _check_same_type_progression(
    context: EnergyConstraintContext, *, min_increment: float
) -> EnergyConstraintResult:
    previous = context.previous_same_type_energy
    if previous is None:
        return EnergyConstraintResult.no_opinion()
    required = previous + min_increment
    if context.proposed_energy >= required:
        return EnergyConstraintResult.accept(
            f"{context.label}: energy {context.proposed_energy:.3f} >= previous "
            f"{previous:.3f}, no adjustment needed"
        )
    target = clamp_unit(required)
    return EnergyConstraintResult.adjust(
        target,
        f"{context.label}: raised {context.proposed_energy:.3f} -> {target:.3f} to keep "
        f"progression over previous {context.section_type.value.lower()} ({previous:.3f})",
    )


def _check_post_chorus_drop(
    context: EnergyConstraintContext,
    *,
    max_energy_after_chorus: float,
    typical_drop_amount: float,
) -> EnergyConstraintResult:
    if context.previous_section_type != SectionType.CHORUS:
        return EnergyConstraintResult.no_opinion()
    if context.section_type == SectionType.CHORUS:
        return EnergyConstraintResult.accept(
            f"{context.label}: previous section is also chorus, no drop required"
        )
    if context.proposed_energy <= max_energy_after_chorus:
        return EnergyConstraintResult.accept(
            f"{context.label}: energy {context.proposed_energy:.3f} already below max "
            f"{max_energy_after_chorus:.3f} after chorus"
        )
    target = max_energy_after_chorus
    if context.previous_any_section_energy is not None:
        target = min(target, context.previous_any_section_energy - typical_drop_amount)
    target = max(0.0, target)
    return EnergyConstraintResult.adjust(
        target,
        f"{context.label}: post-chorus drop {context.proposed_energy:.3f} -> {target:.3f}",
    )


def _check_final_chorus_peak(
    context: EnergyConstraintContext,
    *,
    min_peak_energy: float,
    peak_proximity_threshold: float,
) -> EnergyConstraintResult:
    if context.section_type != SectionType.CHORUS or not context.is_last_of_type:
        return EnergyConstraintResult.no_opinion()
    prior_peak = max(context.finalized_energies.values(), default=0.0)
    floor = clamp_unit(max(min_peak_energy, prior_peak * peak_proximity_threshold))
    if context.proposed_energy >= floor:
        return EnergyConstraintResult.accept(
            f"{context.label}: final chorus energy {context.proposed_energy:.3f} meets "
            f"peak floor {floor:.3f}"
        )
    return EnergyConstraintResult.adjust(
        floor,
        f"{context.label}: final chorus peak raised {context.proposed_energy:.3f} -> {floor:.3f}",
    )


def _check_bridge_contrast(
    context: EnergyConstraintContext, *, min_contrast_amount: float
) -> EnergyConstraintResult:
    if context.section_type != SectionType.BRIDGE:
        return EnergyConstraintResult.no_opinion()
    chorus_energy = context.previous_any_section_energy
    if context.previous_section_type != SectionType.CHORUS or chorus_energy is None:
        return EnergyConstraintResult.accept(
            f"{context.label}: no previous chorus to contrast with"
        )
    delta = context.proposed_energy - chorus_energy
    if abs(delta) >= min_contrast_amount:
        character = "climactic" if delta > 0 else "breakdown"
        return EnergyConstraintResult.accept(
            f"{context.label}: {character} bridge, contrast {abs(delta):.3f} with chorus"
        )
    above = chorus_energy + min_contrast_amount
    below = chorus_energy - min_contrast_amount
    if delta >= 0:
        target = above if above <= 1.0 else below
    else:
        target = below if below >= 0.0 else above
    target = clamp_unit(target)
    return EnergyConstraintResult.adjust(
        target,
        f"{context.label}: bridge contrast {context.proposed_energy:.3f} -> {target:.3f} "
        f"(chorus {chorus_energy:.3f})",
    )


def same_type_monotonic(strength: float = 1.0, min_increment: float = 0.0) -> ConstraintRule:
    return ConstraintRule(
        name="SameTypeMonotonic",
        strength=max(0.0, strength),
        evaluate=partial(_check_same_type_progression, min_increment=max(0.0, min_increment)),
    )


def post_chorus_drop(
    strength: float = 1.0,
    max_energy_after_chorus: float = 0.55,
    typical_drop_amount: float = 0.20,
) -> ConstraintRule:
    return ConstraintRule(
        name="PostChorusDrop",
        strength=max(0.0, strength),
        evaluate=partial(
            _check_post_chorus_drop,
            max_energy_after_chorus=clamp_unit(max_energy_after_chorus),
            typical_drop_amount=clamp_unit(typical_drop_amount),
        ),
    )


def final_chorus_peak(
    strength: float = 1.0,
    min_peak_energy: float = 0.80,
    peak_proximity_threshold: float = 0.95,
) -> ConstraintRule:
    return ConstraintRule(
        name="FinalChorusPeak",
        strength=max(0.0, strength),
        evaluate=partial(
            _check_final_chorus_peak,
            min_peak_energy=clamp_unit(min_peak_energy),
            peak_proximity_threshold=clamp_unit(peak_proximity_threshold),
        ),
    )


def bridge_contrast(strength: float = 1.0, min_contrast_amount: float = 0.15) -> ConstraintRule:
    return ConstraintRule(
        name="BridgeContrast",
        strength=max(0.0, strength),
        evaluate=partial(_check_bridge_contrast, min_contrast_amount=clamp_unit(min_contrast_amount)),
    )
