"""Named constraint policies and strength-weighted blending."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Tuple

from loguru import logger

from .arc_library import clamp_unit
from .constraints import (
    ConstraintRule,
    EnergyConstraintContext,
    bridge_contrast,
    final_chorus_peak,
    post_chorus_drop,
    same_type_monotonic,
)
from .exceptions import UnknownPolicyError

EMPTY_POLICY_NAME = "None"
DEFAULT_POLICY_NAME = "PopRock"


@dataclass(frozen=True)
class EnergyConstraintPolicy:
    name: str
    rules: Tuple[ConstraintRule, ...] = ()
    enabled: bool = True

    @property
    def is_active(self) -> bool:
        return self.enabled and bool(self.rules)

    def apply(self, context: EnergyConstraintContext) -> Tuple[float, List[str]]:
        """Resolve ``context.proposed_energy`` against every rule of the policy."""
        proposed = context.proposed_energy
        if not self.is_active:
            return proposed, []

        adjustments: List[Tuple[ConstraintRule, float]] = []
        diagnostics: List[str] = []
        for rule in self.rules:
            result = rule(context)
            if result.diagnostic:
                diagnostics.append(f"[{rule.name}] {result.diagnostic}")
            if result.adjusted_energy is not None:
                adjustments.append((rule, result.adjusted_energy))

        if not adjustments:
            return proposed, diagnostics

        if len(adjustments) == 1:
            rule, energy = adjustments[0]
            diagnostics.append(f"{rule.name}: {proposed:.3f} -> {energy:.3f}")
            return energy, diagnostics

        weighted_sum = 0.0
        total_strength = 0.0
        for rule, energy in adjustments:
            weighted_sum += energy * rule.strength
            total_strength += rule.strength
        if total_strength <= 0.0:
            diagnostics.append(
                f"{len(adjustments)} adjustments with zero total strength, keeping {proposed:.3f}"
            )
            return proposed, diagnostics

        resolved = clamp_unit(weighted_sum / total_strength)
        terms = " + ".join(f"{energy:.3f}*{rule.strength:.2f}" for rule, energy in adjustments)
        suggestions = ", ".join(f"{rule.name}={energy:.3f}" for rule, energy in adjustments)
        diagnostics.append(f"Blended {len(adjustments)} adjustments ({suggestions})")
        diagnostics.append(
            f"({terms}) / {total_strength:.2f} = {resolved:.3f} (from {proposed:.3f})"
        )
        logger.debug(
            "Blended {} constraint suggestions for {} into {:.3f}",
            len(adjustments),
            context.label,
            resolved,
        )
        return resolved, diagnostics


def _pop_rock_policy() -> EnergyConstraintPolicy:
    return EnergyConstraintPolicy(
        name="PopRock",
        rules=(
            same_type_monotonic(strength=1.0, min_increment=0.02),
            post_chorus_drop(strength=1.2, max_energy_after_chorus=0.55, typical_drop_amount=0.20),
            final_chorus_peak(strength=1.5, min_peak_energy=0.80, peak_proximity_threshold=0.95),
            bridge_contrast(strength=0.8, min_contrast_amount=0.15),
        ),
    )


def _rock_policy() -> EnergyConstraintPolicy:
    return EnergyConstraintPolicy(
        name="Rock",
        rules=(
            same_type_monotonic(strength=1.3, min_increment=0.05),
            post_chorus_drop(strength=0.8, max_energy_after_chorus=0.65, typical_drop_amount=0.15),
            final_chorus_peak(strength=1.8, min_peak_energy=0.85, peak_proximity_threshold=0.98),
            bridge_contrast(strength=0.7, min_contrast_amount=0.12),
        ),
    )


def _jazz_policy() -> EnergyConstraintPolicy:
    return EnergyConstraintPolicy(
        name="Jazz",
        rules=(
            same_type_monotonic(strength=0.3, min_increment=0.0),
            final_chorus_peak(strength=0.5, min_peak_energy=0.70, peak_proximity_threshold=0.85),
            bridge_contrast(strength=0.4, min_contrast_amount=0.10),
        ),
    )


def _edm_policy() -> EnergyConstraintPolicy:
    return EnergyConstraintPolicy(
        name="EDM",
        rules=(
            same_type_monotonic(strength=0.8, min_increment=0.03),
            final_chorus_peak(strength=2.0, min_peak_energy=0.90, peak_proximity_threshold=1.0),
            bridge_contrast(strength=0.9, min_contrast_amount=0.20),
        ),
    )


def _minimal_policy() -> EnergyConstraintPolicy:
    return EnergyConstraintPolicy(
        name="Minimal",
        rules=(final_chorus_peak(strength=1.0, min_peak_energy=0.75, peak_proximity_threshold=0.90),),
    )


def _empty_policy() -> EnergyConstraintPolicy:
    return EnergyConstraintPolicy(name=EMPTY_POLICY_NAME, rules=(), enabled=False)


_POLICIES: Dict[str, EnergyConstraintPolicy] = {
    policy.name: policy
    for policy in (
        _pop_rock_policy(),
        _rock_policy(),
        _jazz_policy(),
        _edm_policy(),
        _minimal_policy(),
        _empty_policy(),
    )
}

_FOLDED_NAMES = {name.casefold(): name for name in _POLICIES}


def canonical_policy_name(name: str) -> str:
    try:
        return _FOLDED_NAMES[name.strip().casefold()]
    except KeyError as exc:
        raise UnknownPolicyError(name) from exc


def get_policy(name: str) -> EnergyConstraintPolicy:
    return _POLICIES[canonical_policy_name(name)]


def all_policies() -> Dict[str, EnergyConstraintPolicy]:
    return dict(_POLICIES)


def default_policy() -> EnergyConstraintPolicy:
    return _POLICIES[DEFAULT_POLICY_NAME]


def empty_policy() -> EnergyConstraintPolicy:
    return _POLICIES[EMPTY_POLICY_NAME]


def policy_for_style(style_name: str) -> EnergyConstraintPolicy:
    folded = (style_name or "").casefold()
    if any(keyword in folded for keyword in ("jazz", "bossa", "latin")):
        return _POLICIES["Jazz"]
    if any(keyword in folded for keyword in ("edm", "house", "techno")):
        return _POLICIES["EDM"]
    if any(keyword in folded for keyword in ("rock", "punk", "metal")):
        return _POLICIES["Rock"]
    return default_policy()
