"""Apply variation deltas on top of energy-derived role profiles.

Output guardrails are wider than the delta factory ranges so that deltas from
several sources can be composed before the final clamp.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from .profiles import EnergyRoleProfile, EnergyRoleProfiles
from .variation import RoleVariationDelta, VariationRoleDeltas

MIN_DENSITY_MULTIPLIER = 0.5
MAX_DENSITY_MULTIPLIER = 2.0
MAX_VELOCITY_BIAS = 127
MAX_REGISTER_LIFT = 48


@dataclass(frozen=True)
class DrumRoleParameters:
    density_multiplier: float
    velocity_bias: int
    busy_probability: float
    fill_probability: float
    fill_complexity_multiplier: float = 1.0

    @classmethod
    def from_profile(cls, profile: EnergyRoleProfile, energy: float) -> "DrumRoleParameters":
        return cls(
            density_multiplier=profile.density_multiplier,
            velocity_bias=profile.velocity_bias,
            busy_probability=profile.busy_probability,
            fill_probability=0.1 + 0.3 * max(0.0, min(1.0, energy)),
            fill_complexity_multiplier=0.8 + 0.4 * max(0.0, min(1.0, energy)),
        )


def _density(base: float, delta: Optional[float]) -> float:
    if delta is None:
        return base
    return max(MIN_DENSITY_MULTIPLIER, min(MAX_DENSITY_MULTIPLIER, base * delta))


def _velocity(base: int, delta: Optional[int]) -> int:
    if delta is None:
        return base
    return max(-MAX_VELOCITY_BIAS, min(MAX_VELOCITY_BIAS, base + delta))


def _register(base: int, delta: Optional[int]) -> int:
    if delta is None:
        return base
    return max(-MAX_REGISTER_LIFT, min(MAX_REGISTER_LIFT, base + delta))


def _busy(base: float, delta: Optional[float]) -> float:
    if delta is None:
        return base
    return max(0.0, min(1.0, base + delta))


def apply_variation(
    base_profile: EnergyRoleProfile, delta: Optional[RoleVariationDelta]
) -> EnergyRoleProfile:
    if delta is None:
        return base_profile
    return EnergyRoleProfile(
        density_multiplier=_density(base_profile.density_multiplier, delta.density_multiplier),
        velocity_bias=_velocity(base_profile.velocity_bias, delta.velocity_bias),
        register_lift_semitones=_register(
            base_profile.register_lift_semitones, delta.register_lift_semitones
        ),
        busy_probability=_busy(base_profile.busy_probability, delta.busy_probability),
    )


def apply_variation_to_drums(
    base: DrumRoleParameters, delta: Optional[RoleVariationDelta]
) -> DrumRoleParameters:
    if delta is None:
        return base
    return DrumRoleParameters(
        density_multiplier=_density(base.density_multiplier, delta.density_multiplier),
        velocity_bias=_velocity(base.velocity_bias, delta.velocity_bias),
        busy_probability=_busy(base.busy_probability, delta.busy_probability),
        fill_probability=base.fill_probability,
        fill_complexity_multiplier=base.fill_complexity_multiplier,
    )


def apply_role_deltas(roles: EnergyRoleProfiles, deltas: VariationRoleDeltas) -> EnergyRoleProfiles:
    return EnergyRoleProfiles(
        bass=apply_variation(roles.bass, deltas.bass),
        comp=apply_variation(roles.comp, deltas.comp),
        keys=apply_variation(roles.keys, deltas.keys),
        pads=apply_variation(roles.pads, deltas.pads),
        drums=apply_variation(roles.drums, deltas.drums),
    )


def variation_diagnostic(
    role_name: str, base_profile: EnergyRoleProfile, delta: Optional[RoleVariationDelta]
) -> Optional[str]:
    """One-line ``Role: Density a->b, Vel +x->+y`` summary, or ``None`` when nothing changes."""
    if delta is None:
        return None
    parts: List[str] = []
    if delta.density_multiplier is not None:
        final = _density(base_profile.density_multiplier, delta.density_multiplier)
        parts.append(f"Density {base_profile.density_multiplier:.2f}->{final:.2f}")
    if delta.velocity_bias is not None:
        final_velocity = _velocity(base_profile.velocity_bias, delta.velocity_bias)
        parts.append(f"Vel {base_profile.velocity_bias:+d}->{final_velocity:+d}")
    if delta.register_lift_semitones is not None:
        final_register = _register(base_profile.register_lift_semitones, delta.register_lift_semitones)
        parts.append(f"Reg {base_profile.register_lift_semitones:+d}->{final_register:+d}")
    if delta.busy_probability is not None:
        final = _busy(base_profile.busy_probability, delta.busy_probability)
        parts.append(f"Busy {base_profile.busy_probability:.2f}->{final:.2f}")
    if not parts:
        return None
    return f"{role_name}: {', '.join(parts)}"
