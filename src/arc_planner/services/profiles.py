"""Energy-derived role profiles and orchestration hints for each section."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from ..app.models import Section, SectionType, type_local_index
from .arc_library import EnergySectionTarget, clamp_unit
from .energy_arc import EnergyArc
from .phrasing import SectionEnergyMicroArc
from .random_source import derive_section_seed


class CymbalLanguage(str, Enum):
    MINIMAL = "Minimal"
    STANDARD = "Standard"
    INTENSE = "Intense"


@dataclass(frozen=True)
class EnergyRoleProfile:
    density_multiplier: float = 1.0
    velocity_bias: int = 0
    register_lift_semitones: int = 0
    busy_probability: float = 0.5


@dataclass(frozen=True)
class RoleRange:
    density: tuple[float, float]
    velocity: tuple[int, int]
    register: tuple[int, int]
    busy: tuple[float, float]

    def profile_for(self, energy: float) -> EnergyRoleProfile:
        return EnergyRoleProfile(
            density_multiplier=_lerp(self.density, energy),
            velocity_bias=int(round(_lerp(self.velocity, energy))),
            register_lift_semitones=int(round(_lerp(self.register, energy))),
            busy_probability=_lerp(self.busy, energy),
        )


def _lerp(bounds: tuple[float, float], energy: float) -> float:
    low, high = bounds
    return low + energy * (high - low)


ROLE_RANGES = {
    "bass": RoleRange(density=(0.8, 1.3), velocity=(-15, 15), register=(0, 0), busy=(0.2, 0.7)),
    "comp": RoleRange(density=(0.6, 1.5), velocity=(-20, 20), register=(0, 12), busy=(0.3, 0.8)),
    "keys": RoleRange(density=(0.5, 1.6), velocity=(-20, 20), register=(-12, 24), busy=(0.2, 0.7)),
    "pads": RoleRange(density=(0.7, 1.4), velocity=(-15, 15), register=(0, 12), busy=(0.1, 0.5)),
    "drums": RoleRange(density=(0.7, 1.6), velocity=(-15, 20), register=(0, 0), busy=(0.2, 0.9)),
}

_TENSION_TARGET_FACTOR = {
    SectionType.VERSE: 1.0,
    SectionType.CHORUS: 0.8,
    SectionType.BRIDGE: 1.3,
    SectionType.INTRO: 0.7,
    SectionType.OUTRO: 0.5,
}


@dataclass(frozen=True)
class EnergyRoleProfiles:
    bass: EnergyRoleProfile
    comp: EnergyRoleProfile
    keys: EnergyRoleProfile
    pads: EnergyRoleProfile
    drums: EnergyRoleProfile

    def for_role(self, role: str) -> EnergyRoleProfile:
        return getattr(self, role.lower())


@dataclass(frozen=True)
class EnergyGlobalTargets:
    energy: float
    tension_target: float
    contrast_bias: float


@dataclass(frozen=True)
class EnergyOrchestrationProfile:
    bass_present: bool = True
    comp_present: bool = True
    keys_present: bool = True
    pads_present: bool = True
    drums_present: bool = True
    cymbal_language: CymbalLanguage = CymbalLanguage.STANDARD
    crash_on_section_start: bool = False
    prefer_ride_over_hat: bool = False


@dataclass(frozen=True)
class EnergySectionProfile:
    global_targets: EnergyGlobalTargets
    roles: EnergyRoleProfiles
    orchestration: EnergyOrchestrationProfile
    section: Section
    type_local_index: int
    target: EnergySectionTarget
    micro_arc: Optional[SectionEnergyMicroArc] = None

    @property
    def energy(self) -> float:
        return self.global_targets.energy


class EnergyProfileBuilder:
    """Maps a section's resolved energy onto per-role parameters."""

    @staticmethod
    def build_profile(
        arc: EnergyArc,
        section: Section,
        type_local_index: int,
        previous_profile: Optional[EnergySectionProfile] = None,
        micro_arc_seed: Optional[int] = None,
    ) -> EnergySectionProfile:
        target = arc.target_for_section(section, type_local_index)
        energy = clamp_unit(target.energy)
        contrast = (
            clamp_unit(abs(energy - previous_profile.energy)) if previous_profile is not None else 0.0
        )
        global_targets = EnergyGlobalTargets(
            energy=energy,
            tension_target=clamp_unit(
                energy * 0.5 * _TENSION_TARGET_FACTOR.get(section.section_type, 1.0)
            ),
            contrast_bias=contrast,
        )
        roles = EnergyRoleProfiles(
            **{role: role_range.profile_for(energy) for role, role_range in ROLE_RANGES.items()}
        )
        micro_arc = None
        if micro_arc_seed is not None:
            micro_arc = SectionEnergyMicroArc.build(section.bar_count, energy, seed=micro_arc_seed)
        return EnergySectionProfile(
            global_targets=global_targets,
            roles=roles,
            orchestration=build_orchestration(energy, section.section_type, type_local_index),
            section=section,
            type_local_index=type_local_index,
            target=target,
            micro_arc=micro_arc,
        )

    @classmethod
    def build_profiles(cls, arc: EnergyArc, seed: int) -> List[EnergySectionProfile]:
        profiles: List[EnergySectionProfile] = []
        previous: Optional[EnergySectionProfile] = None
        for index, section in enumerate(arc.sections):
            profile = cls.build_profile(
                arc,
                section,
                type_local_index(arc.sections, index),
                previous_profile=previous,
                micro_arc_seed=derive_section_seed(seed, index),
            )
            profiles.append(profile)
            previous = profile
        return profiles


def build_orchestration(
    energy: float, section_type: SectionType, type_local_index: int
) -> EnergyOrchestrationProfile:
    keys_present = True
    pads_present = True
    if section_type == SectionType.INTRO:
        pads_present = energy > 0.3
        keys_present = energy > 0.2
    elif section_type == SectionType.VERSE and type_local_index == 0:
        pads_present = energy > 0.4
        keys_present = energy > 0.3
    elif section_type == SectionType.OUTRO:
        pads_present = energy > 0.3

    if energy < 0.4:
        cymbals = CymbalLanguage.MINIMAL
    elif energy < 0.7:
        cymbals = CymbalLanguage.STANDARD
    else:
        cymbals = CymbalLanguage.INTENSE

    return EnergyOrchestrationProfile(
        keys_present=keys_present,
        pads_present=pads_present,
        cymbal_language=cymbals,
        crash_on_section_start=section_type == SectionType.CHORUS and energy > 0.6,
        prefer_ride_over_hat=energy > 0.7,
    )
