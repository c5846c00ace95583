"""Single read surface combining energy, tension and variation per section and bar."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional, Sequence, Tuple

from ..app.models import SectionType
from .arc_library import clamp_unit
from .exceptions import SectionIndexError
from .phrasing import PhrasePosition
from .profiles import CymbalLanguage, EnergyOrchestrationProfile, EnergySectionProfile
from .tension import DeterministicTensionQuery, SectionTransitionHint, TensionDriver
from .variation import VariationQuery

LOW_DENSITY_ENERGY = 0.3
HIGH_DENSITY_ENERGY = 0.7


@dataclass(frozen=True)
class RolePresenceHints:
    bass_present: bool
    comp_present: bool
    keys_present: bool
    pads_present: bool
    drums_present: bool
    cymbal_language: CymbalLanguage
    crash_on_section_start: bool
    prefer_ride_over_hat: bool

    @classmethod
    def from_orchestration(cls, orchestration: EnergyOrchestrationProfile) -> "RolePresenceHints":
        return cls(
            bass_present=orchestration.bass_present,
            comp_present=orchestration.comp_present,
            keys_present=orchestration.keys_present,
            pads_present=orchestration.pads_present,
            drums_present=orchestration.drums_present,
            cymbal_language=orchestration.cymbal_language,
            crash_on_section_start=orchestration.crash_on_section_start,
            prefer_ride_over_hat=orchestration.prefer_ride_over_hat,
        )


@dataclass(frozen=True)
class RegisterConstraints:
    lead_space_ceiling: int = 72
    bass_floor: int = 52
    vocal_band: Tuple[int, int] = (60, 76)


@dataclass(frozen=True)
class RoleDensityCaps:
    bass: float
    comp: float
    keys: float
    pads: float
    drums: float

    @classmethod
    def default(cls) -> "RoleDensityCaps":
        return cls(bass=0.85, comp=0.90, keys=0.85, pads=0.80, drums=0.90)

    @classmethod
    def high(cls) -> "RoleDensityCaps":
        return cls(bass=1.0, comp=1.0, keys=1.0, pads=0.95, drums=1.0)

    @classmethod
    def low(cls) -> "RoleDensityCaps":
        return cls(bass=0.60, comp=0.65, keys=0.60, pads=0.50, drums=0.70)

    @classmethod
    def for_energy(cls, energy: float) -> "RoleDensityCaps":
        if energy < LOW_DENSITY_ENERGY:
            return cls.low()
        if energy > HIGH_DENSITY_ENERGY:
            return cls.high()
        return cls.default()


@dataclass(frozen=True)
class SectionIntentContext:
    absolute_section_index: int
    section_type: SectionType
    energy: float
    tension: float
    tension_drivers: TensionDriver
    transition_hint: SectionTransitionHint
    variation_intensity: float
    base_reference_section_index: Optional[int]
    variation_tags: FrozenSet[str]
    role_presence: RolePresenceHints
    register_constraints: RegisterConstraints
    density_caps: RoleDensityCaps


@dataclass(frozen=True)
class BarIntentContext:
    section: SectionIntentContext
    bar_index: int
    micro_tension: float
    energy_delta: float
    phrase_offset: float
    phrase_position: PhrasePosition
    is_phrase_end: bool
    is_section_start: bool
    is_section_end: bool

    @property
    def effective_energy(self) -> float:
        return clamp_unit(self.section.energy + self.energy_delta + self.phrase_offset)


class SongIntentQuery:
    def __init__(
        self,
        profiles: Sequence[EnergySectionProfile],
        tension_query: DeterministicTensionQuery,
        variation_query: VariationQuery,
    ) -> None:
        self._profiles = tuple(profiles)
        self._tension = tension_query
        self._variation = variation_query
        self._section_count = min(
            len(self._profiles), tension_query.section_count, variation_query.section_count
        )
        self._contexts: Dict[int, SectionIntentContext] = {
            index: self._build_section_context(index) for index in range(self._section_count)
        }

    @property
    def section_count(self) -> int:
        return self._section_count

    def has_intent_data(self, absolute_section_index: int) -> bool:
        return absolute_section_index in self._contexts

    def section_intent(self, absolute_section_index: int) -> SectionIntentContext:
        try:
            return self._contexts[absolute_section_index]
        except KeyError as exc:
            raise SectionIndexError(
                f"section index {absolute_section_index} out of range [0..{self._section_count - 1}]"
            ) from exc

    def bar_intent(self, absolute_section_index: int, bar_index: int) -> BarIntentContext:
        section_context = self.section_intent(absolute_section_index)
        profile = self._profiles[absolute_section_index]
        is_phrase_end, is_section_start, is_section_end = self._tension.phrase_flags(
            absolute_section_index, bar_index
        )
        micro_arc = profile.micro_arc
        position = micro_arc.phrase_position(bar_index) if micro_arc else PhrasePosition.MIDDLE
        offsets = profile.target.phrase_offsets
        return BarIntentContext(
            section=section_context,
            bar_index=bar_index,
            micro_tension=self._tension.micro_tension(absolute_section_index, bar_index),
            energy_delta=micro_arc.energy_delta(bar_index) if micro_arc else 0.0,
            phrase_offset=offsets.offset_for(position.value) if offsets else 0.0,
            phrase_position=position,
            is_phrase_end=is_phrase_end,
            is_section_start=is_section_start,
            is_section_end=is_section_end,
        )

    def _build_section_context(self, index: int) -> SectionIntentContext:
        profile = self._profiles[index]
        tension = self._tension.macro_tension(index)
        plan = self._variation.variation_plan(index)
        return SectionIntentContext(
            absolute_section_index=index,
            section_type=profile.section.section_type,
            energy=profile.energy,
            tension=tension.macro_tension,
            tension_drivers=tension.driver,
            transition_hint=self._tension.transition_hint(index),
            variation_intensity=plan.variation_intensity,
            base_reference_section_index=plan.base_reference_section_index,
            variation_tags=plan.tags,
            role_presence=RolePresenceHints.from_orchestration(profile.orchestration),
            register_constraints=RegisterConstraints(),
            density_caps=RoleDensityCaps.for_energy(profile.energy),
        )
