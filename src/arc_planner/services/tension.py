"""Macro/micro tension derivation and section transition classification."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum, Flag, auto
from typing import List, Optional, Tuple

from loguru import logger

from ..app.models import SectionType
from .arc_library import clamp_unit
from .energy_arc import EnergyArc
from .exceptions import SectionIndexError
from .phrasing import MicroTensionMap
from .random_source import SeededRandomSource, derive_section_seed

TENSION_JITTER = 0.03
ANTICIPATION_THRESHOLD = 0.10
ANTICIPATION_CAP = 0.15
ANTICIPATION_FACTOR = 0.7
PRE_CHORUS_BUMP = 0.10
BUILDING_CHORUS_MARGIN = 0.05

_TYPE_BIAS = {
    SectionType.INTRO: 0.05,
    SectionType.VERSE: -0.05,
    SectionType.BRIDGE: 0.12,
    SectionType.SOLO: 0.07,
    SectionType.OUTRO: -0.15,
}
CHORUS_RELEASE_BIAS = -0.08
CHORUS_BUILD_BIAS = 0.03


class TensionDriver(Flag):
    NONE = 0
    OPENING = auto()
    PRE_CHORUS_BUILD = auto()
    ANTICIPATION = auto()
    PEAK = auto()
    RESOLUTION = auto()
    BRIDGE_CONTRAST = auto()
    BREAKDOWN = auto()

    def names(self) -> List[str]:
        return [member.name for member in TensionDriver if member.value and member in self]


_TYPE_DRIVER = {
    SectionType.INTRO: TensionDriver.OPENING,
    SectionType.BRIDGE: TensionDriver.BRIDGE_CONTRAST,
    SectionType.SOLO: TensionDriver.PEAK,
    SectionType.OUTRO: TensionDriver.RESOLUTION,
}


class SectionTransitionHint(str, Enum):
    NONE = "None"
    BUILD = "Build"
    RELEASE = "Release"
    SUSTAIN = "Sustain"
    DROP = "Drop"


@dataclass(frozen=True)
class SectionTensionProfile:
    macro_tension: float
    micro_tension_default: float
    driver: TensionDriver
    absolute_section_index: int

    @classmethod
    def with_macro_tension(
        cls,
        macro_tension: float,
        absolute_section_index: int,
        driver: TensionDriver = TensionDriver.NONE,
    ) -> "SectionTensionProfile":
        macro = clamp_unit(macro_tension)
        return cls(
            macro_tension=macro,
            micro_tension_default=macro / 2.0,
            driver=driver,
            absolute_section_index=absolute_section_index,
        )

    @classmethod
    def neutral(cls, absolute_section_index: int) -> "SectionTensionProfile":
        return cls.with_macro_tension(0.0, absolute_section_index)

    def with_micro_default(self, micro_tension: float) -> "SectionTensionProfile":
        return replace(self, micro_tension_default=clamp_unit(micro_tension))


@dataclass(frozen=True)
class TensionContext:
    absolute_section_index: int
    bar_index: int
    macro_tension: float
    micro_tension: float
    driver: TensionDriver
    transition_hint: SectionTransitionHint
    is_phrase_end: bool
    is_section_start: bool
    is_section_end: bool


def classify_transition(energy_delta: float, tension_delta: float) -> SectionTransitionHint:
    if energy_delta > 0.08 and tension_delta > 0.05:
        return SectionTransitionHint.BUILD
    if energy_delta < -0.12 or tension_delta < -0.15:
        return SectionTransitionHint.DROP
    if tension_delta < -0.08:
        return SectionTransitionHint.RELEASE
    if abs(energy_delta) < 0.08 and abs(tension_delta) < 0.08:
        return SectionTransitionHint.SUSTAIN
    if energy_delta > 0:
        return SectionTransitionHint.BUILD
    return SectionTransitionHint.SUSTAIN


class DeterministicTensionQuery:
    """Tension profiles, micro maps and transition hints derived from a resolved arc."""

    def __init__(self, arc: EnergyArc, seed: int) -> None:
        self._arc = arc
        self._seed = seed
        self._profiles: Tuple[SectionTensionProfile, ...] = ()
        self._micro_maps: Tuple[MicroTensionMap, ...] = ()
        self._hints: Tuple[SectionTransitionHint, ...] = ()
        self._compute()

    @property
    def section_count(self) -> int:
        return len(self._profiles)

    @property
    def seed(self) -> int:
        return self._seed

    def has_tension_data(self, absolute_section_index: int) -> bool:
        return 0 <= absolute_section_index < self.section_count

    def macro_tension(self, absolute_section_index: int) -> SectionTensionProfile:
        self._validate_section_index(absolute_section_index)
        return self._profiles[absolute_section_index]

    def micro_tension(self, absolute_section_index: int, bar_index: int) -> float:
        return self.micro_tension_map(absolute_section_index).tension(bar_index)

    def micro_tension_map(self, absolute_section_index: int) -> MicroTensionMap:
        self._validate_section_index(absolute_section_index)
        return self._micro_maps[absolute_section_index]

    def phrase_flags(self, absolute_section_index: int, bar_index: int) -> Tuple[bool, bool, bool]:
        """``(is_phrase_end, is_section_start, is_section_end)``."""
        return self.micro_tension_map(absolute_section_index).flags(bar_index)

    def transition_hint(self, absolute_section_index: int) -> SectionTransitionHint:
        self._validate_section_index(absolute_section_index)
        return self._hints[absolute_section_index]

    def tension_context(self, absolute_section_index: int, bar_index: int) -> TensionContext:
        profile = self.macro_tension(absolute_section_index)
        micro_map = self._micro_maps[absolute_section_index]
        is_phrase_end, is_section_start, is_section_end = micro_map.flags(bar_index)
        return TensionContext(
            absolute_section_index=absolute_section_index,
            bar_index=bar_index,
            macro_tension=profile.macro_tension,
            micro_tension=micro_map.tension(bar_index),
            driver=profile.driver,
            transition_hint=self._hints[absolute_section_index],
            is_phrase_end=is_phrase_end,
            is_section_start=is_section_start,
            is_section_end=is_section_end,
        )

    def _validate_section_index(self, absolute_section_index: int) -> None:
        if not self.has_tension_data(absolute_section_index):
            raise SectionIndexError(
                f"section index {absolute_section_index} out of range [0..{self.section_count - 1}]"
            )

    def _compute(self) -> None:
        sections = self._arc.sections
        energies = [clamp_unit(energy) for energy in self._arc.energies]
        rng = SeededRandomSource(self._seed)

        profiles: List[SectionTensionProfile] = []
        micro_maps: List[MicroTensionMap] = []
        previous_chorus_energy: Optional[float] = None
        for index, section in enumerate(sections):
            energy = energies[index]
            tension = energy + _TYPE_BIAS.get(section.section_type, 0.0)
            driver = _TYPE_DRIVER.get(section.section_type, TensionDriver.NONE)

            if section.section_type == SectionType.CHORUS:
                if (
                    previous_chorus_energy is not None
                    and energy > previous_chorus_energy + BUILDING_CHORUS_MARGIN
                ):
                    tension += CHORUS_BUILD_BIAS
                    driver |= TensionDriver.PEAK
                else:
                    tension += CHORUS_RELEASE_BIAS
                    driver |= TensionDriver.RESOLUTION
                previous_chorus_energy = energy

            if index + 1 < len(sections):
                rise = energies[index + 1] - energy
                if rise > ANTICIPATION_THRESHOLD:
                    tension += min(ANTICIPATION_CAP, rise * ANTICIPATION_FACTOR)
                    driver |= TensionDriver.ANTICIPATION

            if (
                section.section_type == SectionType.CHORUS
                and index > 0
                and sections[index - 1].section_type == SectionType.VERSE
            ):
                tension += PRE_CHORUS_BUMP
                driver |= TensionDriver.PRE_CHORUS_BUILD | TensionDriver.ANTICIPATION

            tension += (rng.next_double() - 0.5) * TENSION_JITTER

            profile = SectionTensionProfile.with_macro_tension(tension, index, driver)
            profiles.append(profile)
            micro_maps.append(
                MicroTensionMap.build(
                    max(1, section.bar_count),
                    profile.macro_tension,
                    profile.micro_tension_default,
                    None,
                    derive_section_seed(self._seed, index),
                )
            )

        hints: List[SectionTransitionHint] = []
        for index, profile in enumerate(profiles):
            if index + 1 >= len(profiles):
                hints.append(SectionTransitionHint.NONE)
                continue
            hints.append(
                classify_transition(
                    energies[index + 1] - energies[index],
                    profiles[index + 1].macro_tension - profile.macro_tension,
                )
            )

        self._profiles = tuple(profiles)
        self._micro_maps = tuple(micro_maps)
        self._hints = tuple(hints)
        logger.debug(
            "Derived tension for {} sections (seed {}): {}",
            len(profiles),
            self._seed,
            ", ".join(f"{profile.macro_tension:.2f}" for profile in profiles),
        )
