"""Phrase segmentation plus per-bar tension and energy micro-arcs.

Both micro structures segment a section with :func:`infer_phrase_length` so
their phrase boundaries always line up bar for bar.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from .arc_library import clamp_unit
from .exceptions import SectionIndexError
from .random_source import SeededRandomSource

DEFAULT_PHRASE_LENGTH = 4
SHORT_SECTION_PHRASE_LENGTH = 2
PEAK_POSITION_THRESHOLD = 0.65
MAX_ENERGY_DELTA = 0.10
TENSION_JITTER = 0.02
ENERGY_JITTER = 0.01


class PhrasePosition(str, Enum):
    START = "Start"
    MIDDLE = "Middle"
    PEAK = "Peak"
    CADENCE = "Cadence"


_POSITION_SCALE = {
    PhrasePosition.START: 0.0,
    PhrasePosition.MIDDLE: 0.3,
    PhrasePosition.PEAK: 1.0,
    PhrasePosition.CADENCE: -0.5,
}


def infer_phrase_length(bar_count: int, phrase_length: Optional[int] = None) -> int:
    if phrase_length is not None and phrase_length > 0:
        return phrase_length
    if bar_count == 4:
        return SHORT_SECTION_PHRASE_LENGTH
    return DEFAULT_PHRASE_LENGTH


def is_phrase_end(bar_index: int, bar_count: int, phrase_length: int) -> bool:
    return (bar_index + 1) % phrase_length == 0 or bar_index == bar_count - 1


def phrase_progress(bar_index: int, phrase_length: int) -> float:
    """Position inside the phrase, 0.0 on its first bar and 1.0 on its last."""
    return (bar_index % phrase_length) / max(1, phrase_length - 1)


def _phrase_flags(bar_count: int, phrase_length: int) -> Tuple[Tuple[bool, ...], Tuple[bool, ...], Tuple[bool, ...]]:
    phrase_ends = tuple(is_phrase_end(bar, bar_count, phrase_length) for bar in range(bar_count))
    starts = tuple(bar == 0 for bar in range(bar_count))
    ends = tuple(bar == bar_count - 1 for bar in range(bar_count))
    return phrase_ends, starts, ends


def _require_bars(bar_count: int) -> None:
    if bar_count < 1:
        raise ValueError(f"bar_count must be at least 1, got {bar_count}")


@dataclass(frozen=True)
class MicroTensionMap:
    tension_by_bar: Tuple[float, ...]
    is_phrase_end: Tuple[bool, ...]
    is_section_start: Tuple[bool, ...]
    is_section_end: Tuple[bool, ...]
    phrase_length: int

    @property
    def bar_count(self) -> int:
        return len(self.tension_by_bar)

    @classmethod
    def flat(cls, bar_count: int, tension: float) -> "MicroTensionMap":
        _require_bars(bar_count)
        phrase_length = infer_phrase_length(bar_count)
        phrase_ends, starts, ends = _phrase_flags(bar_count, phrase_length)
        value = clamp_unit(tension)
        return cls(
            tension_by_bar=tuple(value for _ in range(bar_count)),
            is_phrase_end=phrase_ends,
            is_section_start=starts,
            is_section_end=ends,
            phrase_length=phrase_length,
        )

    @classmethod
    def with_simple_phrases(
        cls, bar_count: int, base_tension: float, phrase_length: int = DEFAULT_PHRASE_LENGTH
    ) -> "MicroTensionMap":
        """Linear rise from ``base_tension`` to ``base_tension * 1.5`` across each phrase."""
        _require_bars(bar_count)
        phrase_length = infer_phrase_length(bar_count, phrase_length)
        base = clamp_unit(base_tension)
        tension = tuple(
            clamp_unit(base * (1.0 + 0.5 * phrase_progress(bar, phrase_length)))
            for bar in range(bar_count)
        )
        phrase_ends, starts, ends = _phrase_flags(bar_count, phrase_length)
        return cls(tension, phrase_ends, starts, ends, phrase_length)

    @classmethod
    def build(
        cls,
        bar_count: int,
        macro_tension: float,
        micro_default: float,
        phrase_length: Optional[int] = None,
        seed: int = 0,
    ) -> "MicroTensionMap":
        _require_bars(bar_count)
        macro = clamp_unit(macro_tension)
        micro = clamp_unit(micro_default)
        phrase_length = infer_phrase_length(bar_count, phrase_length)
        base = clamp_unit(0.6 * macro + 0.4 * micro)
        ramp = 0.15 * (0.5 + 0.5 * macro)
        rng = SeededRandomSource(seed) if seed != 0 else None

        tension: List[float] = []
        for bar in range(bar_count):
            value = base + ramp * phrase_progress(bar, phrase_length)
            if rng is not None:
                value += (rng.next_double() - 0.5) * TENSION_JITTER
            tension.append(clamp_unit(value))

        phrase_ends, starts, ends = _phrase_flags(bar_count, phrase_length)
        return cls(tuple(tension), phrase_ends, starts, ends, phrase_length)

    def _check_bar(self, bar_index: int) -> None:
        if bar_index < 0 or bar_index >= self.bar_count:
            raise SectionIndexError(f"bar index {bar_index} out of range [0..{self.bar_count - 1}]")

    def tension(self, bar_index: int) -> float:
        self._check_bar(bar_index)
        return self.tension_by_bar[bar_index]

    def flags(self, bar_index: int) -> Tuple[bool, bool, bool]:
        """``(is_phrase_end, is_section_start, is_section_end)`` for one bar."""
        self._check_bar(bar_index)
        return (
            self.is_phrase_end[bar_index],
            self.is_section_start[bar_index],
            self.is_section_end[bar_index],
        )


def classify_phrase_position(bar_index: int, bar_count: int, phrase_length: int) -> PhrasePosition:
    if bar_index % phrase_length == 0:
        return PhrasePosition.START
    if is_phrase_end(bar_index, bar_count, phrase_length):
        return PhrasePosition.CADENCE
    if phrase_progress(bar_index, phrase_length) >= PEAK_POSITION_THRESHOLD:
        return PhrasePosition.PEAK
    return PhrasePosition.MIDDLE


@dataclass(frozen=True)
class SectionEnergyMicroArc:
    energy_delta_by_bar: Tuple[float, ...]
    phrase_position_by_bar: Tuple[PhrasePosition, ...]
    phrase_length: int

    @property
    def bar_count(self) -> int:
        return len(self.energy_delta_by_bar)

    @classmethod
    def build(
        cls,
        bar_count: int,
        section_energy: float,
        phrase_length: Optional[int] = None,
        seed: int = 0,
    ) -> "SectionEnergyMicroArc":
        _require_bars(bar_count)
        phrase_length = infer_phrase_length(bar_count, phrase_length)
        scale = 0.03 + clamp_unit(section_energy) * 0.07
        rng = SeededRandomSource(seed) if seed != 0 else None

        deltas: List[float] = []
        positions: List[PhrasePosition] = []
        for bar in range(bar_count):
            position = classify_phrase_position(bar, bar_count, phrase_length)
            delta = _POSITION_SCALE[position] * scale
            if rng is not None:
                delta += (rng.next_double() - 0.5) * ENERGY_JITTER
            deltas.append(max(-MAX_ENERGY_DELTA, min(MAX_ENERGY_DELTA, delta)))
            positions.append(position)
        return cls(tuple(deltas), tuple(positions), phrase_length)

    @classmethod
    def flat(cls, bar_count: int) -> "SectionEnergyMicroArc":
        _require_bars(bar_count)
        return cls(
            energy_delta_by_bar=tuple(0.0 for _ in range(bar_count)),
            phrase_position_by_bar=tuple(PhrasePosition.MIDDLE for _ in range(bar_count)),
            phrase_length=infer_phrase_length(bar_count),
        )

    def energy_delta(self, bar_index: int) -> float:
        if 0 <= bar_index < self.bar_count:
            return self.energy_delta_by_bar[bar_index]
        return 0.0

    def phrase_position(self, bar_index: int) -> PhrasePosition:
        if 0 <= bar_index < self.bar_count:
            return self.phrase_position_by_bar[bar_index]
        return PhrasePosition.MIDDLE
