"""Small bounded bias terms derived from tension for downstream role generators.

The hooks are read-only outputs: nothing in the planning stages consumes them.
"""

from __future__ import annotations

from dataclasses import dataclass

from .arc_library import clamp_unit
from .tension import DeterministicTensionQuery, SectionTransitionHint

PULL_LIMIT = 0.20
IMPACT_LIMIT = 0.15
VELOCITY_LIMIT = 12
THINNING_LIMIT = 0.25
VARIATION_LIMIT = 0.20


def _bounded(value: float, limit: float) -> float:
    return max(-limit, min(limit, value))


@dataclass(frozen=True)
class TensionHooks:
    pull_probability_bias: float = 0.0
    impact_probability_bias: float = 0.0
    velocity_accent_bias: int = 0
    density_thinning_bias: float = 0.0
    variation_intensity_bias: float = 0.0

    @classmethod
    def neutral(cls) -> "TensionHooks":
        return cls()

    @classmethod
    def build(
        cls,
        macro_tension: float,
        micro_tension: float,
        is_phrase_end: bool,
        is_section_start: bool,
        transition_hint: SectionTransitionHint,
        section_energy: float,
        micro_ramp_intensity: float = 1.0,
    ) -> "TensionHooks":
        macro = clamp_unit(macro_tension)
        micro = clamp_unit(micro_tension)
        weight = clamp_unit(micro_ramp_intensity)
        energy = clamp_unit(section_energy)
        blended = (macro + micro * weight) / (1.0 + weight)
        centered = blended - 0.5

        pull = centered * 0.25
        if is_phrase_end:
            pull += 0.08
        if transition_hint == SectionTransitionHint.BUILD:
            pull += 0.05

        impact = centered * 0.2
        if is_section_start:
            impact += 0.06
        if transition_hint == SectionTransitionHint.DROP:
            impact += 0.04

        accent = centered * 16.0
        if is_phrase_end:
            accent += 3.0

        thinning = max(0.0, 0.5 - energy) * 0.2 + max(0.0, -centered) * 0.2
        if transition_hint == SectionTransitionHint.RELEASE:
            thinning += 0.05
        elif transition_hint == SectionTransitionHint.DROP:
            thinning += 0.08

        return cls(
            pull_probability_bias=_bounded(pull, PULL_LIMIT),
            impact_probability_bias=_bounded(impact, IMPACT_LIMIT),
            velocity_accent_bias=int(_bounded(round(accent), VELOCITY_LIMIT)),
            density_thinning_bias=max(0.0, min(THINNING_LIMIT, thinning)),
            variation_intensity_bias=_bounded(centered * 0.3, VARIATION_LIMIT),
        )

    @classmethod
    def for_bar(
        cls,
        tension_query: DeterministicTensionQuery,
        absolute_section_index: int,
        bar_index: int,
        section_energy: float,
        micro_ramp_intensity: float = 1.0,
    ) -> "TensionHooks":
        context = tension_query.tension_context(absolute_section_index, bar_index)
        return cls.build(
            macro_tension=context.macro_tension,
            micro_tension=context.micro_tension,
            is_phrase_end=context.is_phrase_end,
            is_section_start=context.is_section_start,
            transition_hint=context.transition_hint,
            section_energy=section_energy,
            micro_ramp_intensity=micro_ramp_intensity,
        )
