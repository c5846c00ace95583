"""Section reuse planning: base references, A/A'/B tags and bounded role deltas."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from loguru import logger

from ..app.models import Section, SectionType
from .arc_library import clamp_unit
from .energy_arc import EnergyArc
from .exceptions import BaseReferenceError, SectionIndexError
from .random_source import stable_hash
from .tension import DeterministicTensionQuery, SectionTransitionHint

TAG_ORIGINAL = "A"
TAG_REUSE = "Aprime"
TAG_CONTRAST = "B"

ROLE_NAMES = ("bass", "comp", "keys", "pads", "drums")
_FIXED_REGISTER_ROLES = frozenset({"bass", "drums"})

MAX_PLANNED_INTENSITY = 0.6
MIN_INTENSITY_FOR_DELTAS = 0.1
FIRST_OCCURRENCE_CONTRAST_THRESHOLD = 0.4
REPEAT_CONTRAST_THRESHOLD = 0.6

_TRANSITION_FACTOR = {
    SectionTransitionHint.BUILD: 0.2,
    SectionTransitionHint.DROP: 0.25,
    SectionTransitionHint.RELEASE: 0.15,
    SectionTransitionHint.SUSTAIN: 0.05,
}
_SECTION_TYPE_FACTOR = {
    SectionType.CHORUS: 0.1,
    SectionType.BRIDGE: 0.15,
    SectionType.OUTRO: 0.2,
}


def _bounded(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


@dataclass(frozen=True)
class RoleVariationDelta:
    """Per-role change relative to a base section; ``None`` fields leave the base alone."""

    density_multiplier: Optional[float] = None
    velocity_bias: Optional[int] = None
    register_lift_semitones: Optional[int] = None
    busy_probability: Optional[float] = None

    @classmethod
    def create(
        cls,
        density_multiplier: Optional[float] = None,
        velocity_bias: Optional[int] = None,
        register_lift_semitones: Optional[int] = None,
        busy_probability: Optional[float] = None,
    ) -> "RoleVariationDelta":
        return cls(
            density_multiplier=(
                None if density_multiplier is None else _bounded(density_multiplier, 0.5, 2.0)
            ),
            velocity_bias=None if velocity_bias is None else int(_bounded(velocity_bias, -30, 30)),
            register_lift_semitones=(
                None
                if register_lift_semitones is None
                else int(_bounded(register_lift_semitones, -24, 24))
            ),
            busy_probability=(
                None if busy_probability is None else _bounded(busy_probability, -1.0, 1.0)
            ),
        )

    @classmethod
    def lift(cls) -> "RoleVariationDelta":
        return cls.create(1.1, 5, 12, 0.1)

    @classmethod
    def thin(cls) -> "RoleVariationDelta":
        return cls.create(0.8, -5, 0, -0.1)

    @property
    def is_neutral(self) -> bool:
        return (
            self.density_multiplier is None
            and self.velocity_bias is None
            and self.register_lift_semitones is None
            and self.busy_probability is None
        )


@dataclass(frozen=True)
class VariationRoleDeltas:
    bass: Optional[RoleVariationDelta] = None
    comp: Optional[RoleVariationDelta] = None
    keys: Optional[RoleVariationDelta] = None
    pads: Optional[RoleVariationDelta] = None
    drums: Optional[RoleVariationDelta] = None

    @classmethod
    def neutral(cls) -> "VariationRoleDeltas":
        return cls()

    def for_role(self, role: str) -> Optional[RoleVariationDelta]:
        return getattr(self, role.lower(), None)

    def varied_roles(self) -> List[str]:
        return [role for role in ROLE_NAMES if getattr(self, role) is not None]


@dataclass(frozen=True)
class SectionVariationPlan:
    absolute_section_index: int
    base_reference_section_index: Optional[int] = None
    variation_intensity: float = 0.0
    roles: VariationRoleDeltas = field(default_factory=VariationRoleDeltas)
    tags: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        validate_base_reference(self.absolute_section_index, self.base_reference_section_index)
        object.__setattr__(self, "variation_intensity", clamp_unit(self.variation_intensity))
        object.__setattr__(self, "tags", frozenset(self.tags))

    @classmethod
    def no_reuse(cls, absolute_section_index: int, primary_tag: str = TAG_ORIGINAL) -> "SectionVariationPlan":
        return cls(absolute_section_index=absolute_section_index, tags=frozenset({primary_tag}))

    @classmethod
    def with_reuse(
        cls,
        absolute_section_index: int,
        base_reference_section_index: int,
        variation_intensity: float,
        roles: Optional[VariationRoleDeltas] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> "SectionVariationPlan":
        return cls(
            absolute_section_index=absolute_section_index,
            base_reference_section_index=base_reference_section_index,
            variation_intensity=variation_intensity,
            roles=roles if roles is not None else VariationRoleDeltas.neutral(),
            tags=frozenset(tags) if tags is not None else frozenset({TAG_REUSE}),
        )

    @property
    def reuses_base(self) -> bool:
        return self.base_reference_section_index is not None

    def with_variation_intensity(self, variation_intensity: float) -> "SectionVariationPlan":
        return replace(self, variation_intensity=variation_intensity)

    def with_role_deltas(self, roles: VariationRoleDeltas) -> "SectionVariationPlan":
        return replace(self, roles=roles)

    def with_tags(self, *tags: str) -> "SectionVariationPlan":
        return replace(self, tags=self.tags | frozenset(tags))


def validate_base_reference(current_index: int, base_reference_index: Optional[int]) -> None:
    if base_reference_index is None:
        return
    if base_reference_index >= current_index:
        raise BaseReferenceError(
            f"base reference {base_reference_index} must be < current section {current_index}"
        )
    if base_reference_index < 0:
        raise BaseReferenceError(f"base reference {base_reference_index} must be >= 0")


def _prior_indices_of_type(sections: Sequence[Section], index: int) -> List[int]:
    section_type = sections[index].section_type
    return [prior for prior in range(index) if sections[prior].section_type == section_type]


def _prefers_contrast(index: int, sections: Sequence[Section], style_name: str, seed: int, prior_count: int) -> bool:
    section_type = sections[index].section_type
    threshold = FIRST_OCCURRENCE_CONTRAST_THRESHOLD if prior_count == 0 else REPEAT_CONTRAST_THRESHOLD
    roll = (stable_hash(seed, style_name, index, section_type.value) % 100) / 100.0
    return roll < threshold


def select_base_reference(
    index: int, sections: Sequence[Section], style_name: str, seed: int
) -> Optional[int]:
    """Earliest prior section of the same type, or ``None`` for new (A) or contrasting (B) material."""
    if index < 0 or index >= len(sections):
        raise SectionIndexError(f"section index {index} out of range [0..{len(sections) - 1}]")
    prior = _prior_indices_of_type(sections, index)
    if not prior:
        return None
    if sections[index].section_type in (SectionType.BRIDGE, SectionType.SOLO):
        if _prefers_contrast(index, sections, style_name, seed, len(prior)):
            return None
    return prior[0]


def determine_primary_tag(index: int, base_reference_index: Optional[int], sections: Sequence[Section]) -> str:
    if base_reference_index is not None:
        return TAG_REUSE
    if _prior_indices_of_type(sections, index):
        return TAG_CONTRAST
    return TAG_ORIGINAL


def determine_secondary_tags(index: int, sections: Sequence[Section]) -> FrozenSet[str]:
    section_type = sections[index].section_type
    tags = {section_type.value}
    is_last = all(section.section_type != section_type for section in sections[index + 1 :])
    if is_last and _prior_indices_of_type(sections, index):
        tags.add("Final")
    return frozenset(tags)


class SectionVariationPlanner:
    """Builds one :class:`SectionVariationPlan` per section."""

    def __init__(self, style_name: str, seed: int) -> None:
        self._style_name = style_name
        self._seed = seed

    def compute_plans(
        self,
        sections: Sequence[Section],
        tension_query: DeterministicTensionQuery,
        arc: EnergyArc,
    ) -> Tuple[SectionVariationPlan, ...]:
        plans: List[SectionVariationPlan] = []
        for index, section in enumerate(sections):
            base_index = select_base_reference(index, sections, self._style_name, self._seed)
            primary_tag = determine_primary_tag(index, base_index, sections)
            macro = tension_query.macro_tension(index).macro_tension
            hint = tension_query.transition_hint(index)
            base_energy = arc.energy_at(base_index) if base_index is not None else None
            intensity = self._intensity(index, base_index, arc.energy_at(index), base_energy, macro, hint, section.section_type)
            tags = self._tags(primary_tag, index, sections, intensity, hint)
            if base_index is None:
                plan = SectionVariationPlan(absolute_section_index=index, tags=tags)
            else:
                plan = SectionVariationPlan.with_reuse(
                    index,
                    base_index,
                    intensity,
                    self._role_deltas(index, intensity, hint, section.section_type),
                    tags,
                )
            plans.append(plan)
        logger.debug(
            "Variation plans: {}",
            ", ".join(
                f"#{plan.absolute_section_index}->{plan.base_reference_section_index}"
                for plan in plans
            ),
        )
        return tuple(plans)

    def _intensity(
        self,
        index: int,
        base_index: Optional[int],
        energy: float,
        base_energy: Optional[float],
        macro_tension: float,
        hint: SectionTransitionHint,
        section_type: SectionType,
    ) -> float:
        if base_index is None or base_energy is None:
            return 0.0
        intensity = 0.15
        intensity += min(abs(energy - base_energy) * 1.5, 0.3)
        intensity += _TRANSITION_FACTOR.get(hint, 0.1)
        intensity += macro_tension * 0.15
        intensity += _SECTION_TYPE_FACTOR.get(section_type, 0.0)
        intensity += min((index - base_index) * 0.05, 0.15)
        intensity += (stable_hash(self._seed, index, "variation_intensity") % 100) / 1000.0 - 0.05
        return _bounded(intensity, 0.0, MAX_PLANNED_INTENSITY)

    def _role_deltas(
        self,
        index: int,
        intensity: float,
        hint: SectionTransitionHint,
        section_type: SectionType,
    ) -> VariationRoleDeltas:
        if intensity < MIN_INTENSITY_FOR_DELTAS:
            return VariationRoleDeltas.neutral()
        deltas: Dict[str, Optional[RoleVariationDelta]] = {}
        for role in ROLE_NAMES:
            roll = (stable_hash(self._seed, self._style_name, role, section_type.value, index) % 100) / 100.0
            if roll < 1.0 - intensity:
                deltas[role] = None
                continue
            register = 0 if role in _FIXED_REGISTER_ROLES else int(intensity * 6)
            deltas[role] = self._role_delta(role, index, intensity, register, hint)
        return VariationRoleDeltas(**deltas)

    def _role_delta(
        self,
        role: str,
        index: int,
        intensity: float,
        register_magnitude: int,
        hint: SectionTransitionHint,
    ) -> RoleVariationDelta:
        sign_bits = stable_hash(self._seed, role, index, "delta_signs")
        if hint == SectionTransitionHint.BUILD:
            signs = (1, 1, 1, 1)
        elif hint == SectionTransitionHint.DROP:
            signs = (-1, -1, -1, -1)
        else:
            signs = tuple(1 if (sign_bits >> bit) & 1 == 0 else -1 for bit in range(4))
        return RoleVariationDelta.create(
            density_multiplier=1.0 + signs[0] * intensity * 0.2,
            velocity_bias=signs[1] * int(intensity * 8),
            register_lift_semitones=signs[2] * register_magnitude if register_magnitude > 0 else None,
            busy_probability=signs[3] * intensity * 0.15,
        )

    @staticmethod
    def _tags(
        primary_tag: str,
        index: int,
        sections: Sequence[Section],
        intensity: float,
        hint: SectionTransitionHint,
    ) -> FrozenSet[str]:
        section_type = sections[index].section_type
        tags = {primary_tag, section_type.value}
        if intensity >= 0.4:
            tags.add("HighVariation")
        elif intensity >= 0.2:
            tags.add("ModerateVariation")
        elif intensity > 0.0:
            tags.add("SubtleVariation")
        if hint == SectionTransitionHint.BUILD:
            tags.add("Lift")
        elif hint == SectionTransitionHint.DROP:
            tags.add("Thin")
        elif hint == SectionTransitionHint.RELEASE:
            tags.add("Release")
        if index == len(sections) - 1:
            tags.add("Final")
        if index > 0 and all(section.section_type != section_type for section in sections[index + 1 :]):
            tags.add("LastOfType")
        return frozenset(tags)


class VariationQuery:
    def __init__(self, plans: Sequence[SectionVariationPlan]) -> None:
        self._plans = tuple(plans)
        for position, plan in enumerate(self._plans):
            if plan.absolute_section_index != position:
                raise ValueError(
                    f"variation plan at position {position} is for section {plan.absolute_section_index}"
                )

    @property
    def section_count(self) -> int:
        return len(self._plans)

    @property
    def plans(self) -> Tuple[SectionVariationPlan, ...]:
        return self._plans

    def has_variation_data(self, absolute_section_index: int) -> bool:
        return 0 <= absolute_section_index < len(self._plans)

    def variation_plan(self, absolute_section_index: int) -> SectionVariationPlan:
        if not self.has_variation_data(absolute_section_index):
            raise SectionIndexError(
                f"section index {absolute_section_index} out of range [0..{len(self._plans) - 1}]"
            )
        return self._plans[absolute_section_index]
