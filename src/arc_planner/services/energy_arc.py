"""Arc template selection and left-to-right constraint resolution."""

from __future__ import annotations

from types import MappingProxyType
from typing import Dict, List, Optional, Sequence, Tuple

from loguru import logger

from ..app.models import Section, SectionType, count_of_type, type_local_index
from .arc_library import (
    EnergyArcTemplate,
    EnergySectionTarget,
    StyleCategory,
    clamp_unit,
    get_catalog,
    infer_form_id,
    style_category_for,
)
from .constraints import EnergyConstraintContext
from .exceptions import SectionIndexError
from .policies import EnergyConstraintPolicy, policy_for_style
from .random_source import SeededRandomSource

NO_CONSTRAINTS_DIAGNOSTIC = "No constraints applied"


class EnergyArc:
    """One song's selected template plus its constraint-resolved section energies."""

    def __init__(
        self,
        sections: Sequence[Section],
        style_name: str,
        template: EnergyArcTemplate,
        policy: EnergyConstraintPolicy,
        *,
        style_category: StyleCategory,
        form_id: str,
    ) -> None:
        self._sections: Tuple[Section, ...] = tuple(sections)
        self._style_name = style_name
        self._template = template
        self._policy = policy
        self._style_category = style_category
        self._form_id = form_id
        self._template_energies = tuple(
            template.target_for(section.section_type, type_local_index(self._sections, index)).energy
            for index, section in enumerate(self._sections)
        )
        self._energies, self._diagnostics = self._resolve_energies()

    @classmethod
    def create(
        cls,
        sections: Sequence[Section],
        style_name: str,
        seed: int,
        form_id: Optional[str] = None,
        policy: Optional[EnergyConstraintPolicy] = None,
    ) -> "EnergyArc":
        category = style_category_for(style_name)
        resolved_form = form_id or infer_form_id(section.section_type for section in sections)
        candidates = get_catalog().candidates_for(category)
        template = candidates[SeededRandomSource(seed).next_int(0, len(candidates))]
        resolved_policy = policy if policy is not None else policy_for_style(style_name)
        logger.debug(
            "Energy arc for style '{}' ({}), form {}: template {}, policy {}",
            style_name,
            category.value,
            resolved_form,
            template.name,
            resolved_policy.name,
        )
        return cls(
            sections,
            style_name,
            template,
            resolved_policy,
            style_category=category,
            form_id=resolved_form,
        )

    @property
    def sections(self) -> Tuple[Section, ...]:
        return self._sections

    @property
    def style_name(self) -> str:
        return self._style_name

    @property
    def style_category(self) -> StyleCategory:
        return self._style_category

    @property
    def form_id(self) -> str:
        return self._form_id

    @property
    def template(self) -> EnergyArcTemplate:
        return self._template

    @property
    def policy(self) -> EnergyConstraintPolicy:
        return self._policy

    @property
    def energies(self) -> Tuple[float, ...]:
        return self._energies

    @property
    def template_energies(self) -> Tuple[float, ...]:
        return self._template_energies

    def energy_at(self, absolute_index: int) -> float:
        self._check_index(absolute_index)
        return self._energies[absolute_index]

    def target_for_section(self, section: Section, type_local_index: int) -> EnergySectionTarget:
        """Constrained target; falls back to the template when the section is foreign."""
        template_target = self._template.target_for(section.section_type, type_local_index)
        index = section.absolute_index
        if 0 <= index < len(self._sections) and self._sections[index].section_type == section.section_type:
            return template_target.with_energy(self._energies[index])
        return template_target

    def template_target_for_section(self, section: Section, type_local_index: int) -> EnergySectionTarget:
        return self._template.target_for(section.section_type, type_local_index)

    def constraint_diagnostics(self, absolute_index: int) -> Tuple[str, ...]:
        self._check_index(absolute_index)
        return self._diagnostics[absolute_index]

    def _check_index(self, absolute_index: int) -> None:
        if absolute_index < 0 or absolute_index >= len(self._sections):
            raise SectionIndexError(
                f"section index {absolute_index} out of range [0..{len(self._sections) - 1}]"
            )

    def _resolve_energies(self) -> Tuple[Tuple[float, ...], Tuple[Tuple[str, ...], ...]]:
        if not self._policy.is_active:
            return (
                tuple(clamp_unit(energy) for energy in self._template_energies),
                tuple((NO_CONSTRAINTS_DIAGNOSTIC,) for _ in self._sections),
            )

        total = len(self._sections)
        finalized: Dict[int, float] = {}
        last_by_type: Dict[SectionType, float] = {}
        diagnostics: List[Tuple[str, ...]] = []
        type_totals = {
            section_type: count_of_type(self._sections, section_type) for section_type in SectionType
        }
        for index, section in enumerate(self._sections):
            local_index = type_local_index(self._sections, index)
            previous = self._sections[index - 1] if index > 0 else None
            context = EnergyConstraintContext(
                section_type=section.section_type,
                type_local_index=local_index,
                absolute_index=index,
                proposed_energy=clamp_unit(self._template_energies[index]),
                previous_same_type_energy=last_by_type.get(section.section_type),
                previous_any_section_energy=finalized.get(index - 1),
                previous_section_type=previous.section_type if previous is not None else None,
                next_section_energy=(
                    self._template_energies[index + 1] if index + 1 < total else None
                ),
                is_last_of_type=local_index == type_totals[section.section_type] - 1,
                is_last_section=index == total - 1,
                total_sections_of_type=type_totals[section.section_type],
                total_sections=total,
                finalized_energies=MappingProxyType(dict(finalized)),
            )
            energy, notes = self._policy.apply(context)
            energy = clamp_unit(energy)
            finalized[index] = energy
            last_by_type[section.section_type] = energy
            diagnostics.append(tuple(notes))
        return tuple(finalized[index] for index in range(total)), tuple(diagnostics)
