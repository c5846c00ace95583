"""Runs every planning stage for one song, in order."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from loguru import logger

from ..app.models import PlanRequest, SectionSummary, SongArcSummary, type_local_index
from ..app.settings import Settings
from .energy_arc import EnergyArc
from .intent import SongIntentQuery
from .parameter_adapter import apply_role_deltas
from .policies import EnergyConstraintPolicy, get_policy
from .profiles import EnergyProfileBuilder, EnergyRoleProfiles, EnergySectionProfile
from .tension import DeterministicTensionQuery
from .tension_hooks import TensionHooks
from .variation import SectionVariationPlanner, VariationQuery

PLAN_VERSION = "v1"


@dataclass(frozen=True)
class SongArcPlan:
    style: str
    seed: int
    arc: EnergyArc
    tension: DeterministicTensionQuery
    variations: VariationQuery
    profiles: Tuple[EnergySectionProfile, ...]
    intent: SongIntentQuery
    micro_ramp_intensity: float = 1.0

    def varied_roles(self, absolute_section_index: int) -> EnergyRoleProfiles:
        """Role profiles of a section with its variation deltas applied."""
        profile = self.profiles[absolute_section_index]
        plan = self.variations.variation_plan(absolute_section_index)
        return apply_role_deltas(profile.roles, plan.roles)

    def hooks(self, absolute_section_index: int, bar_index: int) -> TensionHooks:
        return TensionHooks.for_bar(
            self.tension,
            absolute_section_index,
            bar_index,
            self.arc.energy_at(absolute_section_index),
            self.micro_ramp_intensity,
        )

    def summary(self) -> SongArcSummary:
        sections = []
        for index, section in enumerate(self.arc.sections):
            profile = self.tension.macro_tension(index)
            plan = self.variations.variation_plan(index)
            sections.append(
                SectionSummary(
                    absolute_index=index,
                    section_type=section.section_type,
                    type_local_index=type_local_index(self.arc.sections, index),
                    bar_count=section.bar_count,
                    template_energy=self.arc.template_energies[index],
                    energy=self.arc.energies[index],
                    macro_tension=profile.macro_tension,
                    micro_tension_default=profile.micro_tension_default,
                    drivers=profile.driver.names(),
                    transition_hint=self.tension.transition_hint(index).value,
                    base_reference_section_index=plan.base_reference_section_index,
                    variation_intensity=plan.variation_intensity,
                    tags=sorted(plan.tags),
                    diagnostics=list(self.arc.constraint_diagnostics(index)),
                )
            )
        return SongArcSummary(
            version=PLAN_VERSION,
            style=self.style,
            style_category=self.arc.style_category.value,
            form_id=self.arc.form_id,
            template=self.arc.template.name,
            policy=self.arc.policy.name,
            seed=self.seed,
            total_bars=sum(section.bar_count for section in self.arc.sections),
            sections=sections,
        )


class SongArcPlanner:
    """Builds deterministic energy/tension/variation plans from section layouts."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def _resolve_policy(self, request: PlanRequest) -> Optional[EnergyConstraintPolicy]:
        name = request.policy or self._settings.constraint_policy
        if not self._settings.constraints_enabled:
            name = "None"
        return get_policy(name) if name else None

    def build(self, request: PlanRequest) -> SongArcPlan:
        style = request.style or self._settings.default_style
        seed = request.seed if request.seed is not None else self._settings.default_seed
        sections = request.sections

        arc = EnergyArc.create(
            sections,
            style,
            seed,
            form_id=request.form_id,
            policy=self._resolve_policy(request),
        )
        tension = DeterministicTensionQuery(arc, seed)
        variations = VariationQuery(
            SectionVariationPlanner(style, seed).compute_plans(sections, tension, arc)
        )
        profiles = tuple(EnergyProfileBuilder.build_profiles(arc, seed))
        intent = SongIntentQuery(profiles, tension, variations)

        logger.info(
            "Planned {} sections for style '{}' (seed {}): template {}, policy {}",
            len(sections),
            style,
            seed,
            arc.template.name,
            arc.policy.name,
        )
        return SongArcPlan(
            style=style,
            seed=seed,
            arc=arc,
            tension=tension,
            variations=variations,
            profiles=profiles,
            intent=intent,
            micro_ramp_intensity=self._settings.micro_ramp_intensity,
        )
