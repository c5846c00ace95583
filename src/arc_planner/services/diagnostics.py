"""Human-readable reports over planned arcs, tension and variation.

Every function here only reads the objects it is given.
"""

from __future__ import annotations

from collections import Counter
from typing import Dict, List, Sequence, Tuple

from ..app.models import SECTION_TYPE_ORDER, Section, SectionType, section_label, type_local_index
from .energy_arc import EnergyArc
from .tension import DeterministicTensionQuery, TensionDriver
from .variation import VariationQuery

_CHANGE_EPSILON = 0.0001
_RULE = "-" * 80
_DOUBLE_RULE = "=" * 80


def _changed(arc: EnergyArc, index: int) -> bool:
    return abs(arc.energies[index] - arc.template_energies[index]) > _CHANGE_EPSILON


def _section_name(section: Section, label: str) -> str:
    return f"{label} ({section.name})" if section.name else label


def full_report(arc: EnergyArc, include_unchanged: bool = True) -> str:
    policy = arc.policy
    lines = [
        "=== Energy Constraint Diagnostic Report ===",
        "",
        f"Arc Template: {arc.template.name}",
        f"Style: {arc.style_name} ({arc.style_category.value})",
        f"Policy: {policy.name} (Enabled: {policy.enabled})",
        f"Total Sections: {len(arc.sections)}",
        "",
    ]
    if policy.enabled:
        lines.append(f"Active Rules ({len(policy.rules)}):")
        lines.extend(f"  - {rule.name} (strength: {rule.strength:.2f})" for rule in policy.rules)
        lines.append("")

    lines.append("Section-by-Section Analysis:")
    lines.append(_RULE)
    for index, section in enumerate(arc.sections):
        diagnostics = arc.constraint_diagnostics(index)
        changed = _changed(arc, index)
        if not include_unchanged and not changed and not diagnostics:
            continue
        template_energy = arc.template_energies[index]
        final_energy = arc.energies[index]
        lines.append("")
        lines.append(f"Section #{index}: {_section_name(section, section_label(arc.sections, index))}")
        lines.append(f"  Bars: {section.start_bar}-{section.end_bar}")
        lines.append(f"  Template energy: {template_energy:.3f}")
        lines.append(f"  Final energy:    {final_energy:.3f}")
        if changed:
            delta = final_energy - template_energy
            direction = "^" if delta > 0 else "v"
            percent = delta / template_energy * 100 if template_energy else 0.0
            lines.append(f"  Change:          {direction} {abs(delta):.3f} ({percent:.1f}%)")
        else:
            lines.append("  Change:          (none)")
        if diagnostics:
            lines.append("  Rules applied:")
            lines.extend(f"    * {diagnostic}" for diagnostic in diagnostics)
    lines.append("")
    lines.append(_DOUBLE_RULE)
    return "\n".join(lines) + "\n"


def _energies_by_type(arc: EnergyArc) -> Dict[SectionType, List[Tuple[int, float]]]:
    grouped: Dict[SectionType, List[Tuple[int, float]]] = {}
    for index, section in enumerate(arc.sections):
        grouped.setdefault(section.section_type, []).append(
            (type_local_index(arc.sections, index) + 1, arc.energies[index])
        )
    return grouped


def summary_report(arc: EnergyArc) -> str:
    lines = [
        "=== Energy Arc Summary ===",
        "",
        f"Policy: {arc.policy.name}",
        f"Sections: {len(arc.sections)}",
        "",
        "Energy Progression by Section Type:",
    ]
    grouped = _energies_by_type(arc)
    for section_type in sorted(grouped, key=SECTION_TYPE_ORDER.__getitem__):
        instances = grouped[section_type]
        progression = " -> ".join(f"{number}:{energy:.2f}" for number, energy in instances)
        lines.append(f"  {section_type.value}: {progression}")
        if len(instances) > 1 and all(
            later[1] >= earlier[1] - 0.001 for earlier, later in zip(instances, instances[1:])
        ):
            lines.append("    (monotonic increase)")
    lines.append("")

    peak_index = -1
    peak_energy = 0.0
    for index, energy in enumerate(arc.energies):
        if energy > peak_energy:
            peak_energy = energy
            peak_index = index
    peak_name = section_label(arc.sections, peak_index) if peak_index >= 0 else ""
    lines.append(f"Energy Peak: {peak_energy:.3f} at Section #{peak_index} ({peak_name})")
    adjusted = sum(1 for index in range(len(arc.sections)) if _changed(arc, index))
    lines.append(f"Constraint Adjustments: {adjusted}/{len(arc.sections)} sections")
    return "\n".join(lines) + "\n"


def compact_report(arc: EnergyArc) -> str:
    lines = [f"Energy Arc: {arc.policy.name} policy"]
    for index, section in enumerate(arc.sections):
        marker = "*" if _changed(arc, index) else " "
        number = type_local_index(arc.sections, index) + 1
        lines.append(
            f"{marker} #{index:02d} {section.section_type.value:<8} {number}: "
            f"T={arc.template_energies[index]:.3f} -> F={arc.energies[index]:.3f}"
        )
    return "\n".join(lines) + "\n"


def compare_arcs(first: EnergyArc, second: EnergyArc, first_label: str = "Arc 1", second_label: str = "Arc 2") -> str:
    if len(first.sections) != len(second.sections):
        raise ValueError("arcs must have the same number of sections to be compared")
    lines = [
        f"=== Energy Arc Comparison: {first_label} vs {second_label} ===",
        "",
        f"{first_label}: {first.policy.name} policy",
        f"{second_label}: {second.policy.name} policy",
        "",
        f"{'Section':<20} | {first_label:<12} | {second_label:<12} | Delta",
        "-" * 70,
    ]
    for index in range(len(first.sections)):
        delta = second.energies[index] - first.energies[index]
        lines.append(
            f"{section_label(first.sections, index):<20} | {first.energies[index]:<12.3f} | "
            f"{second.energies[index]:<12.3f} | {delta:+.3f}"
        )
    return "\n".join(lines) + "\n"


def energy_chart(arc: EnergyArc, height: int = 10) -> str:
    height = max(1, height)
    energies = arc.energies
    lines = ["Energy Flow Chart:", ""]
    for row in range(height, -1, -1):
        threshold = row / height
        cells = []
        for energy in energies:
            if energy >= threshold:
                cells.append("#")
            elif energy >= threshold - 0.5 / height:
                cells.append("+")
            else:
                cells.append(" ")
        lines.append(f"{threshold:.1f} |{''.join(cells)}")
    lines.append("    +" + "-" * len(energies))
    lines.append("     " + "".join(section.section_type.value[0] for section in arc.sections))
    return "\n".join(lines) + "\n"


def _driver_text(driver: TensionDriver) -> str:
    names = driver.names()
    return ", ".join(names) if names else "None"


def tension_report(query: DeterministicTensionQuery, arc: EnergyArc) -> str:
    lines = [
        "=== Tension Diagnostic Report ===",
        "",
        f"Total Sections: {query.section_count}",
        f"Seed: {query.seed}",
        "",
    ]
    for index in range(query.section_count):
        section = arc.sections[index]
        profile = query.macro_tension(index)
        micro = query.micro_tension_map(index)
        values = micro.tension_by_bar
        lines.append(f"Section #{index}: {_section_name(section, section_label(arc.sections, index))}")
        lines.append(f"  Bars: {section.start_bar}-{section.end_bar} ({section.bar_count} bars)")
        lines.append(f"  Energy:            {arc.energies[index]:.3f}")
        lines.append(f"  Macro Tension:     {profile.macro_tension:.3f}")
        lines.append(f"  Micro Default:     {profile.micro_tension_default:.3f}")
        lines.append(f"  Drivers:           {_driver_text(profile.driver)}")
        lines.append(f"  Transition:        {query.transition_hint(index).value}")
        lines.append(f"  Micro Tension Map ({section.bar_count} bars, phrase {micro.phrase_length}):")
        lines.append(f"    Min:  {min(values):.3f}")
        lines.append(f"    Max:  {max(values):.3f}")
        lines.append(f"    Avg:  {sum(values) / len(values):.3f}")
        lines.append(f"    Phrase ends: {sum(micro.is_phrase_end)}")
        lines.append("")
    return "\n".join(lines)


def tension_summary(query: DeterministicTensionQuery, arc: EnergyArc) -> str:
    lines = ["=== Tension Summary ===", "", f"Sections: {query.section_count}"]
    tensions = [query.macro_tension(index).macro_tension for index in range(query.section_count)]
    if tensions:
        peak = max(range(len(tensions)), key=tensions.__getitem__)
        lines.append(
            f"Tension Peak: {tensions[peak]:.3f} at Section #{peak} ({section_label(arc.sections, peak)})"
        )
        high = sum(1 for tension in tensions if tension > 0.6)
        lines.append(f"High Tension Sections (>0.6): {high}/{len(tensions)}")
    drivers: Counter[str] = Counter()
    for index in range(query.section_count):
        drivers.update(query.macro_tension(index).driver.names())
    if drivers:
        lines.append("Drivers:")
        lines.extend(f"  {name}: {count} sections" for name, count in sorted(drivers.items()))
    return "\n".join(lines) + "\n"


def transition_summary(query: DeterministicTensionQuery, arc: EnergyArc) -> str:
    lines = ["Transition Hints:"]
    for index in range(query.section_count):
        lines.append(
            f"  Section #{index} ({section_label(arc.sections, index)}): "
            f"{query.transition_hint(index).value}"
        )
    return "\n".join(lines) + "\n"


def variation_report(query: VariationQuery, sections: Sequence[Section]) -> str:
    lines = ["=== Variation Plan Report ===", ""]
    for index in range(query.section_count):
        plan = query.variation_plan(index)
        base = plan.base_reference_section_index
        reference = f"reuses #{base}" if base is not None else "new material"
        lines.append(
            f"#{index:02d} {section_label(sections, index):<12} {reference:<14} "
            f"intensity={plan.variation_intensity:.2f} tags=[{', '.join(sorted(plan.tags))}]"
        )
        for role in plan.roles.varied_roles():
            delta = plan.roles.for_role(role)
            lines.append(
                f"      {role}: density={delta.density_multiplier} velocity={delta.velocity_bias} "
                f"register={delta.register_lift_semitones} busy={delta.busy_probability}"
            )
    return "\n".join(lines) + "\n"


def variation_summary(query: VariationQuery) -> str:
    plans = query.plans
    reused = [plan for plan in plans if plan.reuses_base]
    average = sum(plan.variation_intensity for plan in reused) / len(reused) if reused else 0.0
    tags: Counter[str] = Counter(tag for plan in plans for tag in plan.tags)
    lines = [
        f"Sections: {len(plans)}",
        f"Reused sections: {len(reused)}",
        f"Average reuse intensity: {average:.2f}",
        "Tags: " + ", ".join(f"{tag}={count}" for tag, count in sorted(tags.items())),
    ]
    return "\n".join(lines) + "\n"
