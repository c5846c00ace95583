"""
CLI entry point to plan energy, tension and variation for a section layout.

Example:
    python -m arc_planner.plan --sections "Intro:4,Verse:8,Chorus:8,Verse:8,Chorus:8" --style RockSteady --seed 7
"""

from __future__ import annotations

import argparse
import sys
from typing import Optional

from loguru import logger

from .app.models import PlanRequest, Section, SectionType, layout_sections
from .app.settings import Settings, get_settings
from .services import diagnostics
from .services.orchestrator import SongArcPlanner
from .services.policies import all_policies

REPORTS = ("compact", "summary", "full", "chart", "tension", "variation", "json")

_SECTION_LOOKUP = {section_type.value.casefold(): section_type for section_type in SectionType}


def parse_layout(text: str) -> list[Section]:
    """Parse ``"Verse:8,Chorus:8"`` into laid-out sections."""
    entries = []
    for chunk in text.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        name, _, bars = chunk.partition(":")
        try:
            section_type = _SECTION_LOOKUP[name.strip().casefold()]
        except KeyError as exc:
            raise ValueError(f"unknown section type '{name.strip()}'") from exc
        try:
            bar_count = int(bars) if bars else 8
        except ValueError as exc:
            raise ValueError(f"invalid bar count '{bars}' for {section_type.value}") from exc
        entries.append((section_type, bar_count))
    if not entries:
        raise ValueError("section layout is empty")
    return layout_sections(entries)


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Plan song energy and tension arcs.")
    parser.add_argument(
        "--sections",
        required=True,
        help="Comma separated Type:bars list, e.g. 'Intro:4,Verse:8,Chorus:8'.",
    )
    parser.add_argument("--style", default=None, help="Style or groove name (defaults to settings).")
    parser.add_argument("--seed", type=int, default=None, help="Seed (defaults to settings).")
    parser.add_argument(
        "--policy",
        default=None,
        choices=sorted(all_policies()),
        help="Constraint policy override.",
    )
    parser.add_argument("--report", choices=REPORTS, default="compact")
    return parser.parse_args(argv)


def _run(
    layout: str,
    *,
    style: Optional[str],
    seed: Optional[int],
    policy: Optional[str],
    report: str,
    settings: Optional[Settings] = None,
) -> None:
    settings = settings or get_settings()
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level)

    request = PlanRequest(sections=parse_layout(layout), style=style, seed=seed, policy=policy)
    plan = SongArcPlanner(settings).build(request)
    arc = plan.arc

    if report == "json":
        print(plan.summary().model_dump_json(indent=2))
        return

    print(f"style         : {plan.style} ({arc.style_category.value})")
    print(f"seed          : {plan.seed}")
    print(f"form          : {arc.form_id}")
    print(f"template      : {arc.template.name}")
    print(f"policy        : {arc.policy.name}")
    print(f"total_bars    : {sum(section.bar_count for section in arc.sections)}")
    print()

    if report == "summary":
        print(diagnostics.summary_report(arc))
    elif report == "full":
        print(diagnostics.full_report(arc))
    elif report == "chart":
        print(diagnostics.energy_chart(arc, settings.chart_height))
    elif report == "tension":
        print(diagnostics.tension_report(plan.tension, arc))
        print(diagnostics.transition_summary(plan.tension, arc))
    elif report == "variation":
        print(diagnostics.variation_report(plan.variations, arc.sections))
        print(diagnostics.variation_summary(plan.variations))
    else:
        print(diagnostics.compact_report(arc))


def main(argv: Optional[list[str]] = None) -> None:
    args = _parse_args(argv)
    _run(
        args.sections,
        style=args.style,
        seed=args.seed,
        policy=args.policy,
        report=args.report,
    )


if __name__ == "__main__":
    main()
