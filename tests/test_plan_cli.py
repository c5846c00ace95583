from __future__ import annotations

import json

import pytest

from arc_planner.app.models import SectionType
from arc_planner.app.settings import Settings
from arc_planner.plan import _parse_args, _run, parse_layout


def _quiet_settings() -> Settings:
    return Settings(log_level="WARNING")


def test_parse_layout() -> None:
    sections = parse_layout("Verse:8, chorus:4,Bridge")
    assert [section.section_type for section in sections] == [
        SectionType.VERSE,
        SectionType.CHORUS,
        SectionType.BRIDGE,
    ]
    assert [section.bar_count for section in sections] == [8, 4, 8]
    assert sections[2].start_bar == 12


@pytest.mark.parametrize("layout", ["", "Banana:8", "Verse:x", " , "])
def test_parse_layout_rejects_bad_input(layout: str) -> None:
    with pytest.raises(ValueError):
        parse_layout(layout)


def test_parse_args_defaults() -> None:
    args = _parse_args(["--sections", "Verse:8"])
    assert args.report == "compact"
    assert args.style is None
    assert args.seed is None
    assert args.policy is None


def test_parse_args_accepts_registered_policy() -> None:
    args = _parse_args(["--sections", "Verse:8", "--policy", "Rock"])
    assert args.policy == "Rock"


def test_parse_args_rejects_unknown_policy(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit):
        _parse_args(["--sections", "Verse:8", "--policy", "Baroque"])
    assert "invalid choice" in capsys.readouterr().err


def test_run_prints_header_and_compact_report(capsys: pytest.CaptureFixture[str]) -> None:
    _run(
        "Verse:8,Chorus:8,Verse:8,Chorus:8",
        style="PopGroove",
        seed=42,
        policy=None,
        report="compact",
        settings=_quiet_settings(),
    )
    out = capsys.readouterr().out
    assert "style         : PopGroove (Pop)" in out
    assert "policy        : PopRock" in out
    assert "total_bars    : 32" in out
    assert "Energy Arc: PopRock policy" in out


def test_run_json_report(capsys: pytest.CaptureFixture[str]) -> None:
    _run(
        "Intro:4,Verse:8,Chorus:8",
        style="JazzSwing",
        seed=1,
        policy="None",
        report="json",
        settings=_quiet_settings(),
    )
    out = capsys.readouterr().out
    assert "style         :" not in out
    payload = json.loads(out)
    assert payload["policy"] == "None"
    assert payload["style_category"] == "Jazz"
    assert [section["section_type"] for section in payload["sections"]] == ["Intro", "Verse", "Chorus"]


@pytest.mark.parametrize("report", ["summary", "full", "chart", "tension", "variation"])
def test_run_other_reports(report: str, capsys: pytest.CaptureFixture[str]) -> None:
    _run(
        "Verse:8,Chorus:8,Bridge:4,Chorus:8",
        style="RockSteady",
        seed=7,
        policy=None,
        report=report,
        settings=_quiet_settings(),
    )
    out = capsys.readouterr().out
    assert "template      :" in out
    assert len(out.splitlines()) > 8
