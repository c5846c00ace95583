from __future__ import annotations

import pytest
from pydantic import ValidationError

from arc_planner.app.settings import Settings, get_settings


def test_defaults() -> None:
    settings = Settings()
    assert settings.default_style == "PopGroove"
    assert settings.default_seed == 0
    assert settings.constraint_policy is None
    assert settings.constraints_enabled
    assert settings.log_level == "INFO"


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ARC_PLANNER_DEFAULT_STYLE", "RockSteady")
    monkeypatch.setenv("ARC_PLANNER_DEFAULT_SEED", "17")
    monkeypatch.setenv("ARC_PLANNER_CONSTRAINT_POLICY", "minimal")
    monkeypatch.setenv("ARC_PLANNER_LOG_LEVEL", "debug")
    settings = Settings()
    assert settings.default_style == "RockSteady"
    assert settings.default_seed == 17
    assert settings.constraint_policy == "Minimal"
    assert settings.log_level == "DEBUG"


def test_unknown_policy_is_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(constraint_policy="Baroque")


def test_disabling_constraints_forces_empty_policy() -> None:
    settings = Settings(constraints_enabled=False, constraint_policy="Rock")
    assert settings.constraint_policy == "None"


def test_micro_ramp_intensity_bounds() -> None:
    with pytest.raises(ValidationError):
        Settings(micro_ramp_intensity=1.5)


def test_get_settings_is_cached() -> None:
    get_settings.cache_clear()
    try:
        assert get_settings() is get_settings()
    finally:
        get_settings.cache_clear()
