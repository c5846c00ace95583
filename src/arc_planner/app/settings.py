from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..services.exceptions import UnknownPolicyError
from ..services.policies import EMPTY_POLICY_NAME, canonical_policy_name


class Settings(BaseSettings):
    """Runtime configuration for the arc planner."""

    model_config = SettingsConfigDict(
        env_prefix="ARC_PLANNER_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    default_style: str = Field(
        default="PopGroove",
        min_length=1,
        max_length=64,
        description="Style or groove name used when a request does not name one.",
    )
    default_seed: int = Field(default=0, description="Seed used when a request omits one.")
    constraint_policy: Optional[str] = Field(
        default=None,
        max_length=32,
        description="Force a named constraint policy instead of the style-derived one.",
    )
    constraints_enabled: bool = Field(
        default=True,
        description="Disable to keep raw template energies.",
    )
    micro_ramp_intensity: float = Field(
        default=1.0,
        ge=0.0,
        le=1.0,
        description="Weight of per-bar micro tension inside tension hooks.",
    )
    log_level: str = Field(default="INFO", max_length=16)
    chart_height: int = Field(default=10, ge=4, le=40)

    @model_validator(mode="after")
    def _normalise_policy(self) -> "Settings":
        if not self.constraints_enabled:
            self.constraint_policy = EMPTY_POLICY_NAME
        elif self.constraint_policy is not None:
            try:
                self.constraint_policy = canonical_policy_name(self.constraint_policy)
            except UnknownPolicyError as exc:
                raise ValueError(f"unknown constraint policy '{self.constraint_policy}'") from exc
        self.log_level = self.log_level.upper()
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
