from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..services.exceptions import SectionIndexError


class SectionType(str, Enum):
    INTRO = "Intro"
    VERSE = "Verse"
    CHORUS = "Chorus"
    BRIDGE = "Bridge"
    OUTRO = "Outro"
    SOLO = "Solo"
    CUSTOM = "Custom"


SECTION_TYPE_ORDER = {section_type: position for position, section_type in enumerate(SectionType)}


class Section(BaseModel):
    model_config = ConfigDict(frozen=True)

    section_type: SectionType
    absolute_index: int = Field(..., ge=0)
    bar_count: int = Field(..., ge=1, le=512)
    start_bar: int = Field(default=0, ge=0)
    name: Optional[str] = Field(default=None, max_length=64)

    @property
    def end_bar(self) -> int:
        return self.start_bar + self.bar_count - 1


def type_local_index(sections: Sequence[Section], absolute_index: int) -> int:
    """0-based count of earlier sections sharing the type of ``sections[absolute_index]``."""
    if absolute_index < 0 or absolute_index >= len(sections):
        raise SectionIndexError(
            f"section index {absolute_index} out of range [0..{len(sections) - 1}]"
        )
    section_type = sections[absolute_index].section_type
    return sum(1 for section in sections[:absolute_index] if section.section_type == section_type)


def count_of_type(sections: Sequence[Section], section_type: SectionType) -> int:
    return sum(1 for section in sections if section.section_type == section_type)


def section_label(sections: Sequence[Section], absolute_index: int) -> str:
    section = sections[absolute_index]
    return f"{section.section_type.value} {type_local_index(sections, absolute_index) + 1}"


def layout_sections(entries: Iterable[tuple[SectionType, int]]) -> list[Section]:
    """Lay ``(type, bars)`` pairs end to end starting at bar 0."""
    sections: list[Section] = []
    start_bar = 0
    for index, (section_type, bar_count) in enumerate(entries):
        sections.append(
            Section(
                section_type=section_type,
                absolute_index=index,
                bar_count=bar_count,
                start_bar=start_bar,
            )
        )
        start_bar += bar_count
    return sections


class PlanRequest(BaseModel):
    sections: list[Section] = Field(..., min_length=1)
    style: Optional[str] = Field(default=None, min_length=1, max_length=64)
    seed: Optional[int] = Field(default=None)
    policy: Optional[str] = Field(default=None, max_length=32)
    form_id: Optional[str] = Field(default=None, max_length=32)

    @model_validator(mode="after")
    def _check_section_order(self) -> "PlanRequest":
        for position, section in enumerate(self.sections):
            if section.absolute_index != position:
                raise ValueError(
                    f"section at position {position} has absolute_index {section.absolute_index}"
                )
        return self


class SectionSummary(BaseModel):
    absolute_index: int
    section_type: SectionType
    type_local_index: int
    bar_count: int
    template_energy: float = Field(..., ge=0.0, le=1.0)
    energy: float = Field(..., ge=0.0, le=1.0)
    macro_tension: float = Field(..., ge=0.0, le=1.0)
    micro_tension_default: float = Field(..., ge=0.0, le=1.0)
    drivers: list[str] = Field(default_factory=list)
    transition_hint: str
    base_reference_section_index: Optional[int] = None
    variation_intensity: float = Field(default=0.0, ge=0.0, le=1.0)
    tags: list[str] = Field(default_factory=list)
    diagnostics: list[str] = Field(default_factory=list)


class SongArcSummary(BaseModel):
    version: str = Field(default="v1", max_length=16)
    style: str
    style_category: str
    form_id: str
    template: str
    policy: str
    seed: int
    total_bars: int = Field(..., ge=1)
    sections: list[SectionSummary]
