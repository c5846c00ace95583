"""Declarative energy arc templates grouped by style category."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

from ..app.models import SectionType
from .exceptions import TemplateCatalogError

_CATALOG_PATH = Path(__file__).resolve().parents[1] / "data" / "arc_templates.json"

FALLBACK_ENERGY = 0.5
PHRASE_OFFSET_LIMIT = 0.3


def clamp_unit(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


class StyleCategory(str, Enum):
    POP = "Pop"
    ROCK = "Rock"
    EDM = "EDM"
    JAZZ = "Jazz"
    COUNTRY = "Country"


# Checked in order; the first family whose keyword occurs in the style name wins.
_STYLE_KEYWORDS: Tuple[Tuple[StyleCategory, Tuple[str, ...]], ...] = (
    (StyleCategory.ROCK, ("rock", "punk", "metal")),
    (StyleCategory.POP, ("pop", "dance", "funk")),
    (StyleCategory.EDM, ("edm", "house", "techno")),
    (StyleCategory.JAZZ, ("jazz", "bossa", "latin")),
    (StyleCategory.COUNTRY, ("country", "folk")),
)


def style_category_for(style_name: str) -> StyleCategory:
    folded = (style_name or "").casefold()
    for category, keywords in _STYLE_KEYWORDS:
        if any(keyword in folded for keyword in keywords):
            return category
    return StyleCategory.POP


def infer_form_id(section_types: Iterable[SectionType]) -> str:
    present = set(section_types)
    has_verse = SectionType.VERSE in present
    has_chorus = SectionType.CHORUS in present
    if has_verse and has_chorus and SectionType.BRIDGE in present:
        return "VerseChorusBridge"
    if has_verse and has_chorus:
        return "VerseChorus"
    if SectionType.INTRO in present and has_verse:
        return "IntroVerse"
    return "Generic"


def _clamp_offset(value: float) -> float:
    return max(-PHRASE_OFFSET_LIMIT, min(PHRASE_OFFSET_LIMIT, float(value)))


@dataclass(frozen=True)
class PhraseOffsets:
    start: float = 0.0
    middle: float = 0.0
    peak: float = 0.0
    cadence: float = 0.0

    @classmethod
    def create(
        cls,
        start: float = 0.0,
        middle: float = 0.0,
        peak: float = 0.0,
        cadence: float = 0.0,
    ) -> "PhraseOffsets":
        return cls(
            start=_clamp_offset(start),
            middle=_clamp_offset(middle),
            peak=_clamp_offset(peak),
            cadence=_clamp_offset(cadence),
        )

    def offset_for(self, position: str) -> float:
        """Offset for a phrase position name (``Start``, ``Middle``, ``Peak``, ``Cadence``)."""
        return float(getattr(self, position.lower(), 0.0))


@dataclass(frozen=True)
class EnergySectionTarget:
    """Unconstrained energy for one section instance."""

    energy: float
    section_type: SectionType
    type_local_index: int
    phrase_offsets: Optional[PhraseOffsets] = None

    @classmethod
    def uniform(
        cls, energy: float, section_type: SectionType, type_local_index: int
    ) -> "EnergySectionTarget":
        return cls(
            energy=clamp_unit(energy),
            section_type=section_type,
            type_local_index=type_local_index,
        )

    def with_energy(self, energy: float) -> "EnergySectionTarget":
        return replace(self, energy=clamp_unit(energy))


@dataclass(frozen=True)
class EnergyArcTemplate:
    name: str
    description: str
    default_energy_by_type: Dict[SectionType, float]
    targets: Dict[Tuple[SectionType, int], EnergySectionTarget] = field(default_factory=dict)

    def target_for(self, section_type: SectionType, type_local_index: int) -> EnergySectionTarget:
        target = self.targets.get((section_type, type_local_index))
        if target is not None:
            return target
        default = self.default_energy_by_type.get(section_type)
        if default is not None:
            return EnergySectionTarget.uniform(default, section_type, type_local_index)
        return EnergySectionTarget.uniform(FALLBACK_ENERGY, section_type, type_local_index)


@dataclass(frozen=True)
class ArcCatalog:
    version: int
    templates: Dict[str, EnergyArcTemplate]
    by_category: Dict[StyleCategory, Tuple[EnergyArcTemplate, ...]]
    generic: Tuple[EnergyArcTemplate, ...]

    def candidates_for(self, category: StyleCategory) -> Tuple[EnergyArcTemplate, ...]:
        candidates = self.by_category.get(category, ())
        if candidates:
            return candidates
        if not self.generic:
            raise TemplateCatalogError(
                f"no arc templates for style category '{category.value}' and no generic fallback"
            )
        return self.generic

    def template(self, name: str) -> EnergyArcTemplate:
        try:
            return self.templates[name]
        except KeyError as exc:
            raise TemplateCatalogError(f"unknown arc template '{name}'") from exc


def _parse_section_type(raw: str) -> SectionType:
    try:
        return SectionType(raw)
    except ValueError as exc:  # pragma: no cover - configuration error
        raise TemplateCatalogError(f"unknown section type '{raw}' in arc catalog") from exc


def _build_template(entry: dict) -> EnergyArcTemplate:
    defaults = {
        _parse_section_type(key): clamp_unit(value) for key, value in entry["defaults"].items()
    }
    targets: Dict[Tuple[SectionType, int], EnergySectionTarget] = {}
    for raw_target in entry.get("targets", []):
        section_type = _parse_section_type(raw_target["type"])
        index = int(raw_target["index"])
        offsets_raw = raw_target.get("phrase_offsets")
        offsets = PhraseOffsets.create(**offsets_raw) if offsets_raw else None
        targets[(section_type, index)] = EnergySectionTarget(
            energy=clamp_unit(raw_target["energy"]),
            section_type=section_type,
            type_local_index=index,
            phrase_offsets=offsets,
        )
    return EnergyArcTemplate(
        name=entry["name"],
        description=entry.get("description", ""),
        default_energy_by_type=defaults,
        targets=targets,
    )


def _resolve_names(templates: Dict[str, EnergyArcTemplate], names: list[str]) -> Tuple[EnergyArcTemplate, ...]:
    resolved = []
    for name in names:
        try:
            resolved.append(templates[name])
        except KeyError as exc:  # pragma: no cover - configuration error
            raise TemplateCatalogError(f"arc catalog references unknown template '{name}'") from exc
    return tuple(resolved)


def load_catalog(path: Path = _CATALOG_PATH) -> ArcCatalog:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:  # pragma: no cover - configuration error
        raise TemplateCatalogError(f"arc template catalog missing at {path}") from exc
    except json.JSONDecodeError as exc:  # pragma: no cover - configuration error
        raise TemplateCatalogError(f"arc template catalog at {path} is not valid JSON") from exc

    templates = {template.name: template for template in map(_build_template, raw["templates"])}
    by_category: Dict[StyleCategory, Tuple[EnergyArcTemplate, ...]] = {}
    for category_name, names in raw.get("categories", {}).items():
        try:
            category = StyleCategory(category_name)
        except ValueError as exc:  # pragma: no cover - configuration error
            raise TemplateCatalogError(f"unknown style category '{category_name}'") from exc
        by_category[category] = _resolve_names(templates, names)

    return ArcCatalog(
        version=int(raw.get("version", 1)),
        templates=templates,
        by_category=by_category,
        generic=_resolve_names(templates, raw.get("generic", [])),
    )


_CATALOG = load_catalog()


def get_catalog() -> ArcCatalog:
    return _CATALOG
