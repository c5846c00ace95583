"""Shared service-layer exceptions."""

from __future__ import annotations


class PlanningError(Exception):
    """Base failure raised by the planning stages."""


class SectionIndexError(PlanningError, IndexError):
    """Section or bar index outside the planned song."""


class BaseReferenceError(PlanningError, ValueError):
    """Base reference does not point at an earlier section."""


class TemplateCatalogError(PlanningError, RuntimeError):
    """Arc template catalog is missing, malformed or empty."""


class UnknownPolicyError(PlanningError, KeyError):
    """Constraint policy name is not registered."""
