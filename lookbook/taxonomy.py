"""Skill/sector facets and query-string list helpers."""
from __future__ import annotations

from typing import Iterable

from .content import Person, Project


def _unique_sorted(values: Iterable[str]) -> list[str]:
    return sorted(set(values))


def unique_skills_from_projects(projects: Iterable[Project]) -> list[str]:
    """Unique skill tags across all projects, sorted ascending."""
    return _unique_sorted(skill for p in projects for skill in p.skills)


def unique_sectors_from_projects(projects: Iterable[Project]) -> list[str]:
    """Unique sector tags across all projects, sorted ascending."""
    return _unique_sorted(sector for p in projects for sector in p.sectors or [])


def unique_skills_from_people(people: Iterable[Person]) -> list[str]:
    return _unique_sorted(skill for p in people for skill in p.skills)


def comma_list_to_array(value: str | None) -> list[str]:
    """Split ``"a, b,,c"`` into ``["a", "b", "c"]``. Empty input gives ``[]``."""
    if not value or not value.strip():
        return []
    return [token.strip() for token in value.split(",") if token.strip()]


def array_to_comma_list(values: Iterable[str]) -> str:
    return ",".join(values)
