"""Preparation of an extracted profile for admin review.

Normalizes the suggestion, runs moderation, and reports which skills were
renamed or dropped. Nothing is written anywhere: the admin confirms and the
content store is edited outside this service.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from ai.extractor import ExtractedPerson
from ai.skills import NormalizedSkills, normalize_skills
from lookbook.moderation import ModerationReport, moderate_person
from lookbook.pipelines.normalization import clean_optional_text

logger = logging.getLogger(__name__)


@dataclass
class PreparedPerson:
    name: str | None
    title: str | None
    skills: list[str]
    open_to_work: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "title": self.title,
            "skills": list(self.skills),
            "openToWork": self.open_to_work,
        }


@dataclass
class PreparationResult:
    prepared: PreparedPerson
    moderation: ModerationReport
    normalization: NormalizedSkills


def extracted_from_payload(data: dict[str, Any]) -> ExtractedPerson:
    """Read an admin-submitted profile. Skills are left uncapped for normalization."""
    name = data.get("name")
    title = data.get("title")
    skills = data.get("skills")
    open_to_work = data.get("openToWork")
    return ExtractedPerson(
        name=name if isinstance(name, str) else None,
        title=title if isinstance(title, str) else None,
        skills=[s for s in skills if isinstance(s, str)] if isinstance(skills, list) else [],
        open_to_work=open_to_work if isinstance(open_to_work, bool) else None,
    )


def prepare_person(extracted: ExtractedPerson, *, source_text: str | None = None) -> PreparationResult:
    """Normalize and moderate an extracted profile."""
    norm = normalize_skills(extracted.skills)

    prepared = PreparedPerson(
        name=clean_optional_text(extracted.name),
        title=clean_optional_text(extracted.title),
        skills=norm.normalized,
        open_to_work=extracted.open_to_work if extracted.open_to_work is not None else False,
    )

    moderation = moderate_person(
        name=prepared.name,
        title=prepared.title,
        skills=prepared.skills,
        source_text=source_text,
    )

    logger.info(
        f"Prepared profile with {len(prepared.skills)} skills, "
        f"{len(moderation.errors)} errors, {len(moderation.warnings)} warnings"
    )
    return PreparationResult(prepared=prepared, moderation=moderation, normalization=norm)
