"""Skill tag normalization against a small canonical taxonomy.

Tags are tidied (whitespace, synonyms, canonical casing), de-duplicated,
sorted and capped, with a record of every rename and drop so an admin can
review what changed before confirming a profile.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from config.skill_taxonomy import SKILL_TAXONOMY
from lookbook.config import settings

logger = logging.getLogger(__name__)

MAX_SKILL_LENGTH = 30


@dataclass
class SkillTaxonomy:
    """Canonical skill with synonyms."""
    canonical_skill: str
    synonyms: list[str] = field(default_factory=list)
    patterns: list[str] = field(default_factory=list)  # Anchored regex patterns


@dataclass
class SkillRename:
    """A skill whose label changed during normalization."""
    source: str
    target: str

    def to_dict(self) -> dict[str, str]:
        return {"from": self.source, "to": self.target}


@dataclass
class NormalizedSkills:
    """Outcome of ``SkillNormalizer.normalize``."""
    normalized: list[str] = field(default_factory=list)
    renamed: list[SkillRename] = field(default_factory=list)
    dropped: list[str] = field(default_factory=list)


class SkillNormalizer:
    """Canonicalize free-form skill tags.

    Supports:
    - Synonym lookup (case-insensitive, whole tag)
    - Regex patterns for common spelling variants
    - Canonical casing for labels already in the taxonomy
    """

    def __init__(self, taxonomy: list[SkillTaxonomy] | None = None) -> None:
        self.taxonomy = taxonomy or self._load_default_taxonomy()

        self._synonym_map: dict[str, str] = {}  # synonym -> canonical
        self._canonical_map: dict[str, str] = {}  # lowercased canonical -> canonical
        self._patterns: list[tuple[re.Pattern, str]] = []

        self._build_indices()

        logger.debug(f"Loaded {len(self.taxonomy)} skills with {len(self._synonym_map)} synonyms")

    def _load_default_taxonomy(self) -> list[SkillTaxonomy]:
        return [
            SkillTaxonomy(
                canonical_skill=entry["canonical_skill"],
                synonyms=entry.get("synonyms", []),
                patterns=entry.get("patterns", []),
            )
            for entry in SKILL_TAXONOMY
        ]

    def _build_indices(self) -> None:
        for tax in self.taxonomy:
            canonical = tax.canonical_skill
            self._canonical_map[canonical.lower()] = canonical
            for syn in tax.synonyms:
                self._synonym_map[syn.lower()] = canonical
            for pattern in tax.patterns:
                self._patterns.append((re.compile(pattern, re.IGNORECASE), canonical))

    def tidy(self, raw: str) -> str:
        """Return the display label for a single raw tag."""
        text = re.sub(r"\s+", " ", raw).strip()
        if not text:
            return ""

        lower = text.lower()
        if lower in self._synonym_map:
            return self._synonym_map[lower]
        if lower in self._canonical_map:
            return self._canonical_map[lower]

        for pattern, canonical in self._patterns:
            if pattern.match(text):
                return canonical

        return text[0].upper() + text[1:]

    def normalize(self, skills: object, *, max_skills: int | None = None) -> NormalizedSkills:
        """Tidy, de-duplicate, sort and cap a list of skill tags.

        Non-list input yields an empty result; non-string items are ignored.
        Tags longer than ``MAX_SKILL_LENGTH`` and tags past the cap are
        reported in ``dropped``.
        """
        cap = max_skills or settings.extraction.max_skills
        result = NormalizedSkills()
        if not isinstance(skills, list):
            return result

        seen: dict[str, None] = {}
        for raw in skills:
            if not isinstance(raw, str):
                continue
            label = self.tidy(raw)
            if not label:
                continue
            if label != raw:
                result.renamed.append(SkillRename(source=raw, target=label))
            if len(label) > MAX_SKILL_LENGTH:
                result.dropped.append(label)
                continue
            seen.setdefault(label, None)

        ordered = sorted(seen, key=lambda s: (s.casefold(), s))
        result.normalized = ordered[:cap]
        result.dropped.extend(ordered[cap:])
        return result


_default_normalizer: SkillNormalizer | None = None


def normalize_skills(skills: object, *, max_skills: int | None = None) -> NormalizedSkills:
    """Normalize with the default taxonomy."""
    global _default_normalizer
    if _default_normalizer is None:
        _default_normalizer = SkillNormalizer()
    return _default_normalizer.normalize(skills, max_skills=max_skills)
