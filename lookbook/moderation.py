"""Small, transparent moderation checks for a prepared profile.

Produces errors (block publishing), warnings (review advised) and any
contact PII found in the source text.
"""
from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field

PROFANITY = ("damn", "hell", "shit", "fuck")

RE_EMAIL = re.compile(r"[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}", re.IGNORECASE)
RE_PHONE = re.compile(r"\+?\d[\d\s().-]{7,}\d")
RE_URL = re.compile(r"\bhttps?://[^\s)]+", re.IGNORECASE)
RE_BAD_NAME_CHARS = re.compile(r"[^a-zA-Z0-9 '’.-]")

MAX_NAME_LENGTH = 80
MAX_TITLE_LENGTH = 80
MAX_SKILLS = 12
MAX_SKILL_LENGTH = 30
MAX_PHONES = 5


@dataclass
class PiiFindings:
    emails: list[str] = field(default_factory=list)
    phones: list[str] = field(default_factory=list)
    urls: list[str] = field(default_factory=list)


@dataclass
class ModerationReport:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    pii: PiiFindings = field(default_factory=PiiFindings)

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        data = asdict(self)
        data["ok"] = self.ok
        return data


def _unique(matches: list[str]) -> list[str]:
    return list(dict.fromkeys(matches))


def _has_profanity(text: str) -> bool:
    low = text.lower()
    return any(word in low for word in PROFANITY)


def moderate_person(
    *,
    name: str | None,
    title: str | None,
    skills: list[str],
    source_text: str | None = None,
) -> ModerationReport:
    report = ModerationReport()

    if source_text:
        report.pii.emails = _unique(RE_EMAIL.findall(source_text))
        report.pii.phones = _unique(RE_PHONE.findall(source_text))[:MAX_PHONES]
        report.pii.urls = _unique(RE_URL.findall(source_text))
        if report.pii.emails or report.pii.phones:
            report.warnings.append("Source text contains contact PII (email/phone). Avoid publishing PII.")

    name = (name or "").strip()
    title = (title or "").strip()

    if not name:
        report.errors.append("Name is required.")
    if len(name) > MAX_NAME_LENGTH:
        report.errors.append(f"Name exceeds {MAX_NAME_LENGTH} characters.")
    if RE_BAD_NAME_CHARS.search(name):
        report.warnings.append("Name contains unusual characters.")

    if len(title) > MAX_TITLE_LENGTH:
        report.warnings.append(f"Title exceeds {MAX_TITLE_LENGTH} characters.")

    if _has_profanity(name) or _has_profanity(title):
        report.errors.append("Profanity detected in name or title.")

    if len(skills) > MAX_SKILLS:
        report.warnings.append(f"More than {MAX_SKILLS} skills; consider trimming.")
    if any(len(s) > MAX_SKILL_LENGTH for s in skills):
        report.warnings.append(f"One or more skills exceed {MAX_SKILL_LENGTH} chars.")

    return report
