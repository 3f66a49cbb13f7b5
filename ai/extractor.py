"""LLM-backed extraction of a candidate profile from free text.

The provider is asked for strict JSON, but its output is never trusted:
``parse_extraction`` validates whatever comes back and tags the result as
``ok``, ``salvaged`` or ``malformed``.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import anthropic

from lookbook.config import settings

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """
You are a strict information extractor. Output ONLY valid JSON matching this shape:
{
  "name": string | null,
  "title": string | null,
  "skills": string[],          // unique, case-preserving; 0-12 items
  "openToWork": boolean | null // if text clearly implies open to work / seeking opportunities
}

Rules:
- If a field is unknown, use null (or [] for skills).
- Do NOT invent facts. Extract only from the provided text.
- For skills: include technical stacks or clear competencies (e.g., React, TypeScript, Postgres, Python).
- openToWork: true if clearly stated, false if clearly not, else null.
- Respond with JSON ONLY. No markdown, no extra text.
"""


class ExtractionError(Exception):
    """Raised when the extraction provider call fails."""
    pass


class ParseStatus(str, Enum):
    """How the provider output was turned into a profile."""
    OK = "ok"
    SALVAGED = "salvaged"
    MALFORMED = "malformed"


@dataclass
class ExtractedPerson:
    """Candidate profile suggested by the model. Never persisted as-is."""
    name: str | None = None
    title: str | None = None
    skills: list[str] = field(default_factory=list)
    open_to_work: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "title": self.title,
            "skills": list(self.skills),
            "openToWork": self.open_to_work,
        }


@dataclass
class ExtractionResult:
    status: ParseStatus
    person: ExtractedPerson
    raw: str = ""


def _load_object(raw: str) -> tuple[ParseStatus, Any]:
    try:
        return ParseStatus.OK, json.loads(raw)
    except json.JSONDecodeError:
        pass

    start = raw.find("{")
    end = raw.rfind("}")
    if start >= 0 and end > start:
        try:
            return ParseStatus.SALVAGED, json.loads(raw[start:end + 1])
        except json.JSONDecodeError:
            pass

    return ParseStatus.MALFORMED, None


def coerce_person(data: dict[str, Any], *, max_skills: int | None = None) -> ExtractedPerson:
    """Coerce a loosely-typed mapping into an ``ExtractedPerson``."""
    cap = max_skills or settings.extraction.max_skills

    name = data.get("name")
    title = data.get("title")
    open_to_work = data.get("openToWork", data.get("open_to_work"))

    skills: list[str] = []
    raw_skills = data.get("skills")
    if isinstance(raw_skills, list):
        for skill in raw_skills:
            if isinstance(skill, str) and skill not in skills:
                skills.append(skill)

    return ExtractedPerson(
        name=name if isinstance(name, str) else None,
        title=title if isinstance(title, str) else None,
        skills=skills[:cap],
        open_to_work=open_to_work if isinstance(open_to_work, bool) else None,
    )


def parse_extraction(raw: str) -> ExtractionResult:
    """Parse provider output into a tagged result. Never raises."""
    status, data = _load_object(raw or "")
    if not isinstance(data, dict):
        if status is not ParseStatus.MALFORMED:
            logger.warning("Extraction output was JSON but not an object")
        return ExtractionResult(status=ParseStatus.MALFORMED, person=ExtractedPerson(), raw=raw)

    return ExtractionResult(status=status, person=coerce_person(data), raw=raw)


class ProfileExtractor:
    """Sends source text to Claude and parses the reply."""

    def __init__(self, api_key: str | None = None, client: anthropic.AsyncAnthropic | None = None):
        self.api_key = api_key or settings.anthropic_api_key
        self._client = client

    @property
    def client(self) -> anthropic.AsyncAnthropic:
        """Lazy-load the Anthropic client.

        Raises:
            ExtractionError: If no API key is configured
        """
        if self._client is None:
            if not self.api_key:
                raise ExtractionError("ANTHROPIC_API_KEY not configured")
            self._client = anthropic.AsyncAnthropic(api_key=self.api_key)
        return self._client

    async def complete(self, source_text: str) -> str:
        """Return the raw text of the model's reply.

        Raises:
            ExtractionError: If the provider call fails
        """
        user_prompt = (
            f"Extract from this text:\n\n{source_text}\n\n"
            "Return only JSON of the shape described."
        )
        try:
            client = self.client
            message = await client.messages.create(
                model=settings.extraction.model_name,
                max_tokens=settings.extraction.max_tokens,
                temperature=settings.extraction.temperature,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": user_prompt}],
            )
        except anthropic.AnthropicError as e:
            logger.error(f"Claude API error: {e}")
            raise ExtractionError(f"Extraction provider failed: {e}") from e

        if not message.content:
            return ""
        return getattr(message.content[0], "text", "") or ""

    async def extract(self, source_text: str) -> ExtractionResult:
        raw = await self.complete(source_text)
        result = parse_extraction(raw)
        logger.info(
            f"Extraction finished with status {result.status.value}",
            extra={"skills": len(result.person.skills)},
        )
        return result


def get_extractor() -> ProfileExtractor:
    """FastAPI dependency."""
    return ProfileExtractor()
