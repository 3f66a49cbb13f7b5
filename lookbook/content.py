"""Content store client: GROQ queries against the Sanity HTTP API.

User input never reaches a query string. Filters are assembled with
``GroqFilter`` which emits ``$name`` placeholders and a matching params
dict; values travel as JSON-encoded bind variables.
"""
from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field

from .config import SanitySettings, settings

logger = logging.getLogger(__name__)


class ContentStoreError(Exception):
    """Raised when a content store query fails."""
    pass


# Document models

class _Document(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ExperienceEntry(_Document):
    org: str | None = None
    role: str | None = None
    date_from: str | None = Field(default=None, alias="dateFrom")
    date_to: str | None = Field(default=None, alias="dateTo")
    summary: str | None = None


class PersonLinks(_Document):
    linkedin: str | None = None
    github: str | None = None
    website: str | None = None
    x: str | None = None


class TeamMember(_Document):
    slug: str
    name: str | None = None
    image: dict[str, Any] | None = None


class ProjectSummary(_Document):
    """Project as embedded in a person detail page."""
    slug: str
    title: str | None = None
    summary: str | None = None
    skills: list[str] = Field(default_factory=list)
    sectors: list[str] = Field(default_factory=list)
    cover_url: str | None = Field(default=None, alias="coverUrl")


class Person(_Document):
    slug: str
    name: str | None = None
    title: str | None = None
    bio: str | None = None
    skills: list[str] = Field(default_factory=list)
    open_to_work: bool | None = Field(default=None, alias="openToWork")
    highlights: list[str] = Field(default_factory=list)
    industry_expertise: list[str] = Field(default_factory=list, alias="industryExpertise")
    links: PersonLinks | None = None
    experience: list[ExperienceEntry] = Field(default_factory=list)
    photo: dict[str, Any] | None = None
    projects: list[ProjectSummary] = Field(default_factory=list)


class Project(_Document):
    slug: str
    title: str | None = None
    summary: str | None = None
    main_image: dict[str, Any] | None = Field(default=None, alias="mainImage")
    skills: list[str] = Field(default_factory=list)
    sectors: list[str] = Field(default_factory=list)
    cohort: str | None = None
    industries: list[str] = Field(default_factory=list)
    has_demo_video: bool | None = Field(default=None, alias="hasDemoVideo")
    open_to_relocate: bool | None = Field(default=None, alias="openToRelocate")
    open_to_work: bool | None = Field(default=None, alias="openToWork")
    freelance: bool | None = None
    nyc_based: bool | None = Field(default=None, alias="nycBased")
    remote_only: bool | None = Field(default=None, alias="remoteOnly")
    team: list[TeamMember] = Field(default_factory=list)
    github_url: str | None = Field(default=None, alias="githubUrl")
    live_url: str | None = Field(default=None, alias="liveUrl")


def _nulls_to_defaults(doc: dict[str, Any]) -> dict[str, Any]:
    # GROQ projections yield null for missing arrays; let model defaults apply
    return {k: v for k, v in doc.items() if v is not None}


def parse_people(rows: list[dict[str, Any]] | None) -> list[Person]:
    return [Person.model_validate(_nulls_to_defaults(r)) for r in rows or []]


def parse_projects(rows: list[dict[str, Any]] | None) -> list[Project]:
    projects = []
    for row in rows or []:
        row = _nulls_to_defaults(row)
        row["team"] = [_nulls_to_defaults(m) for m in row.get("team", []) if m]
        projects.append(Project.model_validate(row))
    return projects


# Query construction

class GroqFilter:
    """Parameterized builder for a conjunction of GROQ predicates.

    Field names come from code; values are always bound as ``$params``.
    """

    def __init__(self) -> None:
        self.clauses: list[str] = []
        self.params: dict[str, Any] = {}

    def _bind(self, name: str, value: Any) -> str:
        self.params[name] = value
        return f"${name}"

    def match_any(self, fields: list[str], name: str, pattern: str) -> GroqFilter:
        """Any of ``fields`` matches the wildcard ``pattern``."""
        placeholder = self._bind(name, pattern)
        self.clauses.append("(" + " || ".join(f"{f} match {placeholder}" for f in fields) + ")")
        return self

    def equals(self, field: str, name: str, value: Any) -> GroqFilter:
        self.clauses.append(f"{field} == {self._bind(name, value)}")
        return self

    def contains_all(self, field: str, prefix: str, values: list[str]) -> GroqFilter:
        """Every value must be present in the ``field`` array."""
        checks = [f"{self._bind(f'{prefix}{i}', v)} in {field}" for i, v in enumerate(values)]
        if checks:
            self.clauses.append("(" + " && ".join(checks) + ")")
        return self

    def build(self) -> str:
        """Return the clause suffix to append after the base predicate."""
        if not self.clauses:
            return ""
        return " && " + " && ".join(self.clauses)

    def __bool__(self) -> bool:
        return bool(self.clauses)


NOT_DRAFT = '!(_id in path("drafts.**"))'

TEAM_PROJECTION = '"team": team[]->{"slug": slug.current, name, image}'

PROJECT_PROJECTION = f"""{{
  "slug": slug.current,
  title,
  summary,
  mainImage {{
    asset->,
    alt
  }},
  skills,
  sectors,
  cohort,
  industries,
  hasDemoVideo,
  openToRelocate,
  openToWork,
  freelance,
  nycBased,
  remoteOnly,
  {TEAM_PROJECTION},
  githubUrl,
  liveUrl
}}"""

ALL_PEOPLE_QUERY = """*[_type=="person"]{
  "slug": slug.current,
  name,
  title,
  skills,
  openToWork,
  photo{
    alt,
    asset,
    "url": asset->url,
    "lqip": asset->metadata.lqip
  }
} | order(name asc)"""

PERSON_BY_SLUG_QUERY = """*[_type=="person" && slug.current==$slug][0]{
  "slug": slug.current,
  name,
  title,
  bio,
  skills,
  openToWork,
  highlights,
  industryExpertise,
  links,
  experience[]{
    org,
    role,
    dateFrom,
    dateTo,
    summary
  },
  photo{
    alt,
    asset,
    "url": asset->url,
    "lqip": asset->metadata.lqip
  },
  "projects": *[_type=="project" && references(^._id)]{
    "slug": slug.current,
    title,
    summary,
    skills,
    sectors,
    "coverUrl": coalesce(cover.asset->url, image.asset->url)
  } | order(title asc)
}"""

ALL_PROJECTS_QUERY = f'*[_type=="project"] | order(title asc) {PROJECT_PROJECTION}'

PROJECT_BY_SLUG_QUERY = f'*[_type=="project" && slug.current==$slug][0] {PROJECT_PROJECTION}'

BROWSE_PROJECTS_QUERY = '*[_type == "project" && ' + NOT_DRAFT + "{filters}] | order(title asc) " + PROJECT_PROJECTION

SEARCH_PEOPLE_QUERY = """*[
  _type == "person" && !(_id in path("drafts.**")) &&
  (!defined($open) || openToWork == $open) &&
  (
    !defined($term) ||
    name match $term || title match $term
  ) &&
  (
    !defined($skills) || count($skills) == 0 ||
    count((skills)[@ in $skills]) == count($skills)
  )
]|order(name asc)[0...$limit]{
  "slug": slug.current,
  name,
  title,
  skills,
  "open_to_work": coalesce(openToWork, false)
}"""

SEARCH_PROJECTS_QUERY = """*[
  _type == "project" && !(_id in path("drafts.**")) &&
  (
    !defined($term) ||
    title match $term || summary match $term
  ) &&
  (
    !defined($skills) || count($skills) == 0 ||
    count((skills)[@ in $skills]) == count($skills)
  ) &&
  (
    !defined($sectors) || count($sectors) == 0 ||
    count((sectors)[@ in $sectors]) == count($sectors)
  )
]|order(title asc)[0...$limit]{
  "slug": slug.current,
  title,
  summary,
  skills,
  sectors
}"""


class ContentClient:
    """Thin async client for Sanity's query endpoint."""

    def __init__(
        self,
        config: SanitySettings | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config or settings.sanity
        self._http = http_client

    @property
    def query_url(self) -> str:
        host = "apicdn.sanity.io" if self.config.use_cdn else "api.sanity.io"
        return (
            f"https://{self.config.project_id}.{host}"
            f"/v{self.config.api_version}/data/query/{self.config.dataset}"
        )

    def _headers(self) -> dict[str, str]:
        if self.config.token:
            return {"Authorization": f"Bearer {self.config.token}"}
        return {}

    async def fetch(self, query: str, params: dict[str, Any] | None = None) -> Any:
        """Run a GROQ query and return its ``result``.

        Raises:
            ContentStoreError: On transport errors or non-2xx responses
        """
        body = {"query": query, "params": params or {}}
        try:
            if self._http is not None:
                response = await self._http.post(self.query_url, json=body, headers=self._headers())
            else:
                async with httpx.AsyncClient(timeout=30.0) as client:
                    response = await client.post(self.query_url, json=body, headers=self._headers())
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"Content store returned {e.response.status_code}: {e.response.text[:200]}")
            raise ContentStoreError(f"Content query failed with status {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error(f"Content store request failed: {e}")
            raise ContentStoreError(f"Content query failed: {e}") from e

        return response.json().get("result")

    async def get_all_people(self) -> list[Person]:
        return parse_people(await self.fetch(ALL_PEOPLE_QUERY))

    async def get_person_by_slug(self, slug: str) -> Person | None:
        row = await self.fetch(PERSON_BY_SLUG_QUERY, {"slug": slug})
        if not row:
            return None
        row = _nulls_to_defaults(row)
        row["projects"] = [_nulls_to_defaults(p) for p in row.get("projects", []) if p]
        return Person.model_validate(row)

    async def get_all_projects(self) -> list[Project]:
        return parse_projects(await self.fetch(ALL_PROJECTS_QUERY))

    async def get_project_by_slug(self, slug: str) -> Project | None:
        row = await self.fetch(PROJECT_BY_SLUG_QUERY, {"slug": slug})
        if not row:
            return None
        return parse_projects([row])[0]

    async def browse_projects(self, groq_filter: GroqFilter) -> list[Project]:
        query = BROWSE_PROJECTS_QUERY.replace("{filters}", groq_filter.build())
        return parse_projects(await self.fetch(query, groq_filter.params))

    async def search_people(
        self,
        *,
        term: str | None,
        skills: list[str],
        open_to_work: bool | None,
        limit: int,
    ) -> list[dict[str, Any]]:
        params = {"term": term, "skills": skills, "open": open_to_work, "limit": limit}
        return await self.fetch(SEARCH_PEOPLE_QUERY, params) or []

    async def search_projects(
        self,
        *,
        term: str | None,
        skills: list[str],
        sectors: list[str],
        limit: int,
    ) -> list[dict[str, Any]]:
        params = {"term": term, "skills": skills, "sectors": sectors, "limit": limit}
        return await self.fetch(SEARCH_PROJECTS_QUERY, params) or []


_default_client: ContentClient | None = None


def get_content_client() -> ContentClient:
    """FastAPI dependency returning the shared content client."""
    global _default_client
    if _default_client is None:
        _default_client = ContentClient()
    return _default_client
