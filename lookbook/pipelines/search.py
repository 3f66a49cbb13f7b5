"""Browse and search pipelines over the content store and the vector index.

Three query paths:
1. Structured browse of projects (GROQ filters, in-process pagination)
2. Simple search of people and projects (GROQ, first-token prefix match)
3. Semantic search over the pgvector index (cosine distance ranking)
"""
from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Sequence

from sqlalchemy import Select, literal, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lookbook.content import ContentClient, GroqFilter, Person, Project
from lookbook.models import PersonIndexEntry, ProjectIndexEntry

logger = logging.getLogger(__name__)

DEFAULT_PER_PAGE = 12
MAX_PER_PAGE = 50
DEFAULT_SEARCH_LIMIT = 10
MAX_SEARCH_LIMIT = 30

# (criteria attribute, document field)
BOOLEAN_FLAGS: tuple[tuple[str, str], ...] = (
    ("has_demo_video", "hasDemoVideo"),
    ("open_to_relocate", "openToRelocate"),
    ("open_to_work", "openToWork"),
    ("freelance", "freelance"),
    ("nyc_based", "nycBased"),
    ("remote_only", "remoteOnly"),
)


class SearchError(Exception):
    """Raised when a search sub-query fails."""
    pass


class SearchType(str, Enum):
    PEOPLE = "people"
    PROJECTS = "projects"
    ALL = "all"


def clamp(value: int, low: int, high: int) -> int:
    return min(max(value, low), high)


# Structured browse

@dataclass
class BrowseCriteria:
    """Project browse filters. ``None`` means no constraint."""
    search: str | None = None
    cohort: str | None = None
    industries: list[str] = field(default_factory=list)
    has_demo_video: bool | None = None
    open_to_relocate: bool | None = None
    open_to_work: bool | None = None
    freelance: bool | None = None
    nyc_based: bool | None = None
    remote_only: bool | None = None
    page: int | None = None
    per_page: int | None = None


@dataclass
class Pagination:
    page: int
    per_page: int
    total: int
    total_pages: int

    def to_dict(self) -> dict[str, int]:
        return {
            "page": self.page,
            "perPage": self.per_page,
            "total": self.total,
            "totalPages": self.total_pages,
        }


@dataclass
class BrowseResult:
    items: list[Project]
    pagination: Pagination


def build_browse_filter(criteria: BrowseCriteria) -> GroqFilter:
    """Translate criteria into a conjunction of bound GROQ predicates."""
    groq_filter = GroqFilter()

    term = (criteria.search or "").strip()
    if term:
        groq_filter.match_any(["title", "summary"], "search", f"*{term}*")

    if criteria.cohort:
        groq_filter.equals("cohort", "cohort", criteria.cohort)

    if criteria.industries:
        groq_filter.contains_all("industries", "industry", criteria.industries)

    for attr, doc_field in BOOLEAN_FLAGS:
        value = getattr(criteria, attr)
        if isinstance(value, bool):
            groq_filter.equals(doc_field, doc_field, value)

    return groq_filter


def paginate(items: Sequence[Any], page: int | None, per_page: int | None) -> tuple[list[Any], Pagination]:
    """Slice ``items`` for the requested page; page >= 1, per_page in [1, 50]."""
    page = max(1, 1 if page is None else page)
    per_page = clamp(DEFAULT_PER_PAGE if per_page is None else per_page, 1, MAX_PER_PAGE)
    total = len(items)
    total_pages = math.ceil(total / per_page)
    start = (page - 1) * per_page
    return list(items[start:start + per_page]), Pagination(
        page=page,
        per_page=per_page,
        total=total,
        total_pages=total_pages,
    )


async def browse_projects(client: ContentClient, criteria: BrowseCriteria) -> BrowseResult:
    groq_filter = build_browse_filter(criteria)
    matches = await client.browse_projects(groq_filter)
    items, pagination = paginate(matches, criteria.page, criteria.per_page)
    logger.info(f"Browse matched {pagination.total} projects, returning page {pagination.page}")
    return BrowseResult(items=items, pagination=pagination)


# Simple and semantic search

@dataclass
class SearchQuery:
    q: str = ""
    skills: list[str] = field(default_factory=list)
    sectors: list[str] = field(default_factory=list)
    open_to_work: bool | None = None
    type: SearchType = SearchType.ALL
    limit: int | None = None

    @property
    def clamped_limit(self) -> int:
        limit = DEFAULT_SEARCH_LIMIT if self.limit is None else self.limit
        return clamp(limit, 1, MAX_SEARCH_LIMIT)

    @property
    def wants_people(self) -> bool:
        return self.type in (SearchType.PEOPLE, SearchType.ALL)

    @property
    def wants_projects(self) -> bool:
        return self.type in (SearchType.PROJECTS, SearchType.ALL)


@dataclass
class SearchResults:
    people: list[dict[str, Any]] = field(default_factory=list)
    projects: list[dict[str, Any]] = field(default_factory=list)


def first_token_term(q: str | None) -> str | None:
    """Prefix pattern for the first whitespace token only (``"react*"``).

    Later tokens are ignored: "machine learning engineer" matches on
    ``machine*`` alone.
    """
    tokens = (q or "").split()
    return f"{tokens[0]}*" if tokens else None


async def _empty() -> list[dict[str, Any]]:
    return []


async def simple_search(client: ContentClient, query: SearchQuery) -> SearchResults:
    """Run the people and projects GROQ searches concurrently."""
    term = first_token_term(query.q)
    limit = query.clamped_limit

    people_task = (
        client.search_people(term=term, skills=query.skills, open_to_work=query.open_to_work, limit=limit)
        if query.wants_people else _empty()
    )
    projects_task = (
        client.search_projects(term=term, skills=query.skills, sectors=query.sectors, limit=limit)
        if query.wants_projects else _empty()
    )

    people, projects = await asyncio.gather(people_task, projects_task)
    return SearchResults(people=people, projects=projects)


def _people_statement(query: SearchQuery, vector: list[float] | None) -> Select:
    table = PersonIndexEntry
    score = (1 - table.embedding.cosine_distance(vector)) if vector is not None else literal(0.0)
    stmt = select(
        table.slug,
        table.name,
        table.title,
        table.skills,
        table.open_to_work,
        score.label("score"),
    )
    if isinstance(query.open_to_work, bool):
        stmt = stmt.where(table.open_to_work == query.open_to_work)
    if query.skills:
        stmt = stmt.where(table.skills.contains(query.skills))

    order = table.embedding.cosine_distance(vector) if vector is not None else table.name.asc()
    return stmt.order_by(order).limit(query.clamped_limit)


def _projects_statement(query: SearchQuery, vector: list[float] | None) -> Select:
    table = ProjectIndexEntry
    score = (1 - table.embedding.cosine_distance(vector)) if vector is not None else literal(0.0)
    stmt = select(
        table.slug,
        table.title,
        table.summary,
        table.skills,
        table.sectors,
        score.label("score"),
    )
    if query.skills:
        stmt = stmt.where(table.skills.contains(query.skills))
    if query.sectors:
        stmt = stmt.where(table.sectors.contains(query.sectors))

    order = table.embedding.cosine_distance(vector) if vector is not None else table.title.asc()
    return stmt.order_by(order).limit(query.clamped_limit)


async def _run(session_maker: async_sessionmaker[AsyncSession], stmt: Select) -> list[dict[str, Any]]:
    try:
        async with session_maker() as session:
            result = await session.execute(stmt)
            return [dict(row) for row in result.mappings().all()]
    except SQLAlchemyError as e:
        logger.error(f"Index query failed: {e}")
        raise SearchError(f"Index query failed: {e}") from e


async def semantic_search(
    session_maker: async_sessionmaker[AsyncSession],
    query: SearchQuery,
    embed: Callable[[str], Awaitable[list[float]]],
) -> SearchResults:
    """Rank index rows by similarity to ``q``; fall back to name/title order."""
    vector = await embed(query.q.strip()) if query.q.strip() else None

    people_task = (
        _run(session_maker, _people_statement(query, vector)) if query.wants_people else _empty()
    )
    projects_task = (
        _run(session_maker, _projects_statement(query, vector)) if query.wants_projects else _empty()
    )

    people, projects = await asyncio.gather(people_task, projects_task)
    for row in people + projects:
        row["score"] = float(row["score"])
    return SearchResults(people=people, projects=projects)


# In-process listing filters

def filter_people(
    people: Sequence[Person],
    *,
    q: str | None = None,
    skills: Sequence[str] = (),
    open_only: bool = False,
) -> list[Person]:
    """Case-insensitive name/title substring, all-of skills, open-to-work toggle."""
    needle = (q or "").strip().lower()
    matches = []
    for person in people:
        if needle:
            haystacks = (person.name or "", person.title or "")
            if not any(needle in h.lower() for h in haystacks):
                continue
        if not all(skill in person.skills for skill in skills):
            continue
        if open_only and not person.open_to_work:
            continue
        matches.append(person)
    return matches


def filter_projects(
    projects: Sequence[Project],
    *,
    skills: Sequence[str] = (),
    sectors: Sequence[str] = (),
) -> list[Project]:
    return [
        p for p in projects
        if all(s in p.skills for s in skills) and all(s in p.sectors for s in sectors)
    ]
