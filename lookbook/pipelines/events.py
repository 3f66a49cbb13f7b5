"""Share pack and lead events: append-only logging, CRM forwarding, insights."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lookbook.config import settings
from lookbook.content import ContentClient, Person, Project
from lookbook.models import ShareEvent

logger = logging.getLogger(__name__)

LEAD_SOURCE = "lookbook"


class EventKind:
    SHAREPACK = "sharepack"
    LEAD = "lead"


class WebhookError(Exception):
    """Raised when the CRM webhook cannot be reached."""
    pass


def slug_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [s for s in value if isinstance(s, str) and s]


async def log_event(
    session_maker: async_sessionmaker[AsyncSession],
    *,
    kind: str,
    requester_email: str | None,
    people_slugs: list[str],
    project_slugs: list[str],
    people_count: int | None = None,
    projects_count: int | None = None,
) -> bool:
    """Append one event row. Best effort: failures are logged and swallowed.

    Returns:
        True when the row was written
    """
    event = ShareEvent(
        kind=kind,
        requester_email=requester_email or None,
        people_count=len(people_slugs) if people_count is None else people_count,
        projects_count=len(project_slugs) if projects_count is None else projects_count,
        people_slugs=people_slugs,
        project_slugs=project_slugs,
    )
    try:
        async with session_maker() as session:
            session.add(event)
            await session.commit()
        return True
    except (SQLAlchemyError, OSError) as e:
        logger.debug(f"Event logging skipped: {e}")
        return False


# Leads

@dataclass
class LeadRequest:
    email: str | None = None
    note: str | None = None
    people_slugs: list[str] = field(default_factory=list)
    project_slugs: list[str] = field(default_factory=list)

    def webhook_payload(self) -> dict[str, Any]:
        return {
            "email": self.email,
            "note": self.note,
            "peopleSlugs": self.people_slugs,
            "projectSlugs": self.project_slugs,
            "source": LEAD_SOURCE,
        }


@dataclass
class ForwardResult:
    forwarded: bool
    ok: bool
    status: int | None = None
    reason: str | None = None


async def forward_lead(
    lead: LeadRequest,
    *,
    webhook_url: str | None = None,
    webhook_auth: str | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> ForwardResult:
    """POST the lead to the configured CRM webhook, if any.

    Raises:
        WebhookError: On transport failure
    """
    url = webhook_url if webhook_url is not None else settings.crm_webhook_url
    auth = webhook_auth if webhook_auth is not None else settings.crm_webhook_auth
    if not url:
        return ForwardResult(forwarded=False, ok=True, reason="No CRM_WEBHOOK_URL set")

    headers = {"Content-Type": "application/json"}
    if auth:
        headers["Authorization"] = auth

    try:
        if http_client is not None:
            response = await http_client.post(url, json=lead.webhook_payload(), headers=headers)
        else:
            async with httpx.AsyncClient(timeout=30.0) as client:
                response = await client.post(url, json=lead.webhook_payload(), headers=headers)
    except httpx.HTTPError as e:
        logger.error(f"CRM webhook failed: {e}")
        raise WebhookError(f"Webhook failed: {e}") from e

    logger.info(f"Lead forwarded with status {response.status_code}")
    return ForwardResult(forwarded=True, ok=response.is_success, status=response.status_code)


# Share packs

@dataclass
class SharePack:
    people: list[Person] = field(default_factory=list)
    projects: list[Project] = field(default_factory=list)
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": "Lookbook - Share Pack",
            "generatedAt": self.generated_at.isoformat(),
            "people": [
                {
                    "slug": p.slug,
                    "name": p.name,
                    "title": p.title,
                    "skills": p.skills,
                    "profile": f"/people/{p.slug}",
                }
                for p in self.people
            ],
            "projects": [
                {
                    "slug": pr.slug,
                    "title": pr.title,
                    "summary": pr.summary,
                    "skills": pr.skills,
                    "sectors": pr.sectors,
                    "project": f"/projects/{pr.slug}",
                }
                for pr in self.projects
            ],
        }


async def build_share_pack(
    content: ContentClient,
    *,
    people_slugs: list[str],
    project_slugs: list[str],
) -> SharePack:
    """Resolve slugs one by one; unknown slugs are skipped."""
    pack = SharePack()
    for slug in people_slugs:
        person = await content.get_person_by_slug(slug)
        if person:
            pack.people.append(person)
    for slug in project_slugs:
        project = await content.get_project_by_slug(slug)
        if project:
            pack.projects.append(project)
    return pack


# Insights

@dataclass
class SlugCount:
    slug: str
    n: int


@dataclass
class Insights:
    total: int
    last_30_days: int
    top_people: list[SlugCount]
    top_projects: list[SlugCount]

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "last30Days": self.last_30_days,
            "topPeople": [{"slug": c.slug, "n": c.n} for c in self.top_people],
            "topProjects": [{"slug": c.slug, "n": c.n} for c in self.top_projects],
        }


def _top_slugs_statement(column, limit: int):
    slugs = select(func.unnest(column).label("slug")).where(column.is_not(None)).subquery()
    return (
        select(slugs.c.slug, func.count().label("n"))
        .group_by(slugs.c.slug)
        .order_by(func.count().desc(), slugs.c.slug)
        .limit(limit)
    )


async def load_insights(session: AsyncSession, *, top: int = 10) -> Insights:
    since = datetime.now(timezone.utc) - timedelta(days=30)

    total = await session.scalar(select(func.count()).select_from(ShareEvent))
    recent = await session.scalar(
        select(func.count()).select_from(ShareEvent).where(ShareEvent.created_at >= since)
    )
    people = await session.execute(_top_slugs_statement(ShareEvent.people_slugs, top))
    projects = await session.execute(_top_slugs_statement(ShareEvent.project_slugs, top))

    return Insights(
        total=total or 0,
        last_30_days=recent or 0,
        top_people=[SlugCount(slug=r.slug, n=r.n) for r in people],
        top_projects=[SlugCount(slug=r.slug, n=r.n) for r in projects],
    )
