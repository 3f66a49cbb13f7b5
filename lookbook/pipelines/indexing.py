"""Semantic index job: embed every person and project and upsert by slug.

Records are embedded ``INDEXING_BATCH_SIZE`` at a time (default one per
provider call) and each row is committed on its own, so a failure midway
leaves earlier rows in place. Re-running overwrites rows in place.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterator, Sequence, TypeVar

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lookbook.config import settings
from lookbook.content import ContentClient, Person, Project
from lookbook.models import PersonIndexEntry, ProjectIndexEntry
from lookbook.pipelines.normalization import join_fields

logger = logging.getLogger(__name__)

T = TypeVar("T")

EmbedMany = Callable[[list[str]], Awaitable[list[list[float]]]]


class IndexingError(Exception):
    """Raised when writing to the index fails."""
    pass


@dataclass
class IndexingReport:
    people: int = 0
    projects: int = 0
    pruned: dict[str, int] = field(default_factory=lambda: {"people": 0, "projects": 0})


def person_content(person: Person) -> str:
    return join_fields(person.name, person.title, " ".join(person.skills))


def project_content(project: Project) -> str:
    return join_fields(
        project.title,
        project.summary,
        " ".join(project.skills),
        " ".join(project.sectors),
    )


def person_row(person: Person, content: str, embedding: list[float]) -> dict[str, Any]:
    return {
        "slug": person.slug,
        "name": person.name,
        "title": person.title,
        "skills": list(person.skills),
        "open_to_work": bool(person.open_to_work),
        "content": content,
        "embedding": embedding,
    }


def project_row(project: Project, content: str, embedding: list[float]) -> dict[str, Any]:
    return {
        "slug": project.slug,
        "title": project.title,
        "summary": project.summary,
        "skills": list(project.skills),
        "sectors": list(project.sectors),
        "content": content,
        "embedding": embedding,
    }


def upsert_statement(model: type[PersonIndexEntry] | type[ProjectIndexEntry], row: dict[str, Any]):
    """``INSERT ... ON CONFLICT (slug) DO UPDATE`` overwriting every column."""
    stmt = insert(model).values(**row)
    return stmt.on_conflict_do_update(
        index_elements=[model.slug],
        set_={column: stmt.excluded[column] for column in row if column != "slug"},
    )


def batched(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class SemanticIndexer:
    """Fetches all documents, embeds them and upserts the index tables."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        content: ContentClient,
        embed_many: EmbedMany,
        *,
        batch_size: int | None = None,
    ) -> None:
        self.session_maker = session_maker
        self.content = content
        self.embed_many = embed_many
        self.batch_size = batch_size or settings.indexing.batch_size

    async def _write(self, stmt) -> None:
        try:
            async with self.session_maker() as session:
                await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Index write failed: {e}")
            raise IndexingError(f"Index write failed: {e}") from e

    async def index_people(self, people: Sequence[Person]) -> int:
        for batch in batched(people, self.batch_size):
            contents = [person_content(p) for p in batch]
            vectors = await self.embed_many(contents)
            for person, content, vector in zip(batch, contents, vectors):
                await self._write(upsert_statement(PersonIndexEntry, person_row(person, content, vector)))
        logger.info(f"Indexed {len(people)} people")
        return len(people)

    async def index_projects(self, projects: Sequence[Project]) -> int:
        for batch in batched(projects, self.batch_size):
            contents = [project_content(p) for p in batch]
            vectors = await self.embed_many(contents)
            for project, content, vector in zip(batch, contents, vectors):
                await self._write(upsert_statement(ProjectIndexEntry, project_row(project, content, vector)))
        logger.info(f"Indexed {len(projects)} projects")
        return len(projects)

    async def prune(
        self,
        model: type[PersonIndexEntry] | type[ProjectIndexEntry],
        live_slugs: set[str],
    ) -> int:
        """Delete index rows whose slug no longer exists upstream.

        An empty ``live_slugs`` is treated as a failed fetch and prunes nothing.
        """
        if not live_slugs:
            logger.warning(f"Skipping prune of {model.__tablename__}: no live slugs")
            return 0

        try:
            async with self.session_maker() as session:
                result = await session.execute(select(model.slug))
                stale = sorted(set(result.scalars().all()) - live_slugs)
                if stale:
                    await session.execute(delete(model).where(model.slug.in_(stale)))
                    await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Index prune failed: {e}")
            raise IndexingError(f"Index prune failed: {e}") from e

        if stale:
            logger.info(f"Pruned {len(stale)} stale rows from {model.__tablename__}")
        return len(stale)

    async def run(self, *, prune: bool = False) -> IndexingReport:
        people, projects = await asyncio.gather(
            self.content.get_all_people(),
            self.content.get_all_projects(),
        )

        report = IndexingReport()
        report.people = await self.index_people(people)
        report.projects = await self.index_projects(projects)

        if prune:
            report.pruned["people"] = await self.prune(PersonIndexEntry, {p.slug for p in people})
            report.pruned["projects"] = await self.prune(ProjectIndexEntry, {p.slug for p in projects})

        return report
