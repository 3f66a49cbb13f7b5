"""Core SQLAlchemy models (2.x style) for the Lookbook metadata store.

Two slug-keyed search index tables with pgvector embeddings, plus the
append-only share/lead event log.
"""

from __future__ import annotations

from datetime import datetime

from pgvector.sqlalchemy import Vector
from sqlalchemy import BigInteger, Boolean, DateTime, Integer, Text, func
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

EMBEDDING_DIM = 1536


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class PersonIndexEntry(Base):
    """Denormalized, embedded projection of a person document."""
    __tablename__ = "people_index"

    slug: Mapped[str] = mapped_column(Text, primary_key=True)
    name: Mapped[str | None] = mapped_column(Text)
    title: Mapped[str | None] = mapped_column(Text)
    skills: Mapped[list[str] | None] = mapped_column(ARRAY(Text))
    open_to_work: Mapped[bool | None] = mapped_column(Boolean)
    content: Mapped[str | None] = mapped_column(Text)
    embedding: Mapped[list[float] | None] = mapped_column(Vector(EMBEDDING_DIM))


class ProjectIndexEntry(Base):
    """Denormalized, embedded projection of a project document."""
    __tablename__ = "projects_index"

    slug: Mapped[str] = mapped_column(Text, primary_key=True)
    title: Mapped[str | None] = mapped_column(Text)
    summary: Mapped[str | None] = mapped_column(Text)
    skills: Mapped[list[str] | None] = mapped_column(ARRAY(Text))
    sectors: Mapped[list[str] | None] = mapped_column(ARRAY(Text))
    content: Mapped[str | None] = mapped_column(Text)
    embedding: Mapped[list[float] | None] = mapped_column(Vector(EMBEDDING_DIM))


class ShareEvent(Base):
    """Share pack / lead log. Rows are inserted once and never updated."""
    __tablename__ = "sharepack_events"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    kind: Mapped[str] = mapped_column(Text, nullable=False)  # sharepack | lead
    requester_email: Mapped[str | None] = mapped_column(Text)
    people_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    projects_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    people_slugs: Mapped[list[str] | None] = mapped_column(ARRAY(Text))
    project_slugs: Mapped[list[str] | None] = mapped_column(ARRAY(Text))
