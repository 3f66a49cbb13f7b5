"""FastAPI app: directory reads, browse/search, indexing, admin AI helpers,
revalidation and share/lead capture.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable
from urllib.parse import urlencode

from fastapi import BackgroundTasks, Body, Depends, FastAPI, Header, HTTPException, Query, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, StrictBool, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ai.embeddings import EmbeddingError, embed_single, embed_texts, get_model_info
from ai.extractor import ExtractionError, ProfileExtractor, get_extractor
from .cache import PageCache, get_page_cache
from .config import settings
from .content import ContentClient, ContentStoreError, get_content_client
from .db import dispose_engine, ensure_schema, get_session, get_session_maker, init_engine
from .logging_config import setup_logging
from .pipelines.events import (
    EventKind,
    LeadRequest,
    WebhookError,
    build_share_pack,
    forward_lead,
    load_insights,
    log_event,
    slug_list,
)
from .pipelines.indexing import IndexingError, SemanticIndexer
from .pipelines.preparation import extracted_from_payload, prepare_person
from .pipelines.revalidation import revalidate, secret_matches
from .pipelines.search import (
    BrowseCriteria,
    SearchError,
    SearchQuery,
    SearchType,
    browse_projects,
    filter_people,
    filter_projects,
    semantic_search,
    simple_search,
)
from .taxonomy import (
    array_to_comma_list,
    comma_list_to_array,
    unique_sectors_from_projects,
    unique_skills_from_people,
    unique_skills_from_projects,
)

logger = logging.getLogger(__name__)


# Pydantic request/response models
class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str


class ErrorResponse(BaseModel):
    """Error response."""
    ok: bool = False
    error: str
    detail: str | None = None


def _strings_only(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, str)]


class BrowseProjectsRequest(_CamelModel):
    """Structured project browse criteria."""
    search: str | None = None
    cohort: str | None = None
    industries: list[str] = Field(default_factory=list)
    has_demo_video: StrictBool | None = Field(default=None, alias="hasDemoVideo")
    open_to_relocate: StrictBool | None = Field(default=None, alias="openToRelocate")
    open_to_work: StrictBool | None = Field(default=None, alias="openToWork")
    freelance: StrictBool | None = None
    nyc_based: StrictBool | None = Field(default=None, alias="nycBased")
    remote_only: StrictBool | None = Field(default=None, alias="remoteOnly")
    page: int | None = None
    per_page: int | None = Field(default=None, alias="perPage")

    @field_validator("industries", mode="before")
    @classmethod
    def drop_non_string_industries(cls, v):
        return _strings_only(v)


class SearchRequest(_CamelModel):
    """Simple and semantic search body."""
    q: str = ""
    skills: list[str] = Field(default_factory=list)
    sectors: list[str] = Field(default_factory=list)
    open: StrictBool | None = None
    type: SearchType = SearchType.ALL
    limit: int | None = None

    @field_validator("skills", "sectors", mode="before")
    @classmethod
    def drop_non_string_tags(cls, v):
        return _strings_only(v)

    def to_query(self) -> SearchQuery:
        return SearchQuery(
            q=self.q.strip(),
            skills=self.skills,
            sectors=self.sectors,
            open_to_work=self.open,
            type=self.type,
            limit=self.limit,
        )


class ExtractRequest(_CamelModel):
    source_text: Any = Field(default=None, alias="sourceText")


class PrepareRequest(_CamelModel):
    extracted: Any = None
    source_text: str | None = Field(default=None, alias="sourceText")


def _text_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


class LeadBody(_CamelModel):
    email: str | None = None
    note: str | None = None
    people_slugs: Any = Field(default_factory=list, alias="peopleSlugs")
    project_slugs: Any = Field(default_factory=list, alias="projectSlugs")


class SharePackBody(_CamelModel):
    people_slugs: Any = Field(default_factory=list, alias="peopleSlugs")
    project_slugs: Any = Field(default_factory=list, alias="projectSlugs")
    requester_email: str | None = Field(default=None, alias="requesterEmail")


class IndexResponse(BaseModel):
    ok: bool
    people: int
    projects: int
    pruned: dict[str, int]


# Dependencies
def get_db_session_maker() -> async_sessionmaker[AsyncSession]:
    return get_session_maker()


def get_embedder() -> Callable[[str], Awaitable[list[float]]]:
    return embed_single


def get_batch_embedder() -> Callable[[list[str]], Awaitable[list[list[float]]]]:
    return embed_texts


async def get_schema_ready() -> None:
    await ensure_schema()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown logic."""
    # Startup
    setup_logging()
    init_engine()
    logger.info("Application starting up")

    yield

    # Shutdown
    await dispose_engine()
    logger.info("Application shutting down")


app = FastAPI(
    title="Lookbook",
    version=settings.version,
    description="People and project directory with semantic search",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:3001"],  # Frontend URLs
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers
def _error(status_code: int, error: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, detail=detail).model_dump(exclude_none=True),
    )


@app.exception_handler(HTTPException)
async def http_error_handler(request, exc: HTTPException):
    """Render HTTP errors in the common ``{ok, error}`` shape."""
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(ContentStoreError)
async def content_error_handler(request, exc: ContentStoreError):
    """Handle content store failures."""
    logger.error(f"Content store error: {exc}")
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))


@app.exception_handler(SearchError)
async def search_error_handler(request, exc: SearchError):
    """Handle index query failures."""
    logger.error(f"Search error: {exc}")
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))


@app.exception_handler(EmbeddingError)
async def embedding_error_handler(request, exc: EmbeddingError):
    """Handle embedding provider failures."""
    logger.error(f"Embedding error: {exc}")
    return _error(status.HTTP_502_BAD_GATEWAY, str(exc))


@app.exception_handler(IndexingError)
async def indexing_error_handler(request, exc: IndexingError):
    """Handle index write failures."""
    logger.error(f"Indexing error: {exc}")
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))


async def _record_event(
    session_maker: async_sessionmaker[AsyncSession],
    *,
    kind: str,
    requester_email: str | None,
    people_slugs: list[str],
    project_slugs: list[str],
    people_count: int | None = None,
    projects_count: int | None = None,
) -> None:
    """Background task: ensure the table exists, then log. Never raises."""
    try:
        await ensure_schema()
    except (SQLAlchemyError, OSError) as e:
        logger.debug(f"Event logging skipped, schema unavailable: {e}")
        return
    await log_event(
        session_maker,
        kind=kind,
        requester_email=requester_email,
        people_slugs=people_slugs,
        project_slugs=project_slugs,
        people_count=people_count,
        projects_count=projects_count,
    )


def _cache_key(path: str, **params: Any) -> str:
    present = {k: v for k, v in sorted(params.items()) if v not in (None, "", False)}
    return f"{path}?{urlencode(present)}" if present else path


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="ok",
        version=settings.version,
    )


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "app": settings.app_name,
        "version": settings.version,
        "embeddings": get_model_info(),
        "endpoints": {
            "health": "/health",
            "people": "/api/people",
            "projects": "/api/projects",
            "taxonomy": "/api/taxonomy",
            "browse_projects": "/api/browse/projects",
            "search": "/api/search",
            "search_simple": "/api/search/simple",
            "search_index": "/api/search/index",
            "ai_extract": "/api/ai/extract",
            "ai_prepare": "/api/ai/prepare",
            "revalidate": "/api/revalidate",
            "crm_lead": "/api/crm/lead",
            "sharepack": "/api/sharepack",
            "insights": "/api/insights",
            "docs": "/docs",
        },
    }


# Directory reads (cached, revalidated on content change)

@app.get("/api/people")
async def list_people(
    q: str | None = None,
    skills: str | None = None,
    open_: str | None = Query(default=None, alias="open"),
    content: ContentClient = Depends(get_content_client),
    cache: PageCache = Depends(get_page_cache),
):
    """List people, filtered by text, all-of skills and open-to-work."""
    selected_skills = comma_list_to_array(skills)
    open_only = open_ == "true"
    term = (q or "").strip().lower()

    async def render():
        people = await content.get_all_people()
        matches = filter_people(people, q=term, skills=selected_skills, open_only=open_only)
        return {
            "ok": True,
            "people": [p.model_dump(by_alias=True) for p in matches],
            "skills": unique_skills_from_people(people),
            "total": len(matches),
            "filters": {"q": term, "skills": array_to_comma_list(selected_skills), "open": open_only},
        }

    key = _cache_key("/people", q=term, skills=array_to_comma_list(selected_skills), open=open_only)
    return await cache.get_or_render(key, render)


@app.get("/api/people/{slug}")
async def get_person(
    slug: str,
    content: ContentClient = Depends(get_content_client),
    cache: PageCache = Depends(get_page_cache),
):
    """Person detail with experience and referencing projects."""
    path = f"/people/{slug}"
    cached = cache.get(path)
    if cached is not None:
        return cached

    person = await content.get_person_by_slug(slug)
    if person is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Person {slug} not found")

    payload = {"ok": True, "person": person.model_dump(by_alias=True)}
    cache.set(path, payload)
    return payload


@app.get("/api/projects")
async def list_projects(
    skills: str | None = None,
    sectors: str | None = None,
    content: ContentClient = Depends(get_content_client),
    cache: PageCache = Depends(get_page_cache),
):
    """List projects, filtered by all-of skills and sectors."""
    selected_skills = comma_list_to_array(skills)
    selected_sectors = comma_list_to_array(sectors)

    async def render():
        projects = await content.get_all_projects()
        matches = filter_projects(projects, skills=selected_skills, sectors=selected_sectors)
        return {
            "ok": True,
            "projects": [p.model_dump(by_alias=True) for p in matches],
            "skills": unique_skills_from_projects(projects),
            "sectors": unique_sectors_from_projects(projects),
            "total": len(matches),
            "filters": {
                "skills": array_to_comma_list(selected_skills),
                "sectors": array_to_comma_list(selected_sectors),
            },
        }

    key = _cache_key(
        "/projects",
        skills=array_to_comma_list(selected_skills),
        sectors=array_to_comma_list(selected_sectors),
    )
    return await cache.get_or_render(key, render)


@app.get("/api/projects/{slug}")
async def get_project(
    slug: str,
    content: ContentClient = Depends(get_content_client),
    cache: PageCache = Depends(get_page_cache),
):
    """Project detail with resolved team."""
    path = f"/projects/{slug}"
    cached = cache.get(path)
    if cached is not None:
        return cached

    project = await content.get_project_by_slug(slug)
    if project is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Project {slug} not found")

    payload = {"ok": True, "project": project.model_dump(by_alias=True)}
    cache.set(path, payload)
    return payload


@app.get("/api/taxonomy")
async def taxonomy(
    content: ContentClient = Depends(get_content_client),
    cache: PageCache = Depends(get_page_cache),
):
    """Unique skills and sectors across all projects."""

    async def render():
        projects = await content.get_all_projects()
        return {
            "ok": True,
            "skills": unique_skills_from_projects(projects),
            "sectors": unique_sectors_from_projects(projects),
        }

    return await cache.get_or_render("/taxonomy", render)


# Browse and search

@app.post("/api/browse/projects")
async def browse(
    request: BrowseProjectsRequest,
    content: ContentClient = Depends(get_content_client),
):
    """Filter projects with AND semantics and paginate the matches."""
    criteria = BrowseCriteria(**request.model_dump(by_alias=False))
    result = await browse_projects(content, criteria)
    return {
        "ok": True,
        "projects": [p.model_dump(by_alias=True) for p in result.items],
        "pagination": result.pagination.to_dict(),
    }


@app.post("/api/search/simple")
async def search_simple(
    request: SearchRequest,
    content: ContentClient = Depends(get_content_client),
):
    """First-token prefix search over people and projects in the content store."""
    results = await simple_search(content, request.to_query())
    return {"ok": True, "people": results.people, "projects": results.projects}


@app.post("/api/search")
async def search(
    request: SearchRequest,
    session_maker: async_sessionmaker[AsyncSession] = Depends(get_db_session_maker),
    embed: Callable[[str], Awaitable[list[float]]] = Depends(get_embedder),
):
    """Similarity search over the vector index (name/title order without ``q``)."""
    results = await semantic_search(session_maker, request.to_query(), embed)
    return {"ok": True, "people": results.people, "projects": results.projects}


@app.post("/api/search/index", response_model=IndexResponse)
async def search_index(
    x_index_secret: str | None = Header(default=None),
    secret: str | None = Query(default=None),
    prune: bool = Query(default=False),
    content: ContentClient = Depends(get_content_client),
    session_maker: async_sessionmaker[AsyncSession] = Depends(get_db_session_maker),
    embed_many: Callable[[list[str]], Awaitable[list[list[float]]]] = Depends(get_batch_embedder),
) -> IndexResponse:
    """Re-embed every person and project and upsert the index tables.

    The secret may be sent in the ``x-index-secret`` header or the
    ``secret`` query parameter.
    """
    if not secret_matches(x_index_secret or secret, settings.index_secret):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid secret")

    await ensure_schema()

    indexer = SemanticIndexer(session_maker, content, embed_many)
    report = await indexer.run(prune=prune)
    return IndexResponse(ok=True, people=report.people, projects=report.projects, pruned=report.pruned)


# Admin AI helpers

@app.post("/api/ai/extract")
async def ai_extract(
    request: ExtractRequest,
    extractor: ProfileExtractor = Depends(get_extractor),
):
    """Suggest a structured profile from pasted free text."""
    source_text = request.source_text
    if not isinstance(source_text, str) or len(source_text.strip()) < settings.extraction.min_chars:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Provide at least ~{settings.extraction.min_chars} characters of text.",
        )

    try:
        result = await extractor.extract(source_text)
    except ExtractionError as e:
        logger.error(f"Extraction failed: {e}")
        return _error(status.HTTP_502_BAD_GATEWAY, "Extraction failed")

    return {"ok": True, "data": result.person.to_dict(), "parse": result.status.value}


@app.post("/api/ai/prepare")
async def ai_prepare(request: PrepareRequest):
    """Normalize and moderate an extracted profile for admin confirmation."""
    if not isinstance(request.extracted, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing `extracted`")

    result = prepare_person(extracted_from_payload(request.extracted), source_text=request.source_text)
    return {
        "ok": True,
        "prepared": result.prepared.to_dict(),
        "moderation": result.moderation.to_dict(),
        "normalization": {
            "renamed": [r.to_dict() for r in result.normalization.renamed],
            "dropped": result.normalization.dropped,
        },
    }


# Revalidation

@app.post("/api/revalidate")
async def revalidate_pages(
    payload: Any = Body(default=None),
    x_revalidate_secret: str | None = Header(default=None),
    cache: PageCache = Depends(get_page_cache),
):
    """Invalidate cached listing and detail pages after a content change.

    The body is read as raw JSON so an unauthenticated caller always gets 401,
    whatever it sends.
    """
    if not secret_matches(x_revalidate_secret, settings.revalidate_secret):
        return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"message": "Invalid token"})

    body = payload if isinstance(payload, dict) else {}
    result = revalidate(
        cache,
        change_type=_text_or_none(body.get("type")),
        slug=_text_or_none(body.get("slug")),
        person_slugs=body.get("personSlugs"),
    )
    return result.to_dict()


# Share packs, leads and insights

@app.post("/api/crm/lead")
async def crm_lead(
    request: LeadBody,
    background_tasks: BackgroundTasks,
    session_maker: async_sessionmaker[AsyncSession] = Depends(get_db_session_maker),
):
    """Log a lead event and forward it to the CRM webhook when configured."""
    lead = LeadRequest(
        email=request.email,
        note=request.note,
        people_slugs=slug_list(request.people_slugs),
        project_slugs=slug_list(request.project_slugs),
    )
    background_tasks.add_task(
        _record_event,
        session_maker,
        kind=EventKind.LEAD,
        requester_email=lead.email,
        people_slugs=lead.people_slugs,
        project_slugs=lead.project_slugs,
    )

    try:
        forwarded = await forward_lead(lead)
    except WebhookError:
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"ok": False, "forwarded": False, "error": "Webhook failed"},
            background=background_tasks,
        )

    if not forwarded.forwarded:
        return {"ok": True, "forwarded": False, "reason": forwarded.reason}
    return {"ok": forwarded.ok, "forwarded": True, "status": forwarded.status}


@app.post("/api/sharepack")
async def sharepack(
    request: SharePackBody,
    background_tasks: BackgroundTasks,
    content: ContentClient = Depends(get_content_client),
    session_maker: async_sessionmaker[AsyncSession] = Depends(get_db_session_maker),
):
    """Assemble a share pack of selected people and projects."""
    people_slugs = slug_list(request.people_slugs)
    project_slugs = slug_list(request.project_slugs)
    requester_email = (request.requester_email or "").strip()

    pack = await build_share_pack(content, people_slugs=people_slugs, project_slugs=project_slugs)

    background_tasks.add_task(
        _record_event,
        session_maker,
        kind=EventKind.SHAREPACK,
        requester_email=requester_email,
        people_slugs=people_slugs,
        project_slugs=project_slugs,
        people_count=len(pack.people),
        projects_count=len(pack.projects),
    )
    return {"ok": True, "pack": pack.to_dict()}


@app.get("/api/insights")
async def insights(
    _: None = Depends(get_schema_ready),
    session: AsyncSession = Depends(get_session),
):
    """Usage totals and most-shared slugs."""
    try:
        summary = await load_insights(session)
    except SQLAlchemyError as e:
        logger.error(f"Unexpected error loading insights: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Internal server error: {str(e)}",
        )
    return {"ok": True, **summary.to_dict()}
