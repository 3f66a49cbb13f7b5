"""
Pytest configuration and shared fixtures for Lookbook tests.

Test Categories:
- unit: Fast tests with no external dependencies

Nothing here talks to Sanity, Postgres, OpenAI or Anthropic: the content
store and the database are replaced by in-memory fakes, and provider clients
are mocked per test.
"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from lookbook.cache import PageCache
from lookbook.content import Person, Project, TeamMember


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")


def make_person(slug, **fields):
    fields.setdefault("name", slug.replace("-", " ").title())
    return Person(slug=slug, **fields)


def make_project(slug, **fields):
    fields.setdefault("title", slug.replace("-", " ").title())
    team = fields.pop("team", [])
    return Project(slug=slug, team=[TeamMember(slug=s, name=s.title()) for s in team], **fields)


class FakeContent:
    """In-memory stand-in for ``ContentClient``."""

    def __init__(self, people=(), projects=()):
        self.people = list(people)
        self.projects = list(projects)
        self.calls = []
        self.browse_filters = []

    async def get_all_people(self):
        self.calls.append("get_all_people")
        return list(self.people)

    async def get_person_by_slug(self, slug):
        self.calls.append(("get_person_by_slug", slug))
        return next((p for p in self.people if p.slug == slug), None)

    async def get_all_projects(self):
        self.calls.append("get_all_projects")
        return list(self.projects)

    async def get_project_by_slug(self, slug):
        self.calls.append(("get_project_by_slug", slug))
        return next((p for p in self.projects if p.slug == slug), None)

    async def browse_projects(self, groq_filter):
        self.browse_filters.append(groq_filter)
        return list(self.projects)

    async def search_people(self, **kwargs):
        self.calls.append(("search_people", kwargs))
        return [{"slug": p.slug, "name": p.name} for p in self.people]

    async def search_projects(self, **kwargs):
        self.calls.append(("search_projects", kwargs))
        return [{"slug": p.slug, "title": p.title} for p in self.projects]


class FakeSession:
    def __init__(self, maker):
        self.maker = maker

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def execute(self, stmt):
        if self.maker.fail_with is not None:
            raise self.maker.fail_with
        self.maker.statements.append(stmt)
        result = MagicMock()
        result.scalars.return_value.all.return_value = list(self.maker.existing_slugs)
        result.mappings.return_value.all.return_value = [dict(r) for r in self.maker.rows]
        return result

    def add(self, obj):
        self.maker.added.append(obj)

    async def commit(self):
        if self.maker.fail_with is not None:
            raise self.maker.fail_with
        self.maker.commits += 1


class FakeSessionMaker:
    """Callable returning async-context sessions that record what they run."""

    def __init__(self, existing_slugs=(), rows=(), fail_with=None):
        self.existing_slugs = list(existing_slugs)
        self.rows = list(rows)
        self.fail_with = fail_with
        self.statements = []
        self.added = []
        self.commits = 0

    def __call__(self):
        return FakeSession(self)


@pytest.fixture
def people():
    return [
        make_person("ada-lovelace", title="Staff Engineer", skills=["Python", "React"], open_to_work=True),
        make_person("grace-hopper", title="Compiler Lead", skills=["Go", "React"], open_to_work=False),
        make_person("alan-turing", title="Researcher", skills=["Python"]),
    ]


@pytest.fixture
def projects():
    return [
        make_project(
            "payments-hub",
            summary="Payment rails for small shops",
            skills=["React", "Postgres"],
            sectors=["Fintech"],
            industries=["Fintech"],
            team=["ada-lovelace"],
        ),
        make_project(
            "care-notes",
            summary="Clinical note taking",
            skills=["Python"],
            sectors=["Health"],
            industries=["Health"],
            team=["alan-turing", "ada-lovelace"],
        ),
    ]


@pytest.fixture
def fake_content(people, projects):
    return FakeContent(people=people, projects=projects)


@pytest.fixture
def session_maker():
    return FakeSessionMaker()


@pytest.fixture
def page_cache():
    return PageCache(ttl_seconds=300)


@pytest.fixture
def embed():
    """Single-text embedder returning a fixed small vector."""
    return AsyncMock(return_value=[0.1, 0.2, 0.3])


@pytest.fixture
def embed_many():
    """Batch embedder returning one vector per input."""

    async def _embed(texts):
        return [[float(len(t)), 0.0, 1.0] for t in texts]

    return AsyncMock(side_effect=_embed)
