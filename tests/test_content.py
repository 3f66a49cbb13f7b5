"""
Tests for the content store client and the parameterized GROQ builder.
"""
import json

import httpx
import pytest

from lookbook.config import SanitySettings
from lookbook.content import (
    BROWSE_PROJECTS_QUERY,
    PERSON_BY_SLUG_QUERY,
    ContentClient,
    ContentStoreError,
    GroqFilter,
    parse_projects,
)


def _client(handler, **config):
    config.setdefault("project_id", "abc123")
    config.setdefault("dataset", "production")
    transport = httpx.MockTransport(handler)
    return ContentClient(
        SanitySettings(**config),
        http_client=httpx.AsyncClient(transport=transport),
    )


@pytest.mark.unit
class TestGroqFilter:
    """Clauses carry placeholders; values live in params."""

    def test_empty_filter(self):
        groq_filter = GroqFilter()
        assert not groq_filter
        assert groq_filter.build() == ""
        assert groq_filter.params == {}

    def test_match_any(self):
        groq_filter = GroqFilter().match_any(["title", "summary"], "search", "*pay*")
        assert groq_filter.build() == " && (title match $search || summary match $search)"
        assert groq_filter.params == {"search": "*pay*"}

    def test_contains_all(self):
        groq_filter = GroqFilter().contains_all("industries", "industry", ["Fintech", "Health"])
        assert "($industry0 in industries && $industry1 in industries)" in groq_filter.build()
        assert groq_filter.params == {"industry0": "Fintech", "industry1": "Health"}

    def test_contains_all_empty_adds_nothing(self):
        assert not GroqFilter().contains_all("industries", "industry", [])

    def test_hostile_value_stays_out_of_query(self):
        hostile = '"] | *[_type == "secret"'
        groq_filter = GroqFilter().equals("cohort", "cohort", hostile)
        query = BROWSE_PROJECTS_QUERY.replace("{filters}", groq_filter.build())
        assert hostile not in query
        assert groq_filter.params["cohort"] == hostile


@pytest.mark.unit
class TestContentClient:
    """HTTP behaviour of the Sanity query client."""

    def test_query_url(self):
        client = ContentClient(SanitySettings(project_id="abc123", dataset="staging", use_cdn=True))
        assert client.query_url == "https://abc123.apicdn.sanity.io/v2024-01-01/data/query/staging"

    async def test_person_by_slug_sends_bind_params(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            seen["host"] = request.url.host
            return httpx.Response(200, json={"result": {
                "slug": "ada", "name": "Ada", "skills": None, "projects": [{"slug": "p1", "title": "P1"}],
            }})

        person = await _client(handler).get_person_by_slug("ada")

        assert seen["host"] == "abc123.api.sanity.io"
        assert seen["body"]["query"] == PERSON_BY_SLUG_QUERY
        assert seen["body"]["params"] == {"slug": "ada"}
        assert person.name == "Ada"
        assert person.skills == []
        assert person.projects[0].slug == "p1"

    async def test_missing_person_is_none(self):
        client = _client(lambda request: httpx.Response(200, json={"result": None}))
        assert await client.get_person_by_slug("nobody") is None

    async def test_token_sent_as_bearer(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, json={"result": []})

        await _client(handler, token="tok").get_all_people()
        assert seen["auth"] == "Bearer tok"

    async def test_browse_sends_filter_params(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"result": [{"slug": "p1", "title": "P1", "team": [None]}]})

        groq_filter = GroqFilter().equals("freelance", "freelance", True)
        projects = await _client(handler).browse_projects(groq_filter)

        assert "freelance == $freelance" in seen["body"]["query"]
        assert "order(title asc)" in seen["body"]["query"]
        assert seen["body"]["params"] == {"freelance": True}
        assert projects[0].team == []

    async def test_search_people_params(self):
        seen = {}

        def handler(request):
            seen["params"] = json.loads(request.content)["params"]
            return httpx.Response(200, json={"result": None})

        rows = await _client(handler).search_people(term="react*", skills=["Go"], open_to_work=None, limit=10)

        assert rows == []
        assert seen["params"] == {"term": "react*", "skills": ["Go"], "open": None, "limit": 10}

    async def test_http_error_maps_to_content_store_error(self):
        client = _client(lambda request: httpx.Response(500, text="boom"))
        with pytest.raises(ContentStoreError, match="500"):
            await client.get_all_projects()

    async def test_transport_error_maps_to_content_store_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ContentStoreError):
            await _client(handler).get_all_people()


@pytest.mark.unit
def test_parse_projects_defaults_nulls():
    [project] = parse_projects([{"slug": "p1", "title": "P1", "skills": None, "sectors": None, "team": None}])
    assert project.skills == []
    assert project.sectors == []
    assert project.team == []
