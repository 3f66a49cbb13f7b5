"""
Tests for profile extraction, skill normalization, moderation, preparation
and the embedding client wrapper.
"""
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import anthropic
import httpx
import openai
import pytest

from ai.embeddings import EmbeddingError, embed_single, embed_texts, prepare_embedding_input
from ai.extractor import (
    ExtractedPerson,
    ExtractionError,
    ParseStatus,
    ProfileExtractor,
    coerce_person,
    parse_extraction,
)
from ai.skills import SkillNormalizer, SkillTaxonomy, normalize_skills
from lookbook.moderation import moderate_person
from lookbook.pipelines.preparation import extracted_from_payload, prepare_person


@pytest.mark.unit
class TestParseExtraction:
    """Provider output is validated, never trusted."""

    def test_clean_json(self):
        raw = json.dumps({"name": "Ada", "title": "Engineer", "skills": ["React", "React", "Go"], "openToWork": True})
        result = parse_extraction(raw)

        assert result.status is ParseStatus.OK
        assert result.person == ExtractedPerson(name="Ada", title="Engineer", skills=["React", "Go"], open_to_work=True)

    def test_salvages_embedded_object(self):
        raw = 'Sure, here you go: {"name": "Ada", "skills": ["Python"]} Thanks!'
        result = parse_extraction(raw)

        assert result.status is ParseStatus.SALVAGED
        assert result.person.name == "Ada"
        assert result.person.skills == ["Python"]

    @pytest.mark.parametrize("raw", ["no json here", "", '["React"]', "{not: valid}"])
    def test_malformed(self, raw):
        result = parse_extraction(raw)

        assert result.status is ParseStatus.MALFORMED
        assert result.person == ExtractedPerson()

    def test_skills_capped_at_twelve(self):
        raw = json.dumps({"skills": [f"skill-{i}" for i in range(20)]})
        assert len(parse_extraction(raw).person.skills) == 12

    def test_wrong_types_become_null(self):
        person = coerce_person({"name": 42, "title": ["x"], "skills": "React", "openToWork": "yes"})
        assert person == ExtractedPerson()

    def test_skill_dedupe_keeps_first_case(self):
        person = coerce_person({"skills": ["react", "React", "react", 7]})
        assert person.skills == ["react", "React"]


@pytest.mark.unit
class TestProfileExtractor:
    """Anthropic client wiring."""

    def _client(self, text=None, error=None):
        client = MagicMock()
        if error is not None:
            client.messages.create = AsyncMock(side_effect=error)
        else:
            client.messages.create = AsyncMock(
                return_value=SimpleNamespace(content=[SimpleNamespace(text=text)])
            )
        return client

    async def test_extract(self):
        client = self._client('{"name": "Ada", "openToWork": false}')
        result = await ProfileExtractor(api_key="k", client=client).extract("Ada is a staff engineer in London.")

        assert result.status is ParseStatus.OK
        assert result.person.open_to_work is False
        kwargs = client.messages.create.await_args.kwargs
        assert "Ada is a staff engineer" in kwargs["messages"][0]["content"]
        assert kwargs["temperature"] == 0

    async def test_provider_error(self):
        error = anthropic.APIConnectionError(request=httpx.Request("POST", "https://api.anthropic.com/v1/messages"))
        extractor = ProfileExtractor(api_key="k", client=self._client(error=error))

        with pytest.raises(ExtractionError):
            await extractor.extract("Ada is a staff engineer in London.")

    async def test_missing_api_key(self, monkeypatch):
        monkeypatch.setattr("ai.extractor.settings.anthropic_api_key", None)

        with pytest.raises(ExtractionError, match="ANTHROPIC_API_KEY"):
            await ProfileExtractor().extract("Ada is a staff engineer in London.")

    async def test_client_construction_error(self):
        with patch("ai.extractor.anthropic.AsyncAnthropic", side_effect=anthropic.AnthropicError("bad client")):
            with pytest.raises(ExtractionError):
                await ProfileExtractor(api_key="k").extract("Ada is a staff engineer in London.")

    async def test_empty_reply_is_malformed(self):
        client = MagicMock()
        client.messages.create = AsyncMock(return_value=SimpleNamespace(content=[]))

        result = await ProfileExtractor(api_key="k", client=client).extract("Ada is a staff engineer in London.")
        assert result.status is ParseStatus.MALFORMED


@pytest.mark.unit
class TestSkillNormalization:
    """Canonical labels, dedupe, sort, cap."""

    def test_renames_synonyms_and_casing(self):
        result = normalize_skills(["reactjs", "  python ", "JS", "Postgres"])

        assert result.normalized == ["JavaScript", "Postgres", "Python", "React"]
        assert {(r.source, r.target) for r in result.renamed} == {
            ("reactjs", "React"),
            ("  python ", "Python"),
            ("JS", "JavaScript"),
        }
        assert result.dropped == []

    def test_dedupes_after_canonical_mapping(self):
        result = normalize_skills(["React", "react.js", "ReactJS"])
        assert result.normalized == ["React"]

    def test_unknown_skill_capitalized(self):
        result = normalize_skills(["graphql"])
        assert result.normalized == ["Graphql"]
        assert result.renamed[0].to_dict() == {"from": "graphql", "to": "Graphql"}

    def test_drops_long_and_overflow(self):
        long_skill = "A very long skill name that exceeds thirty chars"
        skills = [f"Skill {chr(65 + i)}" for i in range(14)] + [long_skill]

        result = normalize_skills(skills)

        assert len(result.normalized) == 12
        assert result.dropped == [long_skill, "Skill M", "Skill N"]

    @pytest.mark.parametrize("value", [None, "React", {"a": 1}])
    def test_non_list_input(self, value):
        assert normalize_skills(value).normalized == []

    def test_skips_blank_and_non_strings(self):
        assert normalize_skills(["", "   ", 3, None, "Go"]).normalized == ["Go"]

    def test_custom_taxonomy(self):
        normalizer = SkillNormalizer([SkillTaxonomy(canonical_skill="Kubernetes", synonyms=["k8s"])])
        assert normalizer.normalize(["K8S"]).normalized == ["Kubernetes"]


@pytest.mark.unit
class TestModeration:
    """Errors, warnings and PII findings."""

    def test_clean_profile(self):
        report = moderate_person(name="Ada Lovelace", title="Engineer", skills=["Python"])
        assert report.ok
        assert report.warnings == []

    def test_name_required(self):
        report = moderate_person(name="  ", title=None, skills=[])
        assert "Name is required." in report.errors

    def test_profanity_is_error(self):
        report = moderate_person(name="Ada", title="Damn good engineer", skills=[])
        assert not report.ok
        assert "Profanity detected in name or title." in report.errors

    def test_pii_in_source(self):
        source = "Reach me at ada@example.com or +1 (555) 123-4567, see https://ada.dev"
        report = moderate_person(name="Ada", title=None, skills=[], source_text=source)

        assert report.pii.emails == ["ada@example.com"]
        assert report.pii.phones == ["+1 (555) 123-4567"]
        assert report.pii.urls == ["https://ada.dev"]
        assert any("PII" in w for w in report.warnings)
        assert report.ok

    def test_length_and_character_warnings(self):
        report = moderate_person(name="Ada <script>", title="T" * 81, skills=["x" * 31] * 13)

        assert "Name contains unusual characters." in report.warnings
        assert "Title exceeds 80 characters." in report.warnings
        assert "More than 12 skills; consider trimming." in report.warnings
        assert "One or more skills exceed 30 chars." in report.warnings

    def test_to_dict(self):
        data = moderate_person(name="Ada", title=None, skills=[]).to_dict()
        assert data == {"errors": [], "warnings": [], "pii": {"emails": [], "phones": [], "urls": []}, "ok": True}


@pytest.mark.unit
class TestPreparation:
    """Normalization plus moderation for admin review."""

    def test_prepare_person(self):
        extracted = ExtractedPerson(name="  Ada   Lovelace ", title="", skills=["js", "python"], open_to_work=None)
        result = prepare_person(extracted, source_text="ada@example.com")

        assert result.prepared.to_dict() == {
            "name": "Ada Lovelace",
            "title": None,
            "skills": ["JavaScript", "Python"],
            "openToWork": False,
        }
        assert result.moderation.pii.emails == ["ada@example.com"]
        assert len(result.normalization.renamed) == 2

    def test_payload_keeps_overflow_for_reporting(self):
        payload = {"name": "Ada", "skills": [f"Skill {chr(65 + i)}" for i in range(14)] + [1], "openToWork": "yes"}
        extracted = extracted_from_payload(payload)

        assert len(extracted.skills) == 14
        assert extracted.open_to_work is None

        result = prepare_person(extracted)
        assert result.normalization.dropped == ["Skill M", "Skill N"]


@pytest.mark.unit
class TestEmbeddings:
    """OpenAI embeddings wrapper."""

    def test_prepare_input(self):
        assert prepare_embedding_input("  a \n\n b\t") == "a b"

    async def test_embed_texts_orders_by_index(self):
        client = MagicMock()
        client.embeddings.create = AsyncMock(return_value=SimpleNamespace(data=[
            SimpleNamespace(index=1, embedding=[0.2]),
            SimpleNamespace(index=0, embedding=[0.1]),
        ]))

        with patch("ai.embeddings._get_client", return_value=client):
            vectors = await embed_texts(["first", "second"])

        assert vectors == [[0.1], [0.2]]
        assert client.embeddings.create.await_args.kwargs["input"] == ["first", "second"]

    async def test_embed_empty(self):
        assert await embed_texts([]) == []

    async def test_provider_error(self):
        client = MagicMock()
        client.embeddings.create = AsyncMock(
            side_effect=openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1/embeddings"))
        )

        with patch("ai.embeddings._get_client", return_value=client):
            with pytest.raises(EmbeddingError):
                await embed_single("hello")

    async def test_count_mismatch(self):
        client = MagicMock()
        client.embeddings.create = AsyncMock(return_value=SimpleNamespace(data=[]))

        with patch("ai.embeddings._get_client", return_value=client):
            with pytest.raises(EmbeddingError, match="Expected 1"):
                await embed_single("hello")
