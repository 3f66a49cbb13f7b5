"""
Tests for the semantic indexing job: content building, upserts, batching
and pruning.
"""
import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import SQLAlchemyError

from lookbook.models import PersonIndexEntry, ProjectIndexEntry
from lookbook.pipelines.indexing import (
    IndexingError,
    SemanticIndexer,
    person_content,
    person_row,
    project_content,
    upsert_statement,
)
from conftest import FakeContent, FakeSessionMaker, make_person, make_project


def _sql(stmt):
    return str(stmt.compile(dialect=postgresql.dialect()))


@pytest.mark.unit
class TestContentBuilders:
    """Text that gets embedded."""

    def test_person_content(self):
        person = make_person("ada", name="Ada", title="Engineer", skills=["Python", "Go"])
        assert person_content(person) == "Ada | Engineer | Python Go"

    def test_missing_fields_render_empty(self):
        assert person_content(make_person("x", name=None)) == " |  | "

    def test_project_content(self):
        project = make_project("p", title="Pay", summary="Rails", skills=["React"], sectors=["Fintech", "Retail"])
        assert project_content(project) == "Pay | Rails | React | Fintech Retail"

    def test_person_row_open_to_work_defaults_false(self):
        row = person_row(make_person("x"), "c", [0.1])
        assert row["open_to_work"] is False
        assert row["embedding"] == [0.1]


@pytest.mark.unit
class TestUpsert:
    """Rows are keyed by slug and overwritten in place."""

    def test_on_conflict_updates_every_column(self):
        row = person_row(make_person("ada", title="Engineer"), "content", [0.1, 0.2])
        sql = _sql(upsert_statement(PersonIndexEntry, row))

        assert "INSERT INTO people_index" in sql
        assert "ON CONFLICT (slug) DO UPDATE SET" in sql
        for column in ("name", "title", "skills", "open_to_work", "content", "embedding"):
            assert f"{column} = excluded.{column}" in sql
        assert "slug = excluded.slug" not in sql


@pytest.mark.unit
class TestSemanticIndexer:
    """End-to-end job against fakes."""

    @pytest.fixture
    def content(self):
        return FakeContent(
            people=[make_person("ada"), make_person("bob"), make_person("cy")],
            projects=[make_project("p1")],
        )

    async def test_run_counts_and_commits(self, content, embed_many):
        maker = FakeSessionMaker()
        report = await SemanticIndexer(maker, content, embed_many, batch_size=1).run()

        assert (report.people, report.projects) == (3, 1)
        assert report.pruned == {"people": 0, "projects": 0}
        assert maker.commits == 4
        assert embed_many.await_count == 4

    async def test_rerun_is_idempotent(self, content, embed_many):
        maker = FakeSessionMaker()
        indexer = SemanticIndexer(maker, content, embed_many, batch_size=1)

        await indexer.run()
        first = [_sql(s) for s in maker.statements]
        await indexer.run()
        second = [_sql(s) for s in maker.statements[len(first):]]

        assert first == second
        assert all("ON CONFLICT (slug) DO UPDATE" in s for s in first)

    async def test_batch_size_groups_provider_calls(self, content, embed_many):
        await SemanticIndexer(FakeSessionMaker(), content, embed_many, batch_size=2).run()

        batches = [call.args[0] for call in embed_many.await_args_list]
        assert [len(b) for b in batches] == [2, 1, 1]

    async def test_write_failure(self, content, embed_many):
        maker = FakeSessionMaker(fail_with=SQLAlchemyError("down"))
        with pytest.raises(IndexingError):
            await SemanticIndexer(maker, content, embed_many).run()

    async def test_prune_removes_stale_slugs(self, content, embed_many):
        maker = FakeSessionMaker(existing_slugs=["ada", "bob", "cy", "gone"])
        indexer = SemanticIndexer(maker, content, embed_many)

        removed = await indexer.prune(PersonIndexEntry, {"ada", "bob", "cy"})

        assert removed == 1
        delete_sql = _sql(maker.statements[-1])
        assert delete_sql.startswith("DELETE FROM people_index")
        assert maker.commits == 1

    async def test_prune_skips_on_empty_upstream(self, embed_many):
        maker = FakeSessionMaker(existing_slugs=["ada"])
        indexer = SemanticIndexer(maker, FakeContent(), embed_many)

        assert await indexer.prune(ProjectIndexEntry, set()) == 0
        assert maker.statements == []

    async def test_run_with_prune(self, content, embed_many):
        maker = FakeSessionMaker(existing_slugs=["ada", "old"])
        report = await SemanticIndexer(maker, content, embed_many).run(prune=True)

        # both tables report "old" as present
        assert report.pruned == {"people": 1, "projects": 2}
