"""Tests for Pipeline wiring against an in-process Qdrant."""

import pytest
import pytest_asyncio
from llama_index.core.embeddings import MockEmbedding

from commit_research import pipeline as pipeline_module
from commit_research.config import Settings
from commit_research.pipeline import Pipeline

from fakes import make_document

DIMENSIONS = 1536


@pytest_asyncio.fixture
async def pipeline(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(
        pipeline_module, "build_embed_model", lambda settings: MockEmbedding(embed_dim=DIMENSIONS)
    )
    settings = Settings.from_env(
        {"GITHUB_TOKEN": "ghp_test", "OPENROUTER_API_KEY": "sk-test", "QDRANT_URL": ":memory:"}
    )
    pipeline = Pipeline.from_settings(settings)
    await pipeline.start()
    yield pipeline
    await pipeline.close()


class TestSearchWiring:
    @pytest.mark.asyncio
    async def test_search_leaves_embedding_cache_untouched(self, pipeline: Pipeline) -> None:
        await pipeline.store.insert_commit(make_document("abc", [1.0] * DIMENSIONS))

        for query in ["rust", "python", "rust"]:
            results = await pipeline.searcher.search(query)
            assert [r.commit.sha for r in results] == ["abc"]

        model = pipeline.settings.embedding_model
        for query in ["rust", "python"]:
            assert await pipeline.store.get_cached_embedding(model, query) is None

    @pytest.mark.asyncio
    async def test_ingestion_embeddings_are_cached(self, pipeline: Pipeline) -> None:
        vector = await pipeline.enricher.embed("summary json")

        model = pipeline.settings.embedding_model
        assert await pipeline.store.get_cached_embedding(model, "summary json") == vector
