from dataclasses import dataclass

from qdrant_client import AsyncQdrantClient

from .agent import build_chat_model, build_embed_model, build_readme_agent, build_summary_agent
from .cache import ReadmeCache
from .config import Settings
from .enrichment import Enricher
from .github import GitHubClient
from .indexing import CommitIndexer
from .search import CommitSearcher
from .store import QdrantStore


@dataclass
class Pipeline:
    """Everything one process needs, built once from Settings."""

    settings: Settings
    github: GitHubClient
    store: QdrantStore
    enricher: Enricher
    indexer: CommitIndexer
    searcher: CommitSearcher

    @classmethod
    def from_settings(cls, settings: Settings) -> "Pipeline":
        github = GitHubClient(settings)
        store = QdrantStore(
            AsyncQdrantClient(location=settings.qdrant_url),
            dimensions=settings.embedding_dimensions,
            commits_collection=settings.commits_collection,
            readmes_collection=settings.readmes_collection,
            embeddings_collection=settings.embeddings_collection,
        )
        chat_model = build_chat_model(settings)
        enricher = Enricher(
            summary_agent=build_summary_agent(chat_model),
            readme_agent=build_readme_agent(chat_model),
            embed_model=build_embed_model(settings),
            embedding_model_name=settings.embedding_model,
            embedding_cache=store,
        )
        indexer = CommitIndexer(
            github,
            store,
            enricher,
            ReadmeCache(store, github),
            default_branch=settings.default_branch,
            max_patch_size_bytes=settings.max_patch_size_bytes,
        )
        return cls(
            settings=settings,
            github=github,
            store=store,
            enricher=enricher,
            indexer=indexer,
            searcher=CommitSearcher(store, enricher.without_cache()),
        )

    async def start(self) -> None:
        await self.store.ensure_collections()

    async def close(self) -> None:
        await self.github.aclose()
        await self.store.close()
