import uuid
from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from qdrant_client import AsyncQdrantClient
from qdrant_client.models import Distance, PointStruct, Record, VectorParams

from .errors import ErrorOrigin, PipelineError, wrap_errors
from .models import CommitDocument, EmbeddingCacheEntry, ReadmeDocument

log = structlog.get_logger(__name__)

SCROLL_PAGE_SIZE = 250


def commit_point_id(sha: str) -> str:
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"commit:{sha}"))


def readme_point_id(owner: str, repo: str) -> str:
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"readme:{owner}/{repo}"))


def embedding_point_id(model: str, text: str) -> str:
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"embedding:{model}\n{text}"))


@contextmanager
def _store_errors(action: str) -> Iterator[None]:
    with wrap_errors(ErrorOrigin.STORE, f"Failed to {action}"):
        yield


class QdrantStore:
    """Commit store plus README and embedding caches, one Qdrant collection each.

    Commit points are addressed by a UUID derived from the sha, so the store can
    never hold two documents for one commit. Vectors are stored unnormalised
    (dot distance); ranking happens client-side.
    """

    def __init__(
        self,
        client: AsyncQdrantClient,
        dimensions: int,
        commits_collection: str = "commits",
        readmes_collection: str = "readmes",
        embeddings_collection: str = "embeddings",
    ) -> None:
        self._client = client
        self._dimensions = dimensions
        self.commits_collection = commits_collection
        self.readmes_collection = readmes_collection
        self.embeddings_collection = embeddings_collection

    async def ensure_collections(self) -> None:
        vectors = VectorParams(size=self._dimensions, distance=Distance.DOT)
        wanted = {
            self.commits_collection: vectors,
            self.embeddings_collection: vectors,
            self.readmes_collection: {},  # payload only
        }
        with _store_errors("create collections"):
            for name, vectors_config in wanted.items():
                if await self._client.collection_exists(name):
                    continue
                log.info("creating_collection", collection=name)
                await self._client.create_collection(
                    collection_name=name, vectors_config=vectors_config
                )

    async def close(self) -> None:
        await self._client.close()

    # -- commits --------------------------------------------------------------

    async def commit_exists(self, sha: str) -> bool:
        with _store_errors(f"check if commit {sha} exists"):
            points = await self._client.retrieve(
                collection_name=self.commits_collection,
                ids=[commit_point_id(sha)],
                with_payload=False,
                with_vectors=False,
            )
        return bool(points)

    async def insert_commit(self, commit: CommitDocument) -> None:
        """Insert a new commit. Rejects a sha that is already stored.

        The existence check and the upsert are two requests, so two runs racing
        on the same sha can both pass the check; the later upsert then replaces
        the earlier point. Both write a document for the same commit under the
        same id, and the store still holds one point per sha.
        """
        if await self.commit_exists(commit.sha):
            raise PipelineError(
                origin=ErrorOrigin.STORE,
                message=f"Commit {commit.sha} is already stored",
                details={"sha": commit.sha},
            )
        point = PointStruct(
            id=commit_point_id(commit.sha),
            vector=commit.embedding,
            payload=commit.model_dump(mode="json", exclude={"embedding"}),
        )
        with _store_errors(f"insert commit {commit.sha}"):
            await self._client.upsert(
                collection_name=self.commits_collection, points=[point], wait=True
            )

    async def get_all_commits(self) -> list[CommitDocument]:
        commits = []
        with _store_errors("scroll commits"):
            for point in await self._scroll(self.commits_collection, with_vectors=True):
                payload = dict(point.payload or {})
                payload["embedding"] = point.vector
                commits.append(CommitDocument.model_validate(payload))
        return commits

    # -- README cache ---------------------------------------------------------

    async def get_cached_readme(self, owner: str, repo: str) -> ReadmeDocument | None:
        with _store_errors(f"find cached README for {owner}/{repo}"):
            points = await self._client.retrieve(
                collection_name=self.readmes_collection,
                ids=[readme_point_id(owner, repo)],
                with_payload=True,
            )
        if not points:
            return None
        return ReadmeDocument.model_validate(points[0].payload)

    async def cache_readme(self, readme: ReadmeDocument) -> None:
        point = PointStruct(
            id=readme_point_id(readme.owner, readme.repo),
            vector={},
            payload=readme.model_dump(mode="json"),
        )
        with _store_errors(f"cache README for {readme.owner}/{readme.repo}"):
            await self._client.upsert(
                collection_name=self.readmes_collection, points=[point], wait=True
            )

    # -- embedding cache ------------------------------------------------------

    async def get_cached_embedding(self, model: str, text: str) -> list[float] | None:
        with _store_errors("find cached embedding"):
            points = await self._client.retrieve(
                collection_name=self.embeddings_collection,
                ids=[embedding_point_id(model, text)],
                with_payload=False,
                with_vectors=True,
            )
        if not points:
            return None
        return list(points[0].vector)

    async def cache_embedding(self, model: str, text: str, embedding: list[float]) -> None:
        if await self.get_cached_embedding(model, text) is not None:
            return
        entry = EmbeddingCacheEntry(model=model, input=text, embedding=embedding)
        point = PointStruct(
            id=embedding_point_id(entry.model, entry.input),
            vector=entry.embedding,
            payload=entry.model_dump(exclude={"embedding"}),
        )
        with _store_errors("cache embedding"):
            await self._client.upsert(
                collection_name=self.embeddings_collection, points=[point], wait=True
            )

    async def _scroll(self, collection_name: str, *, with_vectors: bool) -> list[Record]:
        records: list[Record] = []
        offset = None
        while True:
            points, next_offset = await self._client.scroll(
                collection_name=collection_name,
                limit=SCROLL_PAGE_SIZE,
                offset=offset,
                with_payload=True,
                with_vectors=with_vectors,
            )
            records.extend(points)
            if next_offset is None:
                break
            offset = next_offset
        return records
