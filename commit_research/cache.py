from datetime import datetime, timezone
from typing import Protocol

import structlog

from .models import ReadmeDocument

log = structlog.get_logger(__name__)


class ReadmeStore(Protocol):
    async def get_cached_readme(self, owner: str, repo: str) -> ReadmeDocument | None: ...

    async def cache_readme(self, readme: ReadmeDocument) -> None: ...


class ReadmeFetcher(Protocol):
    async def fetch_readme(self, owner: str, repo: str) -> str | None: ...


class EmbeddingStore(Protocol):
    async def get_cached_embedding(self, model: str, text: str) -> list[float] | None: ...

    async def cache_embedding(self, model: str, text: str, embedding: list[float]) -> None: ...


class ReadmeCache:
    """README lookup that only goes to GitHub on a cache miss."""

    def __init__(self, store: ReadmeStore, fetcher: ReadmeFetcher) -> None:
        self._store = store
        self._fetcher = fetcher

    async def get_readme(self, owner: str, repo: str) -> str | None:
        cached = await self._store.get_cached_readme(owner, repo)
        if cached is not None:
            log.debug("readme_cache_hit", repo=f"{owner}/{repo}")
            return cached.content

        content = await self._fetcher.fetch_readme(owner, repo)
        if content is None:
            return None

        await self._store.cache_readme(
            ReadmeDocument(
                owner=owner,
                repo=repo,
                content=content,
                cached_at=datetime.now(timezone.utc),
            )
        )
        return content
