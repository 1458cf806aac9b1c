"""Tests for the README cache in front of GitHub."""

from datetime import datetime, timezone

import pytest

from commit_research.cache import ReadmeCache
from commit_research.models import ReadmeDocument


class DictReadmeStore:
    def __init__(self) -> None:
        self.docs: dict[tuple[str, str], ReadmeDocument] = {}

    async def get_cached_readme(self, owner: str, repo: str) -> ReadmeDocument | None:
        return self.docs.get((owner, repo))

    async def cache_readme(self, readme: ReadmeDocument) -> None:
        self.docs[(readme.owner, readme.repo)] = readme


class CountingFetcher:
    def __init__(self, content: str | None) -> None:
        self.content = content
        self.calls = 0

    async def fetch_readme(self, owner: str, repo: str) -> str | None:
        self.calls += 1
        return self.content


class TestReadmeCache:
    @pytest.mark.asyncio
    async def test_miss_fetches_and_stores(self) -> None:
        store = DictReadmeStore()
        fetcher = CountingFetcher("# Hello")

        content = await ReadmeCache(store, fetcher).get_readme("org", "repo")

        assert content == "# Hello"
        cached = store.docs[("org", "repo")]
        assert cached.content == "# Hello"
        assert cached.cached_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_hit_skips_fetch(self) -> None:
        store = DictReadmeStore()
        store.docs[("org", "repo")] = ReadmeDocument(
            owner="org",
            repo="repo",
            content="cached",
            cached_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )
        fetcher = CountingFetcher("fresh")

        assert await ReadmeCache(store, fetcher).get_readme("org", "repo") == "cached"
        assert fetcher.calls == 0

    @pytest.mark.asyncio
    async def test_absent_readme_is_not_cached(self) -> None:
        store = DictReadmeStore()
        fetcher = CountingFetcher(None)
        cache = ReadmeCache(store, fetcher)

        assert await cache.get_readme("org", "repo") is None
        assert await cache.get_readme("org", "repo") is None
        assert store.docs == {}
        assert fetcher.calls == 2
