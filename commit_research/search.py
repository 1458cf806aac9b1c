from collections.abc import Sequence
from typing import Protocol

import numpy as np
import structlog

from .errors import PipelineError
from .models import CommitDocument, SearchResult

log = structlog.get_logger(__name__)


class CommitReader(Protocol):
    async def get_all_commits(self) -> list[CommitDocument]: ...


class QueryEmbedder(Protocol):
    async def embed(self, text: str) -> list[float]: ...


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between a and b; 0.0 when either has zero norm."""
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape or va.size == 0:
        return 0.0
    # Scale by the largest component first so the norms of very large or very
    # small vectors neither overflow nor underflow.
    scale_a = np.max(np.abs(va))
    scale_b = np.max(np.abs(vb))
    if scale_a == 0.0 or scale_b == 0.0:
        return 0.0
    with np.errstate(invalid="ignore", over="ignore"):
        va = va / scale_a
        vb = vb / scale_b
        score = float(np.dot(va, vb) / (np.linalg.norm(va) * np.linalg.norm(vb)))
    return score if np.isfinite(score) else 0.0


def rank(query_embedding: Sequence[float], commits: list[CommitDocument]) -> list[SearchResult]:
    results = [
        SearchResult(
            similarity=cosine_similarity(query_embedding, commit.embedding),
            commit=commit,
        )
        for commit in commits
    ]
    # sorted() is stable with reverse=True, so ties keep retrieval order
    return sorted(results, key=lambda r: r.similarity, reverse=True)


class CommitSearcher:
    """Ranks every stored commit against a free-text query.

    Search is best effort: a failing store read or query embedding yields an
    empty result rather than an error.
    """

    def __init__(self, store: CommitReader, embedder: QueryEmbedder) -> None:
        self._store = store
        self._embedder = embedder

    async def search(self, query: str) -> list[SearchResult]:
        try:
            commits = await self._store.get_all_commits()
        except PipelineError as e:
            log.warning("search_store_read_failed", error=str(e))
            commits = []

        try:
            query_embedding = await self._embedder.embed(query)
        except Exception as e:
            log.warning("search_query_embedding_failed", error=str(e))
            return []

        results = rank(query_embedding, commits)
        log.info("search_completed", query=query, results=len(results))
        return results
