import structlog
from llama_index.core.embeddings import BaseEmbedding
from pydantic_ai import Agent
from pydantic_ai.exceptions import AgentRunError, ModelHTTPError, UserError

from .cache import EmbeddingStore
from .errors import ErrorOrigin, PipelineError, wrap_errors
from .models import CommitSummary, ReadmeSummary

log = structlog.get_logger(__name__)


class Enricher:
    """Summaries and embeddings for commit text.

    Embeddings are looked up in the embedding cache first when one is given;
    a fresh vector is written back so each (model, input) pair is paid for once.
    """

    def __init__(
        self,
        summary_agent: Agent[None, CommitSummary],
        readme_agent: Agent[None, ReadmeSummary],
        embed_model: BaseEmbedding,
        embedding_model_name: str,
        embedding_cache: EmbeddingStore | None = None,
    ) -> None:
        self._summary_agent = summary_agent
        self._readme_agent = readme_agent
        self._embed_model = embed_model
        self.embedding_model_name = embedding_model_name
        self._embedding_cache = embedding_cache

    def without_cache(self) -> "Enricher":
        """The same models with no embedding cache, for read-only callers such as search."""
        return Enricher(
            summary_agent=self._summary_agent,
            readme_agent=self._readme_agent,
            embed_model=self._embed_model,
            embedding_model_name=self.embedding_model_name,
        )

    async def summarize(self, text: str) -> CommitSummary:
        return await self._run(self._summary_agent, text, "commit summary")

    async def summarize_readme(self, text: str) -> str:
        result = await self._run(self._readme_agent, text, "README summary")
        return result.summary

    async def embed(self, text: str) -> list[float]:
        model = self.embedding_model_name
        if self._embedding_cache is not None:
            cached = await self._embedding_cache.get_cached_embedding(model, text)
            if cached is not None:
                log.debug("embedding_cache_hit", model=model)
                return cached

        with wrap_errors(ErrorOrigin.ENRICHMENT, "Failed to generate embedding", model=model):
            embedding = await self._embed_model.aget_text_embedding(text)
        if not embedding:
            raise PipelineError(
                origin=ErrorOrigin.ENRICHMENT,
                message="Embedding response contained no embeddings",
                details={"model": model},
            )

        if self._embedding_cache is not None:
            await self._embedding_cache.cache_embedding(model, text, embedding)
        return embedding

    async def _run(self, agent: Agent, text: str, what: str):
        try:
            result = await agent.run(text)
        except ModelHTTPError as e:
            raise PipelineError(
                origin=ErrorOrigin.ENRICHMENT,
                message=f"Model request for {what} failed: {e}",
                retryable=e.status_code >= 500,
                details={"status": e.status_code},
            ) from e
        except (AgentRunError, UserError) as e:
            # No candidate, no content, or output that does not match the schema
            raise PipelineError(
                origin=ErrorOrigin.ENRICHMENT,
                message=f"Model returned no usable {what}: {e}",
            ) from e
        if result.output is None:
            raise PipelineError(
                origin=ErrorOrigin.ENRICHMENT, message=f"Model returned no {what}"
            )
        return result.output
