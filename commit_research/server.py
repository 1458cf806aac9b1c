import os

from fastmcp import FastMCP

from .config import Settings
from .logging import configure_logging
from .models import SearchResult
from .pipeline import Pipeline
from .search import CommitSearcher

MAX_TOP_K = 50


def format_result(result: SearchResult) -> dict:
    commit = result.commit
    return {
        "similarity": round(result.similarity, 4),
        "sha": commit.sha,
        "repository": f"{commit.org}/{commit.repo}",
        "message": commit.message,
        "date": commit.date,
        "summary": commit.summary.model_dump(mode="json"),
    }


def create_mcp(searcher: CommitSearcher) -> FastMCP:
    mcp = FastMCP(
        name="commit-research-search",
        instructions=(
            "Semantic search over ingested GitHub commits. "
            "Use search_commits to find commits whose technical summary "
            "matches a natural language query."
        ),
    )

    @mcp.tool()
    async def search_commits(query: str, top_k: int | None = None) -> list[dict]:
        """Search ingested commits by semantic similarity to the query.

        Args:
            query: Natural language search query.
            top_k: Optional number of results to return (max 50). All results
                are returned, best first, when omitted.
        """
        results = await searcher.search(query)
        if top_k is not None:
            results = results[: max(0, min(top_k, MAX_TOP_K))]
        return [format_result(r) for r in results]

    return mcp


def main() -> None:
    settings = Settings.from_env()
    configure_logging(level=settings.log_level, json_format=settings.log_format == "json")
    pipeline = Pipeline.from_settings(settings)
    mcp = create_mcp(pipeline.searcher)

    transport = os.environ.get("MCP_TRANSPORT", "stdio")
    kwargs = {}
    if transport != "stdio":
        kwargs["host"] = os.environ.get("MCP_HOST", "0.0.0.0")
        kwargs["port"] = int(os.environ.get("MCP_PORT", "8080"))
    mcp.run(transport=transport, **kwargs)


if __name__ == "__main__":
    main()
