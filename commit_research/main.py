import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import TypeVar

import click

from . import server, service
from .config import Settings
from .errors import ConfigError, PipelineError
from .logging import configure_logging
from .pipeline import Pipeline

T = TypeVar("T")


def load_settings() -> Settings:
    try:
        settings = Settings.from_env()
    except ConfigError as e:
        raise click.ClickException(str(e))
    configure_logging(level=settings.log_level, json_format=settings.log_format == "json")
    return settings


def describe_failure(error: PipelineError) -> str:
    if error.retryable:
        return f"{error} (transient, run the command again to resume)"
    return str(error)


def run_with_pipeline(
    settings: Settings, fn: Callable[[Pipeline], Awaitable[T]], *, start: bool = True
) -> T:
    async def _run() -> T:
        pipeline = Pipeline.from_settings(settings)
        try:
            if start:
                await pipeline.start()
            return await fn(pipeline)
        finally:
            await pipeline.close()

    try:
        return asyncio.run(_run())
    except PipelineError as e:
        raise click.ClickException(describe_failure(e))


@click.group()
def cli() -> None:
    """Ingest GitHub commits with AI summaries and search them semantically."""


@cli.command()
@click.argument("username")
def user(username: str) -> None:
    """Ingest every commit USERNAME contributed to their repositories."""
    settings = load_settings()
    result = run_with_pipeline(settings, lambda p: p.indexer.process_user(username))
    click.echo(
        f"Done. Processed {result.total_processed}/{result.total_expected} commits "
        f"across {len(result.repositories)} repositories."
    )
    for repo in result.repositories:
        click.echo(f"  {repo}")


@cli.command()
@click.argument("owner")
@click.argument("repo")
@click.argument("branch", required=False)
def process(owner: str, repo: str, branch: str | None) -> None:
    """Ingest every commit on one branch of OWNER/REPO."""
    settings = load_settings()
    result = run_with_pipeline(
        settings, lambda p: p.indexer.process_repository(owner, repo, branch)
    )
    click.echo(f"Done. Processed {result.total_processed}/{result.total_expected} commits.")


@cli.command()
@click.argument("query")
@click.option("--top-k", type=int, default=5, show_default=True, help="Number of results to show.")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print results as JSON.")
def search(query: str, top_k: int, as_json: bool) -> None:
    """Search stored commits by similarity to QUERY."""
    settings = load_settings()
    results = run_with_pipeline(settings, lambda p: p.searcher.search(query), start=False)
    shown = results[:top_k]

    if as_json:
        click.echo(json.dumps([server.format_result(r) for r in shown], indent=2))
        return
    if not shown:
        click.echo("No results.")
        return
    for r in shown:
        c = r.commit
        click.echo(f"[{r.similarity:.4f}] {c.org}/{c.repo}@{c.sha[:10]} {c.message}")
        click.echo(f"  languages: {', '.join(sorted(c.summary.languages)) or '-'}")


@cli.command()
def serve() -> None:
    """Serve the restate handlers over HTTP."""
    settings = load_settings()
    asyncio.run(service.run(settings))


@cli.command()
def mcp() -> None:
    """Serve the search tool over MCP."""
    try:
        server.main()
    except ConfigError as e:
        raise click.ClickException(str(e))


if __name__ == "__main__":
    cli()
