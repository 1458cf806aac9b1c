import asyncio

import restate
import structlog
from hypercorn.asyncio import serve
from hypercorn.config import Config

from .config import Settings
from .errors import PipelineError
from .logging import configure_logging
from .models import (
    ProcessRepositoryRequest,
    ProcessUserRequest,
    ProcessUserResponse,
    SearchRequest,
    SearchResponse,
)
from .pipeline import Pipeline

log = structlog.get_logger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal Server Error"


def failure_fields(error: Exception) -> dict:
    if isinstance(error, PipelineError):
        return error.to_dict()
    return {"message": str(error)}


def create_service(pipeline: Pipeline) -> restate.Service:
    service = restate.Service("CommitResearch")

    @service.handler("ProcessUser")
    async def process_user(ctx: restate.Context, req: ProcessUserRequest) -> ProcessUserResponse:
        try:
            return await pipeline.indexer.process_user(req.user)
        except Exception as e:
            # Callers only see a generic failure, details stay in the log.
            log.exception("process_user_failed", user=req.user, **failure_fields(e))
            raise restate.TerminalError(INTERNAL_ERROR_MESSAGE, status_code=500) from e

    @service.handler("ProcessRepository")
    async def process_repository(
        ctx: restate.Context, req: ProcessRepositoryRequest
    ) -> ProcessUserResponse:
        try:
            return await pipeline.indexer.process_repository(req.owner, req.repo, req.branch)
        except Exception as e:
            log.exception(
                "process_repository_failed",
                repo=f"{req.owner}/{req.repo}",
                **failure_fields(e),
            )
            raise restate.TerminalError(INTERNAL_ERROR_MESSAGE, status_code=500) from e

    @service.handler("Search")
    async def search(ctx: restate.Context, req: SearchRequest) -> SearchResponse:
        return SearchResponse(results=await pipeline.searcher.search(req.query))

    return service


async def run(settings: Settings) -> None:
    pipeline = Pipeline.from_settings(settings)
    await pipeline.start()

    app = restate.app([create_service(pipeline)])

    config = Config()
    config.bind = [f"{settings.host}:{settings.port}"]

    log.info("starting_service", host=settings.host, port=settings.port)
    try:
        await serve(app, config)
    finally:
        await pipeline.close()


if __name__ == "__main__":
    settings = Settings.from_env()
    configure_logging(level=settings.log_level, json_format=settings.log_format == "json")
    asyncio.run(run(settings))
