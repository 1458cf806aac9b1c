from typing import Protocol

import structlog

from .errors import ErrorOrigin, PipelineError, wrap_errors
from .models import CommitDocument, CommitInfo, CommitSummary, ProcessUserResponse, Repository
from .prompt import build_commit_prompt

log = structlog.get_logger(__name__)


class GitHub(Protocol):
    async def list_contributed_repos(self, username: str) -> list[Repository]: ...

    async def get_user_id(self, login: str) -> str | None: ...

    async def list_commits(
        self,
        owner: str,
        repo: str,
        branch: str | None = None,
        author_id: str | None = None,
    ) -> list[CommitInfo]: ...

    async def fetch_patch(self, owner: str, repo: str, sha: str) -> str: ...


class CommitStore(Protocol):
    async def commit_exists(self, sha: str) -> bool: ...

    async def insert_commit(self, commit: CommitDocument) -> None: ...


class Readmes(Protocol):
    async def get_readme(self, owner: str, repo: str) -> str | None: ...


class CommitEnricher(Protocol):
    async def summarize(self, text: str) -> CommitSummary: ...

    async def summarize_readme(self, text: str) -> str: ...

    async def embed(self, text: str) -> list[float]: ...


class CommitIndexer:
    """Walks a user's contributed repositories and stores enriched commits.

    Commits already in the store are skipped, so a failed run can simply be
    started again. Patches that are empty or larger than max_patch_size_bytes
    are skipped without error.
    """

    def __init__(
        self,
        github: GitHub,
        store: CommitStore,
        enricher: CommitEnricher,
        readmes: Readmes,
        *,
        default_branch: str = "main",
        max_patch_size_bytes: int = 50_000,
    ) -> None:
        self._github = github
        self._store = store
        self._enricher = enricher
        self._readmes = readmes
        self._default_branch = default_branch
        self._max_patch_size_bytes = max_patch_size_bytes

    async def process_user(self, username: str) -> ProcessUserResponse:
        with structlog.contextvars.bound_contextvars(user=username):
            log.info("processing_user")
            with wrap_errors(
                ErrorOrigin.DISCOVERY, f"Failed to get contributed repos for user {username}"
            ):
                repos = await self._github.list_contributed_repos(username)

            total_expected = sum(r.commit_count for r in repos)
            log.info("repositories_found", repositories=len(repos), expected=total_expected)

            with wrap_errors(ErrorOrigin.DISCOVERY, f"Failed to get GitHub user ID for {username}"):
                author_id = await self._github.get_user_id(username)
            if author_id is None:
                raise PipelineError(
                    origin=ErrorOrigin.DISCOVERY,
                    message=f"No GitHub ID found for user {username}",
                    details={"user": username},
                )

            total_processed = 0
            repositories = []
            for repo in repos:
                total_processed += await self._process_repository(
                    repo, repo.default_branch, author_id
                )
                repositories.append(repo.full_name)

            log.info(
                "user_processed",
                processed=total_processed,
                expected=total_expected,
            )
            return ProcessUserResponse(
                total_expected=total_expected,
                total_processed=total_processed,
                repositories=repositories,
            )

    async def process_repository(
        self, owner: str, repo: str, branch: str | None = None
    ) -> ProcessUserResponse:
        """Ingest every commit on one branch, whoever authored it."""
        branch = branch or self._default_branch
        with wrap_errors(ErrorOrigin.COMMITS, f"Failed to get commits for {owner}/{repo}"):
            commits = await self._github.list_commits(owner, repo, branch)

        repository = Repository(
            owner=owner, name=repo, default_branch=branch, commit_count=len(commits)
        )
        with structlog.contextvars.bound_contextvars(repo=repository.full_name):
            processed = await self._process_commits(repository, commits)
        return ProcessUserResponse(
            total_expected=len(commits),
            total_processed=processed,
            repositories=[repository.full_name],
        )

    async def _process_repository(self, repo: Repository, branch: str, author_id: str) -> int:
        with structlog.contextvars.bound_contextvars(repo=repo.full_name):
            log.debug("processing_repository", branch=branch)
            with wrap_errors(
                ErrorOrigin.COMMITS, f"Failed to get commits for repository {repo.full_name}"
            ):
                commits = await self._github.list_commits(
                    repo.owner, repo.name, branch, author_id
                )
            if not commits:
                log.debug("no_commits_found")
                return 0
            return await self._process_commits(repo, commits)

    async def _process_commits(self, repo: Repository, commits: list[CommitInfo]) -> int:
        log.debug("processing_commits", commits=len(commits))
        processed = 0
        for commit in commits:
            with structlog.contextvars.bound_contextvars(sha=commit.oid):
                if await self._process_commit(repo, commit):
                    processed += 1
        return processed

    async def _process_commit(self, repo: Repository, commit: CommitInfo) -> bool:
        """Enrich and store one commit. Returns False when a gate skipped it."""
        sha = commit.oid

        with wrap_errors(ErrorOrigin.STORE, f"Failed to check if commit {sha} exists"):
            exists = await self._store.commit_exists(sha)
        if exists:
            log.debug("commit_already_processed")
            return False

        with wrap_errors(ErrorOrigin.COMMITS, f"Failed to get patch for commit {sha}"):
            patch = await self._github.fetch_patch(repo.owner, repo.name, sha)

        patch_size = len(patch.encode("utf-8"))
        if patch_size > self._max_patch_size_bytes:
            log.warning("skipping_large_patch", bytes=patch_size)
            return False
        if not patch:
            log.warning("skipping_empty_patch")
            return False

        readme_summary = await self._readme_summary(repo)

        with wrap_errors(ErrorOrigin.ENRICHMENT, f"Failed to generate summary for commit {sha}"):
            summary = await self._enricher.summarize(build_commit_prompt(patch, readme_summary))

        with wrap_errors(ErrorOrigin.ENRICHMENT, f"Failed to generate embedding for commit {sha}"):
            embedding = await self._enricher.embed(summary.canonical_json())

        document = CommitDocument(
            sha=sha,
            message=commit.message_headline,
            date=commit.committed_date,
            org=repo.owner,
            repo=repo.name,
            patch=patch,
            summary=summary,
            embedding=embedding,
        )
        with wrap_errors(ErrorOrigin.STORE, f"Failed to insert commit {sha}"):
            await self._store.insert_commit(document)

        log.debug("commit_stored")
        return True

    async def _readme_summary(self, repo: Repository) -> str | None:
        with wrap_errors(ErrorOrigin.README, f"Failed to get README for {repo.full_name}"):
            readme = await self._readmes.get_readme(repo.owner, repo.name)
        if readme is None:
            return None
        with wrap_errors(
            ErrorOrigin.ENRICHMENT, f"Failed to generate README summary for {repo.full_name}"
        ):
            return await self._enricher.summarize_readme(readme)
