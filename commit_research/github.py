import base64
import binascii
from typing import Any

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import Settings
from .errors import ErrorOrigin, PipelineError
from .models import CommitInfo, Repository

log = structlog.get_logger(__name__)

USER_AGENT = "commit-research"

USER_ID_QUERY = """\
query($login: String!) {
  user(login: $login) {
    id
  }
}
"""

CONTRIBUTED_REPOS_QUERY = """\
query($username: String!) {
  user(login: $username) {
    contributionsCollection {
      commitContributionsByRepository(maxRepositories: 100) {
        contributions {
          totalCount
        }
        repository {
          name
          owner {
            login
          }
          defaultBranchRef {
            name
          }
        }
      }
    }
  }
}
"""

_COMMIT_FIELDS = """\
            edges {
              node {
                oid
                messageHeadline
                committedDate
                author {
                  name
                  email
                }
              }
            }"""

COMMITS_QUERY = f"""\
query($owner: String!, $name: String!, $branch: String!, $first: Int!) {{
  repository(owner: $owner, name: $name) {{
    ref(qualifiedName: $branch) {{
      target {{
        ... on Commit {{
          history(first: $first) {{
{_COMMIT_FIELDS}
          }}
        }}
      }}
    }}
  }}
}}
"""

COMMITS_BY_AUTHOR_QUERY = f"""\
query($owner: String!, $name: String!, $branch: String!, $first: Int!, $authorId: ID!) {{
  repository(owner: $owner, name: $name) {{
    ref(qualifiedName: $branch) {{
      target {{
        ... on Commit {{
          history(first: $first, author: {{id: $authorId}}) {{
{_COMMIT_FIELDS}
          }}
        }}
      }}
    }}
  }}
}}
"""


# Response shapes. A missing field is a decode error, never an empty default.

class _Login(BaseModel):
    login: str


class _BranchRef(BaseModel):
    name: str


class _ContributedRepo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    owner: _Login
    default_branch_ref: _BranchRef | None = Field(alias="defaultBranchRef")


class _TotalCount(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_count: int = Field(alias="totalCount")


class _Contribution(BaseModel):
    contributions: _TotalCount
    repository: _ContributedRepo


class _ContributionsCollection(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    by_repository: list[_Contribution] = Field(alias="commitContributionsByRepository")


class _ContributingUser(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    contributions_collection: _ContributionsCollection = Field(alias="contributionsCollection")


class _ContributedReposData(BaseModel):
    user: _ContributingUser


class _UserNode(BaseModel):
    id: str


class _UserIdData(BaseModel):
    user: _UserNode | None


class _CommitEdge(BaseModel):
    node: CommitInfo


class _History(BaseModel):
    edges: list[_CommitEdge]


class _CommitTarget(BaseModel):
    history: _History


class _Ref(BaseModel):
    target: _CommitTarget


class _RepositoryRefs(BaseModel):
    ref: _Ref | None


class _CommitsData(BaseModel):
    repository: _RepositoryRefs


class _ReadmePayload(BaseModel):
    content: str


def _decode(model: type[BaseModel], data: Any, what: str) -> Any:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise PipelineError(
            origin=ErrorOrigin.DECODE,
            message=f"Unexpected GitHub response shape for {what}: {e}",
            details={"what": what},
        ) from e


class GitHubClient:
    """GraphQL/REST access to the parts of GitHub the pipeline needs."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        self._settings = settings
        self._client = client or httpx.AsyncClient(timeout=settings.http_timeout)
        self._auth_headers = {
            "Authorization": f"Bearer {settings.github_token}",
            "User-Agent": USER_AGENT,
        }

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get_user_id(self, login: str) -> str | None:
        data = await self._graphql(
            USER_ID_QUERY, {"login": login}, origin=ErrorOrigin.DISCOVERY
        )
        user = _decode(_UserIdData, data, "user id").user
        return user.id if user else None

    async def list_contributed_repos(self, username: str) -> list[Repository]:
        data = await self._graphql(
            CONTRIBUTED_REPOS_QUERY, {"username": username}, origin=ErrorOrigin.DISCOVERY
        )
        decoded = _decode(_ContributedReposData, data, "contributed repositories")

        repos = []
        for contribution in decoded.user.contributions_collection.by_repository:
            count = contribution.contributions.total_count
            if count <= 0:
                continue
            repo = contribution.repository
            # Empty repositories have no default branch ref
            branch = (
                repo.default_branch_ref.name
                if repo.default_branch_ref
                else self._settings.default_branch
            )
            repos.append(
                Repository(
                    owner=repo.owner.login,
                    name=repo.name,
                    default_branch=branch,
                    commit_count=count,
                )
            )
        return repos

    async def list_commits(
        self,
        owner: str,
        repo: str,
        branch: str | None = None,
        author_id: str | None = None,
    ) -> list[CommitInfo]:
        variables: dict[str, Any] = {
            "owner": owner,
            "name": repo,
            "branch": branch or self._settings.default_branch,
            "first": self._settings.commits_per_page,
        }
        if author_id is not None:
            query = COMMITS_BY_AUTHOR_QUERY
            variables["authorId"] = author_id
        else:
            query = COMMITS_QUERY

        data = await self._graphql(query, variables, origin=ErrorOrigin.COMMITS)
        decoded = _decode(_CommitsData, data, f"commits of {owner}/{repo}")
        if decoded.repository.ref is None:
            log.warning("branch_not_found", repo=f"{owner}/{repo}", branch=variables["branch"])
            return []
        return [edge.node for edge in decoded.repository.ref.target.history.edges]

    async def fetch_patch(self, owner: str, repo: str, sha: str) -> str:
        url = f"{self._settings.github_api}/repos/{owner}/{repo}/commits/{sha}"
        try:
            response = await self._client.get(
                url,
                headers={**self._auth_headers, "Accept": "application/vnd.github.v3.diff"},
            )
        except httpx.HTTPError as e:
            raise PipelineError(
                origin=ErrorOrigin.COMMITS,
                message=f"Failed to fetch patch for {sha} in {owner}/{repo}: {e}",
                retryable=True,
            ) from e

        if response.is_error:
            raise PipelineError(
                origin=ErrorOrigin.COMMITS,
                message=f"GitHub returned {response.status_code} for patch {sha} in {owner}/{repo}",
                retryable=response.is_server_error,
                details={"status": response.status_code, "body": response.text[:500]},
            )

        patch = response.text
        if not patch:
            log.warning("empty_patch", sha=sha, repo=f"{owner}/{repo}")
        return patch

    async def fetch_readme(self, owner: str, repo: str) -> str | None:
        """Fetch and decode a repository README. Any failure yields None."""
        url = f"{self._settings.github_api}/repos/{owner}/{repo}/readme"
        try:
            response = await self._client.get(
                url,
                headers={**self._auth_headers, "Accept": "application/vnd.github.v3+json"},
            )
        except httpx.HTTPError as e:
            log.warning("readme_fetch_failed", repo=f"{owner}/{repo}", error=str(e))
            return None

        if not response.is_success:
            log.warning("readme_fetch_failed", repo=f"{owner}/{repo}", status=response.status_code)
            return None

        try:
            payload = _ReadmePayload.model_validate(response.json())
        except (ValueError, ValidationError):
            log.warning("readme_missing_content", repo=f"{owner}/{repo}")
            return None

        try:
            raw = base64.b64decode(payload.content.replace("\n", ""), validate=True)
            return raw.decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            log.warning("readme_decode_failed", repo=f"{owner}/{repo}", error=str(e))
            return None

    async def _graphql(
        self, query: str, variables: dict[str, Any], *, origin: ErrorOrigin
    ) -> Any:
        try:
            response = await self._client.post(
                self._settings.github_graphql_api,
                json={"query": query, "variables": variables},
                headers=self._auth_headers,
            )
        except httpx.HTTPError as e:
            raise PipelineError(
                origin=origin, message=f"GitHub GraphQL request failed: {e}", retryable=True
            ) from e

        if not response.is_success:
            log.error("github_api_error", status=response.status_code, body=response.text[:500])
            raise PipelineError(
                origin=origin,
                message=f"GitHub API error: {response.status_code}",
                retryable=response.is_server_error,
                details={"status": response.status_code},
            )

        try:
            body = response.json()
        except ValueError as e:
            raise PipelineError(
                origin=ErrorOrigin.DECODE,
                message=f"GitHub GraphQL response is not JSON: {e}",
            ) from e

        if body.get("errors"):
            log.error("github_graphql_errors", errors=body["errors"])
            raise PipelineError(
                origin=origin,
                message=f"GraphQL error: {body['errors']}",
                details={"errors": body["errors"]},
            )
        if "data" not in body:
            raise PipelineError(
                origin=ErrorOrigin.DECODE, message="GitHub GraphQL response has no data"
            )
        return body["data"]
