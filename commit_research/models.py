from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class Repository(BaseModel):
    owner: str
    name: str
    default_branch: str
    commit_count: int

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


class CommitAuthor(BaseModel):
    name: str | None = None
    email: str | None = None


class CommitInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    oid: str
    message_headline: str = Field(alias="messageHeadline")
    committed_date: str = Field(alias="committedDate")
    author: CommitAuthor


class CommitSummary(BaseModel):
    """Technical signal extracted from a commit by the summary model."""

    model_config = ConfigDict(frozen=True)

    languages: frozenset[str] = Field(
        description="Programming languages involved in the changes"
    )
    frameworks_libraries: frozenset[str] = Field(
        description="Frameworks and libraries used or modified"
    )
    patterns: frozenset[str] = Field(
        description="Design patterns, architectural patterns, or coding patterns used"
    )
    specialized_knowledge: frozenset[str] = Field(
        description="Areas of specialized knowledge required"
    )

    @field_serializer("languages", "frameworks_libraries", "patterns", "specialized_knowledge")
    def _sorted(self, value: frozenset[str]) -> list[str]:
        return sorted(value)

    def canonical_json(self) -> str:
        """Stable text form of the summary; this is what gets embedded."""
        return self.model_dump_json()


class ReadmeSummary(BaseModel):
    summary: str = Field(description="A concise summary of the README content")


class CommitDocument(BaseModel):
    sha: str
    message: str
    date: str
    org: str
    repo: str
    patch: str
    summary: CommitSummary
    embedding: list[float]


class ReadmeDocument(BaseModel):
    owner: str
    repo: str
    content: str
    cached_at: datetime


class EmbeddingCacheEntry(BaseModel):
    model: str
    input: str
    embedding: list[float]


class SearchResult(BaseModel):
    similarity: float                 # cosine score, 0.0 for degenerate vectors
    commit: CommitDocument


class ProcessUserRequest(BaseModel):
    user: str


class ProcessRepositoryRequest(BaseModel):
    owner: str
    repo: str
    branch: str | None = None         # None = configured default branch


class ProcessUserResponse(BaseModel):
    total_expected: int
    total_processed: int
    repositories: list[str]


class SearchRequest(BaseModel):
    query: str


class SearchResponse(BaseModel):
    results: list[SearchResult]
