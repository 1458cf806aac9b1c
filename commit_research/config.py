import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, ValidationError

from .errors import ConfigError

MODEL_DIMENSIONS = {
    "text-embedding-3-small": 1536,
    "openai/text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "openai/text-embedding-3-large": 3072,
}

DEFAULT_MAX_PATCH_SIZE_BYTES = 50_000

# (field, env var, default); a default of None marks the value as required
_ENV_FIELDS: list[tuple[str, str, str | None]] = [
    ("github_token", "GITHUB_TOKEN", None),
    ("github_graphql_api", "GITHUB_GRAPHQL_API", "https://api.github.com/graphql"),
    ("github_api", "GITHUB_API", "https://api.github.com"),
    ("openrouter_api_key", "OPENROUTER_API_KEY", None),
    ("llm_base_url", "LLM_BASE_URL", "https://openrouter.ai/api/v1"),
    ("summary_model", "SUMMARY_MODEL", "google/gemini-2.0-flash-001"),
    ("embedding_model", "EMBEDDING_MODEL", "text-embedding-3-small"),
    ("qdrant_url", "QDRANT_URL", "http://localhost:6333"),
    ("commits_collection", "COMMITS_COLLECTION", "commits"),
    ("readmes_collection", "READMES_COLLECTION", "readmes"),
    ("embeddings_collection", "EMBEDDINGS_COLLECTION", "embeddings"),
    ("default_branch", "DEFAULT_BRANCH", "main"),
    ("commits_per_page", "COMMITS_PER_PAGE", "50"),
    ("max_patch_size_bytes", "MAX_PATCH_SIZE_BYTES", str(DEFAULT_MAX_PATCH_SIZE_BYTES)),
    ("http_timeout", "HTTP_TIMEOUT", "30.0"),
    ("host", "SERVICE_HOST", "0.0.0.0"),
    ("port", "SERVICE_PORT", "9080"),
    ("log_level", "LOG_LEVEL", "INFO"),
    ("log_format", "LOG_FORMAT", "console"),
]


class Settings(BaseModel):
    """Process-wide configuration. Built once at startup, read-only after."""

    model_config = ConfigDict(frozen=True)

    github_token: str
    github_graphql_api: str = "https://api.github.com/graphql"
    github_api: str = "https://api.github.com"
    openrouter_api_key: str
    llm_base_url: str = "https://openrouter.ai/api/v1"
    summary_model: str = "google/gemini-2.0-flash-001"
    embedding_model: str = "text-embedding-3-small"
    qdrant_url: str = "http://localhost:6333"
    commits_collection: str = "commits"
    readmes_collection: str = "readmes"
    embeddings_collection: str = "embeddings"
    default_branch: str = "main"
    commits_per_page: int = 50
    max_patch_size_bytes: int = DEFAULT_MAX_PATCH_SIZE_BYTES
    http_timeout: float = 30.0
    host: str = "0.0.0.0"
    port: int = 9080
    log_level: str = "INFO"
    log_format: str = "console"

    @property
    def embedding_dimensions(self) -> int:
        return MODEL_DIMENSIONS[self.embedding_model]

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None) -> "Settings":
        if env is None:
            load_dotenv()
            env = dict(os.environ)

        values: dict[str, str] = {}
        for name, var, default in _ENV_FIELDS:
            value = env.get(var) or default
            if value is None:
                raise ConfigError.missing_required(var)
            values[name] = value

        if values["embedding_model"] not in MODEL_DIMENSIONS:
            raise ConfigError.invalid_value(
                "EMBEDDING_MODEL",
                values["embedding_model"],
                f"supported: {', '.join(MODEL_DIMENSIONS)}",
            )
        if values["log_format"] not in ("console", "json"):
            raise ConfigError.invalid_value(
                "LOG_FORMAT", values["log_format"], "expected 'console' or 'json'"
            )

        try:
            settings = cls.model_validate(values)
        except ValidationError as e:
            err = e.errors()[0]
            field = str(err["loc"][0])
            raise ConfigError.invalid_value(field, err.get("input"), err["msg"]) from e

        if settings.commits_per_page < 1 or settings.commits_per_page > 100:
            raise ConfigError.invalid_value(
                "COMMITS_PER_PAGE", settings.commits_per_page, "must be between 1 and 100"
            )
        if settings.max_patch_size_bytes < 0:
            raise ConfigError.invalid_value(
                "MAX_PATCH_SIZE_BYTES", settings.max_patch_size_bytes, "must not be negative"
            )
        return settings
