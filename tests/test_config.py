"""Tests for Settings.from_env."""

import pytest
from pydantic import ValidationError

from commit_research.config import DEFAULT_MAX_PATCH_SIZE_BYTES, Settings
from commit_research.errors import ConfigError

REQUIRED = {"GITHUB_TOKEN": "ghp_test", "OPENROUTER_API_KEY": "sk-test"}


class TestFromEnv:
    def test_defaults(self) -> None:
        settings = Settings.from_env(dict(REQUIRED))

        assert settings.github_token == "ghp_test"
        assert settings.default_branch == "main"
        assert settings.commits_per_page == 50
        assert settings.max_patch_size_bytes == DEFAULT_MAX_PATCH_SIZE_BYTES == 50_000
        assert settings.embedding_dimensions == 1536

    def test_overrides(self) -> None:
        settings = Settings.from_env(
            {
                **REQUIRED,
                "DEFAULT_BRANCH": "master",
                "COMMITS_PER_PAGE": "20",
                "MAX_PATCH_SIZE_BYTES": "1000",
                "EMBEDDING_MODEL": "text-embedding-3-large",
                "SERVICE_PORT": "9999",
            }
        )

        assert settings.default_branch == "master"
        assert settings.commits_per_page == 20
        assert settings.max_patch_size_bytes == 1000
        assert settings.embedding_dimensions == 3072
        assert settings.port == 9999

    @pytest.mark.parametrize("missing", ["GITHUB_TOKEN", "OPENROUTER_API_KEY"])
    def test_missing_required(self, missing: str) -> None:
        env = {k: v for k, v in REQUIRED.items() if k != missing}

        with pytest.raises(ConfigError) as exc_info:
            Settings.from_env(env)

        assert exc_info.value.field == missing

    def test_unknown_embedding_model(self) -> None:
        with pytest.raises(ConfigError) as exc_info:
            Settings.from_env({**REQUIRED, "EMBEDDING_MODEL": "ada-002"})

        assert exc_info.value.field == "EMBEDDING_MODEL"

    def test_non_numeric_value(self) -> None:
        with pytest.raises(ConfigError) as exc_info:
            Settings.from_env({**REQUIRED, "COMMITS_PER_PAGE": "lots"})

        assert exc_info.value.field == "commits_per_page"

    @pytest.mark.parametrize("value", ["0", "101"])
    def test_page_size_out_of_range(self, value: str) -> None:
        with pytest.raises(ConfigError):
            Settings.from_env({**REQUIRED, "COMMITS_PER_PAGE": value})

    def test_settings_are_read_only(self) -> None:
        settings = Settings.from_env(dict(REQUIRED))

        with pytest.raises(ValidationError):
            settings.default_branch = "other"
