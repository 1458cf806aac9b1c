"""Tests for the command line interface."""

import json
from types import SimpleNamespace

import pytest
from click.testing import CliRunner

from commit_research.errors import ErrorOrigin, PipelineError
from commit_research.indexing import CommitIndexer
from commit_research.main import cli
from commit_research.models import Repository
from commit_research.pipeline import Pipeline
from commit_research.search import CommitSearcher

from fakes import FakeEnricher, FakeGitHub, FakeReadmes, FakeStore, make_commit_info, make_document

runner = CliRunner()


class FakePipeline(SimpleNamespace):
    started = False
    closed = False

    async def start(self) -> None:
        self.started = True

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_test")
    monkeypatch.setenv("OPENROUTER_API_KEY", "sk-test")
    monkeypatch.setenv("LOG_LEVEL", "ERROR")


@pytest.fixture
def pipeline(monkeypatch: pytest.MonkeyPatch) -> FakePipeline:
    github = FakeGitHub(
        repos=[Repository(owner="org", name="repo", default_branch="main", commit_count=2)],
        commits={"org/repo": [make_commit_info("A"), make_commit_info("B")]},
        patches={"A": "diff", "B": ""},
        user_ids={"alice": "U_alice"},
    )
    store = FakeStore([make_document("old", [1.0, 0.0])])
    enricher = FakeEnricher(embedding=[1.0, 0.0])
    fake = FakePipeline(
        indexer=CommitIndexer(github, store, enricher, FakeReadmes()),
        searcher=CommitSearcher(store, enricher),
    )
    monkeypatch.setattr(Pipeline, "from_settings", classmethod(lambda cls, settings: fake))
    return fake


class TestUserCommand:
    def test_reports_counts(self, env: None, pipeline: FakePipeline) -> None:
        result = runner.invoke(cli, ["user", "alice"])

        assert result.exit_code == 0, result.output
        assert "Processed 1/2 commits across 1 repositories." in result.output
        assert "org/repo" in result.output
        assert pipeline.started and pipeline.closed

    def test_pipeline_error_exits_non_zero(self, env: None, pipeline: FakePipeline) -> None:
        result = runner.invoke(cli, ["user", "ghost"])

        assert result.exit_code == 1
        assert "No GitHub ID found for user ghost" in result.output
        assert pipeline.closed

    def test_missing_config_exits_non_zero(
        self, monkeypatch: pytest.MonkeyPatch, pipeline: FakePipeline
    ) -> None:
        monkeypatch.setenv("GITHUB_TOKEN", "")
        monkeypatch.setenv("OPENROUTER_API_KEY", "sk-test")

        result = runner.invoke(cli, ["user", "alice"])

        assert result.exit_code == 1
        assert "GITHUB_TOKEN" in result.output

    def test_transient_failure_suggests_rerun(
        self, env: None, pipeline: FakePipeline
    ) -> None:
        async def fail(username: str):
            raise PipelineError(
                origin=ErrorOrigin.COMMITS, message="GitHub returned 502", retryable=True
            )

        pipeline.indexer = SimpleNamespace(process_user=fail)

        result = runner.invoke(cli, ["user", "alice"])

        assert result.exit_code == 1
        assert "[commits] GitHub returned 502 (transient" in result.output


class TestProcessCommand:
    def test_processes_single_repository(self, env: None, pipeline: FakePipeline) -> None:
        result = runner.invoke(cli, ["process", "org", "repo", "main"])

        assert result.exit_code == 0, result.output
        assert "Processed 1/2 commits." in result.output


class TestSearchCommand:
    def test_prints_ranked_results(self, env: None, pipeline: FakePipeline) -> None:
        result = runner.invoke(cli, ["search", "python testing"])

        assert result.exit_code == 0, result.output
        assert "[1.0000] org/repo@old" in result.output
        assert not pipeline.started

    def test_json_output(self, env: None, pipeline: FakePipeline) -> None:
        result = runner.invoke(cli, ["search", "python testing", "--json"])

        rows = json.loads(result.output)
        assert [r["sha"] for r in rows] == ["old"]
