"""
Tests for the CLI commands.

Tests cover:
- Main group options
- add, analyze and analyze-local
- status, logs, stats and repos
- context assembly from the command line
- search and clear-cache
- token management
- detect and config-show

Every command runs against the tmp_path configuration from conftest.

Author: RepoContext Team
"""

from types import SimpleNamespace
from unittest.mock import patch

import pytest
from click.testing import CliRunner
from rich.console import Console

from repocontext.cli import main
from repocontext.config import get_config
from repocontext.constants import ExtractionStatus
from repocontext.services.auth import AuthService
from repocontext.services.extraction_orchestrator import ExtractionResult, StageResult


@pytest.fixture
def runner():
    """Create CLI test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def wide_console():
    """Render tables wide enough that cells never wrap."""
    with patch("repocontext.cli.console", Console(width=200)):
        yield


class TestMainGroup:
    """Tests for the main CLI group."""

    def test_help_option(self, runner):
        result = runner.invoke(main, ["--help"])

        assert result.exit_code == 0
        assert "RepoContext" in result.output
        assert "analyze" in result.output

    def test_data_dir_option(self, runner, config, tmp_path):
        """--data-dir replaces the active configuration's data directory."""
        target = tmp_path / "elsewhere"

        result = runner.invoke(main, ["--data-dir", str(target), "repos"])

        assert result.exit_code == 0
        assert get_config().storage.data_dir == target
        assert (target / "knowledge.db").exists()


class TestAddAndAnalyze:
    """Tests for add, analyze and analyze-local."""

    def test_add(self, runner, config):
        result = runner.invoke(main, ["add", "https://github.com/acme/payments.git", "-w", "ws-1"])

        assert result.exit_code == 0
        assert "Repository payments registered" in result.output

    def test_add_invalid_url(self, runner, config):
        result = runner.invoke(main, ["add", "not-a-url"])

        assert result.exit_code == 1
        assert "Error" in result.output

    @patch("repocontext.cli.ExtractionOrchestrator")
    def test_analyze_url(self, mock_orchestrator, runner, config):
        mock_orchestrator.return_value.extract.side_effect = lambda repository_id, **kwargs: ExtractionResult(
            repository_id=repository_id,
            status=ExtractionStatus.COMPLETED,
            stages={"architecture": StageResult(status="completed", items_extracted=2)},
        )

        result = runner.invoke(
            main, ["analyze", "https://github.com/acme/payments.git", "--token", "tok", "--keep-clone"]
        )

        assert result.exit_code == 0
        assert "Analyzing payments" in result.output
        assert "completed" in result.output
        kwargs = mock_orchestrator.return_value.extract.call_args.kwargs
        assert kwargs["auth"].token == "tok"
        assert kwargs["keep_clone"] is True
        assert kwargs["index_code"] is False

    @patch("repocontext.cli.ExtractionOrchestrator")
    def test_analyze_registered_id(self, mock_orchestrator, runner, repository):
        mock_orchestrator.return_value.extract.return_value = ExtractionResult(
            repository_id=repository.id, status=ExtractionStatus.FAILED, error="clone failed"
        )

        result = runner.invoke(main, ["analyze", repository.id])

        assert mock_orchestrator.return_value.extract.call_args[0][0] == repository.id
        assert "clone failed" in result.output

    def test_analyze_unknown_reference(self, runner, config):
        result = runner.invoke(main, ["analyze", "nonsense"])

        assert result.exit_code == 1
        assert "No repository registered" in result.output

    @patch("repocontext.cli.analyze_local_repository")
    def test_analyze_local(self, mock_analyze, runner, config, tmp_path):
        mock_analyze.return_value = {
            "repository_id": "r1",
            "status": "partial",
            "duration_ms": 10,
            "total_cost": 0.0,
            "stages": {},
            "error": None,
        }

        result = runner.invoke(main, ["analyze-local", str(tmp_path), "--index-code"])

        assert result.exit_code == 0
        assert "partial" in result.output
        assert mock_analyze.call_args.kwargs["index_code"] is True

    def test_analyze_local_missing_path(self, runner, config, tmp_path):
        result = runner.invoke(main, ["analyze-local", str(tmp_path / "gone")])

        assert result.exit_code != 0


class TestInspection:
    """Tests for status, logs, stats and repos."""

    def test_status(self, runner, repository):
        result = runner.invoke(main, ["status", repository.id])

        assert result.exit_code == 0
        assert "payments" in result.output
        assert "completed" in result.output

    def test_status_missing(self, runner, config):
        result = runner.invoke(main, ["status", "missing"])

        assert result.exit_code == 1
        assert "Repository not found" in result.output

    def test_logs(self, runner, store, repository):
        store.add_extraction_log(repository.id, "clone", "started")

        result = runner.invoke(main, ["logs", repository.id])

        assert result.exit_code == 0
        assert "started" in result.output

    def test_logs_missing(self, runner, config):
        assert runner.invoke(main, ["logs", "missing"]).exit_code == 1

    def test_stats(self, runner, populated_store, repository):
        result = runner.invoke(main, ["stats", repository.id])

        assert result.exit_code == 0
        assert "r1-core" in result.output
        assert "Domain Models" in result.output

    def test_stats_details(self, runner, populated_store, repository):
        result = runner.invoke(main, ["stats", repository.id, "--details"])

        assert result.exit_code == 0
        assert "Event-Driven Architecture" in result.output
        assert "PaymentClient Integration Pattern" in result.output
        assert "api_client" in result.output

    def test_repos(self, runner, repository):
        result = runner.invoke(main, ["repos"])

        assert result.exit_code == 0
        assert "payments" in result.output

    def test_repos_empty(self, runner, config):
        result = runner.invoke(main, ["repos"])

        assert "No repositories registered" in result.output


class TestContextCommand:
    """Tests for the context command."""

    def test_context(self, runner, populated_store, repository):
        result = runner.invoke(main, ["context", repository.id, "Add a refund endpoint to the payment API"])

        assert result.exit_code == 0
        assert "USER REQUEST" in result.output
        assert "LEVEL 2: DOMAIN KNOWLEDGE" in result.output
        assert "NEW_FEATURE" in result.output

    def test_context_json(self, runner, populated_store, repository):
        result = runner.invoke(main, ["context", repository.id, "Explain orders", "--json"])

        assert result.exit_code == 0
        assert '"enhanced_prompt"' in result.output
        assert '"context_quality_score"' in result.output

    def test_invalid_budget(self, runner, populated_store, repository):
        result = runner.invoke(main, ["context", repository.id, "Explain orders", "--budget", "10"])

        assert result.exit_code == 1
        assert "token_budget must be between" in result.output

    def test_unknown_repository(self, runner, config):
        result = runner.invoke(main, ["context", "missing", "Explain orders"])

        assert result.exit_code == 1


class TestSearchAndCache:
    """Tests for search and clear-cache."""

    @patch("repocontext.cli.search_code")
    def test_search(self, mock_search, runner, config):
        mock_search.return_value = {
            "results": [
                {"score": 0.91, "name": "charge", "type": "method", "file": "Pay.java", "lines": "3-9"}
            ]
        }

        result = runner.invoke(main, ["search", "charge a card", "-r", "r1", "-n", "5"])

        assert result.exit_code == 0
        assert "charge" in result.output
        mock_search.assert_called_once_with("charge a card", workspace_id=None, repository_id="r1", limit=5)

    @patch("repocontext.cli.search_code")
    def test_search_no_results(self, mock_search, runner, config):
        mock_search.return_value = {"results": []}

        result = runner.invoke(main, ["search", "anything", "-r", "r1"])

        assert "No matching code found" in result.output

    @patch("repocontext.cli.search_code")
    def test_search_error(self, mock_search, runner, config):
        mock_search.return_value = {"error": "Query cannot be empty"}

        result = runner.invoke(main, ["search", " "])

        assert result.exit_code == 1

    def test_clear_cache(self, runner, repository):
        result = runner.invoke(main, ["clear-cache", repository.id])

        assert result.exit_code == 0
        assert "Cleared 0 cached context entries" in result.output

    def test_clear_cache_unknown(self, runner, config):
        assert runner.invoke(main, ["clear-cache", "missing"]).exit_code == 1


class TestTokenCommands:
    """Tests for the token group."""

    def test_create_and_list(self, runner, config):
        created = runner.invoke(main, ["token", "create", "-w", "ws-1", "-n", "laptop", "-p", "search"])
        listed = runner.invoke(main, ["token", "list", "-w", "ws-1"])

        assert created.exit_code == 0
        assert "rc_" in created.output
        assert "laptop" in listed.output
        assert "search" in listed.output

    def test_list_empty(self, runner, config):
        result = runner.invoke(main, ["token", "list", "-w", "nobody"])

        assert "No active tokens" in result.output

    def test_revoke(self, runner, store):
        AuthService(store).generate_mcp_token("ws-1", "laptop")
        [record] = store.list_tokens("ws-1")

        result = runner.invoke(main, ["token", "revoke", record.id])

        assert result.exit_code == 0
        assert "Token revoked" in result.output
        assert runner.invoke(main, ["token", "revoke", "missing"]).exit_code == 1

    def test_cleanup(self, runner, config):
        result = runner.invoke(main, ["token", "cleanup"])

        assert result.exit_code == 0
        assert "Removed 0 expired tokens" in result.output


class TestMiscCommands:
    """Tests for detect and config-show."""

    @patch("repocontext.cli.WorkspaceDetector")
    def test_detect(self, mock_detector, runner, config, tmp_path):
        mock_detector.return_value.detect.return_value = SimpleNamespace(
            workspace_id="ws-abc",
            name="payments",
            repository_id="r1",
            git_url=None,
            local_path="/src/payments",
        )

        result = runner.invoke(main, ["detect", str(tmp_path)])

        assert result.exit_code == 0
        assert "ws-abc" in result.output
        assert "no remote" in result.output

    def test_config_show(self, runner, config):
        result = runner.invoke(main, ["config-show"])

        assert result.exit_code == 0
        assert "RepoContext Configuration" in result.output
        assert "heuristics only" in result.output
