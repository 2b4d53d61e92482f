"""
Tests for the CLI interface.
"""
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from ai_observe.cli.main import app, EXIT_CODE_FAIL, EXIT_CODE_OK
from ai_observe.config.loader import DB_PATH_ENV_VAR, DEFAULT_MODELS
from ai_observe.core.breakdown import TokenBreakdown
from ai_observe.errors import ProviderError, ValidationError
from ai_observe.sdk.openai_client import CompletionResult
from ai_observe.storage.models import CallRecord
from ai_observe.storage.repository import CallRepository

runner = CliRunner()


@pytest.fixture(autouse=True)
def quiet_logging():
    """Keep the CLI from replacing the test session's log sinks."""
    with patch('ai_observe.cli.main.configure_logging') as mock:
        yield mock


@pytest.fixture
def cli_db(db_path, monkeypatch):
    """Point the CLI at a temporary database."""
    monkeypatch.setenv(DB_PATH_ENV_VAR, db_path)
    return db_path


@pytest.fixture
def mock_gateway():
    """Mock the observed client used by `ask`."""
    with patch('ai_observe.cli.main.ObservedOpenAI') as mock:
        yield mock.return_value


def completion_result() -> CompletionResult:
    return CompletionResult(
        text="Hi there",
        tokens_in=2,
        tokens_out=2,
        latency_ms=120,
        breakdown=TokenBreakdown(
            prompt=(0, 1), response=(2, 3), prompt_text="Hello world", response_text="Hi there"
        ),
        record_id="rec_1"
    )


class TestCLI:
    """Test CLI commands."""

    def test_no_command_prints_usage_hint(self, cli_db):
        result = runner.invoke(app, [])

        assert result.exit_code == EXIT_CODE_OK
        assert "Use --help" in result.output

    def test_init_creates_schema(self, cli_db):
        """Test init creates the call record table."""
        result = runner.invoke(app, ["init"])

        assert result.exit_code == EXIT_CODE_OK
        assert "Database initialized" in result.output
        assert CallRepository(cli_db).fetch_recent() == []

    def test_models_lists_defaults(self, cli_db):
        result = runner.invoke(app, ["models"])

        assert result.exit_code == EXIT_CODE_OK
        for model in DEFAULT_MODELS:
            assert model in result.output

    def test_models_from_config_file(self, cli_db, tmp_path):
        config_path = tmp_path / "config.yaml"
        config_path.write_text("models:\n  - my-model\n", encoding="utf-8")

        result = runner.invoke(app, ["--config", str(config_path), "models"])

        assert result.exit_code == EXIT_CODE_OK
        assert "my-model" in result.output
        assert "gpt-4o" not in result.output

    def test_invalid_config_exits_with_error(self, cli_db, tmp_path):
        config_path = tmp_path / "config.yaml"
        config_path.write_text("unknown: 1\n", encoding="utf-8")

        result = runner.invoke(app, ["-c", str(config_path), "models"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Error loading configuration" in result.output

    def test_missing_config_exits_with_error(self, cli_db, tmp_path):
        result = runner.invoke(app, ["-c", str(tmp_path / "missing.yaml"), "models"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Error loading configuration" in result.output


class TestAskCommand:
    """Test the ask command."""

    def test_ask_success(self, cli_db, mock_gateway):
        """Test a prompt prints response, counts and token map."""
        mock_gateway.complete.return_value = completion_result()

        result = runner.invoke(app, ["ask", "Hello world", "--model", "gpt-4o-mini"])

        assert result.exit_code == EXIT_CODE_OK
        mock_gateway.complete.assert_called_once_with("Hello world", "gpt-4o-mini")
        assert "Hi there" in result.output
        assert "Tokens In:" in result.output
        assert "120ms" in result.output
        assert "Token Breakdown" in result.output

    def test_ask_defaults_to_first_model(self, cli_db, mock_gateway):
        mock_gateway.complete.return_value = completion_result()

        runner.invoke(app, ["ask", "Hello"])

        mock_gateway.complete.assert_called_once_with("Hello", DEFAULT_MODELS[0])

    def test_ask_without_tokens(self, cli_db, mock_gateway):
        mock_gateway.complete.return_value = completion_result()

        result = runner.invoke(app, ["ask", "Hello", "--no-tokens"])

        assert result.exit_code == EXIT_CODE_OK
        assert "Token Breakdown" not in result.output

    def test_ask_provider_error(self, cli_db, mock_gateway):
        """Test provider failures exit non-zero with the message and latency."""
        mock_gateway.complete.side_effect = ProviderError("Invalid API key", 42)

        result = runner.invoke(app, ["ask", "Hello"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Invalid API key" in result.output
        assert "42ms" in result.output

    def test_ask_validation_error(self, cli_db, mock_gateway):
        mock_gateway.complete.side_effect = ValidationError("prompt is required and cannot be empty")

        result = runner.invoke(app, ["ask", " "])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Invalid request" in result.output

    def test_ask_initializes_schema(self, cli_db, mock_gateway):
        mock_gateway.complete.return_value = completion_result()

        runner.invoke(app, ["ask", "Hello"])

        assert CallRepository(cli_db).fetch_recent() == []


class TestMetricsCommand:
    """Test the metrics command."""

    def test_metrics_without_table_prints_hint(self, cli_db):
        """Test a fresh database shows getting-started help."""
        result = runner.invoke(app, ["metrics"])

        assert result.exit_code == EXIT_CODE_OK
        assert "No call history found" in result.output
        assert "ai-observe init" in result.output

    def test_metrics_empty(self, cli_db):
        CallRepository(cli_db).initialize_schema()

        result = runner.invoke(app, ["metrics"])

        assert result.exit_code == EXIT_CODE_OK
        assert "AI Observe Metrics" in result.output
        assert "No requests yet" in result.output

    def test_metrics_with_records(self, cli_db):
        repository = CallRepository(cli_db)
        repository.initialize_schema()
        repository.insert(CallRecord.success("gpt-4o", "Hello", 10, 20, 100))
        repository.insert(CallRecord.failure("gpt-4o-mini", "Hello", 40, "Rate limit"))

        result = runner.invoke(app, ["metrics"])

        assert result.exit_code == EXIT_CODE_OK
        assert "50.0%" in result.output
        assert "100ms" in result.output
        assert "gpt-4o-mini" in result.output
        assert "Rate limit" in result.output

    def test_metrics_json(self, cli_db):
        CallRepository(cli_db).initialize_schema()

        result = runner.invoke(app, ["metrics", "--json"])

        assert result.exit_code == EXIT_CODE_OK
        assert '"recentRequests": []' in result.output
        assert '"totalRequests": 0' in result.output
        assert '"latestTokenBreakdown": null' in result.output


class TestDashboardCommand:
    """Test the dashboard command."""

    def test_dashboard_once(self, cli_db):
        """Test a single frame renders and exits."""
        repository = CallRepository(cli_db)
        repository.initialize_schema()
        repository.insert(CallRecord.success("gpt-4o", "Hello", 10, 20, 100))

        result = runner.invoke(app, ["dashboard", "--once"])

        assert result.exit_code == EXIT_CODE_OK
        assert "Total Requests" in result.output
        assert "Recent Requests" in result.output

    def test_dashboard_without_table_shows_failure_frame(self, cli_db):
        result = runner.invoke(app, ["dashboard", "--once"])

        assert result.exit_code == EXIT_CODE_OK
        assert "Failed to load metrics" in result.output

    def test_dashboard_rejects_non_positive_interval(self, cli_db):
        result = runner.invoke(app, ["dashboard", "--interval", "0"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "--interval must be > 0" in result.output
