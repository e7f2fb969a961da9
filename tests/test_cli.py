"""CLI tests for the generate and analyze commands."""

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from sorcerer.main import cli
from sorcerer.models import EnhancementType


@pytest.fixture
def runner():
    """Create Click test runner."""
    return CliRunner()


@pytest.fixture
def config_dir(tmp_path):
    """An empty configuration directory so local YAML files never leak in."""
    directory = tmp_path / "config"
    directory.mkdir()
    return directory


@pytest.fixture
def api_key(monkeypatch):
    monkeypatch.setenv("LLM_API_KEY", "test-key")


class TestGenerateCommand:
    def test_help(self, runner):
        result = runner.invoke(cli, ["generate", "--help"])

        assert result.exit_code == 0
        assert "Generate passing tests for FILE_TO_TEST" in result.output
        assert "--enhance" in result.output
        assert "--skip-existing" in result.output

    def test_requires_existing_file(self, runner):
        result = runner.invoke(cli, ["generate", "/nonexistent/calc.py"])

        assert result.exit_code != 0
        assert "does not exist" in result.output

    def test_missing_api_key(self, runner, py_workspace, config_dir, monkeypatch):
        for name in ("LLM_API_KEY", "ANTHROPIC_API_KEY", "LLM_BASE_URL", "LLM_PROVIDER"):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.setenv("MODEL_NAME", "claude-sonnet-4-5")

        result = runner.invoke(
            cli, ["generate", str(py_workspace / "src/calc/service.py"), "--config", str(config_dir)]
        )

        assert result.exit_code == 1
        assert "no API key set" in result.output

    @patch("sorcerer.main._run_generate")
    def test_options_reach_the_config(self, mock_run, runner, py_workspace, config_dir, api_key):
        mock_run.return_value = 0
        target = py_workspace / "src/calc/service.py"

        result = runner.invoke(
            cli,
            [
                "generate",
                str(target),
                "--config",
                str(config_dir),
                "-d",
                "1",
                "--max-fix-attempts",
                "5",
                "-e",
                "coverage",
                "-e",
                "verify",
                "--skip-existing",
                "--mode",
                "remote",
            ],
        )

        assert result.exit_code == 0
        config = mock_run.call_args[0][0]
        assert config.sorcerer.file_to_test == str(target)
        assert config.sorcerer.max_fix_attempts == 5
        assert config.sorcerer.enhancements == [EnhancementType.COVERAGE, EnhancementType.VERIFY]
        assert config.sorcerer.skip_to_enhance_if_tests_exist is True
        assert config.sorcerer.mode == "remote"
        assert config.generation.context_search_depth == 1

    @patch("sorcerer.main._run_generate")
    def test_failed_run_sets_exit_code(self, mock_run, runner, py_workspace, config_dir, api_key):
        mock_run.return_value = 1

        result = runner.invoke(
            cli, ["generate", str(py_workspace / "src/calc/service.py"), "--config", str(config_dir)]
        )

        assert result.exit_code == 1

    def test_invalid_enhancement_rejected(self, runner, py_workspace):
        result = runner.invoke(cli, ["generate", str(py_workspace / "src/calc/service.py"), "-e", "polish"])

        assert result.exit_code != 0
        assert "Invalid value" in result.output


class TestAnalyzeCommand:
    def test_reports_definitions(self, runner, py_workspace, config_dir):
        result = runner.invoke(
            cli, ["analyze", str(py_workspace / "src/calc/service.py"), "--config", str(config_dir)]
        )

        assert result.exit_code == 0
        assert "🔍 Analyzing:" in result.output
        assert "Definitions: 3" in result.output
        assert "- calc.clock.ITimeProvider (supplemented)" in result.output
        assert "- calc.models.Operand" in result.output
        assert "Supplements: 1" in result.output
        assert "Test worthiness: excellent" in result.output
        assert "Context:" not in result.output

    def test_depth_zero_and_context(self, runner, py_workspace, config_dir):
        result = runner.invoke(
            cli,
            [
                "analyze",
                str(py_workspace / "src/calc/service.py"),
                "--config",
                str(config_dir),
                "--depth",
                "0",
                "--show-context",
            ],
        )

        assert result.exit_code == 0
        assert "Definitions: 2" in result.output
        assert "calc.models.Unit" not in result.output
        assert "📋 Context:" in result.output
        assert "Symbol: calc.models.Operand" in result.output

    def test_file_outside_any_project(self, runner, tmp_path, config_dir):
        loose = tmp_path / "loose.py"
        loose.write_text("x = 1\n")

        result = runner.invoke(cli, ["analyze", str(loose), "--config", str(config_dir)])

        assert result.exit_code == 1
        assert "Error:" in result.output
