"""Tests for configuration loading."""

import pytest

from sorcerer.config import DEFAULT_EXCLUDED_NAMESPACES, Config
from sorcerer.models import EnhancementType

ENV_VARS = [
    "LLM_PROVIDER",
    "MODEL_NAME",
    "LLM_API_KEY",
    "LLM_BASE_URL",
    "ANTHROPIC_API_KEY",
    "OPENAI_API_KEY",
    "SORCERER_ENV",
    "SORCERER_MODE",
    "SORCERER_MAX_FIX_ATTEMPTS",
    "SORCERER_CONTEXT_DEPTH",
    "SORCERER_SKIP_EXISTING",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    config = Config.from_env()

    assert config.sorcerer.max_fix_attempts == 3
    assert config.sorcerer.mode == "local"
    assert config.generation.context_search_depth == 2
    assert config.crawler.excluded_namespaces == DEFAULT_EXCLUDED_NAMESPACES
    assert config.crawler.supplements["ITimeProvider"][1] == "MockTimeProvider"
    assert config.llm.api_key is None


def test_config_from_env_overrides(monkeypatch):
    """Environment variables should override defaults."""
    monkeypatch.setenv("MODEL_NAME", "custom-model")
    monkeypatch.setenv("SORCERER_MODE", "remote")
    monkeypatch.setenv("SORCERER_MAX_FIX_ATTEMPTS", "7")
    monkeypatch.setenv("SORCERER_SKIP_EXISTING", "yes")
    monkeypatch.setenv("SORCERER_CONTEXT_DEPTH", "not-a-number")

    config = Config.from_env()

    assert config.llm.model_name == "custom-model"
    assert config.sorcerer.mode == "remote"
    assert config.sorcerer.max_fix_attempts == 7
    assert config.sorcerer.skip_to_enhance_if_tests_exist is True
    assert config.generation.context_search_depth == 2


def test_invalid_mode_is_ignored(monkeypatch):
    monkeypatch.setenv("SORCERER_MODE", "cloud")

    assert Config.from_env().sorcerer.mode == "local"


@pytest.mark.parametrize(
    "model_name, variable",
    [
        ("claude-sonnet-4-5", "ANTHROPIC_API_KEY"),
        ("gpt-4o", "OPENAI_API_KEY"),
    ],
)
def test_api_key_follows_model(monkeypatch, model_name, variable):
    monkeypatch.setenv("MODEL_NAME", model_name)
    monkeypatch.setenv(variable, "from-env")

    assert Config.from_env().llm.api_key == "from-env"


def test_explicit_api_key_wins(monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "provider-key")
    monkeypatch.setenv("LLM_API_KEY", "explicit-key")

    assert Config.from_env().llm.api_key == "explicit-key"


class TestLayeredLoading:
    def test_yaml_layers_merge_in_order(self, tmp_path):
        (tmp_path / "sorcerer.yaml").write_text(
            "sorcerer:\n"
            "  max_fix_attempts: 5\n"
            "  enhancements: [coverage, verify]\n"
            "generation:\n"
            "  context_search_depth: 1\n"
        )
        (tmp_path / "sorcerer.ci.yaml").write_text("sorcerer:\n  max_fix_attempts: 1\n")
        (tmp_path / "secrets.yaml").write_text("llm:\n  api_key: secret\n")

        config = Config.load(tmp_path, env="ci")

        assert config.sorcerer.max_fix_attempts == 1
        assert config.sorcerer.enhancements == [EnhancementType.COVERAGE, EnhancementType.VERIFY]
        assert config.generation.context_search_depth == 1
        assert config.llm.api_key == "secret"

    def test_environment_layer_selected_by_variable(self, tmp_path, monkeypatch):
        (tmp_path / "sorcerer.dev.yaml").write_text("runner:\n  timeout: 30\n")
        monkeypatch.setenv("SORCERER_ENV", "dev")

        assert Config.load(tmp_path).runner.timeout == 30

    def test_env_vars_override_files(self, tmp_path, monkeypatch):
        (tmp_path / "sorcerer.yaml").write_text("sorcerer:\n  max_fix_attempts: 5\n")
        monkeypatch.setenv("SORCERER_MAX_FIX_ATTEMPTS", "2")

        assert Config.load(tmp_path).sorcerer.max_fix_attempts == 2

    def test_missing_files_give_defaults(self, tmp_path):
        assert Config.load(tmp_path) == Config.from_env()

    def test_non_mapping_file_rejected(self, tmp_path):
        (tmp_path / "sorcerer.yaml").write_text("- just\n- a list\n")

        with pytest.raises(ValueError):
            Config.load(tmp_path)
