"""Configuration management for the Unit Test Sorcerer.

Settings are layered: built-in defaults, then ``sorcerer.yaml``, then
``sorcerer.<env>.yaml``, then ``secrets.yaml`` (all optional, looked up in the
config directory), and finally environment variables (``.env`` is loaded via
python-dotenv).
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .models import EnhancementType

logger = logging.getLogger(__name__)

load_dotenv()


DEFAULT_EXCLUDED_NAMESPACES = [
    "builtins",
    "typing",
    "typing_extensions",
    "abc",
    "collections",
    "dataclasses",
    "enum",
    "functools",
    "itertools",
    "os",
    "pathlib",
    "re",
    "sys",
    "json",
    "logging",
    "datetime",
    "time",
    "asyncio",
    "unittest",
    "pytest",
    "_pytest",
    "mock",
    "hypothesis",
    "pydantic",
    "jest",
    "@jest",
    "vitest",
    "sinon",
    "node:",
]

DEFAULT_IGNORED_DIRS = [
    ".git",
    "node_modules",
    "__pycache__",
    ".venv",
    "venv",
    "dist",
    "build",
    ".pytest_cache",
    ".mypy_cache",
    ".tox",
]

DEFAULT_SUPPLEMENTS = {
    "ITimeProvider": ("Time providers should be mocked", "MockTimeProvider"),
    "ITickProvider": ("Tick providers should be mocked", "MockTickProvider"),
}


class LLMConfig(BaseModel):
    """Chat model settings."""

    provider: str = Field(default="anthropic")
    model_name: str = Field(default="claude-3-5-sonnet-20241022")
    api_key: Optional[str] = Field(default=None)
    base_url: Optional[str] = Field(default=None)
    max_retries: int = Field(default=3)
    timeout: int = Field(default=120)
    max_tokens: int = Field(default=8192)
    temperature: float = Field(default=0.0)
    enable_functions: bool = Field(default=True)
    max_function_rounds: int = Field(default=8)
    transmit_function_results: bool = Field(default=False)


class GenerationConfig(BaseModel):
    """Prompt-building settings shared by generator, fixer and enhancer."""

    context_search_depth: int = Field(default=2)
    issue_context_line_count: int = Field(default=3)
    style_prompt: str = Field(default="")
    max_json_retries: int = Field(default=3)
    test_file_template: str = Field(default="{stem}Tests{suffix}")


class SorcererConfig(BaseModel):
    """Orchestrator settings."""

    file_to_test: Optional[str] = Field(default=None)
    max_fix_attempts: int = Field(default=3)
    enhancements: list[EnhancementType] = Field(default_factory=list)
    skip_to_enhance_if_tests_exist: bool = Field(default=False)
    mode: Literal["local", "remote"] = Field(default="local")
    stop_on_repeated_fix: bool = Field(default=False)


class RunnerConfig(BaseModel):
    """Test runner settings."""

    python_executable: str = Field(default="python")
    timeout: int = Field(default=600)
    extra_args: list[str] = Field(default_factory=list)
    server_url: str = Field(default="http://localhost:8080")
    remote_timeout: int = Field(default=300)
    launch_command: list[str] = Field(default_factory=list)
    startup_timeout: int = Field(default=120)
    poll_interval: float = Field(default=2.0)


class CrawlerConfig(BaseModel):
    """Definition crawl settings."""

    excluded_namespaces: list[str] = Field(
        default_factory=lambda: DEFAULT_EXCLUDED_NAMESPACES.copy()
    )
    priority_projects: list[str] = Field(default_factory=list)
    skip_own_types: bool = Field(default=False)
    ignored_dirs: list[str] = Field(default_factory=lambda: DEFAULT_IGNORED_DIRS.copy())
    supplements: dict[str, tuple[str, str]] = Field(
        default_factory=lambda: dict(DEFAULT_SUPPLEMENTS)
    )


class Config(BaseModel):
    """Application configuration."""

    llm: LLMConfig = Field(default_factory=LLMConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    sorcerer: SorcererConfig = Field(default_factory=SorcererConfig)
    runner: RunnerConfig = Field(default_factory=RunnerConfig)
    crawler: CrawlerConfig = Field(default_factory=CrawlerConfig)

    @classmethod
    def load(cls, config_dir: Path | str | None = None, env: str | None = None) -> "Config":
        """Load layered YAML configuration, then apply environment overrides.

        Args:
            config_dir: Directory holding the YAML files (defaults to the cwd)
            env: Environment name selecting ``sorcerer.<env>.yaml``
                (defaults to ``SORCERER_ENV``)

        Returns:
            Fully merged Config
        """
        directory = Path(config_dir) if config_dir else Path.cwd()
        env = env or os.getenv("SORCERER_ENV")

        names = ["sorcerer.yaml"]
        if env:
            names.append(f"sorcerer.{env}.yaml")
        names.append("secrets.yaml")

        data: dict[str, Any] = {}
        for name in names:
            path = directory / name
            if path.is_file():
                logger.debug("Loading configuration layer %s", path)
                data = _deep_merge(data, _read_yaml(path))

        return cls.model_validate(data).with_env_overrides()

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables only."""
        return cls().with_env_overrides()

    def with_env_overrides(self) -> "Config":
        """Return a copy with environment variables applied on top."""
        def _parse_int(value: Optional[str], fallback: int) -> int:
            try:
                return int(value) if value is not None else fallback
            except ValueError:
                return fallback

        def _parse_bool(value: Optional[str], fallback: bool) -> bool:
            if value is None:
                return fallback
            return value.strip().lower() in ("1", "true", "yes", "on")

        llm = self.llm.model_copy(
            update={
                "provider": os.getenv("LLM_PROVIDER", self.llm.provider),
                "model_name": os.getenv("MODEL_NAME", self.llm.model_name),
                "api_key": _resolve_api_key(self.llm),
                "base_url": os.getenv("LLM_BASE_URL", self.llm.base_url),
                "max_retries": _parse_int(os.getenv("LLM_MAX_RETRIES"), self.llm.max_retries),
                "timeout": _parse_int(os.getenv("LLM_TIMEOUT"), self.llm.timeout),
            }
        )
        generation = self.generation.model_copy(
            update={
                "context_search_depth": _parse_int(
                    os.getenv("SORCERER_CONTEXT_DEPTH"), self.generation.context_search_depth
                ),
                "style_prompt": os.getenv("SORCERER_STYLE_PROMPT", self.generation.style_prompt),
            }
        )
        mode = os.getenv("SORCERER_MODE")
        sorcerer = self.sorcerer.model_copy(
            update={
                "mode": mode if mode in ("local", "remote") else self.sorcerer.mode,
                "max_fix_attempts": _parse_int(
                    os.getenv("SORCERER_MAX_FIX_ATTEMPTS"), self.sorcerer.max_fix_attempts
                ),
                "skip_to_enhance_if_tests_exist": _parse_bool(
                    os.getenv("SORCERER_SKIP_EXISTING"),
                    self.sorcerer.skip_to_enhance_if_tests_exist,
                ),
            }
        )
        runner = self.runner.model_copy(
            update={
                "server_url": os.getenv("SORCERER_SERVER_URL", self.runner.server_url),
                "timeout": _parse_int(os.getenv("SORCERER_RUNNER_TIMEOUT"), self.runner.timeout),
            }
        )
        return self.model_copy(
            update={"llm": llm, "generation": generation, "sorcerer": sorcerer, "runner": runner}
        )


def _resolve_api_key(llm: LLMConfig) -> Optional[str]:
    """Pick the API key matching the configured provider."""
    explicit = os.getenv("LLM_API_KEY")
    if explicit:
        return explicit
    if llm.api_key:
        return llm.api_key

    model = llm.model_name.lower()
    if llm.provider == "openai" or model.startswith(("gpt-", "o1", "openai/")):
        return os.getenv("OPENAI_API_KEY")
    if model.startswith(("gemini", "google/")):
        return os.getenv("GOOGLE_API_KEY")
    return os.getenv("ANTHROPIC_API_KEY")


def _read_yaml(path: Path) -> dict[str, Any]:
    with open(path, encoding="utf-8") as handle:
        loaded = yaml.safe_load(handle) or {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping")
    return loaded


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged
