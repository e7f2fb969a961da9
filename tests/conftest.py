"""Pytest configuration and shared fixtures."""

import json
from pathlib import Path
from textwrap import dedent

import pytest

from sorcerer.config import Config, LLMConfig


def write_files(root: Path, files: dict[str, str]) -> Path:
    """Create ``files`` (relative path -> content) under ``root``."""
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(dedent(content).lstrip("\n"))
    return root


PYTHON_WORKSPACE = {
    "pyproject.toml": """
        [project]
        name = "calc"
        version = "0.1.0"
    """,
    "src/calc/__init__.py": "",
    "src/calc/models.py": """
        from dataclasses import dataclass


        @dataclass
        class Operand:
            value: float
            unit: "Unit"


        class Unit:
            name: str = "m"


        class Unused:
            pass
    """,
    "src/calc/clock.py": """
        from typing import Protocol


        class ITimeProvider(Protocol):
            def now(self) -> float: ...


        class MockTimeProvider:
            def __init__(self, value: float = 0.0):
                self.value = value

            def now(self) -> float:
                return self.value
    """,
    "src/calc/service.py": """
        import re

        from calc.models import Operand
        from .clock import ITimeProvider


        class Calculator:
            def __init__(self, clock: ITimeProvider):
                self.clock = clock

            def add(self, a: Operand, b: Operand) -> float:
                return a.value + b.value

            def stamp(self) -> str:
                return re.sub(r"\\s", "", str(self.clock.now()))
    """,
    "tests/test_models.py": """
        def test_placeholder():
            assert True
    """,
}


@pytest.fixture
def py_workspace(tmp_path: Path) -> Path:
    """A small Python project with a src/ layout and a tests/ directory."""
    return write_files(tmp_path / "calc_project", PYTHON_WORKSPACE).resolve()


@pytest.fixture
def config() -> Config:
    """Provide a test configuration."""
    return Config(llm=LLMConfig(provider="anthropic", model_name="claude-sonnet-4-5", api_key="test-key"))


class FakeChatAPI:
    """ChatAPI double answering from a queue and recording every prompt."""

    def __init__(self, responses=None):
        self.system_prompt = ""
        self.active_session_id = None
        self.responses = list(responses or [])
        self.calls: list[tuple[str, str]] = []
        self.system_prompts: list[str] = []

    def prompt(self, session_id: str, text: str) -> str:
        self.active_session_id = session_id
        self.calls.append((session_id, text))
        self.system_prompts.append(self.system_prompt)
        if not self.responses:
            raise RuntimeError("No response queued")
        return self.responses.pop(0)


def ai_response(content: str = "def test_ok():\n    assert True\n", **extra) -> str:
    """A well-formed model answer carrying ``content`` as the test file."""
    return json.dumps({"test_file_name": "calculatorTests.py", "test_file_content": content, **extra})


@pytest.fixture
def fake_api() -> FakeChatAPI:
    return FakeChatAPI()
