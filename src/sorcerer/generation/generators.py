"""Framework-specific test generators."""

from __future__ import annotations

import re
from pathlib import Path

from ..intelligence import detect_language
from .base import BaseUnitTestGenerator

_ASYNC_PATTERN = re.compile(r"^\s*async\s+def\s+\w+", re.MULTILINE)
_ABSTRACT_PATTERN = re.compile(r"^\s*class\s+\w+\((?:.*\b)?(?:ABC|Protocol)\b.*\):", re.MULTILINE)
_CLOCK_PATTERN = re.compile(r"\b(?:time\.time|time\.monotonic|datetime\.now|datetime\.utcnow)\(")
_TIMER_PATTERN = re.compile(r"\b(?:setTimeout|setInterval|Date\.now)\(")
_EMITTER_PATTERN = re.compile(r"\bclass\s+\w+\s+extends\s+EventEmitter\b")

ASYNC_GUIDANCE = """
The unit under test has coroutines. Drive them with asyncio.run(...) inside synchronous tests
unless the project already uses pytest-asyncio, in which case use @pytest.mark.asyncio.
Replace awaited collaborators with unittest.mock.AsyncMock.
"""

ABSTRACT_GUIDANCE = """
The unit under test declares abstract classes or protocols. Do not instantiate them directly;
write a minimal concrete subclass inside the test module, or test the concrete implementations
that live in the same file.
"""

CLOCK_GUIDANCE = """
The unit under test reads the wall clock. Use the provided time provider supplements when they
exist, otherwise patch the clock function at the module under test with unittest.mock.patch.
"""

TIMER_GUIDANCE = """
The unit under test uses timers. Call jest.useFakeTimers() in beforeEach, advance time with
jest.advanceTimersByTime(...) and restore with jest.useRealTimers() in afterEach.
"""

EMITTER_GUIDANCE = """
The unit under test is an EventEmitter. Drive behaviour by emitting events on it and assert on
listeners registered with jest.fn(); never reach into its private fields.
"""


class PytestUnitTestGenerator(BaseUnitTestGenerator):
    """Generate pytest suites for Python modules."""

    role = "pytest unit test generation bot"
    language = "python"
    framework = "pytest"
    additional_guidelines = (
        "Use plain assert statements, pytest fixtures for shared setup and "
        "unittest.mock for collaborators. Name test functions test_<behaviour>."
    )

    def supplemental_system_prompt(self, uut_content: str) -> str:
        parts = []
        if _ASYNC_PATTERN.search(uut_content):
            parts.append(ASYNC_GUIDANCE)
        if _ABSTRACT_PATTERN.search(uut_content):
            parts.append(ABSTRACT_GUIDANCE)
        if _CLOCK_PATTERN.search(uut_content):
            parts.append(CLOCK_GUIDANCE)
        return "".join(parts)


class JestUnitTestGenerator(BaseUnitTestGenerator):
    """Generate Jest suites for TypeScript/JavaScript modules."""

    role = "jest unit test generation bot"
    language = "typescript"
    framework = "jest"
    additional_guidelines = (
        "Use describe/it blocks, jest.fn() and jest.mock() for collaborators, and import the "
        "unit under test with a relative path from the test file location."
    )

    def supplemental_system_prompt(self, uut_content: str) -> str:
        parts = []
        if _TIMER_PATTERN.search(uut_content):
            parts.append(TIMER_GUIDANCE)
        if _EMITTER_PATTERN.search(uut_content):
            parts.append(EMITTER_GUIDANCE)
        return "".join(parts)


def generator_class_for(file_to_test: str | Path) -> type[BaseUnitTestGenerator]:
    """Pick the generator matching the language of ``file_to_test``.

    Raises:
        ValueError: For files that are neither Python nor JS/TS
    """
    language = detect_language(file_to_test)
    if language == "python":
        return PytestUnitTestGenerator
    if language in ("typescript", "javascript"):
        return JestUnitTestGenerator
    raise ValueError(f"Unsupported source file: {file_to_test}")
