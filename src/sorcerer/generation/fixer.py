"""Repair a failing test file using build errors and test failures as feedback."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from ..config import GenerationConfig
from ..errors import ParseError
from ..intelligence import detect_language
from ..llm.prompts import (
    COMMON_TEST_GUIDELINES,
    FIX_RETRY_PREAMBLE,
    FIX_SYSTEM_PROMPT,
    FIX_USER_PROMPT,
    JSON_RULES,
)
from ..llm.provider import ChatAPI
from ..models import FixContext, TestRunResult, UnitTestGenerationResult
from ..output import Outputter
from .response import request_response

logger = logging.getLogger(__name__)

# "path:line:col: SyntaxError: ..." as produced by the build step
BUILD_ERROR_PATTERN = re.compile(r"^(.*?):(\d+):(?:\d+:)?\s", re.MULTILINE)
# "tests/test_x.py:12: AssertionError" as printed by pytest
PYTEST_LOCATION_PATTERN = re.compile(r"^(.*?\.pyi?):(\d+):", re.MULTILINE)
# 'File "/abs/path.py", line 12, in test_x' from Python tracebacks
TRACEBACK_PATTERN = re.compile(r'File "(.*?)", line (\d+)')
# "at fn (src/x.test.ts:12:5)" from JS stack traces
SCRIPT_LOCATION_PATTERN = re.compile(r"([^\s()]+\.(?:ts|tsx|js|jsx|mjs)):(\d+):\d+")

STACK_PATTERNS = (PYTEST_LOCATION_PATTERN, TRACEBACK_PATTERN, SCRIPT_LOCATION_PATTERN)

ISSUE_MARKER = "<-- Issue here"


class UnitTestFixer(Outputter):
    """Ask the model to fix the last generated tests, in the same chat session."""

    output_role = "fixer"

    def __init__(self, config: GenerationConfig, api: ChatAPI):
        self.config = config
        self.api = api

    def fix(
        self, context: FixContext, test_file_path: str | Path, uut_path: str | Path
    ) -> UnitTestGenerationResult:
        """Produce a fixed test file.

        Args:
            context: Last run results and generation result
            test_file_path: Test file that failed
            uut_path: File under test

        Returns:
            Result carrying the fixed file, in the same session as before

        Raises:
            ParseError: If the model answers without usable JSON or with an
                empty test file
        """
        user_prompt = self.build_user_prompt(context, Path(test_file_path))
        self.emit(f"Fixing tests with prompt:\n{user_prompt}")

        self.api.system_prompt = self.build_system_prompt()
        session = context.last_generation_result.chat_session
        response = request_response(self.api, session, user_prompt, self.config.max_json_retries)

        self.emit(f"Got response from the model:\n\n{response.to_display_text()}")

        if not response.test_file_content.strip():
            raise ParseError("Got empty test content from the model")

        logger.debug("Fix attempt %d for %s produced a new test file", context.attempt + 1, uut_path)
        return UnitTestGenerationResult(
            analysis=context.last_generation_result.analysis,
            ai_response=response,
            chat_session=session,
        )

    def build_system_prompt(self) -> str:
        return FIX_SYSTEM_PROMPT.format(
            guidelines=COMMON_TEST_GUIDELINES,
            style_prompt=self.config.style_prompt,
            json_rules=JSON_RULES,
        )

    def build_user_prompt(self, context: FixContext, test_file_path: Path) -> str:
        preamble = FIX_RETRY_PREAMBLE.format(attempt=context.attempt + 1) if context.attempt > 0 else ""
        issues = self.build_issues(
            context.project_root_path,
            context.last_test_run_results,
            test_file_path,
            project_path=context.test_project_path,
        )
        return FIX_USER_PROMPT.format(preamble=preamble, issues=issues)

    def build_issues(
        self, root_path: str, run: TestRunResult, test_file_path: Path, project_path: str = ""
    ) -> str:
        """Describe every problem in ``run``, with the offending code where it can be found.

        Relative locations are tried against ``project_path`` (where the runner
        ran) before ``root_path``.
        """
        marker = self._marker_for(test_file_path)
        roots = [path for path in (project_path, root_path) if path] or [""]
        lines: list[str] = []

        for error in run.build_errors:
            context = self._context_from(roots, error, (BUILD_ERROR_PATTERN,), marker)
            if context:
                lines.append(
                    f"Build Error\n---------\n{error}\n---Start of code with issue---\n"
                    f"{context}\n---End of code with issue---"
                )
            else:
                lines.append(f"Build Error\n---------\n{error}\n---------")

        for failure in run.failed_tests:
            lines.append("Test Failure\n---------")
            lines.append(f"Test: {failure.full_name}")
            lines.append(f"Result: {failure.result}")
            lines.append(f"Message: {failure.message.strip()}")
            if failure.stack_trace:
                lines.append(f"StackTrace: {failure.stack_trace.strip()}\n---------")

            context = self._context_from(roots, failure.stack_trace, STACK_PATTERNS, marker)
            if context:
                lines.append(f"---Start of code with issue---\n{context}\n---End of code with issue---")

        if not run.success and run.errors and not run.failed_tests and not run.build_errors:
            for error in run.errors:
                context = self._context_from(roots, error, STACK_PATTERNS, marker)
                if context:
                    lines.append(
                        f"Tooling Error\n---------\n{error}\n---Start of code with issue---\n"
                        f"{context}\n---End of code with issue---"
                    )
                else:
                    lines.append(f"Tooling Error\n---------\n{error}\n---------")

        return "\n".join(lines)

    def _context_from(
        self,
        roots: list[str],
        message: str,
        patterns: tuple[re.Pattern, ...],
        marker: str,
    ) -> str | None:
        if not message:
            return None
        for pattern in patterns:
            for match in pattern.finditer(message):
                for root in roots:
                    context = get_file_lines(
                        root,
                        match.group(1).strip(),
                        int(match.group(2)),
                        self.config.issue_context_line_count,
                        marker,
                    )
                    if context is not None:
                        return context
        return None

    @staticmethod
    def _marker_for(test_file_path: Path) -> str:
        comment = "#" if detect_language(test_file_path) == "python" else "//"
        return f"  {comment} {ISSUE_MARKER}"


def get_file_lines(
    root_path: str | Path, file_path: str, line_number: int, radius: int, marker: str
) -> str | None:
    """Lines around ``line_number`` (1-indexed) with the offending line annotated.

    Relative paths are resolved against ``root_path``. Returns None when the
    file cannot be read or the line is out of range.
    """
    path = Path(file_path)
    if not _is_file(path):
        path = Path(root_path) / file_path
        if not _is_file(path):
            logger.debug("Issue file not found: %s", file_path)
            return None

    try:
        file_lines = path.read_text(encoding="utf-8", errors="replace").splitlines()
    except OSError as e:
        logger.debug("Could not read %s: %s", path, e)
        return None

    index = line_number - 1
    if index < 0 or index >= len(file_lines):
        return None

    start = max(index - radius, 0)
    end = min(index + radius, len(file_lines) - 1)
    out = []
    for i in range(start, end + 1):
        out.append(file_lines[i] + marker if i == index else file_lines[i])
    return "\n".join(out)


def _is_file(path: Path) -> bool:
    try:
        return path.is_file()
    except OSError:
        return False
