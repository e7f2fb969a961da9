"""Tests for the unit test fixer."""

from pathlib import Path

import pytest

from conftest import FakeChatAPI, ai_response
from sorcerer.config import GenerationConfig
from sorcerer.errors import ParseError
from sorcerer.generation import UnitTestFixer, get_file_lines
from sorcerer.models import (
    AnalysisResult,
    FixContext,
    TestCaseResult,
    TestRunResult,
    UnitTestAIResponse,
    UnitTestGenerationResult,
)

TEST_SOURCE = "\n".join(f"line {n}" for n in range(1, 11)) + "\n"


@pytest.fixture
def test_file(tmp_path: Path) -> Path:
    path = tmp_path / "tests" / "calculatorTests.py"
    path.parent.mkdir()
    path.write_text(TEST_SOURCE)
    return path


def _generation(session: str = "session-1") -> UnitTestGenerationResult:
    return UnitTestGenerationResult(
        analysis=AnalysisResult(),
        ai_response=UnitTestAIResponse(test_file_content="old"),
        chat_session=session,
    )


def _context(run: TestRunResult, attempt: int = 0, root: str = "") -> FixContext:
    return FixContext(
        attempt=attempt,
        last_test_run_results=run,
        last_generation_result=_generation(),
        project_root_path=root,
    )


class TestGetFileLines:
    def test_window_with_marker(self, test_file):
        lines = get_file_lines("", str(test_file), 5, 2, "  # <-- Issue here")

        assert lines == "line 3\nline 4\nline 5  # <-- Issue here\nline 6\nline 7"

    def test_window_clamped_at_file_edges(self, test_file):
        assert get_file_lines("", str(test_file), 1, 2, " <") == "line 1 <\nline 2\nline 3"
        assert get_file_lines("", str(test_file), 10, 1, " <") == "line 9\nline 10 <"

    def test_relative_path_resolved_against_root(self, test_file, tmp_path):
        lines = get_file_lines(str(tmp_path), "tests/calculatorTests.py", 2, 0, " <")

        assert lines == "line 2 <"

    @pytest.mark.parametrize("line_number", [0, 11, 99])
    def test_out_of_range_returns_none(self, test_file, line_number):
        assert get_file_lines("", str(test_file), line_number, 2, " <") is None

    def test_missing_file_returns_none(self, tmp_path):
        assert get_file_lines(str(tmp_path), "nope.py", 1, 2, " <") is None


class TestBuildIssues:
    @pytest.fixture
    def fixer(self):
        return UnitTestFixer(GenerationConfig(issue_context_line_count=1), FakeChatAPI())

    def test_build_error_with_context(self, fixer, test_file, tmp_path):
        run = TestRunResult(build_errors=["tests/calculatorTests.py:4:7: SyntaxError: invalid syntax"])

        issues = fixer.build_issues(str(tmp_path), run, test_file)

        assert issues.startswith("Build Error\n---------\ntests/calculatorTests.py:4:7: SyntaxError")
        assert "line 3\nline 4  # <-- Issue here\nline 5" in issues

    def test_test_failure_uses_traceback_location(self, fixer, test_file, tmp_path):
        trace = f'Traceback (most recent call last):\n  File "{test_file}", line 8, in test_add\nAssertionError'
        run = TestRunResult(
            failed_tests=[
                TestCaseResult(
                    full_name="tests/calculatorTests.py::test_add",
                    result="Failed",
                    message="assert 3 == 4",
                    stack_trace=trace,
                )
            ]
        )

        issues = fixer.build_issues(str(tmp_path), run, test_file)

        assert "Test: tests/calculatorTests.py::test_add" in issues
        assert "Message: assert 3 == 4" in issues
        assert "line 8  # <-- Issue here" in issues

    def test_test_failure_uses_pytest_location(self, fixer, test_file, tmp_path):
        run = TestRunResult(
            failed_tests=[
                TestCaseResult(
                    full_name="t",
                    result="Failed",
                    message="boom",
                    stack_trace="tests/calculatorTests.py:6: AssertionError",
                )
            ]
        )

        issues = fixer.build_issues(str(tmp_path), run, test_file)

        assert "line 6  # <-- Issue here" in issues

    def test_tooling_errors_only_without_failures(self, fixer, test_file, tmp_path):
        tooling_only = TestRunResult(errors=["ERROR collecting tests/calculatorTests.py"])
        with_failure = TestRunResult(
            errors=["ERROR something"],
            failed_tests=[TestCaseResult(full_name="t", result="Failed", message="m")],
        )

        assert "Tooling Error" in fixer.build_issues(str(tmp_path), tooling_only, test_file)
        assert "Tooling Error" not in fixer.build_issues(str(tmp_path), with_failure, test_file)

    def test_nested_project_locations_use_the_project_path(self, fixer, tmp_path):
        (tmp_path / ".git").mkdir()
        test_file = tmp_path / "sub" / "tests" / "fooTests.py"
        test_file.parent.mkdir(parents=True)
        test_file.write_text("def test_foo():\n    print((\n")
        run = TestRunResult(
            build_errors=["tests/fooTests.py:2:9: SyntaxError: '(' was never closed"],
            failed_tests=[
                TestCaseResult(
                    full_name="tests/fooTests.py::test_foo",
                    result="Failed",
                    message="boom",
                    stack_trace="tests/fooTests.py:1: AssertionError",
                )
            ],
        )
        context = FixContext(
            attempt=0,
            last_test_run_results=run,
            last_generation_result=_generation(),
            project_root_path=str(tmp_path),
            test_project_path=str(tmp_path / "sub"),
        )

        prompt = fixer.build_user_prompt(context, test_file)

        assert "    print((  # <-- Issue here" in prompt
        assert "def test_foo():  # <-- Issue here" in prompt

    def test_script_marker_for_typescript(self, fixer, tmp_path):
        ts_file = tmp_path / "calc.test.ts"
        ts_file.write_text("a\nb\nc\n")
        run = TestRunResult(build_errors=["calc.test.ts:2:1: error TS2304: Cannot find name"])

        issues = fixer.build_issues(str(tmp_path), run, ts_file)

        assert "b  // <-- Issue here" in issues


class TestFix:
    def test_reuses_session_and_returns_new_content(self, test_file, tmp_path):
        api = FakeChatAPI([ai_response("def test_fixed():\n    assert True\n")])
        fixer = UnitTestFixer(GenerationConfig(), api)
        run = TestRunResult(build_errors=["tests/calculatorTests.py:1:1: SyntaxError: bad"])

        result = fixer.fix(_context(run, root=str(tmp_path)), test_file, tmp_path / "calc.py")

        assert result.chat_session == "session-1"
        assert api.calls[0][0] == "session-1"
        assert result.ai_response.test_file_content.startswith("def test_fixed")
        assert "unit test fixing bot" in api.system_prompts[0]

    def test_retry_preamble_only_after_first_attempt(self, test_file):
        fixer = UnitTestFixer(GenerationConfig(), FakeChatAPI())
        run = TestRunResult(errors=["x"])

        first = fixer.build_user_prompt(_context(run, attempt=0), test_file)
        later = fixer.build_user_prompt(_context(run, attempt=2), test_file)

        assert "This is attempt" not in first
        assert "This is attempt 3." in later

    def test_empty_content_raises(self, test_file, tmp_path):
        api = FakeChatAPI([ai_response("   ")])
        fixer = UnitTestFixer(GenerationConfig(), api)

        with pytest.raises(ParseError):
            fixer.fix(_context(TestRunResult(errors=["x"])), test_file, tmp_path / "calc.py")
