"""Run Python tests locally with pytest."""

from __future__ import annotations

import logging
import subprocess
import tempfile
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Optional

from ..config import DEFAULT_IGNORED_DIRS, RunnerConfig
from ..errors import ToolingError
from ..intelligence import detect_language
from ..models import TestCaseResult, TestRunResult
from ..output import Outputter
from .protocol import TestRunnerAction

logger = logging.getLogger(__name__)

NO_TESTS_COLLECTED = 5
RESULT_FILE_NAME = "results.xml"
SKIPPED_DIRS = frozenset(DEFAULT_IGNORED_DIRS)


class PytestTestRunner(Outputter):
    """Compile, collect and run tests through ``python -m pytest``.

    Compilation stands in for a build step: a syntax error in a test file
    is reported as a build error in ``path:line:col: SyntaxError: msg`` form
    so the fixer can point at the offending line.
    """

    output_role = "runner"

    def __init__(self, config: RunnerConfig | None = None):
        self.config = config or RunnerConfig()
        self.current_action = TestRunnerAction.IDLE

    def prepare(self, target_path: str) -> str:
        self.current_action = TestRunnerAction.VALIDATING

        if detect_language(target_path) != "python":
            return f"The local runner only runs Python tests; use remote mode for {Path(target_path).name}"

        try:
            completed = self._pytest(["--version"], cwd=None)
        except ToolingError as e:
            return str(e)

        if completed.returncode != 0:
            output = (completed.stdout + completed.stderr).strip()
            return f"pytest is not available for '{self.config.python_executable}': {output}"
        return ""

    def run_tests(self, project_path: str, test_filter: Optional[str] = None) -> TestRunResult:
        """Run the tests selected by ``test_filter`` under ``project_path``.

        ``test_filter`` may be a node id, a path or a test file stem. A stem
        that matches no file is handed to pytest as a ``-k`` expression.

        Raises:
            ToolingError: If pytest cannot be launched or times out
        """
        root = self._root(project_path)
        targets, keyword = self._resolve_targets(root, test_filter)
        result = self._run(root, targets, keyword)
        if result.success:
            self.emit(f"All {len(result.passed_tests)} tests passed")
        return result

    def run_failures(self, project_path: str, previous: TestRunResult) -> TestRunResult:
        """Rerun exactly the tests that failed in ``previous``."""
        node_ids = [test.full_name for test in previous.failed_tests]
        if not node_ids:
            self.emit("No failed tests to rerun.")
            return TestRunResult()

        result = self._run(self._root(project_path), node_ids, None)
        if result.success:
            self.emit(f"All {len(result.passed_tests)} tests passed")
        return result

    def close(self) -> None:
        self.current_action = TestRunnerAction.IDLE

    def _run(self, root: Path, targets: list[str], keyword: Optional[str]) -> TestRunResult:
        result = TestRunResult()

        self.current_action = TestRunnerAction.COMPILING
        self.emit("Compiling tests")
        result.build_errors.extend(self._compile(root, targets))
        if result.build_errors:
            self.emit("Compilation failed (see results)")
            return result

        selection = list(targets)
        if keyword:
            selection += ["-k", keyword]

        collected = self._pytest(["--collect-only", "-q", *selection], cwd=root)
        if collected.returncode == NO_TESTS_COLLECTED:
            result.build_errors.append("No tests found. Did you get the filter right?")
            return result
        if collected.returncode != 0:
            output = collected.stdout + collected.stderr
            lines = [line.strip() for line in output.splitlines() if "error" in line.lower()]
            result.errors.extend(lines or [output.strip()])
            return result

        self.current_action = TestRunnerAction.RUNNING
        self.emit("Running tests")

        with tempfile.TemporaryDirectory(prefix="sorcerer-") as tmp:
            result_file = Path(tmp) / RESULT_FILE_NAME
            completed = self._pytest(
                [
                    "-q",
                    "-p",
                    "no:cacheprovider",
                    "-o",
                    "junit_family=xunit1",
                    f"--junitxml={result_file}",
                    *self.config.extra_args,
                    *selection,
                ],
                cwd=root,
            )

            if completed.returncode != 0:
                output = (completed.stdout + completed.stderr).strip()
                if output:
                    result.errors.append(output)

            if not result_file.exists():
                result.errors.append("Test result file not found.")
                return result

            self._read_results(result_file, result)

        return result

    def _compile(self, root: Path, targets: list[str]) -> list[str]:
        errors = []
        files = {target.split("::", 1)[0] for target in targets}
        for name in sorted(files):
            path = root / name
            if not path.is_file():
                continue
            try:
                compile(path.read_text(encoding="utf-8"), name, "exec")
            except SyntaxError as e:
                errors.append(f"{path}:{e.lineno or 0}:{e.offset or 0}: SyntaxError: {e.msg}")
            except ValueError as e:
                errors.append(f"{path}:0:0: ValueError: {e}")
        return errors

    def _read_results(self, result_file: Path, result: TestRunResult) -> None:
        try:
            tree = ET.parse(result_file)
        except ET.ParseError as e:
            result.errors.append(f"Could not parse test results: {e}")
            return

        for case in tree.getroot().iter("testcase"):
            if case.find("skipped") is not None:
                continue

            full_name = _node_id(case)
            problem = case.find("failure")
            outcome = "Failed"
            if problem is None:
                problem = case.find("error")
                outcome = "Error"

            if problem is None:
                result.passed_tests.append(TestCaseResult(full_name=full_name, result="Passed"))
            else:
                result.failed_tests.append(
                    TestCaseResult(
                        full_name=full_name,
                        result=outcome,
                        message=problem.get("message", ""),
                        stack_trace=problem.text or "",
                    )
                )

    def _resolve_targets(self, root: Path, test_filter: Optional[str]) -> tuple[list[str], Optional[str]]:
        if not test_filter:
            return [], None

        candidate = Path(test_filter)
        if "::" in test_filter or (root / candidate).exists():
            path_part = test_filter.split("::", 1)[0]
            relative = _relative(root, Path(path_part))
            rest = test_filter[len(path_part):]
            return [relative + rest], None

        matches = [
            path
            for path in sorted(root.rglob(f"{test_filter}.py"))
            if not SKIPPED_DIRS.intersection(path.relative_to(root).parts)
        ]
        if matches:
            return [path.relative_to(root).as_posix() for path in matches], None

        logger.debug("No test file named %s under %s; using it as a keyword", test_filter, root)
        return [], test_filter

    def _pytest(self, args: list[str], cwd: Optional[Path]) -> subprocess.CompletedProcess:
        command = [self.config.python_executable, "-m", "pytest", *args]
        logger.debug("Running %s in %s", " ".join(command), cwd)
        try:
            return subprocess.run(
                command,
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=self.config.timeout,
            )
        except FileNotFoundError as e:
            raise ToolingError(f"Unable to locate '{self.config.python_executable}'") from e
        except subprocess.TimeoutExpired as e:
            raise ToolingError(f"pytest did not finish within {self.config.timeout} seconds") from e

    @staticmethod
    def _root(project_path: str) -> Path:
        root = Path(project_path).resolve()
        return root.parent if root.is_file() else root


def _relative(root: Path, path: Path) -> str:
    resolved = path if path.is_absolute() else root / path
    try:
        return resolved.resolve().relative_to(root).as_posix()
    except ValueError:
        return resolved.as_posix()


def _node_id(case: ET.Element) -> str:
    """Rebuild a pytest node id from an xunit1 ``testcase`` element."""
    name = case.get("name", "")
    classname = case.get("classname", "")
    file_name = case.get("file")
    if not file_name:
        return f"{classname}.{name}" if classname else name

    module = file_name[: -len(Path(file_name).suffix)].replace("/", ".").replace("\\", ".")
    rest = classname[len(module) + 1 :] if classname.startswith(module) else ""
    parts = [part for part in rest.split(".") if part]
    return "::".join([file_name.replace("\\", "/"), *parts, name])
