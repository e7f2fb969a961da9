"""Run tests through an HTTP automation engine (e.g. a game engine in batch mode).

The engine exposes a tiny HTTP API:

- ``GET /status``: 2xx once the engine is ready
- ``GET /recompile``: body contains ``No compilation errors`` on success,
  otherwise compiler messages separated by ``|``
- ``GET /runTests?filter=...``: JSON results, or ``Test:``/``Result:``/
  ``Message:``/``Stack Trace:`` lines, or ``No tests found``
- ``GET /shutdown``: stop the engine
"""

from __future__ import annotations

import json
import logging
import subprocess
import time
from pathlib import Path
from typing import Any, Optional

import httpx

from ..config import RunnerConfig
from ..errors import NotFoundError, ToolingError
from ..intelligence import find_workspace_root
from ..models import TestCaseResult, TestRunResult
from ..output import Outputter
from .protocol import TestRunnerAction

logger = logging.getLogger(__name__)

STATUS_TIMEOUT = 5.0
NO_COMPILATION_ERRORS = "No compilation errors"
NO_TESTS_FOUND = "No tests found"


def build_multi_test_filter(test_names: list[str]) -> str:
    return ";".join(test_names)


class RemoteTestRunner(Outputter):
    """Drive a long-lived test engine over HTTP, launching it when needed."""

    output_role = "runner"

    def __init__(self, config: RunnerConfig | None = None, client: httpx.Client | None = None):
        self.config = config or RunnerConfig()
        self._owns_client = client is None
        self.client = client or httpx.Client(
            base_url=self.config.server_url, timeout=self.config.remote_timeout
        )
        self.current_action = TestRunnerAction.IDLE
        self.process: Optional[subprocess.Popen] = None

    def prepare(self, target_path: str) -> str:
        self.current_action = TestRunnerAction.VALIDATING

        if self.is_server_running():
            return ""

        if not self.config.launch_command:
            return f"Test server is not running at {self.config.server_url} and no launch command is configured."

        self.emit("Server not running - starting the engine in batch mode with the web server started")
        if not self._start_engine(target_path):
            return "Failed to start server :("
        self.emit("Connected to the test server")
        return ""

    def run_tests(self, project_path: str, test_filter: Optional[str] = None) -> TestRunResult:
        """Prepare, recompile and run the tests matching ``test_filter``.

        Raises:
            ToolingError: If the server cannot be reached mid-run
        """
        message = self.prepare(project_path)
        if message:
            return TestRunResult(build_errors=[message])

        try:
            build_errors = self._compile()
            if build_errors:
                return TestRunResult(build_errors=build_errors)
            result = self._run(test_filter)
        except httpx.HTTPError as e:
            raise ToolingError(f"Test server request failed: {e}") from e

        if result.success:
            self.emit(f"All {len(result.passed_tests)} tests passed")
        return result

    def run_failures(self, project_path: str, previous: TestRunResult) -> TestRunResult:
        names = [test.full_name for test in previous.failed_tests]
        if not names:
            self.emit("No failed tests to rerun.")
            return TestRunResult()
        return self.run_tests(project_path, build_multi_test_filter(names))

    def is_server_running(self) -> bool:
        try:
            response = self.client.get("/status", timeout=STATUS_TIMEOUT)
        except httpx.HTTPError:
            return False
        return response.is_success

    def close(self) -> None:
        """Shut down the engine if this runner started it."""
        if self.process is not None:
            try:
                self.client.get("/shutdown", timeout=STATUS_TIMEOUT)
            except httpx.HTTPError as e:
                logger.debug("Shutdown request failed: %s", e)
            if self.process.poll() is None:
                self.process.kill()
                self.process.wait(timeout=STATUS_TIMEOUT)
            self.process = None

        if self._owns_client:
            self.client.close()
        self.current_action = TestRunnerAction.IDLE

    def _start_engine(self, target_path: str) -> bool:
        project_root = _project_root(target_path)
        command = [part.format(project=project_root) for part in self.config.launch_command]
        logger.info("Launching test engine: %s", " ".join(command))
        try:
            self.process = subprocess.Popen(
                command,
                cwd=project_root,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            self.emit(f"Could not launch the test engine: {e}")
            return False
        return self._wait_for_server(log=True)

    def _wait_for_server(self, log: bool) -> bool:
        if log:
            self.emit("Waiting for test server to come online")

        self.current_action = TestRunnerAction.VALIDATING
        deadline = time.monotonic() + self.config.startup_timeout
        while not self.is_server_running():
            if self.process is not None and self.process.poll() is not None:
                self.emit("Test engine closed unexpectedly")
                return False
            if time.monotonic() > deadline:
                self.emit(f"Server did not start within {self.config.startup_timeout} seconds")
                return False
            time.sleep(self.config.poll_interval)
        return True

    def _compile(self) -> list[str]:
        self.current_action = TestRunnerAction.COMPILING
        self.emit("Compiling scripts")

        response = self.client.get("/recompile")
        if not response.is_success:
            self.emit("Failed to compile scripts")
            return [f"Got status code: {response.status_code}"]

        if NO_COMPILATION_ERRORS not in response.text:
            self.emit("Compilation failed (see results)")
            return [error.strip() for error in response.text.split("|") if error.strip()]

        # a recompile reloads the engine's scripts, which briefly takes the server down
        self._wait_for_server(log=False)
        return []

    def _run(self, test_filter: Optional[str]) -> TestRunResult:
        self.current_action = TestRunnerAction.RUNNING
        self.emit("Running tests")

        response = self.client.get("/runTests", params={"filter": test_filter or ""})
        if not response.is_success:
            return TestRunResult(errors=[f"Failed to run tests, got status code {response.status_code}"])
        return parse_test_results(response.text)


def parse_test_results(content: str) -> TestRunResult:
    """Parse a ``/runTests`` body in either JSON or line-oriented form."""
    if content.strip().startswith(NO_TESTS_FOUND):
        return TestRunResult(build_errors=["No tests found. Did you get the filter right?"])

    try:
        payload = json.loads(content)
    except json.JSONDecodeError:
        return _parse_lines(content)
    return _parse_json(payload)


def _parse_json(payload: Any) -> TestRunResult:
    result = TestRunResult()
    records = payload
    if isinstance(payload, dict):
        error = payload.get("error") or ""
        if not isinstance(error, str):
            error = json.dumps(error)
        result.build_errors.extend(part.strip() for part in error.split("|") if part.strip())
        records = payload.get("testResults") or payload.get("tests") or []

    if not isinstance(records, list):
        result.errors.append(f"Unexpected test results payload: {str(records)[:200]}")
        return result

    for record in records:
        if not isinstance(record, dict):
            continue
        if "success" in record:
            passed = bool(record["success"])
        else:
            passed = str(record.get("result", "")).lower() == "passed"
        _add_case(
            result,
            name=record.get("testName") or record.get("name") or "",
            passed=passed,
            message=record.get("failure") or record.get("message") or "",
            stack_trace=record.get("log") or record.get("stackTrace") or "",
        )
    return result


def _parse_lines(content: str) -> TestRunResult:
    result = TestRunResult()
    current: Optional[dict[str, Any]] = None

    for raw in content.split("\n"):
        line = raw.strip().replace("\r", " ")
        if not line:
            continue
        if line.startswith("Test: "):
            if current is not None:
                _add_case(result, **current)
            current = {"name": line[len("Test: "):], "passed": False, "message": "", "stack_trace": ""}
        elif current is None:
            continue
        elif line.startswith("Result: "):
            current["passed"] = line[len("Result: "):].lower() == "passed"
        elif line.startswith("Message: "):
            current["message"] = line[len("Message: "):]
        elif line.startswith("Stack Trace: "):
            current["stack_trace"] = line[len("Stack Trace: "):]

    if current is not None:
        _add_case(result, **current)
    return result


def _add_case(result: TestRunResult, name: str, passed: bool, message: str, stack_trace: str) -> None:
    case = TestCaseResult(
        full_name=name,
        result="Passed" if passed else "Failed",
        message=message,
        stack_trace=stack_trace,
    )
    if passed:
        result.passed_tests.append(case)
    else:
        result.failed_tests.append(case)


def _project_root(target_path: str) -> Path:
    try:
        return find_workspace_root(target_path)
    except NotFoundError:
        path = Path(target_path).resolve()
        return path.parent if path.is_file() else path
