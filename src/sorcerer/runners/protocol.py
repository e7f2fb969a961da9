"""Test runner contract."""

from __future__ import annotations

from enum import Enum
from typing import Optional, Protocol, runtime_checkable

from ..models import TestRunResult


class TestRunnerAction(str, Enum):
    """What a runner is busy with, for progress display."""

    __test__ = False

    IDLE = "idle"
    VALIDATING = "validating"
    COMPILING = "compiling"
    RUNNING = "running"


@runtime_checkable
class UnitTestRunner(Protocol):
    """Build and run the tests of a project.

    ``prepare`` returns an empty string when the runner is ready and a
    human-readable reason otherwise. Run methods report build problems and
    test outcomes inside the returned :class:`TestRunResult`; they raise
    only when the tooling itself cannot be driven.
    """

    current_action: TestRunnerAction

    def prepare(self, target_path: str) -> str: ...

    def run_tests(self, project_path: str, test_filter: Optional[str] = None) -> TestRunResult: ...

    def run_failures(self, project_path: str, previous: TestRunResult) -> TestRunResult: ...

    def close(self) -> None: ...
