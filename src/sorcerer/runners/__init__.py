"""Test runners: local pytest and a remote HTTP automation engine."""

from .protocol import TestRunnerAction, UnitTestRunner
from .pytest_runner import PytestTestRunner
from .remote_runner import RemoteTestRunner, build_multi_test_filter, parse_test_results

__all__ = [
    "PytestTestRunner",
    "RemoteTestRunner",
    "TestRunnerAction",
    "UnitTestRunner",
    "build_multi_test_filter",
    "parse_test_results",
]
