"""Pydantic models for crawl output, analysis, test runs and LLM responses."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Definition(BaseModel):
    """Cleaned source of a type referenced (directly or transitively) by the UUT."""

    symbol: str
    namespace: str = ""
    code: str
    supplement: Optional[DefinitionSupplement] = None

    @property
    def full_name(self) -> str:
        return f"{self.namespace}.{self.symbol}" if self.namespace else self.symbol

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Definition):
            return NotImplemented
        return self.full_name == other.full_name

    def __hash__(self) -> int:
        return hash(self.full_name)


class DefinitionSupplement(BaseModel):
    """A substitute type (usually a mock) the tests should use instead of a definition."""

    definition: Definition
    reason: str


Definition.model_rebuild()


class DefinitionResult(BaseModel):
    """Definitions discovered while walking one file, keyed by ``"<file>:<symbol>"``."""

    file: str
    definitions: dict[str, Definition] = Field(default_factory=dict)


class TestWorthiness(str, Enum):
    """How much context the LLM has to digest for a given UUT."""

    __test__ = False

    EXCELLENT = "excellent"
    OKAY = "okay"
    POOR = "poor"


class AnalysisResult(BaseModel):
    """Deduplicated definitions plus size metrics for a UUT."""

    definitions: list[Definition] = Field(default_factory=list)
    supplements: int = 0
    context_loc: int = 0
    total_loc: int = 0
    test_worthiness: TestWorthiness = TestWorthiness.EXCELLENT
    target_file_content: str = ""


class TestCaseResult(BaseModel):
    """Outcome of a single test case."""

    __test__ = False

    full_name: str
    result: str = ""
    message: str = ""
    stack_trace: str = ""


class TestRunResult(BaseModel):
    """Aggregated outcome of a test run."""

    __test__ = False

    build_errors: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    passed_tests: list[TestCaseResult] = Field(default_factory=list)
    failed_tests: list[TestCaseResult] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        """A run succeeds only if something passed, nothing failed and it built."""
        return len(self.passed_tests) > 0 and not self.failed_tests and not self.build_errors

    def summary(self) -> str:
        return (
            f"Errors: {len(self.errors)}, BuildIssues: {len(self.build_errors)}, "
            f"Failures: {len(self.failed_tests)}, Passed: {len(self.passed_tests)}"
        )


class UnitTestAIFix(BaseModel):
    """Per-test verdict returned by the fixer prompt."""

    model_config = ConfigDict(extra="ignore")

    test_name: str = ""
    can_fix: bool = True
    reason: str = ""
    fix: str = ""


class UnitTestAIResponse(BaseModel):
    """Structured LLM answer. Every field is optional; unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore")

    test_file_name: str = ""
    test_file_content: str = ""
    notes: str = ""
    general_fix: Optional[str] = None
    test_fixes: list[UnitTestAIFix] = Field(default_factory=list)
    improvements: list[str] = Field(default_factory=list)

    def to_display_text(self) -> str:
        """Render the response for progress output."""
        parts: list[str] = []
        if self.test_file_name:
            parts.append(f"File: {self.test_file_name}")
        if self.notes:
            parts.append(f"Notes: {self.notes}")
        if self.general_fix:
            parts.append(f"General fix: {self.general_fix}")
        for fix in self.test_fixes:
            verdict = "fixed" if fix.can_fix else "removed"
            parts.append(f"  - {fix.test_name} ({verdict}): {fix.reason or fix.fix}")
        if self.improvements:
            parts.append("Improvements:")
            parts.extend(f"  - {item}" for item in self.improvements)
        return "\n".join(parts)


class UnitTestGenerationResult(BaseModel):
    """A generated (or fixed, or enhanced) test file and the session that produced it."""

    analysis: AnalysisResult
    ai_response: UnitTestAIResponse
    chat_session: str


class FixContext(BaseModel):
    """Inputs for one fix attempt."""

    attempt: int
    last_test_run_results: TestRunResult
    last_generation_result: UnitTestGenerationResult
    project_root_path: str = ""
    test_project_path: str = ""


class EnhancementType(str, Enum):
    """Kinds of improvement pass applied to a passing test file."""

    GENERAL = "general"
    COVERAGE = "coverage"
    REFACTOR = "refactor"
    DOCUMENT = "document"
    SQUASH_BUGS = "squash_bugs"
    CLEAN = "clean"
    VERIFY = "verify"
    ASSESS = "assess"
