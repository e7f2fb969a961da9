"""Generate, run, fix and enhance the tests for one file."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .config import SorcererConfig
from .errors import InvalidOperationError
from .generation import BaseUnitTestGenerator, UnitTestEnhancer, UnitTestFixer
from .models import (
    AnalysisResult,
    EnhancementType,
    FixContext,
    TestRunResult,
    UnitTestGenerationResult,
)
from .output import Outputter
from .project import ProjectTools
from .runners import UnitTestRunner

logger = logging.getLogger(__name__)


class Sorcerer(Outputter):
    """Drive the whole test workflow for ``config.file_to_test``.

    Prepare the runner, generate (or reuse) a test file, run it, feed
    failures back to the fixer a bounded number of times, then apply the
    configured enhancement passes. Every problem along the way is reported
    through :meth:`emit`; :meth:`generate` only ever returns a bool.
    """

    output_role = "sorcerer"

    def __init__(
        self,
        config: SorcererConfig,
        generator: BaseUnitTestGenerator,
        fixer: UnitTestFixer,
        runner: UnitTestRunner,
        enhancer: UnitTestEnhancer,
        project_tools: ProjectTools,
    ):
        self.config = config
        self.generator = generator
        self.fixer = fixer
        self.runner = runner
        self.enhancer = enhancer
        self.project_tools = project_tools
        self.test_file_path: Optional[Path] = None

    def generate(self) -> bool:
        file_to_test = self.config.file_to_test
        if not file_to_test:
            self.emit("No file to test was configured")
            return False

        self.emit(f"Targetting {file_to_test}")

        try:
            prepare_message = self.runner.prepare(file_to_test)
        except Exception as e:
            prepare_message = f"Failed to prepare the test runner: {e}"
        if prepare_message:
            self.emit(prepare_message)
            return False

        if self.config.skip_to_enhance_if_tests_exist:
            existing = self.project_tools.has_tests_already(file_to_test)
            if existing is not None:
                self.emit(f"Skipping generation - found existing tests at '{existing}'")
                self.test_file_path = Path(existing)
                if self._enhance_existing_tests(file_to_test, existing):
                    self.emit("Success!")
                    return True
                self.emit("Failed")
                return False

        generation = self._generate_tests(file_to_test)
        if generation is None:
            return False

        try:
            test_file_path = self.project_tools.save_test_file(
                file_to_test, generation.ai_response.test_file_content
            )
        except Exception as e:
            self.emit(f"Failed to save tests: {e}")
            return False
        self.test_file_path = test_file_path

        test_project = self._project_for(test_file_path)

        passed, generation = self._ensure_tests_pass(generation, test_file_path, test_project, file_to_test)
        if not passed:
            return False

        if self.config.enhancements and not self._enhance_tests(
            generation.analysis, file_to_test, test_file_path, generation
        ):
            self.emit("Enhancements failed")
            return False

        self.emit("Success!")
        return True

    def _generate_tests(self, file_to_test: str) -> Optional[UnitTestGenerationResult]:
        try:
            self.emit("Generating tests...")
            result = self.generator.generate(file_to_test)
            self.emit("Tests generated successfully")
            return result
        except Exception as e:
            self.emit(f"Failed to generate tests: {e}")
            return None

    def _enhance_existing_tests(self, file_to_test: str, existing: Path) -> bool:
        try:
            seed = self.generator.analyze_only(file_to_test, existing)
        except Exception as e:
            self.emit(f"Failed to analyze {file_to_test}: {e}")
            return False
        return self._enhance_tests(seed.analysis, file_to_test, existing, seed)

    def _ensure_tests_pass(
        self,
        generation: UnitTestGenerationResult,
        test_file_path: Path,
        test_project: str,
        uut_path: str,
    ) -> tuple[bool, UnitTestGenerationResult]:
        run = self._run_tests(test_project, test_file_path)
        if run is not None and run.success:
            return True, generation
        return self._try_fix_tests(generation, test_file_path, test_project, uut_path, run)

    def _run_tests(self, test_project: str, test_file_path: Path) -> Optional[TestRunResult]:
        try:
            return self.runner.run_tests(test_project, Path(test_file_path).stem)
        except Exception as e:
            self.emit(f"Failed to run tests: {e}")
            return None

    def _enhance_tests(
        self,
        analysis: AnalysisResult,
        uut_path: str,
        test_file_path: Path,
        seed: UnitTestGenerationResult,
    ) -> bool:
        try:
            return self._apply_enhancements(analysis, uut_path, test_file_path, seed)
        except InvalidOperationError as e:
            self.emit(str(e))
            return False

    def _apply_enhancements(
        self,
        analysis: AnalysisResult,
        uut_path: str,
        test_file_path: Path,
        seed: UnitTestGenerationResult,
    ) -> bool:
        latest = seed
        enhanced: Optional[UnitTestGenerationResult] = None

        for enhancement in self.config.enhancements:
            if enhancement is EnhancementType.VERIFY:
                if enhanced is None:
                    raise InvalidOperationError("Cannot verify without first enhancing")

                test_project = self._project_for(test_file_path)
                run = self._run_tests(test_project, test_file_path)
                if run is not None and run.success:
                    continue

                fixed, enhanced = self._try_fix_tests(enhanced, test_file_path, test_project, uut_path, run)
                if not fixed:
                    self.emit("Failed to verify")
                    return False
                latest = enhanced
                continue

            result = None
            for _ in range(self.config.max_fix_attempts):
                result = self._enhance(analysis, uut_path, test_file_path, enhancement, latest.chat_session)
                if result is not None:
                    break

            if result is None:
                self.emit("Enhancement failed after too many attempts")
                return False
            enhanced = latest = result

        self.emit("Tests enhanced")
        return True

    def _enhance(
        self,
        analysis: AnalysisResult,
        uut_path: str,
        test_file_path: Path,
        enhancement: EnhancementType,
        session_id: str,
    ) -> Optional[UnitTestGenerationResult]:
        try:
            result = self.enhancer.enhance(analysis, uut_path, test_file_path, enhancement, session_id)
            self.project_tools.write_source_file(test_file_path, result.ai_response.test_file_content)
            return result
        except Exception as e:
            self.emit(f"Failed to enhance tests: {e}")
            return None

    def _try_fix_tests(
        self,
        generation: UnitTestGenerationResult,
        test_file_path: Path,
        test_project: str,
        uut_path: str,
        run: Optional[TestRunResult],
    ) -> tuple[bool, UnitTestGenerationResult]:
        """Bounded fix loop. Returns whether the tests pass and the latest result."""
        last_result = generation
        run = run or TestRunResult(errors=["The test run did not produce any results"])
        max_attempts = self.config.max_fix_attempts
        repeats = 0

        for attempt in range(max_attempts):
            self.emit(f"Failed... Attempting to fix ({attempt + 1}/{max_attempts})")
            previous_content = last_result.ai_response.test_file_content
            try:
                root_path = self.project_tools.find_solution_root(test_file_path) or ""
                context = FixContext(
                    attempt=attempt,
                    last_generation_result=last_result,
                    last_test_run_results=run,
                    project_root_path=root_path,
                    test_project_path=test_project,
                )
                last_result = self.fixer.fix(context, test_file_path, uut_path)
                self.project_tools.write_source_file(test_file_path, last_result.ai_response.test_file_content)
            except Exception as e:
                self.emit(f"Failed to fix tests: {e}")
                continue

            if self.config.stop_on_repeated_fix:
                repeats = repeats + 1 if last_result.ai_response.test_file_content == previous_content else 0
                if repeats >= 2:
                    self.emit("The fixer keeps returning the same tests; giving up")
                    break

            run = self._run_tests(test_project, test_file_path) or run
            if run.success:
                return True, last_result
            self.emit(f"Test run failed: {run.summary()}")

        self.emit("Failed to fix tests after max attempts.")
        return False, last_result

    def _project_for(self, test_file_path: Path) -> str:
        return self.project_tools.find_project_file(test_file_path) or str(Path(test_file_path).parent)
