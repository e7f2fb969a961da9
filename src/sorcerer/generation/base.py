"""Shared test generation flow: crawl, analyze, prompt, decode."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path

from ..config import GenerationConfig
from ..crawler import DefinitionAnalyzer, DefinitionCrawler
from ..errors import NotFoundError
from ..intelligence import module_name_for
from ..llm.prompts import (
    COMMON_TEST_GUIDELINES,
    GENERATION_SYSTEM_PROMPT,
    GENERATION_USER_PROMPT,
    JSON_RULES,
)
from ..llm.provider import ChatAPI, new_session_id
from ..models import AnalysisResult, UnitTestAIResponse, UnitTestGenerationResult
from ..output import Outputter
from .response import build_context, request_response

logger = logging.getLogger(__name__)


class BaseUnitTestGenerator(Outputter, ABC):
    """Generate a first test file for a unit under test.

    Subclasses pick the role, language and framework, and may add
    framework-specific guidance based on what the UUT looks like.
    """

    output_role = "generator"

    role = "unit test generation bot"
    language = "python"
    framework = "pytest"
    additional_guidelines = ""

    def __init__(
        self,
        config: GenerationConfig,
        api: ChatAPI,
        crawler: DefinitionCrawler,
        analyzer: DefinitionAnalyzer,
    ):
        self.config = config
        self.api = api
        self.crawler = crawler
        self.analyzer = analyzer

    def analyze(self, file_to_test: str | Path) -> AnalysisResult:
        """Crawl the UUT's dependencies and analyze them."""
        uut_content = Path(file_to_test).read_text(encoding="utf-8")
        definitions = self.crawler.find_definitions(file_to_test, self.config.context_search_depth)
        return self.analyzer.analyze(definitions, file_to_test, uut_content)

    def generate(self, file_to_test: str | Path) -> UnitTestGenerationResult:
        """Generate tests for ``file_to_test`` in a brand new chat session.

        Raises:
            NotFoundError: If the file is not part of a workspace
            ParseError: If the model never answers with usable JSON
            RuntimeError: If the model call fails
        """
        path = Path(file_to_test)
        analysis = self.analyze(path)

        user_prompt = self.build_user_prompt(analysis, path)
        self.emit(f"Generating tests with the following prompt:\n{user_prompt}")

        self.api.system_prompt = self.build_system_prompt(analysis.target_file_content, path)
        session = new_session_id()
        response = request_response(self.api, session, user_prompt, self.config.max_json_retries)

        self.emit(f"Got response from the model:\n\n{response.to_display_text()}")
        return UnitTestGenerationResult(analysis=analysis, ai_response=response, chat_session=session)

    def analyze_only(
        self, file_to_test: str | Path, existing_tests: str | Path | None = None
    ) -> UnitTestGenerationResult:
        """Analyze without calling the model, for enhancing tests that already exist.

        The returned response carries the existing test file (or the UUT when
        none is given) so later steps have content to work from.
        """
        path = Path(file_to_test)
        self.emit(f"Analyzing {path.stem}")

        analysis = self.analyze(path)
        source = Path(existing_tests) if existing_tests else path
        response = UnitTestAIResponse(
            test_file_name=source.name,
            test_file_content=source.read_text(encoding="utf-8"),
        )

        self.emit(f"Analyzed required context:\n{build_context(analysis)}")
        return UnitTestGenerationResult(
            analysis=analysis, ai_response=response, chat_session=new_session_id()
        )

    def build_user_prompt(self, analysis: AnalysisResult, uut_path: Path) -> str:
        return GENERATION_USER_PROMPT.format(
            uut_path=uut_path.name,
            uut_content=analysis.target_file_content,
            context=build_context(analysis),
        )

    def build_system_prompt(self, uut_content: str, uut_path: Path) -> str:
        return GENERATION_SYSTEM_PROMPT.format(
            role=self.role,
            language=self.language,
            framework=self.framework,
            style_prompt=self.config.style_prompt,
            module_hint=self._module_hint(uut_path),
            guidelines=COMMON_TEST_GUIDELINES,
            additional=self.additional_guidelines,
            json_rules=JSON_RULES,
            supplemental=self.supplemental_system_prompt(uut_content),
        )

    @abstractmethod
    def supplemental_system_prompt(self, uut_content: str) -> str:
        """Extra guidance chosen by pattern-matching the UUT source."""

    def _module_hint(self, uut_path: Path) -> str:
        try:
            return module_name_for(uut_path)
        except NotFoundError:
            logger.debug("No workspace root above %s", uut_path)
            return uut_path.stem
