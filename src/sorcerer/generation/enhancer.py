"""Improve a passing test file, one enhancement pass at a time."""

from __future__ import annotations

import logging
from pathlib import Path

from ..config import GenerationConfig
from ..errors import InvalidOperationError
from ..llm.prompts import (
    COMMON_TEST_GUIDELINES,
    ENHANCE_APPLY_INSTRUCTIONS,
    ENHANCE_SYSTEM_PROMPT,
    ENHANCE_USER_PROMPT,
    ENHANCEMENT_PROMPTS,
    JSON_RULES,
)
from ..llm.provider import ChatAPI, new_session_id
from ..models import AnalysisResult, EnhancementType, UnitTestGenerationResult
from ..output import Outputter
from .response import build_context, request_response

logger = logging.getLogger(__name__)


class UnitTestEnhancer(Outputter):
    """Run one enhancement pass over an existing test file."""

    output_role = "enhancer"

    def __init__(self, config: GenerationConfig, api: ChatAPI):
        self.config = config
        self.api = api

    def enhance(
        self,
        analysis: AnalysisResult,
        uut_path: str | Path,
        test_file_path: str | Path,
        enhancement: EnhancementType,
        session_id: str | None = None,
    ) -> UnitTestGenerationResult:
        """Enhance the tests at ``test_file_path``.

        Args:
            analysis: Analysis of the UUT
            uut_path: File under test
            test_file_path: Current test file
            enhancement: Kind of pass; ``ASSESS`` never changes the file
            session_id: Session to continue, a new one is started when None

        Returns:
            Result with the enhanced (or, for ASSESS, unchanged) test file

        Raises:
            InvalidOperationError: For ``VERIFY``, which is not an LLM pass
            ParseError: If the model never answers with usable JSON
        """
        if enhancement is EnhancementType.VERIFY:
            raise InvalidOperationError("Verify is performed by running tests, not by the model")

        test_path = Path(test_file_path)
        self.emit(f"Enhancing {test_path.stem} in {enhancement.value} mode")

        uut_content = Path(uut_path).read_text(encoding="utf-8")
        current_tests = test_path.read_text(encoding="utf-8")

        user_prompt = ENHANCE_USER_PROMPT.format(
            current_tests=current_tests,
            uut_content=uut_content,
            context=build_context(analysis),
        )
        self.api.system_prompt = self.build_system_prompt(enhancement)
        session = session_id or new_session_id()
        response = request_response(self.api, session, user_prompt, self.config.max_json_retries)

        self.emit(f"Got response from the model:\n\n{response.to_display_text()}")

        if enhancement is EnhancementType.ASSESS or not response.test_file_content.strip():
            if enhancement is not EnhancementType.ASSESS:
                logger.warning("Enhancement %s returned no test content; keeping the file", enhancement.value)
            response = response.model_copy(update={"test_file_content": current_tests})

        return UnitTestGenerationResult(analysis=analysis, ai_response=response, chat_session=session)

    def build_system_prompt(self, enhancement: EnhancementType) -> str:
        apply_instructions = "" if enhancement is EnhancementType.ASSESS else ENHANCE_APPLY_INSTRUCTIONS
        return ENHANCE_SYSTEM_PROMPT.format(
            type_prompt=ENHANCEMENT_PROMPTS[enhancement.value],
            apply_instructions=apply_instructions,
            guidelines=COMMON_TEST_GUIDELINES + self.config.style_prompt,
            json_rules=JSON_RULES,
        )
