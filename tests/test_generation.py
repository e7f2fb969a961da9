"""Tests for the generator and enhancer."""

from pathlib import Path

import pytest

from conftest import FakeChatAPI, ai_response
from sorcerer.config import GenerationConfig
from sorcerer.crawler import DefinitionAnalyzer, DefinitionCrawler
from sorcerer.errors import InvalidOperationError, ParseError
from sorcerer.generation import (
    JestUnitTestGenerator,
    PytestUnitTestGenerator,
    UnitTestEnhancer,
    generator_class_for,
)
from sorcerer.intelligence import AstCodeIntelligence
from sorcerer.models import AnalysisResult, EnhancementType


@pytest.fixture
def generator_parts():
    crawler = DefinitionCrawler(AstCodeIntelligence())
    yield crawler, DefinitionAnalyzer(crawler)
    crawler.close()


class TestGeneratorSelection:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("calc.py", PytestUnitTestGenerator),
            ("calc.ts", JestUnitTestGenerator),
            ("calc.tsx", JestUnitTestGenerator),
            ("calc.js", JestUnitTestGenerator),
        ],
    )
    def test_by_extension(self, name, expected):
        assert generator_class_for(name) is expected

    def test_unsupported_file(self):
        with pytest.raises(ValueError):
            generator_class_for("calc.rb")


class TestPytestGenerator:
    def test_generate_builds_prompts_with_context(self, py_workspace, generator_parts):
        api = FakeChatAPI([ai_response("def test_add():\n    assert True\n")])
        generator = PytestUnitTestGenerator(GenerationConfig(), api, *generator_parts)

        result = generator.generate(py_workspace / "src/calc/service.py")

        session, user_prompt = api.calls[0]
        assert result.chat_session == session
        assert "class Calculator" in user_prompt
        assert "Symbol: calc.models.Operand" in user_prompt
        assert "Supplement Object: calc.clock.MockTimeProvider" in user_prompt
        assert "pytest unit test generation bot" in api.system_prompts[0]
        assert "calc.service" in api.system_prompts[0]
        assert result.ai_response.test_file_content.startswith("def test_add")
        assert result.analysis.supplements == 1

    def test_each_generation_uses_a_fresh_session(self, py_workspace, generator_parts):
        api = FakeChatAPI([ai_response(), ai_response()])
        generator = PytestUnitTestGenerator(GenerationConfig(), api, *generator_parts)
        uut = py_workspace / "src/calc/service.py"

        first = generator.generate(uut)
        second = generator.generate(uut)

        assert first.chat_session != second.chat_session

    def test_supplemental_guidance_from_source(self):
        generator = PytestUnitTestGenerator(GenerationConfig(), FakeChatAPI(), None, None)

        prompt = generator.supplemental_system_prompt(
            "import time\n\nclass A:\n    async def run(self):\n        return time.time()\n"
        )

        assert "coroutines" in prompt
        assert "wall clock" in prompt
        assert "abstract" not in prompt

    def test_jest_guidance_for_timers(self):
        generator = JestUnitTestGenerator(GenerationConfig(), FakeChatAPI(), None, None)

        prompt = generator.supplemental_system_prompt("setTimeout(() => tick(), 5)")

        assert "jest.useFakeTimers()" in prompt

    def test_unparseable_answers_raise(self, py_workspace, generator_parts):
        api = FakeChatAPI(["no json"] * 3)
        generator = PytestUnitTestGenerator(GenerationConfig(max_json_retries=2), api, *generator_parts)

        with pytest.raises(ParseError):
            generator.generate(py_workspace / "src/calc/service.py")

        assert len(api.calls) == 3

    def test_analyze_only_makes_no_llm_calls(self, py_workspace, generator_parts):
        api = FakeChatAPI()
        generator = PytestUnitTestGenerator(GenerationConfig(), api, *generator_parts)
        existing = py_workspace / "tests/test_models.py"

        result = generator.analyze_only(py_workspace / "src/calc/service.py", existing)

        assert api.calls == []
        assert result.ai_response.test_file_content == existing.read_text()
        assert {d.symbol for d in result.analysis.definitions} >= {"Operand", "ITimeProvider"}


class TestEnhancer:
    @pytest.fixture
    def files(self, tmp_path: Path):
        uut = tmp_path / "calc.py"
        uut.write_text("def add(a, b):\n    return a + b\n")
        tests = tmp_path / "calcTests.py"
        tests.write_text("def test_add():\n    assert add(1, 2) == 3\n")
        return uut, tests

    def test_enhance_continues_given_session(self, files):
        uut, tests = files
        api = FakeChatAPI([ai_response("def test_better():\n    pass\n", improvements=["more cases"])])
        enhancer = UnitTestEnhancer(GenerationConfig(), api)

        result = enhancer.enhance(AnalysisResult(), uut, tests, EnhancementType.COVERAGE, "session-7")

        assert result.chat_session == "session-7"
        assert api.calls[0][0] == "session-7"
        assert "increase the test coverage" in api.system_prompts[0]
        assert "def test_add()" in api.calls[0][1]
        assert result.ai_response.test_file_content.startswith("def test_better")

    def test_enhance_without_session_starts_one(self, files):
        uut, tests = files
        api = FakeChatAPI([ai_response()])
        enhancer = UnitTestEnhancer(GenerationConfig(), api)

        result = enhancer.enhance(AnalysisResult(), uut, tests, EnhancementType.CLEAN)

        assert result.chat_session
        assert api.calls[0][0] == result.chat_session

    def test_assess_keeps_current_tests(self, files):
        uut, tests = files
        api = FakeChatAPI([ai_response("", improvements=["Coverage - add negatives"])])
        enhancer = UnitTestEnhancer(GenerationConfig(), api)

        result = enhancer.enhance(AnalysisResult(), uut, tests, EnhancementType.ASSESS)

        assert result.ai_response.test_file_content == tests.read_text()
        assert result.ai_response.improvements == ["Coverage - add negatives"]
        assert "complete file contents" not in api.system_prompts[0]

    def test_verify_is_not_an_enhancement(self, files):
        uut, tests = files
        enhancer = UnitTestEnhancer(GenerationConfig(), FakeChatAPI())

        with pytest.raises(InvalidOperationError):
            enhancer.enhance(AnalysisResult(), uut, tests, EnhancementType.VERIFY)

    def test_emits_mode(self, files):
        uut, tests = files
        enhancer = UnitTestEnhancer(GenerationConfig(), FakeChatAPI([ai_response()]))
        messages = []
        enhancer.subscribe(lambda sender, message: messages.append(message))

        enhancer.enhance(AnalysisResult(), uut, tests, EnhancementType.REFACTOR)

        assert messages[0] == "Enhancing calcTests in refactor mode"
