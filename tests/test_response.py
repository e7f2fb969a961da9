"""Tests for LLM response decoding and JSON retries."""

import pytest

from conftest import FakeChatAPI, ai_response
from sorcerer.errors import ParseError
from sorcerer.generation import build_context, decode_response, extract_json_from_completion, request_response
from sorcerer.models import AnalysisResult, Definition, DefinitionSupplement


class TestExtractJson:
    def test_plain_object(self):
        assert extract_json_from_completion('{"a": 1}') == '{"a": 1}'

    def test_object_inside_prose_and_fences(self):
        completion = 'Sure! Here you go:\n```json\n{"test_file_content": "x"}\n```\nGood luck.'

        assert extract_json_from_completion(completion) == '{"test_file_content": "x"}'

    def test_braces_inside_strings_are_ignored(self):
        completion = 'prefix {"code": "def f():\\n    return {\\"k\\": \'}\'}"} suffix'

        extracted = extract_json_from_completion(completion)

        assert extracted.startswith('{"code"')
        assert extracted.endswith('}"}')

    def test_skips_non_json_braces(self):
        completion = "Use {placeholders} like this: {\"test_file_content\": \"ok\"}"

        assert extract_json_from_completion(completion) == '{"test_file_content": "ok"}'

    def test_no_object_raises(self):
        with pytest.raises(ParseError):
            extract_json_from_completion("no json here")


class TestDecodeResponse:
    def test_decodes_response(self):
        response = decode_response(ai_response("def test_x():\n    assert 1\n", notes="n"))

        assert response.test_file_content == "def test_x():\n    assert 1\n"
        assert response.notes == "n"

    def test_tolerates_raw_newlines_in_strings(self):
        response = decode_response('{"test_file_content": "line1\nline2"}')

        assert response.test_file_content == "line1\nline2"

    def test_wrong_shape_raises(self):
        with pytest.raises(ParseError):
            decode_response('{"test_fixes": "not a list"}')

    def test_invalid_json_raises(self):
        with pytest.raises(ParseError):
            decode_response("{not: json}")


class TestRequestResponse:
    def test_first_answer_decodes(self):
        api = FakeChatAPI([ai_response("ok")])

        response = request_response(api, "s1", "write tests", max_retries=3)

        assert response.test_file_content == "ok"
        assert len(api.calls) == 1

    def test_retries_in_same_session(self):
        api = FakeChatAPI(["garbage", ai_response("fixed")])

        response = request_response(api, "s1", "write tests", max_retries=3)

        assert response.test_file_content == "fixed"
        assert [session for session, _ in api.calls] == ["s1", "s1"]
        assert "could not be decoded" in api.calls[1][1]

    @pytest.mark.parametrize("max_retries", [0, 2])
    def test_gives_up_after_max_retries(self, max_retries):
        api = FakeChatAPI(["garbage"] * 10)

        with pytest.raises(ParseError):
            request_response(api, "s1", "write tests", max_retries=max_retries)

        assert len(api.calls) == max_retries + 1


def test_build_context_renders_definitions_and_supplements():
    mock = Definition(symbol="MockTimeProvider", namespace="calc.clock", code="class MockTimeProvider: ...")
    analysis = AnalysisResult(
        definitions=[
            Definition(
                symbol="ITimeProvider",
                namespace="calc.clock",
                code="class ITimeProvider: ...",
                supplement=DefinitionSupplement(definition=mock, reason="Time providers should be mocked"),
            ),
            Definition(symbol="Operand", namespace="calc.models", code="class Operand: ..."),
        ]
    )

    context = build_context(analysis)

    assert "Symbol: calc.clock.ITimeProvider" in context
    assert "Supplement Object: calc.clock.MockTimeProvider" in context
    assert "Reason for supplement: Time providers should be mocked" in context
    assert "--START OF DEFINITION CODE--\nclass Operand: ...\n--END OF CODE--" in context
    assert context.index("ITimeProvider") < context.index("Operand")
