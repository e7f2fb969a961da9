"""Decoding of LLM completions into UnitTestAIResponse."""

from __future__ import annotations

import json
import logging
from typing import Iterator

from pydantic import ValidationError

from ..errors import ParseError
from ..llm.prompts import JSON_RETRY_PROMPT
from ..llm.provider import ChatAPI
from ..models import AnalysisResult, UnitTestAIResponse

logger = logging.getLogger(__name__)


def _balanced_objects(text: str) -> Iterator[str]:
    """Yield every top-level ``{...}`` span of ``text``, skipping braces inside strings."""
    depth = 0
    start = -1
    in_string = False
    escaped = False

    for index, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"' and depth > 0:
            in_string = True
        elif char == "{":
            if depth == 0:
                start = index
            depth += 1
        elif char == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                yield text[start : index + 1]


def extract_json_from_completion(completion: str) -> str:
    """Pull the JSON object out of a completion that may carry prose or fences.

    The first balanced object that parses as JSON wins; if none parses, the
    first balanced object is returned so the decode error can be reported.

    Raises:
        ParseError: If the completion holds no balanced object at all
    """
    first: str | None = None
    for candidate in _balanced_objects(completion or ""):
        if first is None:
            first = candidate
        try:
            json.loads(candidate, strict=False)
        except json.JSONDecodeError:
            continue
        return candidate

    if first is None:
        raise ParseError("No JSON object found in the completion")
    return first


def decode_response(completion: str) -> UnitTestAIResponse:
    """Decode a completion into a UnitTestAIResponse.

    Raises:
        ParseError: If no valid JSON object of the expected shape is present
    """
    payload = extract_json_from_completion(completion)
    try:
        data = json.loads(payload, strict=False)
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ParseError("Expected a JSON object")

    try:
        return UnitTestAIResponse.model_validate(data)
    except ValidationError as e:
        raise ParseError(f"Unexpected response shape: {e}") from e


def request_response(api: ChatAPI, session_id: str, prompt: str, max_retries: int) -> UnitTestAIResponse:
    """Prompt the model and decode its answer, asking it to fix bad JSON in-session.

    Args:
        api: Chat transport
        session_id: Session to prompt in (and to retry in)
        prompt: User prompt
        max_retries: How many correction turns to allow after the first answer

    Returns:
        The decoded response

    Raises:
        ParseError: If the answer still does not decode after ``max_retries`` retries
    """
    completion = api.prompt(session_id, prompt)
    attempt = 0
    while True:
        try:
            return decode_response(completion)
        except ParseError as e:
            if attempt >= max_retries:
                raise ParseError(
                    f"Failed to decode the model response after {max_retries} retries: {e}"
                ) from e
            attempt += 1
            logger.warning("Response did not decode (retry %d/%d): %s", attempt, max_retries, e)
            completion = api.prompt(session_id, JSON_RETRY_PROMPT.format(error=e))


def build_context(analysis: AnalysisResult) -> str:
    """Render the analyzed definitions (and their supplements) for a prompt."""
    lines: list[str] = []
    for definition in analysis.definitions:
        lines.append(f"Symbol: {definition.full_name}")

        if definition.supplement is not None:
            supplement = definition.supplement
            lines.append(f"Supplement Object: {supplement.definition.full_name}")
            lines.append(f"Reason for supplement: {supplement.reason}")
            lines.append(f"--START OF SUPPLEMENT CODE--\n{supplement.definition.code}\n--END OF CODE--")

        lines.append(f"--START OF DEFINITION CODE--\n{definition.code}\n--END OF CODE--\n")
        lines.append("")

    return "\n".join(lines)
