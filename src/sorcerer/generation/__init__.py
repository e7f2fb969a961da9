"""Test generation, repair and enhancement."""

from .base import BaseUnitTestGenerator
from .enhancer import UnitTestEnhancer
from .fixer import UnitTestFixer, get_file_lines
from .generators import JestUnitTestGenerator, PytestUnitTestGenerator, generator_class_for
from .response import build_context, decode_response, extract_json_from_completion, request_response

__all__ = [
    "BaseUnitTestGenerator",
    "JestUnitTestGenerator",
    "PytestUnitTestGenerator",
    "UnitTestEnhancer",
    "UnitTestFixer",
    "build_context",
    "decode_response",
    "extract_json_from_completion",
    "generator_class_for",
    "get_file_lines",
    "request_response",
]
