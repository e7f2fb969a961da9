"""Unit Test Sorcerer - generate, run, repair and enhance unit tests with an LLM."""

__version__ = "0.1.0"
