"""Exception hierarchy shared by every sorcerer component."""


class SorcererError(Exception):
    """Base class for all sorcerer errors."""


class NotFoundError(SorcererError, FileNotFoundError):
    """A file, document or symbol could not be located."""


class ToolingError(SorcererError):
    """An external tool (test runner, automation engine) misbehaved."""


class ParseError(SorcererError):
    """An LLM response could not be decoded into the expected shape."""


class InvalidOperationError(SorcererError):
    """An operation was requested in a state that does not allow it."""
