"""Language-specific parsers for code intelligence."""

from .python_parser import ImportBinding, PythonParser
from .ts_parser import TSImportBinding, TSParser

__all__ = ["ImportBinding", "PythonParser", "TSImportBinding", "TSParser"]
