"""Functions the chat model may call while answering a prompt.

Plain functions are LangChain tools built by ``create_*_functions`` factories.
Functions that need to prompt the model themselves (the function chain)
implement :class:`PromptingFunction` and get the API installed after the API
is constructed.
"""

from __future__ import annotations

import ast
import fnmatch
import json
import logging
import math
import operator
import uuid
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from langchain_core.tools import BaseTool, tool

from ..errors import InvalidOperationError
from ..output import Outputter

if TYPE_CHECKING:
    from ..crawler import DefinitionAnalyzer, DefinitionCrawler
    from ..runners import UnitTestRunner
    from .provider import ChatAPI

logger = logging.getLogger(__name__)

# Default maximum characters returned when the model reads a file
DEFAULT_MAX_CHARS = 13_500

_BINARY_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}
_MAX_EXPONENT = 1000
_UNARY_OPS = {ast.UAdd: operator.pos, ast.USub: operator.neg}
_NAMES = {"pi": math.pi, "e": math.e, "tau": math.tau, "inf": math.inf}
_FUNCTIONS = {
    "abs": abs,
    "round": round,
    "min": min,
    "max": max,
    "sqrt": math.sqrt,
    "pow": math.pow,
    "exp": math.exp,
    "log": math.log,
    "log10": math.log10,
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
    "asin": math.asin,
    "acos": math.acos,
    "atan": math.atan,
    "atan2": math.atan2,
    "floor": math.floor,
    "ceil": math.ceil,
}


class FunctionInvocationEmitter(Outputter):
    """Reports function invocations and their results."""

    output_role = "function"
    display_name = "Function"

    def invocation(self, name: str, arguments: dict) -> None:
        self.emit(f"Invoking {name} with {json.dumps(arguments, default=str)}")

    def result(self, name: str, result: Any) -> None:
        text = result if isinstance(result, str) else json.dumps(result, indent=2, default=str)
        self.emit(f"{name} returned:\n{text}")


def evaluate_expression(expression: str) -> float | int:
    """Evaluate an arithmetic expression without executing arbitrary code.

    Supports numbers, + - * / // % **, parentheses, the constants pi/e/tau
    and common math functions (sqrt, sin, log, ...).

    Raises:
        ValueError: If the expression uses anything else
    """
    try:
        tree = ast.parse(expression.replace("^", "**"), mode="eval")
    except SyntaxError as e:
        raise ValueError(f"Invalid expression: {expression}") from e
    return _evaluate(tree.body)


def _evaluate(node: ast.AST) -> float | int:
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) and not isinstance(node.value, bool):
        return node.value
    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
        left, right = _evaluate(node.left), _evaluate(node.right)
        if isinstance(node.op, ast.Pow) and abs(right) > _MAX_EXPONENT:
            raise ValueError(f"Exponent too large: {right}")
        return _BINARY_OPS[type(node.op)](left, right)
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_evaluate(node.operand))
    if isinstance(node, ast.Name) and node.id.lower() in _NAMES:
        return _NAMES[node.id.lower()]
    if (
        isinstance(node, ast.Call)
        and isinstance(node.func, ast.Name)
        and node.func.id.lower() in _FUNCTIONS
        and not node.keywords
    ):
        args = [_evaluate(arg) for arg in node.args]
        return _FUNCTIONS[node.func.id.lower()](*args)
    raise ValueError(f"Unsupported element in expression: {ast.dump(node)}")


def create_calculator_functions() -> list[BaseTool]:
    """Create the evaluate_expression function."""

    @tool("evaluate_expression")
    def evaluate_expression_tool(expressions: list[str]) -> str:
        """Evaluate one or more arithmetic expressions exactly.

        Use this whenever a test needs a computed value. Supports + - * / // % **,
        parentheses, pi, e and math functions such as sqrt, sin, cos, log, exp.

        Args:
            expressions: Expressions to evaluate, e.g. ["2*pi*3", "sqrt(2)/2"]

        Returns:
            One "expression=result" line per input
        """
        lines = []
        for expression in expressions:
            try:
                lines.append(f"{expression}={evaluate_expression(expression)!r}")
            except (ValueError, ArithmeticError, TypeError) as e:
                logger.debug("Could not evaluate %s: %s", expression, e)
                lines.append(f"{expression}=error: {e}")
        return "\n".join(lines)

    return [evaluate_expression_tool]


def create_workspace_functions(root: str | Path, max_chars: int = DEFAULT_MAX_CHARS) -> list[BaseTool]:
    """Create read-only file functions confined to ``root``.

    Args:
        root: Workspace directory the model may look into
        max_chars: Maximum characters returned by get_file_content

    Returns:
        List of LangChain tools
    """
    base = Path(root).resolve()

    def _resolve(path: str) -> Path:
        candidate = (base / path).resolve()
        if candidate != base and base not in candidate.parents:
            raise ValueError(f"Path escapes the workspace: {path}")
        return candidate

    @tool
    def get_file_content(file_path: str) -> dict:
        """Get the contents of a file in the workspace.

        Args:
            file_path: Path relative to the workspace root

        Returns:
            Dictionary with content, path, truncated flag, or an error
        """
        try:
            target = _resolve(file_path)
            content = target.read_text(encoding="utf-8", errors="replace")
        except (OSError, ValueError) as e:
            return {"path": file_path, "error": str(e)}
        return {
            "path": file_path,
            "content": content[:max_chars],
            "truncated": len(content) > max_chars,
        }

    @tool
    def enumerate_files(directory: str = ".", pattern: str = "*", recursive: bool = False) -> dict:
        """List files in a workspace directory.

        Only recurse or filter when it is actually needed.

        Args:
            directory: Directory relative to the workspace root
            pattern: Glob-style filename filter
            recursive: Whether to descend into subdirectories

        Returns:
            Dictionary with the matching relative paths, or an error
        """
        try:
            target = _resolve(directory)
            walker = target.rglob("*") if recursive else target.iterdir()
            files = sorted(
                str(path.relative_to(base))
                for path in walker
                if path.is_file() and fnmatch.fnmatch(path.name, pattern)
            )
        except (OSError, ValueError) as e:
            return {"directory": directory, "error": str(e)}
        return {"directory": directory, "files": files}

    return [get_file_content, enumerate_files]


def create_code_definition_functions(
    crawler: DefinitionCrawler, analyzer: DefinitionAnalyzer, default_depth: int = 2
) -> list[BaseTool]:
    """Create the get_code_definitions_for_files function over the crawler."""

    @tool
    def get_code_definitions_for_files(file_paths: list[str], max_depth: int = default_depth) -> dict:
        """Analyze source files and return the definitions of every type they depend on.

        The crawl is recursive up to max_depth. Each analysis also gives the
        lines of code of the definitions (context_loc), the overall total
        (context plus the analyzed file) and an indication of how good
        AI-generated tests are likely to be given the amount of context.

        Args:
            file_paths: Absolute paths of the source files to analyze
            max_depth: How many levels of referenced types to follow

        Returns:
            Dictionary with one analysis per file, or an error per file
        """
        analyses = []
        for file_path in file_paths:
            try:
                results = crawler.find_definitions(file_path, max_depth)
                analysis = analyzer.analyze(results, file_path)
            except Exception as e:
                logger.debug("Definition lookup failed for %s: %s", file_path, e)
                analyses.append({"file": file_path, "error": str(e)})
                continue
            analyses.append(
                {"file": file_path, **analysis.model_dump(mode="json", exclude={"target_file_content"})}
            )
        return {"analyses": analyses}

    return [get_code_definitions_for_files]


def create_test_runner_functions(runner: UnitTestRunner, root: str | Path) -> list[BaseTool]:
    """Create the run_unit_tests function, confined to projects below ``root``."""
    base = Path(root).resolve()

    @tool
    def run_unit_tests(project_path: str = ".", test_filter: str | None = None) -> dict:
        """Run the unit tests of a project, optionally filtered.

        Args:
            project_path: Project directory relative to the workspace root
            test_filter: Test file name, node id or keyword selecting the tests;
                all tests run when omitted

        Returns:
            Dictionary with the outcome; only failing tests are listed
        """
        target = (base / project_path).resolve()
        if target != base and base not in target.parents:
            return {"project_path": project_path, "error": f"Path escapes the workspace: {project_path}"}

        try:
            result = runner.run_tests(str(target), test_filter)
        except Exception as e:
            logger.debug("Test run failed for %s: %s", target, e)
            return {"project_path": project_path, "error": str(e)}

        return {
            "project_path": project_path,
            "success": result.success,
            "summary": result.summary(),
            "build_errors": result.build_errors,
            "errors": result.errors,
            "failed_tests": [test.model_dump() for test in result.failed_tests],
        }

    return [run_unit_tests]


@runtime_checkable
class PromptingFunction(Protocol):
    """A function that needs the chat API to do its own prompting."""

    def install_api(self, api: ChatAPI) -> None:
        ...

    def as_tool(self) -> BaseTool:
        ...


class FunctionChain:
    """Lets the model send itself a follow-up prompt, optionally in a fresh session."""

    name = "function_chain"

    def __init__(self) -> None:
        self._api: ChatAPI | None = None

    def install_api(self, api: ChatAPI) -> None:
        self._api = api

    def run(self, prompt: str, new_session: bool = False) -> str:
        if self._api is None:
            raise InvalidOperationError("API is not set")
        session_id = str(uuid.uuid4()) if new_session or not self._api.active_session_id else self._api.active_session_id
        return self._api.prompt(session_id, prompt)

    def as_tool(self) -> BaseTool:
        chain = self

        @tool("function_chain")
        def function_chain(prompt: str, new_session: bool = False) -> str:
            """Send yourself a prompt to achieve a goal, chaining other functions as needed.

            Use new_session when it saves tokens to keep the chain out of the
            main conversation (summarizing a file, extracting names). A new
            session has no context, so give very detailed instructions
            including full file paths.

            Args:
                prompt: The prompt to run
                new_session: Run it in a fresh session

            Returns:
                The model's answer
            """
            return chain.run(prompt, new_session)

        return function_chain
