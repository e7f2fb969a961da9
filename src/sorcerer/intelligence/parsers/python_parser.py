"""Python symbol extraction using stdlib ast."""

from __future__ import annotations

import ast
import re
from dataclasses import dataclass

_ANNOTATION_RE = re.compile(r"^[A-Za-z_][\w.]*(\[[\w., \[\]|]*\])?$")


@dataclass(frozen=True)
class ImportBinding:
    """A local name bound by an import statement.

    ``attribute`` is None when the name is bound to a module itself
    (``import pkg.mod as m``), otherwise the imported member name.
    """

    module: str
    attribute: str | None = None


@dataclass
class ClassSpan:
    name: str
    start_line: int  # first decorator line when decorated
    end_line: int
    node: ast.ClassDef


class PythonParser:
    """Parse Python source and report declarations, imports and name usage."""

    def parse(self, source: str) -> ast.Module | None:
        try:
            return ast.parse(source)
        except SyntaxError:
            return None

    def class_declarations(self, tree: ast.Module) -> dict[str, ClassSpan]:
        """Map class names to their declaration spans. Outer declarations win."""
        spans: dict[str, ClassSpan] = {}
        for node in ast.walk(tree):
            if isinstance(node, ast.ClassDef) and node.name not in spans:
                start = min([node.lineno] + [dec.lineno for dec in node.decorator_list])
                spans[node.name] = ClassSpan(
                    name=node.name,
                    start_line=start,
                    end_line=node.end_lineno or node.lineno,
                    node=node,
                )
        return spans

    def import_bindings(
        self, tree: ast.Module, module: str, is_package: bool = False
    ) -> dict[str, ImportBinding]:
        """Collect the names bound by import statements anywhere in the module.

        Args:
            tree: Parsed module
            module: Dotted name of the module, used to resolve relative imports
            is_package: Whether the module is a package ``__init__``

        Returns:
            Local name to ImportBinding
        """
        bindings: dict[str, ImportBinding] = {}
        package_parts = module.split(".") if module else []
        if not is_package and package_parts:
            package_parts = package_parts[:-1]

        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                for alias in node.names:
                    if alias.asname:
                        bindings[alias.asname] = ImportBinding(alias.name)
                    else:
                        top = alias.name.split(".")[0]
                        bindings[top] = ImportBinding(top)
            elif isinstance(node, ast.ImportFrom):
                source_module = self._absolute_module(node, package_parts)
                for alias in node.names:
                    if alias.name == "*":
                        continue
                    bindings[alias.asname or alias.name] = ImportBinding(
                        source_module, alias.name
                    )

        return bindings

    def referenced_names(self, node: ast.AST) -> list[str]:
        """Dotted names used under ``node``, in first-seen order.

        ``a.b.C`` is reported once as ``"a.b.C"``; string annotations are
        parsed and included.
        """
        seen: dict[str, None] = {}

        def visit(current: ast.AST) -> None:
            if isinstance(current, ast.Attribute):
                dotted = _dotted_name(current)
                if dotted:
                    seen.setdefault(dotted, None)
                    return
            elif isinstance(current, ast.Name):
                seen.setdefault(current.id, None)
                return
            elif isinstance(current, ast.Constant) and isinstance(current.value, str):
                for name in _names_in_string_annotation(current.value):
                    seen.setdefault(name, None)
                return
            elif isinstance(current, (ast.Import, ast.ImportFrom)):
                return
            for child in ast.iter_child_nodes(current):
                visit(child)

        visit(node)
        return list(seen)

    def slice_lines(self, source: str, start_line: int, end_line: int) -> str:
        lines = source.splitlines()
        return "\n".join(lines[start_line - 1 : end_line])

    @staticmethod
    def _absolute_module(node: ast.ImportFrom, package_parts: list[str]) -> str:
        if not node.level:
            return node.module or ""
        parts = package_parts[: len(package_parts) - (node.level - 1)]
        if node.module:
            parts.extend(node.module.split("."))
        return ".".join(parts)


def _dotted_name(node: ast.Attribute) -> str | None:
    parts: list[str] = []
    current: ast.AST = node
    while isinstance(current, ast.Attribute):
        parts.append(current.attr)
        current = current.value
    if not isinstance(current, ast.Name):
        return None
    parts.append(current.id)
    return ".".join(reversed(parts))


def _names_in_string_annotation(text: str) -> list[str]:
    text = text.strip()
    if not _ANNOTATION_RE.match(text):
        return []
    try:
        expr = ast.parse(text, mode="eval")
    except SyntaxError:
        return []
    names: list[str] = []
    for sub in ast.walk(expr):
        if isinstance(sub, ast.Attribute):
            dotted = _dotted_name(sub)
            if dotted:
                names.append(dotted)
        elif isinstance(sub, ast.Name):
            names.append(sub.id)
    return names
