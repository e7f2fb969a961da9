"""Depth-bounded crawl of the type definitions a source file depends on."""

from __future__ import annotations

import logging
from pathlib import Path

from ..config import DEFAULT_EXCLUDED_NAMESPACES
from ..errors import NotFoundError
from ..intelligence import (
    CodeIntelligenceProvider,
    DeclarationSource,
    Document,
    SymbolRef,
    Workspace,
    WorkspaceCache,
    require_document,
)
from ..models import Definition, DefinitionResult
from ..output import Outputter

logger = logging.getLogger(__name__)


def clean_code_snippet(code: str) -> str:
    """Strip the common indentation of a snippet and trim blank edge lines.

    Blank lines do not count towards the minimum indentation. A snippet with
    no non-blank lines is returned unchanged.
    """
    lines = code.replace("\r\n", "\n").split("\n")
    indents = [len(line) - len(line.lstrip()) for line in lines if line.strip()]
    if not indents:
        return code

    indent = min(indents)
    stripped = [line[indent:] if len(line) >= indent else line for line in lines]

    while stripped and not stripped[0].strip():
        stripped.pop(0)
    while stripped and not stripped[-1].strip():
        stripped.pop()
    return "\n".join(stripped)


class DefinitionCrawler(Outputter):
    """Collect the definitions of every workspace type a file uses, transitively.

    The crawler owns the workspace cache; call :meth:`close` (or use it as a
    context manager) when done.
    """

    output_role = "crawler"

    def __init__(
        self,
        provider: CodeIntelligenceProvider,
        excluded_namespaces: list[str] | None = None,
        priority_projects: list[str] | None = None,
        skip_own_types: bool = False,
    ):
        self.provider = provider
        self.excluded_namespaces = tuple(
            excluded_namespaces if excluded_namespaces is not None else DEFAULT_EXCLUDED_NAMESPACES
        )
        self.priority_projects = list(priority_projects or [])
        self.skip_own_types = skip_own_types
        self._workspaces = WorkspaceCache()

    def find_definitions(self, file_path: str | Path, max_depth: int) -> list[DefinitionResult]:
        """Crawl the definitions reachable from ``file_path``.

        Args:
            file_path: Source file under test
            max_depth: Deepest recursion level whose discoveries are kept
                (0 keeps only types the file references directly)

        Returns:
            One DefinitionResult per walked file that referenced something

        Raises:
            NotFoundError: If the file is not part of its workspace
        """
        workspace = self._workspace_for(file_path)
        document = require_document(workspace, file_path)
        self.emit(f"Found file {document.path}. Locating all definitions...")

        results: dict[str, DefinitionResult] = {}
        visited: dict[str, int] = {}
        self._walk(workspace, document, None, 0, max_depth, results, visited, document.path)
        return list(results.values())

    def find_single_class_definition(self, file_path: str | Path, class_name: str) -> DefinitionResult:
        """Find a type by exact name, searching preferred projects first.

        Raises:
            NotFoundError: If no project declares ``class_name``
        """
        workspace = self._workspace_for(file_path)

        for project in self._ordered_projects(workspace):
            ref = self.provider.find_symbol_by_name(workspace, class_name, project)
            if ref is None:
                continue
            source = self.provider.find_declaration_source(workspace, ref)
            if source is None:
                continue
            result = DefinitionResult(file=str(source.file_path))
            result.definitions[f"{source.file_path}:{ref.name}"] = self._make_definition(ref, source)
            return result

        raise NotFoundError(f"Could not find class {class_name} in workspace {workspace.root}")

    def is_excluded(self, namespace: str) -> bool:
        """Whether ``namespace`` is, or sits below, an excluded namespace."""
        for prefix in self.excluded_namespaces:
            if prefix.endswith((":", "/")):
                if namespace.startswith(prefix):
                    return True
            elif namespace == prefix or namespace.startswith(prefix + ".") or namespace.startswith(prefix + "/"):
                return True
        return False

    def close(self) -> None:
        self._workspaces.close()

    def __enter__(self) -> "DefinitionCrawler":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _workspace_for(self, file_path: str | Path) -> Workspace:
        root = self.provider.find_workspace_root(file_path)
        return self._workspaces.get_or_load(root, self.provider.load_workspace)

    def _ordered_projects(self, workspace: Workspace) -> list[str]:
        projects = workspace.projects()
        rank = {name: index for index, name in enumerate(self.priority_projects)}
        return sorted(projects, key=lambda name: (rank.get(name, len(rank)), name))

    def _walk(
        self,
        workspace: Workspace,
        document: Document,
        symbol: str | None,
        depth: int,
        max_depth: int,
        results: dict[str, DefinitionResult],
        visited: dict[str, int],
        target_path: Path,
    ) -> None:
        if depth > max_depth:
            return

        for ref in self.provider.symbol_references(workspace, document, symbol):
            if not ref.is_type or self.is_excluded(ref.namespace):
                continue
            if self.skip_own_types and ref.file_path == target_path:
                continue

            self.emit(
                f"Symbol found that needs definition: {ref.name} Kind: {ref.kind} "
                f"Namespace: {ref.namespace}"
            )
            source = self.provider.find_declaration_source(workspace, ref)
            if source is None:
                continue

            result = results.setdefault(str(document.path), DefinitionResult(file=str(document.path)))
            key = f"{source.file_path}:{ref.name}"
            if key not in result.definitions:
                result.definitions[key] = self._make_definition(ref, source)

            # Revisit only when reached with more depth budget left than before
            if visited.get(ref.full_name, max_depth + 1) <= depth:
                continue
            visited[ref.full_name] = depth

            declaring = workspace.find_document(source.file_path)
            if declaring is not None:
                self._walk(
                    workspace, declaring, ref.name, depth + 1, max_depth,
                    results, visited, target_path,
                )

    @staticmethod
    def _make_definition(ref: SymbolRef, source: DeclarationSource) -> Definition:
        return Definition(
            symbol=ref.name,
            namespace=source.namespace,
            code=clean_code_snippet(source.code),
        )
