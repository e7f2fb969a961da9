"""AST-based code intelligence.

Uses stdlib ast for Python and tree-sitter for JS/TS. Resolution is static:
names are followed through import statements (including one level of
package re-exports per hop) to the module that declares them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from ..errors import NotFoundError
from .models import DeclarationSource, Document, SymbolRef
from .parsers import ImportBinding, PythonParser, TSImportBinding, TSParser
from .parsers.python_parser import ClassSpan
from .parsers.ts_parser import TSDeclaration
from .workspace import Workspace, find_workspace_root

logger = logging.getLogger(__name__)

_MAX_REEXPORT_DEPTH = 5
_SCRIPT_SUFFIXES = (".ts", ".tsx", ".d.ts", ".js", ".jsx", ".mjs")


@dataclass
class _PythonInfo:
    tree: object | None
    classes: dict[str, ClassSpan] = field(default_factory=dict)
    bindings: dict[str, ImportBinding] = field(default_factory=dict)


@dataclass
class _ScriptInfo:
    tree: object
    declarations: dict[str, TSDeclaration] = field(default_factory=dict)
    bindings: dict[str, TSImportBinding] = field(default_factory=dict)


class AstCodeIntelligence:
    """Static code intelligence for Python and JS/TS workspaces."""

    def __init__(self, ignored_dirs: list[str] | None = None) -> None:
        self._python = PythonParser()
        self._ts = TSParser()
        self.ignored_dirs = ignored_dirs

    # -- workspace -------------------------------------------------------

    def find_workspace_root(self, path: str | Path) -> Path:
        return find_workspace_root(path)

    def load_workspace(self, root: Path) -> Workspace:
        return Workspace.scan(root, self.ignored_dirs)

    def resolve_workspace(self, path: str | Path) -> Workspace:
        return self.load_workspace(self.find_workspace_root(path))

    # -- references ------------------------------------------------------

    def symbol_references(
        self, workspace: Workspace, document: Document, symbol: str | None = None
    ) -> list[SymbolRef]:
        if document.language == "python":
            info = self._python_info(workspace, document)
            if info.tree is None:
                return []
            if symbol is None:
                node = info.tree
            elif symbol in info.classes:
                node = info.classes[symbol].node
            else:
                return []
            names = self._python.referenced_names(node)
            resolve = self._resolve_python
        else:
            info = self._script_info(workspace, document)
            if symbol is None:
                node = info.tree.root_node
            elif symbol in info.declarations:
                node = info.declarations[symbol].node
            else:
                return []
            names = self._ts.referenced_names(node)
            resolve = self._resolve_script

        refs: dict[str, SymbolRef] = {}
        for name in names:
            ref = resolve(workspace, document, name, 0)
            if ref is not None:
                refs.setdefault(ref.full_name, ref)
        return list(refs.values())

    def find_declaration_source(
        self, workspace: Workspace, ref: SymbolRef
    ) -> DeclarationSource | None:
        if ref.file_path is None:
            return None
        document = workspace.find_document(ref.file_path)
        if document is None:
            return None

        if document.language == "python":
            span = self._python_info(workspace, document).classes.get(ref.name)
        else:
            span = self._script_info(workspace, document).declarations.get(ref.name)
        if span is None:
            return None

        return DeclarationSource(
            symbol=ref.name,
            namespace=document.module,
            file_path=document.path,
            start_line=span.start_line,
            end_line=span.end_line,
            code=self._python.slice_lines(document.read(), span.start_line, span.end_line),
        )

    def find_symbol_by_name(
        self, workspace: Workspace, name: str, project: str
    ) -> SymbolRef | None:
        for document in workspace.documents_in_project(project):
            if document.language == "python":
                span = self._python_info(workspace, document).classes.get(name)
                kind = "class"
            else:
                span = self._script_info(workspace, document).declarations.get(name)
                kind = span.kind if span else ""
            if span is not None and span.name == name:
                return SymbolRef(name, document.module, kind, document.path)
        return None

    # -- parsing ---------------------------------------------------------

    def _python_info(self, workspace: Workspace, document: Document) -> _PythonInfo:
        info = workspace.parsed.get(document.path)
        if info is None:
            tree = self._python.parse(document.read())
            if tree is None:
                logger.warning("Skipping %s: source does not parse", document.path)
                info = _PythonInfo(tree=None)
            else:
                info = _PythonInfo(
                    tree=tree,
                    classes=self._python.class_declarations(tree),
                    bindings=self._python.import_bindings(
                        tree, document.module, document.is_package
                    ),
                )
            workspace.parsed[document.path] = info
        return info

    def _script_info(self, workspace: Workspace, document: Document) -> _ScriptInfo:
        info = workspace.parsed.get(document.path)
        if info is None:
            tree = self._ts.parse(document.read(), str(document.path))
            info = _ScriptInfo(
                tree=tree,
                declarations=self._ts.type_declarations(tree),
                bindings=self._ts.import_bindings(tree),
            )
            workspace.parsed[document.path] = info
        return info

    # -- python resolution -----------------------------------------------

    def _resolve_python(
        self, workspace: Workspace, document: Document, dotted: str, depth: int
    ) -> SymbolRef | None:
        parts = dotted.split(".")
        root = parts[0]
        info = self._python_info(workspace, document)

        if root in info.classes:
            return SymbolRef(root, document.module, "class", document.path)

        binding = info.bindings.get(root)
        if binding is None:
            return None
        if binding.attribute is None:
            return self._resolve_module_path(workspace, binding.module, parts[1:], depth)

        candidate = f"{binding.module}.{binding.attribute}" if binding.module else binding.attribute
        if workspace.has_module(candidate):
            return self._resolve_module_path(workspace, candidate, parts[1:], depth)
        return self._resolve_member(workspace, binding.module, binding.attribute, depth)

    def _resolve_module_path(
        self, workspace: Workspace, module: str, rest: list[str], depth: int
    ) -> SymbolRef | None:
        for part in rest:
            nested = f"{module}.{part}"
            if workspace.has_module(nested):
                module = nested
                continue
            return self._resolve_member(workspace, module, part, depth)
        return None

    def _resolve_member(
        self, workspace: Workspace, module: str, name: str, depth: int
    ) -> SymbolRef | None:
        document = workspace.find_module(module, "python")
        if document is None:
            return SymbolRef(name, module, "external")

        info = self._python_info(workspace, document)
        if name in info.classes:
            return SymbolRef(name, module, "class", document.path)
        if depth < _MAX_REEXPORT_DEPTH and name in info.bindings:
            return self._resolve_python(workspace, document, name, depth + 1)
        return None

    # -- js/ts resolution ------------------------------------------------

    def _resolve_script(
        self, workspace: Workspace, document: Document, dotted: str, depth: int
    ) -> SymbolRef | None:
        parts = dotted.split(".")
        root = parts[0]
        info = self._script_info(workspace, document)

        declaration = info.declarations.get(root)
        if declaration is not None:
            return SymbolRef(declaration.name, document.module, declaration.kind, document.path)

        binding = info.bindings.get(root)
        if binding is None:
            return None

        if binding.imported is None:
            if len(parts) < 2:
                return None
            member = parts[1]
        else:
            member = binding.imported

        target = self._resolve_script_module(workspace, document, binding.source)
        if target is None:
            return SymbolRef(root if member == "default" else member, binding.source, "external")

        target_info = self._script_info(workspace, target)
        declaration = target_info.declarations.get(member)
        if declaration is not None:
            return SymbolRef(declaration.name, target.module, declaration.kind, target.path)
        if depth < _MAX_REEXPORT_DEPTH and member in target_info.bindings:
            return self._resolve_script(workspace, target, member, depth + 1)
        return None

    def _resolve_script_module(
        self, workspace: Workspace, document: Document, source: str
    ) -> Document | None:
        if not source.startswith("."):
            return None

        base = (document.path.parent / source).resolve()
        candidates = [base]
        if base.suffix in (".js", ".jsx", ".mjs"):
            # TS sources are imported with their emitted .js extension
            stem = base.with_suffix("")
            candidates.extend(Path(f"{stem}{suffix}") for suffix in _SCRIPT_SUFFIXES)
        candidates.extend(Path(f"{base}{suffix}") for suffix in _SCRIPT_SUFFIXES)
        candidates.extend(base / f"index{suffix}" for suffix in _SCRIPT_SUFFIXES)

        for candidate in candidates:
            target = workspace.find_document(candidate)
            if target is not None:
                return target
        return None


def require_document(workspace: Workspace, path: str | Path) -> Document:
    """Look up a document, raising NotFoundError when the workspace lacks it."""
    document = workspace.find_document(path)
    if document is None:
        raise NotFoundError(f"File {path} was not found in workspace {workspace.root}")
    return document
