"""Protocol for code intelligence providers used by the definition crawler.

One implementation ships today:
- AstCodeIntelligence: stdlib ast for Python, tree-sitter for JS/TS

A language-server backed provider can replace it without touching the crawler.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .models import DeclarationSource, Document, SymbolRef
    from .workspace import Workspace


@runtime_checkable
class CodeIntelligenceProvider(Protocol):
    """Workspace-aware symbol resolution."""

    def find_workspace_root(self, path: str | Path) -> Path:
        """Locate the root of the workspace containing ``path``.

        Raises:
            NotFoundError: If ``path`` is not inside a workspace
        """
        ...

    def load_workspace(self, root: Path) -> Workspace:
        """Index the workspace rooted at ``root``."""
        ...

    def symbol_references(
        self, workspace: Workspace, document: Document, symbol: str | None = None
    ) -> list[SymbolRef]:
        """Resolve the names used in a document.

        Args:
            workspace: Workspace the document belongs to.
            document: Document to inspect.
            symbol: Restrict the scan to the declaration of this symbol.

        Returns:
            Resolved references, in order of first use, without duplicates.
        """
        ...

    def find_declaration_source(
        self, workspace: Workspace, ref: SymbolRef
    ) -> DeclarationSource | None:
        """Source of the declaration node of ``ref``, or None when it has no source."""
        ...

    def find_symbol_by_name(
        self, workspace: Workspace, name: str, project: str
    ) -> SymbolRef | None:
        """First type named exactly ``name`` declared inside ``project``."""
        ...
