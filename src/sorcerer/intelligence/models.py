"""Data models for workspace-level code intelligence."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

TYPE_KINDS = frozenset({"class", "interface", "type", "enum"})


@dataclass
class Document:
    """A source file indexed inside a workspace."""

    path: Path
    module: str  # dotted module path, e.g. "pkg.services.clock"
    project: str
    language: str  # "python", "typescript", "javascript"
    is_package: bool = False
    _source: str | None = field(default=None, repr=False, compare=False)

    @property
    def namespace(self) -> str:
        """Dotted path of the package that contains this document."""
        if self.is_package:
            return self.module
        return self.module.rpartition(".")[0]

    def read(self) -> str:
        if self._source is None:
            self._source = self.path.read_text(encoding="utf-8", errors="replace")
        return self._source


@dataclass(frozen=True)
class SymbolRef:
    """A name used in a document, resolved as far as the workspace allows.

    ``file_path`` is None for symbols declared outside the workspace.
    """

    name: str
    namespace: str
    kind: str  # one of TYPE_KINDS, or "external"
    file_path: Path | None = None

    @property
    def full_name(self) -> str:
        return f"{self.namespace}.{self.name}" if self.namespace else self.name

    @property
    def is_type(self) -> bool:
        return self.kind in TYPE_KINDS


@dataclass
class DeclarationSource:
    """Source text of the declaration node of a symbol."""

    symbol: str
    namespace: str
    file_path: Path
    start_line: int  # 1-indexed, includes decorators
    end_line: int
    code: str

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "namespace": self.namespace,
            "file_path": str(self.file_path),
            "start_line": self.start_line,
            "end_line": self.end_line,
        }
