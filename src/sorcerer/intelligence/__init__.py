"""Workspace-level code intelligence for the definition crawler."""

from .ast_provider import AstCodeIntelligence, require_document
from .models import DeclarationSource, Document, SymbolRef
from .protocol import CodeIntelligenceProvider
from .workspace import (
    Workspace,
    WorkspaceCache,
    detect_language,
    find_workspace_root,
    module_name_for,
)

__all__ = [
    "AstCodeIntelligence",
    "CodeIntelligenceProvider",
    "DeclarationSource",
    "Document",
    "SymbolRef",
    "Workspace",
    "WorkspaceCache",
    "detect_language",
    "find_workspace_root",
    "module_name_for",
    "require_document",
]
