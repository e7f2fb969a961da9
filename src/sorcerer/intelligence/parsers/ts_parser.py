"""JavaScript/TypeScript symbol extraction using tree-sitter."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePosixPath

import tree_sitter_javascript as tsjs
import tree_sitter_typescript as tsts
from tree_sitter import Language, Parser

JS_LANGUAGE = Language(tsjs.language())
TS_LANGUAGE = Language(tsts.language_typescript())
TSX_LANGUAGE = Language(tsts.language_tsx())

# Map file extensions to tree-sitter languages
_LANG_MAP: dict[str, Language] = {
    ".js": JS_LANGUAGE,
    ".jsx": JS_LANGUAGE,
    ".mjs": JS_LANGUAGE,
    ".ts": TS_LANGUAGE,
    ".tsx": TSX_LANGUAGE,
}

_KIND_MAP = {
    "class_declaration": "class",
    "abstract_class_declaration": "class",
    "class": "class",
    "interface_declaration": "interface",
    "type_alias_declaration": "type",
    "enum_declaration": "enum",
}

_REFERENCE_NODES = {"identifier", "type_identifier"}


@dataclass(frozen=True)
class TSImportBinding:
    """A local name bound by an import statement.

    ``imported`` is ``"default"`` for default imports and None for
    namespace imports (``import * as ns``).
    """

    source: str
    imported: str | None


@dataclass
class TSDeclaration:
    name: str
    kind: str
    start_line: int
    end_line: int
    node: object


class TSParser:
    """Parse JS/TS source and report declarations, imports and name usage."""

    def _get_language(self, file_path: str) -> Language:
        """Pick the right tree-sitter language from file extension."""
        ext = PurePosixPath(file_path).suffix.lower()
        return _LANG_MAP.get(ext, JS_LANGUAGE)

    def parse(self, source: str, file_path: str):
        """Parse source and return tree."""
        parser = Parser(self._get_language(file_path))
        return parser.parse(source.encode())

    def type_declarations(self, tree) -> dict[str, TSDeclaration]:
        """Top-level classes, interfaces, type aliases and enums, exported or not."""
        declarations: dict[str, TSDeclaration] = {}
        for node in tree.root_node.children:
            actual = node
            if node.type == "export_statement":
                actual = node.child_by_field_name("declaration")
                if actual is None:
                    continue
            kind = _KIND_MAP.get(actual.type)
            if not kind:
                continue
            name = _node_name(actual)
            if not name or name in declarations:
                continue
            # Keep decorators/export keyword attached to the declaration
            declaration = TSDeclaration(
                name=name,
                kind=kind,
                start_line=node.start_point[0] + 1,
                end_line=node.end_point[0] + 1,
                node=actual,
            )
            declarations[name] = declaration
            if node.type == "export_statement" and any(c.type == "default" for c in node.children):
                declarations.setdefault("default", declaration)
        return declarations

    def import_bindings(self, tree) -> dict[str, TSImportBinding]:
        bindings: dict[str, TSImportBinding] = {}
        for node in tree.root_node.children:
            if node.type != "import_statement":
                continue
            source_node = node.child_by_field_name("source")
            if source_node is None:
                continue
            source = source_node.text.decode().strip("'\"")

            for clause in node.children:
                if clause.type != "import_clause":
                    continue
                for child in clause.children:
                    if child.type == "identifier":
                        bindings[child.text.decode()] = TSImportBinding(source, "default")
                    elif child.type == "namespace_import":
                        for ident in child.children:
                            if ident.type == "identifier":
                                bindings[ident.text.decode()] = TSImportBinding(source, None)
                    elif child.type == "named_imports":
                        for spec in child.children:
                            if spec.type != "import_specifier":
                                continue
                            name_node = spec.child_by_field_name("name")
                            alias_node = spec.child_by_field_name("alias")
                            if name_node is None:
                                continue
                            local = (alias_node or name_node).text.decode()
                            bindings[local] = TSImportBinding(source, name_node.text.decode())
        return bindings

    def referenced_names(self, node) -> list[str]:
        """Identifiers and type identifiers under ``node``, in first-seen order.

        Import statements are skipped; ``ns.Member`` member expressions are
        reported as ``"ns.Member"``.
        """
        seen: dict[str, None] = {}
        stack = [node]
        ordered: list = []
        while stack:
            current = stack.pop()
            ordered.append(current)
            if current.type == "import_statement":
                continue
            stack.extend(reversed(current.children))

        for current in ordered:
            if current.type in ("member_expression", "nested_type_identifier"):
                text = current.text.decode()
                if text.count(".") == 1 and "(" not in text:
                    seen.setdefault(text.replace(" ", ""), None)
            elif current.type in _REFERENCE_NODES:
                seen.setdefault(current.text.decode(), None)
        return list(seen)

    def slice_lines(self, source: str, start_line: int, end_line: int) -> str:
        lines = source.splitlines()
        return "\n".join(lines[start_line - 1 : end_line])


def _node_name(node) -> str | None:
    name_node = node.child_by_field_name("name")
    if name_node:
        return name_node.text.decode()
    return None
