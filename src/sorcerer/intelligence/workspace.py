"""Workspace discovery, indexing and caching."""

from __future__ import annotations

import logging
import os
from pathlib import Path, PurePosixPath
from typing import Callable, Iterable

from pathspec import PathSpec
from pathspec.patterns.gitwildmatch import GitWildMatchPattern

from ..config import DEFAULT_IGNORED_DIRS
from ..errors import NotFoundError
from .models import Document

logger = logging.getLogger(__name__)

ROOT_MARKERS = ("pyproject.toml", "setup.py", "setup.cfg", "package.json")

_PYTHON_EXTS = {".py", ".pyi"}
_JS_EXTS = {".js", ".jsx", ".mjs"}
_TS_EXTS = {".ts", ".tsx"}
SOURCE_EXTS = _PYTHON_EXTS | _JS_EXTS | _TS_EXTS


def detect_language(file_path: str | Path) -> str:
    ext = PurePosixPath(str(file_path)).suffix.lower()
    if ext in _PYTHON_EXTS:
        return "python"
    if ext in _JS_EXTS:
        return "javascript"
    if ext in _TS_EXTS:
        return "typescript"
    return "unknown"


def find_workspace_root(path: str | Path) -> Path:
    """Walk up from ``path`` to the nearest directory holding a root marker.

    Raises:
        NotFoundError: If no ancestor carries a marker file
    """
    current = Path(path).resolve()
    if current.is_file() or not current.exists():
        current = current.parent

    for candidate in (current, *current.parents):
        if any((candidate / marker).is_file() for marker in ROOT_MARKERS):
            return candidate

    raise NotFoundError(f"No workspace root found above {path}")


def load_gitignore(root: Path) -> PathSpec | None:
    """Load the .gitignore patterns at ``root``, if any."""
    gitignore_path = root / ".gitignore"
    if not gitignore_path.exists():
        return None

    try:
        patterns = gitignore_path.read_text().splitlines()
    except OSError:
        return None

    if not patterns:
        return None

    return PathSpec.from_lines(GitWildMatchPattern, patterns)


def module_name_for(path: str | Path) -> str:
    """Dotted module path of ``path`` within its workspace."""
    resolved = Path(path).resolve()
    return _make_document(find_workspace_root(resolved), resolved, detect_language(resolved)).module


class Workspace:
    """Index of the source documents below a workspace root.

    ``src/`` is treated as transparent: ``src/pkg/mod.py`` is module
    ``pkg.mod`` in project ``pkg``.
    """

    def __init__(self, root: Path, documents: Iterable[Document]):
        self.root = root
        self._by_path: dict[Path, Document] = {}
        self._by_module: dict[str, list[Document]] = {}
        # Parse results per document, filled by the intelligence provider
        self.parsed: dict[Path, object] = {}
        for doc in documents:
            self._by_path[doc.path] = doc
            self._by_module.setdefault(doc.module, []).append(doc)

    @classmethod
    def scan(cls, root: Path, ignored_dirs: list[str] | None = None) -> "Workspace":
        """Index every source file below ``root``.

        Directories in ``ignored_dirs`` and paths matched by the root
        ``.gitignore`` are skipped.
        """
        ignored = set(ignored_dirs or DEFAULT_IGNORED_DIRS)
        root = root.resolve()
        gitignore_spec = load_gitignore(root)
        documents: list[Document] = []

        def is_gitignored(path: Path, is_dir: bool) -> bool:
            if gitignore_spec is None:
                return False
            relative = path.relative_to(root).as_posix()
            return gitignore_spec.match_file(relative + "/" if is_dir else relative)

        for dirpath, dirnames, filenames in os.walk(root):
            current = Path(dirpath)
            dirnames[:] = sorted(
                d
                for d in dirnames
                if d not in ignored
                and not d.endswith(".egg-info")
                and not is_gitignored(current / d, is_dir=True)
            )
            for filename in sorted(filenames):
                path = current / filename
                language = detect_language(path)
                if language == "unknown" or is_gitignored(path, is_dir=False):
                    continue
                documents.append(_make_document(root, path, language))

        logger.debug("Indexed %d documents under %s", len(documents), root)
        return cls(root, documents)

    @property
    def documents(self) -> list[Document]:
        return list(self._by_path.values())

    def find_document(self, path: str | Path) -> Document | None:
        return self._by_path.get(Path(path).resolve())

    def find_module(self, module: str, language: str | None = None) -> Document | None:
        for doc in self._by_module.get(module, []):
            if language is None or _same_family(doc.language, language):
                return doc
        return None

    def has_module(self, module: str) -> bool:
        return module in self._by_module

    def projects(self) -> list[str]:
        return sorted({doc.project for doc in self._by_path.values()})

    def documents_in_project(self, project: str) -> list[Document]:
        return sorted(
            (doc for doc in self._by_path.values() if doc.project == project),
            key=lambda doc: str(doc.path),
        )


class WorkspaceCache:
    """Workspaces loaded so far, keyed by root. The owner must call close()."""

    def __init__(self) -> None:
        self._workspaces: dict[Path, Workspace] = {}

    def get_or_load(self, root: Path, loader: Callable[[Path], Workspace]) -> Workspace:
        root = root.resolve()
        workspace = self._workspaces.get(root)
        if workspace is None:
            workspace = loader(root)
            self._workspaces[root] = workspace
        return workspace

    def __len__(self) -> int:
        return len(self._workspaces)

    def close(self) -> None:
        self._workspaces.clear()

    def __enter__(self) -> "WorkspaceCache":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def _make_document(root: Path, path: Path, language: str) -> Document:
    rel = path.relative_to(root)
    parts = list(rel.parts)
    if len(parts) > 1 and parts[0] == "src":
        parts = parts[1:]

    stem = PurePosixPath(parts[-1]).name
    for ext in sorted(SOURCE_EXTS, key=len, reverse=True):
        if stem.endswith(".d.ts"):
            stem = stem[: -len(".d.ts")]
            break
        if stem.endswith(ext):
            stem = stem[: -len(ext)]
            break

    module_parts = parts[:-1]
    is_package = stem == "__init__" and language == "python"
    if not is_package:
        module_parts = [*module_parts, stem]

    project = parts[0] if len(parts) > 1 else root.name
    return Document(
        path=path,
        module=".".join(module_parts),
        project=project,
        language=language,
        is_package=is_package,
    )


def _same_family(a: str, b: str) -> bool:
    scripts = {"javascript", "typescript"}
    return a == b or (a in scripts and b in scripts)
