"""Locate projects and test directories, and place generated test files."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional

from ..config import DEFAULT_IGNORED_DIRS, GenerationConfig
from ..errors import NotFoundError
from ..intelligence import detect_language, module_name_for
from ..intelligence.workspace import ROOT_MARKERS, SOURCE_EXTS

logger = logging.getLogger(__name__)

TEST_DIR_NAMES = ("tests", "test", "__tests__")
SOLUTION_MARKERS = (".git", ".hg")
SKIPPED_DIRS = frozenset(DEFAULT_IGNORED_DIRS)


def is_test_file(path: Path) -> bool:
    """Whether ``path`` looks like a test module for pytest or Jest."""
    if path.suffix.lower() not in SOURCE_EXTS:
        return False
    stem = path.stem
    return (
        stem.startswith("test_")
        or stem.endswith("_test")
        or stem.endswith("Tests")
        or stem.endswith(".test")
        or stem.endswith(".spec")
    )


def common_namespace_prefix(namespaces: Iterable[str]) -> Optional[str]:
    """Longest dotted prefix shared by every namespace, or None when there are none."""
    common: Optional[list[str]] = None
    for namespace in namespaces:
        parts = namespace.split(".") if namespace else []
        if common is None:
            common = parts
            continue
        size = 0
        for mine, theirs in zip(common, parts):
            if mine != theirs:
                break
            size += 1
        common = common[:size]
    return None if common is None else ".".join(common)


class ProjectTools:
    """File-system conventions for where tests live and how they are named."""

    def __init__(self, config: GenerationConfig | None = None):
        self.config = config or GenerationConfig()

    def find_project_root(self, source_file: str | Path) -> Optional[Path]:
        """Nearest ancestor directory holding a project marker file."""
        current = Path(source_file).resolve()
        if current.is_file() or not current.exists():
            current = current.parent

        for candidate in (current, *current.parents):
            if any((candidate / marker).is_file() for marker in ROOT_MARKERS):
                return candidate
        return None

    def find_project_file(self, source_file: str | Path) -> Optional[str]:
        """Directory the test runner should run in for ``source_file``."""
        root = self.find_project_root(source_file)
        return str(root) if root else None

    def find_solution_root(self, source_file: str | Path) -> Optional[str]:
        """Top of the repository containing ``source_file``.

        Falls back to the project root when no VCS directory is found.
        """
        current = Path(source_file).resolve().parent
        for candidate in (current, *current.parents):
            if any((candidate / marker).exists() for marker in SOLUTION_MARKERS):
                return str(candidate)
        return self.find_project_file(source_file)

    def find_test_project(self, source_file: str | Path) -> Optional[Path]:
        """Directory holding the tests for ``source_file``'s project."""
        root = self.find_project_root(source_file)
        if root is None:
            return None

        for name in TEST_DIR_NAMES:
            candidate = root / name
            if candidate.is_dir():
                return candidate

        for directory in sorted(self._walk_dirs(root)):
            if any(is_test_file(child) for child in directory.iterdir() if child.is_file()):
                return directory
        return None

    def get_namespace(self, source_file: str | Path) -> Optional[str]:
        """Dotted package of ``source_file`` (its module path minus the module itself)."""
        try:
            module = module_name_for(source_file)
        except NotFoundError:
            return None
        if Path(source_file).stem == "__init__":
            return module
        return module.rsplit(".", 1)[0] if "." in module else ""

    def get_common_namespace_prefix(self, test_dir: Path) -> Optional[str]:
        """Namespace prefix shared by every test module under ``test_dir``.

        A test directory without tests contributes its own namespace.
        """
        namespaces = [
            namespace
            for path in self._walk_files(test_dir)
            if is_test_file(path)
            for namespace in [self.get_namespace(path)]
            if namespace is not None
        ]
        if namespaces:
            return common_namespace_prefix(namespaces)

        return self.get_namespace(test_dir / "__placeholder__.py")

    def suggest_test_file_location(self, source_file: str | Path) -> Path:
        """Where the generated tests for ``source_file`` should be written.

        Raises:
            NotFoundError: If ``source_file`` is not inside a project
        """
        source = Path(source_file).resolve()
        test_dir = self.find_test_project(source)
        if test_dir is None:
            root = self.find_project_root(source)
            if root is None:
                raise NotFoundError(f"Unable to determine test file location for {source_file}")
            test_dir = root / "tests"
            logger.info("No test directory found; using %s", test_dir)

        prefix = self.get_common_namespace_prefix(test_dir) or ""
        namespace = self.get_namespace(source) or ""

        if prefix and (namespace == prefix or namespace.startswith(prefix + ".")):
            relative = namespace[len(prefix):].strip(".")
        else:
            relative = namespace

        name = self.config.test_file_template.format(stem=source.stem, suffix=source.suffix)
        parts = [part for part in relative.split(".") if part]
        return test_dir.joinpath(*parts, name)

    def has_tests_already(self, source_file: str | Path) -> Optional[Path]:
        """Path of an existing test file for ``source_file``, if there is one."""
        try:
            suggested = self.suggest_test_file_location(source_file)
        except NotFoundError:
            return None
        if suggested.is_file():
            return suggested

        source = Path(source_file)
        if detect_language(source) != "python":
            return None
        conventional = {f"test_{source.stem}.py", f"{source.stem}_test.py"}
        for path in self._walk_files(suggested.parent if suggested.parent.exists() else source.parent):
            if path.name in conventional:
                return path
        return None

    def save_test_file(self, source_file: str | Path, content: str) -> Path:
        """Write ``content`` to the suggested test location and return the path."""
        path = self.suggest_test_file_location(source_file)
        self.write_source_file(path, content)
        return path

    def write_source_file(self, path: str | Path, content: str) -> None:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        logger.debug("Wrote %d characters to %s", len(content), target)

    def _walk_files(self, root: Path):
        if not root.is_dir():
            return
        for path in sorted(root.rglob("*")):
            if path.is_file() and not SKIPPED_DIRS.intersection(path.relative_to(root).parts):
                yield path

    def _walk_dirs(self, root: Path):
        for path in root.rglob("*"):
            if path.is_dir() and not SKIPPED_DIRS.intersection(path.relative_to(root).parts):
                yield path
