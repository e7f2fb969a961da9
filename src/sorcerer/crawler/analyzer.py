"""Merge crawl results, attach supplements and score test-worthiness."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from ..config import DEFAULT_SUPPLEMENTS
from ..errors import NotFoundError
from ..models import (
    AnalysisResult,
    Definition,
    DefinitionResult,
    DefinitionSupplement,
    TestWorthiness,
)
from ..output import Outputter
from .crawler import DefinitionCrawler

logger = logging.getLogger(__name__)

EXCELLENT_LINES_OF_CODE = 500
OK_LINES_OF_CODE = 1000


def count_lines(text: str) -> int:
    return len(text.split("\n"))


def classify_worthiness(total_loc: int) -> TestWorthiness:
    if total_loc > OK_LINES_OF_CODE:
        return TestWorthiness.POOR
    if total_loc > EXCELLENT_LINES_OF_CODE:
        return TestWorthiness.OKAY
    return TestWorthiness.EXCELLENT


class DefinitionAnalyzer(Outputter):
    """Turn raw crawl output into the AnalysisResult used to build prompts."""

    output_role = "analyzer"

    def __init__(
        self,
        crawler: DefinitionCrawler,
        supplements: dict[str, tuple[str, str]] | None = None,
    ):
        """Initialize the analyzer.

        Args:
            crawler: Used to look up supplement types by name
            supplements: Symbol name -> (reason, supplement type name)
        """
        self.crawler = crawler
        self.supplements = dict(supplements if supplements is not None else DEFAULT_SUPPLEMENTS)

    def analyze(
        self,
        definition_results: Iterable[DefinitionResult],
        uut_file_path: str | Path,
        uut_source: str | None = None,
    ) -> AnalysisResult:
        """Deduplicate definitions, inject supplements and compute size metrics.

        Args:
            definition_results: Output of DefinitionCrawler.find_definitions
            uut_file_path: File under test
            uut_source: Content of the file under test (read from disk if None)

        Returns:
            AnalysisResult with definitions unique by full name
        """
        if uut_source is None:
            uut_source = Path(uut_file_path).read_text(encoding="utf-8")

        unique: dict[str, Definition] = {}
        for result in definition_results:
            for definition in result.definitions.values():
                unique.setdefault(definition.full_name, definition)

        definitions: list[Definition] = []
        supplement_count = 0
        for definition in unique.values():
            supplemented = self._supplement(definition, uut_file_path)
            if supplemented.supplement is not None:
                supplement_count += 1
            definitions.append(supplemented)

        context_loc = sum(count_lines(d.code) for d in definitions)
        total_loc = context_loc + count_lines(uut_source)

        analysis = AnalysisResult(
            definitions=definitions,
            supplements=supplement_count,
            context_loc=context_loc,
            total_loc=total_loc,
            test_worthiness=classify_worthiness(total_loc),
            target_file_content=uut_source,
        )
        self.emit(
            f"Definitions: {len(definitions)}, Supplements: {supplement_count}, "
            f"Context LOC: {context_loc}, Total LOC: {total_loc}, "
            f"Test worthiness: {analysis.test_worthiness.value}"
        )
        return analysis

    def _supplement(self, definition: Definition, uut_file_path: str | Path) -> Definition:
        entry = self.supplements.get(definition.symbol)
        if entry is None:
            return definition

        reason, type_name = entry
        try:
            found = self.crawler.find_single_class_definition(uut_file_path, type_name)
        except NotFoundError:
            logger.warning("Supplement %s for %s not found", type_name, definition.symbol)
            return definition

        supplement_definition = next(iter(found.definitions.values()), None)
        if supplement_definition is None:
            return definition

        self.emit(f"Supplementing {definition.symbol} with {type_name}: {reason}")
        return definition.model_copy(
            update={
                "supplement": DefinitionSupplement(definition=supplement_definition, reason=reason)
            }
        )
