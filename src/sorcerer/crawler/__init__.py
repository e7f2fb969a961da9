"""Definition crawl and analysis."""

from .analyzer import DefinitionAnalyzer, classify_worthiness
from .crawler import DefinitionCrawler, clean_code_snippet

__all__ = ["DefinitionAnalyzer", "DefinitionCrawler", "classify_worthiness", "clean_code_snippet"]
