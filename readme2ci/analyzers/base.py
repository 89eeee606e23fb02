"""Base classes for analyzer plugins."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..markdown import MarkdownAST
from ..models import AnalyzerOutput


class Analyzer(ABC):
    """Contract shared by built-in stages and caller-supplied analyzers."""

    name: str = "analyzer"

    @abstractmethod
    def analyze(self, ast: MarkdownAST, raw_text: str) -> AnalyzerOutput:
        """Inspect the document and return data, confidence and sources."""
