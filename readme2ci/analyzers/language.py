"""Language context detection from fences, commands and prose mentions."""

from __future__ import annotations

import re
from collections import Counter, defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Pattern, Sequence, Tuple

from .base import Analyzer
from .patterns import PATTERN_TABLE, PatternTable, command_head, infer_language, leading_token
from ..logging import get_logger
from ..markdown import CodeBlock, MarkdownAST
from ..models import (
    AnalyzerOutput,
    ContextMetadata,
    ContextSource,
    Evidence,
    LanguageContext,
    SourceRange,
)

EVIDENCE_CONFIDENCE: Dict[str, float] = {
    "syntax": 0.9,
    "tool": 0.8,
    "extension": 0.8,
    "framework": 0.7,
    "keyword": 0.5,
}
MIN_CONTEXT_CONFIDENCE = 0.3
MAX_CONTEXT_CONFIDENCE = 0.99


@dataclass(frozen=True)
class LanguageSignature:
    """Textual markers that point at one language."""

    fences: Tuple[str, ...]
    keywords: Tuple[str, ...] = ()
    extensions: Tuple[str, ...] = ()
    frameworks: Tuple[str, ...] = ()


LANGUAGE_SIGNATURES: Dict[str, LanguageSignature] = {
    "JavaScript": LanguageSignature(
        fences=("javascript", "js", "jsx", "mjs", "node"),
        keywords=("javascript", "node.js", "nodejs", "npm", "yarn", "pnpm"),
        extensions=(".js", ".mjs", ".cjs", ".jsx"),
        frameworks=("react", "vue", "angular", "express", "next.js", "svelte"),
    ),
    "TypeScript": LanguageSignature(
        fences=("typescript", "ts", "tsx"),
        keywords=("typescript",),
        extensions=(".ts", ".tsx"),
        frameworks=("nestjs", "deno"),
    ),
    "Python": LanguageSignature(
        fences=("python", "py", "python3", "pycon"),
        keywords=("python", "pip", "conda", "virtualenv", "pypi"),
        extensions=(".py",),
        frameworks=("django", "flask", "fastapi", "pandas", "numpy"),
    ),
    "Java": LanguageSignature(
        fences=("java",),
        keywords=("java", "maven", "gradle", "jdk"),
        extensions=(".java", ".jar"),
        frameworks=("spring", "spring boot", "hibernate"),
    ),
    "Go": LanguageSignature(
        fences=("go", "golang"),
        keywords=("golang",),
        extensions=(".go",),
        frameworks=("gin", "cobra"),
    ),
    "Rust": LanguageSignature(
        fences=("rust", "rs"),
        keywords=("rust", "cargo", "crates.io"),
        extensions=(".rs",),
        frameworks=("actix", "rocket", "tokio"),
    ),
    "PHP": LanguageSignature(
        fences=("php",),
        keywords=("php", "composer"),
        extensions=(".php",),
        frameworks=("laravel", "symfony"),
    ),
    "C#": LanguageSignature(
        fences=("csharp", "cs", "c#"),
        keywords=("csharp", "c#", ".net", "dotnet"),
        extensions=(".cs", ".csproj"),
        frameworks=("asp.net", "blazor"),
    ),
    "Ruby": LanguageSignature(
        fences=("ruby", "rb"),
        keywords=("ruby", "rubygems", "bundler"),
        extensions=(".rb",),
        frameworks=("rails", "sinatra"),
    ),
}


@dataclass(frozen=True)
class _Section:
    start_line: int
    end_line: int
    title: Optional[str]


class LanguageDetector(Analyzer):
    """Builds language contexts for the whole document and for each section.

    A document-wide context spans all evidence for a language. Each section
    (heading to next heading) that carries evidence also gets its own context
    covering the full section, so a command with no tool marker inherits the
    language of the section it sits in.
    """

    name = "language"

    def __init__(
        self,
        signatures: Dict[str, LanguageSignature] | None = None,
        table: PatternTable = PATTERN_TABLE,
    ) -> None:
        self.signatures = signatures or LANGUAGE_SIGNATURES
        self.table = table
        self.logger = get_logger("analyzers.language")
        self._text_patterns = self._compile_text_patterns()

    def analyze(self, ast: MarkdownAST, raw_text: str) -> AnalyzerOutput:
        contexts, document_contexts = self._detect(ast)
        sources = sorted({item.type for context in contexts for item in context.evidence})
        return AnalyzerOutput(
            data=contexts, confidence=self._stage_confidence(document_contexts), sources=sources
        )

    def detect(self, ast: MarkdownAST, raw_text: str = "") -> List[LanguageContext]:
        """Return every detected context, strongest first."""
        return self._detect(ast)[0]

    def _detect(self, ast: MarkdownAST) -> Tuple[List[LanguageContext], List[LanguageContext]]:
        lines = ast.lines
        fenced = self._fenced_lines(ast)
        evidence: Dict[str, List[Evidence]] = defaultdict(list)

        for block in ast.code_blocks():
            self._collect_fence_evidence(block, evidence)
        for number, line in enumerate(lines, start=1):
            if number in fenced:
                continue
            self._collect_text_evidence(number, line, evidence)

        sections = self._sections(ast, len(lines))
        contexts: List[LanguageContext] = []
        document_contexts: List[LanguageContext] = []
        for language in sorted(evidence):
            items = sorted(
                evidence[language],
                key=lambda e: (e.location.start_line, e.location.start_column, e.type, e.value),
            )
            document_range = SourceRange(
                items[0].location.start_line,
                items[-1].location.end_line,
                0,
                len(lines[items[-1].location.end_line - 1]),
            )
            document_context = self._context(language, items, document_range)
            contexts.append(document_context)
            document_contexts.append(document_context)

            for section in sections:
                scoped = [
                    item
                    for item in items
                    if section.start_line <= item.location.start_line <= section.end_line
                ]
                if not scoped:
                    continue
                section_range = SourceRange(
                    section.start_line,
                    section.end_line,
                    0,
                    len(lines[section.end_line - 1]),
                )
                if section_range == document_range:
                    continue
                contexts.append(self._context(language, scoped, section_range))

        contexts.sort(
            key=lambda c: (-c.confidence, c.language, c.source_range.start_line, c.source_range.end_line)
        )
        self.logger.debug(
            "Detected %d language contexts across %d languages", len(contexts), len(document_contexts)
        )
        return contexts, document_contexts

    # ------------------------------------------------------------------
    # Evidence collection

    def _collect_fence_evidence(self, block: CodeBlock, evidence: Dict[str, List[Evidence]]) -> None:
        tag = (block.language or "").lower()
        if tag:
            for language, signature in self.signatures.items():
                if tag in signature.fences:
                    evidence[language].append(
                        Evidence(
                            type="syntax",
                            value=f"```{tag}",
                            confidence=EVIDENCE_CONFIDENCE["syntax"],
                            location=block.source_range,
                        )
                    )
                    break

        for offset, raw in enumerate(block.content.split("\n")):
            if not self.table.looks_like_command(raw):
                continue
            language = infer_language(raw)
            if language is None or language not in self.signatures:
                continue
            line_number = block.content_start_line + offset
            column = block.indent + len(raw) - len(raw.lstrip())
            evidence[language].append(
                Evidence(
                    type="tool",
                    value=leading_token(command_head(raw)),
                    confidence=EVIDENCE_CONFIDENCE["tool"],
                    location=SourceRange(
                        line_number, line_number, column, block.indent + len(raw.rstrip())
                    ),
                )
            )

    def _collect_text_evidence(
        self, number: int, line: str, evidence: Dict[str, List[Evidence]]
    ) -> None:
        for language, kind, pattern in self._text_patterns:
            for match in pattern.finditer(line):
                evidence[language].append(
                    Evidence(
                        type=kind,
                        value=match.group(0).lower(),
                        confidence=EVIDENCE_CONFIDENCE[kind],
                        location=SourceRange(number, number, match.start(), match.end()),
                    )
                )

    def _compile_text_patterns(self) -> List[Tuple[str, str, Pattern[str]]]:
        compiled: List[Tuple[str, str, Pattern[str]]] = []
        for language, signature in self.signatures.items():
            for kind, terms in (
                ("keyword", signature.keywords),
                ("framework", signature.frameworks),
            ):
                if terms:
                    alternation = "|".join(re.escape(term) for term in terms)
                    compiled.append(
                        (
                            language,
                            kind,
                            re.compile(rf"(?<![\w.])(?:{alternation})(?![\w#])", re.IGNORECASE),
                        )
                    )
            if signature.extensions:
                alternation = "|".join(re.escape(ext) for ext in signature.extensions)
                compiled.append(
                    (language, "extension", re.compile(rf"(?<=\w)(?:{alternation})\b"))
                )
        return compiled

    # ------------------------------------------------------------------
    # Context construction

    def _context(
        self,
        language: str,
        evidence: Sequence[Evidence],
        source_range: SourceRange,
    ) -> LanguageContext:
        return LanguageContext(
            language=language,
            confidence=score_evidence(evidence),
            source_range=source_range,
            evidence=tuple(evidence),
            metadata=ContextMetadata(
                source=ContextSource.DETECTED,
                framework=_primary_framework(evidence),
            ),
        )

    @staticmethod
    def _fenced_lines(ast: MarkdownAST) -> set[int]:
        lines: set[int] = set()
        for block in ast.code_blocks():
            lines.update(range(block.source_range.start_line, block.source_range.end_line + 1))
        return lines

    @staticmethod
    def _sections(ast: MarkdownAST, total_lines: int) -> List[_Section]:
        headings = ast.headings()
        sections: List[_Section] = []
        if not headings:
            return sections
        first = headings[0].source_range.start_line
        if first > 1:
            sections.append(_Section(1, first - 1, None))
        for index, heading in enumerate(headings):
            start = heading.source_range.start_line
            if index + 1 < len(headings):
                end = headings[index + 1].source_range.start_line - 1
            else:
                end = total_lines
            sections.append(_Section(start, max(start, end), heading.text))
        return sections

    @staticmethod
    def _stage_confidence(contexts: Sequence[LanguageContext]) -> float:
        if not contexts:
            return 0.0
        confidences = [context.confidence for context in contexts]
        mean = sum(confidences) / len(confidences)
        return round(max(confidences) * 0.7 + mean * 0.3, 6)


def score_evidence(evidence: Iterable[Evidence]) -> float:
    """Noisy-or of the strongest item of each evidence type."""
    strongest: Dict[str, float] = {}
    for item in evidence:
        strongest[item.type] = max(strongest.get(item.type, 0.0), item.confidence)
    if not strongest:
        return 0.0
    remaining = 1.0
    for value in strongest.values():
        remaining *= 1.0 - value
    score = min(MAX_CONTEXT_CONFIDENCE, 1.0 - remaining)
    return round(max(MIN_CONTEXT_CONFIDENCE, score), 6)


def _primary_framework(evidence: Sequence[Evidence]) -> Optional[str]:
    counts = Counter(item.value for item in evidence if item.type == "framework")
    if not counts:
        return None
    return sorted(counts.items(), key=lambda pair: (-pair[1], pair[0]))[0][0]


__all__ = ["LANGUAGE_SIGNATURES", "LanguageDetector", "LanguageSignature", "score_evidence"]
