"""Command extractor: finds, classifies and attributes commands in code fences."""

from __future__ import annotations

import time
from typing import Iterator, List, NamedTuple, Optional, Sequence, Set

from .base import Analyzer
from .context import assign_default_context
from .patterns import PATTERN_TABLE, PatternTable, infer_language, strip_prompt
from ..errors import MalformedBlock
from ..logging import get_logger
from ..markdown import CodeBlock, MarkdownAST
from ..models import (
    AnalyzerOutput,
    Command,
    CommandInfo,
    ExtractionMetadata,
    LanguageContext,
    SourceRange,
)

# Fences holding data or markup rather than shell sessions.
NON_COMMAND_FENCES = frozenset(
    {
        "json",
        "jsonc",
        "json5",
        "yaml",
        "yml",
        "toml",
        "ini",
        "xml",
        "html",
        "css",
        "scss",
        "sql",
        "graphql",
        "diff",
        "csv",
        "mermaid",
        "markdown",
        "md",
        "env",
        "dotenv",
        "properties",
        "requirements",
        "tree",
    }
)


class _LogicalLine(NamedTuple):
    text: str
    location: SourceRange


class CommandExtractor(Analyzer):
    """Extracts install/build/test/other commands from fenced code blocks."""

    name = "commands"

    def __init__(self, table: PatternTable = PATTERN_TABLE, *, deduplicate: bool = True) -> None:
        self.table = table
        self.deduplicate = deduplicate
        self.logger = get_logger("analyzers.commands")

    def analyze(
        self,
        ast: MarkdownAST,
        raw_text: str,
        *,
        contexts: Sequence[LanguageContext] = (),
        parent_context: Optional[LanguageContext] = None,
    ) -> AnalyzerOutput:
        info = self.extract(ast, raw_text)
        started = time.perf_counter()
        assigned = assign_default_context(info.all(), contexts, parent_context)

        metadata = info.extraction_metadata
        metadata.languages = sorted(
            {command.effective_language for command in assigned if command.effective_language}
        )
        metadata.elapsed_ms = round(
            metadata.elapsed_ms + (time.perf_counter() - started) * 1000, 3
        )
        result = CommandInfo.from_commands(assigned, metadata)

        sources = ["code-block"]
        if contexts:
            sources.append("language-context")
        if parent_context is not None:
            sources.append("parent-context")
        return AnalyzerOutput(data=result, confidence=self._confidence(assigned), sources=sources)

    def extract(self, ast: MarkdownAST, raw_text: str) -> CommandInfo:
        """Classify every command line found in the document's code fences.

        Malformed fences are skipped and reported in the extraction metadata;
        a pattern evaluation fault propagates as ``PatternEvaluationFault``.
        """
        started = time.perf_counter()
        metadata = ExtractionMetadata()
        commands: List[Command] = []
        seen: Set[str] = set()

        for block in ast.code_blocks():
            metadata.code_blocks += 1
            try:
                lines = list(self._logical_lines(block))
            except MalformedBlock as exc:
                metadata.skipped_blocks += 1
                metadata.warnings.append(exc.message)
                self.logger.warning("%s", exc.message)
                continue
            if (block.language or "") in NON_COMMAND_FENCES:
                continue

            for line in lines:
                if not self.table.looks_like_command(line.text):
                    continue
                text = strip_prompt(line.text)
                if self.deduplicate and text in seen:
                    metadata.duplicates_removed += 1
                    continue
                seen.add(text)
                commands.append(self._build_command(text, line.location, block))

        metadata.total_commands = len(commands)
        metadata.languages = sorted({c.language for c in commands if c.language})
        metadata.elapsed_ms = round((time.perf_counter() - started) * 1000, 3)
        self.logger.debug(
            "Extracted %d commands from %d code blocks", len(commands), metadata.code_blocks
        )
        return CommandInfo.from_commands(commands, metadata)

    def _build_command(self, text: str, location: SourceRange, block: CodeBlock) -> Command:
        classification = self.table.classify(text)
        return Command(
            text=text,
            category=classification.category,
            source_location=location,
            match_confidence=classification.confidence,
            language=infer_language(text),
            description=block.section,
            ecosystem=classification.ecosystem,
        )

    @staticmethod
    def _logical_lines(block: CodeBlock) -> Iterator[_LogicalLine]:
        if not block.closed:
            raise MalformedBlock(
                f"Unclosed code fence starting at line {block.source_range.start_line}",
                line=block.source_range.start_line,
                component="commands",
            )
        if not isinstance(block.content, str):
            raise MalformedBlock(
                f"Unreadable code fence at line {block.source_range.start_line}",
                line=block.source_range.start_line,
                component="commands",
            )

        parts: List[str] = []
        start_line = start_column = 0
        raw_lines = block.content.split("\n")
        for offset, raw in enumerate(raw_lines):
            line_number = block.content_start_line + offset
            stripped = raw.strip()
            if not parts:
                if not stripped:
                    continue
                start_line = line_number
                start_column = block.indent + len(raw) - len(raw.lstrip())
            if stripped.endswith("\\") and offset < len(raw_lines) - 1:
                parts.append(stripped[:-1].strip())
                continue
            parts.append(stripped)
            yield _LogicalLine(
                " ".join(part for part in parts if part),
                SourceRange(start_line, line_number, start_column, block.indent + len(raw.rstrip())),
            )
            parts = []

    @staticmethod
    def _confidence(commands: Sequence[Command]) -> float:
        if not commands:
            return 0.0
        return round(sum(command.confidence for command in commands) / len(commands), 6)


__all__ = ["CommandExtractor", "NON_COMMAND_FENCES"]
