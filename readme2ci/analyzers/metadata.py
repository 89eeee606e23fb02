"""Project metadata extraction: name, description, environment and layout."""

from __future__ import annotations

import re
from typing import Dict, List, Optional

from .base import Analyzer
from ..logging import get_logger
from ..markdown import Blockquote, CodeBlock, Heading, MarkdownAST, Paragraph
from ..models import AnalyzerOutput, EnvironmentVariable, ProjectMetadata

_IMAGE = re.compile(r"!\[[^\]]*\]\([^)]*\)")
_LINK = re.compile(r"\[([^\]]*)\]\([^)]*\)")
_FORMATTING = re.compile(r"[*`_~]")
_HTML_TAG = re.compile(r"<[^>]+>")

_GENERIC_NAMES = re.compile(
    r"^(project|app|application|tool|library|package|service|api|website|site|repo|repository)$",
    re.IGNORECASE,
)
_SECTION_NAMES = re.compile(
    r"^(readme|documentation|docs|guide|tutorial|example|sample|demo|test|installation|setup|"
    r"getting started|introduction|overview|usage|contributing|license)$",
    re.IGNORECASE,
)
_GITHUB_REPO = re.compile(r"github\.com/[^/\s]+/([^/\s)#?]+)", re.IGNORECASE)
_JSON_NAME = re.compile(r"\"name\"\s*:\s*\"([^\"]+)\"")
_JSON_DESCRIPTION = re.compile(r"\"description\"\s*:\s*\"([^\"]+)\"")

ENV_NAME = r"[A-Z][A-Z0-9_]+"
_ENV_ASSIGNMENT = re.compile(rf"^\s*(?:export\s+|set\s+)?({ENV_NAME})\s*=\s*(.*)$")
_ENV_REFERENCES = (
    re.compile(rf"\$\{{({ENV_NAME})(?::?-([^}}]*))?\}}"),
    re.compile(rf"\$({ENV_NAME})\b"),
    re.compile(rf"process\.env\.({ENV_NAME})\b"),
    re.compile(rf"os\.environ\[[\"']({ENV_NAME})[\"']\]"),
    re.compile(rf"os\.(?:environ\.get|getenv)\([\"']({ENV_NAME})[\"'](?:\s*,\s*[\"']?([^\"')]*)[\"']?)?\)"),
    re.compile(rf"System\.getenv\([\"']({ENV_NAME})[\"']\)"),
    re.compile(rf"std::env::var\([\"']({ENV_NAME})[\"']\)"),
)
_ENV_FENCES = {None, "env", "dotenv", "bash", "sh", "shell", "console", "zsh", "powershell", "bat"}

_TREE_FENCES = {"tree", "directory", "structure", "files", "file"}
_TREE_MARKERS = re.compile(r"[│├└]")
_TREE_PREFIX = re.compile(r"^[\s│├└─|`\-+]*")
_EMOJI = re.compile(r"[\U0001F300-\U0001FAFF]")


class MetadataExtractor(Analyzer):
    """Collects descriptive project facts from headings, prose and snippets."""

    name = "metadata"

    def __init__(self) -> None:
        self.logger = get_logger("analyzers.metadata")

    def analyze(self, ast: MarkdownAST, raw_text: str) -> AnalyzerOutput:
        metadata = self.extract(ast, raw_text)
        sources: List[str] = []
        if metadata.name:
            sources.append("title-extraction")
        if metadata.description:
            sources.append("description-extraction")
        if metadata.structure:
            sources.append("structure-parsing")
        if metadata.environment:
            sources.append("environment-detection")
        return AnalyzerOutput(data=metadata, confidence=self._confidence(metadata), sources=sources)

    def extract(self, ast: MarkdownAST, raw_text: str) -> ProjectMetadata:
        metadata = ProjectMetadata(
            name=self._project_name(ast, raw_text),
            description=self._description(ast, raw_text),
            structure=self._structure(ast),
            environment=self._environment(ast),
        )
        self.logger.debug(
            "Metadata: name=%s, %d env vars, %d structure entries",
            metadata.name,
            len(metadata.environment),
            len(metadata.structure),
        )
        return metadata

    # ------------------------------------------------------------------

    def _project_name(self, ast: MarkdownAST, raw_text: str) -> Optional[str]:
        for heading in ast.headings(1):
            name = clean_inline(heading.text)
            if _is_project_name(name):
                return name

        match = _GITHUB_REPO.search(raw_text)
        if match:
            name = re.sub(r"\.git$", "", match.group(1))
            if _is_valid_name(name):
                return name

        match = _JSON_NAME.search(raw_text)
        if match and _is_valid_name(match.group(1)):
            return match.group(1)

        for heading in ast.headings(2):
            name = clean_inline(heading.text)
            if _is_project_name(name):
                return name
        return None

    def _description(self, ast: MarkdownAST, raw_text: str) -> Optional[str]:
        for node in ast:
            if isinstance(node, Blockquote):
                text = clean_inline(node.text)
                if _is_description(text):
                    return text

        seen_title = False
        for node in ast:
            if isinstance(node, Heading):
                if seen_title and node.level <= 2:
                    break
                if node.level == 1:
                    seen_title = True
                continue
            if seen_title and isinstance(node, Paragraph):
                text = clean_inline(node.text)
                if _is_description(text):
                    return text

        match = _JSON_DESCRIPTION.search(raw_text)
        if match and _is_description(match.group(1)):
            return match.group(1)
        return None

    def _environment(self, ast: MarkdownAST) -> List[EnvironmentVariable]:
        found: Dict[str, EnvironmentVariable] = {}

        for block in ast.code_blocks():
            if block.language not in _ENV_FENCES:
                continue
            for offset, line in enumerate(block.content.split("\n")):
                match = _ENV_ASSIGNMENT.match(line)
                if not match or match.group(1) in found:
                    continue
                value = _assigned_value(match.group(2))
                found[match.group(1)] = EnvironmentVariable(
                    name=match.group(1),
                    required=not value,
                    default=value or None,
                    line=block.content_start_line + offset,
                )

        for number, line in enumerate(ast.lines, start=1):
            for pattern in _ENV_REFERENCES:
                for match in pattern.finditer(line):
                    name = match.group(1)
                    if name in found:
                        continue
                    default = match.group(2) if pattern.groups >= 2 else None
                    found[name] = EnvironmentVariable(
                        name=name,
                        required=not default,
                        default=default or None,
                        line=number,
                    )

        return sorted(found.values(), key=lambda var: (var.line or 0, var.name))

    def _structure(self, ast: MarkdownAST) -> List[str]:
        entries: List[str] = []
        for block in ast.code_blocks():
            if not _is_tree_block(block):
                continue
            for line in block.content.split("\n"):
                entry = _EMOJI.sub("", line.split("#", 1)[0])
                entry = _TREE_PREFIX.sub("", entry).strip()
                if entry and entry not in entries:
                    entries.append(entry)
        return entries

    @staticmethod
    def _confidence(metadata: ProjectMetadata) -> float:
        score = 0.0
        if metadata.name:
            score += 0.4
        if metadata.description:
            score += 0.3
        if metadata.structure:
            score += 0.15
        if metadata.environment:
            score += 0.15
        return round(min(score, 1.0), 6)


def clean_inline(text: str) -> str:
    """Strip images, links, HTML and emphasis markers from inline markdown."""
    text = _IMAGE.sub("", text)
    text = _LINK.sub(r"\1", text)
    text = _HTML_TAG.sub("", text)
    text = _FORMATTING.sub("", text)
    text = re.sub(r"^[>\s\-•]+", "", text)
    return re.sub(r"\s+", " ", text).strip()


def _is_valid_name(name: str) -> bool:
    return 2 <= len(name) <= 100 and not _SECTION_NAMES.match(name)


def _is_project_name(name: str) -> bool:
    return bool(name) and _is_valid_name(name) and not _GENERIC_NAMES.match(name)


def _is_description(text: str) -> bool:
    return len(text) >= 10 and any(ch.isalpha() for ch in text)


def _assigned_value(raw: str) -> str:
    raw = raw.strip()
    quoted = re.match(r"([\"'])(.*?)\1", raw)
    if quoted:
        return quoted.group(2)
    return raw.split()[0] if raw else ""


def _is_tree_block(block: CodeBlock) -> bool:
    if block.language in _TREE_FENCES:
        return True
    return bool(_TREE_MARKERS.search(block.content))


__all__ = ["MetadataExtractor", "clean_inline"]
