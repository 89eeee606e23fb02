"""Line-oriented markdown front-end producing a block-level AST."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence

from .errors import ParseFailure
from .models import SourceRange

_FENCE_OPEN = re.compile(r"^(?P<indent>[ \t]*)(?P<fence>`{3,}|~{3,})(?P<info>.*)$")
_ATX_HEADING = re.compile(r"^ {0,3}(?P<marks>#{1,6})(?:[ \t]+(?P<text>.*?))?[ \t#]*$")
_SETEXT_UNDERLINE = re.compile(r"^ {0,3}(?P<char>=+|-+)[ \t]*$")
_THEMATIC_BREAK = re.compile(r"^ {0,3}([-*_])(?:[ \t]*\1){2,}[ \t]*$")
_LIST_ITEM = re.compile(r"^(?P<indent>[ \t]*)(?:[-*+]|\d{1,9}[.)])[ \t]+(?P<text>.*)$")
_BLOCKQUOTE = re.compile(r"^ {0,3}>[ ]?(?P<text>.*)$")


@dataclass
class MarkdownNode:
    """Base block node; every node knows where it sits in the source."""

    type: str
    source_range: SourceRange
    section: Optional[str] = None


@dataclass
class Heading(MarkdownNode):
    level: int = 1
    text: str = ""


@dataclass
class CodeBlock(MarkdownNode):
    """Fenced code block. ``content_start_line`` is the first content line."""

    language: Optional[str] = None
    info: str = ""
    content: str = ""
    closed: bool = True
    content_start_line: int = 0
    indent: int = 0


@dataclass
class Paragraph(MarkdownNode):
    text: str = ""


@dataclass
class ListBlock(MarkdownNode):
    items: List[str] = field(default_factory=list)


@dataclass
class Blockquote(MarkdownNode):
    text: str = ""


@dataclass
class MarkdownAST:
    """Ordered block nodes plus the source lines they were read from."""

    nodes: List[MarkdownNode]
    lines: List[str]

    def __iter__(self) -> Iterator[MarkdownNode]:
        return iter(self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)

    def code_blocks(self) -> List[CodeBlock]:
        return [node for node in self.nodes if isinstance(node, CodeBlock)]

    def headings(self, level: int | None = None) -> List[Heading]:
        return [
            node
            for node in self.nodes
            if isinstance(node, Heading) and (level is None or node.level == level)
        ]


def parse_markdown(text: str | bytes) -> MarkdownAST:
    """Parse README text into block nodes, raising ParseFailure when impossible."""
    if isinstance(text, (bytes, bytearray)):
        try:
            text = bytes(text).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ParseFailure(f"Document is not valid UTF-8: {exc}", component="markdown") from exc
    if not isinstance(text, str):
        raise ParseFailure(
            f"Expected markdown text, got {type(text).__name__}", component="markdown"
        )
    if not text.strip():
        raise ParseFailure("Document is empty", component="markdown")
    if "\x00" in text:
        raise ParseFailure("Document contains NUL bytes", component="markdown")

    lines = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    return MarkdownAST(nodes=_BlockScanner(lines).scan(), lines=lines)


class _BlockScanner:
    def __init__(self, lines: Sequence[str]) -> None:
        self._lines = lines
        self._nodes: List[MarkdownNode] = []
        self._section: Optional[str] = None

    def scan(self) -> List[MarkdownNode]:
        index = 0
        while index < len(self._lines):
            line = self._lines[index]
            if not line.strip():
                index += 1
                continue
            if _FENCE_OPEN.match(line) and self._is_fence_open(line):
                index = self._read_fence(index)
            elif _ATX_HEADING.match(line):
                index = self._read_atx_heading(index)
            elif _THEMATIC_BREAK.match(line):
                index += 1
            elif _BLOCKQUOTE.match(line):
                index = self._read_blockquote(index)
            elif _LIST_ITEM.match(line):
                index = self._read_list(index)
            else:
                index = self._read_paragraph(index)
        return self._nodes

    # ------------------------------------------------------------------
    # Block readers

    def _read_fence(self, start: int) -> int:
        opening = _FENCE_OPEN.match(self._lines[start])
        assert opening is not None
        indent = len(opening.group("indent").expandtabs(4))
        fence = opening.group("fence")
        info = opening.group("info").strip()
        closing = re.compile(rf"^[ \t]*{re.escape(fence[0])}{{{len(fence)},}}[ \t]*$")

        index = start + 1
        body: List[str] = []
        closed = False
        while index < len(self._lines):
            line = self._lines[index]
            if closing.match(line):
                closed = True
                break
            body.append(_dedent(line, indent))
            index += 1

        end = index if closed else len(self._lines) - 1
        end_column = len(self._lines[end]) if end < len(self._lines) else 0
        self._nodes.append(
            CodeBlock(
                type="code",
                source_range=SourceRange(start + 1, end + 1, indent, end_column),
                section=self._section,
                language=_fence_language(info),
                info=info,
                content="\n".join(body),
                closed=closed,
                content_start_line=start + 2,
                indent=indent,
            )
        )
        return index + 1

    def _read_atx_heading(self, index: int) -> int:
        match = _ATX_HEADING.match(self._lines[index])
        assert match is not None
        text = (match.group("text") or "").strip()
        self._add_heading(index, index, len(match.group("marks")), text)
        return index + 1

    def _add_heading(self, start: int, end: int, level: int, text: str) -> None:
        self._section = text or self._section
        self._nodes.append(
            Heading(
                type="heading",
                source_range=SourceRange(start + 1, end + 1, 0, len(self._lines[end])),
                section=self._section,
                level=level,
                text=text,
            )
        )

    def _read_blockquote(self, start: int) -> int:
        index = start
        parts: List[str] = []
        while index < len(self._lines):
            match = _BLOCKQUOTE.match(self._lines[index])
            if not match:
                break
            parts.append(match.group("text").strip())
            index += 1
        self._nodes.append(
            Blockquote(
                type="blockquote",
                source_range=self._range(start, index - 1),
                section=self._section,
                text=" ".join(part for part in parts if part),
            )
        )
        return index

    def _read_list(self, start: int) -> int:
        index = start
        items: List[str] = []
        last_content = start
        while index < len(self._lines):
            line = self._lines[index]
            if _FENCE_OPEN.match(line) and self._is_fence_open(line):
                break
            item = _LIST_ITEM.match(line)
            if item and not _THEMATIC_BREAK.match(line):
                items.append(item.group("text").strip())
                last_content = index
            elif line.strip() and line[:1] in (" ", "\t") and items:
                items[-1] = f"{items[-1]} {line.strip()}".strip()
                last_content = index
            elif not line.strip():
                following = self._lines[index + 1] if index + 1 < len(self._lines) else ""
                if not (_LIST_ITEM.match(following) or following[:1] in (" ", "\t")):
                    break
            else:
                break
            index += 1
        self._nodes.append(
            ListBlock(
                type="list",
                source_range=self._range(start, last_content),
                section=self._section,
                items=items,
            )
        )
        return last_content + 1

    def _read_paragraph(self, start: int) -> int:
        index = start
        parts: List[str] = []
        while index < len(self._lines):
            line = self._lines[index]
            if not line.strip():
                break
            if parts:
                underline = _SETEXT_UNDERLINE.match(line)
                if underline:
                    level = 1 if underline.group("char").startswith("=") else 2
                    self._add_heading(start, index, level, " ".join(parts))
                    return index + 1
                if self._starts_block(line):
                    break
            parts.append(line.strip())
            index += 1
        self._nodes.append(
            Paragraph(
                type="paragraph",
                source_range=self._range(start, index - 1),
                section=self._section,
                text=" ".join(parts),
            )
        )
        return index

    # ------------------------------------------------------------------
    # Helpers

    def _starts_block(self, line: str) -> bool:
        if _FENCE_OPEN.match(line) and self._is_fence_open(line):
            return True
        return bool(
            _ATX_HEADING.match(line)
            or _BLOCKQUOTE.match(line)
            or _THEMATIC_BREAK.match(line)
            or _LIST_ITEM.match(line)
        )

    @staticmethod
    def _is_fence_open(line: str) -> bool:
        match = _FENCE_OPEN.match(line)
        if match is None:
            return False
        # Backtick fences cannot carry backticks in their info string.
        return not (match.group("fence")[0] == "`" and "`" in match.group("info"))

    def _range(self, start: int, end: int) -> SourceRange:
        first = self._lines[start]
        column = len(first) - len(first.lstrip())
        return SourceRange(start + 1, end + 1, column, len(self._lines[end]))


def _fence_language(info: str) -> Optional[str]:
    if not info:
        return None
    token = info.split()[0].strip("{}.").lower()
    return token or None


def _dedent(line: str, indent: int) -> str:
    expanded = line.expandtabs(4)
    leading = len(expanded) - len(expanded.lstrip(" "))
    return expanded[min(leading, indent):]


__all__ = [
    "Blockquote",
    "CodeBlock",
    "Heading",
    "ListBlock",
    "MarkdownAST",
    "MarkdownNode",
    "Paragraph",
    "parse_markdown",
]
