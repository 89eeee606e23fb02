"""Core data models shared across readme2ci components."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, is_dataclass, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple


class Category(str, Enum):
    """Operational role of an extracted command."""

    INSTALL = "install"
    BUILD = "build"
    TEST = "test"
    OTHER = "other"


# Classification priority; also the key order of CommandInfo.
CATEGORY_ORDER: Tuple[Category, ...] = (
    Category.INSTALL,
    Category.BUILD,
    Category.TEST,
    Category.OTHER,
)


class ContextSource(str, Enum):
    """Provenance of a language context."""

    DETECTED = "detected"
    PARENT = "parent"
    DEFAULT = "default"


@dataclass(frozen=True)
class SourceRange:
    """Inclusive line/column range; lines are 1-based, columns 0-based."""

    start_line: int
    end_line: int
    start_column: int = 0
    end_column: int = 0

    def __post_init__(self) -> None:
        if self.start_line > self.end_line:
            raise ValueError(
                f"start_line {self.start_line} is after end_line {self.end_line}"
            )

    def contains(self, other: "SourceRange") -> bool:
        start = (self.start_line, self.start_column)
        end = (self.end_line, self.end_column)
        return start <= (other.start_line, other.start_column) and (
            other.end_line,
            other.end_column,
        ) <= end

    @property
    def span(self) -> Tuple[int, int]:
        return (self.end_line - self.start_line, self.end_column - self.start_column)

    def to_dict(self) -> Dict[str, int]:
        return {
            "startLine": self.start_line,
            "endLine": self.end_line,
            "startColumn": self.start_column,
            "endColumn": self.end_column,
        }


@dataclass(frozen=True)
class Evidence:
    """A single signal that supports a language context."""

    type: str
    value: str
    confidence: float
    location: SourceRange

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "value": self.value,
            "confidence": self.confidence,
            "location": self.location.to_dict(),
        }


@dataclass(frozen=True)
class ContextMetadata:
    """Provenance information attached to a language context."""

    source: ContextSource = ContextSource.DETECTED
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC), compare=False)
    framework: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "createdAt": self.created_at.isoformat().replace("+00:00", "Z"),
            "source": self.source.value,
        }
        if self.framework:
            data["framework"] = self.framework
        return data


@dataclass(frozen=True)
class LanguageContext:
    """A document region believed to be written in a given language."""

    language: str
    confidence: float
    source_range: SourceRange
    evidence: Tuple[Evidence, ...] = ()
    metadata: ContextMetadata = field(default_factory=ContextMetadata)

    def __post_init__(self) -> None:
        _check_unit(self.confidence, "confidence")

    @property
    def source(self) -> ContextSource:
        return self.metadata.source

    def to_dict(self) -> Dict[str, Any]:
        return {
            "language": self.language,
            "confidence": self.confidence,
            "sourceRange": self.source_range.to_dict(),
            "evidence": [item.to_dict() for item in self.evidence],
            "metadata": self.metadata.to_dict(),
        }


@dataclass(frozen=True)
class Command:
    """A single CLI invocation extracted from a code fence."""

    text: str
    category: Category
    source_location: SourceRange
    match_confidence: float
    language: Optional[str] = None
    language_context: Optional[LanguageContext] = None
    context_confidence: Optional[float] = None
    description: Optional[str] = None
    ecosystem: Optional[str] = None

    def __post_init__(self) -> None:
        _check_unit(self.match_confidence, "match_confidence")
        if self.context_confidence is not None:
            _check_unit(self.context_confidence, "context_confidence")
            if self.context_confidence > self.match_confidence:
                raise ValueError("context_confidence cannot exceed match_confidence")

    def with_context(self, context: LanguageContext, confidence: float) -> "Command":
        """Return a copy carrying the assigned context and combined confidence."""
        return replace(self, language_context=context, context_confidence=confidence)

    @property
    def effective_language(self) -> Optional[str]:
        if self.language:
            return self.language
        context = self.language_context
        if context is not None and context.source is not ContextSource.DEFAULT:
            return context.language
        return None

    @property
    def confidence(self) -> float:
        if self.context_confidence is not None:
            return self.context_confidence
        return self.match_confidence

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "command": self.text,
            "category": self.category.value,
            "confidence": self.match_confidence,
        }
        language = self.effective_language
        if language:
            data["language"] = language
        if self.language_context is not None:
            data["languageContext"] = self.language_context.to_dict()
        if self.context_confidence is not None:
            data["contextConfidence"] = self.context_confidence
        if self.description:
            data["description"] = self.description
        return data


@dataclass
class ExtractionMetadata:
    """Counters and warnings collected while extracting commands."""

    total_commands: int = 0
    code_blocks: int = 0
    skipped_blocks: int = 0
    duplicates_removed: int = 0
    languages: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    elapsed_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalCommands": self.total_commands,
            "codeBlocks": self.code_blocks,
            "skippedBlocks": self.skipped_blocks,
            "duplicatesRemoved": self.duplicates_removed,
            "languages": list(self.languages),
            "warnings": list(self.warnings),
            "elapsedMs": self.elapsed_ms,
        }


@dataclass
class CommandInfo:
    """Commands grouped by category in document order."""

    install: List[Command] = field(default_factory=list)
    build: List[Command] = field(default_factory=list)
    test: List[Command] = field(default_factory=list)
    other: List[Command] = field(default_factory=list)
    extraction_metadata: ExtractionMetadata = field(default_factory=ExtractionMetadata)

    @classmethod
    def from_commands(
        cls, commands: List[Command], metadata: ExtractionMetadata | None = None
    ) -> "CommandInfo":
        info = cls(extraction_metadata=metadata or ExtractionMetadata())
        for command in commands:
            info.get(command.category).append(command)
        return info

    def get(self, category: Category) -> List[Command]:
        return getattr(self, category.value)

    def all(self) -> List[Command]:
        """Return every command in document order."""
        commands = [command for category in CATEGORY_ORDER for command in self.get(category)]
        return sorted(
            commands,
            key=lambda c: (c.source_location.start_line, c.source_location.start_column),
        )

    def __iter__(self) -> Iterator[Command]:
        return iter(self.all())

    def __len__(self) -> int:
        return sum(len(self.get(category)) for category in CATEGORY_ORDER)

    def texts(self, category: Category) -> List[str]:
        return [command.text for command in self.get(category)]

    def for_language(self, language: str) -> List[Command]:
        wanted = language.lower()
        return [
            command
            for command in self.all()
            if (command.effective_language or "").lower() == wanted
        ]

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            category.value: [command.to_dict() for command in self.get(category)]
            for category in CATEGORY_ORDER
        }
        data["extractionMetadata"] = self.extraction_metadata.to_dict()
        return data


@dataclass
class AnalyzerOutput:
    """Uniform result returned by every analyzer."""

    data: Any
    confidence: float
    sources: List[str] = field(default_factory=list)


@dataclass
class EnvironmentVariable:
    """Environment variable referenced by the README."""

    name: str
    required: bool = True
    default: Optional[str] = None
    line: Optional[int] = None


@dataclass
class ProjectMetadata:
    """Descriptive project facts found in the README."""

    name: Optional[str] = None
    description: Optional[str] = None
    structure: List[str] = field(default_factory=list)
    environment: List[EnvironmentVariable] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Dependency:
    """A package the project depends on."""

    name: str
    manager: str
    version: Optional[str] = None
    dev: bool = False
    source: str = "code-block"


@dataclass
class DependencyInfo:
    """Dependency facts collected from manifests, snippets and install commands."""

    package_files: List[str] = field(default_factory=list)
    install_commands: List[str] = field(default_factory=list)
    dependencies: List[Dependency] = field(default_factory=list)
    dev_dependencies: List[Dependency] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Issue:
    """Serialisable error or warning produced during analysis."""

    code: str
    message: str
    component: str
    severity: str = "error"

    @classmethod
    def from_exception(
        cls, exc: BaseException, component: str, *, severity: str | None = None
    ) -> "Issue":
        code = getattr(exc, "code", "STAGE_FAILURE")
        level = severity or getattr(exc, "severity", "error")
        message = str(exc) or exc.__class__.__name__
        return cls(code=code, message=message, component=component, severity=level)

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass
class AnalysisResult:
    """Aggregated outputs of every pipeline stage for one document."""

    commands: Optional[CommandInfo] = None
    language_contexts: Optional[List[LanguageContext]] = None
    metadata: Optional[ProjectMetadata] = None
    dependencies: Optional[DependencyInfo] = None
    custom: Dict[str, Any] = field(default_factory=dict)
    custom_confidence: Dict[str, float] = field(default_factory=dict)
    stage_confidence: Dict[str, float] = field(default_factory=dict)
    overall_confidence: float = 0.0
    stages: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "commands": self.commands.to_dict() if self.commands is not None else None,
            "languageContexts": (
                [context.to_dict() for context in self.language_contexts]
                if self.language_contexts is not None
                else None
            ),
            "metadata": self.metadata.to_dict() if self.metadata is not None else None,
            "dependencies": (
                self.dependencies.to_dict() if self.dependencies is not None else None
            ),
            "custom": {name: _jsonable(value) for name, value in self.custom.items()},
            "customConfidence": dict(self.custom_confidence),
            "stageConfidence": dict(self.stage_confidence),
            "overallConfidence": self.overall_confidence,
            "stages": dict(self.stages),
        }


@dataclass
class PipelineResult:
    """Outcome of a pipeline invocation."""

    success: bool
    data: Optional[AnalysisResult] = None
    errors: List[Issue] = field(default_factory=list)
    warnings: List[Issue] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "data": self.data.to_dict() if self.data is not None else None,
            "errors": [issue.to_dict() for issue in self.errors],
            "warnings": [issue.to_dict() for issue in self.warnings],
        }


def _check_unit(value: float, name: str) -> None:
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{name} must be within [0, 1], got {value}")


def _jsonable(value: Any) -> Any:
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    return value
