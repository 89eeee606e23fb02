"""Configuration loading for readme2ci (.readme2ci.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from .analyzers import (
    Analyzer,
    CommandExtractor,
    DependencyExtractor,
    LanguageDetector,
    MetadataExtractor,
    coerce_analyzer,
    discover_analyzers,
)
from .errors import ConfigError
from .models import ContextMetadata, ContextSource, LanguageContext, SourceRange

CONFIG_FILENAME = ".readme2ci.yml"
CORE_STAGES = ("metadata", "language", "commands", "dependencies")
DEFAULT_TIMEOUT = 30.0


def _default_weights() -> Dict[str, float]:
    return {stage: 1.0 for stage in CORE_STAGES}


@dataclass
class PipelineConfig:
    """Settings for one ``AnalyzerPipeline``.

    ``timeout`` is a whole-pipeline deadline in seconds (``None`` disables it).
    ``stage_weights`` weight the core stages in the overall confidence.
    """

    timeout: Optional[float] = DEFAULT_TIMEOUT
    stage_weights: Dict[str, float] = field(default_factory=_default_weights)
    custom_analyzers: List[Analyzer] = field(default_factory=list)
    parent_context: Optional[LanguageContext] = None
    metadata_analyzer: Analyzer = field(default_factory=MetadataExtractor)
    language_analyzer: Analyzer = field(default_factory=LanguageDetector)
    command_extractor: CommandExtractor = field(default_factory=CommandExtractor)
    dependency_analyzer: Optional[Analyzer] = None
    source: Optional[Path] = None

    def __post_init__(self) -> None:
        if self.dependency_analyzer is None:
            # Install commands are classified with the same table as the commands stage.
            self.dependency_analyzer = DependencyExtractor(self.command_extractor)
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigError("pipeline.timeout must be a positive number of seconds")
        weights = _default_weights()
        for stage, weight in self.stage_weights.items():
            if stage not in CORE_STAGES:
                raise ConfigError(
                    f"Unknown stage '{stage}' in weights; expected one of {', '.join(CORE_STAGES)}"
                )
            if weight < 0:
                raise ConfigError(f"Weight for stage '{stage}' must not be negative")
            weights[stage] = float(weight)
        self.stage_weights = weights

        analyzers: List[Analyzer] = []
        for analyzer in self.custom_analyzers:
            try:
                analyzers.append(coerce_analyzer(analyzer))
            except TypeError as exc:
                raise ConfigError(str(exc)) from exc
        names = [analyzer.name for analyzer in analyzers]
        clashes = sorted({name for name in names if names.count(name) > 1 or name in CORE_STAGES})
        if clashes:
            raise ConfigError(f"Custom analyzer names must be unique: {', '.join(clashes)}")
        self.custom_analyzers = analyzers

    def core_analyzers(self) -> Dict[str, Analyzer]:
        return {
            "metadata": self.metadata_analyzer,
            "language": self.language_analyzer,
            "commands": self.command_extractor,
            "dependencies": self.dependency_analyzer,
        }


def load_config(config_path: Path | None = None) -> PipelineConfig:
    """Load configuration from disk; a missing file yields the defaults."""
    config_file = _resolve_config_path(config_path or Path.cwd())
    if not config_file.exists():
        return PipelineConfig()

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{config_file.name} must contain a mapping at the root")

    pipeline_data = _as_dict(data.get("pipeline"))
    timeout: Optional[float] = DEFAULT_TIMEOUT
    if "timeout" in pipeline_data:
        raw_timeout = pipeline_data.get("timeout")
        timeout = None if raw_timeout is None else _as_float(raw_timeout)
        if raw_timeout is not None and timeout is None:
            raise ConfigError("pipeline.timeout must be a number")

    weights: Dict[str, float] = {}
    for stage, raw_weight in _as_dict(pipeline_data.get("weights")).items():
        weight = _as_float(raw_weight)
        if weight is None:
            raise ConfigError(f"Weight for stage '{stage}' must be a number")
        weights[str(stage)] = weight

    analyzer_data = _as_dict(data.get("analyzers"))
    custom_names = _as_str_list(analyzer_data.get("custom"))
    try:
        custom = discover_analyzers(custom_names) if custom_names else []
    except (LookupError, RuntimeError, TypeError) as exc:
        raise ConfigError(str(exc)) from exc

    parent = _parent_context(_as_dict(data.get("parent_language")))

    return PipelineConfig(
        timeout=timeout,
        stage_weights=weights,
        custom_analyzers=custom,
        parent_context=parent,
        source=config_file,
    )


def _parent_context(data: Dict[str, Any]) -> Optional[LanguageContext]:
    if not data:
        return None
    language = _as_str(data.get("language"))
    if not language:
        raise ConfigError("parent_language.language is required")
    confidence = _as_float(data.get("confidence", 1.0))
    if confidence is None or not 0.0 <= confidence <= 1.0:
        raise ConfigError("parent_language.confidence must be between 0 and 1")
    return LanguageContext(
        language=language,
        confidence=confidence,
        source_range=SourceRange(0, 0, 0, 0),
        metadata=ContextMetadata(
            source=ContextSource.DETECTED,
            framework=_as_str(data.get("framework")),
        ),
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return {} if loaded is None else loaded


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = ["CONFIG_FILENAME", "CORE_STAGES", "PipelineConfig", "load_config"]
