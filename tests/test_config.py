"""Tests for readme2ci.config."""

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from readme2ci.analyzers import Analyzer, CommandExtractor
from readme2ci.config import CORE_STAGES, DEFAULT_TIMEOUT, PipelineConfig, load_config
from readme2ci.errors import ConfigError
from readme2ci.models import AnalyzerOutput, ContextSource


class ReadingTimeAnalyzer(Analyzer):
    name = "reading-time"

    def analyze(self, ast, raw_text):
        return AnalyzerOutput(data=len(raw_text.split()) // 200, confidence=1.0)


def test_load_config_returns_defaults_when_missing(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    assert isinstance(config, PipelineConfig)
    assert config.timeout == DEFAULT_TIMEOUT
    assert config.stage_weights == {stage: 1.0 for stage in CORE_STAGES}
    assert config.custom_analyzers == []
    assert config.parent_context is None
    assert config.source is None
    assert isinstance(config.core_analyzers()["commands"], CommandExtractor)


def test_load_config_parses_expected_fields(tmp_path: Path) -> None:
    config_file = tmp_path / ".readme2ci.yml"
    config_file.write_text(
        """
pipeline:
  timeout: 12.5
  weights:
    commands: 2
    metadata: 0.5
parent_language:
  language: Rust
  confidence: 0.6
  framework: tokio
""",
        encoding="utf-8",
    )

    config = load_config(tmp_path)

    assert config.source == config_file.resolve()
    assert config.timeout == pytest.approx(12.5)
    assert config.stage_weights == {
        "metadata": 0.5,
        "language": 1.0,
        "commands": 2.0,
        "dependencies": 1.0,
    }
    parent = config.parent_context
    assert parent.language == "Rust"
    assert parent.confidence == pytest.approx(0.6)
    assert parent.metadata.framework == "tokio"
    assert parent.source is ContextSource.DETECTED


def test_load_config_accepts_explicit_file_and_null_timeout(tmp_path: Path) -> None:
    config_file = tmp_path / "custom.yml"
    config_file.write_text("pipeline:\n  timeout: null\n", encoding="utf-8")

    config = load_config(config_file)

    assert config.timeout is None


def test_empty_config_file_yields_defaults(tmp_path: Path) -> None:
    (tmp_path / ".readme2ci.yml").write_text("\n", encoding="utf-8")

    config = load_config(tmp_path)

    assert config.timeout == DEFAULT_TIMEOUT


def test_load_config_discovers_custom_analyzers(tmp_path: Path, monkeypatch) -> None:
    entries = [SimpleNamespace(name="reading-time", load=lambda: ReadingTimeAnalyzer)]

    class _EntryPoints(list):
        def select(self, **kwargs):
            return self if kwargs.get("group") == "readme2ci.analyzers" else []

    monkeypatch.setattr("readme2ci.analyzers.entry_points", lambda: _EntryPoints(entries))
    (tmp_path / ".readme2ci.yml").write_text(
        "analyzers:\n  custom: [reading-time]\n", encoding="utf-8"
    )

    config = load_config(tmp_path)

    assert [analyzer.name for analyzer in config.custom_analyzers] == ["reading-time"]


@pytest.mark.parametrize(
    ("content", "message"),
    [
        ("pipeline: [unclosed", "Failed to parse"),
        ("- just\n- a list\n", "mapping at the root"),
        ("pipeline:\n  timeout: -1\n", "positive"),
        ("pipeline:\n  timeout: soon\n", "must be a number"),
        ("pipeline:\n  weights:\n    linting: 1\n", "Unknown stage"),
        ("pipeline:\n  weights:\n    commands: -2\n", "must not be negative"),
        ("analyzers:\n  custom: [nowhere-to-be-found]\n", "nowhere-to-be-found"),
        ("parent_language:\n  confidence: 0.5\n", "parent_language.language"),
        ("parent_language:\n  language: Go\n  confidence: 3\n", "between 0 and 1"),
    ],
)
def test_invalid_config_raises(tmp_path: Path, content: str, message: str) -> None:
    (tmp_path / ".readme2ci.yml").write_text(content, encoding="utf-8")

    with pytest.raises(ConfigError, match=message):
        load_config(tmp_path)


def test_custom_analyzer_names_must_not_clash() -> None:
    class Shadow(ReadingTimeAnalyzer):
        name = "commands"

    with pytest.raises(ConfigError, match="unique"):
        PipelineConfig(custom_analyzers=[Shadow()])
    with pytest.raises(ConfigError, match="unique"):
        PipelineConfig(custom_analyzers=[ReadingTimeAnalyzer(), ReadingTimeAnalyzer()])


def test_custom_analyzers_are_coerced() -> None:
    config = PipelineConfig(custom_analyzers=[ReadingTimeAnalyzer])

    assert isinstance(config.custom_analyzers[0], ReadingTimeAnalyzer)
    with pytest.raises(ConfigError):
        PipelineConfig(custom_analyzers=[object()])


def test_custom_analyzers_must_implement_the_interface() -> None:
    class Lookalike:
        name = "lookalike"

        def analyze(self, ast, raw_text):
            return AnalyzerOutput(data=None, confidence=1.0)

    with pytest.raises(ConfigError, match="Analyzer subclass or factory"):
        PipelineConfig(custom_analyzers=[Lookalike()])


def test_default_dependency_analyzer_shares_command_extractor() -> None:
    extractor = CommandExtractor(deduplicate=False)

    config = PipelineConfig(command_extractor=extractor)

    assert config.dependency_analyzer.commands is extractor
