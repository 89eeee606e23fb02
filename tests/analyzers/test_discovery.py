"""Tests for custom analyzer discovery."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from readme2ci.analyzers import Analyzer, coerce_analyzer, discover_analyzers
from readme2ci.models import AnalyzerOutput


class DummyAnalyzer(Analyzer):
    """Test analyzer used for plugin discovery validation."""

    name = "dummy"

    def analyze(self, ast, raw_text):  # pragma: no cover - unused
        return AnalyzerOutput(data=None, confidence=0.0)


class LookalikeAnalyzer:
    name = "lookalike"

    def analyze(self, ast, raw_text):  # pragma: no cover - unused
        return AnalyzerOutput(data=None, confidence=0.0)


class DummyEntryPoints(list):
    def select(self, **kwargs):
        if kwargs.get("group") == "readme2ci.analyzers":
            return self
        return []


def _patch_entry_points(monkeypatch, *entries) -> None:
    monkeypatch.setattr(
        "readme2ci.analyzers.entry_points",
        lambda: DummyEntryPoints(entries),
    )


def test_discover_analyzers_loads_entry_points(monkeypatch) -> None:
    _patch_entry_points(monkeypatch, SimpleNamespace(name="dummy", load=lambda: DummyAnalyzer))

    analyzers = discover_analyzers(["Dummy", "dummy"])

    assert len(analyzers) == 1
    assert isinstance(analyzers[0], DummyAnalyzer)


def test_discover_analyzers_raises_for_unknown_name(monkeypatch) -> None:
    _patch_entry_points(monkeypatch)

    with pytest.raises(LookupError, match="does-not-exist"):
        discover_analyzers(["does-not-exist"])


def test_discover_analyzers_wraps_load_failures(monkeypatch) -> None:
    def _boom():
        raise ImportError("missing module")

    _patch_entry_points(monkeypatch, SimpleNamespace(name="broken", load=_boom))

    with pytest.raises(RuntimeError, match="broken"):
        discover_analyzers(["broken"])


def test_coerce_analyzer_accepts_instances_classes_and_factories() -> None:
    instance = DummyAnalyzer()

    assert coerce_analyzer(instance) is instance
    assert isinstance(coerce_analyzer(DummyAnalyzer), DummyAnalyzer)
    assert coerce_analyzer(lambda: instance) is instance


def test_coerce_analyzer_rejects_objects_outside_the_interface() -> None:
    with pytest.raises(TypeError):
        coerce_analyzer(42)
    with pytest.raises(TypeError):
        coerce_analyzer(lambda: "not an analyzer")
    with pytest.raises(TypeError):
        coerce_analyzer(LookalikeAnalyzer)
    with pytest.raises(TypeError):
        coerce_analyzer(LookalikeAnalyzer())

