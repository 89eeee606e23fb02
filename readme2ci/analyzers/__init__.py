"""Analyzer implementations and custom analyzer discovery."""

from __future__ import annotations

from importlib.metadata import EntryPoint, entry_points
from typing import Iterable, List, Sequence

from .base import Analyzer
from .commands import CommandExtractor
from .dependencies import DependencyExtractor
from .language import LanguageDetector
from .metadata import MetadataExtractor

_ENTRY_POINT_GROUP = "readme2ci.analyzers"


def discover_analyzers(names: Sequence[str]) -> List[Analyzer]:
    """Instantiate the named custom analyzers registered as entry points.

    Raises ``LookupError`` listing every name that has no registration,
    ``RuntimeError`` when an entry point fails to import and ``TypeError``
    when it does not produce an analyzer.
    """
    wanted = [name.lower() for name in names]
    registered = {entry.name.lower(): entry for entry in _iter_entry_points()}

    missing = [name for name in wanted if name not in registered]
    if missing:
        raise LookupError(f"Unknown analyzers requested: {', '.join(sorted(missing))}")

    analyzers: List[Analyzer] = []
    for name in dict.fromkeys(wanted):
        entry = registered[name]
        try:
            loaded = entry.load()
        except Exception as exc:
            raise RuntimeError(f"Failed to load analyzer entry point '{entry.name}': {exc}") from exc
        analyzers.append(coerce_analyzer(loaded))
    return analyzers


def coerce_analyzer(obj: object) -> Analyzer:
    """Accept an analyzer instance, an ``Analyzer`` subclass or a factory returning one."""
    if isinstance(obj, Analyzer):
        return obj
    if isinstance(obj, type) and issubclass(obj, Analyzer):
        return obj()
    if callable(obj) and not isinstance(obj, type):
        instance = obj()
        if isinstance(instance, Analyzer):
            return instance
    raise TypeError("Analyzer entry point must be an Analyzer subclass or factory")


def _iter_entry_points() -> Iterable[EntryPoint]:
    return entry_points().select(group=_ENTRY_POINT_GROUP)


__all__ = [
    "Analyzer",
    "CommandExtractor",
    "DependencyExtractor",
    "LanguageDetector",
    "MetadataExtractor",
    "coerce_analyzer",
    "discover_analyzers",
]
