"""Assigns language contexts to extracted commands."""

from __future__ import annotations

from dataclasses import replace
from typing import Iterable, List, Optional, Sequence, Tuple

from ..confidence import (
    DEFAULT_CONTEXT_CONFIDENCE,
    PARENT_DECAY,
    UNKNOWN_LANGUAGE,
    agreement_between,
    combine,
    decay,
)
from ..models import Command, ContextMetadata, ContextSource, LanguageContext, SourceRange


def find_containing_context(
    location: SourceRange, contexts: Sequence[LanguageContext]
) -> Optional[LanguageContext]:
    """Most specific context whose range contains ``location``.

    Smaller ranges win; equal ranges prefer higher confidence, then the
    alphabetically first language, then the earlier context in ``contexts``.
    """
    ranked: List[Tuple[Tuple[int, int], float, str, int, LanguageContext]] = []
    for index, context in enumerate(contexts):
        if context.source_range.contains(location):
            ranked.append(
                (context.source_range.span, -context.confidence, context.language, index, context)
            )
    if not ranked:
        return None
    ranked.sort(key=lambda item: item[:4])
    return ranked[0][4]


def parent_fallback(parent: LanguageContext) -> LanguageContext:
    """Copy of ``parent`` with decayed confidence and parent provenance."""
    return replace(
        parent,
        confidence=decay(parent.confidence, PARENT_DECAY),
        metadata=ContextMetadata(
            source=ContextSource.PARENT,
            created_at=parent.metadata.created_at,
            framework=parent.metadata.framework,
        ),
    )


def default_context() -> LanguageContext:
    return LanguageContext(
        language=UNKNOWN_LANGUAGE,
        confidence=DEFAULT_CONTEXT_CONFIDENCE,
        source_range=SourceRange(0, 0, 0, 0),
        metadata=ContextMetadata(source=ContextSource.DEFAULT),
    )


def resolve_context(
    command: Command,
    contexts: Sequence[LanguageContext],
    parent_context: Optional[LanguageContext] = None,
) -> LanguageContext:
    """Pick the context for one command: containment, then parent, then default."""
    contained = find_containing_context(command.source_location, contexts)
    if contained is not None:
        return contained
    if parent_context is not None:
        return parent_fallback(parent_context)
    return default_context()


def assign_default_context(
    commands: Iterable[Command],
    contexts: Sequence[LanguageContext],
    parent_context: Optional[LanguageContext] = None,
) -> List[Command]:
    """Return new commands carrying a language context and combined confidence.

    Confidence is always recomputed from ``match_confidence`` and the supplied
    contexts, so running the assignment twice gives the same result.
    """
    contexts = list(contexts)
    assigned: List[Command] = []
    for command in commands:
        context = resolve_context(command, contexts, parent_context)
        agreement = agreement_between(command.language, context.language)
        confidence = combine(command.match_confidence, context.confidence, agreement)
        assigned.append(command.with_context(context, confidence))
    return assigned


__all__ = [
    "assign_default_context",
    "default_context",
    "find_containing_context",
    "parent_fallback",
    "resolve_context",
]
