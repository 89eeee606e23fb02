"""Tests for the shared data models."""

from __future__ import annotations

import pytest

from readme2ci.errors import StageTimeout
from readme2ci.models import (
    Category,
    Command,
    CommandInfo,
    Issue,
    LanguageContext,
    SourceRange,
)


def test_source_range_validation_and_containment() -> None:
    outer = SourceRange(1, 10, 0, 5)

    assert outer.contains(SourceRange(2, 3, 40, 1))
    assert not outer.contains(SourceRange(10, 10, 0, 6))
    with pytest.raises(ValueError):
        SourceRange(5, 4)


def test_command_confidence_bounds() -> None:
    with pytest.raises(ValueError):
        Command("npm test", Category.TEST, SourceRange(1, 1), match_confidence=1.2)
    with pytest.raises(ValueError):
        Command(
            "npm test",
            Category.TEST,
            SourceRange(1, 1),
            match_confidence=0.5,
            context_confidence=0.6,
        )
    with pytest.raises(ValueError):
        LanguageContext("Go", -0.1, SourceRange(1, 1))


def test_command_info_groups_and_serialises() -> None:
    commands = [
        Command("npm test", Category.TEST, SourceRange(3, 3), 0.9, language="JavaScript"),
        Command("npm install", Category.INSTALL, SourceRange(1, 1), 0.9, language="JavaScript"),
        Command("make", Category.BUILD, SourceRange(2, 2), 0.8),
    ]

    info = CommandInfo.from_commands(commands)

    assert [command.text for command in info] == ["npm install", "make", "npm test"]
    assert [command.text for command in info.for_language("javascript")] == [
        "npm install",
        "npm test",
    ]
    data = info.to_dict()
    assert list(data) == ["install", "build", "test", "other", "extractionMetadata"]
    assert data["install"][0] == {
        "command": "npm install",
        "category": "install",
        "confidence": 0.9,
        "language": "JavaScript",
    }
    assert data["extractionMetadata"]["totalCommands"] == 0


def test_language_context_serialises_timestamp() -> None:
    data = LanguageContext("Python", 0.8, SourceRange(1, 2, 0, 3)).to_dict()

    assert data["sourceRange"] == {"startLine": 1, "endLine": 2, "startColumn": 0, "endColumn": 3}
    assert data["metadata"]["source"] == "detected"
    assert data["metadata"]["createdAt"].endswith("Z")


def test_issue_from_exception() -> None:
    issue = Issue.from_exception(StageTimeout("too slow", component="language"), "language")

    assert issue.to_dict() == {
        "code": "STAGE_TIMEOUT",
        "message": "too slow",
        "component": "language",
        "severity": "error",
    }
    assert Issue.from_exception(KeyError(), "custom").code == "STAGE_FAILURE"
