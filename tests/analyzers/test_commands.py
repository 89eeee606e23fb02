"""Tests for the command extractor."""

from __future__ import annotations

import textwrap

import pytest

from readme2ci.analyzers.commands import CommandExtractor
from readme2ci.analyzers.language import LanguageDetector
from readme2ci.markdown import MarkdownAST, parse_markdown
from readme2ci.models import CATEGORY_ORDER, Category, ContextSource


def _extract(text: str):
    ast = parse_markdown(text)
    return CommandExtractor().extract(ast, text)


def test_polyglot_readme_categories(polyglot_ast: MarkdownAST, polyglot_readme: str) -> None:
    info = CommandExtractor().extract(polyglot_ast, polyglot_readme)

    assert info.texts(Category.INSTALL) == [
        "pip install -r requirements.txt",
        "python -m pip install flask",
        "npm install",
    ]
    assert info.texts(Category.BUILD) == ["make", "npm run build", "docker build -t widget-forge ."]
    assert info.texts(Category.TEST) == ["pytest", "npm test"]
    assert info.texts(Category.OTHER) == ["./deploy.sh"]
    assert info.extraction_metadata.total_commands == 9
    assert info.extraction_metadata.code_blocks == 3


def test_each_command_lands_in_exactly_one_category(
    polyglot_ast: MarkdownAST, polyglot_readme: str
) -> None:
    info = CommandExtractor().extract(polyglot_ast, polyglot_readme)

    seen = [id(command) for category in CATEGORY_ORDER for command in info.get(category)]
    assert len(seen) == len(set(seen)) == len(info)
    for command in info:
        assert command.category in CATEGORY_ORDER
        assert 0.0 <= command.match_confidence <= 1.0


def test_commands_carry_location_language_and_section(
    polyglot_ast: MarkdownAST, polyglot_readme: str
) -> None:
    info = CommandExtractor().extract(polyglot_ast, polyglot_readme)
    pip = info.install[0]

    assert pip.source_location.start_line == 10
    assert pip.language == "Python"
    assert pip.description == "Backend"
    assert pip.ecosystem == "python"
    assert info.build[0].language is None


def test_continuations_prompts_and_comments() -> None:
    info = _extract(
        textwrap.dedent(
            """\
            ```sh
            # fetch everything
            $ npm install \\
                --save-dev jest
            echo "not a tool"
            ```
            """
        )
    )

    [command] = list(info)
    assert command.text == "npm install --save-dev jest"
    assert command.source_location.start_line == 3
    assert command.source_location.end_line == 4


def test_duplicates_keep_first_occurrence() -> None:
    info = _extract("```\nnpm install\n```\n\n```\nnpm install\nnpm test\n```\n")

    assert info.texts(Category.INSTALL) == ["npm install"]
    assert info.install[0].source_location.start_line == 2
    assert info.extraction_metadata.duplicates_removed == 1


def test_data_fences_and_prose_are_ignored() -> None:
    info = _extract(
        textwrap.dedent(
            """\
            Run `npm install` first.

            ```json
            {"scripts": {"test": "jest"}}
            ```

            ```yaml
            make: true
            ```
            """
        )
    )

    assert len(info) == 0


def test_malformed_fence_is_skipped_with_warning() -> None:
    info = _extract("# T\n\n```\nnpm install\n\nmore text\n")

    assert len(info) == 0
    assert info.extraction_metadata.skipped_blocks == 1
    assert "Unclosed code fence" in info.extraction_metadata.warnings[0]


def test_analyze_assigns_contexts(polyglot_ast: MarkdownAST, polyglot_readme: str) -> None:
    contexts = LanguageDetector().detect(polyglot_ast, polyglot_readme)

    output = CommandExtractor().analyze(polyglot_ast, polyglot_readme, contexts=contexts)
    info = output.data

    make = info.build[0]
    assert make.language is None
    assert make.effective_language == "Python"
    assert make.context_confidence < make.match_confidence

    docker = info.build[2]
    assert docker.language_context.source is ContextSource.DEFAULT
    assert docker.effective_language is None

    assert info.extraction_metadata.languages == ["JavaScript", "Python"]
    assert output.sources == ["code-block", "language-context"]
    for command in info:
        assert command.context_confidence is not None
        assert 0.0 <= command.context_confidence <= command.match_confidence <= 1.0
    assert output.confidence == pytest.approx(
        sum(command.confidence for command in info) / len(info), abs=1e-6
    )


def test_analyze_empty_document_has_zero_confidence() -> None:
    text = "# Nothing here\n\nJust prose.\n"

    output = CommandExtractor().analyze(parse_markdown(text), text)

    assert output.confidence == 0.0
    assert len(output.data) == 0
