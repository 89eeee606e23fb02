"""Tests for dependency extraction."""

from __future__ import annotations

import textwrap

import pytest

from readme2ci.analyzers.dependencies import DependencyExtractor, parse_install_command
from readme2ci.analyzers.utils import (
    mentioned_package_files,
    parse_gradle_text,
    parse_pom_text,
    parse_pyproject_text,
    parse_requirements_text,
    split_requirement,
)
from readme2ci.markdown import parse_markdown


def _extract(text: str):
    return DependencyExtractor().extract(parse_markdown(text), text)


def _names(dependencies):
    return [(dep.name, dep.manager, dep.version) for dep in dependencies]


def test_polyglot_install_commands(polyglot_ast, polyglot_readme: str) -> None:
    output = DependencyExtractor().analyze(polyglot_ast, polyglot_readme)
    info = output.data

    assert info.package_files == ["requirements.txt"]
    assert info.install_commands == [
        "pip install -r requirements.txt",
        "python -m pip install flask",
        "npm install",
    ]
    assert _names(info.dependencies) == [("flask", "pip", None)]
    assert info.dev_dependencies == []
    assert output.sources == ["package-files", "install-commands"]
    assert output.confidence == pytest.approx(0.7)


def test_package_json_snippet() -> None:
    info = _extract(
        textwrap.dedent(
            """\
            Add this to `package.json`:

            ```json
            {
              "dependencies": {"react": "^18.2.0", "express": "4.18.2"},
              "devDependencies": {"jest": "^29.0.0"}
            }
            ```
            """
        )
    )

    assert info.package_files == ["package.json"]
    assert _names(info.dependencies) == [
        ("express", "npm", "4.18.2"),
        ("react", "npm", "^18.2.0"),
    ]
    assert _names(info.dev_dependencies) == [("jest", "npm", "^29.0.0")]
    assert {dep.source for dep in info.dependencies} == {"code-block"}


def test_toml_snippets_pick_manager() -> None:
    info = _extract(
        textwrap.dedent(
            """\
            ```toml
            [dependencies]
            serde = { version = "1.0", features = ["derive"] }
            tokio = "1"
            ```

            ```toml
            [project]
            dependencies = ["httpx>=0.27", "rich"]
            ```
            """
        )
    )

    assert _names(info.dependencies) == [
        ("serde", "cargo", "1.0"),
        ("tokio", "cargo", "1"),
        ("httpx", "pip", ">=0.27"),
        ("rich", "pip", None),
    ]


def test_install_command_dev_flags_and_duplicates() -> None:
    info = _extract(
        textwrap.dedent(
            """\
            ```bash
            npm install --save-dev jest eslint@8
            yarn add react
            npm i react
            ```
            """
        )
    )

    assert _names(info.dev_dependencies) == [("jest", "npm", None), ("eslint", "npm", "8")]
    assert _names(info.dependencies) == [("react", "yarn", None), ("react", "npm", None)]
    assert all(dep.source == "install-command" for dep in info.dependencies)


def test_no_sources_means_zero_confidence() -> None:
    text = "# Plain\n\nNothing to install.\n"

    output = DependencyExtractor().analyze(parse_markdown(text), text)

    assert output.confidence == 0.0
    assert output.sources == []


@pytest.mark.parametrize(
    ("command", "expected"),
    [
        ("pip install requests==2.31 'flask[async]>=3'", ("pip", [("requests", "==2.31"), ("flask", ">=3")], False)),
        ("sudo gem install rails", ("gem", [("rails", None)], False)),
        ("pip install -r requirements.txt", ("pip", [], False)),
        ("npm install && npm run build", ("npm", [], False)),
        ("composer require --dev phpunit/phpunit", ("composer", [("phpunit/phpunit", None)], True)),
        ("go get github.com/spf13/cobra@v1.8.0", ("go", [("github.com/spf13/cobra", "v1.8.0")], False)),
        ("npm run build", None),
        ("make install", None),
    ],
)
def test_parse_install_command(command: str, expected) -> None:
    assert parse_install_command(command) == expected


@pytest.mark.parametrize(
    ("spec", "expected"),
    [
        ("requests>=2.0", ("requests", ">=2.0")),
        ("uvicorn[standard]", ("uvicorn", None)),
        ("@types/node@18", ("@types/node", "18")),
        ("express@^4.18", ("express", "^4.18")),
    ],
)
def test_split_requirement(spec: str, expected) -> None:
    assert split_requirement(spec) == expected


def test_manifest_parsers() -> None:
    assert parse_requirements_text("# comment\nflask==3.0  # web\n-r base.txt\nrich\n") == [
        ("flask", "==3.0"),
        ("rich", None),
    ]
    pyproject = parse_pyproject_text(
        '[tool.poetry.dependencies]\npython = "^3.11"\nfastapi = "^0.110"\n'
        '[tool.poetry.group.dev.dependencies]\npytest = "^8"\n'
    )
    assert pyproject == {"dependencies": [("fastapi", "^0.110")], "dev": [("pytest", "^8")]}
    assert parse_pom_text(
        '<project xmlns="http://maven.apache.org/POM/4.0.0"><dependencies><dependency>'
        "<groupId>junit</groupId><artifactId>junit</artifactId></dependency>"
        "</dependencies></project>"
    ) == {"junit:junit"}
    assert parse_gradle_text("implementation 'com.google.guava:guava:33.0.0-jre'\n") == {
        "com.google.guava:guava"
    }
    assert parse_pyproject_text("not = [valid") == {"dependencies": [], "dev": []}


def test_mentioned_package_files_in_order() -> None:
    text = "Edit build.gradle.kts, then Cargo.toml; package.json is optional."

    assert mentioned_package_files(text) == ["build.gradle.kts", "Cargo.toml", "package.json"]
