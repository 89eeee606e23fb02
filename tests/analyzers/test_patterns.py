"""Tests for the declarative command pattern table."""

from __future__ import annotations

import re

import pytest

from readme2ci.analyzers.patterns import (
    ECOSYSTEMS,
    PATTERN_TABLE,
    CommandPattern,
    Ecosystem,
    PatternTable,
    classify,
    command_head,
    infer_language,
    looks_like_command,
    tool_prefixes,
)
from readme2ci.errors import PatternEvaluationFault
from readme2ci.models import CATEGORY_ORDER, Category


@pytest.mark.parametrize("command", ["go build", "go build -o myapp", "go install"])
def test_go_build_and_install_are_build(command: str) -> None:
    result = classify(command)

    assert result.category is Category.BUILD
    assert result.ecosystem == "go"
    assert infer_language(command) == "Go"


@pytest.mark.parametrize(
    "command",
    ["pip install -r requirements.txt", "pip3 install numpy", "python -m pip install flask"],
)
def test_python_installs(command: str) -> None:
    result = classify(command)

    assert result.category is Category.INSTALL
    assert infer_language(command) == "Python"


def test_python_module_pattern_excludes_pip() -> None:
    other = PATTERN_TABLE.get("python").patterns_for(Category.OTHER)[0]

    assert other.matches("python -m http.server")
    assert not other.matches("python -m pip install flask")


def test_pip_guard_holds_without_install_patterns() -> None:
    python = PATTERN_TABLE.get("python")
    stripped = Ecosystem(
        name="python",
        tools=python.tools,
        patterns={
            Category.BUILD: python.patterns_for(Category.BUILD),
            Category.TEST: python.patterns_for(Category.TEST),
            Category.OTHER: python.patterns_for(Category.OTHER),
        },
    )
    table = PatternTable([stripped])

    result = table.classify("python -m pip install flask")

    # no table pattern claims it; the install keyword fallback does
    assert result.category is Category.INSTALL
    assert result.ecosystem is None


@pytest.mark.parametrize(
    ("command", "category"),
    [
        ("mvn install", Category.BUILD),
        ("mvn clean package", Category.BUILD),
        ("mvn test", Category.TEST),
        ("make install", Category.BUILD),
        ("make", Category.BUILD),
        ("make test", Category.TEST),
        ("./gradlew build", Category.BUILD),
        ("cargo test", Category.TEST),
        ("cargo fetch", Category.INSTALL),
        ("npm run build", Category.BUILD),
        ("npm run dev", Category.OTHER),
        ("npm test", Category.TEST),
        ("yarn", Category.INSTALL),
        ("bundle exec rspec", Category.TEST),
        ("dotnet restore", Category.INSTALL),
        ("docker build -t app .", Category.BUILD),
        ("docker run app", Category.OTHER),
        ("sudo apt-get install -y libpq-dev", Category.INSTALL),
        ("./configure", Category.BUILD),
        ("./scripts/run-tests.sh", Category.TEST),
        ("git clone https://example.com/repo.git", Category.OTHER),
    ],
)
def test_ecosystem_categories(command: str, category: Category) -> None:
    assert classify(command).category is category


def test_multi_token_patterns_outrank_single_token_and_fallbacks() -> None:
    assert classify("npm run build").confidence == 0.9
    assert classify("pytest").confidence == 0.8
    assert classify("./fetch.sh download").confidence == 0.6
    assert classify("./run.sh").confidence == 0.5


def test_keyword_fallback_has_no_ecosystem() -> None:
    result = classify("./tool.sh restore")

    assert result.category is Category.INSTALL
    assert result.ecosystem is None


def test_command_head_strips_prompt_sudo_and_assignments() -> None:
    assert command_head("$ sudo -E NODE_ENV=production DEBUG=1 npm start") == "npm start"


@pytest.mark.parametrize(
    "command",
    [
        "sudo -u deploy npm install",
        "sudo -E -u deploy npm install",
        "sudo --user=deploy npm install",
        "sudo -g www-data npm install",
    ],
)
def test_command_head_drops_sudo_option_values(command: str) -> None:
    assert command_head(command) == "npm install"
    assert looks_like_command(command)
    assert classify(command).category is Category.INSTALL


@pytest.mark.parametrize(
    ("command", "language"),
    [
        ("npm install express", "JavaScript"),
        ("npx jest", "JavaScript"),
        ("python3.11 -m venv .venv", "Python"),
        ("cargo build", "Rust"),
        ("./gradlew test", "Java"),
        ("dotnet test", "C#"),
        ("bundle install", "Ruby"),
        ("composer install", "PHP"),
        ("make", None),
        ("docker compose up", None),
        ("./deploy.sh", None),
    ],
)
def test_infer_language(command: str, language: str | None) -> None:
    assert infer_language(command) == language


@pytest.mark.parametrize(
    "line",
    ["npm install", "$ cargo build --release", "make", "./build.sh", "setup.exe /quiet", "ant"],
)
def test_candidate_filter_accepts_commands(line: str) -> None:
    assert looks_like_command(line)


@pytest.mark.parametrize(
    "line",
    [
        "",
        "# install dependencies",
        "// comment",
        "cd project",
        "echo done",
        "Python is the language used throughout this project.",
        "npm is the package manager we rely on for everything here.",
        "{",
    ],
)
def test_candidate_filter_rejects_non_commands(line: str) -> None:
    assert not looks_like_command(line)


def test_table_enforces_category_order() -> None:
    with pytest.raises(ValueError):
        PatternTable(ECOSYSTEMS, categories=tuple(reversed(CATEGORY_ORDER)))


def test_first_ecosystem_keeps_shared_tool() -> None:
    first = Ecosystem("first", ("tool",), {Category.BUILD: (CommandPattern(re.compile(r"^tool")),)})
    second = Ecosystem("second", ("tool",), {Category.TEST: (CommandPattern(re.compile(r"^tool")),)})

    table = PatternTable([first, second])

    assert table.classify("tool run").category is Category.BUILD
    assert table.classify("tool run").ecosystem == "first"


def test_broken_pattern_raises_pattern_evaluation_fault() -> None:
    class _Exploding:
        pattern = "boom"

        def search(self, _: str) -> None:
            raise TypeError("broken")

    broken = Ecosystem("broken", ("tool",), {Category.INSTALL: (CommandPattern(_Exploding()),)})  # type: ignore[arg-type]
    table = PatternTable([broken])

    with pytest.raises(PatternEvaluationFault):
        table.classify("tool install")


def test_tool_prefixes_cover_bare_build_tools() -> None:
    prefixes = tool_prefixes()

    for tool in ("make", "cmake", "ant", "sbt", "lein", "mix", "npm", "cargo", "go"):
        assert tool in prefixes
