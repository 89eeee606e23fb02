"""Declarative command tables: candidate filter, categories and tool languages.

The table is ordered twice over. Categories are tried in ``CATEGORY_ORDER``
(install, build, test, other) and, for a command whose leading tool resolves to
an ecosystem, only that ecosystem's patterns are consulted. Toolchain-specific
meanings are expressed by where a pattern lives: ``go install``,
``mvn install`` and ``make install`` compile local code, so they sit in the
build lists and never in install.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Mapping, Optional, Pattern, Sequence, Tuple

from ..errors import PatternEvaluationFault
from ..models import CATEGORY_ORDER, Category

INSTALL = Category.INSTALL
BUILD = Category.BUILD
TEST = Category.TEST
OTHER = Category.OTHER

MULTI_TOKEN_CONFIDENCE = 0.9
SINGLE_TOKEN_CONFIDENCE = 0.8
INSTALL_KEYWORD_CONFIDENCE = 0.6
OTHER_FALLBACK_CONFIDENCE = 0.5

_PROMPT = re.compile(r"^\$\s+")
# sudo options that take a value (-u user, --group=wheel) are dropped with it.
_SUDO = re.compile(
    r"^sudo\s+(?:(?:-[ugCDpRrTt]|--(?:user|group|chdir|prompt|role|type|command-timeout))"
    r"(?:\s+|=)\S+\s+|-\S+\s+)*"
)
_ENV_ASSIGNMENT = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*=(?:\"[^\"]*\"|'[^']*'|\S*)\s+")
_VERSION_SUFFIX = re.compile(r"^(?P<tool>[a-z]+\d?)\.\d+$")
_EXECUTABLE_PATH = re.compile(r"^(?:\.{1,2}/\S+|\S+\.(?:exe|sh|bat|cmd|ps1)|vendor/bin/\S+)$")
_INSTALL_KEYWORDS = re.compile(r"\b(?:install|add|get|restore|download)\b", re.IGNORECASE)
_PROSE_ENDING = re.compile(r"[.:!?]$")
_SHELL_SYNTAX = re.compile(r"[-/=|&$<>\\]")

# Leading tool token -> language of the toolchain it belongs to.
TOOL_LANGUAGES: Dict[str, str] = {
    "npm": "JavaScript",
    "npx": "JavaScript",
    "yarn": "JavaScript",
    "pnpm": "JavaScript",
    "node": "JavaScript",
    "pip": "Python",
    "pip3": "Python",
    "python": "Python",
    "python3": "Python",
    "py": "Python",
    "pytest": "Python",
    "poetry": "Python",
    "pipenv": "Python",
    "conda": "Python",
    "tox": "Python",
    "nox": "Python",
    "cargo": "Rust",
    "rustup": "Rust",
    "rustc": "Rust",
    "go": "Go",
    "mvn": "Java",
    "mvnw": "Java",
    "./mvnw": "Java",
    "mvnw.cmd": "Java",
    "gradle": "Java",
    "gradlew": "Java",
    "./gradlew": "Java",
    "gradlew.bat": "Java",
    "ant": "Java",
    "java": "Java",
    "sbt": "Scala",
    "lein": "Clojure",
    "mix": "Elixir",
    "dotnet": "C#",
    "nuget": "C#",
    "bundle": "Ruby",
    "bundler": "Ruby",
    "gem": "Ruby",
    "rake": "Ruby",
    "rspec": "Ruby",
    "rails": "Ruby",
    "ruby": "Ruby",
    "composer": "PHP",
    "php": "PHP",
    "phpunit": "PHP",
    "vendor/bin/phpunit": "PHP",
}


@dataclass(frozen=True)
class CommandPattern:
    """A single anchored regular pattern and the confidence it confers."""

    regex: Pattern[str]
    confidence: float = MULTI_TOKEN_CONFIDENCE

    def matches(self, head: str) -> bool:
        return self.regex.search(head) is not None


@dataclass(frozen=True)
class Ecosystem:
    """Patterns owned by one toolchain, keyed by category."""

    name: str
    tools: Tuple[str, ...]
    patterns: Mapping[Category, Tuple[CommandPattern, ...]]
    token_pattern: Optional[Pattern[str]] = None

    def owns(self, token: str) -> bool:
        return token in self.tools

    def patterns_for(self, category: Category) -> Tuple[CommandPattern, ...]:
        return self.patterns.get(category, ())


@dataclass(frozen=True)
class Classification:
    """Outcome of running a command through the table."""

    category: Category
    confidence: float
    ecosystem: Optional[str] = None
    pattern: Optional[str] = None


@dataclass
class PatternTable:
    """Ordered ecosystem tables plus the keyword fallback."""

    ecosystems: Sequence[Ecosystem]
    categories: Sequence[Category] = CATEGORY_ORDER
    _tools: Dict[str, Ecosystem] = field(init=False, repr=False, default_factory=dict)

    def __post_init__(self) -> None:
        if tuple(self.categories) != CATEGORY_ORDER:
            raise ValueError("categories must be checked in install, build, test, other order")
        for ecosystem in self.ecosystems:
            for tool in ecosystem.tools:
                # First ecosystem to claim a tool keeps it.
                self._tools.setdefault(tool, ecosystem)

    @property
    def tools(self) -> Tuple[str, ...]:
        return tuple(self._tools)

    def get(self, name: str) -> Ecosystem:
        for ecosystem in self.ecosystems:
            if ecosystem.name == name:
                return ecosystem
        raise KeyError(name)

    def ecosystem_for(self, head: str) -> Optional[Ecosystem]:
        token = leading_token(head)
        if not token:
            return None
        ecosystem = self._tools.get(token)
        if ecosystem is not None:
            return ecosystem
        for candidate in self.ecosystems:
            if candidate.token_pattern is not None and candidate.token_pattern.match(token):
                return candidate
        return None

    def iter_patterns(self, category: Category) -> Iterator[Tuple[str, CommandPattern]]:
        for ecosystem in self.ecosystems:
            for pattern in ecosystem.patterns_for(category):
                yield ecosystem.name, pattern

    def classify(self, text: str) -> Classification:
        """Return the first matching category for ``text`` in priority order."""
        try:
            head = command_head(text)
            owner = self.ecosystem_for(head)
            candidates: Sequence[Ecosystem] = (owner,) if owner is not None else self.ecosystems
            for category in self.categories:
                for ecosystem in candidates:
                    for pattern in ecosystem.patterns_for(category):
                        if pattern.matches(head):
                            return Classification(
                                category=category,
                                confidence=pattern.confidence,
                                ecosystem=ecosystem.name,
                                pattern=pattern.regex.pattern,
                            )
            if _INSTALL_KEYWORDS.search(head):
                return Classification(INSTALL, INSTALL_KEYWORD_CONFIDENCE)
            return Classification(OTHER, OTHER_FALLBACK_CONFIDENCE)
        except (re.error, TypeError, AttributeError, RecursionError) as exc:
            raise PatternEvaluationFault(
                f"Pattern evaluation failed for {text!r}: {exc}", component="commands"
            ) from exc

    def looks_like_command(self, line: str) -> bool:
        """Return True when a code-fence line is a command rather than prose."""
        stripped = strip_prompt(line.strip())
        if not stripped or stripped.startswith(("#", "//", "::", "REM ")):
            return False
        head = command_head(stripped)
        token = leading_token(head)
        if not token:
            return False
        if self.ecosystem_for(head) is None:
            return False
        return not _looks_like_prose(head)


def strip_prompt(line: str) -> str:
    return _PROMPT.sub("", line, count=1)


def command_head(text: str) -> str:
    """Strip prompts, ``sudo`` and leading ``VAR=value`` assignments."""
    head = strip_prompt(text.strip())
    head = _SUDO.sub("", head, count=1)
    while True:
        stripped = _ENV_ASSIGNMENT.sub("", head, count=1)
        if stripped == head:
            break
        head = stripped
    return head


def leading_token(head: str) -> str:
    parts = head.split(None, 1)
    if not parts:
        return ""
    token = parts[0]
    match = _VERSION_SUFFIX.match(token)
    if match and match.group("tool") in TOOL_LANGUAGES:
        return match.group("tool")
    if token.endswith(".exe") and token[:-4] in TOOL_LANGUAGES:
        return token[:-4]
    return token


def infer_language(text: str) -> Optional[str]:
    """Language implied by the command's leading tool, if any."""
    return TOOL_LANGUAGES.get(leading_token(command_head(text)))


def _looks_like_prose(head: str) -> bool:
    words = head.split()
    if len(words) < 6:
        return False
    return bool(_PROSE_ENDING.search(head)) and not _SHELL_SYNTAX.search(head)


def _p(regex: str, confidence: float = MULTI_TOKEN_CONFIDENCE) -> CommandPattern:
    return CommandPattern(re.compile(regex, re.IGNORECASE), confidence)


def _single(regex: str) -> CommandPattern:
    return _p(regex, SINGLE_TOKEN_CONFIDENCE)


_PY = r"(?:python3?(?:\.\d+)?|py)"
_PIP = r"pip(?:3(?:\.\d+)?)?"
_MVN = r"(?:mvn|(?:\./)?mvnw(?:\.cmd)?)"
_GRADLE = r"(?:gradle|(?:\./)?gradlew(?:\.bat)?)"
_BUNDLE_EXEC = r"(?:bundle\s+exec\s+)?"

ECOSYSTEMS: Tuple[Ecosystem, ...] = (
    Ecosystem(
        name="npm",
        tools=("npm", "npx", "node"),
        patterns={
            INSTALL: (_p(r"^npm\s+(?:install|i|ci|add)\b"),),
            BUILD: (
                _p(r"^npm\s+run(?:-script)?\s+(?:build|compile|dist|bundle)(?::\S+)?(?:\s|$)"),
                _p(r"^npx\s+(?:tsc|webpack|rollup|esbuild|vite\s+build|next\s+build)\b"),
            ),
            TEST: (
                _p(r"^npm\s+(?:test|t)\b"),
                _p(r"^npm\s+run(?:-script)?\s+(?:test|spec|e2e|coverage)(?::\S+)?(?:\s|$)"),
                _p(r"^npx\s+(?:jest|mocha|vitest|ava|playwright\s+test|cypress\s+run)\b"),
            ),
            OTHER: (
                _p(r"^npm\s+(?:start|run|exec|publish|link)\b"),
                _single(r"^npx\s+\S+"),
                _single(r"^node\s+\S+"),
            ),
        },
    ),
    Ecosystem(
        name="yarn",
        tools=("yarn",),
        patterns={
            INSTALL: (_single(r"^yarn$"), _p(r"^yarn\s+(?:install|add)\b")),
            BUILD: (_p(r"^yarn\s+(?:run\s+)?(?:build|compile|dist)(?::\S+)?(?:\s|$)"),),
            TEST: (_p(r"^yarn\s+(?:run\s+)?(?:test|spec|e2e)(?::\S+)?(?:\s|$)"),),
            OTHER: (_single(r"^yarn\s+\S+"),),
        },
    ),
    Ecosystem(
        name="pnpm",
        tools=("pnpm",),
        patterns={
            INSTALL: (_p(r"^pnpm\s+(?:install|i|add)\b"),),
            BUILD: (_p(r"^pnpm\s+(?:run\s+)?(?:build|compile|dist)(?::\S+)?(?:\s|$)"),),
            TEST: (_p(r"^pnpm\s+(?:run\s+)?(?:test|spec|e2e)(?::\S+)?(?:\s|$)"),),
            OTHER: (_single(r"^pnpm\s+\S+"),),
        },
    ),
    Ecosystem(
        name="python",
        tools=(
            "pip",
            "pip3",
            "python",
            "python3",
            "py",
            "pytest",
            "poetry",
            "pipenv",
            "conda",
            "tox",
            "nox",
        ),
        patterns={
            INSTALL: (
                _p(rf"^{_PIP}\s+install\b"),
                _p(rf"^{_PY}\s+-m\s+pip\s+install\b"),
                _p(r"^(?:poetry|pipenv|conda)\s+(?:install|add)\b"),
            ),
            BUILD: (
                _p(rf"^{_PY}\s+setup\.py\s+(?:build\w*|bdist\w*|sdist|develop|install)\b"),
                _p(rf"^{_PY}\s+-m\s+build\b"),
                _p(r"^poetry\s+build\b"),
            ),
            TEST: (
                _single(r"^pytest\b"),
                _p(rf"^{_PY}\s+-m\s+(?:pytest|unittest|nose2?|tox)\b"),
                _p(rf"^{_PY}\s+(?:setup|manage)\.py\s+test\b"),
                _p(r"^(?:poetry|pipenv)\s+run\s+(?:pytest|tox)\b"),
                _single(r"^(?:tox|nox)\b"),
            ),
            OTHER: (
                # python -m pip is claimed by install above; keep this pattern from
                # claiming it if the table is ever reordered.
                _single(rf"^{_PY}\s+-m\s+(?!pip\b)[\w.]+"),
                _single(rf"^{_PY}\s+\S+\.py\b"),
                _single(r"^(?:poetry|pipenv|conda)\s+\S+"),
            ),
        },
    ),
    Ecosystem(
        name="cargo",
        tools=("cargo", "rustup", "rustc"),
        patterns={
            INSTALL: (
                _p(r"^cargo\s+(?:fetch|install|add)\b"),
                _p(r"^rustup\s+(?:install|toolchain\s+install|component\s+add|target\s+add)\b"),
            ),
            BUILD: (_p(r"^cargo\s+build\b"), _single(r"^rustc\b")),
            TEST: (_p(r"^cargo\s+(?:test|nextest|bench)\b"),),
            OTHER: (_single(r"^(?:cargo|rustup)\s+\S+"),),
        },
    ),
    Ecosystem(
        name="go",
        tools=("go",),
        patterns={
            INSTALL: (_p(r"^go\s+get\b"), _p(r"^go\s+mod\s+(?:download|tidy|vendor)\b")),
            BUILD: (_p(r"^go\s+(?:build|install|generate)\b"),),
            TEST: (_p(r"^go\s+(?:test|vet)\b"),),
            OTHER: (_single(r"^go\s+\S+"),),
        },
    ),
    Ecosystem(
        name="maven",
        tools=("mvn", "mvnw", "./mvnw", "mvnw.cmd"),
        patterns={
            INSTALL: (
                _p(rf"^{_MVN}\b.*\bdependency:(?:resolve|go-offline|copy-dependencies)\b"),
            ),
            BUILD: (_p(rf"^{_MVN}\b.*\b(?:compile|package|install|deploy)\b"),),
            TEST: (_p(rf"^{_MVN}\b.*\b(?:test|verify)\b"),),
            OTHER: (_single(rf"^{_MVN}\b"),),
        },
    ),
    Ecosystem(
        name="gradle",
        tools=("gradle", "gradlew", "./gradlew", "gradlew.bat"),
        patterns={
            INSTALL: (_p(rf"^{_GRADLE}\b.*\b(?:dependencies|downloadDependencies)\b"),),
            BUILD: (
                _p(rf"^{_GRADLE}\b.*\b(?:build|assemble|jar|bootJar|shadowJar|compileJava)\b"),
            ),
            TEST: (_p(rf"^{_GRADLE}\b.*\b(?:test|check|integrationTest)\b"),),
            OTHER: (_single(rf"^{_GRADLE}\b"),),
        },
    ),
    Ecosystem(
        name="make",
        tools=("make", "cmake", "ctest"),
        patterns={
            INSTALL: (_p(r"^make\s+(?:deps|dependencies|setup|bootstrap|install-deps)\b"),),
            BUILD: (
                _single(r"^make$"),
                _p(r"^make\s+(?:-j\s*\d*\s+)?(?:all|build|compile|install|release|dist)\b"),
                _single(r"^cmake\b"),
            ),
            TEST: (_p(r"^make\s+(?:test|tests|check)\b"), _single(r"^ctest\b")),
            OTHER: (_single(r"^make\s+\S+"),),
        },
    ),
    Ecosystem(
        name="ant",
        tools=("ant",),
        patterns={
            BUILD: (_single(r"^ant$"), _p(r"^ant\s+(?:build|compile|jar|dist)\b")),
            TEST: (_p(r"^ant\s+test\b"),),
            OTHER: (_single(r"^ant\s+\S+"),),
        },
    ),
    Ecosystem(
        name="sbt",
        tools=("sbt",),
        patterns={
            INSTALL: (_p(r"^sbt\s+update\b"),),
            BUILD: (_p(r"^sbt\b.*\b(?:compile|package|assembly|publishLocal)\b"),),
            TEST: (_p(r"^sbt\b.*\btest\b"),),
            OTHER: (_single(r"^sbt\b"),),
        },
    ),
    Ecosystem(
        name="lein",
        tools=("lein",),
        patterns={
            INSTALL: (_p(r"^lein\s+deps\b"),),
            BUILD: (_p(r"^lein\s+(?:compile|uberjar|jar)\b"),),
            TEST: (_p(r"^lein\s+test\b"),),
            OTHER: (_single(r"^lein\b"),),
        },
    ),
    Ecosystem(
        name="mix",
        tools=("mix",),
        patterns={
            INSTALL: (_p(r"^mix\s+deps\.get\b"),),
            BUILD: (_p(r"^mix\s+(?:compile|release|escript\.build)\b"),),
            TEST: (_p(r"^mix\s+test\b"),),
            OTHER: (_single(r"^mix\b"),),
        },
    ),
    Ecosystem(
        name="dotnet",
        tools=("dotnet", "nuget"),
        patterns={
            INSTALL: (
                _p(r"^dotnet\s+restore\b"),
                _p(r"^dotnet\s+add\b.*\bpackage\b"),
                _p(r"^dotnet\s+tool\s+(?:install|restore)\b"),
                _p(r"^nuget\s+(?:restore|install)\b"),
            ),
            BUILD: (_p(r"^dotnet\s+(?:build|publish|pack|msbuild)\b"),),
            TEST: (_p(r"^dotnet\s+test\b"),),
            OTHER: (_single(r"^dotnet\s+\S+"),),
        },
    ),
    Ecosystem(
        name="ruby",
        tools=("bundle", "bundler", "gem", "rake", "rspec", "rails", "ruby"),
        patterns={
            INSTALL: (
                _single(r"^bundler?$"),
                _p(r"^bundler?\s+(?:install|add)\b"),
                _p(r"^gem\s+install\b"),
            ),
            BUILD: (
                _p(r"^gem\s+build\b"),
                _p(rf"^{_BUNDLE_EXEC}rake\s+(?:build|compile|assets:precompile)\b"),
            ),
            TEST: (
                _p(rf"^{_BUNDLE_EXEC}rspec\b"),
                _p(rf"^{_BUNDLE_EXEC}(?:rake|rails)\s+(?:test|spec)\b"),
            ),
            OTHER: (_single(rf"^{_BUNDLE_EXEC}(?:rails|rake|ruby)\b"),),
        },
    ),
    Ecosystem(
        name="php",
        tools=("composer", "php", "phpunit", "vendor/bin/phpunit"),
        patterns={
            INSTALL: (_p(r"^composer\s+(?:install|require|update)\b"),),
            BUILD: (_p(r"^composer\s+(?:dump-autoload|build)\b"),),
            TEST: (
                _single(r"^(?:\./)?(?:vendor/bin/)?phpunit\b"),
                _p(r"^composer\s+test\b"),
                _p(r"^php\s+artisan\s+test\b"),
            ),
            OTHER: (_single(r"^(?:php|composer)\b"),),
        },
    ),
    Ecosystem(
        name="java",
        tools=("java",),
        patterns={OTHER: (_single(r"^java\b"),)},
    ),
    Ecosystem(
        name="containers",
        tools=("docker", "docker-compose", "podman", "kubectl", "helm"),
        patterns={
            BUILD: (
                _p(r"^(?:docker|podman)\s+(?:buildx\s+)?build\b"),
                _p(r"^docker[- ]compose\s+build\b"),
            ),
            OTHER: (_single(r"^(?:docker|docker-compose|podman|kubectl|helm)\b"),),
        },
    ),
    Ecosystem(
        name="system",
        tools=("apt", "apt-get", "brew", "yum", "dnf", "apk", "choco", "winget", "pacman"),
        patterns={
            INSTALL: (_p(r"^\S+\s+(?:-\S+\s+)*(?:install|add|-S)\b"),),
            OTHER: (_single(r"^\S+"),),
        },
    ),
    Ecosystem(
        name="shell",
        tools=("git", "curl", "wget"),
        patterns={OTHER: (_single(r"^(?:git|curl|wget)\b"),)},
    ),
    Ecosystem(
        name="scripts",
        tools=(),
        token_pattern=_EXECUTABLE_PATH,
        patterns={
            INSTALL: (_p(r"^\S*(?:install|setup|bootstrap)\S*\.(?:sh|ps1|bat|cmd)\b"),),
            BUILD: (
                _p(r"^(?:\./)?configure\b"),
                _p(r"^\S*(?:build|compile)\S*\.(?:sh|ps1|bat|cmd)\b"),
            ),
            TEST: (_p(r"^\S*tests?\S*\.(?:sh|ps1|bat|cmd)\b"),),
        },
    ),
)

PATTERN_TABLE = PatternTable(ECOSYSTEMS)


def looks_like_command(line: str, table: PatternTable = PATTERN_TABLE) -> bool:
    return table.looks_like_command(line)


def classify(text: str, table: PatternTable = PATTERN_TABLE) -> Classification:
    return table.classify(text)


def tool_prefixes(table: PatternTable = PATTERN_TABLE) -> List[str]:
    """Known leading tools, sorted for display and tests."""
    return sorted(table.tools)


__all__ = [
    "Classification",
    "CommandPattern",
    "ECOSYSTEMS",
    "Ecosystem",
    "PATTERN_TABLE",
    "PatternTable",
    "TOOL_LANGUAGES",
    "classify",
    "command_head",
    "infer_language",
    "leading_token",
    "looks_like_command",
    "strip_prompt",
    "tool_prefixes",
]
