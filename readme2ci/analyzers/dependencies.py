"""Dependency extraction from manifest snippets and install commands."""

from __future__ import annotations

import re
import shlex
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from .base import Analyzer
from .commands import CommandExtractor
from .patterns import command_head
from .utils import (
    load_package_json_text,
    mentioned_package_files,
    parse_cargo_text,
    parse_gradle_text,
    parse_node_dependencies,
    parse_pom_text,
    parse_pyproject_text,
    parse_requirements_text,
    split_requirement,
)
from ..errors import PatternEvaluationFault
from ..logging import get_logger
from ..markdown import CodeBlock, MarkdownAST
from ..models import AnalyzerOutput, Dependency, DependencyInfo

_REQUIREMENT_LINE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*(\[[^\]]*\])?\s*([<>=!~]=?\s*[\w.*+-]+,?\s*)*$")

# (manager, leading words) for commands that name packages.
_INSTALL_FORMS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("npm", ("npm", "install")),
    ("npm", ("npm", "i")),
    ("npm", ("npm", "add")),
    ("yarn", ("yarn", "add")),
    ("yarn", ("yarn", "global", "add")),
    ("pnpm", ("pnpm", "add")),
    ("pnpm", ("pnpm", "install")),
    ("pip", ("pip", "install")),
    ("pip", ("pip3", "install")),
    ("pip", ("python", "-m", "pip", "install")),
    ("pip", ("python3", "-m", "pip", "install")),
    ("poetry", ("poetry", "add")),
    ("pipenv", ("pipenv", "install")),
    ("conda", ("conda", "install")),
    ("cargo", ("cargo", "add")),
    ("cargo", ("cargo", "install")),
    ("go", ("go", "get")),
    ("gem", ("gem", "install")),
    ("bundler", ("bundle", "add")),
    ("composer", ("composer", "require")),
    ("nuget", ("dotnet", "add", "package")),
    ("npm", ("npm", "ci")),
    ("yarn", ("yarn", "install")),
    ("poetry", ("poetry", "install")),
    ("bundler", ("bundle", "install")),
    ("composer", ("composer", "install")),
    ("go", ("go", "mod", "download")),
    ("nuget", ("dotnet", "restore")),
)
_DEV_FLAGS = {"-D", "--save-dev", "--dev", "-d"}
_VALUE_FLAGS = {"-r", "--requirement", "-c", "--constraint", "-e", "--editable", "-i",
                "--index-url", "--extra-index-url", "--target", "-t", "--prefix", "--group",
                "-G", "--channel", "--version", "-v", "--registry"}


class DependencyExtractor(Analyzer):
    """Collects dependencies from manifest snippets, file mentions and install commands."""

    name = "dependencies"

    def __init__(self, commands: CommandExtractor | None = None) -> None:
        self.commands = commands or CommandExtractor()
        self.logger = get_logger("analyzers.dependencies")

    def analyze(self, ast: MarkdownAST, raw_text: str) -> AnalyzerOutput:
        info, sources = self._collect(ast, raw_text)
        return AnalyzerOutput(data=info, confidence=self._confidence(sources), sources=sources)

    def extract(self, ast: MarkdownAST, raw_text: str) -> DependencyInfo:
        return self._collect(ast, raw_text)[0]

    def _collect(self, ast: MarkdownAST, raw_text: str) -> Tuple[DependencyInfo, List[str]]:
        info = DependencyInfo(package_files=mentioned_package_files(raw_text))
        sources: List[str] = []
        if info.package_files:
            sources.append("package-files")

        seen: Set[Tuple[str, str, bool]] = set()

        def _add(dependency: Dependency) -> None:
            key = (dependency.name.lower(), dependency.manager, dependency.dev)
            if key in seen:
                return
            seen.add(key)
            target = info.dev_dependencies if dependency.dev else info.dependencies
            target.append(dependency)

        snippet_count = 0
        for block in ast.code_blocks():
            found = list(self._snippet_dependencies(block))
            snippet_count += bool(found)
            for dependency in found:
                _add(dependency)
        if snippet_count:
            sources.append("code-blocks")

        try:
            installs = self.commands.extract(ast, raw_text).install
        except PatternEvaluationFault as exc:
            # The commands stage reports the fault; snippets still count.
            self.logger.warning("Skipping install commands: %s", exc.message)
            installs = []
        for command in installs:
            parsed = parse_install_command(command.text)
            if parsed is None:
                continue
            info.install_commands.append(command.text)
            manager, packages, dev = parsed
            for name, version in packages:
                _add(Dependency(name=name, manager=manager, version=version, dev=dev, source="install-command"))
        if info.install_commands:
            sources.append("install-commands")

        self.logger.debug(
            "Found %d dependencies (%d dev) from %s",
            len(info.dependencies),
            len(info.dev_dependencies),
            ", ".join(sources) or "no sources",
        )
        return info, sources

    def _snippet_dependencies(self, block: CodeBlock) -> Iterable[Dependency]:
        language = (block.language or "").lower()
        content = block.content

        if language in {"json", "jsonc"} or (not language and content.lstrip().startswith("{")):
            data = load_package_json_text(content)
            for bucket, dev in (("dependencies", False), ("dev", True)):
                for name, version in parse_node_dependencies(data)[bucket]:
                    yield Dependency(name, "npm", version, dev, "code-block")
            for key, dev in (("require", False), ("require-dev", True)):
                section = data.get(key)
                if isinstance(section, dict):
                    for name, version in section.items():
                        if name != "php" and not name.startswith("ext-"):
                            yield Dependency(name, "composer", str(version), dev, "code-block")
            return

        if language == "toml":
            if re.search(r"^\[(package|dependencies|dev-dependencies)\]", content, re.MULTILINE):
                parsed = parse_cargo_text(content)
                manager = "cargo"
            else:
                parsed = parse_pyproject_text(content)
                manager = "pip"
            for bucket, dev in (("dependencies", False), ("dev", True)):
                for name, version in parsed[bucket]:
                    yield Dependency(name, manager, version, dev, "code-block")
            return

        if language in {"xml"}:
            for coordinate in sorted(parse_pom_text(content)):
                yield Dependency(coordinate, "maven", None, False, "code-block")
            return

        if language in {"groovy", "gradle", "kotlin", "kts"}:
            for coordinate in sorted(parse_gradle_text(content)):
                yield Dependency(coordinate, "gradle", None, False, "code-block")
            return

        if language in {"requirements", "pip-requirements"} or (
            language in {"txt", "text", "plain"} and _looks_like_requirements(content)
        ):
            for name, version in parse_requirements_text(content):
                yield Dependency(name, "pip", version, False, "code-block")

    @staticmethod
    def _confidence(sources: Sequence[str]) -> float:
        if not sources:
            return 0.0
        return round(min(0.9, 0.3 + 0.2 * len(sources)), 6)


def parse_install_command(text: str) -> Optional[Tuple[str, List[Tuple[str, Optional[str]]], bool]]:
    """Return ``(manager, packages, dev)`` for package-naming install commands.

    Commands that install from a lockfile or manifest (``npm install``,
    ``pip install -r requirements.txt``) return a manager with no packages.
    """
    try:
        tokens = shlex.split(command_head(text))
    except ValueError:
        tokens = command_head(text).split()
    # only the first command of a chain names packages
    for separator in ("&&", "||", ";", "|"):
        if separator in tokens:
            tokens = tokens[: tokens.index(separator)]

    for manager, form in _INSTALL_FORMS:
        if tuple(tokens[: len(form)]) != form:
            continue
        packages: List[Tuple[str, Optional[str]]] = []
        dev = False
        skip_next = False
        for token in tokens[len(form):]:
            if skip_next:
                skip_next = False
                continue
            if token in _DEV_FLAGS:
                dev = True
                continue
            if token in _VALUE_FLAGS:
                skip_next = True
                continue
            if token.startswith("-") or token.startswith((".", "/", "~")) or "://" in token:
                continue
            name, version = split_requirement(token)
            if name and re.fullmatch(r"@?[A-Za-z0-9][\w./@-]*", name):
                packages.append((name, version))
        return manager, packages, dev
    return None


def _looks_like_requirements(content: str) -> bool:
    lines = [
        line.strip()
        for line in content.splitlines()
        if line.strip() and not line.strip().startswith("#")
    ]
    if not lines:
        return False
    return all(_REQUIREMENT_LINE.match(line) for line in lines) and any(
        re.search(r"[<>=~]=", line) for line in lines
    )


__all__ = ["DependencyExtractor", "parse_install_command"]
