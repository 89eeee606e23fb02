"""Manifest snippet parsing shared by the peer analyzers."""

from __future__ import annotations

import json
import re
import tomllib
import xml.etree.ElementTree as ET
from typing import Dict, List, Optional, Set, Tuple

_VERSION_SPLIT = re.compile(r"\s*([<>=!~^]=?|@)\s*")

# Manifest file names mapped to the package manager that reads them.
PACKAGE_FILES: Dict[str, str] = {
    "package.json": "npm",
    "package-lock.json": "npm",
    "yarn.lock": "yarn",
    "pnpm-lock.yaml": "pnpm",
    "requirements.txt": "pip",
    "requirements-dev.txt": "pip",
    "pyproject.toml": "pip",
    "setup.py": "pip",
    "setup.cfg": "pip",
    "Pipfile": "pipenv",
    "poetry.lock": "poetry",
    "environment.yml": "conda",
    "Cargo.toml": "cargo",
    "go.mod": "go",
    "pom.xml": "maven",
    "build.gradle": "gradle",
    "build.gradle.kts": "gradle",
    "Gemfile": "bundler",
    "composer.json": "composer",
}


def split_requirement(spec: str) -> Tuple[str, Optional[str]]:
    """Split ``name==1.0`` / ``name@^2`` style specs into name and version."""
    spec = spec.strip().strip("\"'")
    if spec.startswith("@"):
        # scoped npm package: keep the leading @scope/
        name, version = split_requirement(spec[1:])
        return f"@{name}", version
    spec = re.sub(r"\[.*?\]", "", spec)
    parts = _VERSION_SPLIT.split(spec, 1)
    name = parts[0].strip()
    version = None
    if len(parts) == 3:
        version = (parts[1] + parts[2]).strip() if parts[1] != "@" else parts[2].strip()
        version = version or None
    return name, version


def parse_requirements_text(content: str) -> List[Tuple[str, Optional[str]]]:
    """Collect packages from requirements.txt content."""
    packages: List[Tuple[str, Optional[str]]] = []
    for line in content.splitlines():
        stripped = line.split(" #", 1)[0].strip()
        if not stripped or stripped.startswith(("#", "-")):
            continue
        name, version = split_requirement(stripped.split(";", 1)[0])
        if name and re.fullmatch(r"[A-Za-z0-9][A-Za-z0-9._-]*", name):
            packages.append((name, version))
    return packages


def parse_pyproject_text(content: str) -> Dict[str, List[Tuple[str, Optional[str]]]]:
    """Return runtime/dev packages declared in pyproject.toml content."""
    result: Dict[str, List[Tuple[str, Optional[str]]]] = {"dependencies": [], "dev": []}
    try:
        data = tomllib.loads(content)
    except tomllib.TOMLDecodeError:
        return result

    project = data.get("project")
    if isinstance(project, dict):
        for dep in project.get("dependencies", []) or []:
            if isinstance(dep, str):
                result["dependencies"].append(split_requirement(dep.split(";", 1)[0]))
        optional = project.get("optional-dependencies", {}) or {}
        for values in optional.values():
            for dep in values or []:
                if isinstance(dep, str):
                    result["dev"].append(split_requirement(dep.split(";", 1)[0]))

    tool = data.get("tool") if isinstance(data.get("tool"), dict) else {}
    poetry = tool.get("poetry", {}) if isinstance(tool, dict) else {}
    if isinstance(poetry, dict):
        for name, version in (poetry.get("dependencies", {}) or {}).items():
            if name.lower() != "python":
                result["dependencies"].append((name, version if isinstance(version, str) else None))
        groups = poetry.get("group", {}) or {}
        for group in groups.values():
            if isinstance(group, dict):
                for name, version in (group.get("dependencies", {}) or {}).items():
                    result["dev"].append((name, version if isinstance(version, str) else None))
    return result


def parse_cargo_text(content: str) -> Dict[str, List[Tuple[str, Optional[str]]]]:
    result: Dict[str, List[Tuple[str, Optional[str]]]] = {"dependencies": [], "dev": []}
    try:
        data = tomllib.loads(content)
    except tomllib.TOMLDecodeError:
        return result
    for key, bucket in (("dependencies", "dependencies"), ("dev-dependencies", "dev")):
        section = data.get(key, {})
        if not isinstance(section, dict):
            continue
        for name, value in section.items():
            if isinstance(value, dict):
                value = value.get("version")
            result[bucket].append((name, value if isinstance(value, str) else None))
    return result


def load_package_json_text(content: str) -> Dict[str, object]:
    """Return the parsed package.json snippet or an empty dict."""
    try:
        data = json.loads(content)
    except json.JSONDecodeError:
        return {}
    if isinstance(data, dict):
        return data
    return {}


def parse_node_dependencies(data: Dict[str, object]) -> Dict[str, List[Tuple[str, Optional[str]]]]:
    """Return Node.js dependencies separated into runtime/dev lists."""

    def _extract(key: str) -> List[Tuple[str, Optional[str]]]:
        deps = data.get(key, {})
        if isinstance(deps, dict):
            return sorted((name, str(version)) for name, version in deps.items())
        return []

    return {"dependencies": _extract("dependencies"), "dev": _extract("devDependencies")}


def parse_pom_text(content: str) -> Set[str]:
    deps: Set[str] = set()
    try:
        root = ET.fromstring(content)
    except ET.ParseError:
        return deps

    namespace = _detect_xml_namespace(root)
    tag = f"{{{namespace}}}dependency" if namespace else "dependency"
    group_tag = f"{{{namespace}}}groupId" if namespace else "groupId"
    artifact_tag = f"{{{namespace}}}artifactId" if namespace else "artifactId"

    for dep in root.iter(tag):
        group = dep.findtext(group_tag, default="")
        artifact = dep.findtext(artifact_tag, default="")
        if group and artifact:
            deps.add(f"{group}:{artifact}")
    return deps


def _detect_xml_namespace(element: ET.Element) -> str | None:
    match = re.match(r"\{(.+)}", element.tag)
    return match.group(1) if match else None


def parse_gradle_text(content: str) -> Set[str]:
    deps: Set[str] = set()
    pattern = re.compile(r"['\"]([\w\-.]+:[\w\-.]+)(?::[\w\-.]+)?['\"]")
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("//"):
            continue
        if any(token in line for token in ("implementation", "api", "compile", "runtimeOnly")):
            match = pattern.search(line)
            if match:
                deps.add(match.group(1))
    return deps


def mentioned_package_files(text: str) -> List[str]:
    """Manifest file names mentioned anywhere in ``text``, in first-seen order."""
    found: List[Tuple[int, str]] = []
    for name in PACKAGE_FILES:
        match = re.search(rf"(?<![\w.-]){re.escape(name)}(?![\w-]|\.\w)", text)
        if match:
            found.append((match.start(), name))
    return [name for _, name in sorted(found)]


__all__ = [
    "PACKAGE_FILES",
    "load_package_json_text",
    "mentioned_package_files",
    "parse_cargo_text",
    "parse_gradle_text",
    "parse_node_dependencies",
    "parse_pom_text",
    "parse_pyproject_text",
    "parse_requirements_text",
    "split_requirement",
]
