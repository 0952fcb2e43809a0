"""Dependency manifest parsing.

Reads declared dependencies from the build files of the common package
managers:

    pom.xml                 Maven, ${property} references resolved
    build.gradle(.kts)      Gradle string coordinates "group:name:version"
    requirements*.txt       pip pins
    package.json            npm dependencies and devDependencies
    go.mod                  Go modules
    Cargo.toml              Rust [dependencies] table
"""

import fnmatch
import json
import re
import tomllib
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Callable

from ..logging import get_logger
from ..models.knowledge import Dependency


logger = get_logger(__name__)


GRADLE_COORDINATE = re.compile(r"""['"]([^:'"\s]+):([^:'"\s]+):([^'"\s]+)['"]""")
REQUIREMENT_LINE = re.compile(r"^([a-zA-Z0-9_.-]+)\s*(?:[=~]=\s*([0-9][0-9a-zA-Z.]*))?")
GO_REQUIREMENT = re.compile(r"^([^\s]+)\s+v([0-9][0-9a-zA-Z.+-]*)")
MAVEN_PROPERTY = re.compile(r"\$\{([^}]+)\}")


class ManifestParser:
    """Parse dependency manifests into Dependency records."""

    def __init__(self):
        self._handlers: list[tuple[str, Callable[[str, str], list[Dependency]]]] = [
            ("pom.xml", self.parse_pom),
            ("build.gradle", self.parse_gradle),
            ("build.gradle.kts", self.parse_gradle),
            ("requirements*.txt", self.parse_requirements),
            ("package.json", self.parse_package_json),
            ("go.mod", self.parse_go_mod),
            ("Cargo.toml", self.parse_cargo),
        ]

    def is_manifest(self, file_path: Path) -> bool:
        return any(fnmatch.fnmatch(file_path.name, pattern) for pattern, _ in self._handlers)

    def parse_content(self, file_name: str, content: str, source: str) -> list[Dependency]:
        """Parse manifest text, choosing the format from the file name.

        Malformed manifests yield no dependencies.
        """
        for pattern, handler in self._handlers:
            if fnmatch.fnmatch(file_name, pattern):
                try:
                    return handler(content, source)
                except (ET.ParseError, json.JSONDecodeError, tomllib.TOMLDecodeError) as error:
                    logger.debug("Skipping malformed manifest", extra={"source": source, "error": str(error)})
                    return []
        return []

    def parse_pom(self, content: str, source: str) -> list[Dependency]:
        root = ET.fromstring(content)
        namespace = {"m": root.tag[1:].split("}")[0]} if root.tag.startswith("{") else {}
        prefix = "m:" if namespace else ""

        properties = {}
        props_node = root.find(f"{prefix}properties", namespace)
        if props_node is not None:
            for prop in props_node:
                properties[prop.tag.split("}")[-1]] = (prop.text or "").strip()
        version_node = root.find(f"{prefix}version", namespace)
        if version_node is not None and version_node.text:
            properties.setdefault("project.version", version_node.text.strip())

        def resolve(value: str | None) -> str | None:
            if not value:
                return None
            return MAVEN_PROPERTY.sub(lambda m: properties.get(m.group(1), m.group(0)), value.strip())

        dependencies = []
        for dep in root.findall(f"{prefix}dependencies/{prefix}dependency", namespace):
            group = dep.findtext(f"{prefix}groupId", namespaces=namespace)
            artifact = dep.findtext(f"{prefix}artifactId", namespaces=namespace)
            if not group or not artifact:
                continue
            scope = dep.findtext(f"{prefix}scope", namespaces=namespace)
            dependencies.append(
                Dependency(
                    name=artifact.strip(),
                    group=resolve(group),
                    version=resolve(dep.findtext(f"{prefix}version", namespaces=namespace)),
                    source=source,
                    is_dev=(scope or "").strip() == "test",
                )
            )
        return dependencies

    def parse_gradle(self, content: str, source: str) -> list[Dependency]:
        return [
            Dependency(name=name, group=group, version=version, source=source)
            for group, name, version in GRADLE_COORDINATE.findall(content)
        ]

    def parse_requirements(self, content: str, source: str) -> list[Dependency]:
        dependencies = []
        for line in content.splitlines():
            line = line.strip()
            if not line or line.startswith(("#", "-")):
                continue
            match = REQUIREMENT_LINE.match(line)
            if match:
                dependencies.append(
                    Dependency(name=match.group(1), version=match.group(2) or "latest", source=source)
                )
        return dependencies

    def parse_package_json(self, content: str, source: str) -> list[Dependency]:
        package = json.loads(content)
        if not isinstance(package, dict):
            return []

        dependencies = []
        for key, is_dev in (("dependencies", False), ("devDependencies", True)):
            for name, version in (package.get(key) or {}).items():
                dependencies.append(Dependency(name=name, version=str(version), source=source, is_dev=is_dev))
        return dependencies

    def parse_go_mod(self, content: str, source: str) -> list[Dependency]:
        dependencies = []
        for line in content.splitlines():
            line = line.strip()
            if line.startswith("require "):
                line = line[len("require "):].strip()
            match = GO_REQUIREMENT.match(line)
            if match:
                dependencies.append(Dependency(name=match.group(1), version=match.group(2), source=source))
        return dependencies

    def parse_cargo(self, content: str, source: str) -> list[Dependency]:
        manifest = tomllib.loads(content)
        dependencies = []
        for key, is_dev in (("dependencies", False), ("dev-dependencies", True)):
            for name, value in (manifest.get(key) or {}).items():
                version = value if isinstance(value, str) else value.get("version")
                dependencies.append(Dependency(name=name, version=version, source=source, is_dev=is_dev))
        return dependencies
