"""
Repository Analyzer - Languages, Dependencies and Framework Fingerprint.

First extractor in the pipeline. Its output feeds the pattern miner
(custom components) and the Level 4 knowledge tier (framework standards).

Steps:
    1. Count source files per language
    2. Read dependencies from every supported manifest
    3. Pick the framework: first in-house dependency, else first known one
    4. Find reusable components (*Client, *Service, *Repository classes)
       and count how often the codebase references them
    5. Collect in-house configuration namespaces from application*.yml

Author: RepoContext Team
"""

from collections import Counter
from pathlib import Path
from typing import Optional, Union

import yaml

from ..constants import (
    COMPONENT_NAME_MARKERS,
    DEFAULT_PRIMARY_LANGUAGE,
    ExtractionStage,
    FILE_EXTENSION_TO_LANGUAGE,
    KNOWN_FRAMEWORKS,
    UNKNOWN_FRAMEWORK,
)
from ..logging import get_logger, log_operation_end, log_operation_start
from ..models.knowledge import CustomComponent, Dependency, FrameworkFingerprint
from ..parsers import JavaParser, ManifestParser, PythonParser
from ..services.source_tree import SourceTree
from .base import BaseExtractor, word_pattern


logger = get_logger(__name__)


CONFIG_FILE_PATTERNS = ["application*.yml", "application*.yaml"]

# Name marker -> usage description, checked in order
COMPONENT_USAGES = [
    ("Client", "HTTP client wrapper"),
    ("Service", "Service layer"),
    ("Repository", "Data access layer"),
    ("Controller", "REST controller"),
    ("Response", "Response wrapper"),
]


def identify_framework(name: str) -> str:
    """Map a dependency name to a known framework, or 'Unknown'."""
    lowered = name.lower()
    for marker, framework in KNOWN_FRAMEWORKS.items():
        if marker in lowered:
            return framework
    return UNKNOWN_FRAMEWORK


def infer_usage(component_name: str) -> str:
    for marker, usage in COMPONENT_USAGES:
        if marker in component_name:
            return usage
    return "Unknown"


class RepositoryAnalyzer(BaseExtractor):
    """Detect languages, dependencies, frameworks and in-house components."""

    def __init__(self, config=None, llm=None):
        super().__init__(config, llm)
        self.manifest_parser = ManifestParser()
        self.java_parser = JavaParser()
        self.python_parser = PythonParser()

    @property
    def stage(self) -> str:
        return ExtractionStage.REPOSITORY.value

    def analyze(self, repo_path: Union[Path, SourceTree]) -> FrameworkFingerprint:
        """Fingerprint a checkout.

        Args:
            repo_path: Repository root or an existing SourceTree over it

        Returns:
            The fingerprint; ``framework_type`` is 'Unknown' when no
            framework could be identified.
        """
        tree = self._tree(repo_path)
        start_time = log_operation_start(logger, "Repository analysis", repo_path=str(tree.root))

        languages = self.detect_languages(tree)
        dependencies = self.extract_dependencies(tree)
        custom = [d for d in dependencies if self.config.is_custom_package(d.qualified_name)]
        framework = custom[0] if custom else self._first_known_framework(dependencies)

        components = self.extract_custom_components(tree)
        fingerprint = FrameworkFingerprint(
            framework_type=self._framework_type(framework, is_custom=bool(custom)),
            framework_version=framework.version if framework else None,
            is_custom=bool(custom),
            package_name=framework.package_name if framework else None,
            custom_components=components,
            dependency_file=framework.source if framework else None,
            config_namespaces=self.detect_config_namespaces(tree),
            detected_languages=languages,
            dependencies=dependencies,
            metadata={
                "dependency_count": len(dependencies),
                "custom_dependencies": [d.package_name for d in custom],
            },
        )

        log_operation_end(
            logger,
            "Repository analysis",
            start_time,
            framework=fingerprint.framework_type,
            dependencies=len(dependencies),
            components=len(components),
        )
        return fingerprint

    def extract(self, repo_path: Union[Path, SourceTree]) -> FrameworkFingerprint:
        return self.analyze(repo_path)

    @staticmethod
    def primary_language(fingerprint: FrameworkFingerprint) -> str:
        return fingerprint.primary_language or DEFAULT_PRIMARY_LANGUAGE

    def detect_languages(self, tree: SourceTree) -> dict[str, int]:
        counts: Counter = Counter()
        for file_path in tree.files:
            language = FILE_EXTENSION_TO_LANGUAGE.get(file_path.suffix)
            if language:
                counts[language] += 1
        return dict(counts)

    def extract_dependencies(self, tree: SourceTree) -> list[Dependency]:
        dependencies = []
        for file_path in tree.files:
            if not self.manifest_parser.is_manifest(file_path):
                continue
            content = tree.read(file_path)
            if content is None:
                continue
            dependencies.extend(
                self.manifest_parser.parse_content(file_path.name, content, tree.relative(file_path))
            )
        return dependencies

    @staticmethod
    def _first_known_framework(dependencies: list[Dependency]) -> Optional[Dependency]:
        for dependency in dependencies:
            if identify_framework(dependency.name) != UNKNOWN_FRAMEWORK:
                return dependency
        return None

    @staticmethod
    def _framework_type(framework: Optional[Dependency], is_custom: bool) -> str:
        if framework is None:
            return UNKNOWN_FRAMEWORK
        known = identify_framework(framework.name)
        if is_custom and known == UNKNOWN_FRAMEWORK:
            return framework.name
        return known

    def extract_custom_components(self, tree: SourceTree) -> list[CustomComponent]:
        """Find *Client/*Service/*Repository classes and count their references.

        Java scanning is capped at ``max_component_files`` files.
        """
        java_files = tree.with_suffix(".java")[: self.config.max_component_files]
        python_files = tree.with_suffix(".py")

        components: dict[str, CustomComponent] = {}
        for parser, files in ((self.java_parser, java_files), (self.python_parser, python_files)):
            for file_path in files:
                for source_class in parser.parse_file(file_path, relative_to=tree.root):
                    name = source_class.name
                    if name in components or not any(m in name for m in COMPONENT_NAME_MARKERS):
                        continue
                    components[name] = CustomComponent(
                        name=name,
                        usage=infer_usage(name),
                        file_path=source_class.file_path,
                    )

        if not components:
            return []

        source_texts = [
            content
            for _, content in tree.texts(tree.with_suffix(*FILE_EXTENSION_TO_LANGUAGE.keys()))
        ]
        for component in components.values():
            pattern = word_pattern(component.name)
            component.occurrence_count = sum(len(pattern.findall(text)) for text in source_texts)

        return sorted(components.values(), key=lambda c: c.occurrence_count, reverse=True)

    def detect_config_namespaces(self, tree: SourceTree) -> list[str]:
        """Top-level keys of Spring application configs that look in-house."""
        namespaces: set[str] = set()
        for file_path, content in tree.texts(tree.matching(CONFIG_FILE_PATTERNS)):
            try:
                documents = list(yaml.safe_load_all(content))
            except yaml.YAMLError as error:
                logger.debug("Skipping malformed config", extra={"file_path": tree.relative(file_path), "error": str(error)})
                continue
            for document in documents:
                if not isinstance(document, dict):
                    continue
                for key in document:
                    if isinstance(key, str) and self.config.is_custom_package(key):
                        namespaces.add(f"{key}.*")
        return sorted(namespaces)
