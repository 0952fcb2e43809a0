"""
Pattern Miner - How In-House Components Are Actually Used.

For every custom component found by the repository analyzer, the miner
collects its usages, reduces each usage to a small structural signature
and groups identical signatures. The biggest group is the house style;
when it covers more than ``standard_threshold`` of all usages the pattern
is marked standard and becomes a Level 3 constraint for generated code.

Signature features:
    declaration     field_autowired | constructor_inject | manual_new | unknown
    configuration   builder_pattern | constructor_config | none
    params          subset of baseUrl, timeout, retryPolicy
    response_check  isSuccess_method | getStatus_method | none
    error_handling  try_catch | if_else | none

Author: RepoContext Team
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union

from ..constants import (
    COMPONENT_CATEGORY_SUFFIXES,
    ExtractionStage,
    FALLBACK_PATTERN_MIN_OCCURRENCES,
    PatternCategory,
    USAGE_CONTEXT_AFTER,
    USAGE_CONTEXT_BEFORE,
)
from ..logging import get_logger, log_operation_end, log_operation_start
from ..models.knowledge import CodePattern, CustomComponent, PatternVariation
from ..services.source_tree import SourceTree
from .base import BaseExtractor, word_pattern


logger = get_logger(__name__)


SOURCE_SUFFIXES = (".java", ".py")
TEST_DIRECTORIES = {"test", "tests"}
MAX_TEMPLATE_EXAMPLES = 5
MAX_PATTERN_EXAMPLES = 3
MAX_VARIATIONS = 3

TRACKED_PARAMETERS = ("baseUrl", "timeout", "retryPolicy")
REST_CLIENT_CALLS = (".postForEntity", ".exchange", ".retrieve")

SYSTEM_PROMPT = (
    "You are an expert code analyzer. Extract patterns and generate templates. "
    "Return valid JSON only."
)

USER_PROMPT = """These code examples all follow the same pattern for using {component}:

{examples}

Generate:
1. A generalized template with placeholders:
   - Use ${{ClassName}} for class names
   - Use ${{ServiceName}} for service names
   - Use ${{baseUrl}} for URLs
   - Use ${{methodName}} for method names
   - Use ${{RequestType}} and ${{ResponseType}} for types

2. Explanation: What does this pattern do? (2-3 sentences)

3. When to use: Guidelines for applying this pattern (2-3 sentences)

4. Configuration options: What parameters are customizable?

Output JSON:
{{
  "template": "string (with placeholders)",
  "explanation": "string",
  "when_to_use": "string",
  "configuration_options": [{{"param": "string", "description": "string", "default": "string"}}]
}}"""


@dataclass
class Usage:
    """One place a component is referenced, with surrounding code."""

    file_path: str
    line: int
    code: str
    structure: dict[str, Any]

    def as_example(self) -> str:
        return f"// {self.file_path}:{self.line}\n{self.code}"


def categorize(component_name: str) -> PatternCategory:
    for suffix, category in COMPONENT_CATEGORY_SUFFIXES:
        if suffix in component_name:
            return category
    return PatternCategory.GENERAL


def extract_structure(code: str, component_name: str) -> dict[str, Any]:
    """Reduce a usage snippet to its structural signature."""
    if "@Autowired" in code:
        declaration = "field_autowired"
    elif f"new {component_name}" in code or f"= {component_name}(" in code:
        declaration = "manual_new"
    elif "private final" in code or f": {component_name}" in code:
        declaration = "constructor_inject"
    else:
        declaration = "unknown"

    if ".builder()" in code:
        configuration = "builder_pattern"
    elif f"{component_name}(" in code:
        configuration = "constructor_config"
    else:
        configuration = "none"

    if ".isSuccess()" in code:
        response_check = "isSuccess_method"
    elif ".getStatus()" in code:
        response_check = "getStatus_method"
    else:
        response_check = "none"

    if "try {" in code or "try:" in code:
        error_handling = "try_catch"
    elif "if (" in code or "if " in code:
        error_handling = "if_else"
    else:
        error_handling = "none"

    return {
        "declaration": declaration,
        "configuration": configuration,
        "params": [p for p in TRACKED_PARAMETERS if p in code],
        "response_check": response_check,
        "error_handling": error_handling,
    }


def group_by_structure(usages: list[Usage]) -> list[list[Usage]]:
    """Group usages with identical signatures, most frequent group first."""
    groups: dict[str, list[Usage]] = {}
    for usage in usages:
        groups.setdefault(json.dumps(usage.structure, sort_keys=True), []).append(usage)
    return sorted(groups.values(), key=len, reverse=True)


class PatternMiner(BaseExtractor):
    """Mine the dominant usage pattern of each custom component."""

    @property
    def stage(self) -> str:
        return ExtractionStage.PATTERNS.value

    def extract(
        self,
        repo_path: Union[Path, SourceTree],
        custom_components: Optional[list[CustomComponent]] = None,
    ) -> list[CodePattern]:
        return self.mine(repo_path, custom_components or [])

    def mine(self, repo_path: Union[Path, SourceTree], custom_components: list[CustomComponent]) -> list[CodePattern]:
        """Mine component patterns, falling back to common Spring patterns.

        The fallback runs when there are no components or none of them
        yields a usage.
        """
        tree = self._tree(repo_path)
        start_time = log_operation_start(logger, "Pattern mining", components=len(custom_components))

        sources = [
            (tree.relative(file_path), content)
            for file_path, content in tree.texts(tree.with_suffix(*SOURCE_SUFFIXES))
            if not TEST_DIRECTORIES & set(file_path.relative_to(tree.root).parts)
        ]

        patterns = []
        for component in custom_components:
            pattern = self.mine_component(component, sources)
            if pattern:
                patterns.append(pattern)

        if not patterns:
            patterns = self.mine_common_patterns(sources)

        log_operation_end(logger, "Pattern mining", start_time, patterns=len(patterns))
        return patterns

    def find_usages(self, component: CustomComponent, sources: list[tuple[str, str]]) -> list[Usage]:
        """Whole-word references outside the component's own file."""
        pattern = word_pattern(component.name)
        usages = []
        for relative_path, content in sources:
            if relative_path == component.file_path or component.name not in content:
                continue
            lines = content.split("\n")
            for index, line in enumerate(lines):
                if not pattern.search(line):
                    continue
                start = max(0, index - USAGE_CONTEXT_BEFORE)
                end = min(len(lines), index + USAGE_CONTEXT_AFTER)
                code = "\n".join(lines[start:end])
                usages.append(Usage(relative_path, index + 1, code, extract_structure(code, component.name)))
        return usages

    def mine_component(self, component: CustomComponent, sources: list[tuple[str, str]]) -> Optional[CodePattern]:
        usages = self.find_usages(component, sources)
        logger.debug("Component usages", extra={"component": component.name, "usages": len(usages)})
        if not usages:
            return None

        groups = group_by_structure(usages)
        standard_group = groups[0]
        total = len(usages)
        template = self.generate_template(component.name, standard_group[:MAX_TEMPLATE_EXAMPLES], total)

        return CodePattern(
            pattern_name=f"{component.name} Integration Pattern",
            category=categorize(component.name),
            frequency=total,
            is_standard=len(standard_group) / total > self.config.standard_threshold,
            template=template["template"],
            explanation=template["explanation"],
            when_to_use=template["when_to_use"],
            examples=[u.as_example() for u in standard_group[:MAX_PATTERN_EXAMPLES]],
            variations=self.analyze_variations(groups[1:], total),
            metadata={
                "component": component.name,
                "component_file": component.file_path,
                "structure": standard_group[0].structure,
                "standard_share": round(len(standard_group) / total, 3),
                "configuration_options": template.get("configuration_options", []),
            },
        )

    def generate_template(self, component_name: str, examples: list[Usage], total: int) -> dict[str, Any]:
        """Template and explanation from the LLM, or the first example verbatim."""
        fallback = {
            "template": examples[0].code,
            "explanation": (
                f"Standard usage of {component_name}, "
                f"observed in {len(examples)} representative examples out of {total} usages."
            ),
            "when_to_use": f"Use whenever code needs {component_name}.",
            "configuration_options": [],
        }
        if not self.llm.is_available:
            return fallback

        examples_text = "\n\n".join(f"Example {i + 1}:\n{u.code}" for i, u in enumerate(examples))
        result = self.llm.complete_json(
            SYSTEM_PROMPT,
            USER_PROMPT.format(component=component_name, examples=examples_text),
        )
        if not result or not result.get("template"):
            return fallback

        return {
            "template": str(result["template"]),
            "explanation": str(result.get("explanation") or fallback["explanation"]),
            "when_to_use": str(result.get("when_to_use") or fallback["when_to_use"]),
            "configuration_options": result.get("configuration_options") or [],
        }

    def analyze_variations(self, groups: list[list[Usage]], total: int) -> list[PatternVariation]:
        """The most frequent non-standard structures, with their share of all usages."""
        variations = []
        for group in groups[:MAX_VARIATIONS]:
            percentage = round(len(group) / total * 100, 1)
            variations.append(
                PatternVariation(
                    structure=group[0].structure,
                    count=len(group),
                    percentage=percentage,
                    is_valid=percentage >= self.config.min_variation_percentage,
                    example=group[0].code,
                )
            )
        return variations

    # ------------------------------------------------------------------
    # Fallback patterns
    # ------------------------------------------------------------------

    def mine_common_patterns(self, sources: list[tuple[str, str]]) -> list[CodePattern]:
        patterns = [self.mine_rest_client_pattern(sources), self.mine_repository_pattern(sources)]
        return [p for p in patterns if p is not None]

    def mine_rest_client_pattern(self, sources: list[tuple[str, str]]) -> Optional[CodePattern]:
        usages = []
        for relative_path, content in sources:
            if "RestTemplate" not in content and "WebClient" not in content:
                continue
            lines = content.split("\n")
            for index, line in enumerate(lines):
                if any(call in line for call in REST_CLIENT_CALLS):
                    code = "\n".join(lines[max(0, index - 3) : index + 7])
                    usages.append(Usage(relative_path, index + 1, code, {}))

        if len(usages) <= FALLBACK_PATTERN_MIN_OCCURRENCES:
            return None

        return CodePattern(
            pattern_name="REST API Client Pattern",
            category=PatternCategory.API_CLIENT,
            frequency=len(usages),
            is_standard=True,
            template=(
                "ResponseEntity<${ResponseType}> response = restTemplate.exchange(\n"
                "    url, HttpMethod.POST, entity, ${ResponseType}.class);"
            ),
            explanation="Standard Spring RestTemplate/WebClient pattern for making HTTP requests",
            when_to_use="Use when making HTTP calls to external APIs",
            examples=[u.as_example() for u in usages[:MAX_PATTERN_EXAMPLES]],
        )

    def mine_repository_pattern(self, sources: list[tuple[str, str]]) -> Optional[CodePattern]:
        repositories = [path for path, _ in sources if path.endswith("Repository.java")]
        if len(repositories) <= FALLBACK_PATTERN_MIN_OCCURRENCES:
            return None

        return CodePattern(
            pattern_name="JPA Repository Pattern",
            category=PatternCategory.DATABASE_ACCESS,
            frequency=len(repositories),
            is_standard=True,
            template=(
                "public interface ${EntityName}Repository extends JpaRepository<${EntityName}, ${IdType}> {\n"
                "    // Custom query methods\n"
                "}"
            ),
            explanation="Spring Data JPA repository pattern for database access",
            when_to_use="Use for all database entity operations",
            metadata={"files": repositories[:MAX_PATTERN_EXAMPLES]},
        )
