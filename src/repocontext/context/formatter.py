"""
Prompt Formatter - render knowledge tiers as banner sections.

The enhanced prompt is plain text so any agent can consume it:

    ========================================
    USER REQUEST
    ========================================
    <prompt>

    ========================================
    LEVEL 1: ARCHITECTURAL CONTEXT
    ========================================
    ...

Tiers with nothing to say are left out entirely.
"""

from typing import Optional

from ..constants import ContextTier
from ..models.knowledge import (
    APISpecification,
    ArchitecturePattern,
    CodePattern,
    DomainEntity,
    DomainModel,
    FrameworkFingerprint,
)


BANNER = "=" * 40

TIER_TITLES = {
    ContextTier.ARCHITECTURE: "LEVEL 1: ARCHITECTURAL CONTEXT",
    ContextTier.DOMAIN: "LEVEL 2: DOMAIN KNOWLEDGE",
    ContextTier.PATTERNS: "LEVEL 3: IMPLEMENTATION PATTERNS",
    ContextTier.STANDARDS: "LEVEL 4: FRAMEWORK STANDARDS & CONSTRAINTS",
}

INSTRUCTIONS = """Generate code that:
1. Follows the architectural patterns described in Level 1
2. Uses domain models and services from Level 2
3. Implements using standard patterns from Level 3
4. Adheres to framework conventions from Level 4

Prefer standard patterns with higher usage frequency in the codebase."""


def banner(title: str) -> str:
    return f"{BANNER}\n{title}\n{BANNER}\n"


def format_architecture(pattern: ArchitecturePattern) -> str:
    return (
        f"Pattern: {pattern.pattern_type}\n"
        f"Name: {pattern.pattern_name}\n"
        f"Description: {pattern.description}\n"
        f"Rationale: {pattern.rationale}\n"
        f"Evidence: {pattern.evidence_source}\n"
    )


def _format_entity(entity: DomainEntity) -> str:
    fields = ", ".join(
        f"{f.name}: {f.type}{' (PK)' if f.primary_key else ''}{'' if f.nullable else ' NOT NULL'}"
        for f in entity.fields
    )
    line = f"  - {entity.name}({fields})"
    for relationship in entity.relationships:
        line += f"\n      {relationship.type} {relationship.target} via {relationship.field}"
    return line


def format_domain(model: DomainModel) -> str:
    lines = [f"Domain: {model.domain_name}", f"Summary: {model.summary}", ""]

    lines.append("Entities:")
    lines.extend(_format_entity(entity) for entity in model.entities)
    if not model.entities:
        lines.append("  None")

    lines.append("")
    lines.append("Services:")
    for service in model.services:
        detail = f"  - {service.name}: {', '.join(service.methods) or 'no public methods'}"
        if service.dependencies:
            detail += f" (uses {', '.join(service.dependencies)})"
        lines.append(detail)
    if not model.services:
        lines.append("  None")

    lines.append("")
    lines.append("Business Rules:")
    lines.extend(f"  - {rule}" for rule in model.business_rules)
    if not model.business_rules:
        lines.append("  None")

    return "\n".join(lines) + "\n"


def format_api(spec: APISpecification) -> str:
    lines = [f"API: {spec.api_name}" + (f" {spec.version}" if spec.version else "")]
    if spec.base_url:
        lines.append(f"Base URL: {spec.base_url}")
    if spec.authentication:
        lines.append(f"Authentication: {spec.authentication}")
    if spec.description:
        lines.append(f"Description: {spec.description}")
    for endpoint in spec.endpoints:
        summary = f"  {endpoint.summary}" if endpoint.summary else ""
        lines.append(f"  {endpoint.method} {endpoint.path}{summary}")
    return "\n".join(lines) + "\n"


def format_pattern(pattern: CodePattern) -> str:
    return (
        f"Pattern: {pattern.pattern_name}\n"
        f"Usage: {pattern.frequency} occurrences ({'STANDARD' if pattern.is_standard else 'variant'})\n"
        f"Category: {pattern.category.value}\n"
        f"\nExplanation:\n{pattern.explanation}\n"
        f"\nTemplate:\n{pattern.template}\n"
        f"\nWhen to use:\n{pattern.when_to_use}\n"
    )


def format_standards(fingerprint: FrameworkFingerprint) -> str:
    version = f" {fingerprint.framework_version}" if fingerprint.framework_version else ""
    lines = [f"Framework: {fingerprint.framework_type}{version}"]
    if fingerprint.is_custom and fingerprint.package_name:
        lines.append(f"Custom Framework: {fingerprint.package_name}")
    if fingerprint.config_namespaces:
        lines.append(f"Configuration namespaces: {', '.join(fingerprint.config_namespaces)}")

    lines.append("")
    lines.append("Standard Components:")
    for component in fingerprint.custom_components:
        lines.append(
            f"  - {component.name} ({component.usage}, {component.occurrence_count} uses) in {component.file_path}"
        )
    if not fingerprint.custom_components:
        lines.append("  None")
    return "\n".join(lines) + "\n"


def render_tier(tier: ContextTier, items: list) -> str:
    """Render one tier section, banner included. Empty tiers render as ''."""
    if not items:
        return ""

    if tier == ContextTier.ARCHITECTURE:
        blocks = [format_architecture(item) for item in items]
    elif tier == ContextTier.DOMAIN:
        blocks = [
            format_domain(item) if isinstance(item, DomainModel) else format_api(item)
            for item in items
        ]
    elif tier == ContextTier.PATTERNS:
        blocks = [format_pattern(item) for item in items]
    else:
        blocks = [format_standards(item) for item in items]

    return banner(TIER_TITLES[tier]) + "\n".join(blocks) + "\n"


def format_prompt(user_prompt: str, sections: dict[ContextTier, str], instructions: Optional[str] = None) -> str:
    """Assemble the enhanced prompt from rendered tier sections, in tier order."""
    parts = [banner("USER REQUEST") + user_prompt + "\n\n"]
    for tier in ContextTier:
        section = sections.get(tier)
        if section:
            parts.append(section)
    parts.append(banner("INSTRUCTIONS") + (instructions or INSTRUCTIONS) + "\n")
    return "".join(parts)
