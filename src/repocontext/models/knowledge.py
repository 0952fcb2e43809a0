"""
Enterprise Knowledge Models - What Extraction Produces.

Each extractor turns a checkout into one kind of record, and the
knowledge store persists them per repository:

    RepositoryAnalyzer    → FrameworkFingerprint (+ CustomComponent list)
    ArchitectureExtractor → ArchitecturePattern
    DomainExtractor       → DomainModel (entities, services, rules)
    PatternMiner          → CodePattern (+ PatternVariation list)
    APISpecExtractor      → APISpecification (+ APIEndpoint list)

The orchestrator additionally maintains Repository rows and an
ExtractionLog trail, and the MCP server authenticates with MCPToken.

Author: RepoContext Team
"""

import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from ..constants import ExtractionStatus, LogLevel, PatternCategory


def new_id() -> str:
    """Generate a new record identifier."""
    return str(uuid.uuid4())


# ============================================================================
# Repositories and Workspaces
# ============================================================================

class Workspace(BaseModel):
    """A group of repositories that share credentials and context."""

    id: str = Field(default_factory=new_id, description="Workspace identifier")
    name: str = Field(description="Human-readable workspace name")
    created_at: datetime = Field(default_factory=datetime.now)


class Repository(BaseModel):
    """
    A source repository registered for knowledge extraction.

    Attributes:
        id: Unique identifier
        workspace_id: Owning workspace
        name: Repository name derived from its URL
        url: Clone URL (or local path for local analysis)
        branch: Branch to analyze, None for the default branch
        primary_language: Language with the most source files
        analyzed_at: When the last extraction finished
        extraction_status: Lifecycle state of the last extraction
    """

    id: str = Field(default_factory=new_id, description="Repository identifier")
    workspace_id: Optional[str] = Field(default=None, description="Owning workspace")
    name: str = Field(description="Repository name")
    url: str = Field(description="Clone URL or local path")
    branch: Optional[str] = Field(default=None, description="Branch to analyze")
    primary_language: Optional[str] = Field(default=None, description="Dominant language")
    analyzed_at: Optional[datetime] = Field(default=None, description="Last completed extraction")
    extraction_status: ExtractionStatus = Field(
        default=ExtractionStatus.PENDING,
        description="Lifecycle state of the last extraction",
    )
    extraction_duration_ms: Optional[int] = Field(default=None, description="Duration of last extraction")
    extraction_cost: float = Field(default=0.0, description="Estimated LLM cost in USD")
    file_count: int = Field(default=0, description="Source files found during analysis")
    created_at: datetime = Field(default_factory=datetime.now)


# ============================================================================
# Framework Fingerprint
# ============================================================================

class Dependency(BaseModel):
    """A declared dependency read from a manifest file."""

    name: str = Field(description="Package name, the artifact id for Maven/Gradle")
    version: Optional[str] = Field(default=None, description="Declared version")
    group: Optional[str] = Field(default=None, description="Maven group id")
    source: str = Field(description="Manifest file the dependency was read from")
    is_dev: bool = Field(default=False, description="Development-only dependency")

    @property
    def qualified_name(self) -> str:
        """group.name for Maven/Gradle coordinates, the bare name otherwise."""
        return f"{self.group}.{self.name}" if self.group else self.name

    @property
    def package_name(self) -> str:
        return f"{self.group}:{self.name}" if self.group else self.name


class CustomComponent(BaseModel):
    """A reusable in-house class (client, service, repository)."""

    name: str = Field(description="Class name")
    usage: str = Field(description="Inferred role, e.g. 'HTTP client'")
    file_path: str = Field(description="Declaring file, relative to the repository root")
    occurrence_count: int = Field(default=0, description="References across the codebase")


class FrameworkFingerprint(BaseModel):
    """
    What the repository is built on.

    The fingerprint is the Level 4 knowledge tier: when the framework is an
    in-house one (is_custom), its components and config namespaces are the
    constraints generated code has to respect.
    """

    framework_type: str = Field(description="Framework name or 'Unknown'")
    framework_version: Optional[str] = Field(default=None, description="Framework version")
    is_custom: bool = Field(default=False, description="Built on an in-house framework")
    package_name: Optional[str] = Field(default=None, description="group:name of the framework package")
    custom_components: list[CustomComponent] = Field(default_factory=list)
    dependency_file: Optional[str] = Field(default=None, description="Manifest the framework came from")
    config_namespaces: list[str] = Field(default_factory=list, description="e.g. 'company.*'")
    detected_languages: dict[str, int] = Field(default_factory=dict, description="Language → file count")
    dependencies: list[Dependency] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def primary_language(self) -> Optional[str]:
        """Language with the most files, None when nothing was detected."""
        if not self.detected_languages:
            return None
        return max(self.detected_languages.items(), key=lambda item: item[1])[0]

    @property
    def file_count(self) -> int:
        return sum(self.detected_languages.values())


# ============================================================================
# Architecture
# ============================================================================

class ArchitecturePattern(BaseModel):
    """An architectural decision observed in docs or inferred from code."""

    pattern_type: str = Field(description="e.g. 'microservices', 'event-driven'")
    pattern_name: str = Field(description="Short human-readable name")
    description: str = Field(default="", description="What the pattern is in this codebase")
    rationale: str = Field(default="", description="Why the codebase uses it")
    evidence_source: str = Field(default="", description="Doc path or code signal")
    confidence_score: float = Field(default=0.5, ge=0.0, le=1.0)
    metadata: dict[str, Any] = Field(default_factory=dict)


# ============================================================================
# Domain Model
# ============================================================================

class EntityField(BaseModel):
    """A persisted attribute of a domain entity."""

    name: str
    type: str
    nullable: bool = True
    primary_key: bool = False
    validations: list[str] = Field(default_factory=list)


class EntityRelationship(BaseModel):
    """A JPA-style association between entities."""

    type: str = Field(description="OneToMany, ManyToOne, OneToOne or ManyToMany")
    target: str = Field(description="Target entity name")
    field: str = Field(description="Field holding the association")


class DomainEntity(BaseModel):
    """A persisted business object."""

    name: str
    file_path: str
    fields: list[EntityField] = Field(default_factory=list)
    relationships: list[EntityRelationship] = Field(default_factory=list)
    validations: list[str] = Field(default_factory=list, description="field: rule strings")


class DomainService(BaseModel):
    """A service class exposing operations for a domain."""

    name: str
    file_path: str
    methods: list[str] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)


class DomainModel(BaseModel):
    """
    Everything known about one business domain (Level 2 knowledge tier).

    Entities and services are grouped under a domain by their class name
    with technical suffixes removed, e.g. PaymentService and PaymentEntity
    both belong to "Payment".
    """

    domain_name: str
    summary: str = ""
    entities: list[DomainEntity] = Field(default_factory=list)
    services: list[DomainService] = Field(default_factory=list)
    relationships: list[str] = Field(default_factory=list)
    operations: list[str] = Field(default_factory=list)
    business_rules: list[str] = Field(default_factory=list)


# ============================================================================
# Code Patterns
# ============================================================================

class PatternVariation(BaseModel):
    """A structural variant of how a component is used."""

    structure: dict[str, Any] = Field(description="Structural signature of the variant")
    count: int
    percentage: float = Field(description="Share of all usages, 0-100")
    is_valid: bool = Field(description="Share is above the reporting threshold")
    example: str = ""


class CodePattern(BaseModel):
    """
    The dominant way a component is used (Level 3 knowledge tier).

    A pattern is standard when its dominant structure accounts for more
    than the configured share of all usages.
    """

    pattern_name: str
    category: PatternCategory = PatternCategory.GENERAL
    frequency: int = Field(default=0, description="Number of usages observed")
    is_standard: bool = False
    template: str = ""
    explanation: str = ""
    when_to_use: str = ""
    examples: list[str] = Field(default_factory=list)
    variations: list[PatternVariation] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


# ============================================================================
# API Specifications
# ============================================================================

class APIEndpoint(BaseModel):
    """A single operation of an API."""

    method: str
    path: str
    summary: Optional[str] = None
    request_schema: Optional[dict[str, Any]] = None
    response_schema: Optional[dict[str, Any]] = None


class APISpecification(BaseModel):
    """An API the repository provides or consumes."""

    api_name: str
    base_url: Optional[str] = None
    version: Optional[str] = None
    description: str = ""
    authentication: Optional[str] = None
    endpoints: list[APIEndpoint] = Field(default_factory=list)
    source: str = Field(default="", description="Spec file path or 'inferred from code'")


# ============================================================================
# Operations
# ============================================================================

class ExtractionLog(BaseModel):
    """One line of an extraction's audit trail."""

    id: Optional[int] = None
    repository_id: str
    stage: str
    level: LogLevel = LogLevel.INFO
    message: str
    details: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.now)


class MCPToken(BaseModel):
    """A long-lived MCP access token. Only the hash is ever stored."""

    id: str = Field(default_factory=new_id)
    workspace_id: str
    name: str
    token_hash: str
    permissions: list[str] = Field(default_factory=list)
    is_active: bool = True
    expires_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.now)
