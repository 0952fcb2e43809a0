"""
Data models for RepoContext.

- **knowledge**: Persisted enterprise knowledge (fingerprints, architecture
  patterns, domain models, code patterns, API specs) plus repositories,
  workspaces, extraction logs and MCP tokens.
- **context**: Transient results of hierarchical context assembly
  (Intent, EnterpriseContext, AssembledContext).
- **source**: Class-level facts produced by the tree-sitter parsers.
- **chunk**: Code chunks stored in the vector index.
"""

from .chunk import ChunkType, CodeChunk
from .context import AssembledContext, ContextMetadata, EnterpriseContext, Intent
from .knowledge import (
    APIEndpoint,
    APISpecification,
    ArchitecturePattern,
    CodePattern,
    CustomComponent,
    Dependency,
    DomainEntity,
    DomainModel,
    DomainService,
    EntityField,
    EntityRelationship,
    ExtractionLog,
    FrameworkFingerprint,
    MCPToken,
    PatternVariation,
    Repository,
    Workspace,
)
from .source import SourceClass, SourceField, SourceMethod

__all__ = [
    "APIEndpoint",
    "APISpecification",
    "ArchitecturePattern",
    "AssembledContext",
    "ChunkType",
    "CodeChunk",
    "CodePattern",
    "ContextMetadata",
    "CustomComponent",
    "Dependency",
    "DomainEntity",
    "DomainModel",
    "DomainService",
    "EnterpriseContext",
    "EntityField",
    "EntityRelationship",
    "ExtractionLog",
    "FrameworkFingerprint",
    "Intent",
    "MCPToken",
    "PatternVariation",
    "Repository",
    "SourceClass",
    "SourceField",
    "SourceMethod",
    "Workspace",
]
