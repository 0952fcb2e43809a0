"""Transient models produced while assembling hierarchical context."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Optional

from ..constants import OperationType, PatternCategory
from .knowledge import (
    APISpecification,
    ArchitecturePattern,
    CodePattern,
    DomainModel,
    FrameworkFingerprint,
)


@dataclass
class Intent:
    """
    What a prompt is asking for.

    Attributes:
        operation: Kind of work requested; drives the budget split
        domain: Capitalized business domain mentioned, if any
        technologies: Capitalized technologies mentioned
        category: Pattern category the prompt touches, if any
    """

    operation: OperationType = OperationType.GENERAL
    domain: Optional[str] = None
    technologies: list[str] = field(default_factory=list)
    category: Optional[PatternCategory] = None


@dataclass
class EnterpriseContext:
    """Knowledge gathered from the four tiers for one prompt."""

    architecture: list[ArchitecturePattern] = field(default_factory=list)
    domain: Optional[DomainModel] = None
    apis: list[APISpecification] = field(default_factory=list)
    patterns: list[CodePattern] = field(default_factory=list)
    standards: Optional[FrameworkFingerprint] = None

    def is_empty(self) -> bool:
        return not (self.architecture or self.domain or self.apis or self.patterns or self.standards)

    def to_dict(self) -> dict[str, Any]:
        return {
            "architecture": [p.model_dump(mode="json") for p in self.architecture],
            "domain": self.domain.model_dump(mode="json") if self.domain else None,
            "apis": [a.model_dump(mode="json") for a in self.apis],
            "patterns": [p.model_dump(mode="json") for p in self.patterns],
            "standards": self.standards.model_dump(mode="json") if self.standards else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EnterpriseContext":
        return cls(
            architecture=[ArchitecturePattern.model_validate(p) for p in data.get("architecture", [])],
            domain=DomainModel.model_validate(data["domain"]) if data.get("domain") else None,
            apis=[APISpecification.model_validate(a) for a in data.get("apis", [])],
            patterns=[CodePattern.model_validate(p) for p in data.get("patterns", [])],
            standards=(
                FrameworkFingerprint.model_validate(data["standards"])
                if data.get("standards") else None
            ),
        )


@dataclass
class ContextMetadata:
    """Bookkeeping returned alongside an assembled prompt."""

    repository: str
    last_analyzed: Optional[datetime]
    tokens_used: int
    token_budget: int
    context_quality_score: float
    query_time_ms: int
    cache_hit: bool = False
    operation: str = OperationType.GENERAL.value
    domain: Optional[str] = None
    truncated_tiers: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["last_analyzed"] = self.last_analyzed.isoformat() if self.last_analyzed else None
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ContextMetadata":
        values = dict(data)
        if values.get("last_analyzed"):
            values["last_analyzed"] = datetime.fromisoformat(values["last_analyzed"])
        return cls(**values)


@dataclass
class AssembledContext:
    """The result of ContextAssembler.assemble()."""

    enhanced_prompt: str
    context: EnterpriseContext
    metadata: ContextMetadata

    def to_dict(self) -> dict[str, Any]:
        return {
            "enhanced_prompt": self.enhanced_prompt,
            "context": self.context.to_dict(),
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AssembledContext":
        return cls(
            enhanced_prompt=data["enhanced_prompt"],
            context=EnterpriseContext.from_dict(data["context"]),
            metadata=ContextMetadata.from_dict(data["metadata"]),
        )
