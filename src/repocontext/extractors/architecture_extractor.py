"""
Architecture Extractor - Design Patterns and Architectural Decisions.

Two sources, in order of trust:

1. Documentation (confidence 0.9): architecture-related markdown is sent
   to the LLM, and the first pattern it reports for each document is kept.
2. Code (confidence 0.7-0.9): used only when the docs yield nothing.
   Annotation counts and build dependencies reveal event-driven designs,
   microservices vs monolith, the repository pattern and messaging.

Author: RepoContext Team
"""

from pathlib import Path
from typing import Optional, Union

from ..constants import (
    ARCHITECTURE_DOC_KEYWORDS,
    EVENT_DRIVEN_MIN_LISTENERS,
    ExtractionStage,
    MICROSERVICES_MIN_SERVICES,
)
from ..logging import get_logger, log_operation_end, log_operation_start
from ..models.knowledge import ArchitecturePattern
from ..services.source_tree import SourceTree
from .base import BaseExtractor


logger = get_logger(__name__)


DOC_FILE_PATTERNS = [
    "docs/*.md",
    "*/docs/*.md",
    "architecture/*.md",
    "*/architecture/*.md",
    "ADR*.md",
    "ARCHITECTURE.md",
    "README.md",
]

INFERRED_FROM_CODE = "inferred from code"

SYSTEM_PROMPT = (
    "You are an expert software architect analyzing documentation. "
    "Extract architectural patterns and return valid JSON only."
)

USER_PROMPT = """Analyze this architecture documentation and extract key patterns.

Documentation:
{content}

Extract:
1. Architectural patterns (microservices, event-driven, monolith, CQRS, saga, etc.)
2. Technology choices (databases, message queues, frameworks)
3. Rationale for decisions (why this approach?)
4. Communication patterns (REST, gRPC, events, sync/async)
5. Data flow and boundaries

Output as JSON:
{{
  "patterns": [{{"type": "string", "name": "string", "description": "string", "rationale": "string"}}],
  "technologies": [{{"name": "string", "purpose": "string", "reasoning": "string"}}],
  "communication_patterns": ["string"],
  "principles": ["string"]
}}"""

# (dependency marker, broker name, communication patterns, principles)
MESSAGING_SYSTEMS = [
    (("spring-kafka", "kafka-clients"), "Apache Kafka", ["publish-subscribe", "event-streaming"], ["scalability", "fault-tolerance"]),
    (("spring-rabbit", "amqp-client"), "RabbitMQ", ["message-queue", "publish-subscribe"], ["reliability", "loose-coupling"]),
]


def is_architecture_related(content: str) -> bool:
    lowered = content.lower()
    return any(keyword in lowered for keyword in ARCHITECTURE_DOC_KEYWORDS)


class ArchitectureExtractor(BaseExtractor):
    """Extract architecture patterns from docs, falling back to code signals."""

    @property
    def stage(self) -> str:
        return ExtractionStage.ARCHITECTURE.value

    def extract(self, repo_path: Union[Path, SourceTree]) -> list[ArchitecturePattern]:
        tree = self._tree(repo_path)
        start_time = log_operation_start(logger, "Architecture extraction", repo_path=str(tree.root))

        patterns = self.analyze_documentation(tree)
        if not patterns:
            patterns = self.infer_from_code(tree)

        log_operation_end(logger, "Architecture extraction", start_time, patterns=len(patterns))
        return patterns

    # ------------------------------------------------------------------
    # Documentation
    # ------------------------------------------------------------------

    def analyze_documentation(self, tree: SourceTree) -> list[ArchitecturePattern]:
        """Ask the LLM about each architecture-related document."""
        if not self.llm.is_available:
            logger.info("LLM unavailable, skipping documentation analysis")
            return []

        doc_files = tree.matching(DOC_FILE_PATTERNS)[: self.config.max_doc_files]
        logger.info("Found documentation files", extra={"count": len(doc_files)})

        patterns = []
        for file_path, content in tree.texts(doc_files):
            if not is_architecture_related(content):
                continue
            pattern = self._analyze_document(content, tree.relative(file_path))
            if pattern:
                patterns.append(pattern)
        return patterns

    def _analyze_document(self, content: str, relative_path: str) -> Optional[ArchitecturePattern]:
        result = self.llm.complete_json(
            SYSTEM_PROMPT,
            USER_PROMPT.format(content=content[: self.config.max_doc_chars]),
        )
        if not result:
            return None

        reported = [p for p in result.get("patterns") or [] if isinstance(p, dict) and p.get("type")]
        if not reported:
            return None

        main = reported[0]
        return ArchitecturePattern(
            pattern_type=str(main["type"]),
            pattern_name=str(main.get("name") or main["type"]),
            description=str(main.get("description") or ""),
            rationale=str(main.get("rationale") or ""),
            evidence_source=relative_path,
            confidence_score=0.9,
            metadata={
                "additional_patterns": reported[1:],
                "technologies": result.get("technologies") or [],
                "communication_patterns": result.get("communication_patterns") or [],
                "principles": result.get("principles") or [],
            },
        )

    # ------------------------------------------------------------------
    # Code inference
    # ------------------------------------------------------------------

    def infer_from_code(self, tree: SourceTree) -> list[ArchitecturePattern]:
        logger.info("Inferring architecture patterns from code")
        java_sources = list(tree.texts(tree.with_suffix(".java")))

        detected = [
            self.detect_event_driven(java_sources),
            self.detect_service_architecture(tree, java_sources),
            self.detect_repository_pattern(java_sources),
            self.detect_messaging(tree),
        ]
        return [pattern for pattern in detected if pattern is not None]

    def detect_event_driven(self, java_sources: list[tuple[Path, str]]) -> Optional[ArchitecturePattern]:
        """Many listener-annotated files suggest an event-driven design."""
        counts = {"@EventListener": 0, "@KafkaListener": 0, "@RabbitListener": 0}
        for _, content in java_sources:
            for annotation in counts:
                if annotation in content:
                    counts[annotation] += 1

        total = sum(counts.values())
        if total <= EVENT_DRIVEN_MIN_LISTENERS:
            return None

        kafka, rabbit = counts["@KafkaListener"], counts["@RabbitListener"]
        if kafka > rabbit:
            broker = "Apache Kafka"
        elif rabbit > 0:
            broker = "RabbitMQ"
        else:
            broker = "Unknown"

        return ArchitecturePattern(
            pattern_type="event-driven",
            pattern_name="Event-Driven Architecture",
            description="Asynchronous event-based communication between components",
            rationale="Inferred from high usage of event listeners and message handlers",
            evidence_source=INFERRED_FROM_CODE,
            confidence_score=0.75,
            metadata={
                "event_listener_count": counts["@EventListener"],
                "kafka_listener_count": kafka,
                "rabbit_listener_count": rabbit,
                "message_broker": broker,
                "communication_patterns": ["asynchronous", "event-driven"],
                "principles": ["loose coupling", "eventual consistency"],
            },
        )

    def detect_service_architecture(
        self, tree: SourceTree, java_sources: list[tuple[Path, str]]
    ) -> Optional[ArchitecturePattern]:
        """Controllers spread over several top-level modules suggest microservices."""
        controller_count = 0
        services: set[str] = set()
        for file_path, content in java_sources:
            if "@RestController" not in content and "@Controller" not in content:
                continue
            controller_count += 1
            parts = tree.relative(file_path).split("/")
            if len(parts) > 2:
                services.add(parts[0])

        if controller_count == 0:
            return None

        is_microservices = len(services) > MICROSERVICES_MIN_SERVICES
        return ArchitecturePattern(
            pattern_type="microservices" if is_microservices else "monolith",
            pattern_name="Microservices Architecture" if is_microservices else "Monolithic Architecture",
            description=(
                "Multiple independent services with their own controllers"
                if is_microservices
                else "Single application with all functionality"
            ),
            rationale=f"Found {controller_count} controllers across {len(services)} service(s)",
            evidence_source=INFERRED_FROM_CODE,
            confidence_score=0.7,
            metadata={
                "controller_count": controller_count,
                "service_count": len(services),
                "service_names": sorted(services),
                "communication_patterns": ["REST"],
                "principles": (
                    ["service autonomy", "decentralization"]
                    if is_microservices
                    else ["simplicity", "single deployment"]
                ),
            },
        )

    def detect_repository_pattern(self, java_sources: list[tuple[Path, str]]) -> Optional[ArchitecturePattern]:
        repository_count = sum(1 for _, content in java_sources if "@Repository" in content)
        if repository_count == 0:
            return None

        entity_count = sum(1 for _, content in java_sources if "@Entity" in content)
        transactional_count = sum(1 for _, content in java_sources if "@Transactional" in content)
        return ArchitecturePattern(
            pattern_type="repository-pattern",
            pattern_name="Repository Pattern with JPA",
            description="Data access abstraction using repository pattern",
            rationale=f"Found {repository_count} repositories and {entity_count} entities",
            evidence_source=INFERRED_FROM_CODE,
            confidence_score=0.8,
            metadata={
                "repository_count": repository_count,
                "entity_count": entity_count,
                "transactional_count": transactional_count,
                "technologies": [
                    {
                        "name": "JPA/Hibernate",
                        "purpose": "ORM for database access",
                        "reasoning": "Detected @Entity and @Repository annotations",
                    }
                ],
                "principles": ["separation of concerns", "abstraction"],
            },
        )

    def detect_messaging(self, tree: SourceTree) -> Optional[ArchitecturePattern]:
        """Messaging client libraries declared in a Maven build."""
        for file_path, content in tree.texts(tree.matching(["pom.xml"])):
            for markers, broker, communication, principles in MESSAGING_SYSTEMS:
                if any(marker in content for marker in markers):
                    return ArchitecturePattern(
                        pattern_type="messaging",
                        pattern_name=f"{broker} Messaging",
                        description=f"Messaging using {broker}",
                        rationale=f"{broker} dependencies detected in project",
                        evidence_source=tree.relative(file_path),
                        confidence_score=0.9,
                        metadata={
                            "messaging_system": broker,
                            "communication_patterns": communication,
                            "principles": principles,
                        },
                    )
        return None
