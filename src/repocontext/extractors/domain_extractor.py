"""
Domain Extractor - Business Domains from Entities and Services.

Entities (JPA/ORM classes) and services are grouped into domains by their
class name with technical suffixes removed, so that ``PaymentService``
and ``Payment`` both land in the "Payment" domain. Each domain is then
summarized, by the LLM when available and heuristically otherwise.

Author: RepoContext Team
"""

import json
import re
from collections import OrderedDict
from pathlib import Path
from typing import Optional, Union

from ..constants import DOMAIN_NAME_SUFFIXES, ExtractionStage
from ..logging import get_logger, log_operation_end, log_operation_start
from ..models.knowledge import (
    DomainEntity,
    DomainModel,
    DomainService,
    EntityField,
    EntityRelationship,
)
from ..models.source import SourceClass, SourceField
from ..parsers import JavaParser, PythonParser
from ..services.source_tree import SourceTree
from .base import BaseExtractor


logger = get_logger(__name__)


ENTITY_ANNOTATIONS = ("Entity", "Document", "Table")
PYTHON_MODEL_BASES = ("Model", "Base", "BaseModel", "db.Model", "models.Model", "SQLModel", "DeclarativeBase")
SERVICE_ANNOTATIONS = ("Service",)
INJECTION_ANNOTATIONS = ("Autowired", "Inject")
RELATIONSHIP_ANNOTATIONS = ("OneToMany", "ManyToOne", "OneToOne", "ManyToMany")

# Validation annotation -> rule wording used in heuristic business rules
VALIDATION_RULES = {
    "NotNull": "is required",
    "NotEmpty": "must not be empty",
    "NotBlank": "must not be blank",
    "Size": "must respect size limits",
    "Min": "has a minimum value",
    "Max": "has a maximum value",
    "Pattern": "must match a pattern",
    "Email": "must be a valid email address",
}

TEST_DIRECTORIES = {"test", "tests"}

_SUFFIX_PATTERN = re.compile(rf"({'|'.join(DOMAIN_NAME_SUFFIXES)})$")
_CAMEL_WORDS = re.compile(r"[A-Z]?[a-z0-9]+|[A-Z]+(?![a-z])")
_GENERIC_ARGUMENT = re.compile(r"<\s*([\w.]+)\s*>")
_FIRST_STRING_ARGUMENT = re.compile(r"""\(\s*['"]([\w.]+)['"]""")

SYSTEM_PROMPT = "You are a domain expert analyzing business domains. Return valid JSON only."

USER_PROMPT = """Analyze this domain based on extracted structure.

Domain: {domain}

Entities:
{entities}

Services:
{services}

Generate:
1. Domain summary (2-3 sentences describing what this domain is about)
2. Key entity relationships (how entities connect)
3. Primary operations (main business functions)
4. Inferred business rules (from validations and method names)

Output JSON:
{{
  "summary": "string",
  "relationships": [{{"from": "string", "to": "string", "type": "string", "description": "string"}}],
  "operations": ["string"],
  "business_rules": ["string"]
}}"""


def extract_domain_name(class_name: str) -> str:
    """``PaymentService`` -> ``Payment``, ``OrderItemEntity`` -> ``Order``."""
    stripped = _SUFFIX_PATTERN.sub("", class_name) or class_name
    words = _CAMEL_WORDS.findall(stripped)
    if not words:
        return "Unknown"
    return words[0][:1].upper() + words[0][1:]


class DomainExtractor(BaseExtractor):
    """Build domain models from entity and service classes."""

    def __init__(self, config=None, llm=None):
        super().__init__(config, llm)
        self.java_parser = JavaParser()
        self.python_parser = PythonParser()

    @property
    def stage(self) -> str:
        return ExtractionStage.DOMAIN.value

    def extract(self, repo_path: Union[Path, SourceTree]) -> list[DomainModel]:
        tree = self._tree(repo_path)
        start_time = log_operation_start(logger, "Domain extraction", repo_path=str(tree.root))

        entities: list[DomainEntity] = []
        services: list[DomainService] = []
        for source_class in self._parse_classes(tree):
            if self._is_entity(source_class):
                entities.append(self.build_entity(source_class))
            elif self._is_service(source_class):
                services.append(self.build_service(source_class))

        domains = self.group_by_domain(entities, services)
        models = [
            self.synthesize(name, grouped_entities, grouped_services)
            for name, (grouped_entities, grouped_services) in domains.items()
        ]

        log_operation_end(
            logger,
            "Domain extraction",
            start_time,
            entities=len(entities),
            services=len(services),
            domains=len(models),
        )
        return models

    def _parse_classes(self, tree: SourceTree) -> list[SourceClass]:
        classes = []
        for parser in (self.java_parser, self.python_parser):
            for file_path in tree.with_suffix(*parser.file_extensions):
                if TEST_DIRECTORIES & set(file_path.relative_to(tree.root).parts):
                    continue
                classes.extend(parser.parse_file(file_path, relative_to=tree.root))
        return classes

    @staticmethod
    def _is_entity(source_class: SourceClass) -> bool:
        if source_class.language == "python":
            return any(base in PYTHON_MODEL_BASES for base in source_class.bases)
        return source_class.has_annotation(*ENTITY_ANNOTATIONS)

    @staticmethod
    def _is_service(source_class: SourceClass) -> bool:
        if source_class.language == "python":
            return source_class.name.endswith("Service")
        return source_class.has_annotation(*SERVICE_ANNOTATIONS)

    # ------------------------------------------------------------------
    # Entities
    # ------------------------------------------------------------------

    def build_entity(self, source_class: SourceClass) -> DomainEntity:
        entity = DomainEntity(name=source_class.name, file_path=source_class.file_path)
        for source_field in source_class.fields:
            if "static" in source_field.modifiers:
                continue

            relationship = self._relationship(source_field)
            if relationship:
                entity.relationships.append(relationship)
                continue

            validations = [a for a in source_field.annotations if a in VALIDATION_RULES]
            entity.fields.append(
                EntityField(
                    name=source_field.name,
                    type=source_field.type,
                    nullable=self._is_nullable(source_field, validations),
                    primary_key=self._is_primary_key(source_field),
                    validations=validations,
                )
            )
            entity.validations.extend(f"{source_field.name}: @{rule}" for rule in validations)
        return entity

    @staticmethod
    def _is_nullable(source_field: SourceField, validations: list[str]) -> bool:
        if {"NotNull", "NotEmpty", "NotBlank"} & set(validations):
            return False
        column_args = re.sub(r"\s+", "", source_field.annotation_args.get("Column", ""))
        if "nullable=false" in column_args:
            return False
        if source_field.value and re.search(r"nullable\s*=\s*False", source_field.value):
            return False
        if source_field.value and re.search(r"primary_key\s*=\s*True", source_field.value):
            return False
        return True

    @staticmethod
    def _is_primary_key(source_field: SourceField) -> bool:
        if source_field.has_annotation("Id", "EmbeddedId"):
            return True
        return bool(source_field.value and re.search(r"primary_key\s*=\s*True", source_field.value))

    @staticmethod
    def _relationship(source_field: SourceField) -> Optional[EntityRelationship]:
        for annotation in RELATIONSHIP_ANNOTATIONS:
            if source_field.has_annotation(annotation):
                generic = _GENERIC_ARGUMENT.search(source_field.type)
                target = generic.group(1) if generic else source_field.type
                return EntityRelationship(type=annotation, target=target.split(".")[-1], field=source_field.name)

        # SQLAlchemy: items = relationship("OrderItem", back_populates="order")
        if source_field.value and source_field.type.split(".")[-1] == "relationship":
            target = _FIRST_STRING_ARGUMENT.search(source_field.value)
            if target:
                return EntityRelationship(type="relationship", target=target.group(1), field=source_field.name)
        return None

    # ------------------------------------------------------------------
    # Services
    # ------------------------------------------------------------------

    def build_service(self, source_class: SourceClass) -> DomainService:
        dependencies: list[str] = []
        for source_field in source_class.fields:
            injected = source_field.has_annotation(*INJECTION_ANNOTATIONS)
            constructor_bound = "final" in source_field.modifiers and "static" not in source_field.modifiers
            if injected or constructor_bound:
                dependencies.append(source_field.type)

        for method in source_class.methods:
            if method.is_constructor:
                dependencies.extend(self._parameter_type(p) for p in method.parameters)

        return DomainService(
            name=source_class.name,
            file_path=source_class.file_path,
            methods=[m.name for m in source_class.methods if m.is_public and not m.is_constructor],
            dependencies=[d for d in OrderedDict.fromkeys(dependencies) if d],
        )

    @staticmethod
    def _parameter_type(parameter: str) -> str:
        # Java "OrderRepository orders", Python "orders: OrderRepository"
        if ":" in parameter:
            return parameter.split(":", 1)[1].split("=", 1)[0].strip()
        parts = parameter.split()
        return parts[-2] if len(parts) >= 2 else ""

    # ------------------------------------------------------------------
    # Grouping and synthesis
    # ------------------------------------------------------------------

    @staticmethod
    def group_by_domain(
        entities: list[DomainEntity], services: list[DomainService]
    ) -> dict[str, tuple[list[DomainEntity], list[DomainService]]]:
        domains: dict[str, tuple[list[DomainEntity], list[DomainService]]] = {}
        for entity in entities:
            domains.setdefault(extract_domain_name(entity.name), ([], []))[0].append(entity)
        for service in services:
            domains.setdefault(extract_domain_name(service.name), ([], []))[1].append(service)
        return domains

    def synthesize(
        self, domain_name: str, entities: list[DomainEntity], services: list[DomainService]
    ) -> DomainModel:
        """Summarize a domain, with the LLM when it is available."""
        model = self.heuristic_model(domain_name, entities, services)
        if not self.llm.is_available:
            return model

        result = self.llm.complete_json(
            SYSTEM_PROMPT,
            USER_PROMPT.format(
                domain=domain_name,
                entities=json.dumps([e.model_dump() for e in entities], indent=2),
                services=json.dumps([s.model_dump() for s in services], indent=2),
            ),
        )
        if not result:
            return model

        model.summary = str(result.get("summary") or model.summary)
        relationships = [self._describe_relationship(r) for r in result.get("relationships") or []]
        model.relationships = [r for r in relationships if r] or model.relationships
        model.operations = [str(o) for o in result.get("operations") or []] or model.operations
        model.business_rules = [str(r) for r in result.get("business_rules") or []] or model.business_rules
        return model

    @staticmethod
    def heuristic_model(
        domain_name: str, entities: list[DomainEntity], services: list[DomainService]
    ) -> DomainModel:
        relationships = [
            f"{entity.name} {rel.type} {rel.target} (via {rel.field})"
            for entity in entities
            for rel in entity.relationships
        ]
        operations = list(OrderedDict.fromkeys(m for service in services for m in service.methods))
        business_rules = [
            f"{entity.name}.{field.name} {VALIDATION_RULES[rule]}"
            for entity in entities
            for field in entity.fields
            for rule in field.validations
            if rule in VALIDATION_RULES
        ]
        return DomainModel(
            domain_name=domain_name,
            summary=f"Domain {domain_name} with {len(entities)} entities and {len(services)} services",
            entities=entities,
            services=services,
            relationships=relationships,
            operations=operations,
            business_rules=business_rules,
        )

    @staticmethod
    def _describe_relationship(relationship) -> Optional[str]:
        if isinstance(relationship, str):
            return relationship
        if not isinstance(relationship, dict):
            return None
        text = f"{relationship.get('from', '?')} {relationship.get('type', 'relates to')} {relationship.get('to', '?')}"
        if relationship.get("description"):
            text += f": {relationship['description']}"
        return text
