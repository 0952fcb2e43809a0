"""
Shared fixtures for the RepoContext test suite.

Every test runs against a fresh data directory under tmp_path so the
knowledge database, clones and vectors never touch the user's home.

Author: RepoContext Team
"""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

# No log files during tests
os.environ.setdefault("REPOCONTEXT_LOG_TO_FILE", "0")

from repocontext.config import Config, StorageConfig, reset_config, set_config
from repocontext.constants import ExtractionStatus, PatternCategory
from repocontext.models.knowledge import (
    APIEndpoint,
    APISpecification,
    ArchitecturePattern,
    CodePattern,
    CustomComponent,
    DomainEntity,
    DomainModel,
    DomainService,
    EntityField,
    FrameworkFingerprint,
    Repository,
)
from repocontext.services.knowledge_store import KnowledgeStore
from repocontext.services.llm import LLMService
from repocontext.services.token_counter import TokenCounter


@pytest.fixture
def config(tmp_path):
    """Install a configuration rooted in tmp_path, with the LLM disabled."""
    reset_config()
    test_config = Config(storage=StorageConfig(data_dir=tmp_path / "data"))
    test_config.llm.enabled = False
    set_config(test_config)
    yield test_config
    reset_config()


@pytest.fixture
def store(config):
    """Empty knowledge store in the test data directory."""
    return KnowledgeStore(config.storage.database_path)


@pytest.fixture
def no_llm(config):
    return LLMService(config.llm)


@pytest.fixture(autouse=True)
def offline_tokenizer():
    """Count tokens with the character estimate so tests never fetch encodings."""
    with patch("repocontext.services.token_counter._load_encoder", return_value=None):
        yield


@pytest.fixture
def counter():
    return TokenCounter()


@pytest.fixture
def repository(store):
    """A registered repository whose extraction has completed."""
    store.get_or_create_workspace("ws-1", "Payments Team")
    repo = store.create_repository(
        Repository(
            workspace_id="ws-1",
            name="payments",
            url="https://github.com/acme/payments.git",
        )
    )
    store.record_extraction_completion(repo.id, ExtractionStatus.COMPLETED, 1200, 0.42)
    return store.get_repository(repo.id)


@pytest.fixture
def populated_store(store, repository):
    """Store with knowledge in all four tiers for ``repository``."""
    store.save_fingerprint(
        repository.id,
        FrameworkFingerprint(
            framework_type="r1-core",
            framework_version="2.3.0",
            is_custom=True,
            package_name="com.company:r1-core",
            custom_components=[
                CustomComponent(
                    name="PaymentClient",
                    usage="HTTP client wrapper",
                    file_path="src/main/java/com/company/PaymentClient.java",
                    occurrence_count=12,
                )
            ],
            config_namespaces=["company.*"],
            detected_languages={"java": 40},
        ),
    )
    store.save_architecture_patterns(
        repository.id,
        [
            ArchitecturePattern(
                pattern_type="event-driven",
                pattern_name="Event-Driven Architecture",
                description="Services communicate through Kafka topics",
                rationale="Decouples payment settlement from checkout",
                evidence_source="docs/architecture.md",
                confidence_score=0.9,
            ),
            ArchitecturePattern(
                pattern_type="repository-pattern",
                pattern_name="Repository Pattern with JPA",
                evidence_source="inferred from code",
                confidence_score=0.8,
            ),
        ],
    )
    store.save_domain_models(
        repository.id,
        [
            DomainModel(
                domain_name="Payment",
                summary="Card payments and refunds",
                entities=[
                    DomainEntity(
                        name="Payment",
                        file_path="src/main/java/com/company/Payment.java",
                        fields=[
                            EntityField(name="id", type="Long", primary_key=True, nullable=False),
                            EntityField(name="amount", type="BigDecimal", nullable=False, validations=["NotNull"]),
                        ],
                    )
                ],
                services=[
                    DomainService(
                        name="PaymentService",
                        file_path="src/main/java/com/company/PaymentService.java",
                        methods=["charge", "refund"],
                        dependencies=["PaymentClient"],
                    )
                ],
                business_rules=["Payment.amount is required"],
            ),
            DomainModel(domain_name="Order", summary="Order lifecycle"),
        ],
    )
    store.save_code_patterns(
        repository.id,
        [
            CodePattern(
                pattern_name="PaymentClient Integration Pattern",
                category=PatternCategory.API_CLIENT,
                frequency=12,
                is_standard=True,
                template="PaymentResponse response = paymentClient.charge(request);",
                explanation="Call the gateway through the shared client",
                when_to_use="Whenever a payment must be charged",
            ),
            CodePattern(
                pattern_name="OrderRepository Integration Pattern",
                category=PatternCategory.DATABASE_ACCESS,
                frequency=8,
                is_standard=True,
                template="orderRepository.save(order);",
            ),
            CodePattern(
                pattern_name="LegacyClient Integration Pattern",
                category=PatternCategory.API_CLIENT,
                frequency=3,
                is_standard=False,
            ),
        ],
    )
    store.save_api_specifications(
        repository.id,
        [
            APISpecification(
                api_name="Payment Gateway",
                base_url="https://pay.example.com",
                version="v2",
                authentication="OAuth2 Bearer",
                endpoints=[APIEndpoint(method="POST", path="/v2/payments", summary="Create a payment")],
                source="openapi.yaml",
            ),
            APISpecification(
                api_name="Shipping",
                endpoints=[APIEndpoint(method="GET", path="/shipments/{id}")],
                source="inferred from code",
            ),
        ],
    )
    return store


def write_files(root: Path, files: dict[str, str]) -> Path:
    """Create ``files`` (relative path -> content) under root."""
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def make_repo(tmp_path):
    """Factory writing a fake checkout under tmp_path/checkout."""

    def _make(files: dict[str, str]) -> Path:
        return write_files(tmp_path / "checkout", files)

    return _make
