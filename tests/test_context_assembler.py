"""
Tests for the context assembler.

Tests cover:
- Four-tier assembly for a populated repository
- Domain and category filtering driven by the prompt
- Budget validation and unknown repositories
- Cache hits, normalized keys and expiry
- Quality scoring and truncation metadata

Author: RepoContext Team
"""

import pytest

from repocontext.constants import OperationType
from repocontext.context import ContextAssembler, cache_key, quality_score
from repocontext.models.context import EnterpriseContext
from repocontext.models.knowledge import ArchitecturePattern, CodePattern, DomainModel


PROMPT = "Add a refund endpoint to the payment API"


@pytest.fixture
def assembler(config, populated_store, counter):
    return ContextAssembler(store=populated_store, config=config.context, counter=counter)


class TestAssemble:
    """Tests for ContextAssembler.assemble."""

    def test_all_tiers(self, assembler, repository):
        result = assembler.assemble(PROMPT, repository.id)

        context = result.context
        assert [p.pattern_type for p in context.architecture] == ["event-driven", "repository-pattern"]
        assert context.domain.domain_name == "Payment"
        assert [api.api_name for api in context.apis] == ["Payment Gateway"]
        assert [p.pattern_name for p in context.patterns] == ["PaymentClient Integration Pattern"]
        assert context.standards.framework_type == "r1-core"

        prompt = result.enhanced_prompt
        assert PROMPT in prompt
        for title in ("LEVEL 1", "LEVEL 2", "LEVEL 3", "LEVEL 4", "INSTRUCTIONS"):
            assert title in prompt
        assert "POST /v2/payments" in prompt

    def test_metadata(self, assembler, repository):
        result = assembler.assemble(PROMPT, repository.id)

        metadata = result.metadata
        assert metadata.repository == "payments"
        assert metadata.last_analyzed == repository.analyzed_at
        assert metadata.token_budget == 8000
        assert metadata.operation == OperationType.NEW_FEATURE.value
        assert metadata.domain == "Payment"
        assert metadata.cache_hit is False
        assert metadata.context_quality_score == 1.0
        assert metadata.truncated_tiers == []
        assert metadata.tokens_used == assembler.counter.count(result.enhanced_prompt)

    def test_without_domain(self, assembler, repository):
        result = assembler.assemble("Explain the database query layer", repository.id)

        assert result.context.domain is None
        assert result.context.apis == []
        assert [p.pattern_name for p in result.context.patterns] == ["OrderRepository Integration Pattern"]
        assert "LEVEL 2" not in result.enhanced_prompt
        assert result.metadata.operation == OperationType.UNDERSTANDING.value
        assert result.metadata.context_quality_score == 0.75

    def test_unknown_domain(self, assembler, repository):
        """A domain keyword with no stored model leaves Level 2 empty."""
        result = assembler.assemble("Fix the invoice total", repository.id)

        assert result.metadata.domain == "Invoice"
        assert result.context.domain is None

    def test_small_budget_truncates(self, assembler, repository):
        result = assembler.assemble(PROMPT, repository.id, token_budget=1000)

        assert "architecture" in result.metadata.truncated_tiers
        assert [p.pattern_type for p in result.context.architecture] == ["event-driven"]
        assert result.metadata.token_budget == 1000

    @pytest.mark.parametrize("budget", [0, 999, 16001])
    def test_budget_out_of_range(self, assembler, repository, budget):
        with pytest.raises(ValueError, match="token_budget must be between 1000 and 16000"):
            assembler.assemble(PROMPT, repository.id, token_budget=budget)

    def test_unknown_repository(self, assembler):
        with pytest.raises(ValueError, match="Repository not found: missing"):
            assembler.assemble(PROMPT, "missing")

    def test_empty_repository(self, config, store, repository, counter):
        result = ContextAssembler(store=store, config=config.context, counter=counter).assemble(
            PROMPT, repository.id
        )

        assert result.context.is_empty()
        assert result.metadata.context_quality_score == 0.0
        assert "LEVEL" not in result.enhanced_prompt


class TestCaching:
    """Tests for the assembled context cache."""

    def test_second_call_hits_cache(self, assembler, repository):
        first = assembler.assemble(PROMPT, repository.id)
        second = assembler.assemble(PROMPT, repository.id)

        assert second.metadata.cache_hit is True
        assert second.enhanced_prompt == first.enhanced_prompt
        assert second.context.domain.domain_name == "Payment"
        assert second.metadata.last_analyzed == first.metadata.last_analyzed

    def test_key_ignores_case_and_whitespace(self, assembler, repository):
        assembler.assemble(PROMPT, repository.id)

        again = assembler.assemble(f"  {PROMPT.upper()}  ", repository.id)

        assert again.metadata.cache_hit is True
        assert cache_key("r", "Hello ") == cache_key("r", "hello")
        assert cache_key("r", "hello") != cache_key("other", "hello")

    def test_expired_entries_are_rebuilt(self, assembler, repository):
        assembler.config.cache_ttl_seconds = 0
        assembler.assemble(PROMPT, repository.id)

        again = assembler.assemble(PROMPT, repository.id)

        assert again.metadata.cache_hit is False

    def test_cleared_cache(self, assembler, populated_store, repository):
        assembler.assemble(PROMPT, repository.id)
        populated_store.clear_context_cache(repository.id)

        assert assembler.assemble(PROMPT, repository.id).metadata.cache_hit is False


class TestQualityScore:
    """Tests for quality_score."""

    def test_empty(self):
        assert quality_score(EnterpriseContext()) == 0.0

    def test_partial_standard_ratio(self):
        context = EnterpriseContext(
            architecture=[ArchitecturePattern(pattern_type="monolith", pattern_name="Monolith")],
            patterns=[
                CodePattern(pattern_name="A", is_standard=True),
                CodePattern(pattern_name="B", is_standard=False),
            ],
        )

        assert quality_score(context) == pytest.approx(0.25 + 0.15 + 0.075)

    def test_domain_only(self):
        assert quality_score(EnterpriseContext(domain=DomainModel(domain_name="Order"))) == 0.25
