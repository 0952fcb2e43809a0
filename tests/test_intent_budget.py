"""
Tests for intent classification, budget allocation and prompt formatting.

Tests cover:
- Operation, domain, technology and category keywords
- Word-boundary matching
- Per-operation budget split
- Tier fitting: dropping items, cutting text, emptying
- Banner rendering and tier order

Token counts use the character estimate (see conftest.offline_tokenizer);
test_token_counter.py covers the encoder path.

Author: RepoContext Team
"""

import pytest

from repocontext.constants import TRUNCATION_MARKER, ContextTier, OperationType, PatternCategory
from repocontext.context import allocate, apply_budget, classify_intent
from repocontext.context.budget import fit_tier, tier_items
from repocontext.context.formatter import format_domain, format_prompt, format_standards, render_tier
from repocontext.models.context import EnterpriseContext
from repocontext.models.knowledge import (
    APIEndpoint,
    APISpecification,
    ArchitecturePattern,
    DomainModel,
    FrameworkFingerprint,
)


def architecture(name: str, description: str = "") -> ArchitecturePattern:
    return ArchitecturePattern(
        pattern_type=name.lower(),
        pattern_name=name,
        description=description,
        evidence_source="docs/architecture.md",
    )


class TestClassifyIntent:
    """Tests for classify_intent."""

    def test_new_feature_with_domain_and_technology(self):
        intent = classify_intent("Add a Stripe refund to the payment service")

        assert intent.operation == OperationType.NEW_FEATURE
        assert intent.domain == "Payment"
        assert intent.technologies == ["Stripe"]
        assert intent.category is None

    def test_bug_fix_with_category(self):
        intent = classify_intent("Fix the broken order query")

        assert intent.operation == OperationType.BUG_FIX
        assert intent.domain == "Order"
        assert intent.category == PatternCategory.DATABASE_ACCESS

    def test_understanding(self):
        intent = classify_intent("How does the Kafka event consumer work?")

        assert intent.operation == OperationType.UNDERSTANDING
        assert intent.domain is None
        assert intent.technologies == ["Kafka"]
        assert intent.category == PatternCategory.EVENT_HANDLER

    def test_first_operation_group_wins(self):
        """'add' and 'error' both appear; NEW_FEATURE comes first."""
        intent = classify_intent("Add error handling to the payment API")

        assert intent.operation == OperationType.NEW_FEATURE
        assert intent.category == PatternCategory.API_CLIENT

    def test_word_boundaries(self):
        """'address' must not match 'add' and 'consumer' must not match 'user'."""
        intent = classify_intent("update the consumer address field")

        assert intent.operation == OperationType.GENERAL
        assert intent.domain is None

    def test_plural_keywords(self):
        intent = classify_intent("Explain invoices and payments")

        assert intent.operation == OperationType.UNDERSTANDING
        assert intent.domain == "Payment"

    @pytest.mark.parametrize(
        "prompt,expected",
        [
            ("Refactoring the order service", OperationType.REFACTORING),
            ("I'm fixing the payment flow", OperationType.BUG_FIX),
            ("Adding a refund endpoint", OperationType.NEW_FEATURE),
            ("Creating a customer export", OperationType.NEW_FEATURE),
            ("Improving the checkout", OperationType.REFACTORING),
            ("Debugging checkout", OperationType.BUG_FIX),
            ("Who created the invoice job?", OperationType.NEW_FEATURE),
        ],
    )
    def test_inflected_operation_keywords(self, prompt, expected):
        """-s, -ed and -ing forms count, including dropped-e and doubled stems."""
        assert classify_intent(prompt).operation == expected

    def test_inflections_keep_word_boundaries(self):
        intent = classify_intent("The addressee updated the creator")

        assert intent.operation == OperationType.GENERAL

    def test_technologies_in_table_order(self):
        intent = classify_intent("Refactor the Spring job to use Redis and Kafka")

        assert intent.operation == OperationType.REFACTORING
        assert intent.technologies == ["Kafka", "Redis", "Spring"]


class TestAllocate:
    """Tests for the per-operation budget split."""

    def test_new_feature_split(self):
        assert allocate(OperationType.NEW_FEATURE, 8000) == {
            ContextTier.ARCHITECTURE: 800,
            ContextTier.DOMAIN: 1600,
            ContextTier.PATTERNS: 4000,
            ContextTier.STANDARDS: 1600,
        }

    def test_general_split_floors(self):
        assert set(allocate(OperationType.GENERAL, 1001).values()) == {250}

    @pytest.mark.parametrize("operation", list(OperationType))
    def test_never_exceeds_budget(self, operation):
        allowances = allocate(operation, 8000)

        assert set(allowances) == set(ContextTier)
        assert sum(allowances.values()) <= 8000


class TestFitTier:
    """Tests for fit_tier."""

    def test_fits_untouched(self, counter):
        items = [architecture("Microservices"), architecture("Event-Driven")]

        section = fit_tier(ContextTier.ARCHITECTURE, items, 10_000, counter)

        assert section.items == items
        assert section.truncated is False
        assert section.text == render_tier(ContextTier.ARCHITECTURE, items)
        assert section.tokens == counter.count(section.text)

    def test_drops_trailing_items(self, counter):
        items = [architecture("Microservices"), architecture("Event-Driven"), architecture("Layered")]
        allowance = counter.count(render_tier(ContextTier.ARCHITECTURE, items[:1]))

        section = fit_tier(ContextTier.ARCHITECTURE, items, allowance, counter)

        assert section.items == items[:1]
        assert section.truncated is True
        assert TRUNCATION_MARKER not in section.text

    def test_cuts_single_oversized_item(self, counter):
        items = [architecture("Monolith", description="x" * 4000)]

        section = fit_tier(ContextTier.ARCHITECTURE, items, 100, counter)

        assert section.truncated is True
        assert section.items == items
        assert section.text.endswith(TRUNCATION_MARKER + "\n")
        assert section.tokens <= 100

    def test_no_room_empties_tier(self, counter):
        items = [architecture("Monolith", description="x" * 4000)]

        section = fit_tier(ContextTier.ARCHITECTURE, items, 5, counter)

        assert section.items == []
        assert section.text == ""
        assert section.truncated is True

    def test_empty_tier(self, counter):
        section = fit_tier(ContextTier.STANDARDS, [], 100, counter)

        assert section.text == ""
        assert section.tokens == 0
        assert section.truncated is False


class TestApplyBudget:
    """Tests for apply_budget."""

    def setup_method(self):
        self.domain = DomainModel(domain_name="Payment", summary="Card payments")
        self.apis = [
            APISpecification(
                api_name=f"Payment API {n}",
                description="y" * 600,
                endpoints=[APIEndpoint(method="GET", path=f"/payments/{n}")],
            )
            for n in range(3)
        ]
        self.context = EnterpriseContext(
            architecture=[architecture("Microservices")],
            domain=self.domain,
            apis=self.apis,
            standards=FrameworkFingerprint(framework_type="r1-core", is_custom=True),
        )

    def test_tier_items(self):
        assert tier_items(self.context, ContextTier.DOMAIN) == [self.domain, *self.apis]
        assert tier_items(self.context, ContextTier.PATTERNS) == []
        assert tier_items(EnterpriseContext(), ContextTier.STANDARDS) == []

    def test_large_budget_keeps_everything(self, counter):
        fitted, sections = apply_budget(self.context, OperationType.GENERAL, 16000, counter)

        assert fitted.domain is self.domain
        assert fitted.apis == self.apis
        assert fitted.standards is self.context.standards
        assert not any(section.truncated for section in sections.values())
        assert sections[ContextTier.PATTERNS].text == ""

    def test_domain_survives_api_trimming(self, counter):
        """APIs trail the domain model, so they are dropped first."""
        fitted, sections = apply_budget(self.context, OperationType.BUG_FIX, 2000, counter)

        assert sections[ContextTier.DOMAIN].truncated is True
        assert fitted.domain is self.domain
        assert len(fitted.apis) < len(self.apis)

    @pytest.mark.parametrize("budget", [1000, 4000, 16000])
    def test_sections_respect_allowance(self, counter, budget):
        _, sections = apply_budget(self.context, OperationType.NEW_FEATURE, budget, counter)

        for section in sections.values():
            assert section.tokens <= section.allowance


class TestFormatter:
    """Tests for banner rendering."""

    def test_empty_tier_renders_nothing(self):
        assert render_tier(ContextTier.ARCHITECTURE, []) == ""

    def test_tiers_in_order(self):
        sections = {
            ContextTier.STANDARDS: render_tier(
                ContextTier.STANDARDS, [FrameworkFingerprint(framework_type="r1-core")]
            ),
            ContextTier.ARCHITECTURE: render_tier(ContextTier.ARCHITECTURE, [architecture("Monolith")]),
        }

        prompt = format_prompt("Add a refund endpoint", sections)

        assert prompt.index("USER REQUEST") < prompt.index("Add a refund endpoint")
        assert prompt.index("LEVEL 1: ARCHITECTURAL CONTEXT") < prompt.index("LEVEL 4: FRAMEWORK STANDARDS")
        assert prompt.index("LEVEL 4: FRAMEWORK STANDARDS") < prompt.index("INSTRUCTIONS")
        assert "LEVEL 2" not in prompt
        assert "LEVEL 3" not in prompt

    def test_custom_instructions(self):
        prompt = format_prompt("Explain orders", {}, instructions="Answer briefly.")

        assert prompt.endswith("Answer briefly.\n")

    def test_domain_without_details(self):
        text = format_domain(DomainModel(domain_name="Order", summary="Order lifecycle"))

        assert "Domain: Order" in text
        assert text.count("  None") == 3

    def test_custom_standards(self):
        fingerprint = FrameworkFingerprint(
            framework_type="r1-core",
            framework_version="2.3.0",
            is_custom=True,
            package_name="com.company:r1-core",
            config_namespaces=["company.*"],
        )

        text = format_standards(fingerprint)

        assert text.startswith("Framework: r1-core 2.3.0\n")
        assert "Custom Framework: com.company:r1-core" in text
        assert "Configuration namespaces: company.*" in text
