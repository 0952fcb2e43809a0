"""
Token budget allocation across the four knowledge tiers.

Each operation type has a fixed split of the budget (``BUDGET_ALLOCATION``).
A tier that renders longer than its allowance first loses trailing items,
then, if a single item is still too long, is cut at a token boundary and
marked as truncated. Allowance left over by small or empty tiers is not
handed to other tiers.
"""

import math
from dataclasses import dataclass, field

from ..constants import BUDGET_ALLOCATION, TRUNCATION_MARKER, ContextTier, OperationType
from ..models.context import EnterpriseContext
from ..services.token_counter import TokenCounter
from .formatter import render_tier


@dataclass
class TierSection:
    """A tier after fitting it to its allowance."""

    tier: ContextTier
    allowance: int
    items: list = field(default_factory=list)
    text: str = ""
    tokens: int = 0
    truncated: bool = False


def allocate(operation: OperationType, token_budget: int) -> dict[ContextTier, int]:
    """Token allowance per tier: ``floor(budget * fraction)``."""
    split = BUDGET_ALLOCATION.get(operation, BUDGET_ALLOCATION[OperationType.GENERAL])
    return {tier: math.floor(token_budget * fraction) for tier, fraction in split.items()}


def tier_items(context: EnterpriseContext, tier: ContextTier) -> list:
    if tier == ContextTier.ARCHITECTURE:
        return list(context.architecture)
    if tier == ContextTier.DOMAIN:
        return ([context.domain] if context.domain else []) + list(context.apis)
    if tier == ContextTier.PATTERNS:
        return list(context.patterns)
    return [context.standards] if context.standards else []


def fit_tier(tier: ContextTier, items: list, allowance: int, counter: TokenCounter) -> TierSection:
    """Render a tier within ``allowance`` tokens."""
    kept = list(items)
    text = render_tier(tier, kept)
    tokens = counter.count(text)
    truncated = False

    while tokens > allowance and len(kept) > 1:
        kept.pop()
        text = render_tier(tier, kept)
        tokens = counter.count(text)
        truncated = True

    if tokens > allowance:
        marker = "\n" + TRUNCATION_MARKER + "\n"
        full_text = text
        room = allowance - counter.count(marker)
        text = ""
        while room > 0:
            text = counter.truncate(full_text, room) + marker
            # Tokens can merge across the cut, so recount the joined text
            if counter.count(text) <= allowance:
                break
            room -= 1
        if room <= 0:
            kept, text = [], ""
        tokens = counter.count(text)
        truncated = True

    return TierSection(tier=tier, allowance=allowance, items=kept, text=text, tokens=tokens, truncated=truncated)


def apply_budget(
    context: EnterpriseContext,
    operation: OperationType,
    token_budget: int,
    counter: TokenCounter,
) -> tuple[EnterpriseContext, dict[ContextTier, TierSection]]:
    """
    Fit every tier to its allowance.

    Returns:
        The context reduced to the items that were kept, and the fitted
        sections keyed by tier
    """
    allowances = allocate(operation, token_budget)
    sections = {
        tier: fit_tier(tier, tier_items(context, tier), allowances[tier], counter)
        for tier in ContextTier
    }

    domain_items = sections[ContextTier.DOMAIN].items
    standards = sections[ContextTier.STANDARDS].items
    fitted = EnterpriseContext(
        architecture=sections[ContextTier.ARCHITECTURE].items,
        domain=context.domain if any(item is context.domain for item in domain_items) else None,
        apis=[item for item in domain_items if item is not context.domain],
        patterns=sections[ContextTier.PATTERNS].items,
        standards=standards[0] if standards else None,
    )
    return fitted, sections
