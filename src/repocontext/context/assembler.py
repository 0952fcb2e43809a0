"""
Context Assembler - hierarchical enterprise context for a prompt.

Assembly steps:

    1. Cache lookup keyed by repository and normalized prompt
    2. Keyword intent classification (operation, domain, category)
    3. Four tier queries against the knowledge store:
         L1 architecture   always
         L2 domain + APIs  only when the prompt names a domain
         L3 patterns       standard patterns, by category when known
         L4 standards      the custom framework fingerprint
    4. Per-operation token budget split and truncation
    5. Banner-sectioned prompt rendering
    6. Quality score, metadata and caching of the result

Usage:
    from repocontext.context import ContextAssembler

    assembler = ContextAssembler()
    result = assembler.assemble("Add a refund endpoint to payments", repo_id)
    print(result.enhanced_prompt)

Author: RepoContext Team
"""

import hashlib
import time
from datetime import datetime, timedelta
from typing import Optional

from ..config import ContextConfig, get_config
from ..constants import (
    QUALITY_WEIGHT_ARCHITECTURE,
    QUALITY_WEIGHT_DOMAIN,
    QUALITY_WEIGHT_PATTERNS,
    QUALITY_WEIGHT_STANDARD_RATIO,
    QUALITY_WEIGHT_STANDARDS,
    ErrorMessage,
)
from ..logging import get_logger, log_operation_end, log_operation_start
from ..models.context import AssembledContext, ContextMetadata, EnterpriseContext, Intent
from ..services.knowledge_store import KnowledgeStore
from ..services.token_counter import TokenCounter
from .budget import apply_budget
from .formatter import format_prompt
from .intent import classify_intent


logger = get_logger(__name__)


def cache_key(repository_id: str, prompt: str) -> str:
    normalized = prompt.lower().strip()
    return hashlib.sha256(f"{repository_id}\n{normalized}".encode("utf-8")).hexdigest()


def quality_score(context: EnterpriseContext) -> float:
    """How much of the hierarchy the context covers, between 0 and 1."""
    score = 0.0
    if context.architecture:
        score += QUALITY_WEIGHT_ARCHITECTURE
    if context.domain:
        score += QUALITY_WEIGHT_DOMAIN
    if context.patterns:
        standard = sum(1 for pattern in context.patterns if pattern.is_standard)
        score += QUALITY_WEIGHT_PATTERNS + QUALITY_WEIGHT_STANDARD_RATIO * standard / len(context.patterns)
    if context.standards:
        score += QUALITY_WEIGHT_STANDARDS
    return round(min(1.0, score), 4)


class ContextAssembler:
    """Assemble token-budgeted hierarchical context from stored knowledge."""

    def __init__(
        self,
        store: Optional[KnowledgeStore] = None,
        config: Optional[ContextConfig] = None,
        counter: Optional[TokenCounter] = None,
    ):
        self.store = store or KnowledgeStore()
        self.config = config or get_config().context
        self.counter = counter or TokenCounter(self.config.token_encoding_model)

    def assemble(
        self,
        prompt: str,
        repository_id: str,
        token_budget: Optional[int] = None,
    ) -> AssembledContext:
        """
        Build the enhanced prompt for ``prompt`` against one repository.

        Args:
            prompt: The user's request
            repository_id: Repository whose knowledge to use
            token_budget: Total tokens for the knowledge tiers

        Returns:
            AssembledContext with the enhanced prompt, the context used
            and metadata

        Raises:
            ValueError: If the repository is unknown or the budget is out of range
        """
        started = time.perf_counter()
        budget = self.config.default_token_budget if token_budget is None else token_budget
        if not self.config.min_token_budget <= budget <= self.config.max_token_budget:
            raise ValueError(
                ErrorMessage.INVALID_TOKEN_BUDGET.format(
                    minimum=self.config.min_token_budget, maximum=self.config.max_token_budget
                )
            )

        repository = self.store.get_repository(repository_id)
        if repository is None:
            raise ValueError(ErrorMessage.REPOSITORY_NOT_FOUND.format(repository_id=repository_id))

        key = cache_key(repository_id, prompt)
        cached = self.store.get_cached_context(key)
        if cached is not None:
            result = AssembledContext.from_dict(cached)
            result.metadata.cache_hit = True
            result.metadata.query_time_ms = int((time.perf_counter() - started) * 1000)
            logger.info("Context retrieved from cache", extra={"repository_id": repository_id})
            return result

        start_time = log_operation_start(logger, "Context assembly", repository_id=repository_id, budget=budget)

        intent = classify_intent(prompt)
        context = self.query_hierarchical(repository_id, intent)
        fitted, sections = apply_budget(context, intent.operation, budget, self.counter)
        enhanced_prompt = format_prompt(prompt, {tier: section.text for tier, section in sections.items()})

        result = AssembledContext(
            enhanced_prompt=enhanced_prompt,
            context=fitted,
            metadata=ContextMetadata(
                repository=repository.name,
                last_analyzed=repository.analyzed_at,
                tokens_used=self.counter.count(enhanced_prompt),
                token_budget=budget,
                context_quality_score=quality_score(fitted),
                query_time_ms=int((time.perf_counter() - started) * 1000),
                operation=intent.operation.value,
                domain=intent.domain,
                truncated_tiers=[tier.value for tier, section in sections.items() if section.truncated],
            ),
        )

        self.store.put_cached_context(
            key,
            repository_id,
            result.to_dict(),
            tokens_used=result.metadata.tokens_used,
            quality_score=result.metadata.context_quality_score,
            expires_at=datetime.now() + timedelta(seconds=self.config.cache_ttl_seconds),
        )

        log_operation_end(
            logger,
            "Context assembly",
            start_time,
            intent=intent.operation.value,
            domain=intent.domain,
            tokens=result.metadata.tokens_used,
            quality=result.metadata.context_quality_score,
        )
        return result

    def query_hierarchical(self, repository_id: str, intent: Intent) -> EnterpriseContext:
        """Read the four knowledge tiers for an intent."""
        domain = None
        apis = []
        if intent.domain:
            domain = self.store.find_domain_model(repository_id, intent.domain)
            apis = self.store.find_api_specs(repository_id, intent.domain)

        return EnterpriseContext(
            architecture=self.store.top_architecture_patterns(repository_id),
            domain=domain,
            apis=apis,
            patterns=self.store.standard_code_patterns(
                repository_id, intent.category.value if intent.category else None
            ),
            standards=self.store.custom_framework(repository_id),
        )
