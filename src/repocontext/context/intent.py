"""Keyword intent classification for context prompts."""

import re
from functools import lru_cache
from typing import Iterable, Optional

from ..constants import (
    CATEGORY_KEYWORDS,
    DOMAIN_KEYWORDS,
    OPERATION_KEYWORDS,
    TECHNOLOGY_KEYWORDS,
    OperationType,
)
from ..models.context import Intent


@lru_cache(maxsize=None)
def _keyword_pattern(keyword: str) -> re.Pattern:
    """Whole-word pattern for a keyword and its inflections.

    "create" also matches creates, created and creating; "debug" matches
    debugs, debugged and debugging. Word boundaries keep "add" out of
    "address".
    """
    if keyword.endswith("e"):
        body = rf"{re.escape(keyword[:-1])}(?:es?|ed|ing)"
    else:
        stem = re.escape(keyword)
        last = re.escape(keyword[-1])
        body = rf"{stem}(?:s|es|{last}?ed|{last}?ing)?"
    return re.compile(rf"\b{body}\b")


def _contains(text: str, keyword: str) -> bool:
    return _keyword_pattern(keyword).search(text) is not None


def _first_match(text: str, keywords: Iterable[str]) -> Optional[str]:
    for keyword in keywords:
        if _contains(text, keyword):
            return keyword
    return None


def _capitalize(keyword: str) -> str:
    return keyword[:1].upper() + keyword[1:]


def classify_intent(prompt: str) -> Intent:
    """
    Classify what a prompt asks for.

    Operation, domain and category take the first matching keyword group
    in table order; technologies collect every match.

    Example:
        >>> classify_intent("Add a Stripe refund to the payment service")
        Intent(operation=<OperationType.NEW_FEATURE: 'NEW_FEATURE'>, domain='Payment',
               technologies=['Stripe'], category=None)
    """
    text = prompt.lower()

    operation = OperationType.GENERAL
    for candidate, keywords in OPERATION_KEYWORDS:
        if _first_match(text, keywords):
            operation = candidate
            break

    domain = _first_match(text, DOMAIN_KEYWORDS)

    category = None
    for candidate, keywords in CATEGORY_KEYWORDS:
        if _first_match(text, keywords):
            category = candidate
            break

    return Intent(
        operation=operation,
        domain=_capitalize(domain) if domain else None,
        technologies=[_capitalize(tech) for tech in TECHNOLOGY_KEYWORDS if _contains(text, tech)],
        category=category,
    )
