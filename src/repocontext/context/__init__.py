"""Hierarchical context assembly."""

from .assembler import ContextAssembler, cache_key, quality_score
from .budget import TierSection, allocate, apply_budget
from .intent import classify_intent

__all__ = [
    "ContextAssembler",
    "TierSection",
    "allocate",
    "apply_budget",
    "cache_key",
    "classify_intent",
    "quality_score",
]
