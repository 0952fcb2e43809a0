"""Knowledge extractors run by the extraction orchestrator."""

from .api_spec_extractor import APISpecExtractor
from .architecture_extractor import ArchitectureExtractor
from .base import BaseExtractor
from .domain_extractor import DomainExtractor
from .pattern_miner import PatternMiner
from .repository_analyzer import RepositoryAnalyzer

__all__ = [
    "APISpecExtractor",
    "ArchitectureExtractor",
    "BaseExtractor",
    "DomainExtractor",
    "PatternMiner",
    "RepositoryAnalyzer",
]
