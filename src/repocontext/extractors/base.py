"""Base class shared by the knowledge extractors."""

import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional, Union

from ..config import ExtractionConfig, get_config
from ..services.llm import LLMService
from ..services.source_tree import SourceTree


class BaseExtractor(ABC):
    """Abstract base class for extractors.

    An extractor reads one kind of knowledge out of a checkout. Extractors
    that can use an LLM receive an ``LLMService`` and must produce a
    heuristic result when it is unavailable.
    """

    def __init__(self, config: Optional[ExtractionConfig] = None, llm: Optional[LLMService] = None):
        self.config = config or get_config().extraction
        self.llm = llm or LLMService()

    @property
    @abstractmethod
    def stage(self) -> str:
        """Extraction stage name recorded in logs."""
        pass

    @abstractmethod
    def extract(self, repo_path: Union[Path, SourceTree]) -> Any:
        """Extract knowledge from a checkout."""
        pass

    def _tree(self, repo_path: Union[Path, SourceTree]) -> SourceTree:
        if isinstance(repo_path, SourceTree):
            return repo_path
        return SourceTree(Path(repo_path), self.config)


def word_pattern(name: str) -> re.Pattern:
    """Regex matching ``name`` as a whole word."""
    return re.compile(rf"\b{re.escape(name)}\b")
