"""Base parser interface for source parsing."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from ..logging import get_logger
from ..models.source import SourceClass


logger = get_logger(__name__)


class BaseParser(ABC):
    """Abstract base class for language-specific parsers.

    Each parser uses tree-sitter to reduce a source file to its class
    declarations: annotations, fields and method signatures.
    """

    def __init__(self):
        self._parser = None

    @property
    @abstractmethod
    def language(self) -> str:
        """The language this parser handles."""
        pass

    @property
    @abstractmethod
    def file_extensions(self) -> list[str]:
        """File extensions this parser can handle."""
        pass

    @abstractmethod
    def _build_parser(self):
        """Create the tree-sitter parser for this language."""
        pass

    @abstractmethod
    def parse_source(self, source_code: str, file_path: str) -> list[SourceClass]:
        """Extract class declarations from source text.

        Args:
            source_code: File contents
            file_path: Path recorded on the returned classes

        Returns:
            Classes in declaration order, nested classes included
        """
        pass

    def _get_parser(self):
        """Lazy initialization of tree-sitter parser."""
        if self._parser is None:
            self._parser = self._build_parser()
        return self._parser

    def parse_file(self, file_path: Path, relative_to: Optional[Path] = None) -> list[SourceClass]:
        """Parse a file, returning no classes when it cannot be read.

        Args:
            file_path: File to parse
            relative_to: Repository root; recorded paths are made relative to it
        """
        try:
            source_code = file_path.read_text(encoding="utf-8")
        except (UnicodeDecodeError, OSError) as error:
            logger.debug("Skipping unreadable file", extra={"file_path": str(file_path), "error": str(error)})
            return []

        recorded_path = file_path.relative_to(relative_to).as_posix() if relative_to else str(file_path)
        return self.parse_source(source_code, recorded_path)

    def can_parse(self, file_path: Path) -> bool:
        """Check if this parser can handle the given file."""
        return any(str(file_path).endswith(ext) for ext in self.file_extensions)

    @staticmethod
    def _text(node) -> str:
        return node.text.decode("utf-8") if node is not None else ""
