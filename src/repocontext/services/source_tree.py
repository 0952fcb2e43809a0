"""Filtered view over the files of a checkout."""

import fnmatch
from pathlib import Path
from typing import Iterable, Optional

from ..config import ExtractionConfig, get_config
from ..logging import get_logger


logger = get_logger(__name__)


class SourceTree:
    """Files of a repository checkout, ignoring build and vendor directories.

    The file list is computed once and shared by every extractor that
    scans the same checkout.
    """

    def __init__(self, root: Path, config: Optional[ExtractionConfig] = None):
        self.root = Path(root).resolve()
        self.config = config or get_config().extraction
        self._files: Optional[list[Path]] = None

    @property
    def files(self) -> list[Path]:
        if self._files is None:
            self._files = self._find_files()
        return self._files

    def _find_files(self) -> list[Path]:
        found = []
        for file_path in self.root.rglob("*"):
            if not file_path.is_file():
                continue
            if self.config.is_ignored(file_path.relative_to(self.root)):
                continue
            found.append(file_path)
        return sorted(found)

    def relative(self, file_path: Path) -> str:
        return file_path.relative_to(self.root).as_posix()

    def with_suffix(self, *suffixes: str) -> list[Path]:
        """Files whose extension is one of ``suffixes``."""
        return [f for f in self.files if f.suffix in suffixes]

    def matching(self, patterns: Iterable[str], case_sensitive: bool = False) -> list[Path]:
        """Files whose relative path or file name matches any glob pattern."""
        patterns = list(patterns)
        matched = []
        for file_path in self.files:
            relative = self.relative(file_path)
            name = file_path.name
            if not case_sensitive:
                relative, name = relative.lower(), name.lower()
            for pattern in patterns:
                pattern = pattern if case_sensitive else pattern.lower()
                if fnmatch.fnmatch(relative, pattern) or fnmatch.fnmatch(name, pattern):
                    matched.append(file_path)
                    break
        return matched

    def read(self, file_path: Path) -> Optional[str]:
        """Read a text file, None for binary or unreadable files."""
        try:
            return file_path.read_text(encoding="utf-8")
        except (UnicodeDecodeError, OSError):
            logger.debug("Skipping unreadable file", extra={"file_path": self.relative(file_path)})
            return None

    def texts(self, files: Iterable[Path]) -> Iterable[tuple[Path, str]]:
        """Yield (path, content) for every readable file."""
        for file_path in files:
            content = self.read(file_path)
            if content is not None:
                yield file_path, content
