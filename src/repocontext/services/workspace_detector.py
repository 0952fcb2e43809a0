"""
Workspace Detector - map a local checkout to a workspace and repository.

The origin remote URL identifies the repository; a deterministic id
derived from it means every clone of the same remote lands in the same
workspace. Checkouts without a remote are keyed by their absolute path.
"""

import hashlib
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..logging import get_logger
from ..models.knowledge import Repository
from .git_service import GitService
from .knowledge_store import KnowledgeStore


logger = get_logger(__name__)


@dataclass
class DetectedWorkspace:
    """Workspace and repository rows matching a local checkout."""

    workspace_id: str
    name: str
    repository_id: str
    git_url: Optional[str]
    local_path: str


def extract_repo_name(git_url: str) -> str:
    """Last path segment of a remote URL, without ``.git``."""
    trimmed = git_url.strip().rstrip("/")
    if trimmed.endswith(".git"):
        trimmed = trimmed[: -len(".git")]
    name = trimmed.replace(":", "/").split("/")[-1]
    return name or "unknown-repo"


def generate_workspace_id(key: str) -> str:
    """UUID-formatted sha256 of the normalized remote URL (or path)."""
    normalized = key.strip().lower()
    if normalized.endswith(".git"):
        normalized = normalized[: -len(".git")]
    digest = hashlib.sha256(normalized.encode("utf-8")).hexdigest()
    return "-".join([digest[:8], digest[8:12], digest[12:16], digest[16:20], digest[20:32]])


class WorkspaceDetector:
    """Find or create the workspace for a checkout, cached per path."""

    def __init__(self, store: Optional[KnowledgeStore] = None, git: Optional[GitService] = None):
        self.store = store or KnowledgeStore()
        self.git = git or GitService(timeout=5)
        self._cache: dict[str, DetectedWorkspace] = {}

    def detect(self, path: Optional[Path] = None) -> DetectedWorkspace:
        """
        Detect the workspace of the checkout at ``path`` (default: cwd).

        Returns:
            DetectedWorkspace, creating rows in the store on first sight
        """
        local_path = str(Path(path or Path.cwd()).resolve())
        if local_path in self._cache:
            return self._cache[local_path]

        git_url = self.git.remote_url(Path(local_path))
        if git_url:
            name = extract_repo_name(git_url)
            workspace_id = generate_workspace_id(git_url)
            logger.info("Git repository detected", extra={"git_url": GitService.redact(git_url), "repo_name": name})
        else:
            name = Path(local_path).name
            workspace_id = generate_workspace_id(local_path)
            logger.warning("No Git remote URL found, keying workspace by path", extra={"path": local_path})

        detected = self._find_or_create(workspace_id, name, git_url, local_path)
        self._cache[local_path] = detected
        return detected

    def _find_or_create(
        self, workspace_id: str, name: str, git_url: Optional[str], local_path: str
    ) -> DetectedWorkspace:
        url = git_url or local_path
        repository = self.store.find_repository_by_url(url)
        if repository and repository.workspace_id:
            workspace = self.store.get_or_create_workspace(repository.workspace_id, name)
            logger.info(
                "Found existing workspace via repository",
                extra={"workspace_id": workspace.id, "repository_id": repository.id},
            )
            return DetectedWorkspace(workspace.id, workspace.name, repository.id, git_url, local_path)

        workspace = self.store.get_or_create_workspace(workspace_id, name)
        repository = self.store.create_repository(
            Repository(workspace_id=workspace.id, name=name, url=url)
        )
        logger.info(
            "Created workspace repository",
            extra={"workspace_id": workspace.id, "repository_id": repository.id},
        )
        return DetectedWorkspace(workspace.id, workspace.name, repository.id, git_url, local_path)

    def clear_cache(self) -> None:
        self._cache.clear()
